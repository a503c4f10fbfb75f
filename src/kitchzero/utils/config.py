"""
Configuration management for the KitchZero core.

This module handles:
- Database URL configuration
- Environment-specific configuration (production, development, test)
- Service defaults (page size, recipe costing sample size)

Settings are read from environment variables:
    KITCHZERO_ENV             production | development | test
    KITCHZERO_DATABASE_URL    SQLAlchemy URL (defaults to a SQLite file)
    KITCHZERO_DATA_DIR        Directory for the default SQLite file
    KITCHZERO_SQL_ECHO        "1" / "true" to log SQL statements
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    DEFAULT_PAGE_SIZE,
    RECIPE_COST_SAMPLE_SIZE,
)

logger = logging.getLogger(__name__)

VALID_ENVIRONMENTS = ("production", "development", "test")


class Config:
    """
    Application configuration manager.

    Resolves the database location and service defaults for one
    environment.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production', 'development' or 'test'

        Raises:
            ValueError: If the environment name is unknown
        """
        if environment not in VALID_ENVIRONMENTS:
            raise ValueError(
                f"Unknown environment '{environment}'. "
                f"Expected one of: {', '.join(VALID_ENVIRONMENTS)}"
            )
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        data_dir = os.environ.get("KITCHZERO_DATA_DIR")
        if data_dir:
            self._data_dir = Path(data_dir)
        elif environment == "development":
            # Project data/ directory for development
            self._data_dir = Path(__file__).parent.parent.parent.parent / "data"
        else:
            self._data_dir = Path.home() / ".kitchzero"

        self._database_url = os.environ.get("KITCHZERO_DATABASE_URL")
        self._sql_echo = os.environ.get("KITCHZERO_SQL_ECHO", "").lower() in ("1", "true", "yes")

    @property
    def app_name(self) -> str:
        """Application name."""
        return self._app_name

    @property
    def app_version(self) -> str:
        """Application version."""
        return self._app_version

    @property
    def database_version(self) -> str:
        """Database schema version."""
        return self._database_version

    @property
    def database_path(self) -> Path:
        """Full path to the default SQLite database file."""
        return self._data_dir / DATABASE_FILENAME

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        An explicit KITCHZERO_DATABASE_URL wins; the test environment falls
        back to an in-memory SQLite database; otherwise a SQLite file in the
        data directory is used.
        """
        if self._database_url:
            return self._database_url
        if self.environment == "test":
            return "sqlite:///:memory:"
        self._data_dir.mkdir(parents=True, exist_ok=True)
        db_path_str = str(self.database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def sql_echo(self) -> bool:
        """Whether SQLAlchemy should log every statement."""
        return self._sql_echo

    @property
    def default_page_size(self) -> int:
        """Page size used when a caller does not paginate explicitly."""
        return DEFAULT_PAGE_SIZE

    @property
    def recipe_cost_sample_size(self) -> int:
        """Number of recent batches averaged per ingredient when costing recipes."""
        return RECIPE_COST_SAMPLE_SIZE

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def __repr__(self) -> str:
        """String representation of config."""
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument; this prevents switching databases
    mid-process.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    KITCHZERO_ENV or defaults to production. Ignored if the
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get("KITCHZERO_ENV", "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton."
        )

    return _config_instance


def reset_config():
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None


def get_database_url() -> str:
    """
    Get the database URL.

    Returns:
        SQLAlchemy database URL string
    """
    return get_config().database_url
