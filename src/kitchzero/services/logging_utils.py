"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across production, approval and
inventory operations.

Usage:
    from kitchzero.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="create_production",
        outcome="success",
        production_id=123,
        recipe_id=45,
    )

    log_operation(
        logger,
        operation="create_production",
        outcome="insufficient_inventory",
        level=logging.WARNING,
        recipe_id=45,
        missing_ingredients=["Tomato"],
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "kitchzero.services"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger named 'kitchzero.services.<module>'

    Example:
        >>> get_service_logger("kitchzero.services.production_service").name
        'kitchzero.services.production_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter so handlers that emit
    structured records can pick the fields up individually.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "create_production", "review_approval_request")
        outcome: Outcome description (e.g., "success", "already_reviewed", "error")
        level: Log level (default: INFO)
        **context: Additional context fields such as tenant_id, entity IDs or
            error details. Keys must not collide with LogRecord attributes.
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
