"""
Base model class for all database models.

Provides common functionality and fields for all models:
- Primary key (Integer) and UUID column
- Timestamp fields (created_at, updated_at)
- Tenant/branch scoping (TenantScopedMixin)
- Utility methods (to_dict, update_from_dict)
- SQLAlchemy declarative base
"""

import uuid as uuid_lib
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import Session, declarative_base, declared_attr, validates

from kitchzero.utils.datetime_utils import utc_now

# Create the declarative base for all models
Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with common fields and methods.

    All models inherit from this class to get:
    - id: Primary key
    - uuid: Stable external identifier
    - created_at: Timestamp when record was created
    - updated_at: Timestamp when record was last modified
    - to_dict(): Convert model to dictionary
    """

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Stored as string for SQLite compatibility
    uuid = Column(
        String(36), unique=True, nullable=False, default=lambda: str(uuid_lib.uuid4()), index=True
    )

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self, include_relationships: bool = False) -> Dict[str, Any]:
        """
        Convert model instance to dictionary.

        Dates and datetimes become ISO strings and Decimals become strings,
        so the result is JSON-safe.

        Args:
            include_relationships: If True, include related objects (default: False)

        Returns:
            Dictionary representation of the model
        """
        result = {}

        for column in self.__table__.columns:
            result[column.name] = _serialize(getattr(self, column.name))

        if include_relationships:
            for relationship in self.__mapper__.relationships:
                rel_name = relationship.key
                rel_value = getattr(self, rel_name)

                if rel_value is None:
                    result[rel_name] = None
                elif isinstance(rel_value, list):
                    result[rel_name] = [item.to_dict() for item in rel_value]
                else:
                    result[rel_name] = rel_value.to_dict()

        return result

    @validates("uuid")
    def _validate_uuid(self, _key: str, value: Any) -> str:
        """Normalize UUID values to strings for SQLite compatibility."""
        if value is None:
            return value
        return str(value)

    def update_from_dict(self, data: Dict[str, Any]) -> None:
        """
        Update model instance from dictionary.

        Only updates fields that exist in the model and are in the dictionary.
        Identity, ownership and timestamp columns are never overwritten.

        Args:
            data: Dictionary with field names and values
        """
        protected = {"id", "uuid", "created_at", "updated_at", "tenant_id"}
        for column in self.__table__.columns:
            if column.name in data and column.name not in protected:
                setattr(self, column.name, data[column.name])

        self.updated_at = utc_now()

    def __repr__(self) -> str:
        """
        String representation of model instance.

        Returns:
            String like "ClassName(id=1, ...)"
        """
        class_name = self.__class__.__name__
        attrs = []

        if hasattr(self, "id") and self.id is not None:
            attrs.append(f"id={self.id}")

        if hasattr(self, "name") and self.name is not None:
            attrs.append(f"name='{self.name}'")

        attrs_str = ", ".join(attrs)
        return f"{class_name}({attrs_str})"


class TenantScopedMixin:
    """
    Adds tenant_id/branch_id columns and tenant-scoped query helpers.

    Every read and write in the service layer goes through ``for_tenant``
    (or filters on tenant_id explicitly), so rows owned by another tenant
    are indistinguishable from missing rows.
    """

    branch_nullable = False

    @declared_attr
    def tenant_id(cls):
        return Column(String(64), nullable=False, index=True)

    @declared_attr
    def branch_id(cls):
        return Column(String(64), nullable=cls.branch_nullable, index=True)

    @classmethod
    def for_tenant(cls, session: Session, tenant_id: str, branch_id: Optional[str] = None):
        """Return a query scoped to one tenant (and branch, when given)."""
        query = session.query(cls).filter(cls.tenant_id == tenant_id)
        if branch_id is not None:
            query = query.filter(cls.branch_id == branch_id)
        return query


def _serialize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value
