"""
InventoryItem model for tracking inventory batches.

Each row is one batch (lot) of an ingredient received at one time, tracked
separately for expiry and cost:
- What ingredient (item_name + category) and in which unit
- How much is left
- What it cost per unit when received
- When it expires

FIFO Consumption:
Batches are consumed in expiry_date order (earliest first) so stock that
spoils soonest is used first.
"""

from datetime import date

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    Float,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import validates

from .base import BaseModel, TenantScopedMixin


class InventoryItem(TenantScopedMixin, BaseModel):
    """
    InventoryItem model representing one inventory batch.

    Attributes:
        item_name: Ingredient name used for recipe matching
        category: Ingredient category used for recipe matching
        quantity: Quantity remaining (never negative; batches persist at zero)
        unit: Unit of measure (KG, L, PORTION, ...)
        cost: Cost per unit at receipt (immutable after creation)
        expiry_date: When the batch expires (drives FIFO order)
        purchase_date: When the batch was purchased
        supplier: Supplier name
        location: Storage location
        notes: Additional notes
    """

    __tablename__ = "inventory_items"

    item_name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False)
    quantity = Column(Float, nullable=False, default=0.0)
    unit = Column(String(20), nullable=False)
    cost = Column(Numeric(10, 4), nullable=False)

    expiry_date = Column(Date, nullable=False)
    purchase_date = Column(Date, nullable=True)

    supplier = Column(String(200), nullable=True)
    location = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_inventory_lookup", "tenant_id", "branch_id", "item_name", "category"),
        Index("idx_inventory_expiry", "expiry_date"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        CheckConstraint("cost >= 0", name="ck_inventory_cost_non_negative"),
    )

    @validates("cost")
    def _validate_cost(self, _key, value):
        """Unit cost is fixed once the batch exists."""
        if self.cost is not None and value is not None and value != self.cost:
            raise ValueError("Inventory cost cannot be changed after creation")
        return value

    def __repr__(self) -> str:
        """String representation of inventory item."""
        return (
            f"InventoryItem(id={self.id}, "
            f"item_name='{self.item_name}', "
            f"quantity={self.quantity} {self.unit}, "
            f"expiry_date={self.expiry_date})"
        )

    @property
    def is_expired(self) -> bool:
        """True if expiry_date is in the past."""
        if not self.expiry_date:
            return False
        return self.expiry_date < date.today()

    @property
    def days_until_expiration(self):
        """
        Get days until expiration.

        Returns:
            Days until expiration, or None if no expiry date
        """
        if not self.expiry_date:
            return None
        return (self.expiry_date - date.today()).days

    def is_expiring_soon(self, days: int = 7) -> bool:
        """
        Check if the batch expires within ``days`` (today included).

        Args:
            days: Threshold in days (default: 7)
        """
        days_left = self.days_until_expiration
        if days_left is None:
            return False
        return 0 <= days_left <= days

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert inventory item to dictionary.

        Args:
            include_relationships: Unused; kept for interface parity

        Returns:
            Dictionary representation with calculated fields
        """
        result = super().to_dict(include_relationships)
        result["is_expired"] = self.is_expired
        result["days_until_expiration"] = self.days_until_expiration
        return result
