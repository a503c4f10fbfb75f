"""
Stock level models for finished-product stock thresholds and usage history.

This module contains:
- ProductStockLevel: Thresholds for one product in one unit at one branch
- StockUsageHistory: Append-only record of quantity movements
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel, TenantScopedMixin
from .enums import StockStatus


class ProductStockLevel(TenantScopedMixin, BaseModel):
    """
    Stock thresholds for a (product_name, category, unit) at a branch.

    Attributes:
        product_name: Product or ingredient name
        category: Category
        unit: Unit of measure
        min_stock_level: Quantity below which stock is LOW
        max_stock_level: Quantity at or above which stock is HIGH
        safety_stock: Buffer kept on hand
        reorder_quantity: Suggested reorder amount
        lead_time_days: Supplier lead time
        avg_daily_usage: Rolling daily usage estimate
        is_active: Inactive levels are ignored by low-stock reports
        track_stock: When False, usage is not recorded
    """

    __tablename__ = "product_stock_levels"

    branch_nullable = True

    product_name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False)
    unit = Column(String(20), nullable=False)

    min_stock_level = Column(Float, nullable=False, default=0.0)
    max_stock_level = Column(Float, nullable=True)
    safety_stock = Column(Float, nullable=False, default=0.0)
    reorder_quantity = Column(Float, nullable=True)
    lead_time_days = Column(Integer, nullable=False, default=1)
    avg_daily_usage = Column(Float, nullable=False, default=0.0)

    is_active = Column(Boolean, nullable=False, default=True)
    track_stock = Column(Boolean, nullable=False, default=True)

    usage_history = relationship(
        "StockUsageHistory",
        back_populates="stock_level",
        cascade="all, delete-orphan",
        order_by="StockUsageHistory.id",
    )

    __table_args__ = (
        UniqueConstraint(
            "product_name",
            "category",
            "unit",
            "tenant_id",
            "branch_id",
            name="uq_stock_level_product",
        ),
        CheckConstraint("min_stock_level >= 0", name="ck_stock_level_min_non_negative"),
        CheckConstraint("safety_stock >= 0", name="ck_stock_level_safety_non_negative"),
    )

    def status_for(self, quantity: float) -> StockStatus:
        """Classify ``quantity`` against the configured thresholds."""
        if quantity <= 0:
            return StockStatus.OUT
        if quantity <= self.min_stock_level:
            return StockStatus.LOW
        if self.max_stock_level is not None and quantity >= self.max_stock_level:
            return StockStatus.HIGH
        return StockStatus.OK

    def __repr__(self) -> str:
        """String representation of stock level."""
        return (
            f"ProductStockLevel(id={self.id}, product_name='{self.product_name}', "
            f"unit='{self.unit}', min={self.min_stock_level})"
        )


class StockUsageHistory(TenantScopedMixin, BaseModel):
    """
    One quantity movement against a stock level.

    Attributes:
        stock_level_id: Stock level the movement belongs to
        usage_type: UsageType value
        quantity_used: Quantity removed
        total_quantity_before: Total available before the movement
        total_quantity_after: Total available after the movement
        cost: Cost of the quantity removed
        reason: Free-text reason
        production_id: Production that caused the movement, if any
    """

    __tablename__ = "stock_usage_history"

    branch_nullable = True

    stock_level_id = Column(
        Integer, ForeignKey("product_stock_levels.id", ondelete="CASCADE"), nullable=False
    )
    usage_type = Column(String(32), nullable=False)
    quantity_used = Column(Float, nullable=False)
    total_quantity_before = Column(Float, nullable=False)
    total_quantity_after = Column(Float, nullable=False)
    cost = Column(Numeric(12, 4), nullable=False, default=0)
    reason = Column(Text, nullable=True)
    production_id = Column(
        Integer, ForeignKey("productions.id", ondelete="SET NULL"), nullable=True
    )

    stock_level = relationship("ProductStockLevel", back_populates="usage_history")

    __table_args__ = (
        Index("idx_stock_usage_level", "stock_level_id"),
        CheckConstraint("quantity_used >= 0", name="ck_stock_usage_quantity_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of stock usage."""
        return (
            f"StockUsageHistory(id={self.id}, stock_level_id={self.stock_level_id}, "
            f"usage_type='{self.usage_type}', quantity_used={self.quantity_used})"
        )
