"""
WasteLog model for recording wasted ingredients and finished products.

RAW waste refers to an inventory ingredient; PRODUCT waste refers to a
recipe output and may point at the production batch it came from.
"""

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import BaseModel, TenantScopedMixin
from .enums import WasteType


class WasteLog(TenantScopedMixin, BaseModel):
    """
    WasteLog model.

    Attributes:
        item_name: Wasted ingredient or product name
        category: Category of the wasted item
        quantity: Quantity wasted
        unit: Unit of measure
        cost: Total cost of the waste
        waste_type: WasteType value
        reason: Free-text reason
        tags: Classification tags derived from the reason
        recipe_id: Recipe for PRODUCT waste
        production_id: Originating production for PRODUCT waste
        logged_by: User id of the reporter
    """

    __tablename__ = "waste_logs"

    item_name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=True)
    quantity = Column(Float, nullable=False)
    unit = Column(String(20), nullable=False)
    cost = Column(Numeric(12, 4), nullable=False, default=0)
    waste_type = Column(String(16), nullable=False, default=WasteType.RAW.value)
    reason = Column(Text, nullable=False)
    tags = Column(JSON, nullable=False, default=list)

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="SET NULL"), nullable=True)
    production_id = Column(
        Integer, ForeignKey("productions.id", ondelete="SET NULL"), nullable=True
    )
    logged_by = Column(String(64), nullable=True)

    recipe = relationship("Recipe")
    production = relationship("Production", back_populates="waste_logs")

    __table_args__ = (
        Index("idx_waste_tenant_created", "tenant_id", "created_at"),
        Index("idx_waste_type", "waste_type"),
        CheckConstraint("quantity >= 0", name="ck_waste_quantity_non_negative"),
        CheckConstraint("cost >= 0", name="ck_waste_cost_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of waste log."""
        return (
            f"WasteLog(id={self.id}, item_name='{self.item_name}', "
            f"quantity={self.quantity} {self.unit}, waste_type='{self.waste_type}')"
        )
