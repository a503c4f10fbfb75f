"""
Production models for tracking recipe production runs.

This module contains:
- Production: One production batch of a recipe with actual FIFO cost
- ProductionIngredient: Per-ingredient consumption ledger of a batch

Invariants (maintained by production_service):
- sum(ProductionIngredient.cost_used) == Production.total_cost
- Production.unit_cost == total_cost / quantity_produced (0 when nothing produced)
"""

from decimal import Decimal

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
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
from .enums import ProductionStatus
from kitchzero.utils.datetime_utils import utc_now


class Production(TenantScopedMixin, BaseModel):
    """
    Production model for one batch of a recipe.

    Attributes:
        recipe_id: Recipe that was produced
        planned_quantity: Quantity the kitchen set out to make
        quantity_produced: Quantity actually made (drives scaling and unit cost)
        batch_number: Human-readable batch code, unique per tenant
        total_cost: FIFO cost of all consumed ingredients
        unit_cost: total_cost / quantity_produced
        status: ProductionStatus value
        notes: Optional production notes
        quality_rating: Optional 1-5 rating
        produced_by: User id of the cook
        production_date: When the batch was produced
    """

    __tablename__ = "productions"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="RESTRICT"), nullable=False)

    planned_quantity = Column(Float, nullable=False)
    quantity_produced = Column(Float, nullable=False)
    batch_number = Column(String(64), nullable=False)

    total_cost = Column(Numeric(12, 4), nullable=False, default=Decimal("0.0000"))
    unit_cost = Column(Numeric(12, 4), nullable=False, default=Decimal("0.0000"))

    status = Column(String(20), nullable=False, default=ProductionStatus.COMPLETED.value)
    notes = Column(Text, nullable=True)
    quality_rating = Column(Integer, nullable=True)
    produced_by = Column(String(64), nullable=True)
    production_date = Column(DateTime, nullable=False, default=utc_now)

    recipe = relationship("Recipe", back_populates="productions")
    ingredient_usage = relationship(
        "ProductionIngredient",
        back_populates="production",
        cascade="all, delete-orphan",
        order_by="ProductionIngredient.id",
    )
    waste_logs = relationship("WasteLog", back_populates="production")

    __table_args__ = (
        UniqueConstraint("tenant_id", "batch_number", name="uq_production_batch_number"),
        Index("idx_production_recipe", "recipe_id"),
        Index("idx_production_date", "production_date"),
        CheckConstraint("planned_quantity >= 0", name="ck_production_planned_non_negative"),
        CheckConstraint("quantity_produced >= 0", name="ck_production_produced_non_negative"),
        CheckConstraint("total_cost >= 0", name="ck_production_total_cost_non_negative"),
        CheckConstraint("unit_cost >= 0", name="ck_production_unit_cost_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of production."""
        return (
            f"Production(id={self.id}, recipe_id={self.recipe_id}, "
            f"batch_number='{self.batch_number}', quantity_produced={self.quantity_produced})"
        )

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert production to dictionary.

        Args:
            include_relationships: If True, include recipe summary and ingredient usage

        Returns:
            Dictionary representation with formatted fields
        """
        result = super().to_dict(include_relationships=False)

        if include_relationships:
            if self.recipe:
                result["recipe"] = {
                    "name": self.recipe.name,
                    "yield_quantity": self.recipe.yield_quantity,
                    "yield_unit": self.recipe.yield_unit,
                }
            result["ingredient_usage"] = [usage.to_dict() for usage in self.ingredient_usage]

        return result


class ProductionIngredient(BaseModel):
    """
    Ingredient consumption ledger entry for a production.

    ingredient_name/category are stored as plain strings so the ledger stays
    readable after recipes or batches change.

    Attributes:
        production_id: Parent production
        ingredient_name: Ingredient consumed
        category: Ingredient category
        quantity_used: Quantity drawn from inventory
        unit: Unit of measure
        cost_used: FIFO cost of the quantity drawn
        inventory_item_ids: Batches drawn from, in consumption order
    """

    __tablename__ = "production_ingredients"

    production_id = Column(
        Integer, ForeignKey("productions.id", ondelete="CASCADE"), nullable=False
    )
    ingredient_name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False)
    quantity_used = Column(Float, nullable=False)
    unit = Column(String(20), nullable=False)
    cost_used = Column(Numeric(12, 4), nullable=False)
    inventory_item_ids = Column(JSON, nullable=False, default=list)

    production = relationship("Production", back_populates="ingredient_usage")

    __table_args__ = (
        Index("idx_production_ingredient_production", "production_id"),
        CheckConstraint("quantity_used > 0", name="ck_production_ingredient_quantity_positive"),
        CheckConstraint("cost_used >= 0", name="ck_production_ingredient_cost_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of production ingredient."""
        return (
            f"ProductionIngredient(production_id={self.production_id}, "
            f"ingredient_name='{self.ingredient_name}', "
            f"quantity_used={self.quantity_used} {self.unit})"
        )
