"""
Recipe models.

This module contains:
- Recipe: Main recipe model with yield and derived cost per unit
- RecipeIngredient: Ordered ingredient lines of a recipe
"""

from sqlalchemy import (
    JSON,
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
)
from sqlalchemy.orm import relationship

from .base import BaseModel, TenantScopedMixin


class Recipe(TenantScopedMixin, BaseModel):
    """
    Recipe model.

    A recipe with a null branch_id is shared by every branch of its tenant.

    Attributes:
        name: Recipe name (required)
        description: Free-text description
        category: Recipe category (e.g., "Soups")
        yield_quantity: Output of one recipe run, in yield_unit
        yield_unit: Unit of yield (e.g., "L", "PORTION")
        preparation_time: Minutes of preparation
        cooking_time: Minutes of cooking
        instructions: Ordered list of instruction strings
        notes: Additional notes
        cost_per_unit: Derived cost, recomputed whenever ingredients change
        is_active: Inactive recipes are kept for history but hidden from menus
        created_by: User id of the author
    """

    __tablename__ = "recipes"

    branch_nullable = True

    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True, index=True)

    yield_quantity = Column(Float, nullable=False)
    yield_unit = Column(String(20), nullable=False)

    preparation_time = Column(Integer, nullable=True)
    cooking_time = Column(Integer, nullable=True)
    instructions = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    cost_per_unit = Column(Numeric(10, 4), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(64), nullable=True)

    ingredients = relationship(
        "RecipeIngredient",
        back_populates="recipe",
        cascade="all, delete-orphan",
        order_by="RecipeIngredient.sort_order",
    )
    productions = relationship("Production", back_populates="recipe")

    __table_args__ = (
        CheckConstraint("yield_quantity > 0", name="ck_recipe_yield_positive"),
    )

    def __repr__(self) -> str:
        """String representation of recipe."""
        return f"Recipe(id={self.id}, name='{self.name}', yield={self.yield_quantity} {self.yield_unit})"

    def to_dict(self, include_relationships: bool = False) -> dict:
        """
        Convert recipe to dictionary.

        Args:
            include_relationships: If True, include ingredient lines

        Returns:
            Dictionary representation
        """
        result = super().to_dict(include_relationships=False)
        if include_relationships:
            result["ingredients"] = [line.to_dict() for line in self.ingredients]
        return result


class RecipeIngredient(BaseModel):
    """
    One ingredient line of a recipe.

    Ingredients are matched to inventory batches by (ingredient_name, category);
    there is no foreign key to inventory.

    Attributes:
        recipe_id: Parent recipe
        ingredient_name: Name matched against InventoryItem.item_name
        category: Category matched against InventoryItem.category
        quantity: Quantity needed for one recipe yield
        unit: Unit of measure
        notes: Preparation notes
        is_optional: Optional lines never block production and are not consumed
        sort_order: 1-based position in the recipe
    """

    __tablename__ = "recipe_ingredients"

    recipe_id = Column(Integer, ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False)
    ingredient_name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False)
    quantity = Column(Float, nullable=False)
    unit = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    is_optional = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer, nullable=False, default=1)

    recipe = relationship("Recipe", back_populates="ingredients")

    __table_args__ = (
        Index("idx_recipe_ingredient_recipe", "recipe_id"),
        CheckConstraint("quantity >= 0", name="ck_recipe_ingredient_quantity_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of recipe ingredient."""
        return (
            f"RecipeIngredient(recipe_id={self.recipe_id}, "
            f"ingredient_name='{self.ingredient_name}', "
            f"quantity={self.quantity} {self.unit})"
        )
