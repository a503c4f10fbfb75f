"""
Recipe Service - Business logic for recipes and recipe costing.

This module provides:
- CRUD operations for recipes and their ingredient lines
- Recipe costing from the trailing average batch cost of each ingredient
- Ingredient availability checks for a recipe at a given scale

Recipes with a null branch_id are shared by every branch of the tenant, so
branch-scoped reads return the branch's own recipes plus the shared ones.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from kitchzero.models import InventoryItem, Production, Recipe, RecipeIngredient
from kitchzero.utils.config import get_config
from kitchzero.utils.validators import validate_recipe_data, sanitize_string
from .database import session_scope
from .dto import PaginatedResult, PaginationParams, paginate
from .exceptions import (
    DatabaseError,
    RecipeInUse,
    RecipeNotFound,
    ServiceError,
    ValidationError as ServiceValidationError,
)
from .inventory_item_service import get_total_available
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

RECIPE_FIELDS = (
    "name",
    "description",
    "category",
    "yield_quantity",
    "yield_unit",
    "preparation_time",
    "cooking_time",
    "instructions",
    "notes",
    "is_active",
)


def _ingredient_value(ingredient: Any, key: str, default: Any = None) -> Any:
    """Read a field from an ingredient dict or RecipeIngredient."""
    if isinstance(ingredient, dict):
        return ingredient.get(key, default)
    return getattr(ingredient, key, default)


# ============================================================================
# Recipe costing
# ============================================================================


def calculate_recipe_cost(
    ingredients: Iterable[Any],
    tenant_id: str,
    branch_id: Optional[str] = None,
    *,
    session: Optional[Session] = None,
) -> Decimal:
    """
    Calculate the cost of one recipe yield.

    For each ingredient, the unit costs of the most recently created matching
    batches are averaged (remaining quantity is ignored) and multiplied by
    the ingredient quantity. An ingredient with no batch history contributes
    zero, so costing never blocks recipe creation.

    Args:
        ingredients: Ingredient dicts or RecipeIngredient rows with
            ingredient_name, category and quantity
        tenant_id: Owning tenant
        branch_id: Restrict batch history to one branch (tenant-wide if None)
        session: Optional database session

    Returns:
        Decimal cost per recipe yield
    """
    sample_size = get_config().recipe_cost_sample_size

    def _impl(sess: Session) -> Decimal:
        total = Decimal("0")

        for ingredient in ingredients:
            quantity = _ingredient_value(ingredient, "quantity") or 0
            if float(quantity) <= 0:
                continue

            query = InventoryItem.for_tenant(sess, tenant_id, branch_id).filter(
                InventoryItem.item_name == _ingredient_value(ingredient, "ingredient_name"),
                InventoryItem.category == _ingredient_value(ingredient, "category"),
            )
            recent_costs = [
                Decimal(str(cost))
                for (cost,) in query.with_entities(InventoryItem.cost)
                .order_by(InventoryItem.created_at.desc(), InventoryItem.id.desc())
                .limit(sample_size)
                .all()
            ]
            if not recent_costs:
                continue

            average_cost = sum(recent_costs, Decimal("0")) / len(recent_costs)
            total += average_cost * Decimal(str(quantity))

        return total.quantize(Decimal("0.0001"))

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


# ============================================================================
# CRUD
# ============================================================================


def _build_ingredients(ingredients: List[Dict[str, Any]]) -> List[RecipeIngredient]:
    return [
        RecipeIngredient(
            ingredient_name=ingredient["ingredient_name"].strip(),
            category=ingredient["category"].strip(),
            quantity=float(ingredient["quantity"]),
            unit=ingredient["unit"].upper(),
            notes=sanitize_string(ingredient.get("notes")),
            is_optional=bool(ingredient.get("is_optional", False)),
            sort_order=ingredient.get("sort_order") or index,
        )
        for index, ingredient in enumerate(ingredients, start=1)
    ]


def _visible_recipes(sess: Session, tenant_id: str, branch_id: Optional[str]):
    query = sess.query(Recipe).filter(Recipe.tenant_id == tenant_id)
    if branch_id is not None:
        query = query.filter(or_(Recipe.branch_id == branch_id, Recipe.branch_id.is_(None)))
    return query


def _load_recipe(
    sess: Session, recipe_id: int, tenant_id: str, branch_id: Optional[str] = None
) -> Recipe:
    recipe = (
        _visible_recipes(sess, tenant_id, branch_id)
        .options(selectinload(Recipe.ingredients))
        .filter(Recipe.id == recipe_id)
        .first()
    )
    if not recipe:
        raise RecipeNotFound(recipe_id)
    return recipe


def create_recipe(
    recipe_data: Dict[str, Any],
    tenant_id: str,
    branch_id: Optional[str] = None,
    created_by: Optional[str] = None,
    session: Optional[Session] = None,
) -> Recipe:
    """
    Create a new recipe with its ingredient lines.

    cost_per_unit is computed from current batch history before the insert.

    Args:
        recipe_data: Dictionary with recipe fields and an ``ingredients`` list
        tenant_id: Owning tenant
        branch_id: Owning branch, or None to share the recipe across branches
        created_by: User id of the author
        session: Optional database session

    Returns:
        Created Recipe with ingredients loaded

    Raises:
        ValidationError: If recipe data is invalid
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_recipe_data(recipe_data)
    if not is_valid:
        raise ServiceValidationError(errors)

    ingredients = recipe_data.get("ingredients") or []

    def _impl(sess: Session) -> Recipe:
        cost_per_unit = calculate_recipe_cost(ingredients, tenant_id, branch_id, session=sess)

        recipe = Recipe(
            tenant_id=tenant_id,
            branch_id=branch_id,
            name=recipe_data["name"].strip(),
            description=sanitize_string(recipe_data.get("description")),
            category=sanitize_string(recipe_data.get("category")),
            yield_quantity=float(recipe_data["yield_quantity"]),
            yield_unit=recipe_data["yield_unit"].upper(),
            preparation_time=recipe_data.get("preparation_time"),
            cooking_time=recipe_data.get("cooking_time"),
            instructions=list(recipe_data.get("instructions") or []),
            notes=sanitize_string(recipe_data.get("notes")),
            cost_per_unit=cost_per_unit,
            is_active=recipe_data.get("is_active", True),
            created_by=created_by,
        )
        recipe.ingredients = _build_ingredients(ingredients)
        sess.add(recipe)
        sess.flush()

        log_operation(
            logger,
            operation="create_recipe",
            outcome="success",
            tenant_id=tenant_id,
            recipe_id=recipe.id,
            cost_per_unit=str(cost_per_unit),
        )
        return recipe

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create recipe", original_error=e)


def get_recipe(
    recipe_id: int,
    tenant_id: str,
    branch_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Recipe:
    """
    Retrieve a recipe with its ingredients.

    Raises:
        RecipeNotFound: If the recipe is not visible to the tenant/branch
    """
    if session is not None:
        return _load_recipe(session, recipe_id, tenant_id, branch_id)
    with session_scope() as sess:
        return _load_recipe(sess, recipe_id, tenant_id, branch_id)


def get_recipes(
    tenant_id: str,
    branch_id: Optional[str] = None,
    *,
    category: Optional[str] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
    pagination: Optional[PaginationParams] = None,
    session: Optional[Session] = None,
) -> PaginatedResult:
    """
    List recipes visible to a tenant/branch.

    Args:
        category: Exact category filter
        search: Case-insensitive match on name, description or ingredient name
        is_active: Filter on active flag
        pagination: Page to return (defaults to the configured page size)

    Returns:
        PaginatedResult of Recipe, active first then newest first
    """
    if pagination is None:
        pagination = PaginationParams(per_page=get_config().default_page_size)

    def _impl(sess: Session) -> PaginatedResult:
        query = _visible_recipes(sess, tenant_id, branch_id).options(
            selectinload(Recipe.ingredients)
        )

        if category:
            query = query.filter(Recipe.category == category)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Recipe.name.ilike(pattern),
                    Recipe.description.ilike(pattern),
                    Recipe.ingredients.any(RecipeIngredient.ingredient_name.ilike(pattern)),
                )
            )
        if is_active is not None:
            query = query.filter(Recipe.is_active == is_active)

        query = query.order_by(Recipe.is_active.desc(), Recipe.created_at.desc(), Recipe.id.desc())
        return paginate(query, pagination)

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def update_recipe(
    recipe_id: int,
    tenant_id: str,
    recipe_data: Dict[str, Any],
    session: Optional[Session] = None,
) -> Recipe:
    """
    Update a recipe (partial update).

    When ``ingredients`` is supplied the ingredient list is replaced and
    cost_per_unit is recomputed against the recipe's own branch.

    Raises:
        RecipeNotFound: If the recipe does not exist for the tenant
        ValidationError: If the merged recipe data is invalid
        DatabaseError: If database operation fails
    """

    def _impl(sess: Session) -> Recipe:
        recipe = _load_recipe(sess, recipe_id, tenant_id)

        merged = {
            "name": recipe.name,
            "yield_quantity": recipe.yield_quantity,
            "yield_unit": recipe.yield_unit,
        }
        merged.update({k: v for k, v in recipe_data.items() if k in RECIPE_FIELDS})
        if "ingredients" in recipe_data:
            merged["ingredients"] = recipe_data["ingredients"] or []
        is_valid, errors = validate_recipe_data(merged)
        if not is_valid:
            raise ServiceValidationError(errors)

        for key in RECIPE_FIELDS:
            if key not in recipe_data:
                continue
            value = recipe_data[key]
            if key == "yield_unit":
                value = value.upper()
            elif key in ("description", "category", "notes"):
                value = sanitize_string(value)
            elif key == "instructions":
                value = list(value or [])
            setattr(recipe, key, value)

        if "ingredients" in recipe_data:
            ingredients = recipe_data["ingredients"] or []
            recipe.ingredients = _build_ingredients(ingredients)
            recipe.cost_per_unit = calculate_recipe_cost(
                ingredients, tenant_id, recipe.branch_id, session=sess
            )

        sess.flush()
        log_operation(
            logger,
            operation="update_recipe",
            outcome="success",
            tenant_id=tenant_id,
            recipe_id=recipe_id,
            ingredients_replaced="ingredients" in recipe_data,
        )
        return recipe

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update recipe {recipe_id}", original_error=e)


def delete_recipe(recipe_id: int, tenant_id: str, session: Optional[Session] = None) -> bool:
    """
    Delete a recipe.

    Recipes with production history cannot be deleted; deactivate them instead.

    Raises:
        RecipeNotFound: If the recipe does not exist for the tenant
        RecipeInUse: If productions reference the recipe
    """

    def _impl(sess: Session) -> bool:
        recipe = _load_recipe(sess, recipe_id, tenant_id)
        production_count = (
            sess.query(Production)
            .filter(Production.tenant_id == tenant_id, Production.recipe_id == recipe_id)
            .count()
        )
        if production_count:
            raise RecipeInUse(recipe_id, production_count)

        sess.delete(recipe)
        sess.flush()
        log_operation(
            logger, operation="delete_recipe", outcome="success", tenant_id=tenant_id, recipe_id=recipe_id
        )
        return True

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to delete recipe {recipe_id}", original_error=e)


def get_recipe_categories(
    tenant_id: str, branch_id: Optional[str] = None, session: Optional[Session] = None
) -> List[str]:
    """Return the sorted distinct categories of active recipes."""

    def _impl(sess: Session) -> List[str]:
        rows = (
            _visible_recipes(sess, tenant_id, branch_id)
            .filter(Recipe.is_active.is_(True), Recipe.category.isnot(None))
            .with_entities(Recipe.category)
            .distinct()
            .all()
        )
        return sorted(category for (category,) in rows if category)

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


# ============================================================================
# Availability
# ============================================================================


def check_ingredient_availability(
    recipe_id: int,
    tenant_id: str,
    branch_id: Optional[str] = None,
    multiplier: float = 1.0,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    Report, per ingredient, how much a scaled recipe needs and how much is on hand.

    Args:
        recipe_id: Recipe to check
        tenant_id: Owning tenant
        branch_id: Branch whose stock is counted (tenant-wide if None)
        multiplier: Recipe scale (1.0 = one yield)

    Returns:
        One dict per distinct (ingredient_name, category) with
        ingredient_name, category, unit, required, available, shortage,
        is_optional and sufficient. Lines naming the same ingredient are
        summed, since they draw on the same batches. Optional lines only
        count when every line for the ingredient is optional; such an
        ingredient is always reported as sufficient.

    Raises:
        RecipeNotFound: If the recipe is not visible to the tenant/branch
    """

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        recipe = _load_recipe(sess, recipe_id, tenant_id, branch_id)
        needs: Dict[tuple, Dict[str, Any]] = {}
        for ingredient in recipe.ingredients:
            key = (ingredient.ingredient_name, ingredient.category)
            need = needs.setdefault(
                key, {"unit": ingredient.unit, "required": 0.0, "optional": 0.0, "is_optional": True}
            )
            if ingredient.is_optional:
                need["optional"] += ingredient.quantity * multiplier
            else:
                need["required"] += ingredient.quantity * multiplier
                need["is_optional"] = False

        report = []
        for (name, category), need in needs.items():
            is_optional = need["is_optional"]
            required = need["optional"] if is_optional else need["required"]
            available = get_total_available(name, category, tenant_id, branch_id, session=sess)
            report.append(
                {
                    "ingredient_name": name,
                    "category": category,
                    "unit": need["unit"],
                    "required": required,
                    "available": available,
                    "shortage": max(required - available, 0.0),
                    "is_optional": is_optional,
                    "sufficient": is_optional or available >= required,
                }
            )
        return report

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
