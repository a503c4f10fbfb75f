"""
Production Service for recording recipe production batches.

This module provides functions for:
- Checking ingredient availability before production
- Recording a production with FIFO consumption and actual cost
- Production history queries and analytics

The service integrates with:
- inventory_item_service.allocate_fifo() for FIFO inventory consumption
- recipe_service.check_ingredient_availability() for the sufficiency check
- stock_level_service.record_stock_usage() for the usage history ledger

A production either completes fully (ingredients deducted, ledger written)
or leaves no trace: every write shares one transaction.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from kitchzero.models import (
    Production,
    ProductionIngredient,
    ProductionStatus,
    Recipe,
    UsageType,
)
from kitchzero.utils.datetime_utils import day_bound, utc_now
from kitchzero.utils.validators import (
    validate_non_negative_number,
    validate_positive_number,
    validate_quality_rating,
    sanitize_string,
)
from .database import session_scope
from .dto import PaginatedResult, PaginationParams, paginate
from .exceptions import (
    CannotProduce,
    DatabaseError,
    ProductionNotFound,
    ServiceError,
    ValidationError as ServiceValidationError,
)
from .inventory_item_service import QUANTITY_EPSILON, allocate_fifo
from .logging_utils import get_service_logger, log_operation
from .recipe_service import check_ingredient_availability, get_recipe
from .stock_level_service import record_stock_usage

logger = get_service_logger(__name__)

COST_PLACES = Decimal("0.0001")


# =============================================================================
# Availability Check
# =============================================================================


def _missing_ingredients(report: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Reduce an availability report to the non-optional ingredients that fall short."""
    return [
        {
            "ingredient_name": entry["ingredient_name"],
            "category": entry["category"],
            "required": entry["required"],
            "available": entry["available"],
            "shortage": entry["shortage"],
            "unit": entry["unit"],
        }
        for entry in report
        if not entry["is_optional"] and entry["shortage"] > QUANTITY_EPSILON
    ]


def check_can_produce(
    recipe_id: int,
    tenant_id: str,
    branch_id: str,
    multiplier: float = 1.0,
    *,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Check if a recipe can be produced with current inventory.

    Read-only: nothing is deducted.

    Args:
        recipe_id: ID of the recipe to produce
        tenant_id: Owning tenant
        branch_id: Branch whose stock is checked
        multiplier: Recipe scale (quantity / yield_quantity)
        session: Optional database session

    Returns:
        Dict with keys:
            - "can_produce" (bool): True if all non-optional ingredients are available
            - "missing" (List[Dict]): ingredient_name, category, required,
              available, shortage, unit per short ingredient
            - "multiplier" (float)

    Raises:
        RecipeNotFound: If recipe doesn't exist for the tenant
    """
    report = check_ingredient_availability(
        recipe_id, tenant_id, branch_id, multiplier=multiplier, session=session
    )
    missing = _missing_ingredients(report)
    return {
        "can_produce": len(missing) == 0,
        "missing": missing,
        "multiplier": multiplier,
    }


# =============================================================================
# Production Recording
# =============================================================================


def _default_batch_number(recipe_name: str) -> str:
    now = utc_now()
    prefix = recipe_name.strip()[:3].upper()
    return f"{prefix}-{now:%Y%m%d}-{now:%H%M}"


def _batch_number_taken(sess: Session, tenant_id: str, batch_number: str) -> bool:
    return (
        sess.query(Production.id)
        .filter(Production.tenant_id == tenant_id, Production.batch_number == batch_number)
        .first()
        is not None
    )


def _unique_batch_number(sess: Session, tenant_id: str, base: str) -> str:
    """Append -2, -3, ... to ``base`` until it is unused within the tenant."""
    candidate = base
    suffix = 1
    while _batch_number_taken(sess, tenant_id, candidate):
        suffix += 1
        candidate = f"{base}-{suffix}"
    return candidate


def create_production(
    recipe_id: int,
    planned_quantity: float,
    tenant_id: str,
    branch_id: str,
    *,
    quantity_produced: Optional[float] = None,
    batch_number: Optional[str] = None,
    notes: Optional[str] = None,
    quality_rating: Optional[int] = None,
    produced_by: Optional[str] = None,
    production_date: Optional[datetime] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Record a production batch with FIFO consumption.

    This function atomically:
    1. Loads the recipe and scales it by quantity / yield_quantity
    2. Verifies every non-optional ingredient is available
    3. Creates the Production row (status COMPLETED)
    4. Consumes ingredients via FIFO and records ProductionIngredient rows
    5. Sets total_cost and unit_cost
    6. Appends stock usage history per consumed ingredient

    Args:
        recipe_id: ID of the recipe being produced
        planned_quantity: Quantity the kitchen set out to make
        tenant_id: Owning tenant
        branch_id: Branch whose stock is consumed
        quantity_produced: Actual output; defaults to planned_quantity and
            drives both scaling and unit cost
        batch_number: Explicit batch number; generated when omitted
        notes: Optional production notes
        quality_rating: Optional 1-5 rating
        produced_by: User id of the cook
        production_date: When produced (defaults to now)
        session: Optional database session; the caller owns commit/rollback

    Returns:
        Dict with production_id, batch_number, recipe_id, planned_quantity,
        quantity_produced, multiplier, total_cost, unit_cost, status and
        ingredient_usage

    Raises:
        ValidationError: If quantities, quality rating or batch number are invalid
        RecipeNotFound: If recipe doesn't exist for the tenant
        CannotProduce: If any non-optional ingredient is short (nothing written)
        InsufficientInventory: If stock vanished between check and allocation
    """
    actual = quantity_produced if quantity_produced is not None else planned_quantity

    errors = []
    for result in (
        validate_positive_number(planned_quantity, "Planned Quantity"),
        validate_non_negative_number(actual, "Quantity Produced"),
        validate_quality_rating(quality_rating),
    ):
        if not result[0]:
            errors.append(result[1])
    if errors:
        raise ServiceValidationError(errors)

    actual = float(actual)

    def _impl(sess: Session) -> Dict[str, Any]:
        recipe = get_recipe(recipe_id, tenant_id, branch_id, session=sess)
        multiplier = actual / recipe.yield_quantity

        report = check_ingredient_availability(
            recipe_id, tenant_id, branch_id, multiplier=multiplier, session=sess
        )
        missing = _missing_ingredients(report)
        if missing:
            log_operation(
                logger,
                operation="create_production",
                outcome="insufficient_inventory",
                level=logging.WARNING,
                tenant_id=tenant_id,
                branch_id=branch_id,
                recipe_id=recipe_id,
                missing_ingredients=[m["ingredient_name"] for m in missing],
            )
            raise CannotProduce(missing)

        if batch_number:
            if _batch_number_taken(sess, tenant_id, batch_number):
                raise ServiceValidationError([f"Batch number '{batch_number}' already exists"])
            final_batch_number = batch_number
        else:
            final_batch_number = _unique_batch_number(
                sess, tenant_id, _default_batch_number(recipe.name)
            )

        production = Production(
            tenant_id=tenant_id,
            branch_id=branch_id,
            recipe_id=recipe.id,
            planned_quantity=float(planned_quantity),
            quantity_produced=actual,
            batch_number=final_batch_number,
            status=ProductionStatus.COMPLETED.value,
            notes=sanitize_string(notes),
            quality_rating=quality_rating,
            produced_by=produced_by,
            production_date=production_date or utc_now(),
        )
        sess.add(production)
        sess.flush()

        total_cost = Decimal("0")
        usage_records = []

        for ingredient in recipe.ingredients:
            if ingredient.is_optional:
                continue
            required = ingredient.quantity * multiplier
            if required <= QUANTITY_EPSILON:
                continue

            allocation = allocate_fifo(
                ingredient.ingredient_name,
                ingredient.category,
                required,
                tenant_id,
                branch_id,
                session=sess,
            )
            cost_used = allocation.total_cost.quantize(COST_PLACES)
            total_cost += cost_used

            usage = ProductionIngredient(
                ingredient_name=ingredient.ingredient_name,
                category=ingredient.category,
                quantity_used=required,
                unit=ingredient.unit,
                cost_used=cost_used,
                inventory_item_ids=allocation.batch_ids,
            )
            production.ingredient_usage.append(usage)

            record_stock_usage(
                ingredient.ingredient_name,
                ingredient.category,
                ingredient.unit,
                required,
                cost_used,
                UsageType.RECIPE_CONSUMPTION,
                tenant_id,
                branch_id,
                reason=f"Production batch {final_batch_number}",
                production_id=production.id,
                session=sess,
            )

            usage_records.append(
                {
                    "ingredient_name": ingredient.ingredient_name,
                    "category": ingredient.category,
                    "quantity_used": required,
                    "unit": ingredient.unit,
                    "cost_used": cost_used,
                    "inventory_item_ids": allocation.batch_ids,
                }
            )

        if actual > 0:
            unit_cost = (total_cost / Decimal(str(actual))).quantize(COST_PLACES)
        else:
            unit_cost = Decimal("0.0000")

        production.total_cost = total_cost
        production.unit_cost = unit_cost
        sess.flush()

        log_operation(
            logger,
            operation="create_production",
            outcome="success",
            tenant_id=tenant_id,
            branch_id=branch_id,
            production_id=production.id,
            recipe_id=recipe.id,
            batch_number=final_batch_number,
            total_cost=str(total_cost),
        )

        return {
            "production_id": production.id,
            "batch_number": final_batch_number,
            "recipe_id": recipe.id,
            "planned_quantity": production.planned_quantity,
            "quantity_produced": actual,
            "multiplier": multiplier,
            "total_cost": total_cost,
            "unit_cost": unit_cost,
            "status": production.status,
            "ingredient_usage": usage_records,
        }

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to record production for recipe {recipe_id}", original_error=e)


# =============================================================================
# History Queries
# =============================================================================


def _production_to_dict(production: Production, include_usage: bool = False) -> Dict[str, Any]:
    """Convert a Production to a dictionary representation."""
    result = production.to_dict()
    if production.recipe:
        result["recipe_name"] = production.recipe.name
        result["recipe"] = {
            "name": production.recipe.name,
            "category": production.recipe.category,
            "yield_quantity": production.recipe.yield_quantity,
            "yield_unit": production.recipe.yield_unit,
        }
    if include_usage:
        result["ingredient_usage"] = [usage.to_dict() for usage in production.ingredient_usage]
    return result

def _filtered_productions(
    sess: Session,
    tenant_id: str,
    branch_id: Optional[str],
    date_from=None,
    date_to=None,
):
    query = Production.for_tenant(sess, tenant_id, branch_id)
    if date_from is not None:
        query = query.filter(Production.production_date >= day_bound(date_from))
    if date_to is not None:
        query = query.filter(Production.production_date <= day_bound(date_to, end=True))
    return query


def get_productions(
    tenant_id: str,
    branch_id: Optional[str] = None,
    *,
    recipe_id: Optional[int] = None,
    status: Optional[str] = None,
    date_from=None,
    date_to=None,
    pagination: Optional[PaginationParams] = None,
    session: Optional[Session] = None,
) -> PaginatedResult:
    """
    Query production history with optional filters.

    Args:
        tenant_id: Owning tenant
        branch_id: Restrict to one branch
        recipe_id: Restrict to one recipe
        status: Restrict to one ProductionStatus value
        date_from: Earliest production_date (date or datetime, inclusive)
        date_to: Latest production_date (date or datetime, inclusive)
        pagination: Page to return (default page size when None)

    Returns:
        PaginatedResult of production dicts, newest first, each with its
        ingredient usage
    """
    if pagination is None:
        pagination = PaginationParams()

    def _impl(sess: Session) -> PaginatedResult:
        query = _filtered_productions(sess, tenant_id, branch_id, date_from, date_to).options(
            selectinload(Production.recipe), selectinload(Production.ingredient_usage)
        )
        if recipe_id is not None:
            query = query.filter(Production.recipe_id == recipe_id)
        if status:
            query = query.filter(Production.status == ProductionStatus(status).value)
        query = query.order_by(Production.production_date.desc(), Production.id.desc())
        return paginate(query, pagination, lambda p: _production_to_dict(p, include_usage=True))

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_production(
    production_id: int, tenant_id: str, session: Optional[Session] = None
) -> Dict[str, Any]:
    """
    Get a single production with ingredient usage and its waste logs.

    Raises:
        ProductionNotFound: If the production does not exist for the tenant
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        production = (
            Production.for_tenant(sess, tenant_id)
            .options(
                selectinload(Production.recipe),
                selectinload(Production.ingredient_usage),
                selectinload(Production.waste_logs),
            )
            .filter(Production.id == production_id)
            .first()
        )
        if not production:
            raise ProductionNotFound(production_id)

        result = _production_to_dict(production, include_usage=True)
        result["waste_logs"] = [
            log.to_dict()
            for log in sorted(production.waste_logs, key=lambda w: w.created_at, reverse=True)
        ]
        return result

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_production_analytics(
    tenant_id: str,
    branch_id: Optional[str] = None,
    date_from=None,
    date_to=None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Summarize production over an optional date range.

    Returns:
        Dict with:
            - "summary": total_productions, total_quantity_produced, total_cost,
              average_quality_rating, average_cost_per_unit
            - "top_recipes": up to 10 recipes by production count
            - "recent_productions": the 5 newest productions
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        base = _filtered_productions(sess, tenant_id, branch_id, date_from, date_to)

        total_productions = base.count()
        total_quantity, total_cost = base.with_entities(
            func.coalesce(func.sum(Production.quantity_produced), 0.0),
            func.coalesce(func.sum(Production.total_cost), 0),
        ).one()
        average_rating = (
            base.filter(Production.quality_rating.isnot(None))
            .with_entities(func.avg(Production.quality_rating))
            .scalar()
        )

        total_quantity = float(total_quantity or 0.0)
        total_cost = Decimal(str(total_cost or 0))
        if total_quantity > 0:
            average_cost_per_unit = (total_cost / Decimal(str(total_quantity))).quantize(COST_PLACES)
        else:
            average_cost_per_unit = Decimal("0.0000")

        production_count = func.count(Production.id).label("production_count")
        top_rows = (
            base.join(Recipe, Recipe.id == Production.recipe_id)
            .with_entities(
                Production.recipe_id,
                Recipe.name,
                production_count,
                func.sum(Production.quantity_produced),
                func.sum(Production.total_cost),
            )
            .group_by(Production.recipe_id, Recipe.name)
            .order_by(production_count.desc(), Production.recipe_id.asc())
            .limit(10)
            .all()
        )

        recent = (
            base.options(selectinload(Production.recipe))
            .order_by(Production.production_date.desc(), Production.id.desc())
            .limit(5)
            .all()
        )

        return {
            "summary": {
                "total_productions": total_productions,
                "total_quantity_produced": total_quantity,
                "total_cost": total_cost,
                "average_quality_rating": float(average_rating) if average_rating is not None else 0.0,
                "average_cost_per_unit": average_cost_per_unit,
            },
            "top_recipes": [
                {
                    "recipe_id": row_recipe_id,
                    "recipe_name": recipe_name,
                    "production_count": count,
                    "total_quantity": float(quantity or 0.0),
                    "total_cost": Decimal(str(cost or 0)),
                }
                for row_recipe_id, recipe_name, count, quantity, cost in top_rows
            ],
            "recent_productions": [_production_to_dict(p) for p in recent],
        }

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)

