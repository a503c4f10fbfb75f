"""
Waste Service - Waste logging, tagging and waste analytics.

RAW waste refers to an inventory ingredient. When enough stock is on hand
the wasted quantity is consumed FIFO and priced at the batches' cost;
otherwise nothing is deducted and the waste is priced from the most recent
batch. PRODUCT waste refers to a recipe output and is priced from the
originating production's unit cost, or from the recipe's cost_per_unit when
no production is given.

PRODUCT waste never deducts raw ingredients. This is a deliberate change:
the recipe's ingredients used to be consumed FIFO again for wasted
product, which counted stock twice when the product came from a recorded
production run, since that run had already consumed it.
"""

import logging
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kitchzero.models import InventoryItem, Production, UsageType, WasteLog, WasteType
from kitchzero.utils.datetime_utils import day_bound, utc_now
from kitchzero.utils.validators import (
    validate_non_negative_number,
    validate_required_string,
    validate_waste_data,
    sanitize_string,
)
from kitchzero.utils.waste_tags import generate_waste_tags, get_sustainability_insights
from .database import session_scope
from .dto import PaginatedResult, PaginationParams
from .exceptions import (
    DatabaseError,
    ProductionNotFound,
    ServiceError,
    ValidationError as ServiceValidationError,
    WasteLogNotFound,
)
from .inventory_item_service import allocate_fifo, get_total_available
from .logging_utils import get_service_logger, log_operation
from .recipe_service import get_recipe
from .stock_level_service import record_stock_usage

logger = get_service_logger(__name__)

# Fields an update may change
WASTE_UPDATE_FIELDS = {"reason", "tags", "quantity", "cost"}
COST_PLACES = Decimal("0.0001")


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(COST_PLACES)


def _validate_tags(tags: Any) -> List[str]:
    if not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
        raise ServiceValidationError(["Tags: Must be a list of strings"])
    return [t.strip() for t in tags if t.strip()]


# ============================================================================
# Pricing
# ============================================================================


def _price_raw_waste(
    sess: Session,
    item_name: str,
    category: str,
    quantity: float,
    unit: str,
    tenant_id: str,
    branch_id: str,
    reason: str,
) -> Decimal:
    available = get_total_available(item_name, category, tenant_id, branch_id, session=sess)

    if available >= quantity:
        allocation = allocate_fifo(
            item_name, category, quantity, tenant_id, branch_id, session=sess
        )
        record_stock_usage(
            item_name,
            category,
            unit,
            quantity,
            allocation.total_cost,
            UsageType.WASTE,
            tenant_id,
            branch_id,
            reason=reason,
            session=sess,
        )
        return allocation.total_cost

    latest = (
        InventoryItem.for_tenant(sess, tenant_id, branch_id)
        .filter(InventoryItem.item_name == item_name, InventoryItem.category == category)
        .order_by(InventoryItem.created_at.desc(), InventoryItem.id.desc())
        .first()
    )
    log_operation(
        logger,
        operation="create_waste_log",
        outcome="priced_without_deduction",
        level=logging.WARNING,
        tenant_id=tenant_id,
        branch_id=branch_id,
        item_name=item_name,
        requested=quantity,
        available=available,
    )
    if latest is None:
        return Decimal("0")
    return Decimal(str(latest.cost)) * Decimal(str(quantity))


def _price_product_waste(
    sess: Session,
    quantity: float,
    tenant_id: str,
    branch_id: str,
    recipe_id: Optional[int],
    production_id: Optional[int],
) -> tuple:
    """Return (cost, recipe) for PRODUCT waste."""
    if production_id is not None:
        production = (
            Production.for_tenant(sess, tenant_id)
            .filter(Production.id == production_id)
            .first()
        )
        if not production:
            raise ProductionNotFound(production_id)
        cost = Decimal(str(production.unit_cost)) * Decimal(str(quantity))
        return cost, production.recipe

    if recipe_id is not None:
        recipe = get_recipe(recipe_id, tenant_id, branch_id, session=sess)
        cost = Decimal(str(recipe.cost_per_unit)) * Decimal(str(quantity))
        return cost, recipe

    return Decimal("0"), None


# ============================================================================
# CRUD
# ============================================================================


def create_waste_log(
    waste_data: Dict[str, Any],
    tenant_id: str,
    branch_id: str,
    logged_by: Optional[str] = None,
    session: Optional[Session] = None,
) -> WasteLog:
    """
    Log wasted stock.

    Args:
        waste_data: Dictionary with item_name, quantity, unit, reason,
            waste_type ("RAW" or "PRODUCT", default RAW), and optionally
            category, recipe_id, production_id and tags
        tenant_id: Owning tenant
        branch_id: Branch where the waste happened
        logged_by: User id of the reporter
        session: Optional database session

    Returns:
        Created WasteLog

    Raises:
        ValidationError: If required fields are missing or invalid
        RecipeNotFound / ProductionNotFound: If a referenced record does not
            exist for the tenant
    """
    _, errors = validate_waste_data(waste_data)
    try:
        waste_type = WasteType(str(waste_data.get("waste_type", WasteType.RAW.value)).upper())
    except ValueError:
        errors.append("Waste Type: Must be RAW or PRODUCT")
        waste_type = None
    if waste_type is WasteType.RAW and not waste_data.get("category"):
        errors.append("Category: Required for raw waste")
    tags = waste_data.get("tags")
    if tags is not None:
        tags = _validate_tags(tags)
    if errors:
        raise ServiceValidationError(errors)

    item_name = waste_data["item_name"].strip()
    category = sanitize_string(waste_data.get("category"))
    quantity = float(waste_data["quantity"])
    unit = waste_data["unit"].upper()
    reason = waste_data["reason"].strip()
    recipe_id = waste_data.get("recipe_id")
    production_id = waste_data.get("production_id")

    def _impl(sess: Session) -> WasteLog:
        nonlocal category, recipe_id

        if waste_type is WasteType.RAW:
            cost = _price_raw_waste(
                sess, item_name, category, quantity, unit, tenant_id, branch_id, reason
            )
        else:
            cost, recipe = _price_product_waste(
                sess, quantity, tenant_id, branch_id, recipe_id, production_id
            )
            if recipe is not None:
                recipe_id = recipe.id
                category = category or recipe.category

        waste_log = WasteLog(
            tenant_id=tenant_id,
            branch_id=branch_id,
            item_name=item_name,
            category=category,
            quantity=quantity,
            unit=unit,
            cost=cost.quantize(COST_PLACES),
            waste_type=waste_type.value,
            reason=reason,
            tags=tags or generate_waste_tags(reason, waste_type.value),
            recipe_id=recipe_id,
            production_id=production_id,
            logged_by=logged_by,
        )
        sess.add(waste_log)
        sess.flush()

        log_operation(
            logger,
            operation="create_waste_log",
            outcome="success",
            tenant_id=tenant_id,
            branch_id=branch_id,
            waste_log_id=waste_log.id,
            waste_type=waste_type.value,
            cost=str(waste_log.cost),
        )
        return waste_log

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create waste log", original_error=e)


def _load_waste_log(
    sess: Session, waste_log_id: int, tenant_id: str, for_update: bool = False
) -> WasteLog:
    query = WasteLog.for_tenant(sess, tenant_id).filter(WasteLog.id == waste_log_id)
    if for_update:
        query = query.with_for_update()
    waste_log = query.first()
    if not waste_log:
        raise WasteLogNotFound(waste_log_id)
    return waste_log


def get_waste_log(
    waste_log_id: int, tenant_id: str, session: Optional[Session] = None
) -> WasteLog:
    """
    Retrieve a waste log.

    Raises:
        WasteLogNotFound: If the log does not exist for the tenant
    """
    if session is not None:
        return _load_waste_log(session, waste_log_id, tenant_id)
    with session_scope() as sess:
        return _load_waste_log(sess, waste_log_id, tenant_id)


def get_waste_logs(
    tenant_id: str,
    branch_id: Optional[str] = None,
    *,
    waste_type: Optional[str] = None,
    tags: Optional[List[str]] = None,
    date_from=None,
    date_to=None,
    pagination: Optional[PaginationParams] = None,
    session: Optional[Session] = None,
) -> PaginatedResult:
    """
    List waste logs, newest first.

    Args:
        waste_type: "RAW" or "PRODUCT"
        tags: Keep logs carrying at least one of these tags
        date_from: Earliest created_at (date or datetime, inclusive)
        date_to: Latest created_at (date or datetime, inclusive)
        pagination: Page to return (default page size when None)

    Returns:
        PaginatedResult of WasteLog
    """
    if pagination is None:
        pagination = PaginationParams()

    def _impl(sess: Session) -> PaginatedResult:
        query = WasteLog.for_tenant(sess, tenant_id, branch_id)
        if waste_type:
            query = query.filter(WasteLog.waste_type == WasteType(waste_type.upper()).value)
        if date_from is not None:
            query = query.filter(WasteLog.created_at >= day_bound(date_from))
        if date_to is not None:
            query = query.filter(WasteLog.created_at <= day_bound(date_to, end=True))
        rows = query.order_by(WasteLog.created_at.desc(), WasteLog.id.desc()).all()

        # JSON list membership is filtered here to stay portable across backends
        if tags:
            wanted = set(tags)
            rows = [row for row in rows if wanted.intersection(row.tags or [])]

        start = pagination.offset()
        return PaginatedResult(
            items=rows[start : start + pagination.per_page],
            total=len(rows),
            page=pagination.page,
            per_page=pagination.per_page,
        )

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def update_waste_log(
    waste_log_id: int,
    tenant_id: str,
    updates: Dict[str, Any],
    session: Optional[Session] = None,
) -> WasteLog:
    """
    Update a waste log (partial update).

    When the reason changes and no tags are supplied, tags are regenerated
    from the new reason. Stock is never re-deducted.

    Raises:
        WasteLogNotFound: If the log does not exist for the tenant
        ValidationError: If an unknown field is supplied or a value is invalid
    """
    unknown = sorted(set(updates) - WASTE_UPDATE_FIELDS)
    if unknown:
        raise ServiceValidationError([f"Unknown waste log field(s): {', '.join(unknown)}"])

    errors = []
    if "reason" in updates:
        is_valid, error = validate_required_string(updates["reason"], "Reason")
        if not is_valid:
            errors.append(error)
        elif not isinstance(updates["reason"], str):
            errors.append("Reason: Must be text")
    for key, label in (("quantity", "Quantity"), ("cost", "Cost")):
        if key in updates:
            is_valid, error = validate_non_negative_number(updates[key], label)
            if not is_valid:
                errors.append(error)
    if errors:
        raise ServiceValidationError(errors)

    values = dict(updates)
    if "tags" in values:
        values["tags"] = _validate_tags(values["tags"])
    if "reason" in values:
        values["reason"] = values["reason"].strip()
    if "quantity" in values:
        values["quantity"] = float(values["quantity"])
    if "cost" in values:
        values["cost"] = Decimal(str(values["cost"]))

    def _impl(sess: Session) -> WasteLog:
        waste_log = _load_waste_log(sess, waste_log_id, tenant_id, for_update=True)

        if "reason" in values and "tags" not in values and values["reason"] != waste_log.reason:
            values["tags"] = generate_waste_tags(values["reason"], waste_log.waste_type)

        waste_log.update_from_dict(values)
        sess.flush()

        log_operation(
            logger,
            operation="update_waste_log",
            outcome="success",
            tenant_id=tenant_id,
            waste_log_id=waste_log_id,
            fields=sorted(values),
        )
        return waste_log

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update waste log {waste_log_id}", original_error=e)


def delete_waste_log(
    waste_log_id: int, tenant_id: str, session: Optional[Session] = None
) -> bool:
    """
    Delete a waste log. Stock consumed when it was logged is not restored.

    Raises:
        WasteLogNotFound: If the log does not exist for the tenant
    """

    def _impl(sess: Session) -> bool:
        waste_log = _load_waste_log(sess, waste_log_id, tenant_id, for_update=True)
        sess.delete(waste_log)
        sess.flush()
        log_operation(
            logger,
            operation="delete_waste_log",
            outcome="success",
            tenant_id=tenant_id,
            waste_log_id=waste_log_id,
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
        raise DatabaseError(f"Failed to delete waste log {waste_log_id}", original_error=e)


# ============================================================================
# Analytics
# ============================================================================


def get_waste_stats(
    tenant_id: str,
    branch_id: Optional[str] = None,
    date_from=None,
    date_to=None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Summarize waste cost by type, tag and item.

    Returns:
        Dict with total_logs, total_quantity, total_cost, waste_by_type,
        waste_by_tag, top_wasted_items (10 costliest items),
        sustainability_score, avoidable_waste and top_issues
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        query = WasteLog.for_tenant(sess, tenant_id, branch_id)
        if date_from is not None:
            query = query.filter(WasteLog.created_at >= day_bound(date_from))
        if date_to is not None:
            query = query.filter(WasteLog.created_at <= day_bound(date_to, end=True))
        cost_sum = func.coalesce(func.sum(WasteLog.cost), 0)

        total_logs, total_quantity, total_cost = query.with_entities(
            func.count(WasteLog.id),
            func.coalesce(func.sum(WasteLog.quantity), 0.0),
            cost_sum,
        ).one()

        by_type = query.with_entities(WasteLog.waste_type, cost_sum).group_by(WasteLog.waste_type).all()
        top_items = (
            query.with_entities(WasteLog.item_name, cost_sum)
            .group_by(WasteLog.item_name)
            .order_by(cost_sum.desc(), WasteLog.item_name.asc())
            .limit(10)
            .all()
        )

        # tags are a JSON list, so the tag breakdown is summed here
        tagged = [
            {"tags": tags or [], "cost": cost}
            for tags, cost in query.with_entities(WasteLog.tags, WasteLog.cost).all()
        ]
        by_tag: Dict[str, Decimal] = defaultdict(Decimal)
        for log in tagged:
            for tag in log["tags"]:
                by_tag[tag] += _money(log["cost"])
        insights = get_sustainability_insights(tagged)

        return {
            "total_logs": total_logs,
            "total_quantity": float(total_quantity),
            "total_cost": _money(total_cost),
            "waste_by_type": {waste_type: _money(cost) for waste_type, cost in by_type},
            "waste_by_tag": dict(by_tag),
            "top_wasted_items": [{"item": item, "cost": _money(cost)} for item, cost in top_items],
            "sustainability_score": insights["sustainability_score"],
            "avoidable_waste": insights["avoidable_waste"],
            "top_issues": insights["top_issues"],
        }

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_waste_trends(
    tenant_id: str,
    branch_id: Optional[str] = None,
    days: int = 30,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    Daily waste totals over the last ``days`` days.

    Returns:
        List of {"date", "cost", "quantity", "count"} in date order; days
        without waste are omitted
    """
    start = utc_now() - timedelta(days=days)

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        logs = (
            WasteLog.for_tenant(sess, tenant_id, branch_id)
            .filter(WasteLog.created_at >= start)
            .order_by(WasteLog.created_at.asc())
            .all()
        )

        daily: Dict[str, Dict[str, Any]] = {}
        for log in logs:
            day = log.created_at.date().isoformat()
            bucket = daily.setdefault(day, {"date": day, "cost": Decimal("0"), "quantity": 0.0, "count": 0})
            bucket["cost"] += Decimal(str(log.cost))
            bucket["quantity"] += log.quantity
            bucket["count"] += 1

        return [daily[day] for day in sorted(daily)]

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
