"""
Stock Level Service - Thresholds, stock status and usage history.

Stock levels are keyed by (product_name, category, unit, tenant, branch).
Current quantities are never cached; they are summed from inventory
batches on every call.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kitchzero.models import InventoryItem, ProductStockLevel, StockStatus, StockUsageHistory, UsageType
from kitchzero.utils.validators import validate_stock_level_data
from .database import session_scope
from .exceptions import DatabaseError, ServiceError, ValidationError as ServiceValidationError
from .inventory_item_service import get_total_available
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

STOCK_LEVEL_FIELDS = (
    "min_stock_level",
    "max_stock_level",
    "safety_stock",
    "reorder_quantity",
    "lead_time_days",
    "avg_daily_usage",
    "is_active",
    "track_stock",
)


def _stock_status(quantity: float, level: Optional[ProductStockLevel]) -> StockStatus:
    if level is None:
        return StockStatus.OUT if quantity <= 0 else StockStatus.OK
    return level.status_for(quantity)


def _find_level(
    sess: Session,
    product_name: str,
    category: str,
    unit: str,
    tenant_id: str,
    branch_id: Optional[str],
) -> Optional[ProductStockLevel]:
    query = sess.query(ProductStockLevel).filter(
        ProductStockLevel.tenant_id == tenant_id,
        ProductStockLevel.product_name == product_name,
        ProductStockLevel.category == category,
        ProductStockLevel.unit == unit.upper(),
    )
    if branch_id is None:
        query = query.filter(ProductStockLevel.branch_id.is_(None))
    else:
        query = query.filter(ProductStockLevel.branch_id == branch_id)
    return query.first()


def get_current_stock_quantity(
    product_name: str,
    category: str,
    tenant_id: str,
    branch_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> float:
    """
    Quantity on hand of one product (all branches if branch_id is None).

    Batches match on (name, category) exactly as the FIFO allocator selects
    them, so usage history totals agree with what was consumed.
    """
    return get_total_available(product_name, category, tenant_id, branch_id, session=session)


def get_stock_level(
    product_name: str,
    category: str,
    unit: str,
    tenant_id: str,
    branch_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> Optional[ProductStockLevel]:
    """Return the configured stock level, or None when none exists."""
    if session is not None:
        return _find_level(session, product_name, category, unit, tenant_id, branch_id)
    with session_scope() as sess:
        return _find_level(sess, product_name, category, unit, tenant_id, branch_id)


def update_stock_levels(
    product_name: str,
    category: str,
    unit: str,
    stock_data: Dict[str, Any],
    tenant_id: str,
    branch_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> ProductStockLevel:
    """
    Create or update the stock level of a product.

    Args:
        product_name: Product name
        category: Product category
        unit: Unit of measure
        stock_data: Threshold fields to set (partial updates allowed)
        tenant_id: Owning tenant
        branch_id: Branch, or None for a tenant-wide level
        session: Optional database session

    Returns:
        The created or updated ProductStockLevel

    Raises:
        ValidationError: If a threshold is negative, max is below min, or an
            unknown field is supplied
    """
    unknown = sorted(set(stock_data) - set(STOCK_LEVEL_FIELDS))
    if unknown:
        raise ServiceValidationError([f"Unknown stock level field(s): {', '.join(unknown)}"])

    is_valid, errors = validate_stock_level_data(stock_data)
    if not is_valid:
        raise ServiceValidationError(errors)

    def _impl(sess: Session) -> ProductStockLevel:
        level = _find_level(sess, product_name, category, unit, tenant_id, branch_id)
        created = level is None
        if created:
            level = ProductStockLevel(
                tenant_id=tenant_id,
                branch_id=branch_id,
                product_name=product_name,
                category=category,
                unit=unit.upper(),
                min_stock_level=0.0,
            )
            sess.add(level)

        for key, value in stock_data.items():
            setattr(level, key, value)

        # The merged row must still satisfy max >= min
        merged = {"min_stock_level": level.min_stock_level, "max_stock_level": level.max_stock_level}
        is_valid, errors = validate_stock_level_data(merged)
        if not is_valid:
            raise ServiceValidationError(errors)

        sess.flush()
        log_operation(
            logger,
            operation="update_stock_levels",
            outcome="created" if created else "updated",
            tenant_id=tenant_id,
            branch_id=branch_id,
            product_name=product_name,
        )
        return level

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update stock level for {product_name}", original_error=e)


def get_stock_management_data(
    tenant_id: str, branch_id: Optional[str] = None, session: Optional[Session] = None
) -> Dict[str, Any]:
    """
    Aggregate inventory per product and join it with configured stock levels.

    Products are (name, category) pairs, the same key the FIFO allocator
    draws on; the unit shown is the one the batches are recorded in.

    Returns:
        Dict with ``items`` (one per product, ordered by category then
        name) and sorted distinct ``categories``. Each item carries
        current_quantity, suppliers, thresholds and stock_status.
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        scoped = InventoryItem.for_tenant(sess, tenant_id, branch_id)
        totals = (
            scoped.with_entities(
                InventoryItem.item_name,
                InventoryItem.category,
                func.min(InventoryItem.unit),
                func.coalesce(func.sum(InventoryItem.quantity), 0.0),
            )
            .group_by(InventoryItem.item_name, InventoryItem.category)
            .order_by(InventoryItem.category.asc(), InventoryItem.item_name.asc())
            .all()
        )

        suppliers: Dict[tuple, set] = {}
        supplier_rows = (
            scoped.with_entities(InventoryItem.item_name, InventoryItem.category, InventoryItem.supplier)
            .filter(InventoryItem.supplier.isnot(None))
            .distinct()
            .all()
        )
        for name, category, supplier in supplier_rows:
            suppliers.setdefault((name, category), set()).add(supplier)

        items = []
        for name, category, unit, total in totals:
            level = _find_level(sess, name, category, unit, tenant_id, branch_id)
            quantity = float(total)
            items.append(
                {
                    "stock_level_id": level.id if level else None,
                    "product_name": name,
                    "category": category,
                    "unit": unit,
                    "suppliers": sorted(suppliers.get((name, category), ())),
                    "current_quantity": quantity,
                    "min_stock_level": level.min_stock_level if level else 0.0,
                    "max_stock_level": level.max_stock_level if level else None,
                    "safety_stock": level.safety_stock if level else 0.0,
                    "reorder_quantity": level.reorder_quantity if level else None,
                    "lead_time_days": level.lead_time_days if level else 1,
                    "avg_daily_usage": level.avg_daily_usage if level else 0.0,
                    "is_active": level.is_active if level else True,
                    "track_stock": level.track_stock if level else True,
                    "stock_status": _stock_status(quantity, level).value,
                }
            )

        return {
            "items": items,
            "categories": sorted({category for (_, category, _, _) in totals}),
        }

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_low_stock_products(
    tenant_id: str, branch_id: Optional[str] = None, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """Products whose stock status is LOW or OUT, skipping inactive levels."""
    data = get_stock_management_data(tenant_id, branch_id, session=session)
    return [
        item
        for item in data["items"]
        if item["is_active"]
        and item["stock_status"] in (StockStatus.LOW.value, StockStatus.OUT.value)
    ]


def record_stock_usage(
    product_name: str,
    category: str,
    unit: str,
    quantity_used: float,
    cost: Decimal,
    usage_type: UsageType,
    tenant_id: str,
    branch_id: str,
    *,
    reason: Optional[str] = None,
    production_id: Optional[int] = None,
    session: Optional[Session] = None,
) -> Optional[StockUsageHistory]:
    """
    Record a quantity movement that has already been applied to inventory.

    The stock level row is created on first use. total_quantity_after is the
    current on-hand total; total_quantity_before adds quantity_used back.

    Returns:
        The history row, or None when the stock level does not track stock
    """

    def _impl(sess: Session) -> Optional[StockUsageHistory]:
        level = _find_level(sess, product_name, category, unit, tenant_id, branch_id)
        if level is None:
            level = ProductStockLevel(
                tenant_id=tenant_id,
                branch_id=branch_id,
                product_name=product_name,
                category=category,
                unit=unit.upper(),
                min_stock_level=0.0,
            )
            sess.add(level)
            sess.flush()
        if not level.track_stock:
            return None

        after = get_current_stock_quantity(product_name, category, tenant_id, branch_id, session=sess)
        usage = StockUsageHistory(
            tenant_id=tenant_id,
            branch_id=branch_id,
            stock_level_id=level.id,
            usage_type=UsageType(usage_type).value,
            quantity_used=quantity_used,
            total_quantity_before=after + quantity_used,
            total_quantity_after=after,
            cost=cost,
            reason=reason,
            production_id=production_id,
        )
        sess.add(usage)
        sess.flush()
        return usage

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
