"""Inventory Item Service - Inventory batches with FIFO allocation.

This module provides business logic for managing inventory batches including
FIFO (First Expiring, First Out) allocation, expiration monitoring, and
inventory statistics.

All functions are stateless. Each accepts an optional ``session``: when given,
the caller owns the transaction and nothing is committed here; otherwise the
function manages its own transaction via session_scope().

Key Features:
- Batch-based inventory tracking (expiry, purchase date, supplier, location)
- **FIFO allocation algorithm** - earliest-expiring batches consumed first
- Expiration monitoring and low-stock filtering
- Inventory value and per-item aggregation

Example Usage:
      >>> from kitchzero.services.database import session_scope
      >>> from kitchzero.services.inventory_item_service import allocate_fifo
      >>>
      >>> with session_scope() as session:
      ...     allocation = allocate_fifo("Tomato", "Vegetables", 3.0, "t1", "b1", session=session)
      >>> allocation.total_cost
      Decimal('3.0000')
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kitchzero.models import InventoryItem
from kitchzero.utils.constants import DEFAULT_LOW_STOCK_THRESHOLD, EXPIRING_SOON_DAYS
from kitchzero.utils.datetime_utils import to_date
from kitchzero.utils.validators import (
    validate_inventory_data,
    validate_non_negative_number,
    sanitize_string,
)
from .database import session_scope
from .dto import PaginatedResult, PaginationParams, paginate
from .exceptions import (
    DatabaseError,
    InsufficientInventory,
    InventoryItemNotFound,
    ServiceError,
    ValidationError as ServiceValidationError,
)
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

# Float quantities below this are treated as zero
QUANTITY_EPSILON = 1e-9

# Fields a direct update may change; cost is fixed once the batch exists
UPDATABLE_FIELDS = {
    "item_name",
    "category",
    "quantity",
    "unit",
    "expiry_date",
    "purchase_date",
    "supplier",
    "location",
    "notes",
}
DATE_FIELDS = {"expiry_date", "purchase_date"}
TEXT_FIELDS = {"item_name", "category", "unit", "supplier", "location", "notes"}


# =============================================================================
# FIFO allocation
# =============================================================================


@dataclass(frozen=True)
class BatchUsage:
    """Quantity drawn from one batch and its cost."""

    batch_id: int
    quantity_used: float
    cost: Decimal


@dataclass
class FifoAllocation:
    """Result of a FIFO allocation.

    Attributes:
        used_batches: Batches drawn from, in consumption order
        total_cost: Sum of the per-batch costs
    """

    used_batches: List[BatchUsage] = field(default_factory=list)
    total_cost: Decimal = Decimal("0")

    @property
    def batch_ids(self) -> List[int]:
        return [usage.batch_id for usage in self.used_batches]

    @property
    def quantity_used(self) -> float:
        return sum(usage.quantity_used for usage in self.used_batches)


def allocate_fifo(
    item_name: str,
    category: str,
    quantity_needed: float,
    tenant_id: str,
    branch_id: str,
    *,
    session: Session,
) -> FifoAllocation:
    """Consume inventory batches earliest-expiry-first.

    **CRITICAL FUNCTION**: This implements the core inventory consumption algorithm.

    Algorithm:
        1. Lock all matching batches with quantity > 0, ordered by expiry_date
           ASC (ties broken by created_at, then id)
        2. Take ``min(batch.quantity, remaining)`` from each batch, decrement the
           batch in place and flush
        3. Cost of each draw is ``batch.cost * used``
        4. Stop when satisfied or batches run out

    The session is required: allocation always joins the caller's transaction,
    so a later failure rolls every deduction back.

    Args:
        item_name: Ingredient name to match
        category: Ingredient category to match
        quantity_needed: Amount to consume (must be > 0)
        tenant_id: Owning tenant
        branch_id: Branch whose stock is consumed
        session: Caller's session (the caller owns commit/rollback)

    Returns:
        FifoAllocation with per-batch usage and total cost

    Raises:
        ValidationError: If quantity_needed is not positive
        InsufficientInventory: If batches run out before the request is met;
            the caller must abort its transaction
    """
    if quantity_needed is None or quantity_needed <= 0:
        raise ServiceValidationError([f"Quantity needed for {item_name} must be positive"])

    batches = (
        InventoryItem.for_tenant(session, tenant_id, branch_id)
        .filter(
            InventoryItem.item_name == item_name,
            InventoryItem.category == category,
            InventoryItem.quantity > QUANTITY_EPSILON,
        )
        .order_by(
            InventoryItem.expiry_date.asc(),
            InventoryItem.created_at.asc(),
            InventoryItem.id.asc(),
        )
        .with_for_update()
        .all()
    )

    allocation = FifoAllocation()
    remaining = float(quantity_needed)

    for batch in batches:
        if remaining <= QUANTITY_EPSILON:
            break

        used = min(batch.quantity, remaining)
        cost = Decimal(str(batch.cost)) * Decimal(str(used))

        batch.quantity = max(batch.quantity - used, 0.0)
        remaining -= used

        allocation.used_batches.append(
            BatchUsage(batch_id=batch.id, quantity_used=used, cost=cost)
        )
        allocation.total_cost += cost

    session.flush()

    if remaining > QUANTITY_EPSILON:
        log_operation(
            logger,
            operation="allocate_fifo",
            outcome="insufficient_inventory",
            level=logging.WARNING,
            tenant_id=tenant_id,
            branch_id=branch_id,
            item_name=item_name,
            shortfall=remaining,
        )
        raise InsufficientInventory(item_name, remaining)

    log_operation(
        logger,
        operation="allocate_fifo",
        outcome="success",
        level=logging.DEBUG,
        tenant_id=tenant_id,
        branch_id=branch_id,
        item_name=item_name,
        batches_used=allocation.batch_ids,
        total_cost=str(allocation.total_cost),
    )
    return allocation


def get_total_available(
    item_name: str,
    category: str,
    tenant_id: str,
    branch_id: Optional[str] = None,
    session: Optional[Session] = None,
) -> float:
    """Sum the remaining quantity of every matching batch.

    A branch_id of None sums across every branch of the tenant.

    Returns:
        Total quantity on hand (0.0 when there are no batches)
    """

    def _impl(sess: Session) -> float:
        query = sess.query(func.coalesce(func.sum(InventoryItem.quantity), 0.0)).filter(
            InventoryItem.tenant_id == tenant_id,
            InventoryItem.item_name == item_name,
            InventoryItem.category == category,
        )
        if branch_id is not None:
            query = query.filter(InventoryItem.branch_id == branch_id)
        total = query.scalar()
        return float(total or 0.0)

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


# =============================================================================
# CRUD
# =============================================================================


def create_inventory_item(
    item_data: Dict[str, Any],
    tenant_id: str,
    branch_id: str,
    session: Optional[Session] = None,
) -> InventoryItem:
    """Create a new inventory batch.

    Args:
        item_data: Dictionary with item_name, category, quantity, unit, cost,
            expiry_date and optional purchase_date, supplier, location, notes
        tenant_id: Owning tenant
        branch_id: Branch holding the stock
        session: Optional database session for transaction composability

    Returns:
        InventoryItem: Created batch with assigned ID

    Raises:
        ValidationError: If required fields are missing or invalid
        DatabaseError: If database operation fails
    """
    is_valid, errors = validate_inventory_data(item_data)
    if not is_valid:
        raise ServiceValidationError(errors)

    try:
        expiry_date = to_date(item_data["expiry_date"])
        purchase_date = to_date(item_data.get("purchase_date")) or date.today()
    except ValueError as e:
        raise ServiceValidationError([str(e)])

    def _impl(sess: Session) -> InventoryItem:
        item = InventoryItem(
            tenant_id=tenant_id,
            branch_id=branch_id,
            item_name=item_data["item_name"].strip(),
            category=item_data["category"].strip(),
            quantity=float(item_data["quantity"]),
            unit=item_data["unit"].upper(),
            cost=Decimal(str(item_data["cost"])),
            expiry_date=expiry_date,
            purchase_date=purchase_date,
            supplier=sanitize_string(item_data.get("supplier")),
            location=sanitize_string(item_data.get("location")),
            notes=sanitize_string(item_data.get("notes")),
        )
        sess.add(item)
        sess.flush()

        log_operation(
            logger,
            operation="create_inventory_item",
            outcome="success",
            tenant_id=tenant_id,
            branch_id=branch_id,
            inventory_item_id=item.id,
            item_name=item.item_name,
        )
        return item

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to create inventory item", original_error=e)


def _load_item(
    sess: Session, inventory_item_id: int, tenant_id: str, for_update: bool = False
) -> InventoryItem:
    query = InventoryItem.for_tenant(sess, tenant_id).filter(InventoryItem.id == inventory_item_id)
    if for_update:
        query = query.with_for_update()
    item = query.first()
    if not item:
        raise InventoryItemNotFound(inventory_item_id)
    return item


def get_inventory_item(
    inventory_item_id: int, tenant_id: str, session: Optional[Session] = None
) -> InventoryItem:
    """Retrieve one batch for a tenant.

    Raises:
        InventoryItemNotFound: If the batch does not exist for the tenant
    """
    if session is not None:
        return _load_item(session, inventory_item_id, tenant_id)
    with session_scope() as sess:
        return _load_item(sess, inventory_item_id, tenant_id)


def get_inventory_items(
    tenant_id: str,
    branch_id: Optional[str] = None,
    *,
    unit: Optional[str] = None,
    search: Optional[str] = None,
    low_stock: bool = False,
    expiring_soon: bool = False,
    pagination: Optional[PaginationParams] = None,
    session: Optional[Session] = None,
) -> PaginatedResult:
    """List inventory batches with optional filtering.

    Args:
        tenant_id: Owning tenant
        branch_id: Restrict to one branch (all branches if None)
        unit: Only batches in this unit
        search: Case-insensitive substring of item_name
        low_stock: Only batches at or below the default low-stock threshold
        expiring_soon: Only batches expiring within the next 7 days
        pagination: Page to return; None returns every match as one page
        session: Optional database session

    Returns:
        PaginatedResult of InventoryItem, ordered by expiry_date
    """

    def _impl(sess: Session) -> PaginatedResult:
        query = InventoryItem.for_tenant(sess, tenant_id, branch_id)

        if unit:
            query = query.filter(InventoryItem.unit == unit.upper())
        if search:
            query = query.filter(InventoryItem.item_name.ilike(f"%{search}%"))
        if low_stock:
            query = query.filter(InventoryItem.quantity <= DEFAULT_LOW_STOCK_THRESHOLD)
        if expiring_soon:
            today = date.today()
            query = query.filter(
                InventoryItem.expiry_date >= today,
                InventoryItem.expiry_date <= today + timedelta(days=EXPIRING_SOON_DAYS),
            )

        query = query.order_by(InventoryItem.expiry_date.asc(), InventoryItem.id.asc())

        if pagination is None:
            items = query.all()
            return PaginatedResult(items=items, total=len(items), page=1, per_page=len(items) or 1)
        return paginate(query, pagination)

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def update_inventory_item(
    inventory_item_id: int,
    tenant_id: str,
    item_data: Dict[str, Any],
    session: Optional[Session] = None,
) -> InventoryItem:
    """Update inventory batch attributes (partial update).

    This is the direct, privileged path; staff edits go through the approval
    workflow, which calls this function when a request is approved.

    Args:
        inventory_item_id: Inventory batch identifier
        tenant_id: Owning tenant
        item_data: Fields to update. Date fields accept date, datetime or ISO strings.
        session: Optional database session

    Returns:
        InventoryItem: Updated batch

    Raises:
        InventoryItemNotFound: If the batch does not exist for the tenant
        ValidationError: If cost or an unknown field is supplied, or quantity < 0
        DatabaseError: If database operation fails

    Note:
        cost is immutable so historical FIFO costs stay reproducible.
    """
    if "cost" in item_data:
        raise ServiceValidationError(["Cost cannot be changed after creation"])

    unknown = sorted(set(item_data) - UPDATABLE_FIELDS)
    if unknown:
        raise ServiceValidationError([f"Unknown inventory field(s): {', '.join(unknown)}"])

    errors = []
    if "quantity" in item_data:
        is_valid, error = validate_non_negative_number(item_data["quantity"], "Quantity")
        if not is_valid:
            errors.append(error)
    for key in TEXT_FIELDS & set(item_data):
        if item_data[key] is not None and not isinstance(item_data[key], str):
            errors.append(f"{key}: Must be text")
    if errors:
        raise ServiceValidationError(errors)

    updates = dict(item_data)
    if "quantity" in updates:
        updates["quantity"] = float(updates["quantity"])
    if "unit" in updates and updates["unit"]:
        updates["unit"] = updates["unit"].upper()
    try:
        for key in DATE_FIELDS & set(updates):
            updates[key] = to_date(updates[key])
    except ValueError as e:
        raise ServiceValidationError([str(e)])
    if "expiry_date" in updates and updates["expiry_date"] is None:
        raise ServiceValidationError(["Expiry date is required"])

    def _impl(sess: Session) -> InventoryItem:
        item = _load_item(sess, inventory_item_id, tenant_id, for_update=True)
        item.update_from_dict(updates)
        sess.flush()

        log_operation(
            logger,
            operation="update_inventory_item",
            outcome="success",
            tenant_id=tenant_id,
            inventory_item_id=inventory_item_id,
            fields=sorted(updates),
        )
        return item

    try:
        if session is not None:
            return _impl(session)
        with session_scope() as sess:
            return _impl(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to update inventory item {inventory_item_id}", original_error=e
        )


def delete_inventory_item(
    inventory_item_id: int, tenant_id: str, session: Optional[Session] = None
) -> bool:
    """Delete an inventory batch.

    Consider keeping depleted batches (quantity=0) as history rather than
    deleting. Deletion is permanent.

    Returns:
        bool: True if deletion successful

    Raises:
        InventoryItemNotFound: If the batch does not exist for the tenant
        DatabaseError: If database operation fails
    """

    def _impl(sess: Session) -> bool:
        item = _load_item(sess, inventory_item_id, tenant_id, for_update=True)
        sess.delete(item)
        sess.flush()

        log_operation(
            logger,
            operation="delete_inventory_item",
            outcome="success",
            tenant_id=tenant_id,
            inventory_item_id=inventory_item_id,
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
        raise DatabaseError(
            f"Failed to delete inventory item {inventory_item_id}", original_error=e
        )


# =============================================================================
# Reporting
# =============================================================================


def get_expiring_items(
    tenant_id: str,
    branch_id: Optional[str] = None,
    days: int = EXPIRING_SOON_DAYS,
    session: Optional[Session] = None,
) -> List[InventoryItem]:
    """Get batches with stock left that expire within ``days``.

    Already expired batches are excluded.

    Returns:
        List[InventoryItem]: Ordered by expiry_date (soonest first)
    """
    today = date.today()
    cutoff_date = today + timedelta(days=days)

    def _impl(sess: Session) -> List[InventoryItem]:
        return (
            InventoryItem.for_tenant(sess, tenant_id, branch_id)
            .filter(
                InventoryItem.expiry_date >= today,
                InventoryItem.expiry_date <= cutoff_date,
                InventoryItem.quantity > 0,
            )
            .order_by(InventoryItem.expiry_date.asc())
            .all()
        )

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_inventory_stats(
    tenant_id: str, branch_id: Optional[str] = None, session: Optional[Session] = None
) -> Dict[str, Any]:
    """Summarize inventory for a tenant (optionally one branch).

    Returns:
        Dict with total_items, total_value, low_stock_count,
        expiring_soon_count, expired_count and category_count
    """
    today = date.today()

    def _impl(sess: Session) -> Dict[str, Any]:
        items = InventoryItem.for_tenant(sess, tenant_id, branch_id).all()

        total_value = sum(
            (Decimal(str(item.quantity)) * Decimal(str(item.cost)) for item in items),
            Decimal("0"),
        )
        return {
            "total_items": len(items),
            "total_value": total_value,
            "low_stock_count": sum(
                1 for item in items if item.quantity <= DEFAULT_LOW_STOCK_THRESHOLD
            ),
            "expiring_soon_count": sum(
                1 for item in items if item.quantity > 0 and item.is_expiring_soon(EXPIRING_SOON_DAYS)
            ),
            "expired_count": sum(
                1 for item in items if item.quantity > 0 and item.expiry_date < today
            ),
            "category_count": len({item.category for item in items}),
        }

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)


def get_inventory_by_item(
    tenant_id: str, branch_id: Optional[str] = None, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """Aggregate batches per (item_name, category, unit).

    Returns:
        List of dicts with item_name, category, unit, total_quantity,
        batch_count, earliest_expiry and total_value, ordered by item_name
    """

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        rows = (
            sess.query(
                InventoryItem.item_name,
                InventoryItem.category,
                InventoryItem.unit,
                func.sum(InventoryItem.quantity),
                func.count(InventoryItem.id),
                func.min(InventoryItem.expiry_date),
                func.sum(InventoryItem.quantity * InventoryItem.cost),
            )
            .filter(InventoryItem.tenant_id == tenant_id)
            .filter(InventoryItem.quantity > 0)
        )
        if branch_id is not None:
            rows = rows.filter(InventoryItem.branch_id == branch_id)
        rows = rows.group_by(
            InventoryItem.item_name, InventoryItem.category, InventoryItem.unit
        ).order_by(InventoryItem.item_name.asc())

        return [
            {
                "item_name": item_name,
                "category": category,
                "unit": unit,
                "total_quantity": float(total_quantity or 0.0),
                "batch_count": batch_count,
                "earliest_expiry": to_date(earliest_expiry),
                "total_value": Decimal(str(total_value or 0)),
            }
            for item_name, category, unit, total_quantity, batch_count, earliest_expiry, total_value in rows
        ]

    if session is not None:
        return _impl(session)
    with session_scope() as sess:
        return _impl(sess)
