"""
Approval actions: the mutations an approval request can carry.

Each action is a frozen dataclass; ``ApprovalAction`` is their union. Update
actions carry an explicit patch type that is validated when the request is
submitted and again when it is applied, so a stored payload that no longer
fits the entity is rejected instead of written.

Stored form on ApprovalRequest:
    action_type    ActionType value
    original_data  {"item_id" | "waste_log_id": <id>, **entity snapshot}
    proposed_data  patch fields ({} for deletes)
"""

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from typing import Any, ClassVar, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from kitchzero.models import ActionType, ApprovalRequest
from kitchzero.utils.datetime_utils import to_date
from .exceptions import ValidationError as ServiceValidationError
from .inventory_item_service import delete_inventory_item, update_inventory_item
from .waste_service import delete_waste_log, update_waste_log


def _patch_fields(patch_cls) -> List[str]:
    return [f.name for f in fields(patch_cls)]


def _check_known_fields(patch_cls, data: Dict[str, Any], immutable: tuple = ()) -> List[str]:
    errors = []
    for key in immutable:
        if key in data:
            errors.append(f"{key}: Cannot be changed after creation")
    unknown = sorted(set(data) - set(_patch_fields(patch_cls)) - set(immutable))
    if unknown:
        errors.append(f"Unknown field(s): {', '.join(unknown)}")
    return errors


def _non_negative(value: Any, label: str, errors: List[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        errors.append(f"{label}: Must be a valid number")
        return None
    if number < 0:
        errors.append(f"{label}: Cannot be negative")
        return None
    return number


def _text(data: Dict[str, Any], key: str, label: str, errors: List[str]) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        errors.append(f"{label}: Must be text")
        return None
    return value


# ============================================================================
# Patches
# ============================================================================


@dataclass(frozen=True)
class InventoryPatch:
    """Proposed change to an inventory batch. None means "leave unchanged"."""

    quantity: Optional[float] = None
    expiry_date: Optional[date] = None
    supplier: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    IMMUTABLE: ClassVar[tuple] = ("cost",)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventoryPatch":
        """
        Parse and validate a proposed inventory change.

        Raises:
            ValidationError: If cost or an unknown field is proposed, quantity
                is negative, expiry_date is not a date, or nothing changes
        """
        errors = _check_known_fields(cls, data, cls.IMMUTABLE)
        quantity = _non_negative(data.get("quantity"), "Quantity", errors)
        supplier = _text(data, "supplier", "Supplier", errors)
        location = _text(data, "location", "Location", errors)
        notes = _text(data, "notes", "Notes", errors)
        expiry_date = None
        try:
            expiry_date = to_date(data.get("expiry_date"))
        except ValueError as e:
            errors.append(f"Expiry Date: {e}")
        if errors:
            raise ServiceValidationError(errors)

        patch = cls(
            quantity=quantity,
            expiry_date=expiry_date,
            supplier=supplier,
            location=location,
            notes=notes,
        )
        patch.validate()
        return patch

    def validate(self) -> None:
        errors = []
        if not self.to_update():
            errors.append("Patch must change at least one field")
        if self.quantity is not None and self.quantity < 0:
            errors.append("Quantity: Cannot be negative")
        if self.expiry_date is not None and not isinstance(self.expiry_date, date):
            errors.append("Expiry Date: Must be a date")
        if errors:
            raise ServiceValidationError(errors)

    def to_update(self) -> Dict[str, Any]:
        """Fields to apply, as accepted by update_inventory_item."""
        return {
            name: getattr(self, name)
            for name in _patch_fields(type(self))
            if getattr(self, name) is not None
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form stored in proposed_data."""
        data = self.to_update()
        if "expiry_date" in data:
            data["expiry_date"] = data["expiry_date"].isoformat()
        return data


@dataclass(frozen=True)
class WasteLogPatch:
    """Proposed change to a waste log. None means "leave unchanged"."""

    reason: Optional[str] = None
    tags: Optional[tuple] = None
    quantity: Optional[float] = None
    cost: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WasteLogPatch":
        """
        Parse and validate a proposed waste log change.

        Raises:
            ValidationError: If an unknown field is proposed, a number is
                negative, tags are not strings, or nothing changes
        """
        errors = _check_known_fields(cls, data)
        quantity = _non_negative(data.get("quantity"), "Quantity", errors)
        cost = _non_negative(data.get("cost"), "Cost", errors)
        reason = _text(data, "reason", "Reason", errors)

        tags = data.get("tags")
        if tags is not None:
            if not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
                errors.append("Tags: Must be a list of strings")
                tags = None
            else:
                tags = tuple(tags)
        if errors:
            raise ServiceValidationError(errors)

        patch = cls(
            reason=reason,
            tags=tags,
            quantity=quantity,
            cost=Decimal(str(cost)) if cost is not None else None,
        )
        patch.validate()
        return patch

    def validate(self) -> None:
        errors = []
        if not self.to_update():
            errors.append("Patch must change at least one field")
        if self.reason is not None:
            if not isinstance(self.reason, str):
                errors.append("Reason: Must be text")
            elif not self.reason.strip():
                errors.append("Reason: This field is required")
        for label, value in (("Quantity", self.quantity), ("Cost", self.cost)):
            if value is not None and value < 0:
                errors.append(f"{label}: Cannot be negative")
        if errors:
            raise ServiceValidationError(errors)

    def to_update(self) -> Dict[str, Any]:
        """Fields to apply, as accepted by update_waste_log."""
        data = {
            name: getattr(self, name)
            for name in _patch_fields(type(self))
            if getattr(self, name) is not None
        }
        if "tags" in data:
            data["tags"] = list(data["tags"])
        return data

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe form stored in proposed_data."""
        data = self.to_update()
        if "cost" in data:
            data["cost"] = str(data["cost"])
        return data


# ============================================================================
# Actions
# ============================================================================


@dataclass(frozen=True)
class UpdateInventory:
    item_id: int
    patch: InventoryPatch

    action_type: ClassVar[ActionType] = ActionType.UPDATE_INVENTORY


@dataclass(frozen=True)
class DeleteInventory:
    item_id: int

    action_type: ClassVar[ActionType] = ActionType.DELETE_INVENTORY


@dataclass(frozen=True)
class UpdateWasteLog:
    waste_log_id: int
    patch: WasteLogPatch

    action_type: ClassVar[ActionType] = ActionType.UPDATE_WASTE_LOG


@dataclass(frozen=True)
class DeleteWasteLog:
    waste_log_id: int

    action_type: ClassVar[ActionType] = ActionType.DELETE_WASTE_LOG


ApprovalAction = Union[UpdateInventory, DeleteInventory, UpdateWasteLog, DeleteWasteLog]


def target_key(action: ApprovalAction) -> Dict[str, int]:
    """Identifying key stored in original_data."""
    match action:
        case UpdateInventory(item_id=item_id) | DeleteInventory(item_id=item_id):
            return {"item_id": item_id}
        case UpdateWasteLog(waste_log_id=waste_log_id) | DeleteWasteLog(
            waste_log_id=waste_log_id
        ):
            return {"waste_log_id": waste_log_id}
        case _:
            raise TypeError(f"Unsupported approval action: {action!r}")


def proposed_data(action: ApprovalAction) -> Dict[str, Any]:
    """Patch payload stored in proposed_data."""
    match action:
        case UpdateInventory(patch=patch) | UpdateWasteLog(patch=patch):
            return patch.to_dict()
        case DeleteInventory() | DeleteWasteLog():
            return {}
        case _:
            raise TypeError(f"Unsupported approval action: {action!r}")


def action_from_request(request: ApprovalRequest) -> ApprovalAction:
    """
    Rebuild the action stored on an approval request.

    The stored patch is parsed again, so it must still satisfy today's patch
    rules.

    Raises:
        ValidationError: If the action type is unknown, the key is missing,
            or the stored patch no longer validates
    """
    try:
        action_type = ActionType(request.action_type)
    except ValueError:
        raise ServiceValidationError([f"Unknown action type: {request.action_type}"])

    original = request.original_data or {}
    proposed = request.proposed_data or {}
    key = "item_id" if action_type in (ActionType.UPDATE_INVENTORY, ActionType.DELETE_INVENTORY) else "waste_log_id"
    if original.get(key) is None:
        raise ServiceValidationError([f"Approval request is missing {key}"])
    target_id = original[key]

    match action_type:
        case ActionType.UPDATE_INVENTORY:
            return UpdateInventory(target_id, InventoryPatch.from_dict(proposed))
        case ActionType.DELETE_INVENTORY:
            return DeleteInventory(target_id)
        case ActionType.UPDATE_WASTE_LOG:
            return UpdateWasteLog(target_id, WasteLogPatch.from_dict(proposed))
        case ActionType.DELETE_WASTE_LOG:
            return DeleteWasteLog(target_id)


def apply_action(action: ApprovalAction, tenant_id: str, *, session: Session) -> None:
    """
    Apply an approved action inside the caller's transaction.

    Raises:
        Whatever the underlying service raises (NotFound, ValidationError,
        DatabaseError); the caller decides how to report it.
    """
    match action:
        case UpdateInventory(item_id=item_id, patch=patch):
            patch.validate()
            update_inventory_item(item_id, tenant_id, patch.to_update(), session=session)
        case DeleteInventory(item_id=item_id):
            delete_inventory_item(item_id, tenant_id, session=session)
        case UpdateWasteLog(waste_log_id=waste_log_id, patch=patch):
            patch.validate()
            update_waste_log(waste_log_id, tenant_id, patch.to_update(), session=session)
        case DeleteWasteLog(waste_log_id=waste_log_id):
            delete_waste_log(waste_log_id, tenant_id, session=session)
        case _:
            raise TypeError(f"Unsupported approval action: {action!r}")
