"""
Enumerations shared by models and services.

- ProductionStatus: Lifecycle of a production run
- ActionType: Mutations that require reviewer approval
- ApprovalStatus: Review state of an approval request
- WasteType: Raw ingredient waste vs finished product waste
- UsageType: Reason a stock usage history row was recorded
- StockStatus: Stock position relative to configured thresholds
"""

from enum import Enum


class ProductionStatus(str, Enum):
    """
    Production run status.

    Values:
        PLANNED: Requested, ingredients not yet checked
        COMPLETED: Ingredients consumed and costs recorded
        FAILED: Ingredient check failed (never persisted)
    """

    PLANNED = "PLANNED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ActionType(str, Enum):
    """Mutations held for approval."""

    UPDATE_INVENTORY = "UPDATE_INVENTORY"
    DELETE_INVENTORY = "DELETE_INVENTORY"
    UPDATE_WASTE_LOG = "UPDATE_WASTE_LOG"
    DELETE_WASTE_LOG = "DELETE_WASTE_LOG"


class ApprovalStatus(str, Enum):
    """
    Review state of an approval request.

    PENDING transitions exactly once, to APPROVED or REJECTED.
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class WasteType(str, Enum):
    RAW = "RAW"
    PRODUCT = "PRODUCT"


class UsageType(str, Enum):
    RECIPE_CONSUMPTION = "RECIPE_CONSUMPTION"
    WASTE = "WASTE"
    ADJUSTMENT = "ADJUSTMENT"


class StockStatus(str, Enum):
    OUT = "OUT"
    LOW = "LOW"
    OK = "OK"
    HIGH = "HIGH"
