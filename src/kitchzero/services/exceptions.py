"""Service layer exception classes for KitchZero.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── NotFoundError
    │   ├── RecipeNotFound
    │   ├── ProductionNotFound
    │   ├── ApprovalRequestNotFound
    │   ├── InventoryItemNotFound
    │   └── WasteLogNotFound
    ├── InsufficientInventory
    ├── CannotProduce
    ├── RecipeInUse
    ├── AlreadyReviewed
    ├── ApprovalActionFailed
    ├── ValidationError
    └── DatabaseError

Rows owned by another tenant are reported through the NotFoundError family,
never through a permission error.
"""

from typing import Any, Dict, List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class NotFoundError(ServiceError):
    """Base class for lookups that found nothing for the tenant."""

    entity = "Record"

    def __init__(self, entity_id: Any):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} with ID {entity_id} not found")


class RecipeNotFound(NotFoundError):
    """Raised when a recipe cannot be found by ID.

    Example:
        >>> raise RecipeNotFound(12)
        RecipeNotFound: Recipe with ID 12 not found
    """

    entity = "Recipe"

    def __init__(self, recipe_id: int):
        self.recipe_id = recipe_id
        super().__init__(recipe_id)


class ProductionNotFound(NotFoundError):
    """Raised when a production cannot be found by ID."""

    entity = "Production"

    def __init__(self, production_id: int):
        self.production_id = production_id
        super().__init__(production_id)


class ApprovalRequestNotFound(NotFoundError):
    """Raised when an approval request cannot be found by ID."""

    entity = "Approval request"

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(request_id)


class InventoryItemNotFound(NotFoundError):
    """Raised when an inventory batch cannot be found by ID.

    Example:
        >>> raise InventoryItemNotFound(789)
        InventoryItemNotFound: Inventory item with ID 789 not found
    """

    entity = "Inventory item"

    def __init__(self, inventory_item_id: int):
        self.inventory_item_id = inventory_item_id
        super().__init__(inventory_item_id)


class WasteLogNotFound(NotFoundError):
    """Raised when a waste log cannot be found by ID."""

    entity = "Waste log"

    def __init__(self, waste_log_id: int):
        self.waste_log_id = waste_log_id
        super().__init__(waste_log_id)


class InsufficientInventory(ServiceError):
    """Raised when FIFO allocation runs out of batches.

    Args:
        item_name: Ingredient that ran short
        shortfall: Quantity that could not be satisfied

    Example:
        >>> raise InsufficientInventory("Tomato", 1.0)
        InsufficientInventory: Insufficient inventory for Tomato: short by 1.0
    """

    def __init__(self, item_name: str, shortfall: float):
        self.item_name = item_name
        self.shortfall = shortfall
        super().__init__(f"Insufficient inventory for {item_name}: short by {shortfall}")


class CannotProduce(ServiceError):
    """Raised when a production fails its ingredient availability check.

    Args:
        missing_ingredients: One dict per short ingredient with keys
            ingredient_name, category, required, available, shortage, unit
    """

    def __init__(self, missing_ingredients: List[Dict[str, Any]]):
        self.missing_ingredients = missing_ingredients
        names = ", ".join(m["ingredient_name"] for m in missing_ingredients)
        super().__init__(f"Cannot produce: insufficient ingredients ({names})")


class RecipeInUse(ServiceError):
    """Raised when deleting a recipe that has production history."""

    def __init__(self, recipe_id: int, production_count: int):
        self.recipe_id = recipe_id
        self.production_count = production_count
        super().__init__(
            f"Cannot delete recipe {recipe_id}: used by {production_count} production(s)"
        )


class AlreadyReviewed(ServiceError):
    """Raised when reviewing an approval request that is no longer PENDING."""

    def __init__(self, request_id: int, status: str):
        self.request_id = request_id
        self.status = status
        super().__init__(f"Approval request {request_id} has already been {status.lower()}")


class ApprovalActionFailed(ServiceError):
    """Raised when an approved mutation cannot be applied.

    The surrounding transaction is rolled back, so the request stays PENDING.
    """

    def __init__(self, request_id: int, action_type: str, original_error: Exception):
        self.request_id = request_id
        self.action_type = action_type
        self.original_error = original_error
        super().__init__(
            f"Failed to apply {action_type} for approval request {request_id}: {original_error}"
        )


class ValidationError(ServiceError):
    """Raised when data validation fails.

    Args:
        errors: List of human-readable validation messages
    """

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(str(e) for e in errors)
        super().__init__(f"Validation failed: {error_msg}")


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
