"""Services package - Business logic layer for the KitchZero core.

This package contains all service modules that provide business logic
and database operations for the application.

Architecture:
- Services: Stateless functions organized by domain (inventory, recipe, production, approval)
- Transactions: Managed via session_scope(), or a caller-supplied session
- Tenancy: Every query is filtered by tenant_id (and branch_id where applicable)
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- inventory_item_service: Inventory batches and the FIFO allocator
- recipe_service: Recipe management, costing and availability checks
- production_service: Production runs with FIFO consumption and actual cost
- approval_service: Propose / review / apply workflow for sensitive mutations
- approval_actions: Typed approval actions and patches
- waste_service: Waste logging, tagging and waste analytics
- stock_level_service: Stock thresholds and usage history

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- dto: Pagination parameters and results
- logging_utils: Structured service logging
"""

from . import (
    database,
    inventory_item_service,
    recipe_service,
    stock_level_service,
    production_service,
    waste_service,
    approval_actions,
    approval_service,
)

from .exceptions import (
    ServiceError,
    NotFoundError,
    RecipeNotFound,
    ProductionNotFound,
    ApprovalRequestNotFound,
    InventoryItemNotFound,
    WasteLogNotFound,
    InsufficientInventory,
    CannotProduce,
    RecipeInUse,
    AlreadyReviewed,
    ApprovalActionFailed,
    ValidationError,
    DatabaseError,
)

from .dto import PaginatedResult, PaginationParams

__all__ = [
    # Modules
    "database",
    "inventory_item_service",
    "recipe_service",
    "stock_level_service",
    "production_service",
    "waste_service",
    "approval_actions",
    "approval_service",
    # Exceptions
    "ServiceError",
    "NotFoundError",
    "RecipeNotFound",
    "ProductionNotFound",
    "ApprovalRequestNotFound",
    "InventoryItemNotFound",
    "WasteLogNotFound",
    "InsufficientInventory",
    "CannotProduce",
    "RecipeInUse",
    "AlreadyReviewed",
    "ApprovalActionFailed",
    "ValidationError",
    "DatabaseError",
    # DTOs
    "PaginatedResult",
    "PaginationParams",
]
