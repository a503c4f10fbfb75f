"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel, TenantScopedMixin
from .enums import (
    ActionType,
    ApprovalStatus,
    ProductionStatus,
    StockStatus,
    UsageType,
    WasteType,
)
from .inventory_item import InventoryItem
from .recipe import Recipe, RecipeIngredient
from .production import Production, ProductionIngredient
from .approval_request import ApprovalRequest
from .waste_log import WasteLog
from .stock_level import ProductStockLevel, StockUsageHistory

__all__ = [
    "Base",
    "BaseModel",
    "TenantScopedMixin",
    # Enums
    "ActionType",
    "ApprovalStatus",
    "ProductionStatus",
    "StockStatus",
    "UsageType",
    "WasteType",
    # Inventory
    "InventoryItem",
    # Recipes and production
    "Recipe",
    "RecipeIngredient",
    "Production",
    "ProductionIngredient",
    # Approval workflow
    "ApprovalRequest",
    # Waste and stock
    "WasteLog",
    "ProductStockLevel",
    "StockUsageHistory",
]
