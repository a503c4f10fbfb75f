"""
Constants for the KitchZero core.

This module defines system-wide constants including:
- Application metadata
- Inventory units
- Costing and pagination defaults
- Validation limits and error messages
"""

from typing import List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "KitchZero"
APP_VERSION = "0.1.0"
DATABASE_FILENAME = "kitchzero.db"
DATABASE_VERSION = "1.0"

# ============================================================================
# Units
# ============================================================================

INVENTORY_UNITS: List[str] = [
    "KG",  # Kilogram
    "G",  # Gram
    "L",  # Liter
    "ML",  # Milliliter
    "PORTION",  # Plated portion
    "PIECE",  # Individual item
]

# ============================================================================
# Costing
# ============================================================================

# Number of most recent batches averaged when pricing a recipe ingredient
RECIPE_COST_SAMPLE_SIZE = 5

# Look-ahead window used by "expiring soon" queries
EXPIRING_SOON_DAYS = 7

# Fallback threshold for low stock when no ProductStockLevel exists
DEFAULT_LOW_STOCK_THRESHOLD = 10.0

# ============================================================================
# Pagination
# ============================================================================

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 1000

# ============================================================================
# Validation Limits
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_CATEGORY_LENGTH = 100
MAX_NOTES_LENGTH = 2000
MIN_QUALITY_RATING = 1
MAX_QUALITY_RATING = 5

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Must be a valid number"
ERROR_INVALID_POSITIVE = "Must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Cannot be negative"
ERROR_INVALID_UNIT = "Invalid unit"
