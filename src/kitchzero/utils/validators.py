"""
Input validation functions for the KitchZero core.

This module provides validation functions for service inputs including:
- Numeric validation (positive, non-negative, ranges)
- String validation (length, required fields)
- Unit validation
- Composite validators for inventory, recipes, waste logs and stock levels

Field validators return ``(is_valid, error_message)``. Composite validators
return ``(is_valid, list_of_errors)``; services raise
``ValidationError(errors)`` before touching the database when the list is
non-empty.
"""

from typing import Any, Optional, Tuple

from .constants import (
    INVENTORY_UNITS,
    MAX_CATEGORY_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_QUALITY_RATING,
    MIN_QUALITY_RATING,
    ERROR_REQUIRED_FIELD,
    ERROR_INVALID_NUMBER,
    ERROR_INVALID_POSITIVE,
    ERROR_INVALID_NON_NEGATIVE,
    ERROR_INVALID_UNIT,
)


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a string field is not empty.

    Args:
        value: The string value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_string_length(
    value: str, max_length: int, field_name: str = "Field"
) -> Tuple[bool, str]:
    """
    Validate that a string doesn't exceed maximum length.

    Args:
        value: The string value to validate
        max_length: Maximum allowed length
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value and len(value) > max_length:
        return False, f"{field_name}: Must be {max_length} characters or less"
    return True, ""


def validate_positive_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a positive number (> 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        num_value = float(value)
        if num_value <= 0:
            return False, f"{field_name}: {ERROR_INVALID_POSITIVE}"
        return True, ""
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"


def validate_non_negative_number(value: Any, field_name: str = "Field") -> Tuple[bool, str]:
    """
    Validate that a value is a non-negative number (>= 0).

    Args:
        value: The value to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        num_value = float(value)
        if num_value < 0:
            return False, f"{field_name}: {ERROR_INVALID_NON_NEGATIVE}"
        return True, ""
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"


def validate_number_range(
    value: Any, min_value: float, max_value: float, field_name: str = "Field"
) -> Tuple[bool, str]:
    """
    Validate that a number is within a specified range.

    Args:
        value: The value to validate
        min_value: Minimum allowed value
        max_value: Maximum allowed value
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        num_value = float(value)
        if num_value < min_value or num_value > max_value:
            return False, f"{field_name}: Must be between {min_value} and {max_value}"
        return True, ""
    except (ValueError, TypeError):
        return False, f"{field_name}: {ERROR_INVALID_NUMBER}"


def validate_unit(unit: str, field_name: str = "Unit") -> Tuple[bool, str]:
    """
    Validate that a unit is one of the inventory units.

    Args:
        unit: The unit string to validate
        field_name: Name of the field for error messages

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not unit:
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"

    if unit.upper() not in INVENTORY_UNITS:
        return False, f"{field_name}: {ERROR_INVALID_UNIT}"

    return True, ""


def _collect(errors: list, result: Tuple[bool, str]) -> bool:
    is_valid, error = result
    if not is_valid:
        errors.append(error)
    return is_valid


def validate_inventory_data(data: dict) -> Tuple[bool, list]:
    """
    Validate all fields for a new inventory batch.

    Args:
        data: Dictionary containing inventory item fields

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    if _collect(errors, validate_required_string(data.get("item_name"), "Item Name")):
        _collect(errors, validate_string_length(data["item_name"], MAX_NAME_LENGTH, "Item Name"))
    if _collect(errors, validate_required_string(data.get("category"), "Category")):
        _collect(
            errors, validate_string_length(data["category"], MAX_CATEGORY_LENGTH, "Category")
        )
    _collect(errors, validate_unit(data.get("unit"), "Unit"))
    _collect(errors, validate_non_negative_number(data.get("quantity"), "Quantity"))
    _collect(errors, validate_non_negative_number(data.get("cost"), "Cost"))

    if data.get("expiry_date") is None:
        errors.append(f"Expiry Date: {ERROR_REQUIRED_FIELD}")

    if data.get("notes"):
        _collect(errors, validate_string_length(data["notes"], MAX_NOTES_LENGTH, "Notes"))

    return len(errors) == 0, errors


def validate_recipe_data(data: dict) -> Tuple[bool, list]:
    """
    Validate all fields for a recipe and its ingredient list.

    Args:
        data: Dictionary containing recipe fields; ``ingredients`` is a list
              of dicts with ingredient_name, category, quantity and unit

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    if _collect(errors, validate_required_string(data.get("name"), "Recipe Name")):
        _collect(errors, validate_string_length(data["name"], MAX_NAME_LENGTH, "Recipe Name"))

    _collect(errors, validate_positive_number(data.get("yield_quantity"), "Yield Quantity"))
    _collect(errors, validate_required_string(data.get("yield_unit"), "Yield Unit"))

    for field_name, label in (("preparation_time", "Preparation Time"), ("cooking_time", "Cooking Time")):
        if data.get(field_name) is not None:
            _collect(errors, validate_non_negative_number(data[field_name], label))

    if data.get("notes"):
        _collect(errors, validate_string_length(data["notes"], MAX_NOTES_LENGTH, "Notes"))

    for index, ingredient in enumerate(data.get("ingredients") or [], start=1):
        prefix = f"Ingredient {index}"
        _collect(
            errors,
            validate_required_string(ingredient.get("ingredient_name"), f"{prefix} Name"),
        )
        _collect(
            errors, validate_required_string(ingredient.get("category"), f"{prefix} Category")
        )
        _collect(
            errors,
            validate_non_negative_number(ingredient.get("quantity"), f"{prefix} Quantity"),
        )
        _collect(errors, validate_required_string(ingredient.get("unit"), f"{prefix} Unit"))

    return len(errors) == 0, errors


def validate_waste_data(data: dict) -> Tuple[bool, list]:
    """
    Validate all fields for a new waste log.

    Args:
        data: Dictionary containing waste log fields

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    _collect(errors, validate_required_string(data.get("item_name"), "Item Name"))
    _collect(errors, validate_positive_number(data.get("quantity"), "Quantity"))
    _collect(errors, validate_unit(data.get("unit"), "Unit"))
    _collect(errors, validate_required_string(data.get("reason"), "Reason"))

    return len(errors) == 0, errors


def validate_stock_level_data(data: dict) -> Tuple[bool, list]:
    """
    Validate stock level thresholds. Every supplied threshold must be non-negative.

    Args:
        data: Dictionary of stock level fields (partial updates allowed)

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    errors = []

    labels = {
        "min_stock_level": "Minimum Stock Level",
        "max_stock_level": "Maximum Stock Level",
        "safety_stock": "Safety Stock",
        "reorder_quantity": "Reorder Quantity",
        "lead_time_days": "Lead Time",
        "avg_daily_usage": "Average Daily Usage",
    }
    for field_name, label in labels.items():
        if data.get(field_name) is not None:
            _collect(errors, validate_non_negative_number(data[field_name], label))

    minimum = data.get("min_stock_level")
    maximum = data.get("max_stock_level")
    if not errors and minimum is not None and maximum is not None:
        if float(maximum) < float(minimum):
            errors.append("Maximum Stock Level: Must not be below the minimum stock level")

    return len(errors) == 0, errors


def validate_quality_rating(value: Any) -> Tuple[bool, str]:
    """Validate an optional production quality rating (1-5)."""
    if value is None:
        return True, ""
    return validate_number_range(value, MIN_QUALITY_RATING, MAX_QUALITY_RATING, "Quality Rating")


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string value by stripping whitespace and converting empty strings to None.

    Args:
        value: The string value to sanitize

    Returns:
        Sanitized string or None
    """
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None
