"""
Input validation functions for production planning and execution.

This module provides validation functions for planner and executor inputs:
- Bottle quantity maps (non-negative integers, at least one bottle)
- Material usage maps (non-negative decimals at ledger precision)
- Quality readings (non-negative, optional)
- Notes length

Validators return (is_valid, errors) tuples with localized messages; the
service layer turns failures into ValidationError before any write.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .config import get_message
from .constants import (
    MAX_NOTES_LENGTH,
    QUALITY_TEST_ACIDITY,
    QUALITY_TEST_BRIX,
    QUANTITY_PLACES,
)


def parse_quantity_map(values: Optional[Mapping[Any, Any]]) -> Tuple[Dict[int, int], list]:
    """
    Parse a {bottle_type_id: quantity} map into integers.

    Empty and None quantities count as zero.

    Args:
        values: Raw map, keys and values may be strings (form input)

    Returns:
        Tuple of (parsed map, errors)
    """
    parsed: Dict[int, int] = {}
    errors: List[str] = []

    for key, raw in (values or {}).items():
        if raw is None or (isinstance(raw, str) and raw.strip() == ""):
            raw = 0
        try:
            bottle_type_id = int(key)
            quantity = int(raw)
        except (ValueError, TypeError):
            errors.append(get_message("quantity_invalid", value=raw))
            continue
        if quantity < 0:
            errors.append(get_message("bottle_quantity_negative"))
            continue
        parsed[bottle_type_id] = quantity

    return parsed, errors


def validate_bottle_quantities(
    values: Optional[Mapping[Any, Any]],
    message_key: str = "bottle_quantity_required",
) -> Tuple[Dict[int, int], list]:
    """
    Parse a bottle quantity map and require at least one bottle.

    Args:
        values: Raw {bottle_type_id: quantity} map
        message_key: Message used when no quantity is greater than zero

    Returns:
        Tuple of (parsed map, errors)
    """
    parsed, errors = parse_quantity_map(values)
    if not errors and not any(qty > 0 for qty in parsed.values()):
        errors.append(get_message(message_key))
    return parsed, errors


def parse_material_quantities(
    values: Optional[Mapping[str, Any]],
) -> Tuple[Dict[str, Decimal], list]:
    """
    Parse a {material_type: quantity} map into Decimals.

    Empty and None quantities count as zero; negative quantities are errors.
    Quantities are rounded to the three decimal places the ledger stores.
    """
    parsed: Dict[str, Decimal] = {}
    errors: List[str] = []

    for material, raw in (values or {}).items():
        if raw is None or (isinstance(raw, str) and raw.strip() == ""):
            raw = "0"
        try:
            quantity = Decimal(str(raw))
        except InvalidOperation:
            errors.append(get_message("quantity_invalid", value=raw))
            continue
        if not quantity.is_finite():
            errors.append(get_message("quantity_invalid", value=raw))
            continue
        if quantity < 0:
            errors.append(get_message("material_quantity_negative", material_type=material))
            continue
        parsed[material] = quantity.quantize(QUANTITY_PLACES)

    return parsed, errors


def validate_quality_reading(value: Any, test_name: str) -> Tuple[Optional[Decimal], list]:
    """
    Parse one optional quality reading.

    None or empty means "not measured". Zero is a valid reading.

    Returns:
        Tuple of (Decimal or None, errors)
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None, []
    try:
        reading = Decimal(str(value))
    except InvalidOperation:
        return None, [get_message("quantity_invalid", value=value)]
    if not reading.is_finite():
        return None, [get_message("quantity_invalid", value=value)]
    if reading < 0:
        return None, [get_message("quality_value_negative", test_name=test_name)]
    return reading, []


def validate_quality_readings(readings) -> list:
    """Validate every reading of a QualityReadings object; returns errors."""
    if readings is None:
        return []

    errors = []
    for attr, test_name in (
        ("brix_before", QUALITY_TEST_BRIX),
        ("acidity_before", QUALITY_TEST_ACIDITY),
        ("brix_after", QUALITY_TEST_BRIX),
        ("acidity_after", QUALITY_TEST_ACIDITY),
    ):
        _, reading_errors = validate_quality_reading(getattr(readings, attr), test_name)
        errors.extend(reading_errors)
    return errors


def validate_notes(value: Optional[str], max_length: int = MAX_NOTES_LENGTH) -> Tuple[bool, str]:
    """
    Validate that notes don't exceed the maximum length.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if value and len(value) > max_length:
        return False, get_message("notes_too_long", max_length=max_length)
    return True, ""


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
