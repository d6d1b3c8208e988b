"""
Constants for the juice production planning application.

This module defines all system-wide constants including:
- Application metadata
- Default material ratios used when a product has no production history
- Batch code alphabets and prefixes
- Quality test definitions
- Image upload limits
- Localized user-facing messages
"""

from decimal import Decimal
from typing import Dict, List

# ============================================================================
# Application Metadata
# ============================================================================

APP_VERSION = "0.1.0"
DATABASE_FILENAME = "juiceplan.db"

# ============================================================================
# Material Ratios (kg of raw material per liter of juice)
# ============================================================================

DEFAULT_RATIO_AVG = Decimal("2.0")
DEFAULT_RATIO_MIN = Decimal("1.8")
DEFAULT_RATIO_MAX = Decimal("2.2")

# ============================================================================
# Quantities
# ============================================================================

ML_PER_LITER = Decimal("1000")

# Quantization used when persisting quantities and money
QUANTITY_PLACES = Decimal("0.001")
MONEY_PLACES = Decimal("0.01")
RATIO_PLACES = Decimal("0.0001")

# ============================================================================
# Batch Codes
# ============================================================================

# No 0, O, 1 or I
BATCH_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
BATCH_CODE_SUFFIX_LENGTH = 6
BATCH_CODE_PREFIX_LENGTH = 2
BATCH_CODE_FALLBACK_PREFIX = "PR"
BATCH_CODE_PREFIX_SUBSTITUTIONS: Dict[str, str] = {
    "O": "P",
    "I": "J",
    "0": "2",
    "1": "3",
}
BATCH_CODE_MAX_ATTEMPTS = 20

INVENTORY_BATCH_PREFIX = "INV"

# ============================================================================
# Quality Tests
# ============================================================================

QUALITY_TEST_BRIX = "Brix"
QUALITY_TEST_ACIDITY = "Acidity"

QUALITY_TEST_UNITS: Dict[str, str] = {
    QUALITY_TEST_BRIX: "°Bx",
    QUALITY_TEST_ACIDITY: "%",
}

# ============================================================================
# Image Upload
# ============================================================================

ALLOWED_IMAGE_TYPES: List[str] = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
]
MAX_IMAGE_SIZE_BYTES = 10 * 1024 * 1024
QUALITY_TEST_IMAGE_FOLDER = "quality-tests"

# ============================================================================
# Validation Limits
# ============================================================================

MAX_NOTES_LENGTH = 2000

# ============================================================================
# Localized Messages
# ============================================================================

DEFAULT_LOCALE = "en"

MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "product_required": "Please select a product",
        "production_date_required": "Please select a production date",
        "bottle_quantity_required": "Please enter the number of bottles to produce",
        "bottle_quantity_negative": "Bottle quantities cannot be negative",
        "quantity_invalid": "Invalid quantity: {value}",
        "bottle_type_unknown": "Unknown or inactive bottle type: {bottle_type_id}",
        "material_quantity_negative": "Material quantity cannot be negative: {material_type}",
        "actual_bottles_required": "Please enter the number of bottles produced",
        "quality_value_negative": "Quality test values cannot be negative: {test_name}",
        "material_shortage": "Raw materials are insufficient. Do you want to continue?",
        "batch_not_found_or_executed": "Batch {batch_code} was not found or has already been produced",
        "batch_not_editable": "Batch {batch_code} can no longer be edited",
        "notes_too_long": "Notes must be {max_length} characters or less",
        "image_type_invalid": "Only JPG, PNG and WebP files are supported",
        "image_too_large": "File size must not exceed 10MB",
        "save_failed": "Failed to save data",
        "load_failed": "Failed to load data",
    },
    "th": {
        "product_required": "กรุณาเลือกผลิตภัณฑ์",
        "production_date_required": "กรุณาเลือกวันที่ผลิต",
        "bottle_quantity_required": "กรุณาระบุจำนวนขวดที่ต้องการผลิต",
        "bottle_quantity_negative": "จำนวนขวดต้องไม่ติดลบ",
        "quantity_invalid": "จำนวนไม่ถูกต้อง: {value}",
        "bottle_type_unknown": "ไม่พบประเภทขวด: {bottle_type_id}",
        "material_quantity_negative": "ปริมาณวัตถุดิบต้องไม่ติดลบ: {material_type}",
        "actual_bottles_required": "กรุณาระบุจำนวนขวดที่ผลิตได้",
        "quality_value_negative": "ค่าการทดสอบคุณภาพต้องไม่ติดลบ: {test_name}",
        "material_shortage": "วัตถุดิบไม่เพียงพอ ต้องการดำเนินการต่อหรือไม่?",
        "batch_not_found_or_executed": "ไม่พบ Batch ID {batch_code} หรือเริ่มผลิตไปแล้ว",
        "batch_not_editable": "ไม่สามารถแก้ไข Batch ID {batch_code} ได้",
        "notes_too_long": "หมายเหตุต้องไม่เกิน {max_length} ตัวอักษร",
        "image_type_invalid": "รองรับเฉพาะไฟล์ JPG, PNG, WebP เท่านั้น",
        "image_too_large": "ขนาดไฟล์ต้องไม่เกิน 10MB",
        "save_failed": "เกิดข้อผิดพลาดในการบันทึกข้อมูล",
        "load_failed": "เกิดข้อผิดพลาดในการโหลดข้อมูล",
    },
}
