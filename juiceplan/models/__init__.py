"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .enums import (
    BatchStatus,
    InventoryBatchStatus,
    MovementType,
    QualityTestType,
    ReferenceType,
)
from .product import Product
from .bottle_type import BottleType
from .bottle_stock_movement import BottleStockMovement
from .inventory_batch import InventoryBatch
from .inventory_movement import InventoryMovement
from .production_batch import ProductionBatch
from .quality_test_result import QualityTestResult

__all__ = [
    "Base",
    "BaseModel",
    # Enums
    "BatchStatus",
    "InventoryBatchStatus",
    "MovementType",
    "QualityTestType",
    "ReferenceType",
    # Reference data
    "Product",
    "BottleType",
    "BottleStockMovement",
    # Inventory ledger
    "InventoryBatch",
    "InventoryMovement",
    # Production
    "ProductionBatch",
    "QualityTestResult",
]
