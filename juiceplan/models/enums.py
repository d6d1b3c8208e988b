"""
Enumerations for production and inventory tracking.

This module contains enums used across production-related models:
- BatchStatus: Lifecycle of a production batch
- InventoryBatchStatus: Lifecycle of a raw-material receipt batch
- MovementType: Direction of an inventory movement
- ReferenceType: What caused an inventory movement
- QualityTestType: When a quality measurement was taken
"""

from enum import Enum


class BatchStatus(str, Enum):
    """
    Production batch lifecycle status.

    Values:
        PLANNED: Created by the planner; requirements computed, nothing consumed
        COMPLETED: Executed; inventory consumed and actual output recorded (terminal)
    """

    PLANNED = "planned"
    COMPLETED = "completed"


class InventoryBatchStatus(str, Enum):
    """
    Raw-material receipt batch status.

    Values:
        ACTIVE: Has remaining quantity and participates in FIFO allocation
        FINISHED: Remaining quantity reached zero (terminal)
    """

    ACTIVE = "active"
    FINISHED = "finished"


class MovementType(str, Enum):
    """Direction of an inventory movement."""

    IN = "in"
    OUT = "out"


class ReferenceType(str, Enum):
    """Source document type of an inventory movement."""

    PRODUCTION = "production"
    PURCHASE = "purchase"


class QualityTestType(str, Enum):
    """
    Point in the process at which a quality measurement was taken.

    Values:
        BEFORE_MIXING: Raw juice before blending
        AFTER_MIXING: Final blend before bottling
    """

    BEFORE_MIXING = "before_mixing"
    AFTER_MIXING = "after_mixing"
