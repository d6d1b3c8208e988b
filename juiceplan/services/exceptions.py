"""Service layer exception classes.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application. Messages intended for
operators are localized through the configured locale.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    ├── MaterialShortageWarning
    ├── ProductNotFound
    ├── ProductionBatchNotFoundOrExecuted
    ├── InsufficientInventoryError
    ├── ConcurrentModificationError
    ├── BatchCodeConflictError
    ├── InvalidImageError
    └── DatabaseError
"""

from decimal import Decimal
from typing import List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions inherit from this class.
    """

    pass


class ValidationError(ServiceError):
    """Raised when user input fails validation. Nothing has been written.

    Args:
        errors: List of localized, user-correctable error messages
    """

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(f"Validation failed: {'; '.join(errors)}")


class MaterialShortageWarning(ServiceError):
    """Raised when a plan needs more raw material than inventory holds.

    This is a confirmable warning, not a failure: re-submit the plan with
    confirm_shortage=True to persist it anyway.

    Args:
        message: Localized confirmation prompt
        requirements: All computed MaterialRequirement entries
    """

    def __init__(self, message: str, requirements: list):
        self.message = message
        self.requirements = requirements
        self.shortages = [req for req in requirements if not req.is_enough]
        super().__init__(message)


class ProductNotFound(ServiceError):
    """Raised when a product cannot be found or is inactive.

    Example:
        >>> raise ProductNotFound(123)
        ProductNotFound: Product with ID 123 not found
    """

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


class ProductionBatchNotFoundOrExecuted(ServiceError):
    """Raised when a batch code does not exist or is no longer planned.

    Args:
        batch_code: The production batch code that was requested
        message: Localized message for the operator
    """

    def __init__(self, batch_code: str, message: Optional[str] = None):
        self.batch_code = batch_code
        super().__init__(message or f"Batch {batch_code} not found or already executed")


class InsufficientInventoryError(ServiceError):
    """Raised under strict allocation when inventory cannot cover usage."""

    def __init__(self, material_type: str, needed: Decimal, available: Decimal):
        self.material_type = material_type
        self.needed = needed
        self.available = available
        super().__init__(
            f"Insufficient {material_type}: need {needed}, have {available}"
        )


class ConcurrentModificationError(ServiceError):
    """Raised when a row changed between read and commit (version mismatch)."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message)


class BatchCodeConflictError(ServiceError):
    """Raised when a unique batch code could not be secured at insert time."""

    def __init__(self, batch_code: str):
        self.batch_code = batch_code
        super().__init__(f"Batch code '{batch_code}' already exists")


class InvalidImageError(ServiceError):
    """Raised when an uploaded image fails type or size validation."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DatabaseError(ServiceError):
    """Raised when a database operation fails.

    Args:
        message: Description of the failed operation
        original_error: The underlying exception, kept for diagnostics
    """

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
