"""Services package - Business logic layer for the juice production planner.

This package contains all service modules that provide business logic
and database operations for the application.

Architecture:
- Services: Stateless functions organized by domain (planning, execution, inventory)
- Transactions: Managed via session_scope() context manager, or by the caller
  when a session is passed in
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- inventory_ledger_service: Raw-material batches, FIFO allocation and movements
- material_ratio_service: Material-per-liter ratios and their history
- requirement_service: Raw-material requirements for a bottle mix
- batch_code_service: Human-typeable production batch codes
- reference_data_service: Product and bottle type lookups
- production_planning_service: Planned batch creation, editing and queries
- production_execution_service: Planned -> completed transition
- image_upload_service: Quality test photo validation and storage

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- dto: Data transfer objects passed between services
- logging_utils: Structured operation logging
"""

# Service modules
from . import (
    database,
    inventory_ledger_service,
    material_ratio_service,
    requirement_service,
    batch_code_service,
    reference_data_service,
    production_planning_service,
    production_execution_service,
    image_upload_service,
)

# Exceptions
from .exceptions import (
    ServiceError,
    ValidationError,
    MaterialShortageWarning,
    ProductNotFound,
    ProductionBatchNotFoundOrExecuted,
    InsufficientInventoryError,
    ConcurrentModificationError,
    BatchCodeConflictError,
    InvalidImageError,
    DatabaseError,
)

# Entry points
from .production_planning_service import (
    create_plan,
    preview_plan,
    update_plan,
    get_production_batch,
    list_production_batches,
    get_production_summary,
)
from .production_execution_service import execute_batch

__all__ = [
    # Modules
    "database",
    "inventory_ledger_service",
    "material_ratio_service",
    "requirement_service",
    "batch_code_service",
    "reference_data_service",
    "production_planning_service",
    "production_execution_service",
    "image_upload_service",
    # Exceptions
    "ServiceError",
    "ValidationError",
    "MaterialShortageWarning",
    "ProductNotFound",
    "ProductionBatchNotFoundOrExecuted",
    "InsufficientInventoryError",
    "ConcurrentModificationError",
    "BatchCodeConflictError",
    "InvalidImageError",
    "DatabaseError",
    # Entry points
    "create_plan",
    "preview_plan",
    "update_plan",
    "get_production_batch",
    "list_production_batches",
    "get_production_summary",
    "execute_batch",
]
