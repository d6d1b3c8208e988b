"""
Production Planning Service - create and maintain planned production batches.

This module provides functions for:
- Previewing raw-material requirements for a bottle mix
- Creating planned batches (with a shortage confirmation step)
- Editing planned batches before execution
- Querying batches and summarizing production

Cost figures are only visible to callers passing include_cost=True
(administrators); other callers never receive or persist them.
"""

import logging
from contextlib import nullcontext
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from juiceplan.models import BatchStatus, ProductionBatch
from juiceplan.services import batch_code_service, reference_data_service
from juiceplan.services.database import session_scope
from juiceplan.services.dto import RequirementPlan
from juiceplan.services.exceptions import (
    BatchCodeConflictError,
    ConcurrentModificationError,
    DatabaseError,
    MaterialShortageWarning,
    ProductionBatchNotFoundOrExecuted,
    ValidationError,
)
from juiceplan.services.logging_utils import get_service_logger, log_operation
from juiceplan.services.requirement_service import calculate_requirements
from juiceplan.utils.config import get_message
from juiceplan.utils.constants import BATCH_CODE_MAX_ATTEMPTS
from juiceplan.utils.datetime_utils import parse_production_date, utc_now
from juiceplan.utils.validators import (
    parse_quantity_map,
    sanitize_string,
    validate_bottle_quantities,
    validate_notes,
)

logger = get_service_logger(__name__)

COST_FIELDS = ("material_cost", "bottle_cost", "total_cost")


# =============================================================================
# Serialization
# =============================================================================


def production_batch_to_dict(
    batch: ProductionBatch,
    include_cost: bool = False,
    include_tests: bool = False,
) -> Dict[str, Any]:
    """
    Convert a ProductionBatch to a dictionary.

    Cost columns and estimated costs inside material_requirements are only
    included when include_cost is True.
    """
    result = batch.to_dict(include_relationships=include_tests)
    if not include_cost:
        for field in COST_FIELDS:
            result.pop(field, None)
        result["material_requirements"] = {
            material: {k: v for k, v in record.items() if k != "estimated_cost"}
            for material, record in (batch.material_requirements or {}).items()
        }
    return result


# =============================================================================
# Validation
# =============================================================================


def _validate_plan_inputs(
    product_id: Optional[int],
    bottle_quantities: Optional[Mapping],
    production_date,
    notes: Optional[str],
    require_bottles: bool = True,
):
    """Validate planner inputs; returns (quantities, production_date)."""
    errors = []

    if product_id is None or product_id == "":
        errors.append(get_message("product_required"))

    parsed_date = None
    if production_date is not None:
        try:
            parsed_date = parse_production_date(production_date)
        except ValueError:
            parsed_date = None
    if require_bottles and parsed_date is None:
        errors.append(get_message("production_date_required"))

    if require_bottles:
        quantities, quantity_errors = validate_bottle_quantities(bottle_quantities)
    else:
        quantities, quantity_errors = parse_quantity_map(bottle_quantities)
    errors.extend(quantity_errors)

    notes_ok, notes_error = validate_notes(notes)
    if not notes_ok:
        errors.append(notes_error)

    if errors:
        raise ValidationError(errors)
    return quantities, parsed_date


def _check_bottle_types(quantities: Dict[int, int], session: Session) -> None:
    """Every bottle type with a quantity must exist and be active."""
    active_ids = {bt.id for bt in reference_data_service.get_active_bottle_type_models(session)}
    errors = [
        get_message("bottle_type_unknown", bottle_type_id=bottle_type_id)
        for bottle_type_id, qty in quantities.items()
        if qty > 0 and bottle_type_id not in active_ids
    ]
    if errors:
        raise ValidationError(errors)


def _raise_if_shortage(plan: RequirementPlan, confirm_shortage: bool, **context) -> None:
    if not plan.has_shortage:
        return

    log_operation(
        logger,
        operation=context.pop("operation"),
        outcome="shortage_confirmed" if confirm_shortage else "shortage",
        level=logging.WARNING,
        short_materials=[req.material_type for req in plan.shortages],
        **context,
    )
    if not confirm_shortage:
        raise MaterialShortageWarning(get_message("material_shortage"), plan.requirements)


def _positive_only(quantities: Dict[int, int]) -> Dict[str, int]:
    """Stored bottle map: string keys, quantities > 0 only."""
    return {str(bottle_type_id): qty for bottle_type_id, qty in quantities.items() if qty > 0}


# =============================================================================
# Preview
# =============================================================================


def preview_plan(
    product_id: int,
    bottle_quantities: Mapping[int, int],
    production_date=None,
    *,
    include_cost: bool = False,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Compute requirements for a bottle mix without persisting anything.

    Also proposes a batch code the planner can show before saving; it is
    passed back to create_plan(batch_code=...) and re-checked at insert.

    Args:
        product_id: Product to plan
        bottle_quantities: {bottle_type_id: quantity}; all zeros is allowed
            and yields an empty requirement list
        production_date: Optional planned date
        include_cost: Include FIFO cost estimates (admin only)
        session: Optional database session

    Returns:
        Dict with product info, batch_code, total_liters, has_shortage and
        requirements

    Raises:
        ValidationError: If the product is missing or quantities are invalid
        ProductNotFound: If the product doesn't exist or is inactive
    """
    quantities, parsed_date = _validate_plan_inputs(
        product_id, bottle_quantities, production_date, None, require_bottles=False
    )

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as sess:
        product = reference_data_service.get_product_model(product_id, sess)
        _check_bottle_types(quantities, sess)
        plan = calculate_requirements(product, quantities, include_cost=include_cost, session=sess)

        result = plan.to_dict(include_cost)
        result.update(
            {
                "product_id": product.id,
                "product_name": product.name,
                "production_date": parsed_date.isoformat() if parsed_date else None,
                "batch_code": batch_code_service.generate_batch_code(
                    product, parsed_date, session=sess
                ),
            }
        )
        return result


# =============================================================================
# Create
# =============================================================================


def create_plan(
    product_id: int,
    bottle_quantities: Mapping[int, int],
    production_date,
    notes: Optional[str] = None,
    *,
    planned_by: str,
    planned_by_name: Optional[str] = None,
    batch_code: Optional[str] = None,
    include_cost: bool = False,
    confirm_shortage: bool = False,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Create a planned production batch.

    **CRITICAL FUNCTION**: the only way a ProductionBatch comes into being.

    Algorithm:
        1. Validate inputs (product, date, at least one bottle, no negatives)
        2. Check bottle types exist and are active
        3. Calculate requirements for the bottle mix
        4. If any material is short, raise MaterialShortageWarning unless
           confirm_shortage is True
        5. Insert the batch as "planned"; on a batch code conflict, generate
           a new code and retry (own session only)

    Args:
        product_id: Product to produce
        bottle_quantities: {bottle_type_id: quantity}
        production_date: Planned date (date or ISO string)
        notes: Optional notes
        planned_by / planned_by_name: Planner identity
        batch_code: Optional code proposed by preview_plan()
        include_cost: Persist and return estimated costs (admin only)
        confirm_shortage: Save even when materials are short
        session: Optional database session; when given, the caller owns the
            transaction and a code conflict raises BatchCodeConflictError

    Returns:
        Dict of the created batch plus "requirements" and "total_liters"

    Raises:
        ValidationError: If inputs are invalid
        ProductNotFound: If the product doesn't exist or is inactive
        MaterialShortageWarning: If materials are short and not confirmed
        BatchCodeConflictError: If the code is taken (caller-owned session) or
            no free code was found within the retry limit
        DatabaseError: If the database operation fails
    """
    quantities, parsed_date = _validate_plan_inputs(
        product_id, bottle_quantities, production_date, notes
    )
    notes = sanitize_string(notes)

    if session is not None:
        try:
            return _create_plan_impl(
                product_id, quantities, parsed_date, notes, planned_by, planned_by_name,
                batch_code, include_cost, confirm_shortage, session,
            )
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to create production plan", original_error=e)

    conflict = None
    for attempt in range(1, BATCH_CODE_MAX_ATTEMPTS + 1):
        try:
            with session_scope() as sess:
                return _create_plan_impl(
                    product_id, quantities, parsed_date, notes, planned_by, planned_by_name,
                    batch_code, include_cost, confirm_shortage, sess,
                )
        except BatchCodeConflictError as e:
            conflict = e
            log_operation(
                logger,
                operation="create_plan",
                outcome="batch_code_conflict",
                level=logging.WARNING,
                batch_code=e.batch_code,
                attempt=attempt,
            )
            # Caller-proposed code is taken; generate a fresh one
            batch_code = None
        except SQLAlchemyError as e:
            log_operation(
                logger,
                operation="create_plan",
                outcome="error",
                level=logging.ERROR,
                product_id=product_id,
                error=str(e),
            )
            raise DatabaseError("Failed to create production plan", original_error=e)

    raise conflict


def _create_plan_impl(
    product_id, quantities, production_date, notes, planned_by, planned_by_name,
    batch_code, include_cost, confirm_shortage, session,
) -> Dict[str, Any]:
    """Implementation of create_plan within one session."""
    product = reference_data_service.get_product_model(product_id, session)
    _check_bottle_types(quantities, session)

    plan = calculate_requirements(product, quantities, include_cost=include_cost, session=session)
    _raise_if_shortage(
        plan,
        confirm_shortage,
        operation="create_plan",
        product_id=product.id,
    )

    if not batch_code:
        batch_code = batch_code_service.generate_batch_code(
            product, production_date, session=session
        )

    batch = ProductionBatch(
        batch_code=batch_code,
        product_id=product.id,
        product_name=product.name,
        production_date=production_date,
        status=BatchStatus.PLANNED.value,
        planned_bottles=_positive_only(quantities),
        total_juice_needed=plan.total_liters,
        material_requirements={
            req.material_type: req.to_record(include_cost) for req in plan.requirements
        },
        notes=notes,
        planned_by=planned_by,
        planned_by_name=planned_by_name,
        planned_at=utc_now(),
    )
    session.add(batch)
    try:
        session.flush()
    except IntegrityError as e:
        if _is_batch_code_conflict(e):
            raise BatchCodeConflictError(batch_code) from e
        raise

    log_operation(
        logger,
        operation="create_plan",
        outcome="success",
        batch_code=batch.batch_code,
        product_id=product.id,
        total_liters=str(plan.total_liters),
        has_shortage=plan.has_shortage,
    )

    result = production_batch_to_dict(batch, include_cost=include_cost)
    result["requirements"] = [req.to_dict(include_cost) for req in plan.requirements]
    return result


def _is_batch_code_conflict(error: IntegrityError) -> bool:
    return "batch_code" in str(error.orig)


# =============================================================================
# Edit
# =============================================================================


def update_plan(
    batch_code: str,
    bottle_quantities: Optional[Mapping[int, int]] = None,
    notes: Optional[str] = None,
    *,
    include_cost: bool = False,
    confirm_shortage: bool = False,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Edit a batch that is still planned.

    The batch code, product and production date are fixed once planned.
    When new bottle quantities are given, total liters and material
    requirements are recomputed against current inventory.

    Args:
        batch_code: Batch to edit
        bottle_quantities: Optional new {bottle_type_id: quantity}
        notes: Optional new notes
        include_cost: Persist and return estimated costs (admin only)
        confirm_shortage: Save even when materials are short
        session: Optional database session

    Returns:
        Dict of the updated batch

    Raises:
        ProductionBatchNotFoundOrExecuted: If the batch doesn't exist or is
            no longer planned
        ValidationError / MaterialShortageWarning: As for create_plan
        ConcurrentModificationError: If the batch changed concurrently
    """
    quantities = None
    errors = []
    if bottle_quantities is not None:
        quantities, errors = validate_bottle_quantities(bottle_quantities)
    notes_ok, notes_error = validate_notes(notes)
    if not notes_ok:
        errors.append(notes_error)
    if errors:
        raise ValidationError(errors)

    try:
        if session is not None:
            return _update_plan_impl(
                batch_code, quantities, notes, include_cost, confirm_shortage, session
            )
        with session_scope() as sess:
            return _update_plan_impl(
                batch_code, quantities, notes, include_cost, confirm_shortage, sess
            )
    except StaleDataError as e:
        raise ConcurrentModificationError(
            f"Batch {batch_code} was modified by another operation", original_error=e
        )
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to update batch {batch_code}", original_error=e)


def _update_plan_impl(
    batch_code, quantities, notes, include_cost, confirm_shortage, session
) -> Dict[str, Any]:
    """Implementation of update_plan within one session."""
    batch = _get_batch_model(batch_code, session)
    if batch is None:
        raise ProductionBatchNotFoundOrExecuted(
            batch_code, get_message("batch_not_found_or_executed", batch_code=batch_code)
        )
    if not batch.is_planned:
        raise ProductionBatchNotFoundOrExecuted(
            batch_code, get_message("batch_not_editable", batch_code=batch_code)
        )

    if quantities is not None:
        _check_bottle_types(quantities, session)
        plan = calculate_requirements(
            batch.product, quantities, include_cost=include_cost, session=session
        )
        _raise_if_shortage(
            plan,
            confirm_shortage,
            operation="update_plan",
            batch_code=batch_code,
        )
        batch.planned_bottles = _positive_only(quantities)
        batch.total_juice_needed = plan.total_liters
        batch.material_requirements = {
            req.material_type: req.to_record(include_cost) for req in plan.requirements
        }

    if notes is not None:
        batch.notes = sanitize_string(notes)

    session.flush()

    log_operation(
        logger,
        operation="update_plan",
        outcome="success",
        batch_code=batch_code,
        bottles_changed=quantities is not None,
    )
    return production_batch_to_dict(batch, include_cost=include_cost)


# =============================================================================
# Queries
# =============================================================================


def _get_batch_model(batch_code: str, session: Session) -> Optional[ProductionBatch]:
    return (
        session.query(ProductionBatch)
        .filter(ProductionBatch.batch_code == batch_code)
        .first()
    )


def get_production_batch(
    batch_code: str,
    *,
    include_cost: bool = False,
    session: Optional[Session] = None,
) -> Optional[Dict[str, Any]]:
    """
    Get a production batch by code, including its quality tests.

    Returns:
        Batch dictionary, or None if no batch has the code
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            batch = _get_batch_model(batch_code, sess)
            if batch is None:
                return None
            return production_batch_to_dict(batch, include_cost=include_cost, include_tests=True)
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to load batch {batch_code}", original_error=e)


def list_production_batches(
    status: Optional[BatchStatus] = None,
    *,
    product_id: Optional[int] = None,
    include_cost: bool = False,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    List production batches, newest production date first.

    Args:
        status: Optional status filter
        product_id: Optional product filter
        include_cost: Include cost fields (admin only)
        session: Optional database session
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            query = sess.query(ProductionBatch)
            if status is not None:
                query = query.filter(ProductionBatch.status == BatchStatus(status).value)
            if product_id is not None:
                query = query.filter(ProductionBatch.product_id == product_id)
            batches = query.order_by(
                ProductionBatch.production_date.desc(), ProductionBatch.id.desc()
            ).all()
            return [production_batch_to_dict(b, include_cost=include_cost) for b in batches]
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to list production batches", original_error=e)


def get_production_summary(
    *,
    include_cost: bool = False,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Summarize production across all batches.

    Returns:
        Dict with:
        - "total_batches", "planned_batches", "completed_batches"
        - "total_bottles_planned": bottles across planned batches
        - "total_bottles_produced": bottles across completed batches
        - "material_used": {material_type: quantity} over completed batches
        - "total_cost": sum of completed batch costs (include_cost only)
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            batches = sess.query(ProductionBatch).all()
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to summarize production", original_error=e)

    planned = [b for b in batches if b.is_planned]
    completed = [b for b in batches if b.is_completed]

    material_used: Dict[str, Decimal] = {}
    for batch in completed:
        for material, qty in batch.materials_used().items():
            material_used[material] = material_used.get(material, Decimal("0")) + qty

    summary = {
        "total_batches": len(batches),
        "planned_batches": len(planned),
        "completed_batches": len(completed),
        "total_bottles_planned": sum(b.planned_bottle_total() for b in planned),
        "total_bottles_produced": sum(b.produced_bottle_total() for b in completed),
        "material_used": {m: str(q) for m, q in sorted(material_used.items())},
    }
    if include_cost:
        total_cost = sum(
            (Decimal(str(b.total_cost)) for b in completed if b.total_cost is not None),
            Decimal("0"),
        )
        summary["total_cost"] = str(total_cost)
    return summary
