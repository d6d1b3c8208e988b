"""
Production Execution Service - turn a planned batch into a completed one.

Execution records what was actually produced and consumed:
- Raw materials are consumed from inventory in FIFO order (oldest first)
- One "out" inventory movement is written per (material, inventory batch)
- Quality readings become QualityTestResult rows
- Bottle stock is decremented with a BottleStockMovement per bottle type
- Material, bottle and total cost are recorded for administrators only

Everything happens in a single transaction: either the batch is completed
together with all inventory changes, or nothing is written.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from juiceplan.models import (
    BatchStatus,
    BottleStockMovement,
    BottleType,
    ProductionBatch,
    QualityTestResult,
    QualityTestType,
)
from juiceplan.services import inventory_ledger_service, material_ratio_service
from juiceplan.services.database import session_scope
from juiceplan.services.dto import FifoResult, QualityReadings
from juiceplan.services.exceptions import (
    ConcurrentModificationError,
    DatabaseError,
    InsufficientInventoryError,
    ProductionBatchNotFoundOrExecuted,
    ValidationError,
)
from juiceplan.services.logging_utils import get_service_logger, log_operation
from juiceplan.services.production_planning_service import production_batch_to_dict
from juiceplan.utils.config import get_config, get_message
from juiceplan.utils.constants import QUALITY_TEST_ACIDITY, QUALITY_TEST_BRIX, QUALITY_TEST_UNITS
from juiceplan.utils.datetime_utils import utc_now
from juiceplan.utils.validators import (
    parse_material_quantities,
    sanitize_string,
    validate_bottle_quantities,
    validate_notes,
    validate_quality_reading,
    validate_quality_readings,
)

logger = get_service_logger(__name__)

COST_PLACES = Decimal("0.0001")

# (reading attribute, photo attribute, test name, test type)
QUALITY_TESTS = (
    ("brix_before", "brix_before_photo", QUALITY_TEST_BRIX, QualityTestType.BEFORE_MIXING),
    ("acidity_before", "acidity_before_photo", QUALITY_TEST_ACIDITY, QualityTestType.BEFORE_MIXING),
    ("brix_after", "brix_after_photo", QUALITY_TEST_BRIX, QualityTestType.AFTER_MIXING),
    ("acidity_after", "acidity_after_photo", QUALITY_TEST_ACIDITY, QualityTestType.AFTER_MIXING),
)


def execute_batch(
    batch_code: str,
    actual_bottles: Mapping[int, int],
    actual_materials_used: Mapping[str, Any],
    quality_readings: Optional[QualityReadings] = None,
    notes: Optional[str] = None,
    *,
    executed_by: str,
    executed_by_name: Optional[str] = None,
    include_cost: bool = False,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Execute a planned production batch.

    **CRITICAL FUNCTION**: the only planned -> completed transition.

    Algorithm:
        1. Validate actual bottles (at least one > 0), material usage
           (non-negative) and quality readings (non-negative, optional)
        2. Load the batch; it must exist and still be planned
        3. Under strict allocation, check every material is fully covered
        4. For each material, consume inventory FIFO and record movements;
           usage inventory cannot cover is recorded as a shortfall
        5. Record quality tests, deduct bottle stock, compute costs
        6. Mark the batch completed and refresh the product's ratios

    When this function owns the session, a concurrent modification of a
    touched inventory batch or of the production batch (version mismatch)
    rolls back and retries the whole unit, re-resolving FIFO state each
    time, up to Config.execution_retry_attempts.

    Args:
        batch_code: Planned batch to execute
        actual_bottles: {bottle_type_id: quantity} actually produced
        actual_materials_used: {material_type: quantity} actually used
        quality_readings: Optional readings; None values are "not measured"
        notes: Optional production notes
        executed_by / executed_by_name: Operator identity
        include_cost: Record and return costs (admin only)
        session: Optional database session; when given, the caller owns the
            transaction and no retry is attempted

    Returns:
        Dict of the completed batch, with quality tests and a "consumption"
        entry per material

    Raises:
        ValidationError: If inputs are invalid
        ProductionBatchNotFoundOrExecuted: If the batch doesn't exist or is
            already completed
        InsufficientInventoryError: Strict allocation only
        ConcurrentModificationError: If retries are exhausted
        DatabaseError: If the database operation fails
    """
    bottles, errors = validate_bottle_quantities(actual_bottles, "actual_bottles_required")
    materials, material_errors = parse_material_quantities(actual_materials_used)
    errors.extend(material_errors)
    errors.extend(validate_quality_readings(quality_readings))
    notes_ok, notes_error = validate_notes(notes)
    if not notes_ok:
        errors.append(notes_error)
    if errors:
        raise ValidationError(errors)

    notes = sanitize_string(notes)
    readings = quality_readings or QualityReadings()
    config = get_config()

    if session is not None:
        try:
            return _execute_batch_impl(
                batch_code, bottles, materials, readings, notes, executed_by,
                executed_by_name, include_cost, config.strict_material_allocation, session,
            )
        except StaleDataError as e:
            raise ConcurrentModificationError(
                f"Batch {batch_code} or its inventory was modified concurrently",
                original_error=e,
            )
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to execute batch {batch_code}", original_error=e)

    last_error = None
    for attempt in range(1, config.execution_retry_attempts + 1):
        try:
            with session_scope() as sess:
                return _execute_batch_impl(
                    batch_code, bottles, materials, readings, notes, executed_by,
                    executed_by_name, include_cost, config.strict_material_allocation, sess,
                )
        except StaleDataError as e:
            last_error = e
            log_operation(
                logger,
                operation="execute_batch",
                outcome="retry",
                level=logging.WARNING,
                batch_code=batch_code,
                attempt=attempt,
                error=str(e),
            )
        except SQLAlchemyError as e:
            log_operation(
                logger,
                operation="execute_batch",
                outcome="error",
                level=logging.ERROR,
                batch_code=batch_code,
                error=str(e),
            )
            raise DatabaseError(f"Failed to execute batch {batch_code}", original_error=e)

    raise ConcurrentModificationError(
        f"Batch {batch_code} could not be executed after "
        f"{config.execution_retry_attempts} attempts",
        original_error=last_error,
    )


def _execute_batch_impl(
    batch_code: str,
    bottles: Dict[int, int],
    materials: Dict[str, Decimal],
    readings: QualityReadings,
    notes: Optional[str],
    executed_by: str,
    executed_by_name: Optional[str],
    include_cost: bool,
    strict: bool,
    session: Session,
) -> Dict[str, Any]:
    """Implementation of execute_batch within one transaction."""
    batch = (
        session.query(ProductionBatch)
        .filter(ProductionBatch.batch_code == batch_code)
        .first()
    )
    if batch is None or not batch.is_planned:
        raise ProductionBatchNotFoundOrExecuted(
            batch_code, get_message("batch_not_found_or_executed", batch_code=batch_code)
        )

    bottle_types = _load_bottle_types(bottles, session)
    now = utc_now()

    if strict:
        _check_inventory_covers(materials, session)

    # Consume raw materials FIFO
    consumption: List[FifoResult] = []
    shortfalls: Dict[str, str] = {}
    for material, quantity in materials.items():
        if quantity <= 0:
            continue
        result = inventory_ledger_service.consume_fifo(
            material,
            quantity,
            reference=batch_code,
            actor_id=executed_by,
            actor_name=executed_by_name,
            session=session,
        )
        consumption.append(result)
        if not result.satisfied:
            shortfalls[material] = str(result.shortfall)
            log_operation(
                logger,
                operation="execute_batch",
                outcome="material_shortfall",
                level=logging.WARNING,
                batch_code=batch_code,
                material_type=material,
                requested=str(result.requested),
                allocated=str(result.allocated),
            )

    # Quality tests
    for reading_attr, photo_attr, test_name, test_type in QUALITY_TESTS:
        value, _ = validate_quality_reading(getattr(readings, reading_attr), test_name)
        if value is None:
            continue
        batch.quality_tests.append(
            QualityTestResult(
                test_name=test_name,
                test_type=test_type.value,
                value=value,
                unit=QUALITY_TEST_UNITS[test_name],
                photo_url=getattr(readings, photo_attr),
                passed=True,
                tested_at=now,
                tested_by=executed_by,
                tested_by_name=executed_by_name,
            )
        )

    bottle_cost = _deduct_bottle_stock(
        batch_code, bottles, bottle_types, executed_by, executed_by_name, session
    )
    material_cost = sum((r.total_cost for r in consumption), Decimal("0"))

    batch.status = BatchStatus.COMPLETED.value
    batch.actual_bottles_produced = {
        str(bottle_type_id): qty for bottle_type_id, qty in bottles.items() if qty > 0
    }
    batch.actual_materials_used = {material: str(qty) for material, qty in materials.items()}
    batch.material_shortfalls = shortfalls or None
    batch.production_notes = notes
    batch.started_at = now
    batch.started_by = executed_by
    batch.started_by_name = executed_by_name
    batch.completed_at = now
    batch.completed_by = executed_by
    batch.completed_by_name = executed_by_name
    if include_cost:
        batch.material_cost = material_cost.quantize(COST_PLACES)
        batch.bottle_cost = bottle_cost.quantize(COST_PLACES)
        batch.total_cost = (material_cost + bottle_cost).quantize(COST_PLACES)

    # Version check on the production batch happens here
    session.flush()

    material_ratio_service.refresh_average_ratios(batch.product_id, session=session)

    log_operation(
        logger,
        operation="execute_batch",
        outcome="success",
        batch_code=batch_code,
        product_id=batch.product_id,
        bottles=batch.produced_bottle_total(),
        shortfall_materials=sorted(shortfalls),
    )

    result = production_batch_to_dict(batch, include_cost=include_cost, include_tests=True)
    result["consumption"] = {r.material_type: r.to_dict(include_cost) for r in consumption}
    return result


def _load_bottle_types(bottles: Dict[int, int], session: Session) -> Dict[int, BottleType]:
    """Bottle types for every produced quantity; unknown ids are validation errors."""
    bottle_types = {}
    errors = []
    for bottle_type_id, qty in bottles.items():
        if qty <= 0:
            continue
        bottle_type = session.get(BottleType, bottle_type_id)
        if bottle_type is None:
            errors.append(get_message("bottle_type_unknown", bottle_type_id=bottle_type_id))
        else:
            bottle_types[bottle_type_id] = bottle_type
    if errors:
        raise ValidationError(errors)
    return bottle_types


def _check_inventory_covers(materials: Dict[str, Decimal], session: Session) -> None:
    for material, quantity in materials.items():
        if quantity <= 0:
            continue
        available = inventory_ledger_service.get_available_quantity(material, session=session)
        if available < quantity:
            raise InsufficientInventoryError(material, quantity, available)


def _deduct_bottle_stock(
    batch_code: str,
    bottles: Dict[int, int],
    bottle_types: Dict[int, BottleType],
    executed_by: str,
    executed_by_name: Optional[str],
    session: Session,
) -> Decimal:
    """
    Deduct produced bottles from stock and return their cost.

    Stock never goes below zero; bottles beyond stock are logged and noted
    on the movement.
    """
    bottle_cost = Decimal("0")
    for bottle_type_id, bottle_type in bottle_types.items():
        qty = bottles[bottle_type_id]
        bottle_cost += Decimal(str(bottle_type.unit_price)) * qty

        previous_stock = bottle_type.current_stock or 0
        deducted = min(previous_stock, qty)
        bottle_type.current_stock = previous_stock - deducted

        movement_notes = None
        if deducted < qty:
            movement_notes = f"Stock short by {qty - deducted}"
            log_operation(
                logger,
                operation="execute_batch",
                outcome="bottle_stock_short",
                level=logging.WARNING,
                batch_code=batch_code,
                bottle_type_id=bottle_type_id,
                produced=qty,
                in_stock=previous_stock,
            )

        session.add(
            BottleStockMovement(
                bottle_type_id=bottle_type_id,
                movement_type="production",
                quantity=deducted,
                previous_stock=previous_stock,
                new_stock=bottle_type.current_stock,
                reference=batch_code,
                actor_id=executed_by,
                actor_name=executed_by_name,
                notes=movement_notes,
            )
        )
    return bottle_cost
