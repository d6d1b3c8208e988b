"""
Inventory Ledger Service - raw-material receipt batches and FIFO allocation.

This module provides functions for:
- Receiving raw-material batches into inventory
- Querying active batches in FIFO order (oldest created first)
- Previewing FIFO allocation and cost without touching inventory
- Consuming inventory in FIFO order with an append-only movement ledger

All functions accept an optional session. When a session is provided the
caller owns the transaction and nothing is committed here; otherwise the
function runs in its own session_scope().
"""

from contextlib import nullcontext
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from juiceplan.models import (
    InventoryBatch,
    InventoryBatchStatus,
    InventoryMovement,
    MovementType,
    ReferenceType,
)
from juiceplan.services.database import session_scope
from juiceplan.services.dto import FifoAllocation, FifoResult
from juiceplan.services.exceptions import DatabaseError, ValidationError
from juiceplan.services.logging_utils import get_service_logger, log_operation
from juiceplan.utils.constants import INVENTORY_BATCH_PREFIX, QUANTITY_PLACES
from juiceplan.utils.datetime_utils import utc_now

logger = get_service_logger(__name__)


# =============================================================================
# Receiving
# =============================================================================


def receive_inventory_batch(
    material_type: str,
    quantity: Decimal,
    unit_price: Decimal,
    *,
    supplier_name: Optional[str] = None,
    purchase_date: Optional[date] = None,
    invoice_number: Optional[str] = None,
    notes: Optional[str] = None,
    created_by: Optional[str] = None,
    created_by_name: Optional[str] = None,
    received_at: Optional[datetime] = None,
    session=None,
) -> InventoryBatch:
    """
    Append a raw-material receipt batch to the ledger.

    Generates a batch code of the form INV + YYMMDD + 3-digit daily sequence
    (e.g. "INV240125001") and writes an "in" movement for the receipt.

    Args:
        material_type: Material received
        quantity: Quantity received (must be > 0)
        unit_price: Price per unit (must be >= 0)
        supplier_name: Optional supplier name
        purchase_date: Optional purchase date (defaults to the receipt date)
        invoice_number: Optional invoice reference
        notes: Optional notes
        created_by / created_by_name: Who received the batch
        received_at: Receipt timestamp, which also fixes the batch's FIFO
            position (defaults to now)
        session: Optional database session

    Returns:
        The new InventoryBatch

    Raises:
        ValidationError: If material_type is blank, quantity <= 0 or unit_price < 0
        DatabaseError: If the database operation fails
    """
    quantity = Decimal(str(quantity))
    unit_price = Decimal(str(unit_price))

    errors = []
    if not material_type or not material_type.strip():
        errors.append("Material type is required")
    if quantity <= 0:
        errors.append("Quantity must be greater than zero")
    if unit_price < 0:
        errors.append("Unit price must be zero or greater")
    if errors:
        raise ValidationError(errors)

    received_at = received_at or utc_now()

    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            batch = InventoryBatch(
                batch_code=_next_inventory_batch_code(received_at.date(), sess),
                material_type=material_type.strip(),
                supplier_name=supplier_name,
                purchase_date=purchase_date or received_at.date(),
                quantity=quantity,
                remaining_quantity=quantity,
                unit_price=unit_price,
                status=InventoryBatchStatus.ACTIVE.value,
                invoice_number=invoice_number,
                notes=notes,
                created_by=created_by,
                created_at=received_at,
            )
            sess.add(batch)
            sess.add(
                InventoryMovement(
                    inventory_batch_code=batch.batch_code,
                    material_type=batch.material_type,
                    movement_type=MovementType.IN.value,
                    quantity=quantity,
                    previous_quantity=Decimal("0"),
                    new_quantity=quantity,
                    reference=invoice_number,
                    reference_type=ReferenceType.PURCHASE.value,
                    actor_id=created_by,
                    actor_name=created_by_name,
                )
            )
            sess.flush()

            log_operation(
                logger,
                operation="receive_inventory_batch",
                outcome="success",
                inventory_batch_code=batch.batch_code,
                material_type=batch.material_type,
                quantity=str(quantity),
            )
            return batch
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to receive inventory for '{material_type}'", original_error=e
        )


def _next_inventory_batch_code(on_date: date, session) -> str:
    """Next INVyymmddNNN code for the given day."""
    prefix = f"{INVENTORY_BATCH_PREFIX}{on_date.strftime('%y%m%d')}"
    count = (
        session.query(InventoryBatch)
        .filter(InventoryBatch.batch_code.like(f"{prefix}%"))
        .count()
    )
    return f"{prefix}{count + 1:03d}"


# =============================================================================
# FIFO Queries
# =============================================================================


def get_active_batches(material_type: str, *, session=None) -> List[InventoryBatch]:
    """
    Get the active batches of a material in FIFO order.

    Only batches with status "active" and remaining_quantity > 0 are
    returned, ordered by created_at ascending (oldest first), ties broken
    by id.

    Args:
        material_type: Material to look up
        session: Optional database session

    Returns:
        List of InventoryBatch, oldest first

    Raises:
        DatabaseError: If the query fails
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            return (
                sess.query(InventoryBatch)
                .filter(
                    InventoryBatch.material_type == material_type,
                    InventoryBatch.status == InventoryBatchStatus.ACTIVE.value,
                    InventoryBatch.remaining_quantity > 0,
                )
                .order_by(InventoryBatch.created_at.asc(), InventoryBatch.id.asc())
                .all()
            )
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to load inventory batches for '{material_type}'", original_error=e
        )


def get_available_quantity(material_type: str, *, session=None) -> Decimal:
    """Total remaining quantity of a material across its active batches."""
    batches = get_active_batches(material_type, session=session)
    return sum((Decimal(str(b.remaining_quantity)) for b in batches), Decimal("0"))


def allocate_fifo(
    material_type: str,
    quantity_needed: Decimal,
    batches: List[InventoryBatch],
) -> FifoResult:
    """
    Plan a FIFO allocation over an ordered list of batches.

    **CORE ALGORITHM**: pure function, nothing is modified.

    Algorithm:
        For each batch in the given order, take
        min(remaining_needed, batch.remaining_quantity), stop when the need
        is met or batches run out. Batches must already be in FIFO order.

    Args:
        material_type: Material being allocated
        quantity_needed: Quantity to allocate, rounded to ledger precision
            (negative treated as zero)
        batches: Candidate batches, oldest first

    Returns:
        FifoResult with one allocation per batch used. The allocated total
        never exceeds the rounded request nor any batch's remaining quantity.
    """
    requested = max(Decimal("0"), Decimal(str(quantity_needed))).quantize(QUANTITY_PLACES)
    result = FifoResult(material_type=material_type, requested=requested)
    remaining_needed = requested

    for batch in batches:
        if remaining_needed <= 0:
            break

        batch_remaining = Decimal(str(batch.remaining_quantity)).quantize(QUANTITY_PLACES)
        if batch_remaining <= 0:
            continue

        used = min(remaining_needed, batch_remaining)
        result.allocations.append(
            FifoAllocation(
                inventory_batch_id=batch.id,
                inventory_batch_code=batch.batch_code,
                quantity=used,
                unit_price=Decimal(str(batch.unit_price)),
                previous_quantity=batch_remaining,
            )
        )
        remaining_needed -= used

    return result


def preview_fifo(material_type: str, quantity_needed: Decimal, *, session=None) -> FifoResult:
    """
    Dry-run FIFO allocation against current inventory.

    Used for cost previews during planning. Nothing is reserved: inventory
    may change before the batch is executed.
    """
    batches = get_active_batches(material_type, session=session)
    return allocate_fifo(material_type, quantity_needed, batches)


# =============================================================================
# FIFO Consumption
# =============================================================================


def consume_fifo(
    material_type: str,
    quantity_needed: Decimal,
    *,
    reference: str,
    actor_id: Optional[str] = None,
    actor_name: Optional[str] = None,
    session=None,
) -> FifoResult:
    """
    Consume inventory in FIFO order and record the movements.

    **CRITICAL FUNCTION**: this is the only code path that decrements
    InventoryBatch.remaining_quantity.

    Algorithm:
        1. Re-resolve active batches for the material, oldest first
        2. Allocate greedily with allocate_fifo()
        3. Decrement each touched batch; a batch driven to exactly zero
           becomes "finished" with a finished_at timestamp
        4. Write one "out" InventoryMovement per touched batch

    Under-allocation is not an error here: the result's shortfall tells the
    caller how much could not be covered.

    Args:
        material_type: Material to consume
        quantity_needed: Quantity to consume
        reference: Production batch code recorded on each movement
        actor_id / actor_name: Who performed the consumption
        session: Optional database session; when given the caller owns the
            transaction

    Returns:
        FifoResult describing the allocations made

    Raises:
        StaleDataError: If a batch was modified concurrently (version mismatch)
        DatabaseError: If any other database operation fails
    """

    def _do_consume(sess) -> FifoResult:
        batches = get_active_batches(material_type, session=sess)
        result = allocate_fifo(material_type, quantity_needed, batches)
        by_id = {batch.id: batch for batch in batches}
        now = utc_now()

        for allocation in result.allocations:
            batch = by_id[allocation.inventory_batch_id]
            batch.remaining_quantity = allocation.new_quantity
            if allocation.new_quantity == 0:
                batch.status = InventoryBatchStatus.FINISHED.value
                batch.finished_at = now

            sess.add(
                InventoryMovement(
                    inventory_batch_code=allocation.inventory_batch_code,
                    material_type=material_type,
                    movement_type=MovementType.OUT.value,
                    quantity=allocation.quantity,
                    previous_quantity=allocation.previous_quantity,
                    new_quantity=allocation.new_quantity,
                    reference=reference,
                    reference_type=ReferenceType.PRODUCTION.value,
                    actor_id=actor_id,
                    actor_name=actor_name,
                )
            )

        # Version checks on the touched batches happen here
        sess.flush()
        return result

    try:
        if session is not None:
            return _do_consume(session)
        with session_scope() as sess:
            return _do_consume(sess)
    except StaleDataError:
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(
            f"Failed to consume FIFO for material '{material_type}'", original_error=e
        )


# =============================================================================
# Movement Queries
# =============================================================================


def list_movements(
    *,
    reference: Optional[str] = None,
    material_type: Optional[str] = None,
    movement_type: Optional[MovementType] = None,
    session=None,
) -> List[InventoryMovement]:
    """
    Query the movement ledger, oldest first.

    Args:
        reference: Optional filter by reference (production batch code)
        material_type: Optional filter by material
        movement_type: Optional filter by direction
        session: Optional database session
    """
    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            query = sess.query(InventoryMovement)
            if reference is not None:
                query = query.filter(InventoryMovement.reference == reference)
            if material_type is not None:
                query = query.filter(InventoryMovement.material_type == material_type)
            if movement_type is not None:
                query = query.filter(InventoryMovement.movement_type == movement_type.value)
            return query.order_by(InventoryMovement.id.asc()).all()
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to load inventory movements", original_error=e)
