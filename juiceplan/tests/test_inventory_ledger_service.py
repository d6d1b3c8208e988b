"""Tests for the inventory ledger service.

Covers receipts, FIFO ordering, non-mutating allocation previews and FIFO
consumption with its movement ledger.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from juiceplan.models import InventoryBatch, InventoryMovement, MovementType
from juiceplan.services import inventory_ledger_service
from juiceplan.services.exceptions import ValidationError


def _reload_batch(test_db, batch_id):
    session = test_db()
    session.expire_all()
    return session.get(InventoryBatch, batch_id)


# =============================================================================
# Receiving
# =============================================================================


class TestReceiveInventoryBatch:
    """Tests for receive_inventory_batch()."""

    def test_receipt_creates_active_batch(self, test_db):
        batch = inventory_ledger_service.receive_inventory_batch(
            "orange",
            Decimal("25.5"),
            Decimal("18.75"),
            supplier_name="Farm A",
            received_at=datetime(2024, 1, 25, 8, 30),
        )

        assert batch.batch_code == "INV240125001"
        assert batch.status == "active"
        assert batch.quantity == Decimal("25.5")
        assert batch.remaining_quantity == Decimal("25.5")
        assert batch.purchase_date.isoformat() == "2024-01-25"

    def test_daily_sequence_increments(self, test_db):
        received_at = datetime(2024, 1, 25, 8, 30)
        first = inventory_ledger_service.receive_inventory_batch(
            "orange", Decimal("10"), Decimal("20"), received_at=received_at
        )
        second = inventory_ledger_service.receive_inventory_batch(
            "lime", Decimal("5"), Decimal("30"), received_at=received_at
        )
        next_day = inventory_ledger_service.receive_inventory_batch(
            "lime", Decimal("5"), Decimal("30"), received_at=datetime(2024, 1, 26, 8, 0)
        )

        assert first.batch_code == "INV240125001"
        assert second.batch_code == "INV240125002"
        assert next_day.batch_code == "INV240126001"

    def test_receipt_writes_in_movement(self, test_db):
        batch = inventory_ledger_service.receive_inventory_batch(
            "orange",
            Decimal("12"),
            Decimal("20"),
            invoice_number="PO-001",
            created_by="u1",
        )

        movements = inventory_ledger_service.list_movements(material_type="orange")
        assert len(movements) == 1
        movement = movements[0]
        assert movement.movement_type == MovementType.IN.value
        assert movement.inventory_batch_code == batch.batch_code
        assert movement.quantity == Decimal("12")
        assert movement.previous_quantity == Decimal("0")
        assert movement.new_quantity == Decimal("12")
        assert movement.reference == "PO-001"
        assert movement.reference_type == "purchase"

    @pytest.mark.parametrize(
        "quantity,unit_price",
        [(Decimal("0"), Decimal("10")), (Decimal("-1"), Decimal("10")), (Decimal("5"), Decimal("-1"))],
    )
    def test_invalid_receipt_rejected(self, test_db, quantity, unit_price):
        with pytest.raises(ValidationError):
            inventory_ledger_service.receive_inventory_batch("orange", quantity, unit_price)

        assert inventory_ledger_service.get_active_batches("orange") == []


# =============================================================================
# FIFO queries
# =============================================================================


class TestActiveBatches:
    """Tests for get_active_batches() and get_available_quantity()."""

    def test_fifo_order_follows_created_at(self, test_db, orange_inventory):
        batches = inventory_ledger_service.get_active_batches("orange")

        assert [b.batch_code for b in batches] == [
            orange_inventory["A"].batch_code,
            orange_inventory["B"].batch_code,
        ]

    def test_available_quantity_sums_remaining(self, test_db, orange_inventory):
        assert inventory_ledger_service.get_available_quantity("orange") == Decimal("70")

    def test_unknown_material_has_nothing_available(self, test_db, orange_inventory):
        assert inventory_ledger_service.get_active_batches("mango") == []
        assert inventory_ledger_service.get_available_quantity("mango") == Decimal("0")

    def test_finished_and_empty_batches_excluded(self, test_db, orange_inventory):
        session = test_db()
        batch = session.get(InventoryBatch, orange_inventory["A"].id)
        batch.remaining_quantity = Decimal("0")
        batch.status = "finished"
        session.commit()

        batches = inventory_ledger_service.get_active_batches("orange")

        assert [b.batch_code for b in batches] == [orange_inventory["B"].batch_code]


class TestAllocateFifo:
    """Tests for the pure allocate_fifo() walk."""

    def test_allocation_takes_oldest_first(self, test_db, orange_inventory):
        result = inventory_ledger_service.preview_fifo("orange", Decimal("50"))

        assert [a.inventory_batch_code for a in result.allocations] == [
            orange_inventory["A"].batch_code,
            orange_inventory["B"].batch_code,
        ]
        assert [a.quantity for a in result.allocations] == [Decimal("30"), Decimal("20")]
        assert result.total_cost == Decimal("1100")
        assert result.satisfied

    def test_allocation_never_exceeds_need_or_remaining(self, test_db, orange_inventory):
        for needed in ("0", "10", "30", "45.5", "70", "95"):
            result = inventory_ledger_service.preview_fifo("orange", Decimal(needed))

            assert result.allocated <= Decimal(needed)
            for allocation in result.allocations:
                assert allocation.quantity <= allocation.previous_quantity

    def test_request_rounded_to_ledger_precision(self, test_db, orange_inventory):
        result = inventory_ledger_service.preview_fifo("orange", Decimal("30.0004"))

        assert result.requested == Decimal("30.000")
        assert [a.inventory_batch_code for a in result.allocations] == [
            orange_inventory["A"].batch_code
        ]
        assert result.total_cost == Decimal("600")

    def test_sub_precision_request_allocates_nothing(self, test_db, orange_inventory):
        result = inventory_ledger_service.preview_fifo("orange", Decimal("0.0004"))

        assert result.allocations == []
        assert result.satisfied

    def test_shortfall_reported_when_inventory_runs_out(self, test_db, orange_inventory):
        result = inventory_ledger_service.preview_fifo("orange", Decimal("100"))

        assert result.allocated == Decimal("70")
        assert result.shortfall == Decimal("30")
        assert not result.satisfied

    def test_preview_does_not_modify_inventory(self, test_db, orange_inventory):
        inventory_ledger_service.preview_fifo("orange", Decimal("50"))

        assert inventory_ledger_service.get_available_quantity("orange") == Decimal("70")
        assert inventory_ledger_service.list_movements(movement_type=MovementType.OUT) == []

    def test_cost_hidden_from_dict_unless_requested(self, test_db, orange_inventory):
        result = inventory_ledger_service.preview_fifo("orange", Decimal("10"))

        assert "total_cost" not in result.to_dict()
        assert "unit_price" not in result.to_dict()["allocations"][0]
        assert Decimal(result.to_dict(include_cost=True)["total_cost"]) == Decimal("200")


# =============================================================================
# FIFO consumption
# =============================================================================


class TestConsumeFifo:
    """Tests for consume_fifo()."""

    def test_consumption_decrements_oldest_batch_first(self, test_db, orange_inventory):
        result = inventory_ledger_service.consume_fifo(
            "orange", Decimal("10"), reference="PJABCDEF", actor_id="u1"
        )

        assert result.allocated == Decimal("10")
        assert _reload_batch(test_db, orange_inventory["A"].id).remaining_quantity == Decimal("20")
        assert _reload_batch(test_db, orange_inventory["B"].id).remaining_quantity == Decimal("40")

    def test_depleted_batch_is_finished_and_excluded(self, test_db, orange_inventory):
        inventory_ledger_service.consume_fifo("orange", Decimal("30"), reference="PJABCDEF")

        batch_a = _reload_batch(test_db, orange_inventory["A"].id)
        assert batch_a.is_finished
        assert batch_a.finished_at is not None
        assert batch_a.remaining_quantity == Decimal("0")

        codes = [b.batch_code for b in inventory_ledger_service.get_active_batches("orange")]
        assert orange_inventory["A"].batch_code not in codes

    def test_one_out_movement_per_batch_touched(self, test_db, orange_inventory):
        inventory_ledger_service.consume_fifo(
            "orange", Decimal("45"), reference="PJABCDEF", actor_id="u1", actor_name="Somchai"
        )

        movements = inventory_ledger_service.list_movements(reference="PJABCDEF")
        assert len(movements) == 2
        assert all(m.movement_type == "out" for m in movements)
        assert all(m.reference_type == "production" for m in movements)
        assert [m.quantity for m in movements] == [Decimal("30"), Decimal("15")]
        assert movements[1].previous_quantity == Decimal("40")
        assert movements[1].new_quantity == Decimal("25")
        assert movements[0].actor_name == "Somchai"

    def test_under_allocation_consumes_everything_available(self, test_db, orange_inventory):
        result = inventory_ledger_service.consume_fifo("orange", Decimal("80"), reference="PJABCDEF")

        assert result.shortfall == Decimal("10")
        assert inventory_ledger_service.get_available_quantity("orange") == Decimal("0")
        session = test_db()
        session.expire_all()
        assert session.query(InventoryMovement).filter_by(movement_type="out").count() == 2

    def test_consumption_in_caller_session_is_not_committed(self, test_db, orange_inventory):
        session = test_db()
        inventory_ledger_service.consume_fifo(
            "orange", Decimal("5"), reference="PJABCDEF", session=session
        )
        session.rollback()

        assert inventory_ledger_service.get_available_quantity("orange") == Decimal("70")
