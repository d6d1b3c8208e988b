"""Tests for the production planning service.

Tests for preview_plan(), create_plan(), update_plan() and the batch
queries.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from juiceplan.models import ProductionBatch
from juiceplan.services import batch_code_service, production_planning_service
from juiceplan.services.exceptions import (
    BatchCodeConflictError,
    DatabaseError,
    MaterialShortageWarning,
    ProductionBatchNotFoundOrExecuted,
    ProductNotFound,
    ValidationError,
)
from juiceplan.services.inventory_ledger_service import get_available_quantity
from juiceplan.services.production_execution_service import execute_batch


def _create(product, bottles, **kwargs):
    kwargs.setdefault("planned_by", "planner-1")
    return production_planning_service.create_plan(
        product.id, bottles, kwargs.pop("production_date", date(2024, 1, 25)), **kwargs
    )


# =============================================================================
# Preview
# =============================================================================


class TestPreviewPlan:
    """Tests for preview_plan()."""

    def test_preview_returns_requirements_without_saving(
        self, test_db, orange_juice, bottle_types, orange_inventory
    ):
        preview = production_planning_service.preview_plan(
            orange_juice.id, {bottle_types[250].id: 100}, include_cost=True
        )

        assert Decimal(preview["total_liters"]) == Decimal("25")
        assert not preview["has_shortage"]
        req = preview["requirements"][0]
        assert Decimal(req["required_quantity"]) == Decimal("50")
        assert Decimal(req["available_quantity"]) == Decimal("70")
        assert Decimal(req["estimated_cost"]) == Decimal("1100")
        assert preview["batch_code"].startswith("PJ")
        assert production_planning_service.list_production_batches() == []

    def test_preview_with_zero_bottles(self, test_db, orange_juice, bottle_types):
        preview = production_planning_service.preview_plan(orange_juice.id, {bottle_types[250].id: 0})

        assert Decimal(preview["total_liters"]) == 0
        assert preview["requirements"] == []

    def test_preview_hides_cost_by_default(self, test_db, orange_juice, bottle_types, orange_inventory):
        preview = production_planning_service.preview_plan(orange_juice.id, {bottle_types[250].id: 10})

        assert "estimated_cost" not in preview["requirements"][0]


# =============================================================================
# Create
# =============================================================================


class TestCreatePlan:
    """Tests for create_plan()."""

    def test_create_plan_persists_planned_batch(
        self, test_db, orange_juice, bottle_types, orange_inventory
    ):
        result = _create(
            orange_juice,
            {bottle_types[250].id: 100, bottle_types[1000].id: 0},
            notes="Morning run",
            planned_by_name="Somchai",
        )

        assert result["status"] == "planned"
        assert result["product_name"] == "น้ำส้ม"
        assert result["production_date"] == "2024-01-25"
        assert result["planned_bottles"] == {str(bottle_types[250].id): 100}
        assert Decimal(result["total_juice_needed"]) == Decimal("25")
        assert result["material_requirements"] == {"orange": {"quantity": "50.000"}}
        assert result["planned_by"] == "planner-1"
        assert result["planned_by_name"] == "Somchai"
        assert result["notes"] == "Morning run"
        assert "total_cost" not in result

        stored = production_planning_service.get_production_batch(result["batch_code"])
        assert stored["status"] == "planned"

    def test_admin_plan_records_estimated_cost(
        self, test_db, orange_juice, bottle_types, orange_inventory
    ):
        result = _create(orange_juice, {bottle_types[250].id: 100}, include_cost=True)

        record = result["material_requirements"]["orange"]
        assert Decimal(record["estimated_cost"]) == Decimal("1100")

        non_admin_view = production_planning_service.get_production_batch(result["batch_code"])
        assert "estimated_cost" not in non_admin_view["material_requirements"]["orange"]

    def test_plan_does_not_consume_inventory(self, test_db, orange_juice, bottle_types, orange_inventory):
        _create(orange_juice, {bottle_types[250].id: 100})

        assert get_available_quantity("orange") == Decimal("70")

    def test_shortage_requires_confirmation(self, test_db, orange_juice, bottle_types, orange_inventory):
        with pytest.raises(MaterialShortageWarning) as exc_info:
            _create(orange_juice, {bottle_types[250].id: 200})

        warning = exc_info.value
        assert [r.material_type for r in warning.shortages] == ["orange"]
        assert warning.shortages[0].required_quantity == Decimal("100")
        assert production_planning_service.list_production_batches() == []

    def test_confirmed_shortage_is_saved(self, test_db, orange_juice, bottle_types, orange_inventory):
        result = _create(orange_juice, {bottle_types[250].id: 200}, confirm_shortage=True)

        assert result["status"] == "planned"
        assert result["requirements"][0]["is_enough"] is False

    def test_proposed_batch_code_is_used(self, test_db, orange_juice, bottle_types, orange_inventory):
        result = _create(orange_juice, {bottle_types[250].id: 10}, batch_code="PJTESTAA")

        assert result["batch_code"] == "PJTESTAA"

    def test_taken_code_is_replaced_on_conflict(
        self, test_db, orange_juice, bottle_types, orange_inventory
    ):
        first = _create(orange_juice, {bottle_types[250].id: 10}, batch_code="PJTESTAA")
        second = _create(orange_juice, {bottle_types[250].id: 10}, batch_code="PJTESTAA")

        assert first["batch_code"] == "PJTESTAA"
        assert second["batch_code"] != "PJTESTAA"
        assert second["batch_code"].startswith("PJ")
        assert len(production_planning_service.list_production_batches()) == 2

    def test_conflict_in_caller_session_raises(
        self, test_db, orange_juice, bottle_types, orange_inventory
    ):
        _create(orange_juice, {bottle_types[250].id: 10}, batch_code="PJTESTAA")

        session = test_db()
        with pytest.raises(BatchCodeConflictError):
            _create(orange_juice, {bottle_types[250].id: 10}, batch_code="PJTESTAA", session=session)
        session.rollback()

    def test_generated_code_collision_retried(
        self, test_db, orange_juice, bottle_types, orange_inventory, monkeypatch
    ):
        _create(orange_juice, {bottle_types[250].id: 10}, batch_code="PJTESTAA")
        codes = iter(["PJTESTAA", "PJTESTBB"])
        monkeypatch.setattr(
            batch_code_service, "generate_batch_code", lambda *args, **kwargs: next(codes)
        )

        result = _create(orange_juice, {bottle_types[250].id: 10})

        assert result["batch_code"] == "PJTESTBB"

    def test_generated_code_conflict_in_caller_session_names_code(
        self, test_db, orange_juice, bottle_types, orange_inventory, monkeypatch
    ):
        _create(orange_juice, {bottle_types[250].id: 10}, batch_code="PJTESTAA")
        monkeypatch.setattr(
            batch_code_service, "generate_batch_code", lambda *args, **kwargs: "PJTESTAA"
        )

        session = test_db()
        with pytest.raises(BatchCodeConflictError) as exc_info:
            _create(orange_juice, {bottle_types[250].id: 10}, session=session)
        session.rollback()

        assert exc_info.value.batch_code == "PJTESTAA"

    def test_retries_exhausted_names_last_code(
        self, test_db, orange_juice, bottle_types, orange_inventory, monkeypatch
    ):
        _create(orange_juice, {bottle_types[250].id: 10}, batch_code="PJTESTAA")
        monkeypatch.setattr(
            batch_code_service, "generate_batch_code", lambda *args, **kwargs: "PJTESTAA"
        )

        with pytest.raises(BatchCodeConflictError) as exc_info:
            _create(orange_juice, {bottle_types[250].id: 10})

        assert exc_info.value.batch_code == "PJTESTAA"
        assert len(production_planning_service.list_production_batches()) == 1

    def test_database_error_in_caller_session_wrapped(
        self, test_db, orange_juice, bottle_types, monkeypatch
    ):
        def locked(*args, **kwargs):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(production_planning_service, "_create_plan_impl", locked)

        with pytest.raises(DatabaseError) as exc_info:
            _create(orange_juice, {bottle_types[250].id: 10}, session=test_db())
        assert isinstance(exc_info.value.original_error, OperationalError)

    @pytest.mark.parametrize(
        "bottles,production_date",
        [
            ({}, date(2024, 1, 25)),
            ({1: 0, 2: 0}, date(2024, 1, 25)),
            ({1: -5}, date(2024, 1, 25)),
            ({1: "many"}, date(2024, 1, 25)),
            ({1: 10}, None),
            ({1: 10}, "not-a-date"),
        ],
    )
    def test_invalid_input_rejected(self, test_db, orange_juice, bottle_types, bottles, production_date):
        with pytest.raises(ValidationError):
            _create(orange_juice, bottles, production_date=production_date)

        assert production_planning_service.list_production_batches() == []

    def test_missing_product_rejected(self, test_db, bottle_types):
        with pytest.raises(ValidationError) as exc_info:
            production_planning_service.create_plan(
                None, {bottle_types[250].id: 10}, date(2024, 1, 25), planned_by="planner-1"
            )

        assert "Please select a product" in exc_info.value.errors

    def test_unknown_product_rejected(self, test_db, bottle_types):
        with pytest.raises(ProductNotFound):
            production_planning_service.create_plan(
                9999, {bottle_types[250].id: 10}, date(2024, 1, 25), planned_by="planner-1"
            )

    def test_inactive_bottle_type_rejected(self, test_db, orange_juice, bottle_types):
        session = test_db()
        bottle = session.get(type(bottle_types[350]), bottle_types[350].id)
        bottle.is_active = False
        session.commit()

        with pytest.raises(ValidationError):
            _create(orange_juice, {bottle_types[350].id: 10})

    def test_thai_messages(self, test_db, orange_juice, bottle_types, test_config):
        test_config.locale = "th"

        with pytest.raises(ValidationError) as exc_info:
            _create(orange_juice, {bottle_types[250].id: 0})

        assert "กรุณาระบุจำนวนขวดที่ต้องการผลิต" in exc_info.value.errors


# =============================================================================
# Edit
# =============================================================================


class TestUpdatePlan:
    """Tests for update_plan()."""

    def test_update_recomputes_requirements(self, test_db, orange_juice, bottle_types, orange_inventory):
        created = _create(orange_juice, {bottle_types[250].id: 100})

        updated = production_planning_service.update_plan(
            created["batch_code"], {bottle_types[1000].id: 10}, notes="Switched to 1L"
        )

        assert updated["batch_code"] == created["batch_code"]
        assert updated["production_date"] == created["production_date"]
        assert updated["planned_bottles"] == {str(bottle_types[1000].id): 10}
        assert Decimal(updated["total_juice_needed"]) == Decimal("10")
        assert updated["material_requirements"] == {"orange": {"quantity": "20.000"}}
        assert updated["notes"] == "Switched to 1L"

    def test_update_notes_only(self, test_db, orange_juice, bottle_types, orange_inventory):
        created = _create(orange_juice, {bottle_types[250].id: 100})

        updated = production_planning_service.update_plan(created["batch_code"], notes="Later")

        assert updated["planned_bottles"] == created["planned_bottles"]
        assert updated["notes"] == "Later"

    def test_update_shortage_requires_confirmation(
        self, test_db, orange_juice, bottle_types, orange_inventory
    ):
        created = _create(orange_juice, {bottle_types[250].id: 100})

        with pytest.raises(MaterialShortageWarning):
            production_planning_service.update_plan(created["batch_code"], {bottle_types[1000].id: 50})

        unchanged = production_planning_service.get_production_batch(created["batch_code"])
        assert unchanged["planned_bottles"] == created["planned_bottles"]

    def test_completed_batch_not_editable(self, test_db, orange_juice, bottle_types, orange_inventory):
        created = _create(orange_juice, {bottle_types[250].id: 100})
        execute_batch(
            created["batch_code"],
            {bottle_types[250].id: 100},
            {"orange": Decimal("50")},
            executed_by="operator-1",
        )

        with pytest.raises(ProductionBatchNotFoundOrExecuted):
            production_planning_service.update_plan(created["batch_code"], notes="Too late")

    def test_unknown_batch_not_editable(self, test_db):
        with pytest.raises(ProductionBatchNotFoundOrExecuted):
            production_planning_service.update_plan("PJNOPE22", notes="x")


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Tests for get_production_batch(), list_production_batches() and the summary."""

    def test_get_unknown_batch_returns_none(self, test_db):
        assert production_planning_service.get_production_batch("PJNOPE22") is None

    def test_list_filters_by_status(self, test_db, orange_juice, bottle_types, orange_inventory):
        first = _create(orange_juice, {bottle_types[250].id: 10}, production_date=date(2024, 1, 20))
        second = _create(orange_juice, {bottle_types[250].id: 10}, production_date=date(2024, 1, 22))
        execute_batch(
            first["batch_code"],
            {bottle_types[250].id: 10},
            {"orange": Decimal("5")},
            executed_by="operator-1",
        )

        planned = production_planning_service.list_production_batches("planned")
        completed = production_planning_service.list_production_batches("completed")
        everything = production_planning_service.list_production_batches()

        assert [b["batch_code"] for b in planned] == [second["batch_code"]]
        assert [b["batch_code"] for b in completed] == [first["batch_code"]]
        # Newest production date first
        assert [b["batch_code"] for b in everything] == [second["batch_code"], first["batch_code"]]

    def test_summary(self, test_db, orange_juice, bottle_types, orange_inventory):
        first = _create(orange_juice, {bottle_types[250].id: 10})
        _create(orange_juice, {bottle_types[1000].id: 3})
        execute_batch(
            first["batch_code"],
            {bottle_types[250].id: 12},
            {"orange": Decimal("5.5")},
            executed_by="operator-1",
            include_cost=True,
        )

        summary = production_planning_service.get_production_summary()
        admin_summary = production_planning_service.get_production_summary(include_cost=True)

        assert summary["total_batches"] == 2
        assert summary["planned_batches"] == 1
        assert summary["completed_batches"] == 1
        assert summary["total_bottles_planned"] == 3
        assert summary["total_bottles_produced"] == 12
        assert Decimal(summary["material_used"]["orange"]) == Decimal("5.5")
        assert "total_cost" not in summary
        # 5.5 kg @ 20 + 12 bottles @ 3.50
        assert Decimal(admin_summary["total_cost"]) == Decimal("152")

    def test_batch_model_has_version(self, test_db, orange_juice, bottle_types, orange_inventory):
        created = _create(orange_juice, {bottle_types[250].id: 10})

        session = test_db()
        batch = session.query(ProductionBatch).filter_by(batch_code=created["batch_code"]).one()
        assert batch.version == 1
