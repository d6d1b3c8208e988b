"""Tests for production batch code generation."""

import random
from datetime import date, datetime

import pytest
from sqlalchemy.exc import OperationalError

from juiceplan.models import Product, ProductionBatch
from juiceplan.services import batch_code_service
from juiceplan.utils.constants import BATCH_CODE_ALPHABET


class TestDerivePrefix:
    """Tests for derive_prefix()."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Orange Juice", "PJ"),
            ("Lime Honey", "LH"),
            ("apple", "A"),
            ("Mixed Berry Smoothie", "MB"),
            ("Ice Tea", "JT"),
            ("100 Orange", "3P"),
            ("0 Sugar", "2S"),
            ("(Passion) fruit", "PF"),
            ("", "PR"),
            (None, "PR"),
            ("น้ำส้ม", "PR"),
        ],
    )
    def test_prefix(self, name, expected):
        assert batch_code_service.derive_prefix(name) == expected

    def test_prefix_never_contains_confusables(self):
        for name in ("Orange Ice", "One Ink", "01 10", "Oil Iron", "I O"):
            prefix = batch_code_service.derive_prefix(name)
            assert not set(prefix) & set("OI01")


class TestRandomSuffix:
    """Tests for random_suffix()."""

    def test_suffix_uses_unambiguous_alphabet(self):
        rng = random.Random(42)
        for _ in range(200):
            suffix = batch_code_service.random_suffix(rng)
            assert len(suffix) == 6
            assert set(suffix) <= set(BATCH_CODE_ALPHABET)
            assert not set(suffix) & set("0O1I")


class TestGenerateBatchCode:
    """Tests for generate_batch_code()."""

    def test_code_format(self, test_db, orange_juice):
        code = batch_code_service.generate_batch_code(orange_juice, date(2024, 1, 25))

        assert len(code) == 8
        assert code.startswith("PJ")
        assert set(code[2:]) <= set(BATCH_CODE_ALPHABET)

    def test_falls_back_to_localized_name_then_default(self, test_db):
        product = Product(name="น้ำส้ม", name_en=None, raw_materials=[])

        assert batch_code_service.generate_batch_code(product).startswith("PR")

    def test_collision_regenerates_suffix_only(self, test_db, orange_juice):
        taken = "PJ" + batch_code_service.random_suffix(random.Random(7))
        session = test_db()
        session.add(
            ProductionBatch(
                batch_code=taken,
                product_id=orange_juice.id,
                product_name=orange_juice.name,
                production_date=date(2024, 1, 25),
                planned_by="u1",
                planned_at=datetime(2024, 1, 24, 8, 0),
            )
        )
        session.commit()

        code = batch_code_service.generate_batch_code(orange_juice, rng=random.Random(7))

        assert code != taken
        assert code.startswith("PJ")
        assert not batch_code_service.batch_code_exists(code)

    def test_lookup_failure_returns_candidate(self, test_db, orange_juice, monkeypatch, caplog):
        def failing_lookup(batch_code, *, session=None):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(batch_code_service, "batch_code_exists", failing_lookup)

        code = batch_code_service.generate_batch_code(orange_juice)

        assert code.startswith("PJ")
        assert "generate_batch_code: lookup_failed" in caplog.text
