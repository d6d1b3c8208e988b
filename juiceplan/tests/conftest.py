"""Pytest configuration and fixtures for service layer tests."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker

from juiceplan.models import Base, BottleType, Product
from juiceplan.services.inventory_ledger_service import receive_inventory_batch
from juiceplan.utils.config import Config, reset_config, set_config


@pytest.fixture(autouse=True)
def test_config(tmp_path):
    """Install a configuration rooted in a temporary directory.

    English messages, lenient allocation and three execution attempts,
    regardless of the JUICEPLAN_* environment.
    """
    config = Config(
        environment="development",
        base_dir=tmp_path / "data",
        locale="en",
        strict_material_allocation=False,
        execution_retry_attempts=3,
    )
    set_config(config)
    yield config
    reset_config()


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import juiceplan.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def orange_juice(test_db):
    """Single-material product without production history."""
    session = test_db()
    product = Product(
        name="น้ำส้ม",
        name_en="Orange Juice",
        category="Juice",
        raw_materials=["orange"],
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture
def lime_honey(test_db):
    """Two-material product with a stored ratio for lime only."""
    session = test_db()
    product = Product(
        name="น้ำมะนาวน้ำผึ้ง",
        name_en="Lime Honey",
        category="Juice",
        raw_materials=["lime", "honey"],
        average_ratios={
            "lime": {
                "avg_per_liter": "1.5",
                "min_per_liter": "1.2",
                "max_per_liter": "1.7",
                "total_batches": 3,
                "last_updated": "2024-01-10T00:00:00",
            }
        },
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture
def bottle_types(test_db):
    """250 mL, 350 mL and 1000 mL bottles keyed by size."""
    session = test_db()
    bottles = {
        250: BottleType(name="250ml", size_in_ml=250, unit_price=Decimal("3.50"), current_stock=500),
        350: BottleType(name="350ml", size_in_ml=350, unit_price=Decimal("4.00"), current_stock=500),
        1000: BottleType(name="1L", size_in_ml=1000, unit_price=Decimal("8.00"), current_stock=10),
    }
    session.add_all(bottles.values())
    session.commit()
    return bottles


# =============================================================================
# Inventory
# =============================================================================


@pytest.fixture
def orange_inventory(test_db):
    """Two orange batches: A (30 @ 20, older) and B (40 @ 25, newer).

    B is received first so FIFO order must come from created_at, not id.
    """
    batch_b = receive_inventory_batch(
        "orange",
        Decimal("40"),
        Decimal("25"),
        supplier_name="Farm B",
        received_at=datetime(2024, 1, 2, 9, 0, 0),
    )
    batch_a = receive_inventory_batch(
        "orange",
        Decimal("30"),
        Decimal("20"),
        supplier_name="Farm A",
        received_at=datetime(2024, 1, 1, 9, 0, 0),
    )
    return {"A": batch_a, "B": batch_b}
