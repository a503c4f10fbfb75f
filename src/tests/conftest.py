"""Pytest configuration and fixtures for service layer tests."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker, scoped_session

from kitchzero import models  # noqa: F401  (registers every table)
from kitchzero.models.base import Base
from kitchzero.services.database import create_database_engine

TENANT = "tenant-1"
OTHER_TENANT = "tenant-2"
BRANCH = "branch-1"
OTHER_BRANCH = "branch-2"


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database (foreign keys enforced)
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    engine = create_database_engine("sqlite:///:memory:", echo=False)

    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import kitchzero.services.database as db_module

    original_get_session_factory = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session_factory


@pytest.fixture
def make_batch(test_db):
    """Factory creating inventory batches for TENANT/BRANCH by default."""
    from kitchzero.services import inventory_item_service

    def _make(
        item_name="Tomatoes",
        category="Vegetables",
        quantity=5.0,
        cost="3.00",
        expiry_date=date(2024, 1, 5),
        unit="KG",
        tenant_id=TENANT,
        branch_id=BRANCH,
        **extra,
    ):
        data = {
            "item_name": item_name,
            "category": category,
            "quantity": quantity,
            "unit": unit,
            "cost": Decimal(str(cost)),
            "expiry_date": expiry_date,
            **extra,
        }
        return inventory_item_service.create_inventory_item(data, tenant_id, branch_id)

    return _make


@pytest.fixture
def tomato_soup(test_db):
    """Recipe "Tomato Soup": yield 10 L, needs 2 kg of tomatoes."""
    from kitchzero.services import recipe_service

    return recipe_service.create_recipe(
        {
            "name": "Tomato Soup",
            "category": "Soups",
            "yield_quantity": 10,
            "yield_unit": "L",
            "ingredients": [
                {
                    "ingredient_name": "Tomatoes",
                    "category": "Vegetables",
                    "quantity": 2.0,
                    "unit": "KG",
                },
            ],
        },
        TENANT,
        BRANCH,
    )


@pytest.fixture
def tomato_batches(make_batch):
    """Batch A (1 kg at $2, expires Jan 1) and batch B (5 kg at $3, expires Jan 5)."""
    batch_a = make_batch(quantity=1.0, cost="2.00", expiry_date=date(2024, 1, 1))
    batch_b = make_batch(quantity=5.0, cost="3.00", expiry_date=date(2024, 1, 5))
    return batch_a, batch_b
