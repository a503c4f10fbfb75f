"""Tests for production service.

Tests for check_can_produce(), create_production() and the production
history queries.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from kitchzero.models import InventoryItem, Production, ProductionIngredient, StockUsageHistory
from kitchzero.services import production_service, recipe_service
from kitchzero.services.database import session_scope
from kitchzero.services.dto import PaginationParams
from kitchzero.services.exceptions import (
    CannotProduce,
    InsufficientInventory,
    ProductionNotFound,
    RecipeNotFound,
    ValidationError,
)

TENANT = "tenant-1"
BRANCH = "branch-1"


def _snapshot(test_db):
    session = test_db()
    session.expire_all()
    return {item.id: item.quantity for item in session.query(InventoryItem).all()}


@pytest.fixture
def soup_with_garnish(test_db):
    """Tomato Soup with an optional basil garnish that has no stock."""
    return recipe_service.create_recipe(
        {
            "name": "Tomato Soup",
            "yield_quantity": 10,
            "yield_unit": "L",
            "ingredients": [
                {"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 2.0, "unit": "KG"},
                {
                    "ingredient_name": "Basil",
                    "category": "Herbs",
                    "quantity": 0.1,
                    "unit": "KG",
                    "is_optional": True,
                },
            ],
        },
        TENANT,
        BRANCH,
    )


# =============================================================================
# check_can_produce
# =============================================================================


class TestCheckCanProduce:
    def test_enough_stock(self, test_db, tomato_soup, tomato_batches):
        result = production_service.check_can_produce(tomato_soup.id, TENANT, BRANCH)

        assert result["can_produce"] is True
        assert result["missing"] == []

    def test_missing_lists_shortage(self, test_db, tomato_soup, make_batch):
        make_batch(quantity=1.0, cost="2.00", expiry_date=date(2024, 1, 1))

        result = production_service.check_can_produce(tomato_soup.id, TENANT, BRANCH)

        assert result["can_produce"] is False
        assert result["missing"][0]["ingredient_name"] == "Tomatoes"
        assert result["missing"][0]["shortage"] == pytest.approx(1.0)

    def test_optional_ingredient_never_missing(self, test_db, soup_with_garnish, tomato_batches):
        result = production_service.check_can_produce(soup_with_garnish.id, TENANT, BRANCH)

        assert result["can_produce"] is True

    def test_check_does_not_deduct(self, test_db, tomato_soup, tomato_batches):
        before = _snapshot(test_db)

        production_service.check_can_produce(tomato_soup.id, TENANT, BRANCH, multiplier=2.0)

        assert _snapshot(test_db) == before


# =============================================================================
# create_production
# =============================================================================


class TestCreateProduction:
    def test_tomato_soup_success(self, test_db, tomato_soup, tomato_batches):
        """Producing 10 L consumes all of A ($2) and 1 kg of B ($3)."""
        batch_a, batch_b = tomato_batches

        result = production_service.create_production(tomato_soup.id, 10, TENANT, BRANCH)

        assert result["total_cost"] == Decimal("5")
        assert result["unit_cost"] == Decimal("0.5000")
        assert result["multiplier"] == pytest.approx(1.0)
        assert result["status"] == "COMPLETED"
        assert result["ingredient_usage"][0]["inventory_item_ids"] == [batch_a.id, batch_b.id]

        after = _snapshot(test_db)
        assert after[batch_a.id] == pytest.approx(0.0)
        assert after[batch_b.id] == pytest.approx(4.0)

    def test_tomato_soup_failure_changes_nothing(self, test_db, tomato_soup, make_batch):
        make_batch(quantity=1.0, cost="2.00", expiry_date=date(2024, 1, 1))
        before = _snapshot(test_db)

        with pytest.raises(CannotProduce) as exc_info:
            production_service.create_production(tomato_soup.id, 10, TENANT, BRANCH)

        missing = exc_info.value.missing_ingredients
        assert [m["ingredient_name"] for m in missing] == ["Tomatoes"]
        assert missing[0]["shortage"] == pytest.approx(1.0)
        assert _snapshot(test_db) == before
        assert test_db().query(Production).count() == 0
        assert test_db().query(StockUsageHistory).count() == 0

    def test_repeated_ingredient_lines_checked_together(self, test_db, make_batch):
        recipe = recipe_service.create_recipe(
            {
                "name": "Double Tomato",
                "yield_quantity": 1,
                "yield_unit": "L",
                "ingredients": [
                    {"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 2.0, "unit": "KG"},
                    {"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 2.0, "unit": "KG"},
                ],
            },
            TENANT,
            BRANCH,
        )
        make_batch(quantity=3.0)
        before = _snapshot(test_db)

        with pytest.raises(CannotProduce) as exc_info:
            production_service.create_production(recipe.id, 1, TENANT, BRANCH)

        missing = exc_info.value.missing_ingredients
        assert len(missing) == 1
        assert missing[0]["required"] == pytest.approx(4.0)
        assert missing[0]["shortage"] == pytest.approx(1.0)
        assert _snapshot(test_db) == before
        assert test_db().query(Production).count() == 0

    def test_failure_after_consumption_rolls_back(self, test_db, tomato_soup, tomato_batches, monkeypatch):
        before = _snapshot(test_db)
        real_record = production_service.record_stock_usage

        def record_then_fail(*args, **kwargs):
            real_record(*args, **kwargs)
            raise InsufficientInventory("Tomatoes", 1.0)

        monkeypatch.setattr(production_service, "record_stock_usage", record_then_fail)

        with pytest.raises(InsufficientInventory):
            production_service.create_production(tomato_soup.id, 5, TENANT, BRANCH)

        assert _snapshot(test_db) == before
        assert test_db().query(Production).count() == 0
        assert test_db().query(ProductionIngredient).count() == 0
        assert test_db().query(StockUsageHistory).count() == 0

    def test_conservation_of_cost(self, test_db, tomato_soup, tomato_batches):
        result = production_service.create_production(
            tomato_soup.id, 10, TENANT, BRANCH, quantity_produced=7
        )

        session = test_db()
        usages = (
            session.query(ProductionIngredient)
            .filter(ProductionIngredient.production_id == result["production_id"])
            .all()
        )
        production = session.get(Production, result["production_id"])

        assert sum((u.cost_used for u in usages), Decimal("0")) == production.total_cost
        assert float(production.unit_cost) * production.quantity_produced == pytest.approx(
            float(production.total_cost), abs=1e-3
        )

    def test_quantity_produced_drives_scaling(self, test_db, tomato_soup, tomato_batches):
        """Actual output of 5 L uses half the recipe: 1 kg, all from batch A."""
        batch_a, batch_b = tomato_batches

        result = production_service.create_production(
            tomato_soup.id, 10, TENANT, BRANCH, quantity_produced=5
        )

        assert result["planned_quantity"] == 10
        assert result["quantity_produced"] == 5
        assert result["total_cost"] == Decimal("2")
        assert result["unit_cost"] == Decimal("0.4000")
        after = _snapshot(test_db)
        assert after[batch_a.id] == pytest.approx(0.0)
        assert after[batch_b.id] == pytest.approx(5.0)

    def test_zero_output_has_zero_unit_cost(self, test_db, tomato_soup, tomato_batches):
        result = production_service.create_production(
            tomato_soup.id, 10, TENANT, BRANCH, quantity_produced=0
        )

        assert result["total_cost"] == Decimal("0")
        assert result["unit_cost"] == Decimal("0")
        assert result["ingredient_usage"] == []

    def test_optional_ingredient_skipped(self, test_db, soup_with_garnish, tomato_batches):
        result = production_service.create_production(soup_with_garnish.id, 10, TENANT, BRANCH)

        names = [usage["ingredient_name"] for usage in result["ingredient_usage"]]
        assert names == ["Tomatoes"]
        assert result["total_cost"] == Decimal("5")

    def test_records_stock_usage_history(self, test_db, tomato_soup, tomato_batches):
        result = production_service.create_production(tomato_soup.id, 10, TENANT, BRANCH)

        history = test_db().query(StockUsageHistory).all()
        assert len(history) == 1
        assert history[0].usage_type == "RECIPE_CONSUMPTION"
        assert history[0].production_id == result["production_id"]
        assert history[0].total_quantity_before == pytest.approx(6.0)
        assert history[0].total_quantity_after == pytest.approx(4.0)

    def test_default_batch_number_format(self, test_db, tomato_soup, tomato_batches):
        result = production_service.create_production(tomato_soup.id, 1, TENANT, BRANCH)

        prefix, day, time_part = result["batch_number"].split("-")
        assert prefix == "TOM"
        assert len(day) == 8 and day.isdigit()
        assert len(time_part) == 4 and time_part.isdigit()

    def test_default_batch_numbers_stay_unique(self, test_db, tomato_soup, tomato_batches, monkeypatch):
        monkeypatch.setattr(
            production_service, "_default_batch_number", lambda name: "TOM-20240101-0900"
        )

        first = production_service.create_production(tomato_soup.id, 1, TENANT, BRANCH)
        second = production_service.create_production(tomato_soup.id, 1, TENANT, BRANCH)

        assert first["batch_number"] == "TOM-20240101-0900"
        assert second["batch_number"] == "TOM-20240101-0900-2"

    def test_explicit_duplicate_batch_number_rejected(self, test_db, tomato_soup, tomato_batches):
        production_service.create_production(tomato_soup.id, 1, TENANT, BRANCH, batch_number="LOT-1")

        with pytest.raises(ValidationError):
            production_service.create_production(
                tomato_soup.id, 1, TENANT, BRANCH, batch_number="LOT-1"
            )

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"planned_quantity": 0},
            {"planned_quantity": -1},
            {"planned_quantity": 1, "quantity_produced": -1},
            {"planned_quantity": 1, "quality_rating": 6},
        ],
    )
    def test_invalid_input_rejected(self, test_db, tomato_soup, kwargs):
        kwargs = dict(kwargs)
        planned = kwargs.pop("planned_quantity")
        with pytest.raises(ValidationError):
            production_service.create_production(tomato_soup.id, planned, TENANT, BRANCH, **kwargs)

    def test_unknown_recipe(self, test_db):
        with pytest.raises(RecipeNotFound):
            production_service.create_production(999, 1, TENANT, BRANCH)

    def test_other_tenant_recipe_not_found(self, test_db, tomato_soup, tomato_batches):
        with pytest.raises(RecipeNotFound):
            production_service.create_production(tomato_soup.id, 1, "tenant-2", BRANCH)

    def test_caller_session_shares_transaction(self, test_db, tomato_soup, tomato_batches):
        """A caller rolling back its session undoes the whole production."""
        before = _snapshot(test_db)

        with pytest.raises(RuntimeError):
            with session_scope() as session:
                production_service.create_production(
                    tomato_soup.id, 10, TENANT, BRANCH, session=session
                )
                raise RuntimeError("abort")

        assert _snapshot(test_db) == before
        assert test_db().query(Production).count() == 0


# =============================================================================
# History queries
# =============================================================================


class TestProductionQueries:
    def test_get_production_includes_usage(self, test_db, tomato_soup, tomato_batches):
        created = production_service.create_production(tomato_soup.id, 10, TENANT, BRANCH)

        production = production_service.get_production(created["production_id"], TENANT)

        assert production["recipe_name"] == "Tomato Soup"
        assert len(production["ingredient_usage"]) == 1
        assert production["waste_logs"] == []

    def test_get_production_other_tenant(self, test_db, tomato_soup, tomato_batches):
        created = production_service.create_production(tomato_soup.id, 1, TENANT, BRANCH)

        with pytest.raises(ProductionNotFound):
            production_service.get_production(created["production_id"], "tenant-2")

    def test_get_productions_filters_and_paginates(self, test_db, tomato_soup, tomato_batches):
        for _ in range(3):
            production_service.create_production(tomato_soup.id, 1, TENANT, BRANCH)

        page = production_service.get_productions(
            TENANT, BRANCH, recipe_id=tomato_soup.id, pagination=PaginationParams(page=1, per_page=2)
        )

        assert page.total == 3
        assert len(page.items) == 2
        assert page.has_next is True

    def test_get_productions_date_range(self, test_db, tomato_soup, tomato_batches):
        production_service.create_production(
            tomato_soup.id, 1, TENANT, BRANCH, production_date=datetime(2024, 1, 10, 12, 0)
        )
        production_service.create_production(
            tomato_soup.id, 1, TENANT, BRANCH, production_date=datetime(2024, 2, 10, 12, 0)
        )

        page = production_service.get_productions(
            TENANT, date_from=date(2024, 1, 10), date_to=date(2024, 1, 10)
        )

        assert page.total == 1

    def test_analytics(self, test_db, tomato_soup, tomato_batches):
        production_service.create_production(tomato_soup.id, 10, TENANT, BRANCH, quality_rating=4)

        analytics = production_service.get_production_analytics(TENANT, BRANCH)

        assert analytics["summary"]["total_productions"] == 1
        assert analytics["top_recipes"][0]["recipe_id"] == tomato_soup.id
        assert len(analytics["recent_productions"]) == 1
