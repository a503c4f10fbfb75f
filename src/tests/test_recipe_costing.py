"""Tests for recipe costing and recipe CRUD in recipe_service."""

from datetime import date
from decimal import Decimal

import pytest

from kitchzero.services import production_service, recipe_service
from kitchzero.services.exceptions import RecipeInUse, RecipeNotFound, ValidationError

TENANT = "tenant-1"
BRANCH = "branch-1"


def _recipe_data(**overrides):
    data = {
        "name": "Tomato Soup",
        "category": "Soups",
        "yield_quantity": 10,
        "yield_unit": "L",
        "ingredients": [
            {"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 2.0, "unit": "KG"},
        ],
    }
    data.update(overrides)
    return data


class TestCalculateRecipeCost:
    """Tests for calculate_recipe_cost()."""

    def test_averages_recent_batch_costs(self, test_db, make_batch):
        make_batch(cost="2.00")
        make_batch(cost="4.00")

        cost = recipe_service.calculate_recipe_cost(
            [{"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 2.0}],
            TENANT,
            BRANCH,
        )

        # avg(2, 4) * 2 kg
        assert cost == Decimal("6.0000")

    def test_uses_only_five_most_recent_batches(self, test_db, make_batch):
        make_batch(cost="100.00")  # oldest, outside the sample
        for _ in range(5):
            make_batch(cost="1.00")

        cost = recipe_service.calculate_recipe_cost(
            [{"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 1.0}],
            TENANT,
            BRANCH,
        )

        assert cost == Decimal("1.0000")

    def test_depleted_batches_still_count(self, test_db, make_batch):
        make_batch(quantity=0.0, cost="3.00")

        cost = recipe_service.calculate_recipe_cost(
            [{"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 1.0}],
            TENANT,
            BRANCH,
        )

        assert cost == Decimal("3.0000")

    def test_missing_history_contributes_zero(self, test_db, make_batch):
        make_batch(cost="2.00")

        cost = recipe_service.calculate_recipe_cost(
            [
                {"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 1.0},
                {"ingredient_name": "Saffron", "category": "Spices", "quantity": 1.0},
            ],
            TENANT,
            BRANCH,
        )

        assert cost == Decimal("2.0000")

    def test_zero_quantity_ingredient_is_skipped(self, test_db, make_batch):
        make_batch(cost="2.00")

        cost = recipe_service.calculate_recipe_cost(
            [{"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 0}],
            TENANT,
            BRANCH,
        )

        assert cost == Decimal("0.0000")

    def test_other_tenant_history_ignored(self, test_db, make_batch):
        make_batch(cost="9.00", tenant_id="tenant-2")

        cost = recipe_service.calculate_recipe_cost(
            [{"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 1.0}],
            TENANT,
        )

        assert cost == Decimal("0.0000")


class TestRecipeCrud:
    """Tests for recipe create/read/update/delete."""

    def test_create_computes_cost_per_unit(self, test_db, make_batch):
        make_batch(cost="3.00")

        recipe = recipe_service.create_recipe(_recipe_data(), TENANT, BRANCH, created_by="chef")

        assert recipe.id is not None
        assert recipe.cost_per_unit == Decimal("6.0000")
        assert recipe.yield_unit == "L"
        assert [i.ingredient_name for i in recipe.ingredients] == ["Tomatoes"]
        assert recipe.ingredients[0].sort_order == 1

    def test_create_rejects_non_positive_yield(self, test_db):
        with pytest.raises(ValidationError):
            recipe_service.create_recipe(_recipe_data(yield_quantity=0), TENANT, BRANCH)

    def test_update_recomputes_cost_when_ingredients_change(self, test_db, make_batch):
        make_batch(cost="3.00")
        make_batch(item_name="Onion", category="Vegetables", cost="1.00")
        recipe = recipe_service.create_recipe(_recipe_data(), TENANT, BRANCH)

        updated = recipe_service.update_recipe(
            recipe.id,
            TENANT,
            {
                "ingredients": [
                    {"ingredient_name": "Onion", "category": "Vegetables", "quantity": 3.0, "unit": "KG"},
                ]
            },
        )

        assert updated.cost_per_unit == Decimal("3.0000")
        assert [i.ingredient_name for i in updated.ingredients] == ["Onion"]

    def test_update_without_ingredients_keeps_cost(self, test_db, make_batch):
        make_batch(cost="3.00")
        recipe = recipe_service.create_recipe(_recipe_data(), TENANT, BRANCH)

        updated = recipe_service.update_recipe(recipe.id, TENANT, {"description": "Classic"})

        assert updated.description == "Classic"
        assert updated.cost_per_unit == Decimal("6.0000")

    def test_get_recipe_other_tenant_not_found(self, test_db):
        recipe = recipe_service.create_recipe(_recipe_data(), TENANT, BRANCH)

        with pytest.raises(RecipeNotFound):
            recipe_service.get_recipe(recipe.id, "tenant-2")

    def test_shared_recipe_visible_from_every_branch(self, test_db):
        shared = recipe_service.create_recipe(_recipe_data(name="House Bread"), TENANT, None)
        recipe_service.create_recipe(_recipe_data(name="Branch Special"), TENANT, "branch-2")

        result = recipe_service.get_recipes(TENANT, BRANCH)

        assert [r.id for r in result.items] == [shared.id]

    def test_search_matches_ingredient_name(self, test_db):
        recipe_service.create_recipe(_recipe_data(), TENANT, BRANCH)
        recipe_service.create_recipe(
            _recipe_data(
                name="Pancakes",
                ingredients=[{"ingredient_name": "Flour", "category": "Dry", "quantity": 1, "unit": "KG"}],
            ),
            TENANT,
            BRANCH,
        )

        result = recipe_service.get_recipes(TENANT, BRANCH, search="flour")

        assert [r.name for r in result.items] == ["Pancakes"]

    def test_categories_are_distinct_and_sorted(self, test_db):
        recipe_service.create_recipe(_recipe_data(category="Soups"), TENANT, BRANCH)
        recipe_service.create_recipe(_recipe_data(name="Cake", category="Desserts"), TENANT, BRANCH)
        recipe_service.create_recipe(_recipe_data(name="Stew", category="Soups"), TENANT, BRANCH)

        assert recipe_service.get_recipe_categories(TENANT, BRANCH) == ["Desserts", "Soups"]

    def test_delete_recipe(self, test_db):
        recipe = recipe_service.create_recipe(_recipe_data(), TENANT, BRANCH)

        assert recipe_service.delete_recipe(recipe.id, TENANT) is True
        with pytest.raises(RecipeNotFound):
            recipe_service.get_recipe(recipe.id, TENANT)

    def test_delete_recipe_with_productions_refused(self, test_db, tomato_soup, tomato_batches):
        production_service.create_production(tomato_soup.id, 10, TENANT, BRANCH)

        with pytest.raises(RecipeInUse) as exc_info:
            recipe_service.delete_recipe(tomato_soup.id, TENANT)

        assert exc_info.value.production_count == 1


class TestCheckIngredientAvailability:
    """Tests for check_ingredient_availability()."""

    def test_reports_shortage(self, test_db, tomato_soup, make_batch):
        make_batch(quantity=1.0, expiry_date=date(2024, 1, 1))

        report = recipe_service.check_ingredient_availability(tomato_soup.id, TENANT, BRANCH)

        assert report == [
            {
                "ingredient_name": "Tomatoes",
                "category": "Vegetables",
                "unit": "KG",
                "required": 2.0,
                "available": 1.0,
                "shortage": 1.0,
                "is_optional": False,
                "sufficient": False,
            }
        ]

    def test_multiplier_scales_requirement(self, test_db, tomato_soup, tomato_batches):
        report = recipe_service.check_ingredient_availability(
            tomato_soup.id, TENANT, BRANCH, multiplier=2.5
        )

        assert report[0]["required"] == pytest.approx(5.0)
        assert report[0]["sufficient"] is True

    def test_repeated_ingredient_summed(self, test_db, make_batch):
        recipe = recipe_service.create_recipe(
            {
                "name": "Salsa",
                "yield_quantity": 1,
                "yield_unit": "L",
                "ingredients": [
                    {"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 2.0, "unit": "KG"},
                    {"ingredient_name": "Onion", "category": "Vegetables", "quantity": 0.5, "unit": "KG"},
                    {"ingredient_name": "Tomatoes", "category": "Vegetables", "quantity": 1.5, "unit": "KG"},
                    {
                        "ingredient_name": "Tomatoes",
                        "category": "Vegetables",
                        "quantity": 9.0,
                        "unit": "KG",
                        "is_optional": True,
                    },
                ],
            },
            TENANT,
            BRANCH,
        )
        make_batch(quantity=3.0)

        report = recipe_service.check_ingredient_availability(recipe.id, TENANT, BRANCH)

        assert [entry["ingredient_name"] for entry in report] == ["Tomatoes", "Onion"]
        assert report[0]["required"] == pytest.approx(3.5)
        assert report[0]["shortage"] == pytest.approx(0.5)
        assert report[0]["sufficient"] is False
