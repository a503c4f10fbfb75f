"""Tests for inventory batch CRUD and reporting."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from kitchzero.services import inventory_item_service
from kitchzero.services.dto import PaginationParams
from kitchzero.services.exceptions import InventoryItemNotFound, ValidationError

TENANT = "tenant-1"
BRANCH = "branch-1"


def _item_data(**overrides):
    data = {
        "item_name": "Flour",
        "category": "Dry Goods",
        "quantity": 25.0,
        "unit": "kg",
        "cost": "0.80",
        "expiry_date": "2030-06-01",
    }
    data.update(overrides)
    return data


class TestCreateInventoryItem:
    def test_create_normalizes_fields(self, test_db):
        item = inventory_item_service.create_inventory_item(
            _item_data(supplier="  Mill Co  "), TENANT, BRANCH
        )

        assert item.id is not None
        assert item.unit == "KG"
        assert item.cost == Decimal("0.80")
        assert item.expiry_date == date(2030, 6, 1)
        assert item.purchase_date == date.today()
        assert item.supplier == "Mill Co"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"item_name": ""},
            {"quantity": -1},
            {"cost": -0.5},
            {"unit": "BUSHEL"},
            {"expiry_date": None},
        ],
    )
    def test_invalid_data_rejected(self, test_db, overrides):
        with pytest.raises(ValidationError):
            inventory_item_service.create_inventory_item(_item_data(**overrides), TENANT, BRANCH)

    def test_unparseable_date_rejected(self, test_db):
        with pytest.raises(ValidationError):
            inventory_item_service.create_inventory_item(
                _item_data(expiry_date="next tuesday"), TENANT, BRANCH
            )


class TestUpdateInventoryItem:
    def test_partial_update(self, test_db):
        item = inventory_item_service.create_inventory_item(_item_data(), TENANT, BRANCH)

        updated = inventory_item_service.update_inventory_item(
            item.id, TENANT, {"quantity": 20, "expiry_date": "2030-07-01"}
        )

        assert updated.quantity == 20.0
        assert updated.expiry_date == date(2030, 7, 1)

    def test_cost_is_immutable(self, test_db):
        item = inventory_item_service.create_inventory_item(_item_data(), TENANT, BRANCH)

        with pytest.raises(ValidationError) as exc_info:
            inventory_item_service.update_inventory_item(item.id, TENANT, {"cost": "1.00"})

        assert "Cost cannot be changed" in str(exc_info.value)

    def test_negative_quantity_rejected(self, test_db):
        item = inventory_item_service.create_inventory_item(_item_data(), TENANT, BRANCH)

        with pytest.raises(ValidationError):
            inventory_item_service.update_inventory_item(item.id, TENANT, {"quantity": -2})

    @pytest.mark.parametrize(
        "updates,message",
        [
            ({"quantity": "abc"}, "Quantity: Must be a valid number"),
            ({"supplier": 7}, "supplier: Must be text"),
        ],
    )
    def test_malformed_values_rejected(self, test_db, updates, message):
        item = inventory_item_service.create_inventory_item(_item_data(), TENANT, BRANCH)

        with pytest.raises(ValidationError) as exc_info:
            inventory_item_service.update_inventory_item(item.id, TENANT, updates)

        assert message in exc_info.value.errors
        assert inventory_item_service.get_inventory_item(item.id, TENANT).quantity == item.quantity

    def test_unknown_field_rejected(self, test_db):
        item = inventory_item_service.create_inventory_item(_item_data(), TENANT, BRANCH)

        with pytest.raises(ValidationError):
            inventory_item_service.update_inventory_item(item.id, TENANT, {"tenant_id": "x"})

    def test_other_tenant_not_found(self, test_db):
        item = inventory_item_service.create_inventory_item(_item_data(), TENANT, BRANCH)

        with pytest.raises(InventoryItemNotFound):
            inventory_item_service.update_inventory_item(item.id, "tenant-2", {"quantity": 1})


class TestDeleteInventoryItem:
    def test_delete(self, test_db):
        item = inventory_item_service.create_inventory_item(_item_data(), TENANT, BRANCH)

        assert inventory_item_service.delete_inventory_item(item.id, TENANT) is True
        with pytest.raises(InventoryItemNotFound):
            inventory_item_service.get_inventory_item(item.id, TENANT)

    def test_delete_missing(self, test_db):
        with pytest.raises(InventoryItemNotFound):
            inventory_item_service.delete_inventory_item(42, TENANT)


class TestInventoryQueries:
    def test_list_ordered_by_expiry_with_pagination(self, test_db):
        late = inventory_item_service.create_inventory_item(
            _item_data(expiry_date="2031-01-01"), TENANT, BRANCH
        )
        early = inventory_item_service.create_inventory_item(
            _item_data(expiry_date="2030-01-01"), TENANT, BRANCH
        )

        page = inventory_item_service.get_inventory_items(
            TENANT, BRANCH, pagination=PaginationParams(page=1, per_page=1)
        )

        assert page.total == 2
        assert [i.id for i in page.items] == [early.id]
        assert page.has_next is True
        assert late.id not in [i.id for i in page.items]

    def test_list_filters(self, test_db):
        inventory_item_service.create_inventory_item(_item_data(), TENANT, BRANCH)
        inventory_item_service.create_inventory_item(
            _item_data(item_name="Milk", category="Dairy", unit="L", quantity=4.0), TENANT, BRANCH
        )

        by_unit = inventory_item_service.get_inventory_items(TENANT, unit="l")
        by_search = inventory_item_service.get_inventory_items(TENANT, search="flo")
        low = inventory_item_service.get_inventory_items(TENANT, low_stock=True)

        assert [i.item_name for i in by_unit.items] == ["Milk"]
        assert [i.item_name for i in by_search.items] == ["Flour"]
        assert [i.item_name for i in low.items] == ["Milk"]

    def test_expiring_items(self, test_db):
        soon = inventory_item_service.create_inventory_item(
            _item_data(expiry_date=date.today() + timedelta(days=3)), TENANT, BRANCH
        )
        inventory_item_service.create_inventory_item(
            _item_data(expiry_date=date.today() + timedelta(days=30)), TENANT, BRANCH
        )
        inventory_item_service.create_inventory_item(
            _item_data(expiry_date=date.today() - timedelta(days=1)), TENANT, BRANCH
        )

        expiring = inventory_item_service.get_expiring_items(TENANT, BRANCH)

        assert [i.id for i in expiring] == [soon.id]

    def test_stats(self, test_db):
        inventory_item_service.create_inventory_item(_item_data(), TENANT, BRANCH)
        inventory_item_service.create_inventory_item(
            _item_data(item_name="Milk", category="Dairy", unit="L", quantity=4.0, cost="1.25"),
            TENANT,
            BRANCH,
        )

        stats = inventory_item_service.get_inventory_stats(TENANT, BRANCH)

        assert stats["total_items"] == 2
        assert stats["total_value"] == Decimal("25.0") * Decimal("0.80") + Decimal("4.0") * Decimal("1.25")
        assert stats["low_stock_count"] == 1
        assert stats["category_count"] == 2

    def test_by_item_aggregates_batches(self, test_db):
        inventory_item_service.create_inventory_item(_item_data(quantity=10.0), TENANT, BRANCH)
        inventory_item_service.create_inventory_item(
            _item_data(quantity=5.0, expiry_date="2030-01-01"), TENANT, BRANCH
        )

        rows = inventory_item_service.get_inventory_by_item(TENANT, BRANCH)

        assert len(rows) == 1
        assert rows[0]["total_quantity"] == 15.0
        assert rows[0]["batch_count"] == 2
        assert rows[0]["earliest_expiry"] == date(2030, 1, 1)
