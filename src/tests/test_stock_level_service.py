"""Tests for stock thresholds, stock status and usage history."""

from decimal import Decimal

import pytest

from kitchzero.models import StockStatus, UsageType
from kitchzero.services import inventory_item_service, stock_level_service
from kitchzero.services.exceptions import ValidationError

TENANT = "tenant-1"
BRANCH = "branch-1"


class TestUpdateStockLevels:
    def test_creates_then_updates(self, test_db):
        created = stock_level_service.update_stock_levels(
            "Tomatoes", "Vegetables", "kg", {"min_stock_level": 2.0, "max_stock_level": 20.0}, TENANT, BRANCH
        )
        updated = stock_level_service.update_stock_levels(
            "Tomatoes", "Vegetables", "KG", {"reorder_quantity": 10.0}, TENANT, BRANCH
        )

        assert updated.id == created.id
        assert updated.unit == "KG"
        assert updated.min_stock_level == 2.0
        assert updated.reorder_quantity == 10.0

    @pytest.mark.parametrize(
        "stock_data",
        [
            {"min_stock_level": -1},
            {"safety_stock": -0.5},
            {"min_stock_level": 10, "max_stock_level": 5},
            {"colour": "red"},
        ],
    )
    def test_invalid_thresholds_rejected(self, test_db, stock_data):
        with pytest.raises(ValidationError):
            stock_level_service.update_stock_levels(
                "Tomatoes", "Vegetables", "KG", stock_data, TENANT, BRANCH
            )

    def test_merged_max_below_existing_min_rejected(self, test_db):
        stock_level_service.update_stock_levels(
            "Tomatoes", "Vegetables", "KG", {"min_stock_level": 10.0}, TENANT, BRANCH
        )

        with pytest.raises(ValidationError):
            stock_level_service.update_stock_levels(
                "Tomatoes", "Vegetables", "KG", {"max_stock_level": 5.0}, TENANT, BRANCH
            )

    def test_get_stock_level_none_when_unset(self, test_db):
        assert stock_level_service.get_stock_level("Basil", "Herbs", "KG", TENANT, BRANCH) is None


class TestStockManagementData:
    def test_status_per_product(self, test_db, make_batch):
        make_batch(item_name="Tomatoes", quantity=1.0, supplier="Farm Co")
        make_batch(item_name="Onion", quantity=50.0)
        make_batch(item_name="Garlic", quantity=0.0)
        stock_level_service.update_stock_levels(
            "Tomatoes", "Vegetables", "KG", {"min_stock_level": 2.0}, TENANT, BRANCH
        )
        stock_level_service.update_stock_levels(
            "Onion", "Vegetables", "KG", {"min_stock_level": 5.0, "max_stock_level": 40.0}, TENANT, BRANCH
        )

        data = stock_level_service.get_stock_management_data(TENANT, BRANCH)
        status = {item["product_name"]: item["stock_status"] for item in data["items"]}

        assert status == {
            "Tomatoes": StockStatus.LOW.value,
            "Onion": StockStatus.HIGH.value,
            "Garlic": StockStatus.OUT.value,
        }
        assert data["categories"] == ["Vegetables"]
        tomatoes = next(i for i in data["items"] if i["product_name"] == "Tomatoes")
        assert tomatoes["suppliers"] == ["Farm Co"]

    def test_low_stock_skips_inactive(self, test_db, make_batch):
        make_batch(item_name="Tomatoes", quantity=1.0)
        make_batch(item_name="Onion", quantity=1.0)
        stock_level_service.update_stock_levels(
            "Tomatoes", "Vegetables", "KG", {"min_stock_level": 2.0}, TENANT, BRANCH
        )
        stock_level_service.update_stock_levels(
            "Onion", "Vegetables", "KG", {"min_stock_level": 2.0, "is_active": False}, TENANT, BRANCH
        )

        low = stock_level_service.get_low_stock_products(TENANT, BRANCH)

        assert [item["product_name"] for item in low] == ["Tomatoes"]

    def test_current_quantity_sums_batches(self, test_db, make_batch):
        make_batch(quantity=1.5)
        make_batch(quantity=2.0)
        make_batch(quantity=9.0, tenant_id="tenant-2")

        assert stock_level_service.get_current_stock_quantity(
            "Tomatoes", "Vegetables", TENANT, BRANCH
        ) == pytest.approx(3.5)

    def test_current_quantity_matches_fifo_selection(self, test_db, make_batch):
        make_batch(quantity=2.0, unit="KG")
        make_batch(quantity=500.0, unit="G")

        current = stock_level_service.get_current_stock_quantity("Tomatoes", "Vegetables", TENANT, BRANCH)

        assert current == pytest.approx(
            inventory_item_service.get_total_available("Tomatoes", "Vegetables", TENANT, BRANCH)
        )
        data = stock_level_service.get_stock_management_data(TENANT, BRANCH)
        assert len(data["items"]) == 1
        assert data["items"][0]["current_quantity"] == pytest.approx(current)


class TestRecordStockUsage:
    def test_records_before_and_after(self, test_db, make_batch):
        make_batch(quantity=3.0)

        usage = stock_level_service.record_stock_usage(
            "Tomatoes", "Vegetables", "KG", 1.0, Decimal("3.00"), UsageType.ADJUSTMENT, TENANT, BRANCH,
            reason="Recount",
        )

        assert usage.total_quantity_after == 3.0
        assert usage.total_quantity_before == 4.0
        assert usage.usage_type == "ADJUSTMENT"
        assert stock_level_service.get_stock_level("Tomatoes", "Vegetables", "KG", TENANT, BRANCH) is not None

    def test_untracked_product_records_nothing(self, test_db, make_batch):
        stock_level_service.update_stock_levels(
            "Tomatoes", "Vegetables", "KG", {"track_stock": False}, TENANT, BRANCH
        )

        usage = stock_level_service.record_stock_usage(
            "Tomatoes", "Vegetables", "KG", 1.0, Decimal("3.00"), UsageType.WASTE, TENANT, BRANCH
        )

        assert usage is None
