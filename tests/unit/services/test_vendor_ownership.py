"""
Unit tests for vendor ownership checks.
"""

import pytest
from structlog.testing import capture_logs

from conftest import make_order
from order_agent.services.vendor_ownership import belongs_to_vendor, filter_by_vendor, ownership_evidence


class TestBelongsToVendor:
    """Tests for the single-order ownership decision."""

    def test_order_meta_match(self) -> None:
        assert belongs_to_vendor(make_order(1, vendor_id="7"), "7") is True

    def test_numeric_and_string_ids_are_equal(self) -> None:
        """42 and "42" are the same vendor, in both directions."""
        assert belongs_to_vendor(make_order(1, vendor_id=42), "42") is True
        assert belongs_to_vendor(make_order(1, vendor_id="42"), 42) is True

    @pytest.mark.parametrize(
        "key",
        ["_dokan_vendor_id", "dokan_vendor_id", "_vendor_id", "vendor_id", "_store_id", "store_owner_id"],
    )
    def test_every_order_meta_alias(self, key: str) -> None:
        order = make_order(1, meta_data=[{"key": key, "value": "7"}])
        assert belongs_to_vendor(order, "7") is True

    def test_unknown_meta_key_is_not_evidence(self) -> None:
        order = make_order(1, meta_data=[{"key": "_customer_user", "value": "7"}])
        assert belongs_to_vendor(order, "7") is False

    def test_line_item_meta(self) -> None:
        order = make_order(1, line_items=[{"id": 1, "meta_data": [{"key": "_vendor_id", "value": 7}]}])
        assert ownership_evidence(order, "7") == "line_item_meta"

    def test_line_item_vendor_id(self) -> None:
        order = make_order(1, line_items=[{"id": 1, "vendor_id": 7}])
        assert ownership_evidence(order, "7") == "line_item_vendor_id"

    @pytest.mark.parametrize("field", ["store_id", "vendor_id", "seller_id", "store_owner_id", "dokan_vendor_id"])
    def test_top_level_fields(self, field: str) -> None:
        order = make_order(1, **{field: 7})
        assert ownership_evidence(order, "7") == f"field:{field}"

    def test_other_vendor(self) -> None:
        assert belongs_to_vendor(make_order(1, vendor_id="8"), "7") is False

    def test_no_attribution(self) -> None:
        assert belongs_to_vendor(make_order(1), "7") is False

    @pytest.mark.parametrize("vendor_id", [None, "", "   "])
    def test_missing_vendor_id_is_never_owned(self, vendor_id) -> None:
        assert belongs_to_vendor(make_order(1, vendor_id="7"), vendor_id) is False

    @pytest.mark.parametrize("order", [None, "order", 42, ["not", "a", "dict"]])
    def test_malformed_order_is_never_owned(self, order) -> None:
        assert belongs_to_vendor(order, "7") is False

    def test_malformed_nested_records_do_not_raise(self) -> None:
        order = make_order(1, meta_data="garbage", line_items=[None, "x", {"meta_data": 5}])
        assert belongs_to_vendor(order, "7") is False

    def test_empty_values_never_match(self) -> None:
        order = make_order(1, meta_data=[{"key": "_dokan_vendor_id", "value": ""}])
        assert belongs_to_vendor(order, "0") is False

    def test_rejection_is_audit_logged(self) -> None:
        with capture_logs() as logs:
            belongs_to_vendor(make_order(55, vendor_id="8"), "7")

        rejections = [entry for entry in logs if entry.get("security") and entry.get("order_id") == 55]
        assert rejections
        assert rejections[0]["log_level"] == "warning"


class TestFilterByVendor:
    """Tests for batch ownership filtering."""

    def test_keeps_only_owned_orders_in_order(self) -> None:
        orders = [make_order(1, vendor_id="7"), make_order(2, vendor_id="8"), make_order(3, vendor_id=7)]
        assert [order["id"] for order in filter_by_vendor(orders, "7")] == [1, 3]

    def test_blocked_ids_are_logged(self) -> None:
        orders = [make_order(200, vendor_id="8"), make_order(201, vendor_id="7")]
        with capture_logs() as logs:
            filter_by_vendor(orders, "7")

        blocked = [entry for entry in logs if "blocked_order_ids" in entry]
        assert len(blocked) == 1
        assert blocked[0]["blocked_order_ids"] == [200]
        assert blocked[0]["security"] is True

    @pytest.mark.parametrize("orders, vendor_id", [(None, "7"), ("orders", "7"), ([make_order(1, vendor_id="7")], "")])
    def test_invalid_parameters_yield_empty_list(self, orders, vendor_id) -> None:
        assert filter_by_vendor(orders, vendor_id) == []

    def test_empty_input(self) -> None:
        assert filter_by_vendor([], "7") == []
