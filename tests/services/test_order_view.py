"""Tests for filtered, sorted order views."""

import pytest

from src.errors.domain import ValidationError
from src.services.order_view import (
    OrderView,
    ViewParams,
    is_shippable,
    shipping_method,
)
from src.services.label_codec import decode
from tests.conftest import FIXED_NOW


def _ids(orders):
    return [order.id for order in orders]


@pytest.fixture
def view(resolver):
    return OrderView(resolver)


class TestSorting:
    """Tests for the display order."""

    def test_pending_sorted_by_days_left(self, view, order_factory):
        """A 3-day pending order sorts before a 5-day one."""
        orders = [
            order_factory(1, tags=["custom_due_date:2024-03-15"]),
            order_factory(2, tags=["custom_due_date:2024-03-13"]),
        ]
        assert _ids(view.render(orders, now=FIXED_NOW)) == [2, 1]

    def test_status_rank_first(self, view, order_factory):
        orders = [
            order_factory(1, tags=["shipped"]),
            order_factory(2, tags=["customer_confirmed"]),
            order_factory(3, tags=["order_ready"]),
            order_factory(4),
        ]
        rendered = view.render(orders, ViewParams(status="all"), now=FIXED_NOW)
        assert _ids(rendered) == [4, 3, 2, 1]

    def test_shipped_by_shipping_date(self, view, order_factory):
        orders = [
            order_factory(1, tags=["shipped"]),
            order_factory(2, tags=["shipped", "shipping_date:2024-03-08"]),
            order_factory(3, tags=["shipped", "shipping_date:2024-03-01"]),
        ]
        rendered = view.render(orders, ViewParams(status="shipped"), now=FIXED_NOW)
        assert _ids(rendered) == [3, 2, 1]

    def test_priority_before_regular_when_days_tie(self, view, order_factory):
        orders = [
            order_factory(1, tags=["custom_due_date:2024-03-12"]),
            order_factory(2, tags=["custom_due_date:2024-03-12", "priority"]),
        ]
        assert _ids(view.render(orders, now=FIXED_NOW)) == [2, 1]

    def test_pending_days_outrank_priority(self, view, order_factory):
        orders = [
            order_factory(1, tags=["custom_due_date:2024-03-20", "priority"]),
            order_factory(2, tags=["custom_due_date:2024-03-11"]),
        ]
        assert _ids(view.render(orders, now=FIXED_NOW)) == [2, 1]

    def test_priority_outranks_days_outside_pending(self, view, order_factory):
        orders = [
            order_factory(1, tags=["customer_confirmed", "custom_due_date:2024-03-11"]),
            order_factory(2, tags=["customer_confirmed", "custom_due_date:2024-03-20", "priority"]),
        ]
        rendered = view.render(orders, ViewParams(status="confirmed"), now=FIXED_NOW)
        assert _ids(rendered) == [2, 1]

    def test_id_breaks_ties(self, view, order_factory):
        orders = [order_factory(9), order_factory(3), order_factory(5)]
        assert _ids(view.render(orders, now=FIXED_NOW)) == [3, 5, 9]

    def test_removing_an_order_keeps_relative_order(self, view, order_factory):
        orders = [
            order_factory(1, tags=["custom_due_date:2024-03-15"]),
            order_factory(2, tags=["custom_due_date:2024-03-11"]),
            order_factory(3, tags=["custom_due_date:2024-03-13"]),
        ]
        full = _ids(view.render(orders, now=FIXED_NOW))
        partial = _ids(view.render(orders[:1] + orders[2:], now=FIXED_NOW))
        assert partial == [oid for oid in full if oid != 2]

    def test_render_is_repeatable(self, view, order_factory):
        orders = [order_factory(i, tags=["priority"] if i % 2 else []) for i in range(1, 8)]
        assert view.render(orders, now=FIXED_NOW) == view.render(orders, now=FIXED_NOW)


class TestFiltering:
    """Tests for the filter stage."""

    def test_deleted_excluded_even_under_all(self, view, order_factory):
        orders = [order_factory(1, tags=["deleted"]), order_factory(2, tags=["shipped"])]
        assert _ids(view.render(orders, ViewParams(status="all"), now=FIXED_NOW)) == [2]

    def test_deleted_excluded_even_when_touched(self, view, order_factory):
        orders = [order_factory(1, tags=["deleted"])]
        assert view.render(orders, now=FIXED_NOW, touched=[1]) == ()

    def test_touched_order_stays_in_old_bucket(self, view, order_factory):
        """A just-shipped order stays on the pending board during its grace window."""
        orders = [order_factory(1, tags=["shipped"]), order_factory(2)]
        assert _ids(view.render(orders, now=FIXED_NOW)) == [2]
        assert _ids(view.render(orders, now=FIXED_NOW, touched={1})) == [2, 1]

    def test_legacy_marker_counts_as_touched(self, view, order_factory):
        orders = [order_factory(1, tags=["shipped", "__status_just_updated"])]
        assert _ids(view.render(orders, now=FIXED_NOW)) == [1]

    def test_fulfilled_bucket_includes_paid(self, view, order_factory):
        orders = [
            order_factory(1, tags=["paid"]),
            order_factory(2, tags=["fulfilled"]),
            order_factory(3, tags=["shipped"]),
        ]
        rendered = view.render(orders, ViewParams(status="fulfilled"), now=FIXED_NOW)
        assert _ids(rendered) == [2, 1]

    def test_unknown_bucket_raises(self, view, order_factory):
        with pytest.raises(ValidationError):
            view.render([order_factory()], ViewParams(status="archived"), now=FIXED_NOW)

    @pytest.mark.parametrize("query", ["#1002", "salma", "0111"])
    def test_search(self, view, order_factory, query):
        orders = [
            order_factory(1001),
            order_factory(
                1002,
                customer={"first_name": "Salma", "last_name": "Hany", "phone": "01112223333"},
            ),
        ]
        assert _ids(view.render(orders, ViewParams(search=query), now=FIXED_NOW)) == [1002]

    def test_items_filter(self, view, order_factory):
        orders = [
            order_factory(1),
            order_factory(2, line_items=[{"title": "Tote Bag", "variant_title": "Black"}]),
        ]
        params = ViewParams(items={"Tote Bag (Black)"})
        assert _ids(view.render(orders, params, now=FIXED_NOW)) == [2]

    def test_items_filter_needs_variant_in_key(self, view, order_factory):
        orders = [
            order_factory(1, line_items=[{"title": "Tote Bag"}]),
            order_factory(2, line_items=[{"title": "Tote Bag", "variant_title": "Black"}]),
        ]
        params = ViewParams(items={"Tote Bag"})
        assert _ids(view.render(orders, params, now=FIXED_NOW)) == [1]
        assert _ids(view.render(orders, ViewParams(items={"Tote Bag - Black"}), now=FIXED_NOW)) == []

    def test_province_filter_with_unknown(self, view, order_factory):
        orders = [
            order_factory(1),
            order_factory(2, shipping_address={"province": "Giza"}),
            order_factory(3, shipping_address=None),
        ]
        params = ViewParams(provinces={"Giza", "Unknown"})
        assert _ids(view.render(orders, params, now=FIXED_NOW)) == [2, 3]

    def test_day_range_filter(self, view, order_factory):
        orders = [
            order_factory(1, tags=["custom_due_date:2024-03-08"]),
            order_factory(2, tags=["custom_due_date:2024-03-10"]),
            order_factory(3, tags=["custom_due_date:2024-03-25"]),
        ]
        params = ViewParams(day_ranges={"overdue", "today"})
        assert _ids(view.render(orders, params, now=FIXED_NOW)) == [1, 2]

    def test_shipping_method_filter(self, view, order_factory):
        orders = [
            order_factory(1),
            order_factory(2, tags=["shipping_method:scooter"]),
            order_factory(3, tags=["shipping_method:other_company"]),
        ]
        params = ViewParams(shipping_methods={"Scooter", "Other Company"})
        assert _ids(view.render(orders, params, now=FIXED_NOW)) == [2, 3]

    def test_rush_type_filter(self, view, order_factory):
        orders = [
            order_factory(1),
            order_factory(2, line_items=[{"title": "Rush My Order [3 days]"}]),
        ]
        params = ViewParams(rush_types={"Rushed"})
        assert _ids(view.render(orders, params, now=FIXED_NOW)) == [2]

    def test_params_coerce_to_frozensets(self):
        params = ViewParams(items=["a", "a"], provinces=None)
        assert params.items == frozenset({"a"})
        assert params.provinces == frozenset()


class TestHelpers:
    """Tests for view helpers."""

    @pytest.mark.parametrize(
        "label,expected",
        [
            (None, "Shipblu"),
            ("shipping_method:Scooter", "Scooter"),
            ("shipping_method:pickup", "Pickup"),
            ("shipping_method:other-company", "Other Company"),
            ("shipping_method:carrier-pigeon", "Shipblu"),
        ],
    )
    def test_shipping_method(self, label, expected):
        assert shipping_method(decode([label] if label else [])) == expected

    def test_shippable_needs_full_location(self, order_factory):
        full = ["mylerz_city_id:1", "mylerz_neighborhood_id:2", "mylerz_subzone_id:3"]
        assert is_shippable(order_factory(tags=full))
        assert not is_shippable(order_factory(tags=full[:2]))

    def test_instapay_needs_payment(self, order_factory):
        full = ["mylerz_city_id:1", "mylerz_neighborhood_id:2", "mylerz_subzone_id:3"]
        unpaid = order_factory(tags=full, payment_gateway_names=["InstaPay"])
        paid = order_factory(tags=[*full, "instapay_paid"], payment_gateway_names=["InstaPay"])
        assert not is_shippable(unpaid)
        assert is_shippable(paid)


class TestSummaries:
    """Tests for summary helpers."""

    def test_item_summary_defaults_to_pending(self, view, order_factory):
        orders = [
            order_factory(1, line_items=[{"title": "Wallet", "quantity": 2}]),
            order_factory(2, line_items=[{"title": "Belt"}, {"title": "Wallet"}]),
            order_factory(3, tags=["shipped"], line_items=[{"title": "Belt", "quantity": 5}]),
            order_factory(4, tags=["deleted"], line_items=[{"title": "Belt", "quantity": 5}]),
        ]
        summary = view.item_summary(all_orders=orders)
        assert summary["items"] == [
            {"title": "Wallet", "quantity": 3},
            {"title": "Belt", "quantity": 1},
        ]
        assert summary["total_orders"] == 2
        assert summary["total_pieces"] == 4

    def test_item_summary_keys_variants_in_parentheses(self, view, order_factory):
        orders = [order_factory(1, line_items=[{"title": "Tote Bag", "variant_title": "Black"}])]
        summary = view.item_summary(all_orders=orders)
        assert summary["items"] == [{"title": "Tote Bag (Black)", "quantity": 1}]

    def test_item_summary_of_selection(self, view, order_factory):
        selected = [order_factory(3, tags=["shipped"], line_items=[{"title": "Belt"}])]
        summary = view.item_summary(selected, all_orders=[])
        assert summary["total_orders"] == 1

    def test_province_summary(self, view, order_factory):
        orders = [
            order_factory(1),
            order_factory(2),
            order_factory(3, shipping_address={"province": "Giza"}),
        ]
        assert view.province_summary(orders) == [("Cairo", 2), ("Giza", 1)]

    def test_day_range_summary_in_fixed_order(self, view, order_factory):
        orders = [
            order_factory(1, tags=["custom_due_date:2024-03-25"]),
            order_factory(2, tags=["custom_due_date:2024-03-01"]),
        ]
        assert view.day_range_summary(orders, now=FIXED_NOW) == [("overdue", 1), ("+7 days", 1)]

    def test_method_and_rush_summaries(self, view, order_factory):
        orders = [
            order_factory(1),
            order_factory(2, tags=["shipping_method:pickup"],
                          line_items=[{"title": "Rush My Order [3 days]"}]),
        ]
        assert view.shipping_method_summary(orders) == [("Shipblu", 1), ("Pickup", 1)]
        assert view.rush_type_summary(orders) == [("Rushed", 1), ("Standard", 1)]
