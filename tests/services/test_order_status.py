"""Tests for the order status state machine."""

from datetime import datetime, timezone

import pytest

from src.errors.domain import ValidationError
from src.models.status import OrderStatus
from src.services.label_codec import decode
from src.services.order_status import (
    current_status,
    parse_status,
    to_status,
    transition_labels,
    wire_status,
)

# 2024-03-10 23:30 UTC is already 2024-03-11 in UTC+3
LATE_NOW = datetime(2024, 3, 10, 23, 30, tzinfo=timezone.utc)


class TestParseStatus:
    """Tests for parse_status()."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("pending", OrderStatus.PENDING),
            ("Shipped", OrderStatus.SHIPPED),
            ("fulfill", OrderStatus.FULFILLED),
            ("customer_confirmed", OrderStatus.CONFIRMED),
            ("order_ready", OrderStatus.ORDER_READY),
            ("ready_to_ship", OrderStatus.READY_TO_SHIP),
            ("ready-to-ship", OrderStatus.READY_TO_SHIP),
            ("on_hold", OrderStatus.ON_HOLD),
            (OrderStatus.PAID, OrderStatus.PAID),
        ],
    )
    def test_accepted_names(self, value, expected):
        assert parse_status(value) is expected

    def test_unknown_status_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_status("teleported")
        assert exc_info.value.code == "E-1002"

    def test_wire_labels(self):
        assert wire_status(OrderStatus.CONFIRMED) == "customer_confirmed"
        assert wire_status(OrderStatus.READY_TO_SHIP) == "ready_to_ship"
        assert wire_status(OrderStatus.PENDING) == "pending"


class TestToStatus:
    """Tests for to_status()."""

    def test_current_status_is_noop(self, order_factory):
        """Requesting the current status returns the same record."""
        order = order_factory(tags=["shipped", "vip"])
        transition = to_status(order, current_status(order))
        assert transition.changed is False
        assert transition.order is order

    def test_pending_noop(self, order_factory):
        order = order_factory(tags=[])
        assert to_status(order, "pending").changed is False

    def test_single_status_label_after_transition(self, order_factory):
        order = order_factory(tags=["customer_confirmed", "ready-to-ship", "vip"])
        transition = to_status(order, "shipped")
        assert transition.changed is True
        assert transition.previous is OrderStatus.READY_TO_SHIP
        assert list(transition.order.tags) == ["vip", "shipped"]

    def test_backwards_transition_allowed(self, order_factory):
        order = order_factory(tags=["shipped"])
        assert current_status(to_status(order, "pending").order) is OrderStatus.PENDING

    def test_fulfilled_clears_priority_and_stamps_date(self, order_factory):
        """Fulfilment drops priority and records exactly one fulfillment date."""
        order = order_factory(tags=["shipped", "priority", "fulfillment_date:2020-01-01"])
        labels = to_status(order, "fulfilled", now=LATE_NOW).order.tags
        assert "priority" not in [label.lower() for label in labels]
        stamps = [label for label in labels if label.startswith("fulfillment_date:")]
        assert stamps == ["fulfillment_date:2024-03-11"]

    def test_order_ready_stamps_date(self, order_factory):
        order = order_factory(tags=[])
        facts = decode(to_status(order, "order-ready", now=LATE_NOW).order.tags)
        assert facts.get("order_ready_date") == "2024-03-11"

    def test_cancel_after_shipping(self, order_factory):
        order = order_factory(tags=["shipped"])
        transition = to_status(order, "cancelled", now=LATE_NOW, reason="Customer refused")
        facts = decode(transition.order.tags)
        assert facts.status is OrderStatus.CANCELLED
        assert facts.has("cancelled_after_shipping")
        assert facts.get("cancelled_date") == "2024-03-11"
        assert facts.get("cancellation_reason") == "Customer refused"

    def test_cancel_without_reason_clears_old_reason(self, order_factory):
        order = order_factory(tags=["cancellation_reason:old", "customer_confirmed"])
        facts = decode(to_status(order, "cancelled", now=LATE_NOW).order.tags)
        assert facts.get("cancellation_reason") is None
        assert not facts.has("cancelled_after_shipping")

    def test_transition_strips_marker(self):
        labels = transition_labels(["__status_just_updated", "vip"], OrderStatus.SHIPPED)
        assert labels == ["vip", "shipped"]

    def test_invalid_target_raises(self, order_factory):
        with pytest.raises(ValidationError):
            to_status(order_factory(), "unknown")
