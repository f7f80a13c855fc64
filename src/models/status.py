"""Canonical workflow states for an order.

Each state has a display value (the enum value, used by views and the
operator), a canonical label (what the commerce platform stores in the
order's tags) and a display rank. Lower ranks sort first.
"""

from enum import Enum


class OrderStatus(str, Enum):
    """Workflow state of an order."""

    PENDING = "pending"
    ORDER_READY = "order-ready"
    ON_HOLD = "on_hold"
    CONFIRMED = "confirmed"
    READY_TO_SHIP = "ready-to-ship"
    SHIPPED = "shipped"
    FULFILLED = "fulfilled"
    PAID = "paid"
    CANCELLED = "cancelled"

    @property
    def rank(self) -> int:
        """Display priority (ascending sort key)."""
        return STATUS_RANK[self]

    @property
    def label(self) -> str | None:
        """Canonical tag for this state, or None for the implicit pending state."""
        return CANONICAL_LABELS.get(self)


STATUS_RANK: dict[OrderStatus, int] = {
    OrderStatus.PENDING: 10,
    OrderStatus.ORDER_READY: 15,
    OrderStatus.ON_HOLD: 17,
    OrderStatus.CONFIRMED: 20,
    OrderStatus.READY_TO_SHIP: 30,
    OrderStatus.SHIPPED: 40,
    OrderStatus.FULFILLED: 50,
    OrderStatus.PAID: 60,
    OrderStatus.CANCELLED: 70,
}

CANONICAL_LABELS: dict[OrderStatus, str] = {
    OrderStatus.ORDER_READY: "order_ready",
    OrderStatus.ON_HOLD: "on_hold",
    OrderStatus.CONFIRMED: "customer_confirmed",
    OrderStatus.READY_TO_SHIP: "ready_to_ship",
    OrderStatus.SHIPPED: "shipped",
    OrderStatus.FULFILLED: "fulfilled",
    OrderStatus.PAID: "paid",
    OrderStatus.CANCELLED: "cancelled",
}

# Lower-cased tag -> state. Includes the legacy hyphenated ready-to-ship tag.
STATUS_BY_LABEL: dict[str, OrderStatus] = {
    **{label: status for status, label in CANONICAL_LABELS.items()},
    "ready-to-ship": OrderStatus.READY_TO_SHIP,
}
