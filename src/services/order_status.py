"""Order workflow state machine.

States rank pending(10) < order-ready(15) < on_hold(17) < confirmed(20)
< ready-to-ship(30) < shipped(40) < fulfilled(50) < paid(60) < cancelled(70).
Transitions are operator-driven: any state may move to any other state,
backwards included. A transition only rewrites labels; it never performs
I/O. Remote submission and rollback belong to the cache store.

Transition side effects:
- fulfilled stamps ``fulfillment_date:<today>`` and clears ``priority``
- order-ready stamps ``order_ready_date:<today>``
- cancelled stamps ``cancelled_date:<today>``, records an optional
  ``cancellation_reason:`` and flags ``cancelled_after_shipping`` when the
  order was shipped
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from src.errors.domain import ValidationError
from src.models.order import Order
from src.models.status import OrderStatus
from src.services.due_dates import CIVIL_TZ, civil_today
from src.services.label_codec import (
    CANCELLATION_REASON,
    CANCELLED_AFTER_SHIPPING,
    CANCELLED_DATE,
    FULFILLMENT_DATE,
    ORDER_READY_DATE,
    PRIORITY,
    decode,
    encode,
)

# Accepted spellings beyond the enum values (wire labels, legacy verbs)
STATUS_ALIASES: dict[str, OrderStatus] = {
    "fulfill": OrderStatus.FULFILLED,
    "customer_confirmed": OrderStatus.CONFIRMED,
    "order_ready": OrderStatus.ORDER_READY,
    "ready_to_ship": OrderStatus.READY_TO_SHIP,
    "on-hold": OrderStatus.ON_HOLD,
}


def parse_status(value: Any) -> OrderStatus:
    """Resolve an operator-supplied status name.

    Args:
        value: OrderStatus, display value, canonical label or alias.

    Returns:
        The matching OrderStatus.

    Raises:
        ValidationError: If the value names no known status.
    """
    if isinstance(value, OrderStatus):
        return value
    text = str(value or "").strip().lower()
    try:
        return OrderStatus(text)
    except ValueError:
        pass
    if text in STATUS_ALIASES:
        return STATUS_ALIASES[text]
    raise ValidationError(f"'{value}' is not a known order status.")


def current_status(order: Order) -> OrderStatus:
    """Canonical status of an order, decoded from its labels."""
    return decode(order.tags).status


def wire_status(status: OrderStatus) -> str:
    """Status value sent to the remote platform (canonical label)."""
    return status.label or OrderStatus.PENDING.value


@dataclass(frozen=True)
class Transition:
    """Outcome of a requested status change."""

    order: Order
    previous: OrderStatus
    target: OrderStatus
    changed: bool


def transition_labels(
    labels: Any,
    target: OrderStatus,
    *,
    now: datetime | None = None,
    reason: str | None = None,
    tz: timezone = CIVIL_TZ,
) -> list[str]:
    """Compute the label set for moving ``labels`` to ``target``.

    All status labels are stripped before the new canonical label is added,
    so at most one status label survives.
    """
    previous = decode(labels).status
    today = civil_today(now, tz)
    flags: dict[str, bool] = {}
    facts: dict[str, str | None] = {}

    if target is OrderStatus.FULFILLED:
        flags[PRIORITY] = False
        facts[FULFILLMENT_DATE] = today
    elif target is OrderStatus.ORDER_READY:
        facts[ORDER_READY_DATE] = today
    elif target is OrderStatus.CANCELLED:
        facts[CANCELLED_DATE] = today
        facts[CANCELLATION_REASON] = reason
        if previous is OrderStatus.SHIPPED:
            flags[CANCELLED_AFTER_SHIPPING] = True

    return encode(labels, status=target, flags=flags, facts=facts)


def to_status(
    order: Order,
    new_status: Any,
    *,
    now: datetime | None = None,
    reason: str | None = None,
    tz: timezone = CIVIL_TZ,
) -> Transition:
    """Move an order to ``new_status``.

    A request for the order's current status is a no-op and returns the
    same record with ``changed=False``.

    Raises:
        ValidationError: If ``new_status`` names no known status.
    """
    target = parse_status(new_status)
    previous = current_status(order)
    if target is previous:
        return Transition(order=order, previous=previous, target=target, changed=False)
    labels = transition_labels(order.tags, target, now=now, reason=reason, tz=tz)
    return Transition(
        order=order.with_tags(labels),
        previous=previous,
        target=target,
        changed=True,
    )
