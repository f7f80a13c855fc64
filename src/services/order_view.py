"""Filtered, sorted order views.

render() turns a cache snapshot plus view parameters into the ordered
sequence the operator sees. Labels are decoded once per order per render;
every predicate and the comparator work on the decoded Facts.

Filter stage (first failing predicate drops the order):
    1. deleted orders are always dropped, even under "all"
    2. recently-touched orders are always kept (grace window)
    3. status bucket
    4. search text over name, customer name and phone
    5. pinned items
    6. quick filters: province, day range, shipping method, rush type

Sort stage compares, in order: status rank, shipping date (both shipped),
days remaining (both pending), priority flag, days remaining (either not
pending), numeric id, original index. The last key makes the order total.
"""

import functools
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from src.models.order import Order
from src.models.status import OrderStatus
from src.services.due_dates import (
    DAY_RANGES,
    DueDateResolver,
    day_range,
    rush_type,
)
from src.services.label_codec import (
    INSTAPAY,
    INSTAPAY_PAID,
    SHIPPING_METHOD,
    Facts,
    decode,
    location_ids,
)
from src.services.order_status import parse_status

ALL_BUCKET = "all"
UNKNOWN_PROVINCE = "Unknown"
DEFAULT_SHIPPING_METHOD = "Shipblu"
SHIPPING_METHODS: tuple[str, ...] = ("Shipblu", "Other Company", "Scooter", "Pickup")
RUSH_TYPES: tuple[str, ...] = ("Rushed", "Standard")

_SHIPPING_METHOD_NAMES = {
    "scooter": "Scooter",
    "pickup": "Pickup",
    "other-company": "Other Company",
    "other_company": "Other Company",
}


@dataclass(frozen=True)
class ViewParams:
    """Operator-selected view parameters.

    Attributes:
        status: Status bucket name, or "all".
        search: Case-insensitive search text.
        items: Pinned item display keys.
        provinces: Province quick filter.
        day_ranges: Day-range quick filter.
        shipping_methods: Shipping-method quick filter.
        rush_types: Rush-type quick filter.
    """

    status: str = OrderStatus.PENDING.value
    search: str = ""
    items: frozenset[str] = field(default_factory=frozenset)
    provinces: frozenset[str] = field(default_factory=frozenset)
    day_ranges: frozenset[str] = field(default_factory=frozenset)
    shipping_methods: frozenset[str] = field(default_factory=frozenset)
    rush_types: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        for name in ("items", "provinces", "day_ranges", "shipping_methods", "rush_types"):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value or ()))

    @property
    def bucket(self) -> OrderStatus | None:
        """Status bucket, or None for "all".

        Raises:
            ValidationError: If the bucket names no known status.
        """
        if (self.status or "").strip().lower() == ALL_BUCKET:
            return None
        return parse_status(self.status)


@dataclass(frozen=True)
class _Row:
    order: Order
    facts: Facts
    index: int
    days_left: int
    shipped_on: datetime | None


def shipping_method(facts: Facts) -> str:
    """Display name of the order's shipping method (Shipblu by default)."""
    method = (facts.get(SHIPPING_METHOD) or "").strip().lower()
    return _SHIPPING_METHOD_NAMES.get(method, DEFAULT_SHIPPING_METHOD)


def province_of(order: Order) -> str:
    address = order.shipping_address
    return (address.province if address else None) or UNKNOWN_PROVINCE


def is_instapay_order(order: Order, facts: Facts | None = None) -> bool:
    facts = facts if facts is not None else decode(order.tags)
    if facts.has(INSTAPAY):
        return True
    return any(INSTAPAY in (name or "").lower() for name in order.payment_gateway_names)


def is_shippable(order: Order, facts: Facts | None = None) -> bool:
    """Whether a shipment can be created for the order.

    Requires all three location ids and, for InstaPay orders, the
    ``instapay_paid`` flag.
    """
    facts = facts if facts is not None else decode(order.tags)
    if not all(location_ids(facts)):
        return False
    return not is_instapay_order(order, facts) or facts.has(INSTAPAY_PAID)


def in_bucket(facts: Facts, bucket: OrderStatus | None) -> bool:
    """Bucket membership. The fulfilled bucket also shows paid orders."""
    if bucket is None:
        return True
    if bucket is OrderStatus.FULFILLED:
        return facts.status in (OrderStatus.FULFILLED, OrderStatus.PAID)
    return facts.status is bucket


def matches_search(order: Order, query: str) -> bool:
    query = (query or "").strip().lower()
    if not query:
        return True
    customer = order.customer
    haystacks = (
        order.name or "",
        customer.full_name if customer else " ",
        (customer.phone if customer else None) or "",
    )
    return any(query in text.lower() for text in haystacks)


def contains_item(order: Order, items: frozenset[str]) -> bool:
    if not items:
        return True
    return any(item.display_key in items for item in order.line_items)


def _compare(a: _Row, b: _Row) -> int:
    a_status, b_status = a.facts.status, b.facts.status
    if a_status.rank != b_status.rank:
        return -1 if a_status.rank < b_status.rank else 1

    if a_status is OrderStatus.SHIPPED and b_status is OrderStatus.SHIPPED:
        if a.shipped_on is not None and b.shipped_on is not None:
            if a.shipped_on != b.shipped_on:
                return -1 if a.shipped_on < b.shipped_on else 1
        elif a.shipped_on is not None:
            return -1
        elif b.shipped_on is not None:
            return 1

    a_pending = a_status is OrderStatus.PENDING
    b_pending = b_status is OrderStatus.PENDING
    if a_pending and b_pending and a.days_left != b.days_left:
        return -1 if a.days_left < b.days_left else 1

    if a.facts.is_priority != b.facts.is_priority:
        return -1 if a.facts.is_priority else 1

    if (not a_pending or not b_pending) and a.days_left != b.days_left:
        return -1 if a.days_left < b.days_left else 1

    if a.order.id != b.order.id:
        return -1 if a.order.id < b.order.id else 1

    return -1 if a.index < b.index else (1 if a.index > b.index else 0)


class OrderView:
    """Filters and sorts order snapshots for one resolver configuration.

    Args:
        resolver: Due-date resolver (civil timezone and default making time).
    """

    def __init__(self, resolver: DueDateResolver | None = None) -> None:
        self.resolver = resolver or DueDateResolver()

    def _rows(self, orders: Iterable[Order], now: datetime) -> list[_Row]:
        rows = []
        for index, order in enumerate(orders):
            facts = decode(order.tags)
            rows.append(_Row(
                order=order,
                facts=facts,
                index=index,
                days_left=self.resolver.days_remaining(order, now, facts),
                shipped_on=self.resolver.shipping_date(facts),
            ))
        return rows

    def _keep(
        self,
        row: _Row,
        params: ViewParams,
        bucket: OrderStatus | None,
        touched: frozenset[int],
    ) -> bool:
        if row.facts.is_deleted:
            return False
        if row.order.id in touched or row.facts.transient:
            return True
        if not in_bucket(row.facts, bucket):
            return False
        if not matches_search(row.order, params.search):
            return False
        if not contains_item(row.order, params.items):
            return False
        if params.provinces and province_of(row.order) not in params.provinces:
            return False
        if params.day_ranges and day_range(row.days_left) not in params.day_ranges:
            return False
        if params.shipping_methods and shipping_method(row.facts) not in params.shipping_methods:
            return False
        if params.rush_types and rush_type(row.order) not in params.rush_types:
            return False
        return True

    def render(
        self,
        orders: Iterable[Order],
        params: ViewParams | None = None,
        now: datetime | None = None,
        touched: Iterable[int] = (),
    ) -> tuple[Order, ...]:
        """Filter and sort ``orders`` for display.

        Args:
            orders: Read-only snapshot of the cache, in load order.
            params: View parameters (pending bucket by default).
            now: Reference instant for day arithmetic.
            touched: Ids inside the recently-touched grace window.

        Returns:
            The visible orders, in display order.

        Raises:
            ValidationError: If ``params.status`` names no known bucket.
        """
        params = params or ViewParams()
        bucket = params.bucket
        now = now if now is not None else self.resolver.now()
        touched = frozenset(touched)
        kept = [
            row for row in self._rows(orders, now)
            if self._keep(row, params, bucket, touched)
        ]
        kept.sort(key=functools.cmp_to_key(_compare))
        return tuple(row.order for row in kept)

    def days_left(self, order: Order, now: datetime | None = None) -> int:
        return self.resolver.days_remaining(order, now)

    # Summaries

    def item_summary(
        self,
        orders: Iterable[Order] | None = None,
        *,
        all_orders: Iterable[Order] = (),
    ) -> dict:
        """Accumulated item quantities.

        Args:
            orders: Orders to summarize (e.g. a selection). When empty, every
                pending, non-deleted order in ``all_orders`` is used.
            all_orders: Full snapshot used for the default selection.

        Returns:
            Dict with ``items`` (title/quantity, quantity descending),
            ``total_orders`` and ``total_pieces``.
        """
        selected = list(orders or ())
        if not selected:
            selected = []
            for order in all_orders:
                facts = decode(order.tags)
                if not facts.is_deleted and facts.status is OrderStatus.PENDING:
                    selected.append(order)
        counts: Counter[str] = Counter()
        pieces = 0
        for order in selected:
            for item in order.line_items:
                counts[item.display_key] += item.quantity
                pieces += item.quantity
        items = sorted(counts.items(), key=lambda entry: -entry[1])
        return {
            "items": [{"title": title, "quantity": qty} for title, qty in items],
            "total_orders": len(selected),
            "total_pieces": pieces,
        }

    def province_summary(self, orders: Iterable[Order]) -> list[tuple[str, int]]:
        """Order counts per province, most frequent first."""
        counts = Counter(province_of(order) for order in orders)
        return sorted(counts.items(), key=lambda entry: -entry[1])

    def day_range_summary(
        self, orders: Iterable[Order], now: datetime | None = None
    ) -> list[tuple[str, int]]:
        now = now if now is not None else self.resolver.now()
        counts = Counter(day_range(self.resolver.days_remaining(order, now)) for order in orders)
        return [(name, counts[name]) for name in DAY_RANGES if counts[name] > 0]

    def shipping_method_summary(self, orders: Iterable[Order]) -> list[tuple[str, int]]:
        counts = Counter(shipping_method(decode(order.tags)) for order in orders)
        return [(name, counts[name]) for name in SHIPPING_METHODS if counts[name] > 0]

    def rush_type_summary(self, orders: Iterable[Order]) -> list[tuple[str, int]]:
        counts = Counter(rush_type(order) for order in orders)
        return [(name, counts[name]) for name in RUSH_TYPES if counts[name] > 0]
