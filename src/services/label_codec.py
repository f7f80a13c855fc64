"""Label codec: order tags <-> structured workflow facts.

An order's tags double as its whole workflow state. Three kinds of label
are recognized:

- status labels (mutually exclusive, e.g. ``shipped``, ``customer_confirmed``)
- flag labels (independent booleans, e.g. ``priority``, ``instapay_paid``)
- keyed facts (``key:value`` scalars, e.g. ``shipping_date:2024-03-01``)

Everything else is preserved verbatim and ignored for facts, so unknown
labels survive every decode/encode round trip.

Matching rules: labels are trimmed before comparison; status and flag
labels match case-insensitively; keyed-fact prefixes match case-sensitively.
A keyed fact whose value is empty or the literal ``"null"`` is absent.

Example:
    facts = decode(["fulfilled", "priority", "custom_due_date:2024-01-01"])
    facts.status        # OrderStatus.FULFILLED
    facts.get("custom_due_date")  # "2024-01-01"

    labels = encode(order.tags, status=OrderStatus.SHIPPED)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from src.models.order import normalize_labels
from src.models.status import STATUS_BY_LABEL, OrderStatus

logger = logging.getLogger(__name__)

# Marks an order as just mutated. Only the legacy wire form of the
# recently-touched overlay; never written back.
TRANSIENT_MARKER = "__status_just_updated"

PRIORITY = "priority"
DELETED = "deleted"
INSTAPAY = "instapay"
INSTAPAY_PAID = "instapay_paid"
ORDER_READY_CONFIRMED = "order_ready_confirmed"
MANUAL_WHATSAPP_CONFIRMATION = "manual_whatsapp_confirmation"
AUTOMATED_WHATSAPP_CONFIRMATION = "automated_whatsapp_confirmation"
CANCELLED_AFTER_SHIPPING = "cancelled_after_shipping"

KNOWN_FLAGS: frozenset[str] = frozenset({
    PRIORITY,
    DELETED,
    INSTAPAY,
    INSTAPAY_PAID,
    ORDER_READY_CONFIRMED,
    MANUAL_WHATSAPP_CONFIRMATION,
    AUTOMATED_WHATSAPP_CONFIRMATION,
    CANCELLED_AFTER_SHIPPING,
})

CUSTOM_DUE_DATE = "custom_due_date"
CUSTOM_START_DATE = "custom_start_date"
SHIPPING_DATE = "shipping_date"
SHIPPING_BARCODE = "shipping_barcode"
SHIPPING_STATUS = "shipping_status"
SHIPPING_METHOD = "shipping_method"
FULFILLMENT_DATE = "fulfillment_date"
ORDER_READY_DATE = "order_ready_date"
CANCELLED_DATE = "cancelled_date"
CANCELLATION_REASON = "cancellation_reason"
PAID_DATE = "paid_date"
MYLERZ_CITY_ID = "mylerz_city_id"
MYLERZ_NEIGHBORHOOD_ID = "mylerz_neighborhood_id"
MYLERZ_SUBZONE_ID = "mylerz_subzone_id"

LOCATION_KEYS: tuple[str, str, str] = (
    MYLERZ_CITY_ID,
    MYLERZ_NEIGHBORHOOD_ID,
    MYLERZ_SUBZONE_ID,
)

KEYED_FACTS: frozenset[str] = frozenset({
    CUSTOM_DUE_DATE,
    CUSTOM_START_DATE,
    SHIPPING_DATE,
    SHIPPING_BARCODE,
    SHIPPING_STATUS,
    SHIPPING_METHOD,
    FULFILLMENT_DATE,
    ORDER_READY_DATE,
    CANCELLED_DATE,
    CANCELLATION_REASON,
    PAID_DATE,
    *LOCATION_KEYS,
})

_NULL_VALUE = "null"


@dataclass(frozen=True)
class Facts:
    """Structured view of an order's labels.

    Attributes:
        status: Decoded workflow state (PENDING when no status label).
        flags: Lower-cased flag labels present.
        keyed: Keyed facts (latest occurrence wins, "null" dropped).
        unknown: Unrecognized labels, verbatim and in order.
        transient: True when the legacy just-updated marker was present.
        conflicting: Every status found when more than one was present.
    """

    status: OrderStatus = OrderStatus.PENDING
    flags: frozenset[str] = frozenset()
    keyed: Mapping[str, str] = field(default_factory=dict)
    unknown: tuple[str, ...] = ()
    transient: bool = False
    conflicting: tuple[OrderStatus, ...] = ()

    def has(self, flag: str) -> bool:
        return flag.lower() in self.flags

    def get(self, key: str) -> str | None:
        return self.keyed.get(key)

    @property
    def is_deleted(self) -> bool:
        return DELETED in self.flags

    @property
    def is_priority(self) -> bool:
        return PRIORITY in self.flags


def split_keyed(label: str) -> tuple[str, str] | None:
    """Split a ``key:value`` label on its first colon.

    Returns:
        (key, value) both trimmed, or None when the label has no colon.
    """
    key, sep, value = label.partition(":")
    if not sep:
        return None
    return key.strip(), value.strip()


def _status_of(label: str) -> OrderStatus | None:
    return STATUS_BY_LABEL.get(label.strip().lower())


def _is_keyed(label: str, keys: Iterable[str]) -> bool:
    parts = split_keyed(label)
    return parts is not None and parts[0] in keys


def decode(labels: Any) -> Facts:
    """Decode a raw label collection into Facts.

    Never raises. When several status labels are present (an upstream data
    anomaly), the highest-ranked one wins and a warning is logged.

    Args:
        labels: List of labels, comma-joined string, or None.

    Returns:
        Facts for the collection.
    """
    statuses: list[OrderStatus] = []
    flags: set[str] = set()
    keyed: dict[str, str] = {}
    unknown: list[str] = []
    transient = False

    for label in normalize_labels(labels):
        lowered = label.lower()
        if lowered == TRANSIENT_MARKER:
            transient = True
            continue
        status = STATUS_BY_LABEL.get(lowered)
        if status is not None:
            if status not in statuses:
                statuses.append(status)
            continue
        if lowered in KNOWN_FLAGS:
            flags.add(lowered)
            continue
        parts = split_keyed(label)
        if parts is not None and parts[0] in KEYED_FACTS:
            key, value = parts
            if value and value != _NULL_VALUE:
                keyed[key] = value
            else:
                keyed.pop(key, None)
            continue
        unknown.append(label)

    conflicting: tuple[OrderStatus, ...] = ()
    if not statuses:
        status = OrderStatus.PENDING
    else:
        status = max(statuses, key=lambda s: s.rank)
        if len(statuses) > 1:
            conflicting = tuple(statuses)
            logger.warning(
                "Multiple status labels on one order: statuses=%s chosen=%s",
                [s.value for s in statuses], status.value,
            )

    return Facts(
        status=status,
        flags=frozenset(flags),
        keyed=keyed,
        unknown=tuple(unknown),
        transient=transient,
        conflicting=conflicting,
    )


_UNSET: Any = object()


def encode(
    previous: Any,
    *,
    status: OrderStatus | Any = _UNSET,
    flags: Mapping[str, bool] | None = None,
    facts: Mapping[str, str | None] | None = None,
) -> list[str]:
    """Apply a status/flag/fact change to a label collection.

    Removes every label the change touches (all status labels when a status
    is given, the named flags, the named keyed facts, and always the
    just-updated marker), keeps every other label verbatim and in order, then
    appends the new representation.

    Args:
        previous: Current labels (list, comma-joined string, or None).
        status: New workflow state. PENDING writes no status label.
        flags: Flag name -> desired presence.
        facts: Keyed-fact name -> new value (None/"null" removes it).

    Returns:
        New label list.
    """
    flags = {name.lower(): present for name, present in (flags or {}).items()}
    facts = dict(facts or {})

    kept: list[str] = []
    for label in normalize_labels(previous):
        lowered = label.lower()
        if lowered == TRANSIENT_MARKER:
            continue
        if status is not _UNSET and _status_of(label) is not None:
            continue
        if lowered in flags:
            continue
        if facts and _is_keyed(label, facts):
            continue
        kept.append(label)

    if status is not _UNSET and status.label is not None:
        kept.append(status.label)
    for name, present in flags.items():
        if present:
            kept.append(name)
    for key, value in facts.items():
        if value is not None:
            value = str(value).strip()
            if value and value != _NULL_VALUE:
                kept.append(f"{key}:{value}")
    return kept


def add_label(previous: Any, label: str) -> list[str]:
    """Append a label unless an equal (trimmed, case-insensitive) one exists."""
    labels = list(normalize_labels(previous))
    wanted = label.strip()
    if any(existing.lower() == wanted.lower() for existing in labels):
        return labels
    return labels + [wanted]


def strip_transient(previous: Any) -> list[str]:
    """Drop the just-updated marker from a label collection."""
    return [
        label for label in normalize_labels(previous)
        if label.lower() != TRANSIENT_MARKER
    ]


def location_ids(facts: Facts) -> tuple[str | None, str | None, str | None]:
    """Return (city, neighborhood, subzone) ids from keyed facts."""
    return tuple(facts.get(key) for key in LOCATION_KEYS)  # type: ignore[return-value]


def label_slot(label: str) -> str:
    """Slot a label occupies: one per status, keyed-fact key or flag."""
    if _status_of(label) is not None:
        return "__status__"
    parts = split_keyed(label)
    if parts is not None:
        return f"{parts[0]}:"
    return label.strip().lower()


def revert_labels(current: Any, before: Any, after: Any) -> list[str]:
    """Undo the ``before -> after`` change on ``current``, keeping later changes.

    Labels the change added are dropped from ``current``. Labels it removed
    come back only when no later change has filled their slot since.
    """
    before = normalize_labels(before)
    after = normalize_labels(after)
    added = set(after) - set(before)
    removed = [label for label in before if label not in after]
    result = [label for label in normalize_labels(current) if label not in added]
    occupied = {label_slot(label) for label in result}
    for label in removed:
        slot = label_slot(label)
        if slot not in occupied:
            result.append(label)
            occupied.add(slot)
    return result
