"""Due-date resolution in the shop's fixed civil timezone.

All order date arithmetic happens in one fixed civil timezone (UTC+3, no
daylight saving) regardless of where the process runs. Instants are
converted to that zone first and then truncated to calendar dates, so
"due today" means the same thing for every operator.

Resolution order for an order's window:

    start = custom_start_date fact -> custom_start_date field
            -> created_at -> effective_created_at -> now
    due   = custom_due_date fact -> custom_due_date field
            -> start + making time

Making time is detected from line items ("Rush My Order [3 days]",
"Handmade Timeline [7 days]", making-time properties) and defaults to
DEFAULT_MAKING_DAYS. A present-but-unparseable custom date puts the order
in degenerate mode: both dates are recomputed from the creation timestamp
plus the default offset. Resolution never raises.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable

from dateutil import parser as date_parser
from dateutil.parser import ParserError

from src.models.order import LineItem, Order
from src.models.status import OrderStatus
from src.services.label_codec import (
    CUSTOM_DUE_DATE,
    CUSTOM_START_DATE,
    SHIPPING_DATE,
    Facts,
    decode,
)

logger = logging.getLogger(__name__)

DEFAULT_MAKING_DAYS = 7
DEFAULT_UTC_OFFSET_HOURS = 3
RUSH_MAKING_DAYS = 3

CIVIL_TZ = timezone(timedelta(hours=DEFAULT_UTC_OFFSET_HOURS))

_RUSH_PATTERN = re.compile(r"rush.*?\[(\d+)\s*days?\]", re.IGNORECASE)
_HANDMADE_PATTERN = re.compile(r"handmade.*?\[(\d+)\s*days?\]", re.IGNORECASE)
_DAYS_PATTERN = re.compile(r"(\d+)\s*days?", re.IGNORECASE)
_THREE_DAYS_PATTERN = re.compile(r"3\s*days?", re.IGNORECASE)
_SEVEN_DAYS_PATTERN = re.compile(r"7\s*days?", re.IGNORECASE)
_YEAR_PATTERN = re.compile(r"\d{4}")

# Display order of day-range buckets.
DAY_RANGES: tuple[str, ...] = (
    "overdue", "today", "1 day", "2 days", "3 days", "4 days",
    "5 days", "6 days", "7 days", "+7 days",
)


@dataclass(frozen=True)
class DueWindow:
    """Effective start and due instants, both in civil time."""

    start: datetime
    due: datetime
    degenerate: bool = False


def civil_tz(utc_offset_hours: float = DEFAULT_UTC_OFFSET_HOURS) -> timezone:
    if utc_offset_hours == DEFAULT_UTC_OFFSET_HOURS:
        return CIVIL_TZ
    return timezone(timedelta(hours=utc_offset_hours))


def parse_civil(value: Any, tz: timezone = CIVIL_TZ) -> datetime | None:
    """Parse a date/datetime into an aware datetime in civil time.

    Naive values are read as civil time. Strings must carry a four-digit
    year; anything else is treated as unparseable.

    Returns:
        Aware datetime in ``tz``, or None if the value is missing or invalid.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text or text == "null" or not _YEAR_PATTERN.search(text):
            return None
        try:
            parsed = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                parsed = date_parser.parse(text)
            except (ParserError, ValueError, OverflowError):
                return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def to_civil(moment: datetime, tz: timezone = CIVIL_TZ) -> datetime:
    """Convert an instant to civil time (naive values are taken as UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz)


def civil_now(tz: timezone = CIVIL_TZ) -> datetime:
    return datetime.now(timezone.utc).astimezone(tz)


def civil_today(now: datetime | None = None, tz: timezone = CIVIL_TZ) -> str:
    """Today's civil date as ``YYYY-MM-DD``."""
    moment = to_civil(now, tz) if now is not None else civil_now(tz)
    return moment.date().isoformat()


def days_between(later: datetime, earlier: datetime, tz: timezone = CIVIL_TZ) -> int:
    """Calendar-day difference ``later - earlier`` after civil normalization."""
    return (to_civil(later, tz).date() - to_civil(earlier, tz).date()).days


def _match_days(pattern: re.Pattern, text: str) -> int | None:
    match = pattern.search(text)
    return int(match.group(1)) if match else None


def detect_making_time(line_items: Iterable[LineItem]) -> int | None:
    """Detect the making time in days from line-item titles and properties.

    Items are scanned in order and the first match wins.

    Returns:
        Number of days, or None when nothing matches.
    """
    for item in line_items:
        title = item.title or ""
        for pattern in (_RUSH_PATTERN, _HANDMADE_PATTERN):
            days = _match_days(pattern, title)
            if days is not None:
                return days

        for prop in item.properties:
            name = prop.name.lower()
            value = prop.value
            if not ("making time" in name or "timeline" in name or "rush" in name):
                continue
            for pattern in (_RUSH_PATTERN, _HANDMADE_PATTERN):
                days = _match_days(pattern, value)
                if days is not None:
                    return days
            days = _match_days(_DAYS_PATTERN, value)
            lowered = value.lower()
            if days is not None and ("rush" in lowered or "3" in lowered):
                return days
            if days is not None and ("handmade" in lowered or "7" in lowered):
                return days

        lowered_title = title.lower()
        if "making time" in lowered_title or "choose your" in lowered_title:
            if "rush" in lowered_title or _THREE_DAYS_PATTERN.search(title):
                return RUSH_MAKING_DAYS
            if "handmade" in lowered_title or _SEVEN_DAYS_PATTERN.search(title):
                return 7
    return None


def rush_type(order: Order) -> str:
    """'Rushed' for a detected three-day making time, else 'Standard'."""
    if detect_making_time(order.line_items) == RUSH_MAKING_DAYS:
        return "Rushed"
    return "Standard"


def day_range(days_left: int) -> str:
    """Bucket a days-remaining value into a display range."""
    if days_left < 0:
        return "overdue"
    if days_left == 0:
        return "today"
    if days_left == 1:
        return "1 day"
    if days_left <= 7:
        return f"{days_left} days"
    return "+7 days"


def progress_for(days_left: int) -> int:
    """Urgency progress percentage for a days-remaining value."""
    if days_left <= 0:
        return 100
    if days_left <= 4:
        return 80
    if days_left <= 8:
        return 60
    if days_left <= 12:
        return 40
    if days_left <= 20:
        return 20
    return 10


class DueDateResolver:
    """Resolves start/due windows for orders in a fixed civil timezone.

    Args:
        default_making_days: Offset used when no making time is detected.
        utc_offset_hours: Fixed civil offset (no DST).
    """

    def __init__(
        self,
        default_making_days: int = DEFAULT_MAKING_DAYS,
        utc_offset_hours: float = DEFAULT_UTC_OFFSET_HOURS,
    ) -> None:
        self.default_making_days = default_making_days
        self.tz = civil_tz(utc_offset_hours)

    def now(self) -> datetime:
        return civil_now(self.tz)

    def created_at(self, order: Order, now: datetime | None = None) -> datetime:
        """Creation instant in civil time, falling back to ``now``."""
        for raw in (order.created_at, order.effective_created_at):
            parsed = parse_civil(raw, self.tz)
            if parsed is not None:
                return parsed
        return to_civil(now, self.tz) if now is not None else self.now()

    def resolve(
        self,
        order: Order,
        now: datetime | None = None,
        facts: Facts | None = None,
    ) -> DueWindow:
        """Resolve the effective start and due dates of an order.

        Args:
            order: Order to resolve.
            now: Reference instant (defaults to the current time).
            facts: Pre-decoded facts for ``order.tags``.

        Returns:
            DueWindow with both instants in civil time.
        """
        facts = facts if facts is not None else decode(order.tags)
        created = self.created_at(order, now)

        start_raw = facts.get(CUSTOM_START_DATE) or order.custom_start_date
        due_raw = facts.get(CUSTOM_DUE_DATE) or order.custom_due_date
        start = parse_civil(start_raw, self.tz) if start_raw else created
        due = parse_civil(due_raw, self.tz) if due_raw else None

        if start is None or (due_raw and due is None):
            logger.debug(
                "Unparseable custom date, using defaults: order=%s start=%r due=%r",
                order.id, start_raw, due_raw,
            )
            return DueWindow(
                start=created,
                due=created + timedelta(days=self.default_making_days),
                degenerate=True,
            )

        if due is None:
            making_days = detect_making_time(order.line_items) or self.default_making_days
            due = start + timedelta(days=making_days)
        return DueWindow(start=start, due=due)

    def days_remaining(
        self,
        order: Order,
        now: datetime | None = None,
        facts: Facts | None = None,
    ) -> int:
        """Whole days until the order is due (0 = today, negative = overdue)."""
        now = now if now is not None else self.now()
        window = self.resolve(order, now, facts)
        return days_between(window.due, now, self.tz)

    def days_since(self, value: str | None, now: datetime | None = None) -> int | None:
        """Whole days elapsed since a date fact, never negative.

        Returns:
            Days since ``value``, or None when it is missing or unparseable.
        """
        parsed = parse_civil(value, self.tz)
        if parsed is None:
            return None
        now = now if now is not None else self.now()
        return max(0, days_between(now, parsed, self.tz))

    def shipping_date(self, facts: Facts) -> datetime | None:
        return parse_civil(facts.get(SHIPPING_DATE), self.tz)

    def oldest_shipped_date(
        self,
        orders: Iterable[Order],
        now: datetime | None = None,
    ) -> datetime:
        """Earliest shipping date among shipped-but-unfulfilled orders.

        Falls back to 30 days before ``now`` when no such order carries a
        parseable shipping date.
        """
        now = to_civil(now, self.tz) if now is not None else self.now()
        dates = []
        for order in orders:
            facts = decode(order.tags)
            if facts.status is not OrderStatus.SHIPPED:
                continue
            shipped_on = self.shipping_date(facts)
            if shipped_on is not None:
                dates.append(shipped_on)
        if not dates:
            return now - timedelta(days=30)
        return min(dates)
