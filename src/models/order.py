"""Order records mirrored from the commerce platform.

Orders arrive from the remote collaborator as loosely-shaped JSON. These
models normalize the shape once at the boundary: the label collection may
arrive as a list or as a single comma-joined string and is always exposed
as a tuple of trimmed, non-empty strings.

Records are frozen. The cache store replaces whole records rather than
mutating them in place, so a captured snapshot can never change underneath
a pending rollback.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_labels(raw: Any) -> tuple[str, ...]:
    """Normalize a raw label collection to a tuple of trimmed labels.

    Args:
        raw: List/tuple of strings, a comma-joined string, or None.

    Returns:
        Tuple of trimmed labels in their original order, empties dropped.
    """
    if raw is None:
        return ()
    if isinstance(raw, str):
        parts = raw.split(",")
    elif isinstance(raw, (list, tuple, set, frozenset)):
        parts = [str(item) for item in raw if item is not None]
    else:
        return ()
    return tuple(part.strip() for part in parts if part and part.strip())


class LineItemProperty(BaseModel):
    """Custom line-item property (e.g. 'Making Time')."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    value: str = ""

    @field_validator("name", "value", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class LineItem(BaseModel):
    """Single product line on an order."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    variant_title: str | None = None
    quantity: int = 1
    properties: tuple[LineItemProperty, ...] = ()

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("properties", mode="before")
    @classmethod
    def _coerce_properties(cls, v: Any) -> tuple:
        if not v or not isinstance(v, (list, tuple)):
            return ()
        return tuple(v)

    @property
    def display_key(self) -> str:
        """Key used by item summaries and the item-subset filter."""
        if self.variant_title:
            return f"{self.title} ({self.variant_title})"
        return self.title


class Customer(BaseModel):
    """Customer contact details."""

    model_config = ConfigDict(frozen=True)

    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}"


class ShippingAddress(BaseModel):
    """Destination address (only the fields the workflow reads)."""

    model_config = ConfigDict(frozen=True)

    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    province: str | None = None
    phone: str | None = None


class Order(BaseModel):
    """An order as held by the client-side cache.

    Identity is the numeric ``id``. All workflow state lives in ``tags``;
    ``custom_start_date``/``custom_due_date`` are remote-truth overrides the
    platform may also expose as top-level fields.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    name: str = ""
    customer: Customer | None = None
    shipping_address: ShippingAddress | None = None
    total_price: str = "0"
    line_items: tuple[LineItem, ...] = ()
    note: str | None = None
    tags: tuple[str, ...] = Field(default=())
    payment_gateway_names: tuple[str, ...] = ()
    created_at: str | None = None
    effective_created_at: str | None = None
    custom_start_date: str | None = None
    custom_due_date: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, v: Any) -> tuple[str, ...]:
        return normalize_labels(v)

    @field_validator("line_items", "payment_gateway_names", mode="before")
    @classmethod
    def _coerce_sequence(cls, v: Any) -> tuple:
        if not v or not isinstance(v, (list, tuple)):
            return ()
        return tuple(v)

    @field_validator("total_price", mode="before")
    @classmethod
    def _coerce_price(cls, v: Any) -> str:
        return "0" if v is None else str(v)

    def with_tags(self, tags: tuple[str, ...] | list[str]) -> "Order":
        """Return a copy carrying a replaced label collection."""
        return self.model_copy(update={"tags": normalize_labels(list(tags))})

    def with_changes(self, **changes: Any) -> "Order":
        """Return a copy with the given fields replaced."""
        if "tags" in changes:
            changes["tags"] = normalize_labels(changes["tags"])
        return self.model_copy(update=changes)
