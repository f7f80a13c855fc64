"""Pydantic schemas for API request/response validation.

This module defines the data contracts for the OrderDesk REST API: the
board view and the mutation dispatch endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.order import Order
from src.services.due_dates import DueDateResolver, day_range
from src.services.label_codec import decode
from src.services.order_view import shipping_method


# Order schemas


class OrderResponse(BaseModel):
    """Response schema for one order on the board."""

    id: int
    name: str
    customer_name: str
    phone: str | None = None
    province: str | None = None
    status: str
    priority: bool
    days_left: int
    day_range: str
    due_date: str
    shipping_method: str
    note: str | None = None
    tags: list[str]

    @classmethod
    def from_order(
        cls,
        order: Order,
        resolver: DueDateResolver,
        now: datetime | None = None,
    ) -> "OrderResponse":
        facts = decode(order.tags)
        now = now if now is not None else resolver.now()
        window = resolver.resolve(order, now, facts)
        days_left = resolver.days_remaining(order, now, facts)
        customer = order.customer
        address = order.shipping_address
        return cls(
            id=order.id,
            name=order.name,
            customer_name=customer.full_name.strip() if customer else "",
            phone=customer.phone if customer else None,
            province=address.province if address else None,
            status=facts.status.value,
            priority=facts.is_priority,
            days_left=days_left,
            day_range=day_range(days_left),
            due_date=window.due.date().isoformat(),
            shipping_method=shipping_method(facts),
            note=order.note,
            tags=list(order.tags),
        )


class OrderListResponse(BaseModel):
    """Response schema for the board view."""

    orders: list[OrderResponse]
    total: int
    status: str


class MutationAccepted(BaseModel):
    """Response schema for an accepted (optimistically applied) mutation."""

    accepted: bool = True
    order: OrderResponse | None = None


class BulkMutationAccepted(BaseModel):
    """Response schema for an accepted bulk mutation."""

    accepted: bool = True
    order_ids: list[int]


class RefreshResponse(BaseModel):
    """Response schema for a manual refresh."""

    total: int


# Request schemas


class StatusUpdate(BaseModel):
    """Request schema for a status change."""

    status: str = Field(..., min_length=1)
    reason: str | None = Field(None, max_length=500)


class BulkStatusUpdate(BaseModel):
    """Request schema for a bulk status change."""

    model_config = ConfigDict(populate_by_name=True)

    order_ids: list[int] = Field(..., alias="orderIds", min_length=1)
    status: str = Field(..., min_length=1)


class NoteUpdate(BaseModel):
    """Request schema for replacing an order note."""

    note: str = Field(..., max_length=5000)


class PriorityUpdate(BaseModel):
    """Request schema for toggling priority."""

    model_config = ConfigDict(populate_by_name=True)

    is_priority: bool = Field(..., alias="isPriority")


class DueDateUpdate(BaseModel):
    """Request schema for overriding the due date."""

    due_date: str = Field(..., min_length=1)

    @field_validator("due_date")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()
