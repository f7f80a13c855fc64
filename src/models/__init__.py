"""Pydantic models and enums for mirrored orders."""

from src.models.order import (
    Customer,
    LineItem,
    LineItemProperty,
    Order,
    ShippingAddress,
    normalize_labels,
)
from src.models.status import (
    CANONICAL_LABELS,
    STATUS_BY_LABEL,
    STATUS_RANK,
    OrderStatus,
)

__all__ = [
    "CANONICAL_LABELS",
    "STATUS_BY_LABEL",
    "STATUS_RANK",
    "Customer",
    "LineItem",
    "LineItemProperty",
    "Order",
    "OrderStatus",
    "ShippingAddress",
    "normalize_labels",
]
