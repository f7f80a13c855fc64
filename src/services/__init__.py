"""Service layer for OrderDesk.

Provides label decoding, the status state machine, due-date resolution,
the optimistic order cache and the filtered board view.
"""

from src.services.due_dates import DueDateResolver, DueWindow
from src.services.errors import RemoteWriteError
from src.services.label_codec import Facts, decode, encode
from src.services.order_board import OrderBoard
from src.services.order_cache import (
    MutationFailure,
    MutationKind,
    MutationOutcome,
    OrderCacheStore,
)
from src.services.order_gateway import (
    BulkResult,
    HttpOrderGateway,
    OrderGateway,
    ShipmentPackage,
    ShipmentResult,
)
from src.services.order_status import Transition, parse_status, to_status
from src.services.order_view import OrderView, ViewParams

__all__ = [
    "BulkResult",
    "DueDateResolver",
    "DueWindow",
    "Facts",
    "HttpOrderGateway",
    "MutationFailure",
    "MutationKind",
    "MutationOutcome",
    "OrderBoard",
    "OrderCacheStore",
    "OrderGateway",
    "OrderView",
    "RemoteWriteError",
    "ShipmentPackage",
    "ShipmentResult",
    "Transition",
    "ViewParams",
    "decode",
    "encode",
    "parse_status",
    "to_status",
]
