"""Reactive order board.

OrderBoard binds one OrderCacheStore to one set of view parameters and
exposes a single reactive value, ``visible``: the filtered, sorted
sequence of orders. It is recomputed lazily whenever the cache version or
the parameters change, and pushed to subscribers after every change.

Dispatch methods return immediately; the cache already reflects the
change when they return. Remote failures arrive only as MutationFailure
notifications (``on_failure`` listeners or a per-call ``on_error``).
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Iterable

from src.models.order import Order
from src.services.due_dates import DueDateResolver
from src.services.order_cache import MutationFailure, OrderCacheStore
from src.services.order_view import OrderView, ViewParams

logger = logging.getLogger(__name__)

VisibleListener = Callable[[tuple[Order, ...]], None]


class OrderBoard:
    """Single reactive view over an order cache.

    Example:
        board = OrderBoard(store, ViewParams(status="pending"))
        board.subscribe(lambda orders: print(len(orders)))
        board.set_status(1001, "confirmed")   # listeners fire immediately
    """

    def __init__(
        self,
        store: OrderCacheStore,
        params: ViewParams | None = None,
        resolver: DueDateResolver | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.view = OrderView(resolver)
        self._params = params or ViewParams()
        self._clock = clock
        self._cache_key: tuple[int, ViewParams] | None = None
        self._visible: tuple[Order, ...] = ()
        self._listeners: list[VisibleListener] = []
        self._unsubscribe = store.subscribe(self._on_store_change)

    @property
    def params(self) -> ViewParams:
        return self._params

    @params.setter
    def params(self, params: ViewParams) -> None:
        if params != self._params:
            self._params = params
            self._publish()

    def update_params(self, **changes: Any) -> ViewParams:
        """Replace individual view parameters (e.g. ``status="shipped"``)."""
        self.params = replace(self._params, **changes)
        return self._params

    @property
    def visible(self) -> tuple[Order, ...]:
        """The ordered, filtered order sequence for the current parameters."""
        key = (self.store.version, self._params)
        if key != self._cache_key:
            self._visible = self.render(self._params)
            self._cache_key = key
        return self._visible

    def render(self, params: ViewParams) -> tuple[Order, ...]:
        """Render the cache for ``params`` without changing the board's own view."""
        now = self._clock() if self._clock is not None else None
        return self.view.render(
            self.store.snapshot(),
            params,
            now=now,
            touched=self.store.touched_ids(),
        )

    def subscribe(self, listener: VisibleListener) -> Callable[[], None]:
        """Register a listener called with the new sequence after each change."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def on_failure(self, listener: Callable[[MutationFailure], None]) -> Callable[[], None]:
        return self.store.on_failure(listener)

    def _on_store_change(self) -> None:
        if self._listeners:
            self._publish()

    def _publish(self) -> None:
        visible = self.visible
        for listener in list(self._listeners):
            try:
                listener(visible)
            except Exception:
                logger.exception("Order board listener failed")

    def close(self) -> None:
        self._unsubscribe()
        self._listeners.clear()

    # Dispatch

    def set_status(self, order_id: int, status: Any, **kwargs: Any) -> asyncio.Future:
        return self.store.set_status(order_id, status, **kwargs)

    def bulk_set_status(self, order_ids: Iterable[int], status: Any, **kwargs: Any) -> asyncio.Future:
        return self.store.bulk_set_status(order_ids, status, **kwargs)

    def set_note(self, order_id: int, note: str, **kwargs: Any) -> asyncio.Future:
        return self.store.set_note(order_id, note, **kwargs)

    def set_tags(self, order_id: int, tags: Iterable[str], **kwargs: Any) -> asyncio.Future:
        return self.store.set_tags(order_id, tags, **kwargs)

    def set_priority(self, order_id: int, is_priority: bool, **kwargs: Any) -> asyncio.Future:
        return self.store.set_priority(order_id, is_priority, **kwargs)

    def set_due_date(self, order_id: int, due_date: str, **kwargs: Any) -> asyncio.Future:
        return self.store.set_due_date(order_id, due_date, **kwargs)

    def set_start_date(self, order_id: int, start_date: str, **kwargs: Any) -> asyncio.Future:
        return self.store.set_start_date(order_id, start_date, **kwargs)

    def fulfill(self, order_id: int, **kwargs: Any) -> asyncio.Future:
        return self.store.fulfill(order_id, **kwargs)

    def delete(self, order_id: int, **kwargs: Any) -> asyncio.Future:
        return self.store.delete(order_id, **kwargs)

    def set_location(
        self,
        order_id: int,
        city_id: str,
        neighborhood_id: str,
        subzone_id: str,
        **kwargs: Any,
    ) -> asyncio.Future:
        return self.store.set_location(order_id, city_id, neighborhood_id, subzone_id, **kwargs)

    def create_shipments(self, order_ids: Iterable[int], **kwargs: Any) -> asyncio.Future:
        return self.store.create_shipments(order_ids, **kwargs)

    async def refresh(self) -> tuple[Order, ...]:
        """Re-fetch every order and return the new visible sequence."""
        await self.store.refresh()
        return self.visible
