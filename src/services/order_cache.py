"""Optimistic client-side order cache.

Holds the client-visible collection of orders, keyed by id, and applies
operator mutations in three steps:

1. Apply now: the mutated record is installed synchronously, before any
   network round trip starts.
2. Submit: the remote write runs as an asyncio task. Callers never wait on
   it unless they choose to await the returned task.
3. Settle: on success the optimistic record is treated as truth (bulk status
   and shipment creation additionally schedule one debounced refetch); on
   failure the order is rolled back to the record captured immediately
   before that mutation's own apply step.

Every mutation carries its own undo snapshot, so concurrent mutations on
the same order roll back independently. If a failed mutation has since
been superseded by a later one, only the failed mutation's own delta is
reverted, from the cache and from later pending snapshots. The later
effect stays in place; a refetch then reconciles with the platform.

A recently-touched overlay keeps just-mutated order ids visible in
filtered views for a short grace window. Both the overlay expiry and the
refetch debounce re-arm instead of stacking timers.

This is a best-effort, eventually-consistent cache: it persists nothing and
does not guarantee exactly-once delivery of remote writes.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable

from src.errors.domain import NotFoundError, ValidationError
from src.errors.formatter import OrderDeskError
from src.errors.registry import get_error
from src.models.order import Order
from src.models.status import OrderStatus
from src.services.due_dates import CIVIL_TZ, parse_civil
from src.services.errors import RemoteWriteError
from src.services.label_codec import (
    CUSTOM_DUE_DATE,
    CUSTOM_START_DATE,
    DELETED,
    LOCATION_KEYS,
    PRIORITY,
    SHIPPING_BARCODE,
    TRANSIENT_MARKER,
    add_label,
    encode,
    revert_labels,
    strip_transient,
)
from src.services.order_gateway import BulkResult, OrderGateway, ShipmentResult
from src.services.order_status import parse_status, to_status, wire_status

logger = logging.getLogger(__name__)

DEFAULT_STATUS_GRACE_SECONDS = 3.0
DEFAULT_REFETCH_DEBOUNCE_SECONDS = 0.3


class MutationKind(str, Enum):
    """Kinds of optimistic mutation."""

    NOTE = "note"
    TAGS = "tags"
    PRIORITY = "priority"
    STATUS = "status"
    BULK_STATUS = "bulk_status"
    DUE_DATE = "due_date"
    START_DATE = "start_date"
    DELETE = "delete"
    FULFILL = "fulfill"
    LOCATION = "location"
    SHIPMENT = "shipment"
    REFRESH = "refresh"


@dataclass
class PendingMutation:
    """An applied mutation awaiting its remote outcome.

    Attributes:
        mutation_id: Dispatch sequence number.
        kind: Mutation kind.
        order_id: Order this entry applies to.
        previous: Record replaced by the apply step (undo target).
        applied: Record installed by the apply step.
    """

    mutation_id: int
    kind: MutationKind
    order_id: int
    previous: Order
    applied: Order


@dataclass(frozen=True)
class MutationFailure:
    """User-visible notification of a failed, rolled-back mutation."""

    kind: MutationKind
    order_ids: tuple[int, ...]
    error: OrderDeskError

    @property
    def message(self) -> str:
        return self.error.message


@dataclass
class MutationOutcome:
    """Result of a settled mutation."""

    kind: MutationKind
    order_ids: tuple[int, ...]
    ok: bool
    noop: bool = False
    failure: MutationFailure | None = None
    rolled_back: tuple[int, ...] = ()
    result: Any = None


def _revert_delta(record: Order, entry: PendingMutation) -> Order:
    """Undo the fields ``entry`` changed, unless a later change overwrote them."""
    changes: dict[str, Any] = {}
    for name in Order.model_fields:
        before = getattr(entry.previous, name)
        after = getattr(entry.applied, name)
        if before == after:
            continue
        if name == "tags":
            changes[name] = revert_labels(record.tags, before, after)
        elif getattr(record, name) == after:
            changes[name] = before
    return record.with_changes(**changes) if changes else record


StoreListener = Callable[[], None]
FailureListener = Callable[[MutationFailure], None]


@dataclass
class _Touch:
    handle: asyncio.TimerHandle | None = None
    expires_at: float = 0.0


@dataclass
class _Dispatch:
    kind: MutationKind
    entries: list[PendingMutation] = field(default_factory=list)

    @property
    def order_ids(self) -> tuple[int, ...]:
        return tuple(entry.order_id for entry in self.entries)


class OrderCacheStore:
    """In-memory order collection with optimistic, revertible mutations.

    Args:
        gateway: Remote collaborator used for every write and refetch.
        status_grace_seconds: How long a just-mutated order stays in the
            recently-touched overlay.
        refetch_debounce_seconds: Coalescing delay for reconciliation
            refetches.
        clock: Returns the current instant (used for date stamping).
        tz: Civil timezone for date stamps.

    Example:
        store = OrderCacheStore(HttpOrderGateway(base_url))
        await store.refresh()
        task = store.set_status(1001, "shipped")   # cache already updated
        outcome = await task                        # optional
    """

    def __init__(
        self,
        gateway: OrderGateway,
        *,
        status_grace_seconds: float = DEFAULT_STATUS_GRACE_SECONDS,
        refetch_debounce_seconds: float = DEFAULT_REFETCH_DEBOUNCE_SECONDS,
        clock: Callable[[], datetime] | None = None,
        tz: timezone = CIVIL_TZ,
    ) -> None:
        self._gateway = gateway
        self._grace = status_grace_seconds
        self._debounce = refetch_debounce_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tz = tz

        self._orders: dict[int, Order] = {}
        self._pending: dict[int, list[PendingMutation]] = {}
        self._touched: dict[int, _Touch] = {}
        self._sequence = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()
        self._refetch_handle: asyncio.TimerHandle | None = None
        self._listeners: list[StoreListener] = []
        self._failure_listeners: list[FailureListener] = []
        self.version = 0
        self.refetch_count = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> tuple[Order, ...]:
        """Fresh read-only snapshot of every cached order, in load order."""
        return tuple(self._orders.values())

    def get(self, order_id: int) -> Order | None:
        return self._orders.get(order_id)

    def require(self, order_id: int) -> Order:
        """Return a cached order.

        Raises:
            NotFoundError: If the order is not cached.
        """
        order = self._orders.get(order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def touched_ids(self) -> frozenset[int]:
        """Ids currently inside the recently-touched grace window."""
        return frozenset(self._touched)

    def pending_ids(self) -> frozenset[int]:
        """Ids with at least one mutation awaiting its remote outcome."""
        return frozenset(oid for oid, chain in self._pending.items() if chain)

    def __len__(self) -> int:
        return len(self._orders)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def on_failure(self, listener: FailureListener) -> Callable[[], None]:
        """Register a failure listener; returns an unsubscribe callable."""
        self._failure_listeners.append(listener)
        return (
            lambda: self._failure_listeners.remove(listener)
            if listener in self._failure_listeners else None
        )

    def _changed(self) -> None:
        self.version += 1
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Order cache listener failed")

    def _notify_failure(self, failure: MutationFailure) -> None:
        for listener in list(self._failure_listeners):
            try:
                listener(failure)
            except Exception:
                logger.exception("Order cache failure listener failed")

    # ------------------------------------------------------------------
    # Loading and reconciliation
    # ------------------------------------------------------------------

    def _absorb_marker(self, order: Order) -> Order:
        """Move a legacy just-updated label into the touched overlay."""
        if any(label.lower() == TRANSIENT_MARKER for label in order.tags):
            self._touch(order.id)
            return order.with_tags(strip_transient(order.tags))
        return order

    def load(self, orders: Iterable[Order]) -> None:
        """Replace the whole cache (initial load or test setup)."""
        self._orders = {}
        for order in orders:
            self._orders[order.id] = self._absorb_marker(order)
        self._changed()

    def _merge(self, orders: Iterable[Order]) -> None:
        """Install a fresh remote collection.

        Orders with in-flight mutations keep their optimistic record; the
        remote copy cannot reflect a write that has not settled yet.
        """
        pending = self.pending_ids()
        merged: dict[int, Order] = {}
        for order in orders:
            if order.id in pending and order.id in self._orders:
                merged[order.id] = self._orders[order.id]
            else:
                merged[order.id] = self._absorb_marker(order)
        for order_id in pending:
            if order_id not in merged and order_id in self._orders:
                merged[order_id] = self._orders[order_id]
        self._orders = merged
        self._changed()

    async def refresh(self) -> int:
        """Re-fetch every order from the remote platform.

        Returns:
            Number of orders now cached.

        Raises:
            RemoteWriteError: If the fetch fails (the cache is left as is).
        """
        orders = await self._gateway.fetch_orders()
        self._merge(orders)
        self.refetch_count += 1
        logger.info("Order cache refreshed: orders=%d", len(self._orders))
        return len(self._orders)

    def schedule_refetch(self) -> None:
        """Schedule one debounced refetch, coalescing with any armed one."""
        loop = asyncio.get_running_loop()
        if self._refetch_handle is not None:
            self._refetch_handle.cancel()
            logger.debug("Coalesced pending order refetch")
        self._refetch_handle = loop.call_later(self._debounce, self._start_refetch)

    def _start_refetch(self) -> None:
        self._refetch_handle = None
        self._spawn(self._run_refetch())

    async def _run_refetch(self) -> None:
        try:
            await self.refresh()
        except RemoteWriteError as e:
            logger.warning("Background order refetch failed: error=%s", e)
            self._notify_failure(MutationFailure(
                kind=MutationKind.REFRESH,
                order_ids=(),
                error=OrderDeskError(
                    code=e.code, message=e.message, remediation=e.remediation,
                    is_retryable=True,
                ),
            ))
        except Exception as e:
            logger.exception("Unexpected error during background order refetch")
            self._notify_failure(MutationFailure(
                kind=MutationKind.REFRESH,
                order_ids=(),
                error=OrderDeskError.from_code(
                    "E-4001",
                    operation="refreshing orders",
                    error=str(e) or type(e).__name__,
                ),
            ))

    @property
    def refetch_scheduled(self) -> bool:
        return self._refetch_handle is not None

    # ------------------------------------------------------------------
    # Recently-touched overlay
    # ------------------------------------------------------------------

    def _touch(self, order_id: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous load): the grace window starts unarmed
            # and is swept on the next touch or clear.
            self._touched[order_id] = _Touch()
            return
        touch = self._touched.get(order_id)
        if touch is not None and touch.handle is not None:
            touch.handle.cancel()
        handle = loop.call_later(self._grace, self._expire_touch, order_id)
        self._touched[order_id] = _Touch(handle=handle, expires_at=loop.time() + self._grace)

    def _expire_touch(self, order_id: int) -> None:
        if self._touched.pop(order_id, None) is not None:
            logger.debug("Grace window expired: order=%s", order_id)
            self._changed()

    def clear_touched(self) -> None:
        """Drop every grace window immediately."""
        for touch in self._touched.values():
            if touch.handle is not None:
                touch.handle.cancel()
        if self._touched:
            self._touched.clear()
            self._changed()

    # ------------------------------------------------------------------
    # Mutation machinery
    # ------------------------------------------------------------------

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _apply(
        self, kind: MutationKind, updates: dict[int, Order], touch: bool = False
    ) -> _Dispatch:
        """Install mutated records and record their undo snapshots.

        Touched ids enter the grace overlay before listeners hear of the
        change, so the first view rendered already keeps them visible.
        """
        dispatch = _Dispatch(kind=kind)
        mutation_id = next(self._sequence)
        for order_id, record in updates.items():
            entry = PendingMutation(
                mutation_id=mutation_id,
                kind=kind,
                order_id=order_id,
                previous=self._orders[order_id],
                applied=record,
            )
            self._orders[order_id] = record
            self._pending.setdefault(order_id, []).append(entry)
            dispatch.entries.append(entry)
            if touch:
                self._touch(order_id)
        self._changed()
        return dispatch

    def _confirm(self, entry: PendingMutation) -> None:
        chain = self._pending.get(entry.order_id, [])
        if entry in chain:
            chain.remove(entry)
        if not chain:
            self._pending.pop(entry.order_id, None)

    def _rollback(self, entry: PendingMutation) -> bool:
        """Undo one entry.

        When the cache still holds the entry's own record, the record it
        replaced is restored exactly. Otherwise a later mutation has been
        applied on top: only this entry's delta is reverted, from the cached
        record and from every later pending snapshot, so later effects stay.

        Returns:
            True if the exact pre-mutation record was restored, False if the
            entry had been superseded.
        """
        order_id = entry.order_id
        chain = self._pending.get(order_id, [])
        current = self._orders.get(order_id)
        if current is entry.applied:
            self._orders[order_id] = entry.previous
            self._confirm(entry)
            return True

        if current is not None:
            reverted = _revert_delta(current, entry)
            later = chain[chain.index(entry) + 1:] if entry in chain else []
            for other in later:
                other.previous = _revert_delta(other.previous, entry)
                if other.applied is current:
                    other.applied = reverted
                else:
                    other.applied = _revert_delta(other.applied, entry)
            self._orders[order_id] = reverted
        self._confirm(entry)
        return False

    def _dispatch(
        self,
        kind: MutationKind,
        updates: dict[int, Order],
        submit: Callable[[], Awaitable[Any]],
        *,
        touch: bool = False,
        reconcile: bool = False,
        failed_ids: Callable[[Any], set[int]] | None = None,
        after_success: Callable[[Any, set[int]], None] | None = None,
        on_success: Callable[["MutationOutcome"], None] | None = None,
        on_error: Callable[[MutationFailure], None] | None = None,
    ) -> asyncio.Task:
        """Apply ``updates`` now and settle them against ``submit`` later."""
        dispatch = self._apply(kind, updates, touch=touch)
        logger.info(
            "Dispatched %s mutation: orders=%s", kind.value, list(dispatch.order_ids)
        )
        return self._spawn(self._settle(
            dispatch, submit, reconcile, failed_ids, after_success, on_success, on_error,
        ))

    async def _settle(
        self,
        dispatch: _Dispatch,
        submit: Callable[[], Awaitable[Any]],
        reconcile: bool,
        failed_ids: Callable[[Any], set[int]] | None,
        after_success: Callable[[Any, set[int]], None] | None,
        on_success: Callable[[MutationOutcome], None] | None,
        on_error: Callable[[MutationFailure], None] | None,
    ) -> MutationOutcome:
        kind = dispatch.kind
        order_ids = dispatch.order_ids
        try:
            result = await submit()
        except RemoteWriteError as e:
            definition = get_error(e.code)
            error = OrderDeskError(
                code=e.code,
                message=e.message,
                remediation=e.remediation,
                order_ids=list(order_ids),
                is_retryable=definition.is_retryable if definition else False,
                details=e.details or {},
            )
            return self._fail(dispatch, dispatch.entries, error, on_error)
        except Exception as e:
            logger.exception("Unexpected error submitting %s mutation", kind.value)
            error = OrderDeskError.from_code(
                "E-4001",
                operation=f"submitting a {kind.value} change",
                error=str(e) or type(e).__name__,
                order_ids=list(order_ids),
            )
            return self._fail(dispatch, dispatch.entries, error, on_error)

        rejected = failed_ids(result) if failed_ids is not None else set()
        rejected &= set(order_ids)
        succeeded = [entry for entry in dispatch.entries if entry.order_id not in rejected]
        for entry in succeeded:
            self._confirm(entry)
        if after_success is not None and succeeded:
            after_success(result, {entry.order_id for entry in succeeded})

        failure = None
        rolled_back: tuple[int, ...] = ()
        if rejected:
            error = OrderDeskError.from_code(
                "E-3001",
                remote_message=f"{len(rejected)} of {len(order_ids)} orders were not updated",
                order_ids=sorted(rejected),
            )
            partial = self._fail(
                dispatch,
                [entry for entry in dispatch.entries if entry.order_id in rejected],
                error,
                on_error,
            )
            failure = partial.failure
            rolled_back = partial.rolled_back

        if reconcile and succeeded:
            self.schedule_refetch()

        outcome = MutationOutcome(
            kind=kind,
            order_ids=order_ids,
            ok=not rejected,
            failure=failure,
            rolled_back=rolled_back,
            result=result,
        )
        if not rejected:
            logger.info("Confirmed %s mutation: orders=%s", kind.value, list(order_ids))
            if on_success is not None:
                on_success(outcome)
        return outcome

    def _fail(
        self,
        dispatch: _Dispatch,
        entries: list[PendingMutation],
        error: OrderDeskError,
        on_error: Callable[[MutationFailure], None] | None,
    ) -> MutationOutcome:
        restored = []
        superseded = False
        for entry in reversed(entries):
            if self._rollback(entry):
                restored.append(entry.order_id)
            else:
                superseded = True
        self._changed()
        if superseded:
            # Later writes may have carried this change to the platform.
            self.schedule_refetch()
        failed = tuple(entry.order_id for entry in entries)
        logger.warning(
            "%s mutation rolled back: orders=%s restored=%s error=%s",
            dispatch.kind.value, list(failed), sorted(restored), error,
        )
        failure = MutationFailure(kind=dispatch.kind, order_ids=failed, error=error)
        self._notify_failure(failure)
        if on_error is not None:
            on_error(failure)
        return MutationOutcome(
            kind=dispatch.kind,
            order_ids=dispatch.order_ids,
            ok=False,
            failure=failure,
            rolled_back=failed,
        )

    def _noop(
        self,
        kind: MutationKind,
        order_ids: tuple[int, ...],
        on_success: Callable[[MutationOutcome], None] | None = None,
        on_error: Callable[[MutationFailure], None] | None = None,
    ) -> asyncio.Future:
        outcome = MutationOutcome(kind=kind, order_ids=order_ids, ok=True, noop=True)
        if on_success is not None:
            on_success(outcome)
        future = asyncio.get_running_loop().create_future()
        future.set_result(outcome)
        return future

    # ------------------------------------------------------------------
    # Mutation kinds
    # ------------------------------------------------------------------

    def set_note(self, order_id: int, note: str, **callbacks: Any) -> asyncio.Future:
        """Replace an order's note."""
        order = self.require(order_id)
        return self._dispatch(
            MutationKind.NOTE,
            {order_id: order.with_changes(note=note)},
            lambda: self._gateway.update_note(order_id, note),
            **callbacks,
        )

    def set_tags(self, order_id: int, tags: Iterable[str], **callbacks: Any) -> asyncio.Future:
        """Replace an order's whole label collection."""
        order = self.require(order_id)
        record = order.with_tags(strip_transient(list(tags)))
        return self._dispatch(
            MutationKind.TAGS,
            {order_id: record},
            lambda: self._gateway.update_tags(order_id, list(record.tags)),
            **callbacks,
        )

    def set_priority(self, order_id: int, is_priority: bool, **callbacks: Any) -> asyncio.Future:
        """Add or remove the priority flag."""
        order = self.require(order_id)
        record = order.with_tags(encode(order.tags, flags={PRIORITY: is_priority}))
        return self._dispatch(
            MutationKind.PRIORITY,
            {order_id: record},
            lambda: self._gateway.update_priority(order_id, is_priority),
            **callbacks,
        )

    def set_status(
        self,
        order_id: int,
        status: Any,
        *,
        reason: str | None = None,
        **callbacks: Any,
    ) -> asyncio.Future:
        """Move an order to a new workflow status.

        A request for the current status settles immediately as a no-op.

        Raises:
            NotFoundError: If the order is not cached.
            ValidationError: If the status is unknown.
        """
        order = self.require(order_id)
        transition = to_status(order, status, now=self._clock(), reason=reason, tz=self._tz)
        if not transition.changed:
            return self._noop(MutationKind.STATUS, (order_id,), **callbacks)
        label = wire_status(transition.target)
        return self._dispatch(
            MutationKind.STATUS,
            {order_id: transition.order},
            lambda: self._gateway.update_status(order_id, label),
            touch=True,
            **callbacks,
        )

    def bulk_set_status(
        self,
        order_ids: Iterable[int],
        status: Any,
        **callbacks: Any,
    ) -> asyncio.Future:
        """Move several orders to one status with a single remote request.

        Orders the platform reports as failed are rolled back individually.
        One debounced refetch reconciles server-side side effects.

        Raises:
            NotFoundError: If any order is not cached.
            ValidationError: If the status is unknown or no ids are given.
        """
        ids = list(dict.fromkeys(order_ids))
        if not ids:
            raise ValidationError("No orders were selected for bulk status update.", code="E-1004")
        target = parse_status(status)
        now = self._clock()
        updates: dict[int, Order] = {}
        for order_id in ids:
            transition = to_status(self.require(order_id), target, now=now, tz=self._tz)
            if transition.changed:
                updates[order_id] = transition.order
        if not updates:
            return self._noop(MutationKind.BULK_STATUS, tuple(ids), **callbacks)
        label = wire_status(target)
        changed = list(updates)
        return self._dispatch(
            MutationKind.BULK_STATUS,
            updates,
            lambda: self._gateway.bulk_update_status(changed, label),
            touch=True,
            reconcile=True,
            failed_ids=lambda result: (
                result.failed_ids if isinstance(result, BulkResult) else set()
            ),
            **callbacks,
        )

    def _date_update(
        self,
        kind: MutationKind,
        order_id: int,
        value: str,
        key: str,
        submit: Callable[[], Awaitable[Any]],
        callbacks: dict[str, Any],
    ) -> asyncio.Future:
        order = self.require(order_id)
        parsed = parse_civil(value, self._tz)
        fact = parsed.date().isoformat() if parsed is not None else value
        record = order.with_changes(
            tags=encode(order.tags, facts={key: fact}),
            **{key: value},
        )
        return self._dispatch(kind, {order_id: record}, submit, **callbacks)

    def set_due_date(self, order_id: int, due_date: str, **callbacks: Any) -> asyncio.Future:
        """Override an order's due date."""
        return self._date_update(
            MutationKind.DUE_DATE, order_id, due_date, CUSTOM_DUE_DATE,
            lambda: self._gateway.update_due_date(order_id, due_date),
            callbacks,
        )

    def set_start_date(self, order_id: int, start_date: str, **callbacks: Any) -> asyncio.Future:
        """Override an order's start date."""
        return self._date_update(
            MutationKind.START_DATE, order_id, start_date, CUSTOM_START_DATE,
            lambda: self._gateway.update_start_date(order_id, start_date),
            callbacks,
        )

    def delete(self, order_id: int, **callbacks: Any) -> asyncio.Future:
        """Hide an order from every view by labelling it deleted."""
        order = self.require(order_id)
        record = order.with_tags(add_label(order.tags, DELETED))
        return self._dispatch(
            MutationKind.DELETE,
            {order_id: record},
            lambda: self._gateway.update_tags(order_id, list(record.tags)),
            **callbacks,
        )

    def fulfill(self, order_id: int, **callbacks: Any) -> asyncio.Future:
        """Fulfill an order on the platform (optimistically marks it fulfilled)."""
        order = self.require(order_id)
        transition = to_status(order, OrderStatus.FULFILLED, now=self._clock(), tz=self._tz)
        return self._dispatch(
            MutationKind.FULFILL,
            {order_id: transition.order},
            lambda: self._gateway.fulfill_order(order_id),
            touch=transition.changed,
            **callbacks,
        )

    def set_location(
        self,
        order_id: int,
        city_id: str,
        neighborhood_id: str,
        subzone_id: str,
        **callbacks: Any,
    ) -> asyncio.Future:
        """Attach shipping-provider location ids to an order.

        Raises:
            ValidationError: If any of the three ids is missing.
        """
        ids = [str(v).strip() if v is not None else "" for v in (city_id, neighborhood_id, subzone_id)]
        if not all(ids) or "null" in ids:
            raise ValidationError(
                "City, neighborhood and sub-zone ids are all required.", code="E-1003"
            )
        order = self.require(order_id)
        record = order.with_tags(encode(order.tags, facts=dict(zip(LOCATION_KEYS, ids))))
        return self._dispatch(
            MutationKind.LOCATION,
            {order_id: record},
            lambda: self._gateway.add_location_tags(order_id, *ids),
            **callbacks,
        )

    def create_shipments(self, order_ids: Iterable[int], **callbacks: Any) -> asyncio.Future:
        """Create shipments; orders move to ready-to-ship with their barcodes.

        Raises:
            ValidationError: If no ids are given.
        """
        ids = list(dict.fromkeys(order_ids))
        if not ids:
            raise ValidationError("No orders were selected for shipment creation.", code="E-1004")
        now = self._clock()
        updates = {
            order_id: to_status(
                self.require(order_id), OrderStatus.READY_TO_SHIP, now=now, tz=self._tz
            ).order
            for order_id in ids
        }
        return self._dispatch(
            MutationKind.SHIPMENT,
            updates,
            lambda: self._gateway.create_shipments(ids),
            touch=True,
            reconcile=True,
            after_success=self._record_barcodes,
            **callbacks,
        )

    def _record_barcodes(self, result: Any, order_ids: set[int]) -> None:
        if not isinstance(result, ShipmentResult):
            return
        candidates = [self._orders[i] for i in sorted(order_ids) if i in self._orders]
        changed = False
        for order_id, barcode in result.match(candidates).items():
            order = self._orders[order_id]
            self._orders[order_id] = order.with_tags(
                encode(order.tags, facts={SHIPPING_BARCODE: barcode})
            )
            changed = True
        if changed:
            self._changed()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def drain(self) -> None:
        """Wait for every in-flight remote write (and refetch) to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Cancel armed timers (in-flight writes are left to finish)."""
        if self._refetch_handle is not None:
            self._refetch_handle.cancel()
            self._refetch_handle = None
        for touch in self._touched.values():
            if touch.handle is not None:
                touch.handle.cancel()
        self._touched.clear()
