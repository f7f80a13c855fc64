"""FastAPI routes for the order board.

Mutation endpoints apply the change to the board's cache and return 202
with the optimistic order; the remote write settles in the background.
Remote failures are rolled back by the store and never surface here.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from src.api.schemas import (
    BulkMutationAccepted,
    BulkStatusUpdate,
    DueDateUpdate,
    MutationAccepted,
    NoteUpdate,
    OrderListResponse,
    OrderResponse,
    PriorityUpdate,
    RefreshResponse,
    StatusUpdate,
)
from src.errors.domain import NotFoundError, ValidationError
from src.services.errors import RemoteWriteError
from src.services.order_board import OrderBoard
from src.services.order_view import ViewParams

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def get_board(request: Request) -> OrderBoard:
    """Dependency to get the application's OrderBoard."""
    board = getattr(request.app.state, "board", None)
    if board is None:
        raise HTTPException(status_code=503, detail="Order board is not ready")
    return board


def _accepted(board: OrderBoard, order_id: int) -> MutationAccepted:
    order = board.store.get(order_id)
    return MutationAccepted(
        order=OrderResponse.from_order(order, board.view.resolver) if order else None
    )


@router.get("", response_model=OrderListResponse)
async def list_orders(
    status: str = Query("pending", description="Status bucket or 'all'"),
    search: str = Query("", description="Search name, customer or phone"),
    item: list[str] | None = Query(None, description="Pinned items"),
    board: OrderBoard = Depends(get_board),
) -> OrderListResponse:
    """Return the board view for the given parameters."""
    try:
        params = ViewParams(status=status, search=search, items=frozenset(item or ()))
        visible = board.render(params)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    now = board.view.resolver.now()
    return OrderListResponse(
        orders=[OrderResponse.from_order(o, board.view.resolver, now) for o in visible],
        total=len(visible),
        status=status,
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_orders(board: OrderBoard = Depends(get_board)) -> RefreshResponse:
    """Re-fetch every order from the platform."""
    try:
        total = await board.store.refresh()
    except RemoteWriteError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return RefreshResponse(total=total)


@router.put("/bulk/status", response_model=BulkMutationAccepted, status_code=202)
async def bulk_update_status(
    payload: BulkStatusUpdate,
    board: OrderBoard = Depends(get_board),
) -> BulkMutationAccepted:
    """Move several orders to one status."""
    try:
        board.bulk_set_status(payload.order_ids, payload.status)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BulkMutationAccepted(order_ids=payload.order_ids)


@router.put("/{order_id}/status", response_model=MutationAccepted, status_code=202)
async def update_status(
    order_id: int,
    payload: StatusUpdate,
    board: OrderBoard = Depends(get_board),
) -> MutationAccepted:
    """Move an order to a new status."""
    try:
        board.set_status(order_id, payload.status, reason=payload.reason)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _accepted(board, order_id)


@router.put("/{order_id}/note", response_model=MutationAccepted, status_code=202)
async def update_note(
    order_id: int,
    payload: NoteUpdate,
    board: OrderBoard = Depends(get_board),
) -> MutationAccepted:
    """Replace an order's note."""
    try:
        board.set_note(order_id, payload.note)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _accepted(board, order_id)


@router.put("/{order_id}/priority", response_model=MutationAccepted, status_code=202)
async def update_priority(
    order_id: int,
    payload: PriorityUpdate,
    board: OrderBoard = Depends(get_board),
) -> MutationAccepted:
    """Add or remove the priority flag."""
    try:
        board.set_priority(order_id, payload.is_priority)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _accepted(board, order_id)


@router.put("/{order_id}/due-date", response_model=MutationAccepted, status_code=202)
async def update_due_date(
    order_id: int,
    payload: DueDateUpdate,
    board: OrderBoard = Depends(get_board),
) -> MutationAccepted:
    """Override an order's due date."""
    try:
        board.set_due_date(order_id, payload.due_date)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _accepted(board, order_id)


@router.delete("/{order_id}", response_model=MutationAccepted, status_code=202)
async def delete_order(
    order_id: int,
    board: OrderBoard = Depends(get_board),
) -> MutationAccepted:
    """Hide an order by labelling it deleted."""
    try:
        board.delete(order_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _accepted(board, order_id)
