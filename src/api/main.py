"""FastAPI application for the OrderDesk API.

Provides the main application instance with the order board created in
the lifespan, routers and exception handlers configured.
"""

import logging
import os
import sys
import time as _time
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
# Ensure our application loggers are captured
logging.getLogger("src").setLevel(logging.INFO)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes import orders
from src.cli.config import load_config
from src.cli.factory import build_board
from src.errors import OrderDeskError
from src.errors.formatter import format_error
from src.services.errors import RemoteWriteError

logger = logging.getLogger(__name__)

_startup_time: float = 0.0


def _parse_allowed_origins() -> list[str]:
    """Parse comma-separated CORS allowlist from ALLOWED_ORIGINS env var."""
    raw = os.environ.get("ALLOWED_ORIGINS", "").strip()
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the order board, load it once, close it on shutdown."""
    global _startup_time
    _startup_time = _time.time()

    if getattr(app.state, "board", None) is None:
        cfg = load_config(config_path=os.environ.get("ORDERDESK_CONFIG_PATH"))
        app.state.board = build_board(cfg)

    board = app.state.board
    board.on_failure(
        lambda failure: logger.warning("Mutation rolled back: %s", format_error(failure.error))
    )
    try:
        await board.refresh()
    except RemoteWriteError as e:
        # The board still serves (empty); POST /orders/refresh retries.
        logger.error("Initial order load failed: %s", e)

    yield

    await board.store.drain()
    board.store.close()
    board.close()
    app.state.board = None


app = FastAPI(
    title="OrderDesk API",
    description="Order workflow dashboard with optimistic updates",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS allowlist is env-driven. If unset, CORS is disabled (same-origin only).
allowed_origins = _parse_allowed_origins()
if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )


@app.exception_handler(OrderDeskError)
async def orderdesk_error_handler(
    request: Request, exc: OrderDeskError
) -> JSONResponse:
    """Handle OrderDeskError exceptions with consistent format."""
    return JSONResponse(
        status_code=400,
        content={
            "error_code": exc.code,
            "message": exc.message,
            "remediation": exc.remediation,
            "details": exc.details if exc.details else None,
        },
    )


app.include_router(orders.router, prefix="/api/v1")


@app.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint with cache status."""
    uptime = int(_time.time() - _startup_time) if _startup_time else 0
    try:
        version = _pkg_version("orderdesk")
    except PackageNotFoundError:
        version = "unknown"
    board = getattr(request.app.state, "board", None)
    return {
        "status": "healthy",
        "version": version,
        "uptime_seconds": uptime,
        "cached_orders": len(board.store) if board is not None else 0,
        "pending_writes": len(board.store.pending_ids()) if board is not None else 0,
    }
