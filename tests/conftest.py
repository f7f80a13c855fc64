"""Root-level pytest fixtures for all tests.

Provides shared fixtures:
- Order factories
- A fixed civil "now"
- In-memory gateway, cache store and board wiring
"""

from datetime import datetime, timezone
from typing import Any

import pytest

from src.models.order import Order
from src.services.due_dates import DueDateResolver
from src.services.order_board import OrderBoard
from src.services.order_cache import OrderCacheStore
from tests.helpers.in_memory_gateway import InMemoryOrderGateway

# 2024-03-10 12:00 in UTC+3
FIXED_NOW = datetime(2024, 3, 10, 9, 0, tzinfo=timezone.utc)


# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring a running order platform"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests that take a long time to run"
    )


# ============================================================================
# Data factories
# ============================================================================


def make_order(order_id: int = 1001, **overrides: Any) -> Order:
    """Build an Order with sensible defaults.

    Any Order field may be overridden; ``tags`` accepts a list or a
    comma-joined string.
    """
    data: dict[str, Any] = {
        "id": order_id,
        "name": f"#{order_id}",
        "customer": {"first_name": "Mona", "last_name": "Adel", "phone": "01000000000"},
        "shipping_address": {"address1": "1 Nile St", "city": "Cairo", "province": "Cairo"},
        "total_price": "450.00",
        "line_items": [{"title": "Leather Wallet", "variant_title": "Brown", "quantity": 1}],
        "tags": [],
        "created_at": "2024-03-05T10:00:00+03:00",
    }
    data.update(overrides)
    return Order.model_validate(data)


@pytest.fixture
def order_factory():
    """Factory fixture returning make_order."""
    return make_order


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def resolver() -> DueDateResolver:
    return DueDateResolver(default_making_days=7, utc_offset_hours=3)


@pytest.fixture
def gateway() -> InMemoryOrderGateway:
    return InMemoryOrderGateway()


@pytest.fixture
def store(gateway):
    """Cache store with short timers so grace and debounce tests run fast."""
    store = OrderCacheStore(
        gateway,
        status_grace_seconds=0.05,
        refetch_debounce_seconds=0.02,
        clock=lambda: FIXED_NOW,
    )
    yield store
    store.close()


@pytest.fixture
def board(store, resolver):
    board = OrderBoard(store, resolver=resolver, clock=lambda: FIXED_NOW)
    yield board
    board.close()
