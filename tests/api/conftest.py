"""Pytest fixtures for API tests.

Provides a TestClient whose lifespan runs against an in-memory order
platform instead of the configured HTTP backend.
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from src.api.main import app
from src.cli.config import OrderDeskConfig, WorkflowConfig
from src.cli.factory import build_board
from tests.conftest import make_order
from tests.helpers.in_memory_gateway import InMemoryOrderGateway


@pytest.fixture
def api_gateway() -> InMemoryOrderGateway:
    """Platform seeded with two pending orders and one shipped order."""
    gateway = InMemoryOrderGateway()
    gateway.seed(
        make_order(1001, tags=["custom_due_date:2024-03-20"]),
        make_order(1002),
        make_order(1003, tags=["shipped", "shipping_date:2024-03-01"]),
    )
    return gateway


@pytest.fixture
def client(api_gateway: InMemoryOrderGateway) -> Generator[TestClient, None, None]:
    """TestClient with a preset board; the lifespan loads it on entry.

    Yields:
        TestClient configured for testing.
    """
    config = OrderDeskConfig(
        workflow=WorkflowConfig(status_grace_seconds=0.05, refetch_debounce_seconds=0.02)
    )
    app.state.board = build_board(config, gateway=api_gateway)
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.state.board = None
