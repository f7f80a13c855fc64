"""Test helper utilities for cache, board and API tests."""

from tests.helpers.in_memory_gateway import InMemoryOrderGateway

__all__ = [
    "InMemoryOrderGateway",
]
