"""Unit tests for the error framework.

Tests verify:
- Registered codes carry categories, titles and retry hints
- Remote failures translate to the right codes
- Formatting of user-visible errors
"""

import pytest

from src.errors.formatter import OrderDeskError, format_error
from src.errors.registry import ERROR_REGISTRY, ErrorCategory, get_error
from src.errors.remote_translation import translate_remote_error


@pytest.mark.parametrize(
    "code,category,title",
    [
        ("E-1001", ErrorCategory.DATA, "Order Not Found"),
        ("E-1002", ErrorCategory.DATA, "Invalid Status"),
        ("E-1003", ErrorCategory.DATA, "Incomplete Location"),
        ("E-3001", ErrorCategory.REMOTE, "Remote Write Rejected"),
        ("E-3002", ErrorCategory.REMOTE, "Order Platform Unreachable"),
        ("E-4001", ErrorCategory.SYSTEM, "Unexpected Error"),
    ],
)
def test_error_codes_registered(code, category, title):
    error = get_error(code)
    assert error is not None, f"{code} not found in registry"
    assert error.category == category
    assert error.title == title


def test_unknown_code():
    assert get_error("E-9999") is None


def test_remote_codes_registered():
    codes = {
        code for code, error in ERROR_REGISTRY.items()
        if error.category == ErrorCategory.REMOTE
    }
    assert {"E-3001", "E-3002", "E-3003", "E-3004", "E-3005"} <= codes


class TestTranslateRemoteError:
    """Tests for translate_remote_error()."""

    @pytest.mark.parametrize(
        "status_code,expected",
        [
            (None, "E-3002"),
            (400, "E-3001"),
            (401, "E-3005"),
            (404, "E-3003"),
            (429, "E-3004"),
            (503, "E-3004"),
        ],
    )
    def test_status_mapping(self, status_code, expected):
        code, _, _ = translate_remote_error(status_code, "boom")
        assert code == expected

    def test_message_pattern_for_unmapped_status(self):
        code, message, _ = translate_remote_error(418, "Order not found on platform")
        assert code == "E-3003"
        assert "Order not found on platform" in message

    def test_unmapped_status_defaults_to_rejected(self):
        assert translate_remote_error(418, "teapot")[0] == "E-3001"

    def test_missing_message(self):
        _, message, _ = translate_remote_error(500, None)
        assert "Unknown error" in message


class TestFormatter:
    """Tests for OrderDeskError helpers."""

    def test_from_code_substitutes_context(self):
        error = OrderDeskError.from_code("E-1001", order_id=42, order_ids=[42])
        assert error.message == "Order 42 is not in the local cache."
        assert error.order_ids == [42]

    def test_from_code_keeps_template_when_context_missing(self):
        error = OrderDeskError.from_code("E-4001")
        assert "{operation}" in error.message

    def test_from_code_carries_retry_hint(self):
        assert OrderDeskError.from_code("E-3004", remote_message="x").is_retryable is True

    def test_format_error_lists_orders(self):
        error = OrderDeskError.from_code("E-3001", remote_message="locked", order_ids=[1, 2])
        text = format_error(error)
        assert text.startswith("E-3001: The order platform rejected the change: locked")
        assert "Affected orders: 1, 2" in text
        assert "Action:" in text

