"""Error code registry with E-XXXX format codes.

This module defines the error code system for OrderDesk, organizing errors
into categories:
- E-1xxx: Order data errors
- E-3xxx: Remote platform errors
- E-4xxx: System/internal errors

Each error includes a code, title, message template, and remediation steps.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    DATA = "data"  # E-1xxx: Order data errors
    REMOTE = "remote"  # E-3xxx: Remote platform errors
    SYSTEM = "system"  # E-4xxx: System/internal errors


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        message_template: Message with {placeholders} for context.
        remediation: Action user should take to resolve.
        is_retryable: Whether the operation can be retried without user action.
    """

    code: str  # E-XXXX format
    category: ErrorCategory
    title: str  # Short title for display
    message_template: str  # Message with {placeholders}
    remediation: str  # Action user should take
    is_retryable: bool = False  # Can be retried without user action


# Error registry - all defined error codes
ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Order data errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.DATA,
        title="Order Not Found",
        message_template="Order {order_id} is not in the local cache.",
        remediation="Refresh the order list and retry.",
    ),
    "E-1002": ErrorCode(
        code="E-1002",
        category=ErrorCategory.DATA,
        title="Invalid Status",
        message_template="'{status}' is not a known order status.",
        remediation="Choose one of: pending, order-ready, on_hold, confirmed, "
        "ready-to-ship, shipped, fulfilled, paid, cancelled.",
    ),
    "E-1003": ErrorCode(
        code="E-1003",
        category=ErrorCategory.DATA,
        title="Incomplete Location",
        message_template="City, neighborhood and sub-zone ids are all required.",
        remediation="Select a full location before saving.",
    ),
    "E-1004": ErrorCode(
        code="E-1004",
        category=ErrorCategory.DATA,
        title="Empty Selection",
        message_template="No orders were selected for {operation}.",
        remediation="Select at least one order and retry.",
    ),
    # Remote platform errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.REMOTE,
        title="Remote Write Rejected",
        message_template="The order platform rejected the change: {remote_message}",
        remediation="Review the order on the platform; the local view was restored.",
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.REMOTE,
        title="Order Platform Unreachable",
        message_template="Could not reach the order platform: {remote_message}",
        remediation="Check the network connection and retry.",
        is_retryable=True,
    ),
    "E-3003": ErrorCode(
        code="E-3003",
        category=ErrorCategory.REMOTE,
        title="Remote Order Not Found",
        message_template="The order platform does not know this order: {remote_message}",
        remediation="Refresh the order list; the order may have been removed.",
    ),
    "E-3004": ErrorCode(
        code="E-3004",
        category=ErrorCategory.REMOTE,
        title="Order Platform Unavailable",
        message_template="The order platform failed to process the change: {remote_message}",
        remediation="Wait a moment and retry.",
        is_retryable=True,
    ),
    "E-3005": ErrorCode(
        code="E-3005",
        category=ErrorCategory.REMOTE,
        title="Remote Authentication Failed",
        message_template="The order platform refused the credentials: {remote_message}",
        remediation="Check remote.api_key in the OrderDesk configuration.",
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Unexpected Error",
        message_template="Unexpected error while {operation}: {error}",
        remediation="Retry; if it persists, check the logs.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)

