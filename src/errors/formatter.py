"""Error formatting utilities.

This module provides:
- OrderDeskError exception class for application errors
- Error formatting for user-visible notifications
"""

from dataclasses import dataclass, field

from src.errors.registry import get_error


@dataclass
class OrderDeskError(Exception):
    """Application error with code, message, and context.

    Attributes:
        code: Error code in E-XXXX format.
        message: Human-readable error message.
        remediation: Action user should take to resolve.
        order_ids: Affected order ids.
        is_retryable: Whether the operation can be retried without user action.
        details: Additional context dictionary.
    """

    code: str
    message: str
    remediation: str
    order_ids: list[int] = field(default_factory=list)
    is_retryable: bool = False
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code}: {self.message}"

    @classmethod
    def from_code(cls, code: str, **kwargs: object) -> "OrderDeskError":
        """Create error from registry code with context substitution.

        Args:
            code: Error code in E-XXXX format.
            **kwargs: Context values for message template substitution.
                Special keys 'order_ids' and 'details' are used for
                OrderDeskError fields rather than message substitution.

        Returns:
            OrderDeskError instance with formatted message.
        """
        order_ids = kwargs.get("order_ids", [])
        if not isinstance(order_ids, list):
            order_ids = []
        details = kwargs.get("details", {})
        if not isinstance(details, dict):
            details = {}

        error_def = get_error(code)
        if not error_def:
            return cls(
                code=code,
                message=f"Unknown error: {code}",
                remediation="Check the logs.",
                order_ids=order_ids,
                details=details,
            )

        message = error_def.message_template
        try:
            template_kwargs = {
                k: v for k, v in kwargs.items() if k not in ("order_ids", "details")
            }
            message = message.format(**template_kwargs)
        except KeyError:
            # Keep template if some placeholders are missing
            pass

        return cls(
            code=error_def.code,
            message=message,
            remediation=error_def.remediation,
            is_retryable=error_def.is_retryable,
            order_ids=order_ids,
            details=details,
        )


def format_error(error: OrderDeskError, include_remediation: bool = True) -> str:
    """Format error for display to the operator.

    Args:
        error: The OrderDeskError to format.
        include_remediation: Whether to include remediation steps.

    Returns:
        Multi-line formatted string suitable for a notification.
    """
    lines = [f"{error.code}: {error.message}"]

    if error.order_ids:
        if len(error.order_ids) == 1:
            lines.append(f"  Order: {error.order_ids[0]}")
        else:
            ids_str = ", ".join(str(i) for i in error.order_ids[:10])
            if len(error.order_ids) > 10:
                ids_str += f" (and {len(error.order_ids) - 10} more)"
            lines.append(f"  Affected orders: {ids_str}")

    if include_remediation:
        lines.append(f"  Action: {error.remediation}")

    return "\n".join(lines)

