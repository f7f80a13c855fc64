"""Remote platform failure translation to OrderDesk error codes.

Maps HTTP status codes and server error messages returned by the order
platform to OrderDesk's error code system so every rollback notification
carries a consistent, actionable message.
"""

from src.errors.registry import get_error

# HTTP status -> OrderDesk error code
HTTP_STATUS_MAP: dict[int, str] = {
    400: "E-3001",
    401: "E-3005",
    403: "E-3005",
    404: "E-3003",
    409: "E-3001",
    422: "E-3001",
    429: "E-3004",
    500: "E-3004",
    502: "E-3004",
    503: "E-3004",
    504: "E-3004",
}

# Server message fragments that identify a failure regardless of status
REMOTE_MESSAGE_PATTERNS: dict[str, str] = {
    "not found": "E-3003",
    "unauthorized": "E-3005",
    "rate limit": "E-3004",
    "timeout": "E-3002",
}


def translate_remote_error(
    status_code: int | None,
    remote_message: str | None,
) -> tuple[str, str, str]:
    """Translate a remote failure to an OrderDesk error.

    Args:
        status_code: HTTP status returned by the platform (None for
            transport failures).
        remote_message: Error text from the response body or transport.

    Returns:
        Tuple of (error_code, formatted_message, remediation).
    """
    remote_message = remote_message or "Unknown error"

    code: str | None = None
    if status_code is None:
        code = "E-3002"
    elif status_code in HTTP_STATUS_MAP:
        code = HTTP_STATUS_MAP[status_code]
    else:
        lowered = remote_message.lower()
        for pattern, mapped in REMOTE_MESSAGE_PATTERNS.items():
            if pattern in lowered:
                code = mapped
                break

    error = get_error(code or "E-3001")
    if error is None:
        return ("E-3001", f"Remote error: {remote_message}", "Retry the change.")
    return (
        error.code,
        error.message_template.format(remote_message=remote_message),
        error.remediation,
    )
