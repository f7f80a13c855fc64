"""Shared service-layer error types.

Provides error dataclasses used across service modules (gateway, cache
store, board). Centralised here to avoid circular imports between service
modules.
"""

from dataclasses import dataclass

from src.errors.remote_translation import translate_remote_error


@dataclass
class RemoteWriteError(Exception):
    """Failure of a remote read or write against the order platform.

    Attributes:
        code: OrderDesk error code (E-XXXX format)
        message: Human-readable error message
        remediation: Suggested fix
        status_code: HTTP status, or None for transport failures
        details: Raw error details
    """

    code: str
    message: str
    remediation: str = ""
    status_code: int | None = None
    details: dict | None = None

    def __str__(self) -> str:
        """Return formatted error message."""
        return f"[{self.code}] {self.message}"

    @classmethod
    def from_response(
        cls,
        status_code: int | None,
        remote_message: str | None,
        details: dict | None = None,
    ) -> "RemoteWriteError":
        """Build an error from a platform response or transport failure."""
        code, message, remediation = translate_remote_error(status_code, remote_message)
        return cls(
            code=code,
            message=message,
            remediation=remediation,
            status_code=status_code,
            details=details,
        )
