"""Typed domain exceptions raised synchronously by dispatch functions.

Dispatch rejects bad input before touching the cache, so these never
trigger a rollback. Each carries the registry code of the condition so
the API and CLI can report it consistently.

Usage:
    # In the cache store
    raise NotFoundError("Order", order_id)

    # In a route handler
    try:
        board.set_status(order_id, status)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
"""


class DomainError(Exception):
    """Base exception for all domain errors."""

    code = "E-4001"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class NotFoundError(DomainError):
    """Order is not in the local cache. Maps to HTTP 404."""

    code = "E-1001"

    def __init__(self, resource_type: str, identifier: object) -> None:
        super().__init__(f"{resource_type} '{identifier}' not found")
        self.resource_type = resource_type
        self.identifier = identifier


class ValidationError(DomainError):
    """Rejected input (unknown status, empty selection, partial location). Maps to HTTP 400."""

    code = "E-1002"

    def __init__(self, message: str, code: str = "E-1002") -> None:
        super().__init__(message, code)
