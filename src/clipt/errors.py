"""Error taxonomy shared by the services, the store and the HTTP layer.

Every error raised on purpose by this package derives from ``CliptError`` and
carries a stable ``code``, an HTTP ``status_code``, structured ``details``
and a ``user_message`` safe to show in a toast.
"""

from __future__ import annotations

from typing import Any


class CliptError(Exception):
    """Base class for all expected failures."""

    code = "internal_error"
    status_code = 500
    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logs and JSON responses."""
        return {"code": self.code, "detail": self.message, **self.details}


class ValidationError(CliptError, ValueError):
    """Caller supplied an invalid amount or argument. Rejected before any write."""

    code = "validation_error"
    status_code = 400

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return self.message


class InsufficientTokensError(ValidationError):
    """A debit would take the token balance below zero."""

    code = "insufficient_tokens"

    def __init__(self, required: int, balance: int) -> None:
        super().__init__(
            f"Not enough tokens: need {required}, have {balance}",
            required=required,
            balance=balance,
        )
        self.required = required
        self.balance = balance


class NotFoundError(CliptError, LookupError):
    """Referenced profile, achievement, boost or notification does not exist."""

    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: Any) -> None:
        super().__init__(f"{resource} not found: {identifier}", resource=resource, identifier=str(identifier))
        self.resource = resource
        self.identifier = identifier

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"That {self.resource} no longer exists."


class ConflictError(CliptError):
    """A conditional write's precondition failed (concurrent change or terminal state)."""

    code = "conflict"
    status_code = 409
    user_message = "This action was already handled."


class StoreError(CliptError):
    """The underlying persistence call failed or timed out."""

    code = "store_unavailable"
    status_code = 503

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Store operation {operation!r} failed: {reason}", operation=operation)
        self.operation = operation
