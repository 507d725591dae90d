from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base app error."""

    kind = "error"
    user_message = "Something went wrong. Please try again."

    def __str__(self) -> str:
        return super().__str__() or self.user_message


class ValidationError(AppError):
    kind = "validation"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return (self.args[0] if self.args else "") or "Please check the form."


class NotFoundError(AppError):
    kind = "not_found"
    user_message = "The requested item no longer exists."


class InsufficientStockError(AppError):
    kind = "insufficient_stock"

    def __init__(self, message: str = "Not enough stock.", available: Optional[int] = None):
        super().__init__(message)
        self.available = available

    @property
    def user_message(self) -> str:  # type: ignore[override]
        if self.available is None:
            return "Not enough stock for this sale."
        return f"Not enough stock for this sale. Available: {self.available}"


class RequestFailedError(AppError):
    kind = "request_failed"
    user_message = "Could not reach the server. Please try again."

    def __init__(self, message: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthorizationError(AppError):
    kind = "authorization"
    user_message = "You are not allowed to do that."


class SessionExpiredError(AuthorizationError):
    kind = "session_expired"
    user_message = "Your session has expired. Please log in again."


class StaleResultError(AppError):
    """A fetch result superseded by a newer one. Never shown to users."""

    kind = "stale_result"
