"""Typed failures raised inside services and mapped to result codes at their boundary."""

from __future__ import annotations

from merchforge.enums import ErrorCode

SESSION_EXPIRED_MESSAGE = "Your session expired. Please sign in again."


class ServiceError(Exception):
    """Base class for every expected, user-facing failure."""

    code: ErrorCode = ErrorCode.SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailedError(ServiceError):
    code = ErrorCode.VALIDATION


class UnauthorizedError(ServiceError):
    code = ErrorCode.UNAUTHORIZED

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE) -> None:
        super().__init__(message)


class NotFoundError(ServiceError):
    code = ErrorCode.NOT_FOUND


class InsufficientCreditsError(ServiceError):
    """Raised when a debit would take the balance below zero."""

    code = ErrorCode.INSUFFICIENT_CREDITS

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        plural = "" if required == 1 else "s"
        super().__init__(
            f"Not enough credits. You need {required} credit{plural}, "
            f"but only {available} remain."
        )


class InvalidTransitionError(ServiceError):
    code = ErrorCode.INVALID_TRANSITION
