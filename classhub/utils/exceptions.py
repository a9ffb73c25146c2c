"""Domain errors raised by the services.

Every error is an ``HTTPException`` so routes can let it propagate; the
application exception handler renders ``detail``, ``error_code`` and
``retryable`` for the client.
"""

from fastapi import HTTPException, status


class ClassHubError(HTTPException):
    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "BAD_REQUEST"
    retryable: bool = False

    def __init__(self, detail: str, headers: dict[str, str] | None = None):
        super().__init__(status_code=type(self).status_code, detail=detail, headers=headers)

    def to_dict(self) -> dict:
        return {
            "detail": self.detail,
            "error_code": self.error_code,
            "retryable": self.retryable,
        }


class ValidationError(ClassHubError):
    """Bad input shape or time ordering."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"


class NotFoundError(ClassHubError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class PermissionDeniedError(ClassHubError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "PERMISSION_DENIED"


class AlreadyEnrolledError(ClassHubError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "ALREADY_ENROLLED"


class PaymentRequiredError(ClassHubError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    error_code = "PAYMENT_REQUIRED"


class SeatLimitError(ClassHubError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "SEAT_LIMIT_REACHED"


class InvalidTransitionError(ClassHubError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "INVALID_TRANSITION"


class ConflictError(ClassHubError):
    """The document changed since the caller last read it."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "CONCURRENT_MODIFICATION"


class ClassNotJoinableError(ClassHubError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CLASS_NOT_JOINABLE"


class StoreUnavailableError(ClassHubError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "STORE_UNAVAILABLE"
    retryable = True
