"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    code = "APP_ERROR"

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception.

    ``errors`` holds every violation found, so a caller can report them all
    at once.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(AppException):
    """Illegal state transition for the booking's current state."""

    code = "CONFLICT"

    def __init__(self, detail: str = "This operation is not allowed for the current booking state") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ConcurrencyError(AppException):
    """Booking was modified concurrently; re-read and retry."""

    code = "CONCURRENT_MODIFICATION"

    def __init__(self, detail: str = "Booking was modified by another request. Reload and try again.") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class AssignmentError(AppException):
    """Vendor cannot be bound to the booking."""

    code = "ASSIGNMENT_REJECTED"

    def __init__(self, detail: str = "Vendor cannot be assigned to this booking") -> None:
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class OtpError(AppException):
    """Completion OTP rejected."""

    code = "OTP_ERROR"

    def __init__(self, detail: str = "OTP verification failed") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class OtpExpiredError(OtpError):
    """Submitted after the OTP validity window closed."""

    code = "OTP_EXPIRED"

    def __init__(self, detail: str = "OTP has expired. Request a new code.") -> None:
        super().__init__(detail=detail)


class OtpMismatchError(OtpError):
    """Submitted code does not match the live OTP."""

    code = "OTP_MISMATCH"

    def __init__(self, detail: str = "Invalid OTP. Please check and try again.") -> None:
        super().__init__(detail=detail)


class RefundError(AppException):
    """Refund refused or failed at the gateway."""

    code = "REFUND_ERROR"

    def __init__(
        self,
        detail: str = "Refund could not be processed",
        status_code: int = status.HTTP_409_CONFLICT,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail)


class PaymentError(AppException):
    """Payment processing error."""

    code = "PAYMENT_ERROR"

    def __init__(self, detail: str = "Payment processing failed") -> None:
        super().__init__(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=detail)


class WebhookSignatureError(AppException):
    """Webhook payload failed signature verification."""

    code = "INVALID_SIGNATURE"

    def __init__(self, detail: str = "Invalid webhook signature") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class RateLimitExceeded(AppException):
    """Rate limit exceeded exception."""

    code = "RATE_LIMITED"

    def __init__(self, detail: str = "Too many requests. Please try again later.") -> None:
        super().__init__(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=detail)
