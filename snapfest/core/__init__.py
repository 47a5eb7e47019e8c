"""Core utilities and security modules."""

from snapfest.core.exceptions import (
    AppException,
    AssignmentError,
    ConcurrencyError,
    ConflictError,
    NotFoundError,
    OtpError,
    OtpExpiredError,
    OtpMismatchError,
    PaymentError,
    RefundError,
    ValidationError,
)
from snapfest.core.security import generate_otp, hash_otp, verify_otp

__all__ = [
    "AppException",
    "AssignmentError",
    "ConcurrencyError",
    "ConflictError",
    "NotFoundError",
    "OtpError",
    "OtpExpiredError",
    "OtpMismatchError",
    "PaymentError",
    "RefundError",
    "ValidationError",
    "generate_otp",
    "hash_otp",
    "verify_otp",
]
