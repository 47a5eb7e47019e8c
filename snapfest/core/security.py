"""Completion OTP generation and verification."""

import secrets

from passlib.context import CryptContext

OTP_LENGTH = 6

# OTPs are stored hashed, like passwords
otp_context = CryptContext(schemes=["argon2"], deprecated="auto")


def generate_otp() -> str:
    """Return a uniformly random 6-digit code."""
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def hash_otp(otp: str) -> str:
    """Hash an OTP using Argon2."""
    return otp_context.hash(otp)


def verify_otp(plain_otp: str, otp_hash: str | None) -> bool:
    """Verify a submitted OTP against the stored hash."""
    if not otp_hash:
        return False
    return otp_context.verify(plain_otp, otp_hash)
