"""
Client-side validators. Each runs before any request is sent and raises
``FormValidationError`` on failure.
"""

from __future__ import annotations

import re
from typing import Dict, Optional

from client.errors import FormValidationError
from config.settings import config

_NON_DIGIT = re.compile(r"\D")
_DIGIT = re.compile(r"\d")
_SYMBOL = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")
_LOWER = re.compile(r"[a-z]")
_UPPER = re.compile(r"[A-Z]")


def normalize_email(email: Optional[str]) -> str:
    """Trim and lowercase. Every auth endpoint receives emails in this form."""
    return (email or "").strip().lower()


def require(value: Optional[str], field: str, label: Optional[str] = None) -> str:
    if not value or not value.strip():
        raise FormValidationError(f"{label or field} is required.", field=field)
    return value


def require_email(email: Optional[str], field: str = "email") -> str:
    normalized = normalize_email(email)
    if not normalized:
        raise FormValidationError("Email is required.", field=field)
    if "@" not in normalized:
        raise FormValidationError("Enter a valid email address.", field=field)
    return normalized


def sanitize_otp(raw: Optional[str], length: Optional[int] = None) -> str:
    """Keep digits only, truncated to the OTP length."""
    return _NON_DIGIT.sub("", raw or "")[: length or config.otp_length]


def require_otp(code: Optional[str], length: Optional[int] = None) -> str:
    length = length or config.otp_length
    if not code or len(code) != length or not code.isdigit():
        raise FormValidationError(f"Enter the {length}-digit code.", field="otpCode")
    return code


def validate_reset_password(new_password: str, confirm_password: str) -> None:
    """Rules for the forgot-password final step: match and minimum length."""
    if new_password != confirm_password:
        raise FormValidationError("Passwords do not match.", field="confirmPassword")
    if len(new_password) < config.min_password_length:
        raise FormValidationError(
            f"Password must be at least {config.min_password_length} characters.",
            field="newPassword",
        )


def password_checks(new_password: str, confirm_password: str) -> Dict[str, bool]:
    """Strength checklist shown while choosing a new password."""
    return {
        "length": len(new_password) >= config.min_password_length,
        "number": bool(_DIGIT.search(new_password)),
        "symbol": bool(_SYMBOL.search(new_password)),
        "complexity": bool(_LOWER.search(new_password) and _UPPER.search(new_password)),
        "match": bool(new_password) and new_password == confirm_password,
    }


_CHECK_MESSAGES = {
    "length": "Password must be at least {n} characters.",
    "number": "Password must contain a number.",
    "symbol": "Password must contain a symbol.",
    "complexity": "Password must mix upper and lower case letters.",
    "match": "Passwords do not match.",
}


def validate_password_change(
    current_password: str, new_password: str, confirm_password: str
) -> None:
    require(current_password, "currentPassword", "Current password")
    for check, ok in password_checks(new_password, confirm_password).items():
        if not ok:
            raise FormValidationError(
                _CHECK_MESSAGES[check].format(n=config.min_password_length),
                field="confirmPassword" if check == "match" else "newPassword",
            )


def validate_avatar(content_type: str, size: int) -> None:
    if content_type not in config.avatar_allowed_types:
        raise FormValidationError(
            "Invalid file type. Please upload a JPEG, PNG or WebP image.", field="avatar"
        )
    if size > config.avatar_max_bytes:
        max_mb = config.avatar_max_bytes // (1024 * 1024)
        raise FormValidationError(f"File is too large. Max size is {max_mb}MB.", field="avatar")
