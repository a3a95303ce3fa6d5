"""
Error taxonomy for the auth/session client.

Grouped by origin:
  (a) ``FormValidationError``  — caught client-side, before any request
  (b) ``ApiError``             — backend rejected the request
  (c) ``NetworkError``         — timeout / unreachable host
Startup token rejection is handled inside ``AuthContext.initialize`` and
never surfaces as an exception.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class ErpClientError(Exception):
    """Base class for every error raised by this package."""

    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ── (a) client-side validation ─────────────────────────────────────────


class FormValidationError(ErpClientError):
    """One or more form fields failed validation; no request was sent."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)


# ── (b) backend rejection ──────────────────────────────────────────────


class ApiError(ErpClientError):
    """
    Non-2xx response from the backend.

    ``msg`` is the human-readable message the backend sent (shown verbatim),
    ``code`` the optional machine-readable code (``EXPIRED``, ``LOCKED``, …).
    """

    def __init__(
        self,
        status_code: int,
        msg: Optional[str] = None,
        code: Optional[str] = None,
        payload: Any = None,
    ) -> None:
        self.status_code = status_code
        self.msg = msg
        self.code = code
        self.payload = payload
        super().__init__(msg or f"Request failed with status {status_code}")

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @classmethod
    def from_payload(cls, status_code: int, payload: Any) -> "ApiError":
        """Build from a decoded error body (``{msg, code}`` or similar)."""
        msg = None
        code = None
        if isinstance(payload, dict):
            msg = payload.get("msg") or payload.get("message") or payload.get("detail")
            code = payload.get("code")
            if isinstance(msg, (list, dict)):
                msg = str(msg)
        elif isinstance(payload, str) and payload.strip():
            msg = payload.strip()
        return cls(status_code, msg=msg, code=code, payload=payload)


# ── (c) transport failure ──────────────────────────────────────────────


class NetworkError(ErpClientError):
    default_message = "Unable to reach the server. Check your connection and try again."


# ── state / flow errors ────────────────────────────────────────────────


class RequestInFlightError(ErpClientError):
    """A request of the same kind is already outstanding."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"'{kind}' is already in progress")


class InvalidTransition(ErpClientError):
    def __init__(self, flow: str, current: Any, action: str) -> None:
        self.flow = flow
        self.current = current
        self.action = action
        super().__init__(f"{flow}: cannot '{action}' from state {current}")


class CannotRevokeCurrentSession(ErpClientError):
    default_message = "The current session cannot be revoked. Use logout instead."


class SessionRevocationError(ErpClientError):
    """Server refused or failed a revocation; local list left untouched."""


class AccessDenied(ErpClientError):
    def __init__(self, required: List[str], role: Optional[str]) -> None:
        self.required = list(required)
        self.role = role
        super().__init__(
            f"Access Restricted. Required: {' or '.join(required)} · Your role: {role}"
        )


def error_message(exc: BaseException, fallback: str) -> str:
    """Text to show inline for ``exc``; backend ``msg`` wins, else ``fallback``."""
    if isinstance(exc, ApiError):
        return exc.msg or fallback
    if isinstance(exc, (FormValidationError, NetworkError)):
        return exc.message
    return fallback


def error_code(exc: BaseException) -> Optional[str]:
    return exc.code if isinstance(exc, ApiError) else None


def describe(exc: BaseException) -> Dict[str, Any]:
    """Structured view of an error, for logging."""
    info: Dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, ApiError):
        info.update(status_code=exc.status_code, code=exc.code)
    return info
