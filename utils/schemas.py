"""
Pydantic schemas for the auth/session client.

Field names are snake_case; the backend's camelCase keys are accepted and
emitted through aliases.
"""

from __future__ import annotations

import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _Wire(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════════════════════


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    STAFF = "staff"
    LOGISTICS = "logistics"


class User(_Wire):
    """
    Cached copy of the backend's user record.

    Everything is optional: right after registration only ``token`` is
    known, and profile patches arrive piecemeal.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    two_factor_enabled: bool = False
    is_active: bool = True
    avatar: Optional[str] = None
    last_login: Optional[datetime] = None
    last_password_change: Optional[datetime] = None
    created_at: Optional[datetime] = None
    token: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @property
    def is_placeholder(self) -> bool:
        """Only a token is known (post-registration state)."""
        return self.id is None and self.email is None

    def merged(self, patch: Dict[str, Any]) -> "User":
        """Return a copy with ``patch`` (camelCase or snake_case) applied."""
        data = self.model_dump(by_alias=False)
        data.update(self.model_extra or {})
        incoming = User.model_validate(patch)
        for key in patch:
            field = _field_for_key(key)
            if field is not None:
                data[field] = getattr(incoming, field)
            else:
                data[key] = patch[key]
        return User.model_validate(data)


def _field_for_key(key: str) -> Optional[str]:
    if key == "_id":
        return "id"
    for name, info in User.model_fields.items():
        if key == name or key == info.alias:
            return name
    return None


class Session(_Wire):
    session_id: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    last_seen_at: Optional[datetime] = None
    is_current: bool = False


# ═══════════════════════════════════════════════════════════════════════════════
# Auth endpoint payloads
# ═══════════════════════════════════════════════════════════════════════════════


class LoginResult(_Wire):
    """``POST /auth/login`` — either a token or an MFA challenge."""

    token: Optional[str] = None
    session_id: Optional[str] = None
    mfa_required: bool = False
    msg: Optional[str] = None


class RegisterResult(_Wire):
    token: str


class VerifyOtpResult(_Wire):
    token: str
    session_id: Optional[str] = None
    user: User


class EmailChangeResult(_Wire):
    email: str


class TwoFactorResult(_Wire):
    two_factor_enabled: bool


class AvatarResult(_Wire):
    avatar: Optional[str] = None


class OtpChallenge(BaseModel):
    """Transient record of an OTP that was just requested. Never persisted."""

    email: str
    issued_at: float = Field(default_factory=time.time)
    cooldown_seconds_remaining: int = 0


class ActivityEntry(_Wire):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    action: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class NotificationPreferences(BaseModel):
    """Backend-defined boolean flags, kept as an open mapping."""

    flags: Dict[str, bool] = Field(default_factory=dict)

    def toggled(self, key: str) -> "NotificationPreferences":
        updated = dict(self.flags)
        updated[key] = not updated.get(key, False)
        return NotificationPreferences(flags=updated)


def parse_sessions(payload: Any, current_session_id: Optional[str]) -> List[Session]:
    rows = payload if isinstance(payload, list) else []
    sessions = []
    for row in rows:
        session = Session.model_validate(row)
        session.is_current = (
            current_session_id is not None and session.session_id == current_session_id
        )
        sessions.append(session)
    return sessions
