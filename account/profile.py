"""
Profile-page services: profile edits, avatar upload, password change,
activity log and notification preferences.

Results that touch the cached user are merged through
``AuthContext.update_user``; nothing here writes auth state directly.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from auth.context import AuthContext
from client.api import as_dict
from utils.schemas import ActivityEntry, AvatarResult, NotificationPreferences, User
from utils.validators import normalize_email, validate_avatar, validate_password_change

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.api = auth.api

    async def update_profile(self, name: str, email: str) -> Optional[User]:
        body = await self.api.put(
            "/users/profile", json={"name": name, "email": normalize_email(email)}
        )
        return self.auth.update_user(as_dict(body))

    async def upload_avatar(
        self, filename: str, content: bytes, content_type: str
    ) -> Optional[str]:
        """Validate type/size locally, upload, and cache the new avatar path."""
        validate_avatar(content_type, len(content))
        body = await self.api.post(
            "/users/avatar",
            files={"avatar": (filename, content, content_type)},
        )
        avatar = AvatarResult.model_validate(as_dict(body)).avatar
        self.auth.update_user({"avatar": avatar})
        logger.info("Avatar updated (%d bytes)", len(content))
        return avatar

    async def change_password(
        self, current_password: str, new_password: str, confirm_password: str
    ) -> Any:
        validate_password_change(current_password, new_password, confirm_password)
        result = await self.auth.credentials.change_password(current_password, new_password)
        logger.info("Password changed")
        return result

    async def fetch_activity(self) -> List[ActivityEntry]:
        body = await self.api.get("/users/activity")
        rows = body if isinstance(body, list) else []
        return [ActivityEntry.model_validate(row) for row in rows]


class NotificationSettings:
    """Notification toggles with revert-on-failure saves."""

    def __init__(self, auth: AuthContext) -> None:
        self.api = auth.api
        self.prefs: Optional[NotificationPreferences] = None
        self.saving = False

    async def load(self) -> Optional[NotificationPreferences]:
        try:
            body = await self.api.get("/users/notifications")
        except Exception as exc:
            logger.error("Failed to load notification prefs: %s", exc)
            return self.prefs
        flags: Dict[str, bool] = {
            k: bool(v) for k, v in as_dict(body).items() if isinstance(v, bool)
        }
        self.prefs = NotificationPreferences(flags=flags)
        return self.prefs

    async def toggle(self, key: str) -> NotificationPreferences:
        previous = self.prefs or NotificationPreferences()
        updated = previous.toggled(key)
        self.prefs = updated
        self.saving = True
        try:
            await self.api.put("/users/notifications", json=updated.flags)
        except Exception:
            logger.warning("Saving notification prefs failed; reverting %s", key)
            self.prefs = previous
            raise
        finally:
            self.saving = False
        return updated
