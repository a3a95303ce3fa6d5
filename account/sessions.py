"""
Active-session list and revocation for the signed-in account.

Local state only changes after the server confirms; the session matching
the locally stored session id is never revocable from here.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from auth.session_store import BaseSessionStore
from client.api import ApiClient
from client.errors import CannotRevokeCurrentSession, SessionRevocationError
from utils.schemas import Session, parse_sessions

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(self, api: ApiClient, store: BaseSessionStore) -> None:
        self.api = api
        self.store = store
        self.sessions: List[Session] = []
        self.loaded = False
        self.load_failed = False

    @property
    def current_session_id(self) -> Optional[str]:
        return self.store.get_session_id()

    @property
    def current(self) -> Optional[Session]:
        return next((s for s in self.sessions if s.is_current), None)

    @property
    def others(self) -> List[Session]:
        return [s for s in self.sessions if not s.is_current]

    async def refresh(self) -> List[Session]:
        """Fetch the list; on failure log it and show an empty list."""
        try:
            payload = await self.api.get("/users/sessions")
        except Exception as exc:
            logger.error("Failed to load sessions: %s", exc)
            self.sessions = []
            self.load_failed = True
        else:
            self.sessions = parse_sessions(payload, self.current_session_id)
            self.load_failed = False
        self.loaded = True
        return self.sessions

    async def revoke(self, session_id: str) -> None:
        if session_id == self.current_session_id:
            raise CannotRevokeCurrentSession()
        try:
            await self.api.delete(f"/users/sessions/{session_id}")
        except Exception as exc:
            logger.warning("Revoking session %s failed: %s", session_id, exc)
            raise SessionRevocationError("Failed to revoke session") from exc
        self.sessions = [s for s in self.sessions if s.session_id != session_id]
        logger.info("Revoked session %s", session_id)

    async def revoke_all_others(self) -> None:
        try:
            await self.api.delete("/users/sessions")
        except Exception as exc:
            logger.warning("Revoking other sessions failed: %s", exc)
            raise SessionRevocationError("Failed to revoke other sessions") from exc
        current = self.current_session_id
        self.sessions = [s for s in self.sessions if s.session_id == current]
        logger.info("Revoked all sessions except %s", current)
