"""
Durable storage for the bearer token and the session id.

The two entries are always cleared together. Presence of a token is the
single source of truth for "someone is logged in on this client".
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
SESSION_ID_KEY = "sessionId"


class BaseSessionStore(ABC):
    """Key-value store holding ``token`` and ``sessionId``."""

    @abstractmethod
    def _read(self) -> Dict[str, str]:
        ...

    @abstractmethod
    def _write(self, data: Dict[str, str]) -> None:
        ...

    # ── Accessors ───────────────────────────────────────────────────────

    def get_token(self) -> Optional[str]:
        return self._read().get(TOKEN_KEY) or None

    def get_session_id(self) -> Optional[str]:
        return self._read().get(SESSION_ID_KEY) or None

    def has_token(self) -> bool:
        return self.get_token() is not None

    # ── Mutators (only the auth context calls these) ────────────────────

    def set_token(self, token: str) -> None:
        data = self._read()
        data[TOKEN_KEY] = token
        self._write(data)

    def set_session_id(self, session_id: str) -> None:
        data = self._read()
        data[SESSION_ID_KEY] = str(session_id)
        self._write(data)

    def persist(self, token: str, session_id: Optional[str] = None) -> None:
        """Store a fresh token; the session id is only replaced when given."""
        data = self._read()
        data[TOKEN_KEY] = token
        if session_id:
            data[SESSION_ID_KEY] = str(session_id)
        self._write(data)

    def clear(self) -> None:
        data = self._read()
        data.pop(TOKEN_KEY, None)
        data.pop(SESSION_ID_KEY, None)
        self._write(data)


class MemorySessionStore(BaseSessionStore):
    """Process-local store (tests, short-lived scripts)."""

    def __init__(self, token: Optional[str] = None, session_id: Optional[str] = None):
        self._data: Dict[str, str] = {}
        if token:
            self._data[TOKEN_KEY] = token
        if session_id:
            self._data[SESSION_ID_KEY] = session_id

    def _read(self) -> Dict[str, str]:
        return dict(self._data)

    def _write(self, data: Dict[str, str]) -> None:
        self._data = dict(data)


class FileSessionStore(BaseSessionStore):
    """
    JSON file on disk, rewritten atomically on every change.

    A missing or unreadable file reads as an empty store.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: str(v) for k, v in data.items() if v is not None}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp, self.path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
