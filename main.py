"""
ERP auth/session client — wiring and entry point.

Running this module restores the persisted session (if any) and reports
who is signed in.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Optional

import httpx

from account.profile import NotificationSettings, ProfileService
from account.sessions import SessionManager
from auth.context import AuthContext
from auth.session_store import BaseSessionStore, FileSessionStore
from client.api import ApiClient
from config.settings import config
from core.email_change import EmailChangeFlow
from core.login_flow import LoginFlow
from core.password_reset import PasswordResetFlow


def configure_logging() -> None:
    level = config.log_level or ("DEBUG" if config.debug else "INFO")
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        stream=sys.stdout,
    )
    for _noisy in ("httpcore", "httpx"):
        logging.getLogger(_noisy).setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@dataclass
class ClientApp:
    """Everything a UI needs, built around one ``AuthContext``."""

    api: ApiClient
    auth: AuthContext
    sessions: SessionManager
    profile: ProfileService
    notifications: NotificationSettings

    def login_flow(self) -> LoginFlow:
        return LoginFlow(self.auth)

    def password_reset_flow(self) -> PasswordResetFlow:
        return PasswordResetFlow(self.auth.credentials)

    def email_change_flow(self) -> EmailChangeFlow:
        return EmailChangeFlow(self.auth)

    async def aclose(self) -> None:
        await self.api.aclose()


def create_app(
    store: Optional[BaseSessionStore] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ClientApp:
    store = store or FileSessionStore(config.session_store_path)
    api = ApiClient(store, transport=transport)
    auth = AuthContext(api, store)
    return ClientApp(
        api=api,
        auth=auth,
        sessions=SessionManager(api, store),
        profile=ProfileService(auth),
        notifications=NotificationSettings(auth),
    )


async def _whoami() -> int:
    app = create_app()
    try:
        state = await app.auth.initialize()
        if state.is_authenticated and state.user is not None:
            logger.info("Signed in as %s (%s)", state.user.email, state.user.role)
            return 0
        logger.info("No active session")
        return 1
    finally:
        await app.aclose()


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(_whoami()))
