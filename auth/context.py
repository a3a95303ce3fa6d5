"""
AuthContext — the process-wide authentication state machine.

Lifecycle: ``init → loading → {authenticated | anonymous}``.

The context is the only writer of the session store and of the cached
``User``. Everything else reads ``state`` / ``user`` or subscribes, and asks
for changes through the operations below.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from auth import state as actions
from auth.credentials import CredentialClient
from auth.session_store import BaseSessionStore
from auth.state import Action, AuthState, AuthStatus, reduce
from client.api import ApiClient
from client.errors import ApiError, describe
from config.settings import config
from utils.in_flight import InFlightGuard
from utils.schemas import (
    EmailChangeResult,
    LoginResult,
    RegisterResult,
    TwoFactorResult,
    User,
    VerifyOtpResult,
)
from utils.validators import normalize_email

logger = logging.getLogger(__name__)

Listener = Callable[[AuthState], None]


class AuthContext:
    def __init__(
        self,
        api: ApiClient,
        store: BaseSessionStore,
        *,
        fetch_profile_after_register: Optional[bool] = None,
    ) -> None:
        self.api = api
        self.store = store
        self.credentials = CredentialClient(api)
        self.in_flight = InFlightGuard()
        self.fetch_profile_after_register = (
            config.fetch_profile_after_register
            if fetch_profile_after_register is None
            else fetch_profile_after_register
        )
        self._state = AuthState()
        self._listeners: List[Listener] = []
        api.on_unauthorized(self._handle_unauthorized)

    # ── State access ────────────────────────────────────────────────────

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def user(self) -> Optional[User]:
        return self._state.user

    @property
    def status(self) -> AuthStatus:
        return self._state.status

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def token(self) -> Optional[str]:
        return self.store.get_token()

    @property
    def session_id(self) -> Optional[str]:
        return self.store.get_session_id()

    def has_role(self, *roles: str) -> bool:
        user = self._state.user
        return user is not None and user.role in roles

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, action: Action) -> None:
        self._state = reduce(self._state, action)
        logger.debug("auth %s → %s", action.type.value, self._state.status.value)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Auth listener failed on %s", action.type.value)

    def _handle_unauthorized(self, err: ApiError) -> None:
        if self._state.status is not AuthStatus.AUTHENTICATED:
            return
        logger.warning("Token rejected by backend (%s); signing out locally", err.msg)
        self.store.clear()
        self._dispatch(actions.logged_out())

    # ── Startup ─────────────────────────────────────────────────────────

    async def initialize(self) -> AuthState:
        """
        Resolve the persisted token into a user. Never raises: any failure
        clears storage and leaves the context anonymous.
        """
        if not self.store.has_token():
            self._dispatch(actions.logged_out())
            return self._state

        if self.in_flight.is_busy("initialize"):
            logger.debug("Startup check already running; leaving it to finish")
            return self._state

        self._dispatch(actions.init_started())
        try:
            async with self.in_flight.hold("initialize"):
                user = await self.credentials.me()
        except Exception as exc:
            logger.warning("Stored token rejected at startup: %s", describe(exc))
            self.store.clear()
            self._dispatch(actions.logged_out())
            return self._state

        logger.info("Restored session for %s", user.email)
        self._dispatch(actions.login_success(user))
        return self._state

    # ── Password login ──────────────────────────────────────────────────

    async def login(self, email: str, password: str) -> LoginResult:
        """
        Returns the backend's answer. When ``mfa_required`` is set nothing is
        persisted and the caller must drive the OTP sub-flow.
        """
        email = normalize_email(email)
        async with self.in_flight.hold("login"):
            result = await self.credentials.login(email, password)
            if not result.token:
                if result.mfa_required:
                    logger.info("MFA required for %s", email)
                return result

            self.store.persist(result.token, result.session_id)
            try:
                user = await self.credentials.me()
            except Exception:
                self.store.clear()
                raise

        logger.info("Logged in as %s", email)
        self._dispatch(actions.login_success(user))
        return result

    async def register(self, name: str, email: str, password: str) -> RegisterResult:
        email = normalize_email(email)
        async with self.in_flight.hold("register"):
            result = await self.credentials.register(name, email, password)
            self.store.persist(result.token)
            user = User(token=result.token)
            if self.fetch_profile_after_register:
                try:
                    user = await self.credentials.me()
                except Exception as exc:
                    logger.warning("Profile fetch after register failed: %s", describe(exc))

        logger.info("Registered %s", email)
        self._dispatch(actions.login_success(user))
        return result

    # ── OTP login ───────────────────────────────────────────────────────

    async def request_otp(self, email: str) -> Any:
        async with self.in_flight.hold("request_otp"):
            return await self.credentials.request_otp(normalize_email(email))

    async def verify_otp(self, email: str, otp_code: str) -> VerifyOtpResult:
        email = normalize_email(email)
        async with self.in_flight.hold("verify_otp"):
            result = await self.credentials.verify_otp(email, otp_code)

        self.store.persist(result.token, result.session_id)
        logger.info("OTP verified for %s", email)
        self._dispatch(actions.login_success(result.user))
        return result

    # ── Logout ──────────────────────────────────────────────────────────

    async def logout(self) -> None:
        """Best-effort server logout; local state is always cleared."""
        try:
            async with self.in_flight.hold("logout"):
                await self.credentials.logout()
        except Exception as exc:
            logger.warning("Server-side logout failed, clearing locally: %s", describe(exc))
        finally:
            self.store.clear()
            self._dispatch(actions.logged_out())
        logger.info("Logged out")

    # ── Account changes ─────────────────────────────────────────────────

    async def request_email_change(self, current_password: str, new_email: str) -> Any:
        async with self.in_flight.hold("request_email_change"):
            return await self.credentials.request_email_change(current_password, new_email)

    async def verify_email_change(self, new_email: str, otp_code: str) -> EmailChangeResult:
        async with self.in_flight.hold("verify_email_change"):
            result = await self.credentials.verify_email_change(new_email, otp_code)
        logger.info("Email changed to %s", result.email)
        self._dispatch(actions.email_changed(result.email))
        return result

    async def toggle_2fa(self) -> TwoFactorResult:
        async with self.in_flight.hold("toggle_2fa"):
            result = await self.credentials.toggle_2fa()
        logger.info("Two-factor %s", "enabled" if result.two_factor_enabled else "disabled")
        self._dispatch(actions.two_factor_toggled(result.two_factor_enabled))
        return result

    def update_user(self, patch: Dict[str, Any]) -> Optional[User]:
        """Merge ``patch`` into the cached user. No network call."""
        self._dispatch(actions.profile_patched(patch))
        return self._state.user
