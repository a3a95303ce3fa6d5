"""
Login page step machine.

    PASSWORD_ENTRY ──submit──▶ AUTHENTICATED
    PASSWORD_ENTRY ──submit (mfaRequired)──▶ OTP_ENTRY ──verify──▶ AUTHENTICATED
    EMAIL_ENTRY ──request OTP──▶ OTP_ENTRY ──verify──▶ AUTHENTICATED

``switch_mode`` toggles between password login and passwordless OTP login.
Errors are kept in ``error`` for inline display and never advance the step.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, FrozenSet, Optional, Tuple

from auth.context import AuthContext
from client.errors import InvalidTransition, error_message
from core.cooldown import ResendCooldown
from utils.schemas import OtpChallenge
from utils.validators import normalize_email, require, require_email, require_otp, sanitize_otp

logger = logging.getLogger(__name__)

DEFAULT_ERROR = "Access Denied: Invalid Credentials"
RESEND_ERROR = "Failed to resend OTP"


class LoginMode(str, Enum):
    PASSWORD = "password"
    OTP_LOGIN = "otp-login"


class LoginStep(str, Enum):
    PASSWORD_ENTRY = "password_entry"
    EMAIL_ENTRY = "email_entry"
    OTP_ENTRY = "otp_entry"
    AUTHENTICATED = "authenticated"


# (step, action) → allowed next steps
TRANSITIONS: Dict[Tuple[LoginStep, str], FrozenSet[LoginStep]] = {
    (LoginStep.PASSWORD_ENTRY, "submit_password"): frozenset(
        {LoginStep.AUTHENTICATED, LoginStep.OTP_ENTRY}
    ),
    (LoginStep.PASSWORD_ENTRY, "register"): frozenset({LoginStep.AUTHENTICATED}),
    (LoginStep.EMAIL_ENTRY, "request_otp"): frozenset({LoginStep.OTP_ENTRY}),
    (LoginStep.OTP_ENTRY, "verify_otp"): frozenset({LoginStep.AUTHENTICATED}),
    (LoginStep.OTP_ENTRY, "resend"): frozenset({LoginStep.OTP_ENTRY}),
    (LoginStep.PASSWORD_ENTRY, "switch_mode"): frozenset({LoginStep.EMAIL_ENTRY}),
    (LoginStep.EMAIL_ENTRY, "switch_mode"): frozenset({LoginStep.PASSWORD_ENTRY}),
    (LoginStep.OTP_ENTRY, "switch_mode"): frozenset(
        {LoginStep.PASSWORD_ENTRY, LoginStep.EMAIL_ENTRY}
    ),
}


class LoginFlow:
    """Form state for the login page, driven by an ``AuthContext``."""

    def __init__(self, auth: AuthContext, cooldown: Optional[ResendCooldown] = None) -> None:
        self.auth = auth
        self.cooldown = cooldown or ResendCooldown()
        self.mode = LoginMode.PASSWORD
        self.step = LoginStep.PASSWORD_ENTRY
        self.name = ""
        self.email = ""
        self.password = ""
        self.code = ""
        self.otp_sent = False
        self.challenge: Optional[OtpChallenge] = None
        self.error = ""
        self.loading = False

    # ── Helpers ─────────────────────────────────────────────────────────

    def _check(self, action: str) -> FrozenSet[LoginStep]:
        allowed = TRANSITIONS.get((self.step, action))
        if allowed is None:
            raise InvalidTransition("login", self.step.value, action)
        return allowed

    def _move(self, action: str, target: LoginStep) -> None:
        if target not in self._check(action):
            raise InvalidTransition("login", self.step.value, action)
        logger.debug("login: %s --%s--> %s", self.step.value, action, target.value)
        self.step = target

    async def _attempt(self, call: Callable[[], Awaitable[bool]], fallback: str) -> bool:
        if self.loading:
            logger.debug("login: ignoring submit while a request is in flight")
            return False
        self.error = ""
        self.loading = True
        try:
            return await call()
        except InvalidTransition:
            raise
        except Exception as exc:
            self.error = error_message(exc, fallback)
            logger.info("login form error: %s", self.error)
            return False
        finally:
            self.loading = False

    def _otp_issued(self) -> None:
        self.otp_sent = True
        self.cooldown.start()
        self.challenge = OtpChallenge(
            email=normalize_email(self.email),
            cooldown_seconds_remaining=self.cooldown.remaining,
        )

    def set_code(self, raw: str) -> str:
        self.code = sanitize_otp(raw)
        return self.code

    @property
    def can_resend(self) -> bool:
        return self.step is LoginStep.OTP_ENTRY and not self.cooldown.active

    # ── Transitions ─────────────────────────────────────────────────────

    async def submit_password(self) -> bool:
        """Password login. Returns True once authenticated."""
        self._check("submit_password")

        async def call() -> bool:
            require_email(self.email)
            require(self.password, "password", "Password")
            result = await self.auth.login(self.email, self.password)
            if result.mfa_required and not result.token:
                self.mode = LoginMode.OTP_LOGIN
                self._move("submit_password", LoginStep.OTP_ENTRY)
                self._otp_issued()
                return False
            self._move("submit_password", LoginStep.AUTHENTICATED)
            return True

        return await self._attempt(call, DEFAULT_ERROR)

    async def register(self) -> bool:
        """Sign-up variant of the password form."""
        self._check("register")

        async def call() -> bool:
            require(self.name, "name", "Name")
            require_email(self.email)
            require(self.password, "password", "Password")
            await self.auth.register(self.name, self.email, self.password)
            self._move("register", LoginStep.AUTHENTICATED)
            return True

        return await self._attempt(call, DEFAULT_ERROR)

    async def request_otp(self) -> bool:
        """Passwordless login: send a code to ``email``."""
        self._check("request_otp")

        async def call() -> bool:
            require_email(self.email)
            await self.auth.request_otp(self.email)
            self._move("request_otp", LoginStep.OTP_ENTRY)
            self._otp_issued()
            return True

        return await self._attempt(call, DEFAULT_ERROR)

    async def verify_otp(self) -> bool:
        self._check("verify_otp")

        async def call() -> bool:
            require_otp(self.code)
            await self.auth.verify_otp(self.email, self.code)
            self._move("verify_otp", LoginStep.AUTHENTICATED)
            self.cooldown.cancel()
            return True

        return await self._attempt(call, DEFAULT_ERROR)

    async def resend(self) -> bool:
        """No-op while the cooldown is running."""
        if not self.can_resend:
            return False

        async def call() -> bool:
            self.code = ""
            await self.auth.request_otp(self.email)
            self._move("resend", LoginStep.OTP_ENTRY)
            self._otp_issued()
            return True

        return await self._attempt(call, RESEND_ERROR)

    def switch_mode(self) -> LoginMode:
        """Toggle password ↔ OTP login, discarding any OTP progress."""
        new_mode = LoginMode.PASSWORD if self.mode is LoginMode.OTP_LOGIN else LoginMode.OTP_LOGIN
        target = LoginStep.PASSWORD_ENTRY if new_mode is LoginMode.PASSWORD else LoginStep.EMAIL_ENTRY
        self._move("switch_mode", target)
        self.mode = new_mode
        self.otp_sent = False
        self.challenge = None
        self.code = ""
        self.error = ""
        self.cooldown.cancel()
        return self.mode
