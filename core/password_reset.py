"""
Forgot-password step machine.

    EMAIL ──request──▶ OTP ──submit code──▶ PASSWORD ──reset──▶ DONE
                        ▲                      │
                        └──── EXPIRED/LOCKED ──┘

The OTP step advances without asking the server; the code is only checked
by the final ``/auth/reset-password`` call.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from auth.credentials import CredentialClient
from client.errors import FormValidationError, InvalidTransition, error_code, error_message
from core.cooldown import ResendCooldown
from utils.schemas import OtpChallenge
from utils.validators import (
    normalize_email,
    require_email,
    require_otp,
    sanitize_otp,
    validate_reset_password,
)

logger = logging.getLogger(__name__)

RETRY_CODE_ERRORS = frozenset({"EXPIRED", "LOCKED"})
DONE_MESSAGE = (
    "Your password has been reset. All existing sessions were signed out; "
    "log in with your new password."
)


class ResetStep(str, Enum):
    EMAIL = "email"
    OTP = "otp"
    PASSWORD = "password"
    DONE = "done"


TRANSITIONS: Dict[Tuple[ResetStep, str], FrozenSet[ResetStep]] = {
    (ResetStep.EMAIL, "request_reset"): frozenset({ResetStep.OTP}),
    (ResetStep.OTP, "resend"): frozenset({ResetStep.OTP}),
    (ResetStep.OTP, "submit_code"): frozenset({ResetStep.PASSWORD}),
    (ResetStep.PASSWORD, "submit_password"): frozenset({ResetStep.DONE, ResetStep.OTP}),
}


class PasswordResetFlow:
    def __init__(
        self,
        credentials: CredentialClient,
        cooldown: Optional[ResendCooldown] = None,
    ) -> None:
        self.credentials = credentials
        self.cooldown = cooldown or ResendCooldown()
        self.step = ResetStep.EMAIL
        self.email = ""
        self.code = ""
        self.challenge: Optional[OtpChallenge] = None
        self.error = ""
        self.loading = False

    def _check(self, action: str) -> FrozenSet[ResetStep]:
        allowed = TRANSITIONS.get((self.step, action))
        if allowed is None:
            raise InvalidTransition("password-reset", self.step.value, action)
        return allowed

    def _move(self, action: str, target: ResetStep) -> None:
        if target not in self._check(action):
            raise InvalidTransition("password-reset", self.step.value, action)
        logger.debug("password-reset: %s --%s--> %s", self.step.value, action, target.value)
        self.step = target

    def _code_issued(self) -> None:
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
        return self.step is ResetStep.OTP and not self.cooldown.active

    @property
    def done_message(self) -> Optional[str]:
        return DONE_MESSAGE if self.step is ResetStep.DONE else None

    # ── Steps ───────────────────────────────────────────────────────────

    async def request_reset(self) -> bool:
        self._check("request_reset")
        if self.loading:
            return False
        self.error = ""
        try:
            require_email(self.email)
        except FormValidationError as exc:
            self.error = exc.message
            return False

        self.loading = True
        try:
            await self.credentials.forgot_password(self.email)
        except Exception as exc:
            self.error = error_message(exc, "Something went wrong. Please try again.")
            return False
        finally:
            self.loading = False

        self._move("request_reset", ResetStep.OTP)
        self._code_issued()
        logger.info("Reset code requested for %s", normalize_email(self.email))
        return True

    def submit_code(self) -> bool:
        """Advance to the password step; the code is validated later."""
        self._check("submit_code")
        self.error = ""
        try:
            require_otp(self.code)
        except FormValidationError as exc:
            self.error = exc.message
            return False
        self._move("submit_code", ResetStep.PASSWORD)
        return True

    async def submit_password(self, new_password: str, confirm_password: str) -> bool:
        self._check("submit_password")
        if self.loading:
            return False
        self.error = ""
        try:
            validate_reset_password(new_password, confirm_password)
        except FormValidationError as exc:
            self.error = exc.message
            return False

        self.loading = True
        try:
            await self.credentials.reset_password(self.email, self.code, new_password)
        except Exception as exc:
            self.error = error_message(exc, "Reset failed.")
            if error_code(exc) in RETRY_CODE_ERRORS:
                logger.info("Reset code rejected (%s); back to code entry", error_code(exc))
                self.code = ""
                self._move("submit_password", ResetStep.OTP)
            return False
        finally:
            self.loading = False

        self._move("submit_password", ResetStep.DONE)
        self.cooldown.cancel()
        logger.info("Password reset completed for %s", normalize_email(self.email))
        return True

    async def resend(self) -> bool:
        """No-op while the cooldown is running."""
        if not self.can_resend or self.loading:
            return False
        self.error = ""
        self.code = ""
        self.loading = True
        try:
            await self.credentials.forgot_password(self.email)
        except Exception as exc:
            self.error = error_message(exc, "Failed to resend code.")
            return False
        finally:
            self.loading = False
        self._move("resend", ResetStep.OTP)
        self._code_issued()
        return True
