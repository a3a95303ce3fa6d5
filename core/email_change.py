"""
Two-step email change: confirm password + new address, then the OTP sent
to the new address.
"""

from __future__ import annotations

import logging
from enum import Enum

from auth.context import AuthContext
from client.errors import FormValidationError, InvalidTransition, error_message
from utils.validators import require, require_email, require_otp, sanitize_otp

logger = logging.getLogger(__name__)


class EmailChangeStep(str, Enum):
    REQUEST = "request"
    VERIFY = "verify"
    DONE = "done"


class EmailChangeFlow:
    def __init__(self, auth: AuthContext) -> None:
        self.auth = auth
        self.step = EmailChangeStep.REQUEST
        self.new_email = ""
        self.current_password = ""
        self.code = ""
        self.error = ""
        self.loading = False

    def set_code(self, raw: str) -> str:
        self.code = sanitize_otp(raw)
        return self.code

    async def request(self) -> bool:
        if self.step is not EmailChangeStep.REQUEST:
            raise InvalidTransition("email-change", self.step.value, "request")
        if self.loading:
            return False
        self.error = ""
        self.loading = True
        try:
            require_email(self.new_email, field="newEmail")
            require(self.current_password, "currentPassword", "Current password")
            await self.auth.request_email_change(self.current_password, self.new_email)
        except Exception as exc:
            self.error = error_message(exc, "Failed to request email change")
            return False
        finally:
            self.loading = False
        self.step = EmailChangeStep.VERIFY
        return True

    async def verify(self) -> bool:
        if self.step is not EmailChangeStep.VERIFY:
            raise InvalidTransition("email-change", self.step.value, "verify")
        if self.loading:
            return False
        self.error = ""
        self.loading = True
        try:
            require_otp(self.code)
            await self.auth.verify_email_change(self.new_email, self.code)
        except FormValidationError as exc:
            self.error = exc.message
            return False
        except Exception as exc:
            self.error = error_message(exc, "Verification failed")
            return False
        finally:
            self.loading = False
        self.step = EmailChangeStep.DONE
        return True
