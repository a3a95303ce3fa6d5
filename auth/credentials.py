"""
Credential/OTP client — one coroutine per auth endpoint.

Holds no state beyond the request in flight. Emails are normalised here so
every caller gets the same wire format. Calls that check a password or a
code pass ``token_auth=False``: a 401 there is a credential failure, not a
revoked token.
"""

from __future__ import annotations

from typing import Any

from client.api import ApiClient, as_dict
from utils.schemas import (
    EmailChangeResult,
    LoginResult,
    RegisterResult,
    TwoFactorResult,
    User,
    VerifyOtpResult,
)
from utils.validators import normalize_email


class CredentialClient:
    def __init__(self, api: ApiClient) -> None:
        self.api = api

    # ── Identity ────────────────────────────────────────────────────────

    async def register(self, name: str, email: str, password: str) -> RegisterResult:
        body = await self.api.post(
            "/auth/register",
            json={"name": name, "email": normalize_email(email), "password": password},
            token_auth=False,
        )
        return RegisterResult.model_validate(as_dict(body))

    async def login(self, email: str, password: str) -> LoginResult:
        body = await self.api.post(
            "/auth/login",
            json={"email": normalize_email(email), "password": password},
            token_auth=False,
        )
        return LoginResult.model_validate(as_dict(body))

    async def me(self) -> User:
        return User.model_validate(as_dict(await self.api.get("/auth/me")))

    async def logout(self) -> None:
        await self.api.post("/auth/logout")

    # ── OTP login ───────────────────────────────────────────────────────

    async def request_otp(self, email: str) -> Any:
        return await self.api.post(
            "/auth/request-otp", json={"email": normalize_email(email)}, token_auth=False
        )

    async def verify_otp(self, email: str, otp_code: str) -> VerifyOtpResult:
        body = await self.api.post(
            "/auth/verify-otp",
            json={"email": normalize_email(email), "otpCode": otp_code},
            token_auth=False,
        )
        return VerifyOtpResult.model_validate(as_dict(body))

    # ── Password ────────────────────────────────────────────────────────

    async def forgot_password(self, email: str) -> Any:
        return await self.api.post(
            "/auth/forgot-password", json={"email": normalize_email(email)}, token_auth=False
        )

    async def reset_password(self, email: str, otp_code: str, new_password: str) -> Any:
        return await self.api.post(
            "/auth/reset-password",
            json={
                "email": normalize_email(email),
                "otpCode": otp_code,
                "newPassword": new_password,
            },
            token_auth=False,
        )

    async def change_password(self, current_password: str, new_password: str) -> Any:
        return await self.api.put(
            "/auth/change-password",
            json={"currentPassword": current_password, "newPassword": new_password},
            token_auth=False,
        )

    # ── Email change / 2FA ──────────────────────────────────────────────

    async def request_email_change(self, current_password: str, new_email: str) -> Any:
        return await self.api.post(
            "/auth/request-email-change",
            json={"currentPassword": current_password, "newEmail": normalize_email(new_email)},
            token_auth=False,
        )

    async def verify_email_change(self, new_email: str, otp_code: str) -> EmailChangeResult:
        body = await self.api.post(
            "/auth/verify-email-change",
            json={"newEmail": normalize_email(new_email), "otpCode": otp_code},
            token_auth=False,
        )
        return EmailChangeResult.model_validate(as_dict(body))

    async def toggle_2fa(self) -> TwoFactorResult:
        return TwoFactorResult.model_validate(as_dict(await self.api.put("/auth/2fa")))
