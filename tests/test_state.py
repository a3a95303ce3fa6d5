"""
Tests for the auth reducer, the cooldown ticker and the email-change flow.
"""

import asyncio

import pytest

from auth import state as actions
from auth.state import AuthState, AuthStatus, reduce
from core.cooldown import ResendCooldown
from core.email_change import EmailChangeFlow, EmailChangeStep
from tests.conftest import USER
from utils.schemas import User


class TestReducer:
    def test_login_then_logout(self):
        user = User.model_validate(USER)
        state = reduce(AuthState(), actions.login_success(user))
        assert state.is_authenticated
        state = reduce(state, actions.logged_out())
        assert state.status is AuthStatus.ANONYMOUS
        assert state.user is None

    def test_patches_return_new_state(self):
        before = AuthState(AuthStatus.AUTHENTICATED, User.model_validate(USER))

        after = reduce(before, actions.email_changed("new@x.com"))
        after = reduce(after, actions.two_factor_toggled(True))
        after = reduce(after, actions.profile_patched({"avatar": "/a.png"}))

        assert before.user.email == "admin@x.com"
        assert after.user.email == "new@x.com"
        assert after.user.two_factor_enabled is True
        assert after.user.avatar == "/a.png"
        assert after.user.name == USER["name"]

    def test_patch_without_user_is_noop(self):
        state = AuthState(AuthStatus.ANONYMOUS)
        assert reduce(state, actions.email_changed("x@y.z")) is state

    def test_init_started_is_loading(self):
        assert reduce(AuthState(), actions.init_started()).loading


class TestCooldownTicker:
    @pytest.mark.asyncio
    async def test_auto_tick_counts_down_to_zero(self):
        cooldown = ResendCooldown(3, interval=0.001)
        seen = []
        cooldown.on_change(seen.append)

        cooldown.start()
        for _ in range(200):
            if not cooldown.active:
                break
            await asyncio.sleep(0.001)

        assert seen == [3, 2, 1, 0]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_ticker(self, caplog):
        cooldown = ResendCooldown(2, interval=0.001)
        seen = []

        def broken(value):
            raise RuntimeError("render failed")

        cooldown.on_change(broken)
        cooldown.on_change(seen.append)

        cooldown.start()
        for _ in range(200):
            if not cooldown.active:
                break
            await asyncio.sleep(0.001)

        assert seen == [2, 1, 0]
        assert "Cooldown listener failed" in caplog.text

    @pytest.mark.asyncio
    async def test_restart_replaces_ticker(self):
        cooldown = ResendCooldown(60, interval=0.001)
        cooldown.start()
        await asyncio.sleep(0.01)
        cooldown.start()
        assert cooldown.remaining == 60
        cooldown.cancel()
        assert cooldown.remaining == 0


class TestEmailChange:
    @pytest.mark.asyncio
    async def test_two_steps(self, auth, backend):
        backend.on("POST", "/auth/login", json={"token": "tok-1"})
        backend.on("GET", "/auth/me", json=USER)
        backend.on("POST", "/auth/request-email-change", json={"msg": "OTP sent"})
        backend.on("POST", "/auth/verify-email-change", json={"email": "new@x.com"})
        await auth.login("admin@x.com", "secret")

        flow = EmailChangeFlow(auth)
        flow.new_email = "New@X.com"
        flow.current_password = "secret"
        assert await flow.request() is True
        assert flow.step is EmailChangeStep.VERIFY

        flow.set_code("246810")
        assert await flow.verify() is True
        assert flow.step is EmailChangeStep.DONE
        assert auth.user.email == "new@x.com"

    @pytest.mark.asyncio
    async def test_wrong_password_stays_on_request(self, auth, backend):
        backend.on("POST", "/auth/request-email-change", status=400, json={"msg": "Incorrect password"})
        flow = EmailChangeFlow(auth)
        flow.new_email = "new@x.com"
        flow.current_password = "nope"

        assert await flow.request() is False
        assert flow.step is EmailChangeStep.REQUEST
        assert flow.error == "Incorrect password"
