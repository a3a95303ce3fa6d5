"""
Tests for AuthContext — the login/logout/OTP lifecycle and its storage.
"""

import asyncio

import httpx
import pytest

from auth.context import AuthContext
from auth.state import AuthStatus
from client.errors import ApiError, NetworkError, RequestInFlightError
from tests.conftest import USER


def _login_ok(backend, session_id="s-1"):
    backend.on("POST", "/auth/login", json={"token": "tok-1", "sessionId": session_id})
    backend.on("GET", "/auth/me", json=USER)


class TestEmailNormalization:
    @pytest.mark.asyncio
    async def test_every_auth_endpoint_gets_trimmed_lowercase_email(self, auth, backend):
        raw = " Admin@X.com "
        _login_ok(backend)
        backend.on("POST", "/auth/request-otp", json={"msg": "sent"})
        backend.on(
            "POST", "/auth/verify-otp", json={"token": "tok-2", "sessionId": "s-2", "user": USER}
        )
        backend.on("POST", "/auth/register", json={"token": "tok-3"})
        backend.on("POST", "/auth/forgot-password", json={"msg": "sent"})
        backend.on("POST", "/auth/reset-password", json={"msg": "ok"})

        await auth.login(raw, "pw")
        await auth.request_otp(raw)
        await auth.verify_otp(raw, "123456")
        await auth.register("Asha", raw, "password1")
        await auth.credentials.forgot_password(raw)
        await auth.credentials.reset_password(raw, "123456", "password1")

        for path in (
            "/auth/login",
            "/auth/request-otp",
            "/auth/verify-otp",
            "/auth/register",
            "/auth/forgot-password",
            "/auth/reset-password",
        ):
            assert backend.last_body("POST", path)["email"] == "admin@x.com", path

    @pytest.mark.asyncio
    async def test_email_change_normalizes_new_email(self, auth, backend):
        backend.on("POST", "/auth/request-email-change", json={"msg": "sent"})
        await auth.request_email_change("pw", "  New@Mail.COM")
        assert backend.last_body("POST", "/auth/request-email-change") == {
            "currentPassword": "pw",
            "newEmail": "new@mail.com",
        }


class TestInitialize:
    @pytest.mark.asyncio
    async def test_no_token_is_anonymous_without_request(self, auth, backend):
        state = await auth.initialize()
        assert state.status is AuthStatus.ANONYMOUS
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_valid_token_restores_user(self, auth, backend, store):
        store.persist("tok-1", "s-1")
        backend.on("GET", "/auth/me", json=USER)

        state = await auth.initialize()

        assert state.status is AuthStatus.AUTHENTICATED
        assert state.user.email == "admin@x.com"
        assert backend.calls[0].headers["x-auth-token"] == "tok-1"

    @pytest.mark.asyncio
    async def test_rejected_token_is_cleared_silently(self, auth, backend, store):
        store.persist("stale", "s-9")
        backend.on("GET", "/auth/me", status=401, json={"msg": "Token is not valid"})

        state = await auth.initialize()

        assert state.status is AuthStatus.ANONYMOUS
        assert state.user is None
        assert store.get_token() is None
        assert store.get_session_id() is None

    @pytest.mark.asyncio
    async def test_network_failure_at_startup_also_falls_back(self, auth, backend, store):
        store.persist("tok-1", "s-1")

        def boom(request):
            raise httpx.ConnectError("unreachable", request=request)

        backend.on_call("GET", "/auth/me", boom)

        state = await auth.initialize()
        assert state.status is AuthStatus.ANONYMOUS
        assert not store.has_token()

    @pytest.mark.asyncio
    async def test_overlapping_initialize_keeps_token(self, auth, backend, store):
        store.persist("tok-1", "s-1")
        release = asyncio.Event()

        async def slow_me(request):
            await release.wait()
            return 200, USER

        backend.on_call("GET", "/auth/me", slow_me)

        first = asyncio.ensure_future(auth.initialize())
        await asyncio.sleep(0)
        second = await auth.initialize()
        assert second.status is AuthStatus.LOADING
        assert store.get_token() == "tok-1"

        release.set()
        state = await first

        assert state.status is AuthStatus.AUTHENTICATED
        assert store.get_token() == "tok-1"
        assert store.get_session_id() == "s-1"
        assert len(backend.requests_to("GET", "/auth/me")) == 1


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_without_mfa_persists_and_caches_user(self, auth, backend, store):
        _login_ok(backend)

        result = await auth.login("admin@x.com", "secret")

        assert result.token == "tok-1"
        assert store.get_token() == "tok-1"
        assert store.get_session_id() == "s-1"
        assert auth.status is AuthStatus.AUTHENTICATED
        assert auth.user.id == USER["id"]
        assert auth.user.role == "admin"
        me_call = backend.requests_to("GET", "/auth/me")[0]
        assert me_call.headers["x-auth-token"] == "tok-1"

    @pytest.mark.asyncio
    async def test_login_without_session_id_keeps_token_only(self, auth, backend, store):
        backend.on("POST", "/auth/login", json={"token": "tok-1"})
        backend.on("GET", "/auth/me", json=USER)

        await auth.login("admin@x.com", "secret")

        assert store.get_token() == "tok-1"
        assert store.get_session_id() is None

    @pytest.mark.asyncio
    async def test_mfa_required_persists_nothing(self, auth, backend, store):
        backend.on("POST", "/auth/login", json={"mfaRequired": True, "msg": "OTP sent"})

        result = await auth.login("admin@x.com", "secret")

        assert result.mfa_required is True
        assert store.get_token() is None
        assert auth.status is AuthStatus.INIT
        assert auth.user is None
        assert backend.requests_to("GET", "/auth/me") == []

    @pytest.mark.asyncio
    async def test_mfa_then_verify_otp_uses_inline_user(self, auth, backend, store):
        backend.on("POST", "/auth/login", json={"mfaRequired": True})
        backend.on(
            "POST",
            "/auth/verify-otp",
            json={"token": "tok-2", "sessionId": "s-2", "user": {**USER, "twoFactorEnabled": True}},
        )

        await auth.login("admin@x.com", "secret")
        await auth.verify_otp("admin@x.com", "123456")

        assert store.get_token() == "tok-2"
        assert store.get_session_id() == "s-2"
        assert auth.user.two_factor_enabled is True
        assert backend.requests_to("GET", "/auth/me") == []
        assert backend.last_body("POST", "/auth/verify-otp")["otpCode"] == "123456"

    @pytest.mark.asyncio
    async def test_bad_credentials_propagate(self, auth, backend, store):
        backend.on("POST", "/auth/login", status=400, json={"msg": "Invalid Credentials"})

        with pytest.raises(ApiError) as exc_info:
            await auth.login("admin@x.com", "wrong")

        assert exc_info.value.msg == "Invalid Credentials"
        assert store.get_token() is None

    @pytest.mark.asyncio
    async def test_profile_fetch_failure_does_not_leave_token(self, auth, backend, store):
        backend.on("POST", "/auth/login", json={"token": "tok-1", "sessionId": "s-1"})
        backend.on("GET", "/auth/me", status=500, json={"msg": "Server Error"})

        with pytest.raises(ApiError):
            await auth.login("admin@x.com", "secret")

        assert store.get_token() is None
        assert store.get_session_id() is None
        assert auth.user is None


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_caches_placeholder_user(self, auth, backend, store):
        backend.on("POST", "/auth/register", json={"token": "tok-new"})

        await auth.register("Asha", "Asha@X.com", "password1")

        assert store.get_token() == "tok-new"
        assert auth.user.token == "tok-new"
        assert auth.user.is_placeholder
        assert backend.requests_to("GET", "/auth/me") == []

    @pytest.mark.asyncio
    async def test_register_can_fetch_full_profile(self, api, store, backend):
        ctx = AuthContext(api, store, fetch_profile_after_register=True)
        backend.on("POST", "/auth/register", json={"token": "tok-new"})
        backend.on("GET", "/auth/me", json=USER)

        await ctx.register("Asha", "admin@x.com", "password1")

        assert not ctx.user.is_placeholder
        assert ctx.user.name == "Asha Verma"


class TestLogout:
    @pytest.mark.asyncio
    async def test_logout_clears_everything(self, auth, backend, store):
        _login_ok(backend)
        backend.on("POST", "/auth/logout", json={"msg": "ok"})
        await auth.login("admin@x.com", "secret")

        await auth.logout()

        assert store.get_token() is None
        assert store.get_session_id() is None
        assert auth.user is None
        assert auth.status is AuthStatus.ANONYMOUS

    @pytest.mark.asyncio
    async def test_logout_clears_even_when_server_fails(self, auth, backend, store):
        _login_ok(backend)
        backend.on("POST", "/auth/logout", status=500, json={"msg": "boom"})
        await auth.login("admin@x.com", "secret")

        await auth.logout()

        assert store.get_token() is None
        assert store.get_session_id() is None
        assert auth.user is None

    @pytest.mark.asyncio
    async def test_logout_clears_on_network_error(self, auth, backend, store):
        _login_ok(backend)

        def boom(request):
            raise httpx.ReadTimeout("slow", request=request)

        backend.on_call("POST", "/auth/logout", boom)
        await auth.login("admin@x.com", "secret")

        await auth.logout()
        assert not store.has_token()
        assert auth.status is AuthStatus.ANONYMOUS


class TestAccountChanges:
    @pytest.mark.asyncio
    async def test_verify_email_change_patches_only_email(self, auth, backend):
        _login_ok(backend)
        backend.on("POST", "/auth/verify-email-change", json={"email": "new@x.com"})
        await auth.login("admin@x.com", "secret")

        await auth.verify_email_change("New@X.com", "654321")

        assert auth.user.email == "new@x.com"
        assert auth.user.name == USER["name"]
        assert auth.user.role == USER["role"]

    @pytest.mark.asyncio
    async def test_toggle_2fa_mirrors_server(self, auth, backend):
        _login_ok(backend)
        backend.on("PUT", "/auth/2fa", json={"twoFactorEnabled": True})
        await auth.login("admin@x.com", "secret")

        await auth.toggle_2fa()

        assert auth.user.two_factor_enabled is True

    @pytest.mark.asyncio
    async def test_update_user_merges_locally(self, auth, backend):
        _login_ok(backend)
        await auth.login("admin@x.com", "secret")
        calls_before = len(backend.calls)

        auth.update_user({"name": "A. Verma", "avatar": "/uploads/a.png"})

        assert auth.user.name == "A. Verma"
        assert auth.user.avatar == "/uploads/a.png"
        assert auth.user.email == "admin@x.com"
        assert len(backend.calls) == calls_before

    def test_update_user_without_user_is_ignored(self, auth):
        assert auth.update_user({"name": "x"}) is None


class TestStateMachineSafety:
    @pytest.mark.asyncio
    async def test_subscribers_see_each_transition(self, auth, backend):
        _login_ok(backend)
        backend.on("POST", "/auth/logout")
        seen = []
        unsubscribe = auth.subscribe(lambda s: seen.append(s.status))

        await auth.login("admin@x.com", "secret")
        await auth.logout()
        unsubscribe()
        auth.update_user({"name": "ignored"})

        assert seen == [AuthStatus.AUTHENTICATED, AuthStatus.ANONYMOUS]

    @pytest.mark.asyncio
    async def test_duplicate_otp_request_is_rejected(self, auth, backend):
        release = asyncio.Event()

        async def slow(request):
            await release.wait()
            return 200, {"msg": "sent"}

        backend.on_call("POST", "/auth/request-otp", slow)

        first = asyncio.ensure_future(auth.request_otp("admin@x.com"))
        await asyncio.sleep(0)
        with pytest.raises(RequestInFlightError):
            await auth.request_otp("admin@x.com")
        release.set()
        await first

        assert len(backend.requests_to("POST", "/auth/request-otp")) == 1

    @pytest.mark.asyncio
    async def test_401_after_login_signs_out(self, auth, backend, store):
        _login_ok(backend)
        await auth.login("admin@x.com", "secret")
        backend.on("PUT", "/auth/2fa", status=401, json={"msg": "Session revoked"})

        with pytest.raises(ApiError):
            await auth.toggle_2fa()

        assert auth.status is AuthStatus.ANONYMOUS
        assert not store.has_token()

    @pytest.mark.asyncio
    async def test_failed_relogin_keeps_session(self, auth, backend, store):
        _login_ok(backend)
        await auth.login("admin@x.com", "secret")
        backend.on("POST", "/auth/login", status=401, json={"msg": "Invalid Credentials"})

        with pytest.raises(ApiError) as exc_info:
            await auth.login("admin@x.com", "wrong")

        assert exc_info.value.msg == "Invalid Credentials"
        assert auth.status is AuthStatus.AUTHENTICATED
        assert store.get_token() == "tok-1"
        assert store.get_session_id() == "s-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "call,method,path",
        [
            (lambda a: a.request_email_change("wrong", "new@x.com"), "POST", "/auth/request-email-change"),
            (lambda a: a.credentials.change_password("wrong", "N3w!Passw0rd"), "PUT", "/auth/change-password"),
        ],
    )
    async def test_wrong_current_password_keeps_session(self, auth, backend, store, call, method, path):
        _login_ok(backend)
        await auth.login("admin@x.com", "secret")
        backend.on(method, path, status=401, json={"msg": "Incorrect password"})

        with pytest.raises(ApiError):
            await call(auth)

        assert auth.status is AuthStatus.AUTHENTICATED
        assert store.get_token() == "tok-1"

    @pytest.mark.asyncio
    async def test_network_errors_are_not_retried(self, auth, backend):
        attempts = []

        def boom(request):
            attempts.append(request)
            raise httpx.ConnectError("down", request=request)

        backend.on_call("POST", "/auth/request-otp", boom)

        with pytest.raises(NetworkError):
            await auth.request_otp("admin@x.com")
        assert len(attempts) == 1
