"""
Auth state container: immutable state, explicit actions, pure reducer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from utils.schemas import User


class AuthStatus(str, Enum):
    INIT = "init"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class ActionType(str, Enum):
    INIT_STARTED = "INIT_STARTED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGOUT = "LOGOUT"
    PROFILE_PATCHED = "PROFILE_PATCHED"
    EMAIL_CHANGED = "EMAIL_CHANGED"
    TWO_FACTOR_TOGGLED = "2FA_TOGGLED"


@dataclass(frozen=True)
class Action:
    type: ActionType
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthState:
    status: AuthStatus = AuthStatus.INIT
    user: Optional[User] = None

    @property
    def loading(self) -> bool:
        return self.status in (AuthStatus.INIT, AuthStatus.LOADING)

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED and self.user is not None


# ── Action creators ────────────────────────────────────────────────────


def init_started() -> Action:
    return Action(ActionType.INIT_STARTED)


def login_success(user: User) -> Action:
    return Action(ActionType.LOGIN_SUCCESS, {"user": user})


def logged_out() -> Action:
    return Action(ActionType.LOGOUT)


def profile_patched(patch: Dict[str, Any]) -> Action:
    return Action(ActionType.PROFILE_PATCHED, {"patch": dict(patch)})


def email_changed(email: str) -> Action:
    return Action(ActionType.EMAIL_CHANGED, {"email": email})


def two_factor_toggled(enabled: bool) -> Action:
    return Action(ActionType.TWO_FACTOR_TOGGLED, {"enabled": enabled})


# ── Reducer ────────────────────────────────────────────────────────────


def reduce(state: AuthState, action: Action) -> AuthState:
    """
    Return the next state for ``action``.

    Patches against an absent user are dropped: there is nothing cached to
    merge into.
    """
    kind = action.type

    if kind is ActionType.INIT_STARTED:
        return replace(state, status=AuthStatus.LOADING)

    if kind is ActionType.LOGIN_SUCCESS:
        return AuthState(status=AuthStatus.AUTHENTICATED, user=action.payload["user"])

    if kind is ActionType.LOGOUT:
        return AuthState(status=AuthStatus.ANONYMOUS, user=None)

    if state.user is None:
        return state

    if kind is ActionType.PROFILE_PATCHED:
        return replace(state, user=state.user.merged(action.payload["patch"]))

    if kind is ActionType.EMAIL_CHANGED:
        return replace(state, user=state.user.model_copy(update={"email": action.payload["email"]}))

    if kind is ActionType.TWO_FACTOR_TOGGLED:
        return replace(
            state,
            user=state.user.model_copy(update={"two_factor_enabled": action.payload["enabled"]}),
        )

    raise ValueError(f"Unknown auth action: {kind}")
