"""
Route guards — gate pages by login presence and role membership.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from client.errors import AccessDenied
from utils.schemas import Role, User

logger = logging.getLogger(__name__)


class GuardDecision(str, Enum):
    ALLOW = "allow"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_HOME = "redirect_home"
    FORBIDDEN = "forbidden"


LOGIN_PATH = "/login"
HOME_PATH = "/"


@dataclass(frozen=True)
class RouteRule:
    public: bool = False
    roles: Tuple[str, ...] = ()
    redirect: bool = False


PUBLIC = RouteRule(public=True)
PRIVATE = RouteRule()

ROUTES: Dict[str, RouteRule] = {
    "/login": PUBLIC,
    "/forgot-password": PUBLIC,
    "/reports": RouteRule(roles=(Role.ADMIN.value, Role.MANAGER.value)),
    "/users": RouteRule(roles=(Role.ADMIN.value,)),
    "/settings": RouteRule(roles=(Role.ADMIN.value,)),
}


def check_access(
    user: Optional[User],
    roles: Sequence[str] = (),
    *,
    redirect: bool = False,
) -> GuardDecision:
    """
    No user → login. No roles listed, or the user's role is listed → allow.
    Otherwise home when ``redirect`` is set, else forbidden.
    """
    if user is None:
        return GuardDecision.REDIRECT_LOGIN
    if not roles or user.role in roles:
        return GuardDecision.ALLOW
    return GuardDecision.REDIRECT_HOME if redirect else GuardDecision.FORBIDDEN


def rule_for(path: str) -> RouteRule:
    path = "/" + path.strip("/") if path.strip("/") else HOME_PATH
    if path in ROUTES:
        return ROUTES[path]
    # Longest configured prefix wins, so "/users/42" inherits "/users".
    matches = [p for p in ROUTES if p != HOME_PATH and path.startswith(p + "/")]
    if matches:
        return ROUTES[max(matches, key=len)]
    return PRIVATE


def guard_route(path: str, user: Optional[User]) -> GuardDecision:
    rule = rule_for(path)
    if rule.public:
        return GuardDecision.ALLOW
    decision = check_access(user, rule.roles, redirect=rule.redirect)
    if decision is not GuardDecision.ALLOW:
        logger.info(
            "Blocked %s for role=%s → %s",
            path,
            user.role if user else None,
            decision.value,
        )
    return decision


def require_roles(user: Optional[User], *roles: str) -> User:
    """Raise ``AccessDenied`` unless ``user`` holds one of ``roles``."""
    decision = check_access(user, roles)
    if decision is GuardDecision.ALLOW:
        return user  # type: ignore[return-value]
    raise AccessDenied(list(roles), user.role if user else None)
