"""
RoleGate: pure decision evaluated at every protected navigation boundary.

The decision depends only on its four inputs; there is no hidden state and no
side effect, so the whole contract is testable as a table.
"""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from .domain import Profile, Role, Session


class GateDecision(str, Enum):
    RENDER = "render"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_HOME = "redirect_home"
    PENDING = "pending"


def normalize_roles(allowed_roles: Iterable[object]) -> frozenset[Role]:
    """Coerce a role collection into Role members; unknown names are rejected."""
    out = set()
    for raw in allowed_roles:
        role = Role.parse(raw)
        if role is None:
            raise ValueError(f"unknown role: {raw!r}")
        out.add(role)
    return frozenset(out)


def _role_allowed(role: Role, allowed: frozenset[Role]) -> bool:
    # Exhaustive over Role so a new member cannot fall through to "allowed".
    if role is Role.ADMIN:
        return Role.ADMIN in allowed
    if role is Role.STAFF:
        return Role.STAFF in allowed
    if role is Role.STUDENT:
        return Role.STUDENT in allowed
    raise AssertionError(f"unhandled role: {role!r}")


def decide(
    session: Optional[Session],
    profile: Optional[Profile],
    loading: bool,
    allowed_roles: Iterable[object],
) -> GateDecision:
    """Decide whether to render a protected surface.

    - PENDING while loading (no redirect).
    - REDIRECT_LOGIN without a session or without a resolved profile.
    - REDIRECT_HOME when the profile's role is not allowed.
    - RENDER otherwise.
    """
    if loading:
        return GateDecision.PENDING
    if session is None or not session.is_authenticated or profile is None:
        return GateDecision.REDIRECT_LOGIN
    if not _role_allowed(profile.role, normalize_roles(allowed_roles)):
        return GateDecision.REDIRECT_HOME
    return GateDecision.RENDER


__all__ = ["GateDecision", "decide", "normalize_roles"]
