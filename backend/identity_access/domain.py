"""
Identity domain constants, value objects and simple helpers.

Why:
- Centralize allowed roles to avoid drift between the gate, the session
  manager and the web layer.
- Roles form a closed enumeration; anything else is "no role" and never
  silently allowed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    STUDENT = "student"
    STAFF = "staff"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: object) -> Optional["Role"]:
        """Return the Role for a raw value or None when it is not a known role."""
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset(r.value for r in Role)

# Route groups gated by role sets.
ADMIN_AREA = frozenset({Role.ADMIN})
STAFF_AREA = frozenset({Role.ADMIN, Role.STAFF})
STUDENT_AREA = frozenset({Role.ADMIN, Role.STAFF, Role.STUDENT})

LANDING_PATH = "/"
LOGIN_PATH = "/auth/login"
# Paths on which a freshly resolved profile is sent on to its dashboard.
ENTRY_PATHS = frozenset({"/", "/login", LOGIN_PATH})

_DASHBOARDS = {
    Role.ADMIN: "/admin/dashboard",
    Role.STAFF: "/staff/dashboard",
    Role.STUDENT: "/student/dashboard",
}

UNKNOWN_DISPLAY_NAME = "Unknown"


@dataclass(frozen=True)
class Session:
    """Live authenticated credential state, independent of the profile."""

    credential_token: Optional[str]
    principal_id: Optional[str]
    email: str = ""
    expiry: Optional[datetime] = None
    full_name: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.principal_id)


@dataclass(frozen=True)
class Profile:
    """Durable identity/role record, one per principal."""

    id: str
    email: str
    display_name: str
    role: Role
    full_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role is Role.STAFF

    @property
    def is_student(self) -> bool:
        return self.role is Role.STUDENT

    @property
    def can_access_admin_dashboard(self) -> bool:
        return self.role in ADMIN_AREA

    @property
    def can_access_staff_dashboard(self) -> bool:
        return self.role in STAFF_AREA

    @property
    def can_access_student_dashboard(self) -> bool:
        return self.role in STUDENT_AREA


@dataclass(frozen=True)
class SessionState:
    """Read-only snapshot published by the SessionManager."""

    session: Optional[Session] = None
    profile: Optional[Profile] = None
    loading: bool = True

    @property
    def user(self) -> Optional[Session]:
        return self.session if self.session and self.session.is_authenticated else None

    def evolve(self, **changes) -> "SessionState":
        return replace(self, **changes)


def display_name_from_email(email: Optional[str]) -> str:
    """Best-effort display name: the local part of the email, verbatim.

    `jane.doe@example.com` -> `jane.doe`. Missing/blank input -> "Unknown".
    """
    if not email:
        return UNKNOWN_DISPLAY_NAME
    local = str(email).strip().split("@", 1)[0].strip()
    return local or UNKNOWN_DISPLAY_NAME


def dashboard_path_for(role: Role) -> str:
    return _DASHBOARDS[role]


def is_entry_path(path: str) -> bool:
    """True for the landing and login surfaces (query string and trailing slash ignored)."""
    normalized = (path or "/").split("?", 1)[0]
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")
    return normalized in ENTRY_PATHS


def landing_redirect(path: str, profile: Optional[Profile]) -> Optional[str]:
    """Return the dashboard to send a resolved profile to, or None.

    Only entry surfaces (landing, login) redirect; deeper locations are left
    alone so a learner mid-course is never pulled away.
    """
    if profile is None:
        return None
    if not is_entry_path(path):
        return None
    return dashboard_path_for(profile.role)


__all__ = [
    "Role",
    "ALLOWED_ROLES",
    "ADMIN_AREA",
    "STAFF_AREA",
    "STUDENT_AREA",
    "LANDING_PATH",
    "LOGIN_PATH",
    "ENTRY_PATHS",
    "is_entry_path",
    "Session",
    "Profile",
    "SessionState",
    "display_name_from_email",
    "dashboard_path_for",
    "landing_redirect",
]
