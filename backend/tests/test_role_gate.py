"""
RoleGate.decide as a decision table.
"""
from __future__ import annotations

import itertools

import pytest

from backend.identity_access.domain import ADMIN_AREA, STAFF_AREA, STUDENT_AREA, Profile, Role, Session
from backend.identity_access.role_gate import GateDecision, decide, normalize_roles

SESSION = Session(credential_token="t", principal_id="u1", email="x@example.com")


def _profile(role: Role) -> Profile:
    return Profile(id="u1", email="x@example.com", display_name="x", role=role)


def test_staff_on_admin_route_goes_home():
    assert decide(SESSION, _profile(Role.STAFF), False, ["admin"]) is GateDecision.REDIRECT_HOME


@pytest.mark.parametrize(
    "role,area,expected",
    [
        (Role.ADMIN, ADMIN_AREA, GateDecision.RENDER),
        (Role.ADMIN, STAFF_AREA, GateDecision.RENDER),
        (Role.ADMIN, STUDENT_AREA, GateDecision.RENDER),
        (Role.STAFF, ADMIN_AREA, GateDecision.REDIRECT_HOME),
        (Role.STAFF, STAFF_AREA, GateDecision.RENDER),
        (Role.STAFF, STUDENT_AREA, GateDecision.RENDER),
        (Role.STUDENT, ADMIN_AREA, GateDecision.REDIRECT_HOME),
        (Role.STUDENT, STAFF_AREA, GateDecision.REDIRECT_HOME),
        (Role.STUDENT, STUDENT_AREA, GateDecision.RENDER),
    ],
)
def test_role_matrix(role, area, expected):
    assert decide(SESSION, _profile(role), False, area) is expected


def test_loading_always_pending():
    sessions = [None, SESSION]
    profiles = [None, _profile(Role.ADMIN), _profile(Role.STUDENT)]
    areas = [ADMIN_AREA, STUDENT_AREA, []]
    for session, profile, area in itertools.product(sessions, profiles, areas):
        assert decide(session, profile, True, area) is GateDecision.PENDING


def test_no_session_redirects_to_login():
    assert decide(None, None, False, STUDENT_AREA) is GateDecision.REDIRECT_LOGIN
    assert decide(None, _profile(Role.ADMIN), False, STUDENT_AREA) is GateDecision.REDIRECT_LOGIN


def test_unresolved_profile_cannot_authorize():
    assert decide(SESSION, None, False, STUDENT_AREA) is GateDecision.REDIRECT_LOGIN


def test_decide_is_pure():
    args = (SESSION, _profile(Role.STAFF), False, ["admin", "staff"])
    assert {decide(*args) for _ in range(5)} == {GateDecision.RENDER}


def test_unknown_role_names_are_rejected():
    assert normalize_roles(["Admin", Role.STAFF]) == frozenset({Role.ADMIN, Role.STAFF})
    with pytest.raises(ValueError):
        normalize_roles(["moderator"])
