"""
Per-request access to the browser session's SessionManager, plus role gating.

Why:
    Routers share one SessionStore, one gating rule and one error shape. They
    import from here instead of from `main` to avoid import cycles.

Behavior:
    - The session middleware in `main` puts the SessionRecord (or None) on
      `request.state.record`.
    - `gate_api` maps gate decisions onto 401 / 403 / 503 JSON errors;
      `gate_page` onto redirects or a loading page.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from backend.identity_access.domain import LANDING_PATH, LOGIN_PATH, Profile
from backend.identity_access.effects import LandingRedirectEffect
from backend.identity_access.role_gate import GateDecision, decide
from backend.identity_access.session_manager import SessionManager
from backend.identity_access.stores import SessionRecord, SessionStore

from .auth_utils import set_session_cookie
from .components import Layout
from .config import get_environment, get_session_ttl_seconds
from .wiring import get_wiring

logger = logging.getLogger("lumen.web")

PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}


async def _new_manager() -> SessionManager:
    wiring = await get_wiring()
    return await wiring.new_session_manager()


def build_session_store() -> SessionStore:
    return SessionStore(_new_manager, ttl_seconds=get_session_ttl_seconds())


SESSION_STORE = build_session_store()


def session_store() -> SessionStore:
    return SESSION_STORE


def reset_session_store() -> SessionStore:
    """Replace the global store (tests)."""
    global SESSION_STORE
    SESSION_STORE = build_session_store()
    return SESSION_STORE


# --- Records ----------------------------------------------------------------------


async def new_record() -> SessionRecord:
    """Create a session and attach the landing-redirect effect to it."""
    rec = await SESSION_STORE.create()

    def _navigate(target: str) -> None:
        rec.views["redirect"] = target

    rec.views["effect"] = LandingRedirectEffect(
        rec.manager,
        current_path=lambda: rec.views.get("path", LANDING_PATH),
        navigate=_navigate,
    ).attach()
    return rec


def current_record(request: Request) -> Optional[SessionRecord]:
    return getattr(request.state, "record", None)


async def ensure_record(request: Request) -> SessionRecord:
    rec = current_record(request)
    if rec is None:
        rec = await new_record()
        request.state.record = rec
        request.state.new_session_id = rec.session_id
    return rec


def issue_cookie_if_new(request: Request, response: Response) -> Response:
    sid = getattr(request.state, "new_session_id", None)
    if sid:
        set_session_cookie(response, sid, environment=get_environment(), max_age=SESSION_STORE.ttl_seconds)
    return response


def take_redirect(rec: Optional[SessionRecord]) -> Optional[str]:
    if rec is None:
        return None
    return rec.views.pop("redirect", None)


def current_profile(request: Request) -> Optional[Profile]:
    rec = current_record(request)
    return rec.manager.state.profile if rec is not None else None


# --- Responses --------------------------------------------------------------------


def private_json(body: Any, *, status_code: int = 200, headers: Optional[dict] = None) -> JSONResponse:
    merged = dict(PRIVATE_HEADERS)
    if headers:
        merged.update(headers)
    return JSONResponse(body, status_code=status_code, headers=merged)


def api_error(status_code: int, error: str, detail: Optional[str] = None, *, headers: Optional[dict] = None) -> JSONResponse:
    body = {"error": error}
    if detail is not None:
        body["detail"] = detail
    return private_json(body, status_code=status_code, headers=headers)


def render_page(
    title: str,
    body: str,
    *,
    request: Optional[Request] = None,
    status_code: int = 200,
    refresh: Optional[int] = None,
) -> HTMLResponse:
    """Wrap `body` in the site Layout; navigation follows the request's profile."""
    profile = current_profile(request) if request is not None else None
    path = request.url.path if request is not None else LANDING_PATH
    doc = Layout(title, body, profile=profile, current_path=path, refresh=refresh).render()
    return HTMLResponse(doc, status_code=status_code, headers=PRIVATE_HEADERS)


# --- Gating -----------------------------------------------------------------------


def gate_decision(request: Request, allowed_roles: Iterable[object]) -> GateDecision:
    rec = current_record(request)
    if rec is None:
        return GateDecision.REDIRECT_LOGIN
    st = rec.manager.state
    return decide(st.session, st.profile, st.loading, allowed_roles)


def gate_api(request: Request, allowed_roles: Iterable[object]) -> tuple[Optional[SessionRecord], Optional[JSONResponse]]:
    """Return (record, None) when allowed, else (None, JSON error to send)."""
    decision = gate_decision(request, allowed_roles)
    if decision is GateDecision.REDIRECT_LOGIN:
        return None, api_error(401, "unauthenticated")
    if decision is GateDecision.REDIRECT_HOME:
        return None, api_error(403, "forbidden")
    if decision is GateDecision.PENDING:
        return None, api_error(503, "profile_pending", headers={"Retry-After": "1"})
    return current_record(request), None


def gate_page(request: Request, allowed_roles: Iterable[object]) -> tuple[Optional[SessionRecord], Optional[Response]]:
    decision = gate_decision(request, allowed_roles)
    if decision is GateDecision.REDIRECT_LOGIN:
        return None, RedirectResponse(url=LOGIN_PATH, status_code=302)
    if decision is GateDecision.REDIRECT_HOME:
        return None, RedirectResponse(url=LANDING_PATH, status_code=302)
    if decision is GateDecision.PENDING:
        return None, render_page(
            "Loading", "<p aria-busy=\"true\">Loading your profile…</p>", request=request, refresh=1
        )
    return current_record(request), None


__all__ = [
    "PRIVATE_HEADERS",
    "SESSION_STORE",
    "api_error",
    "build_session_store",
    "current_profile",
    "current_record",
    "ensure_record",
    "gate_api",
    "gate_decision",
    "gate_page",
    "issue_cookie_if_new",
    "new_record",
    "private_json",
    "render_page",
    "reset_session_store",
    "session_store",
    "take_redirect",
]
