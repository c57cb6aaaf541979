"Lumen web adapter"
from __future__ import annotations

import html
import logging
import os
import sys

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse

from backend.identity_access.domain import (
    ADMIN_AREA,
    LANDING_PATH,
    STAFF_AREA,
    STUDENT_AREA,
    dashboard_path_for,
    is_entry_path,
)
from backend.learning.progress import PersistenceError

from . import config as _cfg
from .auth_utils import SESSION_COOKIE_NAME, clear_session_cookie
from .routes.auth import auth_router
from .routes.learning import learning_router
from .routes.progress import progress_router
from .session_context import (
    current_record,
    gate_page,
    render_page,
    session_store,
    take_redirect,
)
from .wiring import get_wiring


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never under pytest; tests provide their own env.
    - Opt-out via LUMEN_ENABLE_DOTENV=false.
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("LUMEN_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Fail fast on insecure production configuration.
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("lumen.web")

app = FastAPI(title="Lumen", description="Learning management platform", version="0.1.0")

app.include_router(auth_router)
app.include_router(learning_router)
app.include_router(progress_router)


# --- Session middleware -----------------------------------------------------------


def _is_static_path(path: str) -> bool:
    return path.startswith("/static/") or path in ("/health", "/favicon.ico")


@app.middleware("http")
async def session_context(request: Request, call_next):
    """Resolve the opaque session cookie to the browser session's record.

    Handlers read `request.state.record` (None when anonymous). Unknown or
    expired ids are treated as anonymous and the stale cookie is cleared.
    """
    request.state.record = None
    path = request.url.path
    if _is_static_path(path):
        return await call_next(request)

    sid = request.cookies.get(SESSION_COOKIE_NAME)
    stale = False
    if sid:
        rec = await session_store().get(sid)
        if rec is None:
            stale = True
        else:
            session_store().touch(rec)
            rec.views["path"] = path
            if not is_entry_path(path):
                # A pending post-sign-in redirect only applies to the entry surface it was chosen on.
                rec.views.pop("redirect", None)
            request.state.record = rec

    response = await call_next(request)
    if stale and not getattr(request.state, "new_session_id", None):
        clear_session_cookie(response, environment=_cfg.get_environment())
    return response


# --- Security headers -------------------------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    if _cfg.is_prod_like():
        csp = "default-src 'self'; script-src 'self'; style-src 'self'; img-src 'self' data:; media-src 'self';"
    else:
        csp = (
            "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; media-src 'self';"
        )
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Pages ------------------------------------------------------------------------


@app.get("/health")
async def health():
    wiring = await get_wiring()
    return {"status": "healthy", "backend": wiring.backend}


@app.get("/")
async def landing(request: Request):
    """Public landing page; honors a pending post-sign-in redirect once."""
    rec = current_record(request)
    target = take_redirect(rec)
    if target and target != LANDING_PATH:
        return RedirectResponse(url=target, status_code=302)
    profile = rec.manager.state.profile if rec is not None else None
    if profile is not None:
        body = (
            f"<h1>Welcome back, {html.escape(profile.display_name)}</h1>"
            f'<p><a href="{dashboard_path_for(profile.role)}">Go to your dashboard</a></p>'
        )
    else:
        body = (
            "<h1>Lumen</h1><p>Courses, content and progress in one place.</p>"
            '<p><a href="/auth/login">Sign in</a> · <a href="/auth/signup">Create an account</a></p>'
        )
    return render_page("Welcome", body, request=request)


@app.get("/login")
async def login_alias():
    return RedirectResponse(url="/auth/login", status_code=302)


def _dashboard_header(profile) -> str:
    name = html.escape(profile.full_name or profile.display_name)
    return (
        f"<h1>{html.escape(profile.role.value.capitalize())} dashboard</h1>"
        f"<p>Signed in as {name} ({html.escape(profile.email)})</p>"
    )


@app.get("/admin/dashboard")
async def admin_dashboard(request: Request):
    rec, error = gate_page(request, ADMIN_AREA)
    if error:
        return error
    profile = rec.manager.state.profile
    body = _dashboard_header(profile) + f"<p>Active sessions: {len(session_store())}</p>"
    return render_page("Admin", body, request=request)


@app.get("/staff/dashboard")
async def staff_dashboard(request: Request):
    rec, error = gate_page(request, STAFF_AREA)
    if error:
        return error
    return render_page("Staff", _dashboard_header(rec.manager.state.profile), request=request)


@app.get("/student/dashboard")
async def student_dashboard(request: Request):
    rec, error = gate_page(request, STUDENT_AREA)
    if error:
        return error
    profile = rec.manager.state.profile
    store = (await get_wiring()).progress_store()
    try:
        summary = await store.aggregate(profile.id)
        progress = (
            f"<p>Overall progress: {summary.overall_percent}%</p>"
            f"<p>Completed: {summary.completed_count} · Remaining: {summary.remaining_count}</p>"
        )
    except PersistenceError as exc:
        logger.warning("Progress summary unavailable (code=%s)", exc.code)
        progress = "<p>Progress is temporarily unavailable.</p>"
    return render_page("Student", _dashboard_header(profile) + progress, request=request)
