"""
Authentication routes (router-only module).

Why:
    Keep sign-in, sign-up, federated sign-in, password reset and sign-out in one
    router. Every operation goes through the browser session's SessionManager;
    this module only translates forms into calls and results into responses.

Notes:
    - Failed sign-in/sign-up re-renders the form with the error inline (400).
    - After a successful sign-in the handler waits for profile resolution and
      follows the redirect chosen by the landing-redirect effect.
    - POSTs require same-origin (CSRF).
    - `/auth/callback` redeems the provider's code on the session's own auth client.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse, Response

from backend.identity_access.domain import LANDING_PATH, LOGIN_PATH
from backend.identity_access.errors import IdentityError, NetworkError

from ..auth_utils import clear_session_cookie
from ..components.forms import ForgotPasswordForm, LoginForm, SignupForm
from ..config import get_environment
from ..session_context import (
    api_error,
    current_record,
    ensure_record,
    issue_cookie_if_new,
    private_json,
    render_page,
    session_store,
    take_redirect,
)
from .security import is_same_origin

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("lumen.web.auth")

# Upper bound for holding a login response while the profile resolves.
RESOLUTION_WAIT_SECONDS = 5.0


def _login_page(request: Request, *, error: Optional[str] = None, email: str = "", status_code: int = 200) -> Response:
    body = LoginForm(error=error, email=email).render()
    return render_page("Sign in", body, request=request, status_code=status_code)


def _signup_page(
    request: Request, *, error: Optional[str] = None, email: str = "", full_name: str = "", status_code: int = 200
) -> Response:
    body = SignupForm(error=error, email=email, full_name=full_name).render()
    return render_page("Sign up", body, request=request, status_code=status_code)


def _forgot_page(
    request: Request, *, message: Optional[str] = None, error: Optional[str] = None, status_code: int = 200
) -> Response:
    body = ForgotPasswordForm(message=message, error=error).render()
    return render_page("Reset password", body, request=request, status_code=status_code)


def _csrf_rejected() -> Response:
    return api_error(403, "forbidden", "csrf_violation")


async def _redirect_after_sign_in(request: Request) -> Response:
    """Wait for profile resolution, then follow the effect's redirect (or go home)."""
    rec = current_record(request)
    if rec is not None:
        try:
            await asyncio.wait_for(rec.manager.wait_until_resolved(), timeout=RESOLUTION_WAIT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Profile resolution still pending after sign-in")
    target = take_redirect(rec) or LANDING_PATH
    return issue_cookie_if_new(request, RedirectResponse(url=target, status_code=303))


@auth_router.get("/auth/login")
async def login_page(request: Request):
    return _login_page(request)


@auth_router.post("/auth/login")
async def login(request: Request):
    if not is_same_origin(request):
        return _csrf_rejected()
    form = await request.form()
    email = str(form.get("email") or "").strip()
    password = str(form.get("password") or "")
    rec = await ensure_record(request)
    rec.views["path"] = LOGIN_PATH
    try:
        await rec.manager.sign_in(email, password)
    except IdentityError as exc:
        logger.info("Sign-in failed: %s", exc.code)
        status = 503 if isinstance(exc, NetworkError) else 400
        return issue_cookie_if_new(request, _login_page(request, error=exc.detail, email=email, status_code=status))
    return await _redirect_after_sign_in(request)


@auth_router.get("/auth/signup")
async def signup_page(request: Request):
    return _signup_page(request)


@auth_router.post("/auth/signup")
async def signup(request: Request):
    if not is_same_origin(request):
        return _csrf_rejected()
    form = await request.form()
    email = str(form.get("email") or "").strip()
    password = str(form.get("password") or "")
    full_name = str(form.get("full_name") or "").strip()
    rec = await ensure_record(request)
    rec.views["path"] = LOGIN_PATH
    try:
        session = await rec.manager.sign_up(email, password, full_name)
    except IdentityError as exc:
        logger.info("Sign-up failed: %s", exc.code)
        status = 503 if isinstance(exc, NetworkError) else 400
        return issue_cookie_if_new(
            request, _signup_page(request, error=exc.detail, email=email, full_name=full_name, status_code=status)
        )
    if session is None:
        page = render_page(
            "Confirm your email",
            "<h1>Check your inbox</h1><p>Please confirm your email address, then sign in.</p>",
            request=request,
        )
        return issue_cookie_if_new(request, page)
    return await _redirect_after_sign_in(request)


@auth_router.post("/auth/oauth")
async def oauth_start(request: Request):
    """Send the browser to the provider; it returns to /auth/callback with a code."""
    if not is_same_origin(request):
        return _csrf_rejected()
    rec = await ensure_record(request)
    try:
        url = await rec.manager.sign_in_with_federated_provider()
    except IdentityError as exc:
        logger.info("Federated sign-in unavailable: %s", exc.code)
        return issue_cookie_if_new(request, _login_page(request, error=exc.detail, status_code=400))
    return issue_cookie_if_new(request, RedirectResponse(url=url, status_code=303))


@auth_router.get("/auth/callback")
async def oauth_callback(request: Request, code: Optional[str] = None, error: Optional[str] = None):
    """Provider return path: trade the authorization code for a session.

    The exchange must run on the browser session's own auth client, which
    started the flow and holds the PKCE verifier.
    """
    rec = current_record(request)
    if rec is None or error or not code:
        if error:
            logger.info("Federated sign-in declined by provider: %s", error)
        return _login_page(request, error="Sign-in with the provider did not complete. Please try again.", status_code=400)
    rec.views["path"] = LOGIN_PATH
    try:
        await rec.manager.exchange_code(code)
    except IdentityError as exc:
        logger.info("Federated sign-in failed: %s", exc.code)
        status = 503 if isinstance(exc, NetworkError) else 400
        return _login_page(request, error=exc.detail, status_code=status)
    return await _redirect_after_sign_in(request)


@auth_router.get("/auth/forgot")
async def forgot_page(request: Request):
    return _forgot_page(request)


@auth_router.post("/auth/forgot")
async def forgot(request: Request):
    if not is_same_origin(request):
        return _csrf_rejected()
    form = await request.form()
    email = str(form.get("email") or "").strip()
    rec = await ensure_record(request)
    try:
        result = await rec.manager.request_password_reset(email)
    except NetworkError as exc:
        return issue_cookie_if_new(request, _forgot_page(request, error=exc.detail, status_code=503))
    return issue_cookie_if_new(request, _forgot_page(request, message=result.message))


@auth_router.post("/auth/logout")
async def logout(request: Request):
    """Sign out and drop the server-side session; always ends on the landing page."""
    if not is_same_origin(request):
        return _csrf_rejected()
    rec = current_record(request)
    target = LANDING_PATH
    if rec is not None:
        try:
            await rec.manager.sign_out()
        except IdentityError as exc:
            # Local state is already cleared; the backend will expire the token.
            logger.warning("Backend sign-out failed: %s", exc.code)
        target = take_redirect(rec) or LANDING_PATH
        await session_store().delete(rec.session_id)
    response = RedirectResponse(url=target, status_code=303)
    clear_session_cookie(response, environment=get_environment())
    return response


@auth_router.get("/api/me")
async def me(request: Request):
    """Return the current session and profile.

    `profile` is null while unresolved or when resolution failed; clients must
    treat that as "cannot authorize".
    """
    rec = current_record(request)
    if rec is None:
        return api_error(401, "unauthenticated")
    state = rec.manager.state
    if state.loading:
        return api_error(503, "profile_pending", headers={"Retry-After": "1"})
    if state.user is None:
        return api_error(401, "unauthenticated")
    profile = state.profile
    return private_json(
        {
            "sub": state.user.principal_id,
            "email": state.user.email,
            "expires_at": state.user.expiry.isoformat() if state.user.expiry else None,
            "profile": (
                {
                    "id": profile.id,
                    "email": profile.email,
                    "display_name": profile.display_name,
                    "full_name": profile.full_name,
                    "role": profile.role.value,
                }
                if profile is not None
                else None
            ),
        }
    )
