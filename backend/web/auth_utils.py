"""
Shared session-cookie policy.

Why:
    The app middleware and the auth router both set and clear the session
    cookie. One helper keeps the flags identical in both places.
"""

from __future__ import annotations

SESSION_COOKIE_NAME = "lumen_session"


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    SameSite=Lax so the cookie survives the top-level redirect back from an
    OAuth provider; Strict would drop it on that navigation.
    """
    return {"secure": True, "samesite": "lax", "httponly": True, "path": "/"}


def set_session_cookie(response, value: str, *, environment: str, max_age: int | None = None) -> None:
    response.set_cookie(key=SESSION_COOKIE_NAME, value=value, max_age=max_age, **cookie_opts(environment))


def clear_session_cookie(response, *, environment: str) -> None:
    opts = cookie_opts(environment)
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path=opts["path"],
        secure=opts["secure"],
        httponly=opts["httponly"],
        samesite=opts["samesite"],
    )
