"""
Configuration and startup security checks for Lumen.

Why: A learning platform handles student accounts; an accidental insecure
deployment (plain-http auth backend, placeholder keys, in-memory auth) must
not reach production. Development stays permissive.

Permissions: The caller needs no special privileges. The functions read
environment variables and `ensure_secure_config_on_startup` raises
`SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os

DEFAULT_SESSION_TTL = 3600
MIN_SESSION_TTL = 300
MAX_SESSION_TTL = 86400


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def get_environment() -> str:
    return (os.getenv("LUMEN_ENV", "dev") or "dev").strip().lower()


def is_prod_like() -> bool:
    return _is_prod_like(get_environment())


def get_session_ttl_seconds() -> int:
    """Session lifetime, clamped to a sane window."""
    raw = (os.getenv("LUMEN_SESSION_TTL_SECONDS") or "").strip()
    try:
        ttl = int(raw) if raw else DEFAULT_SESSION_TTL
    except ValueError:
        ttl = DEFAULT_SESSION_TTL
    return max(MIN_SESSION_TTL, min(MAX_SESSION_TTL, ttl))


def get_public_base_url() -> str:
    return (os.getenv("LUMEN_PUBLIC_BASE_URL") or "").strip().rstrip("/")


def get_oauth_provider() -> str:
    return (os.getenv("LUMEN_OAUTH_PROVIDER") or "google").strip().lower()


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/stage only):
    - Supabase URL and anon key must be set (no in-memory auth in production).
    - Supabase service role key must be set and not a dummy placeholder.
    - SUPABASE_URL and LUMEN_PUBLIC_BASE_URL must use https.
    """
    if not is_prod_like():
        return

    url = (os.getenv("SUPABASE_URL") or "").strip()
    anon = (os.getenv("SUPABASE_ANON_KEY") or "").strip()
    if not url or not anon:
        raise SystemExit(
            "Refusing to start: SUPABASE_URL and SUPABASE_ANON_KEY must be set in production."
        )

    srole = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip()
    if not srole or srole.upper() == "DUMMY_DO_NOT_USE" or srole.upper().startswith("CHANGE_ME"):
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )

    def _must_be_https(value: str, var_name: str) -> None:
        if value and value.strip().lower().startswith("http://"):
            raise SystemExit(f"Refusing to start: {var_name} must use https in production (got http).")

    _must_be_https(url, "SUPABASE_URL")
    _must_be_https(get_public_base_url(), "LUMEN_PUBLIC_BASE_URL")


__all__ = [
    "ensure_secure_config_on_startup",
    "get_environment",
    "get_oauth_provider",
    "get_public_base_url",
    "get_session_ttl_seconds",
    "is_prod_like",
]
