"""
Identity backend port and Supabase Auth adapter.

Design:
- Framework-agnostic; the SessionManager depends only on `AuthClientProtocol`.
- The adapter translates Supabase Auth (GoTrue) responses into our `Session`
  value object and its failures into the identity error taxonomy.
- The event stream mirrors GoTrue: subscribers are called synchronously with
  `(event, session_or_none)`; handlers must not block.

Security:
- Never log credentials or tokens. Emails are logged at debug level only.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Protocol

import httpx
from supabase_auth.errors import AuthError, AuthRetryableError

from .domain import Session
from .errors import (
    EmailInUse,
    EmailNotConfirmed,
    IdentityError,
    InvalidCredentials,
    InvalidEmail,
    NetworkError,
    ProviderNotEnabled,
    RateLimited,
    WeakPassword,
)

logger = logging.getLogger("lumen.identity_access")


class AuthEvent(str, Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"

    @classmethod
    def parse(cls, value: object) -> "AuthEvent":
        raw = getattr(value, "value", value)
        try:
            return cls(str(raw))
        except ValueError:
            # Unknown kinds carry a session (or not); treat as a refresh.
            return cls.TOKEN_REFRESHED


AuthListener = Callable[[AuthEvent, Optional[Session]], None]


class AuthClientProtocol(Protocol):
    async def sign_in_with_password(self, *, email: str, password: str) -> Session: ...

    async def sign_up(self, *, email: str, password: str, full_name: str) -> Optional[Session]: ...

    async def sign_in_with_oauth(self, *, provider: str, redirect_to: str) -> str: ...

    async def exchange_code(self, *, code: str) -> Session: ...

    async def reset_password_for_email(self, *, email: str, redirect_to: str) -> None: ...

    async def sign_out(self) -> None: ...

    async def get_session(self) -> Optional[Session]: ...

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]: ...

    async def close(self) -> None: ...


# (substring in lowercase message, error class); order matters.
_MESSAGE_RULES: tuple[tuple[str, type[IdentityError]], ...] = (
    ("invalid login credentials", InvalidCredentials),
    ("email not confirmed", EmailNotConfirmed),
    ("too many requests", RateLimited),
    ("rate limit", RateLimited),
    ("for security purposes, you can only request this after", RateLimited),
    ("user already registered", EmailInUse),
    ("already been registered", EmailInUse),
    ("password should be at least", WeakPassword),
    ("unable to validate email address", InvalidEmail),
    ("provider is not enabled", ProviderNotEnabled),
)

_CODE_RULES: dict[str, type[IdentityError]] = {
    "invalid_credentials": InvalidCredentials,
    "email_not_confirmed": EmailNotConfirmed,
    "over_request_rate_limit": RateLimited,
    "over_email_send_rate_limit": RateLimited,
    "email_exists": EmailInUse,
    "user_already_exists": EmailInUse,
    "weak_password": WeakPassword,
    "email_address_invalid": InvalidEmail,
    "validation_failed": InvalidEmail,
    "provider_disabled": ProviderNotEnabled,
}


def classify_auth_failure(message: str | None, code: str | None = None, status: int | None = None) -> IdentityError:
    """Map a raw identity-backend failure onto the error taxonomy.

    Prefers the machine-readable `code`; falls back to the message wording the
    hosted backend uses. Unrecognized failures with a 5xx/absent status are
    treated as network errors, everything else as invalid credentials.
    """
    if code and code in _CODE_RULES:
        return _CODE_RULES[code]()
    lowered = (message or "").lower()
    for needle, err in _MESSAGE_RULES:
        if needle in lowered:
            return err()
    if status == 429:
        return RateLimited()
    if status is None or status >= 500:
        return NetworkError()
    return InvalidCredentials()


def _expiry(raw: Any) -> Optional[datetime]:
    if raw is None:
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def session_from_supabase(raw: Any) -> Optional[Session]:
    """Convert a supabase-py `Session` into our value object."""
    if raw is None:
        return None
    user = getattr(raw, "user", None)
    principal_id = getattr(user, "id", None)
    if not principal_id:
        return None
    metadata = getattr(user, "user_metadata", None) or {}
    full_name = metadata.get("full_name") if isinstance(metadata, dict) else None
    return Session(
        credential_token=getattr(raw, "access_token", None),
        principal_id=str(principal_id),
        email=str(getattr(user, "email", "") or ""),
        expiry=_expiry(getattr(raw, "expires_at", None)),
        full_name=full_name,
    )


class SupabaseAuthClient:
    """Authenticate against Supabase Auth using a supabase-py async client.

    The client is duck-typed: it must expose `.auth` offering the GoTrue
    methods used below.
    """

    def __init__(self, client: Any) -> None:
        self._auth = client.auth

    async def _call(self, op: str, coro_factory: Callable[[], Any]) -> Any:
        try:
            return await coro_factory()
        except AuthRetryableError as exc:
            logger.warning("Auth %s failed (retryable): %s", op, exc.__class__.__name__)
            raise NetworkError() from exc
        except AuthError as exc:
            err = classify_auth_failure(
                getattr(exc, "message", str(exc)),
                getattr(exc, "code", None),
                getattr(exc, "status", None),
            )
            logger.info("Auth %s rejected: %s", op, err.code)
            raise err from exc
        except httpx.HTTPError as exc:
            logger.warning("Auth %s unreachable: %s", op, exc.__class__.__name__)
            raise NetworkError() from exc

    async def sign_in_with_password(self, *, email: str, password: str) -> Session:
        resp = await self._call(
            "sign_in", lambda: self._auth.sign_in_with_password({"email": email, "password": password})
        )
        session = session_from_supabase(getattr(resp, "session", None))
        if session is None:
            raise InvalidCredentials()
        return session

    async def sign_up(self, *, email: str, password: str, full_name: str) -> Optional[Session]:
        payload = {
            "email": email,
            "password": password,
            "options": {"data": {"full_name": full_name, "role": "student"}},
        }
        resp = await self._call("sign_up", lambda: self._auth.sign_up(payload))
        # No session when the project requires email confirmation.
        return session_from_supabase(getattr(resp, "session", None))

    async def sign_in_with_oauth(self, *, provider: str, redirect_to: str) -> str:
        resp = await self._call(
            "oauth",
            lambda: self._auth.sign_in_with_oauth({"provider": provider, "options": {"redirect_to": redirect_to}}),
        )
        url = getattr(resp, "url", None)
        if not url:
            raise ProviderNotEnabled()
        return str(url)

    async def exchange_code(self, *, code: str) -> Session:
        """Finish a PKCE flow. Must run on the client that started it (it holds the verifier)."""
        resp = await self._call("exchange_code", lambda: self._auth.exchange_code_for_session({"auth_code": code}))
        session = session_from_supabase(getattr(resp, "session", None))
        if session is None:
            raise InvalidCredentials()
        return session

    async def reset_password_for_email(self, *, email: str, redirect_to: str) -> None:
        await self._call(
            "reset_password", lambda: self._auth.reset_password_for_email(email, {"redirect_to": redirect_to})
        )

    async def sign_out(self) -> None:
        await self._call("sign_out", lambda: self._auth.sign_out())

    async def get_session(self) -> Optional[Session]:
        raw = await self._call("get_session", lambda: self._auth.get_session())
        return session_from_supabase(raw)

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        def _relay(event: Any, raw_session: Any) -> None:
            listener(AuthEvent.parse(event), session_from_supabase(raw_session))

        subscription = self._auth.on_auth_state_change(_relay)
        return subscription.unsubscribe

    async def close(self) -> None:
        """Release the GoTrue HTTP client."""
        try:
            await self._auth.close()
        except httpx.HTTPError as exc:
            logger.warning("Auth client close failed: %s", exc.__class__.__name__)


__all__ = [
    "AuthEvent",
    "AuthListener",
    "AuthClientProtocol",
    "SupabaseAuthClient",
    "classify_auth_failure",
    "session_from_supabase",
]
