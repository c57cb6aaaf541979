"""
In-memory identity backend for development and tests.

Why: Run the web app and the SessionManager without a hosted auth service.
The behavior mirrors the hosted backend closely enough for the session
logic: a synchronous event stream, optional email confirmation, password
policy, and a federated flow that completes out of band.

Security: Development only. Passwords are kept in process memory.
"""
from __future__ import annotations

import re
import secrets
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from .auth_client import AuthEvent, AuthListener
from .domain import Session
from .errors import (
    EmailInUse,
    EmailNotConfirmed,
    InvalidCredentials,
    InvalidEmail,
    NetworkError,
    WeakPassword,
)

MIN_PASSWORD_LENGTH = 6
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class _UserRecord:
    id: str
    email: str
    password: str
    full_name: Optional[str]
    confirmed: bool


class InMemoryUserDirectory:
    """User accounts shared by every client instance (one per browser session)."""

    def __init__(self) -> None:
        self.users: Dict[str, _UserRecord] = {}
        self.reset_requests: List[str] = []

    def add_user(
        self,
        email: str,
        password: str,
        *,
        user_id: Optional[str] = None,
        full_name: Optional[str] = None,
        confirmed: bool = True,
    ) -> str:
        uid = user_id or str(uuid.uuid4())
        self.users[email.strip().lower()] = _UserRecord(uid, email.strip(), password, full_name, confirmed)
        return uid


class InMemoryAuthClient:
    def __init__(
        self,
        directory: Optional[InMemoryUserDirectory] = None,
        *,
        require_email_confirmation: bool = False,
        emit_initial_session: bool = True,
        ttl_seconds: int = 3600,
    ) -> None:
        self.require_email_confirmation = require_email_confirmation
        self.emit_initial_session = emit_initial_session
        self.ttl_seconds = ttl_seconds
        self.directory = directory or InMemoryUserDirectory()
        self.offline = False
        self._listeners: Dict[int, AuthListener] = {}
        self._next_listener = 0
        self._current: Optional[Session] = None
        # code -> (email, full_name) once the provider approved, None while pending
        self._oauth_codes: Dict[str, Optional[Tuple[str, Optional[str]]]] = {}
        self.closed = False

    # --- Test/dev helpers --------------------------------------------------------

    def add_user(self, email: str, password: str, **kwargs) -> str:
        return self.directory.add_user(email, password, **kwargs)

    @property
    def reset_requests(self) -> List[str]:
        return self.directory.reset_requests

    def restore(self, session: Optional[Session]) -> None:
        """Pretend a persisted session was found (no event is emitted)."""
        self._current = session

    def emit(self, event: AuthEvent, session: Optional[Session]) -> None:
        """Push an event to subscribers, as the hosted stream would."""
        if event is AuthEvent.SIGNED_OUT:
            self._current = None
        elif session is not None:
            self._current = session
        for listener in list(self._listeners.values()):
            listener(event, session)

    def complete_oauth(self, email: str, *, full_name: Optional[str] = None) -> Session:
        """Finish a federated sign-in as if the provider redirected back."""
        session = self._session_for(self._federated_user(email, full_name))
        self.emit(AuthEvent.SIGNED_IN, session)
        return session

    def authorize_oauth(self, code: str, email: str, *, full_name: Optional[str] = None) -> None:
        """Mark a pending authorization code as approved by the provider for `email`."""
        if code not in self._oauth_codes:
            raise KeyError(code)
        self._oauth_codes[code] = (email, full_name)

    def _federated_user(self, email: str, full_name: Optional[str]) -> _UserRecord:
        key = email.strip().lower()
        if key not in self.directory.users:
            self.add_user(email, secrets.token_urlsafe(16), full_name=full_name)
        return self.directory.users[key]

    # --- Protocol -----------------------------------------------------------------

    def _check_online(self) -> None:
        if self.offline:
            raise NetworkError()

    def _session_for(self, rec: _UserRecord) -> Session:
        return Session(
            credential_token=secrets.token_urlsafe(24),
            principal_id=rec.id,
            email=rec.email,
            expiry=datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds),
            full_name=rec.full_name,
        )

    async def sign_in_with_password(self, *, email: str, password: str) -> Session:
        self._check_online()
        rec = self.directory.users.get((email or "").strip().lower())
        if rec is None or not secrets.compare_digest(rec.password, password or ""):
            raise InvalidCredentials()
        if not rec.confirmed:
            raise EmailNotConfirmed()
        session = self._session_for(rec)
        self.emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_up(self, *, email: str, password: str, full_name: str) -> Optional[Session]:
        self._check_online()
        normalized = (email or "").strip()
        if not _EMAIL_RE.match(normalized):
            raise InvalidEmail()
        if normalized.lower() in self.directory.users:
            raise EmailInUse()
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise WeakPassword()
        self.add_user(normalized, password, full_name=full_name, confirmed=not self.require_email_confirmation)
        if self.require_email_confirmation:
            return None
        session = self._session_for(self.directory.users[normalized.lower()])
        self.emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_in_with_oauth(self, *, provider: str, redirect_to: str) -> str:
        self._check_online()
        code = secrets.token_urlsafe(12)
        self._oauth_codes[code] = None
        return f"{redirect_to}?code={code}&provider={provider}"

    async def exchange_code(self, *, code: str) -> Session:
        self._check_online()
        # Codes are single use, approved or not.
        approved = self._oauth_codes.pop(code, None)
        if approved is None:
            raise InvalidCredentials()
        email, full_name = approved
        session = self._session_for(self._federated_user(email, full_name))
        self.emit(AuthEvent.SIGNED_IN, session)
        return session

    async def reset_password_for_email(self, *, email: str, redirect_to: str) -> None:
        self._check_online()
        if not _EMAIL_RE.match((email or "").strip()):
            raise InvalidEmail()
        # Record regardless of account existence.
        self.reset_requests.append(email.strip())

    async def sign_out(self) -> None:
        self._check_online()
        self.emit(AuthEvent.SIGNED_OUT, None)

    async def get_session(self) -> Optional[Session]:
        self._check_online()
        cur = self._current
        if cur is not None and cur.expiry is not None and cur.expiry.timestamp() < time.time():
            self._current = None
            return None
        return cur

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        lid = self._next_listener
        self._next_listener += 1
        self._listeners[lid] = listener
        if self.emit_initial_session:
            listener(AuthEvent.INITIAL_SESSION, self._current)

        def _unsubscribe() -> None:
            self._listeners.pop(lid, None)

        return _unsubscribe

    async def close(self) -> None:
        self.closed = True
        self._listeners.clear()


__all__ = ["InMemoryAuthClient", "InMemoryUserDirectory", "MIN_PASSWORD_LENGTH"]
