"""
SessionManager: single source of truth for "who is logged in, with what role".

Why:
    The identity backend offers two independent notification paths, an event
    stream of session changes and a one-shot "current session" call made at
    startup. Both may fire for the same principal in either order. This
    component reconciles them into one `SessionState` and owns every mutation
    of the session and the resolved profile.

Design:
    - State is an immutable `SessionState` snapshot, replaced (never mutated)
      and published to subscribers after each change.
    - Profile resolution is keyed by principal and by a generation counter
      that advances whenever the session identity changes. A resolution
      commits only if both still match when it completes (stale-response
      guard); this is the only cancellation mechanism.
    - Resolution triggered by an auth event is scheduled on the loop after
      the handler returns, so bursts of events never interleave resolutions
      for different principals.
    - Navigation is not performed here; see `effects.LandingRedirectEffect`.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Set

from .auth_client import AuthClientProtocol, AuthEvent
from .domain import Session, SessionState
from .errors import IdentityError, NetworkError
from .profiles import ProfileFetchError, ProfileNotFound, ProfileRepository

logger = logging.getLogger("lumen.identity_access")

StateListener = Callable[[SessionState], None]

RESET_MESSAGE = "If an account exists for this address, a password reset email has been sent."


@dataclass(frozen=True)
class ResetRequestResult:
    success: bool
    message: str


@dataclass
class _Inflight:
    principal_id: str
    generation: int
    task: "asyncio.Task[None]"


class SessionManager:
    def __init__(
        self,
        auth: AuthClientProtocol,
        profiles: ProfileRepository,
        *,
        public_base_url: str = "",
        oauth_provider: str = "google",
    ) -> None:
        self._auth = auth
        self._profiles = profiles
        self._public_base_url = (public_base_url or "").rstrip("/")
        self._oauth_provider = oauth_provider
        self._state = SessionState()
        self._listeners: Dict[int, StateListener] = {}
        self._next_listener = 0
        self._generation = 0
        self._events_seen = 0
        self._inflight: Optional[_Inflight] = None
        self._tasks: Set["asyncio.Task[None]"] = set()
        self._settled = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe_auth: Optional[Callable[[], None]] = None
        self._started = False

    # --- Read interface ------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns an unsubscribe callable."""
        lid = self._next_listener
        self._next_listener += 1
        self._listeners[lid] = listener

        def _unsubscribe() -> None:
            self._listeners.pop(lid, None)

        return _unsubscribe

    async def wait_until_resolved(self) -> SessionState:
        """Wait until `loading` is false and return the state at that point."""
        while self._state.loading:
            await self._settled.wait()
        return self._state

    async def drain(self) -> None:
        """Await every scheduled resolution, including ones spawned meanwhile."""
        while True:
            # Give call_soon-deferred launches a chance to create their tasks.
            await asyncio.sleep(0)
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # --- Lifecycle ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to the event stream, then run the one-shot session check."""
        if self._started:
            return
        self._started = True
        self._loop = asyncio.get_running_loop()
        self._unsubscribe_auth = self._auth.on_auth_state_change(self._on_auth_event)
        seen_before = self._events_seen
        try:
            session = await self._auth.get_session()
        except IdentityError as exc:
            logger.warning("Initial session check failed: %s", exc.code)
            if self._events_seen == seen_before and self._state.session is None:
                self._publish(loading=False)
            return
        if self._events_seen != seen_before:
            # The event stream already reported something at least as fresh.
            logger.debug("Initial session result superseded by auth event")
            return
        self._adopt(session)

    async def close(self) -> None:
        if self._unsubscribe_auth is not None:
            self._unsubscribe_auth()
            self._unsubscribe_auth = None
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        await self._auth.close()

    # --- Operations -----------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> Session:
        """Establish a session; profile resolution follows asynchronously."""
        session = await self._auth.sign_in_with_password(email=email, password=password)
        self._adopt(session)
        return session

    async def sign_up(self, email: str, password: str, display_name: str) -> Optional[Session]:
        """Create a pending identity (role defaults to student).

        Returns None when the backend requires email confirmation first.
        """
        session = await self._auth.sign_up(email=email, password=password, full_name=display_name)
        if session is not None:
            self._adopt(session)
        return session

    async def sign_in_with_federated_provider(self) -> str:
        """Return the provider URL; the provider sends the browser back to /auth/callback."""
        return await self._auth.sign_in_with_oauth(
            provider=self._oauth_provider, redirect_to=f"{self._public_base_url}/auth/callback"
        )

    async def exchange_code(self, code: str) -> Session:
        """Complete a federated sign-in with the authorization code from the callback."""
        session = await self._auth.exchange_code(code=code)
        self._adopt(session)
        return session

    async def request_password_reset(self, email: str) -> ResetRequestResult:
        """Request a reset email. Reports success unless the backend is unreachable."""
        try:
            await self._auth.reset_password_for_email(
                email=email, redirect_to=f"{self._public_base_url}/reset-password"
            )
        except NetworkError:
            raise
        except IdentityError as exc:
            # Do not reveal whether the account exists.
            logger.info("Password reset request not accepted: %s", exc.code)
        return ResetRequestResult(success=True, message=RESET_MESSAGE)

    async def sign_out(self) -> None:
        """Clear session and profile immediately, then tell the backend."""
        self._generation += 1
        self._inflight = None
        self._publish(session=None, profile=None, loading=False)
        await self._auth.sign_out()

    # --- Reconciliation -------------------------------------------------------------

    def _on_auth_event(self, event: AuthEvent, session: Optional[Session]) -> None:
        self._events_seen += 1
        logger.debug("Auth event %s", event.value)
        if event is AuthEvent.SIGNED_OUT:
            session = None
        self._adopt(session)

    def _adopt(self, session: Optional[Session]) -> None:
        if session is None or not session.is_authenticated:
            if self._state.session is not None or self._state.loading:
                self._generation += 1
                self._inflight = None
                self._publish(session=None, profile=None, loading=False)
            return

        current = self._state.session
        if current is not None and current.principal_id == session.principal_id:
            # Same principal (token refresh, duplicate trigger): keep the profile.
            self._publish(session=session)
            if self._state.profile is not None or self._has_inflight(session.principal_id):
                return
            if not self._state.loading:
                self._publish(loading=True)
        else:
            self._generation += 1
            self._inflight = None
            self._publish(session=session, profile=None, loading=True)
        self._schedule_resolution(session, self._generation)

    def _has_inflight(self, principal_id: str) -> bool:
        inf = self._inflight
        return (
            inf is not None
            and inf.principal_id == principal_id
            and inf.generation == self._generation
            and not inf.task.done()
        )

    def _schedule_resolution(self, session: Session, generation: int) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        loop.call_soon_threadsafe(self._launch, session, generation)

    def _launch(self, session: Session, generation: int) -> None:
        principal_id = str(session.principal_id)
        if not self._is_current(principal_id, generation):
            return
        if self._has_inflight(principal_id):
            return
        task = asyncio.ensure_future(self._resolve(session, generation))
        self._inflight = _Inflight(principal_id, generation, task)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Profile resolution crashed", exc_info=task.exception())

    def _is_current(self, principal_id: str, generation: int) -> bool:
        cur = self._state.session
        return generation == self._generation and cur is not None and cur.principal_id == principal_id

    async def _resolve(self, session: Session, generation: int) -> None:
        principal_id = str(session.principal_id)
        profile = None
        try:
            try:
                profile = await self._profiles.fetch(principal_id)
                outcome = "found"
            except ProfileNotFound:
                if not self._is_current(principal_id, generation):
                    return
                profile = await self._profiles.create_default(
                    principal_id, email=session.email, full_name=session.full_name
                )
                outcome = "created"
        except ProfileFetchError as exc:
            logger.warning("Profile resolution failed: %s", exc.code)
            profile = None
            outcome = "failed"
        finally:
            stale = not self._is_current(principal_id, generation)
            if stale:
                logger.info("Discarding stale profile resolution")
            elif profile is None and self._state.loading:
                # Unresolved (failure or crash): never leave loading stuck.
                self._publish(profile=None, loading=False)
        if stale:
            return
        logger.info("Profile resolution %s", outcome)
        self._publish(profile=profile, loading=False)

    def _publish(self, **changes) -> None:
        new_state = self._state.evolve(**changes)
        if new_state == self._state:
            return
        self._state = new_state
        if new_state.loading:
            self._settled.clear()
        else:
            self._settled.set()
        for listener in list(self._listeners.values()):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Session state listener failed")


__all__ = ["SessionManager", "ResetRequestResult", "StateListener", "RESET_MESSAGE"]
