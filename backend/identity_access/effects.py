"""
Navigation effects that observe SessionManager state.

Why: Profile resolution only updates state. Moving the user (dashboard after
login, landing page after sign-out) is a separate observer so data fetching
and navigation stay independently testable.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from .domain import LANDING_PATH, SessionState, landing_redirect
from .session_manager import SessionManager

logger = logging.getLogger("lumen.identity_access")


class LandingRedirectEffect:
    """Perform the one-time post-resolution redirect and the sign-out return.

    Parameters
    ----------
    manager:
        The SessionManager to observe.
    current_path:
        Returns the user's current location (path only).
    navigate:
        Performs the navigation (e.g. sets a redirect on the next response).
    """

    def __init__(
        self,
        manager: SessionManager,
        *,
        current_path: Callable[[], str],
        navigate: Callable[[str], None],
    ) -> None:
        self._manager = manager
        self._current_path = current_path
        self._navigate = navigate
        self._previous: SessionState = manager.state
        self._redirected_for: Optional[str] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    def attach(self) -> "LandingRedirectEffect":
        if self._unsubscribe is None:
            self._previous = self._manager.state
            self._unsubscribe = self._manager.subscribe(self._on_state)
        return self

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_state(self, state: SessionState) -> None:
        previous, self._previous = self._previous, state

        if previous.session is not None and state.session is None:
            self._redirected_for = None
            if self._current_path() != LANDING_PATH:
                self._navigate(LANDING_PATH)
            return

        profile = state.profile
        if profile is None or previous.profile == profile:
            return
        if self._redirected_for == profile.id:
            return
        self._redirected_for = profile.id
        target = landing_redirect(self._current_path(), profile)
        if target:
            logger.debug("Redirecting resolved profile to %s", target)
            self._navigate(target)


__all__ = ["LandingRedirectEffect"]
