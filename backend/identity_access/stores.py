"""
In-memory store mapping opaque browser session ids to live SessionManagers.

Why: Keep identity state (credential, profile, course-view cursors) server-side
and opaque to the client. Each browser session owns exactly one
SessionManager; nothing else mutates its session or profile.

Security: Cookies carry only an opaque session id. Session data stays server-side.
"""
from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from .session_manager import SessionManager


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    manager: SessionManager
    expires_at: int
    # Per-record view state (e.g. one navigator per open course).
    views: Dict[str, Any] = field(default_factory=dict)


class SessionStore:
    def __init__(self, factory: Callable[[], Awaitable[SessionManager]], *, ttl_seconds: int = 3600):
        self._factory = factory
        self.ttl_seconds = ttl_seconds
        self._data: Dict[str, SessionRecord] = {}

    async def create(self) -> SessionRecord:
        """Create and start a SessionManager behind a fresh opaque id.

        Expired records are swept first so abandoned sessions do not pile up.
        """
        await self.sweep()
        sid = secrets.token_urlsafe(24)
        manager = await self._factory()
        rec = SessionRecord(session_id=sid, manager=manager, expires_at=_now() + self.ttl_seconds)
        self._data[sid] = rec
        await manager.start()
        return rec

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at < _now():
            await self.delete(session_id)
            return None
        return rec

    async def sweep(self) -> int:
        """Drop and close every expired record; returns how many went."""
        now = _now()
        expired = [sid for sid, rec in self._data.items() if rec.expires_at < now]
        for sid in expired:
            await self.delete(sid)
        return len(expired)

    def touch(self, rec: SessionRecord) -> None:
        rec.expires_at = _now() + self.ttl_seconds

    async def delete(self, session_id: str) -> None:
        rec = self._data.pop(session_id, None)
        if rec is not None:
            await rec.manager.close()

    def __len__(self) -> int:
        return len(self._data)


__all__ = ["SessionRecord", "SessionStore"]
