"""
Backend wiring for the web adapter.

Why:
    Routes need a Data Store and a way to create one auth client per browser
    session. With Supabase configured both come from supabase-py; otherwise
    (local development, tests) in-memory backends are used.

Behavior:
    - `get_wiring()` builds once and caches; safe to call from every request.
    - `use_wiring()` installs a prepared wiring (tests), `reset_wiring()` drops it.

Security:
    The service-role key is only used for the server-side Data Store client.
    Per-session auth clients use the anon key.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from backend.identity_access.auth_client import AuthClientProtocol, SupabaseAuthClient
from backend.identity_access.auth_memory import InMemoryAuthClient, InMemoryUserDirectory
from backend.identity_access.profiles import ProfileRepository
from backend.identity_access.session_manager import SessionManager
from backend.learning.progress import ProgressStore
from backend.storage.config import get_supabase_settings
from backend.storage.memory import InMemoryDataStore
from backend.storage.ports import DataStoreProtocol

from .config import get_oauth_provider, get_public_base_url

logger = logging.getLogger("lumen.web")

AuthFactory = Callable[[], Awaitable[AuthClientProtocol]]


@dataclass
class Wiring:
    store: DataStoreProtocol
    auth_factory: AuthFactory
    # Present only for the in-memory backend (seeding users in dev/tests).
    directory: Optional[InMemoryUserDirectory] = None

    @property
    def backend(self) -> str:
        return "memory" if self.directory is not None else "supabase"

    def progress_store(self) -> ProgressStore:
        return ProgressStore(self.store)

    async def new_session_manager(self) -> SessionManager:
        auth = await self.auth_factory()
        return SessionManager(
            auth,
            ProfileRepository(self.store),
            public_base_url=get_public_base_url(),
            oauth_provider=get_oauth_provider(),
        )


def in_memory_wiring(
    store: Optional[InMemoryDataStore] = None,
    directory: Optional[InMemoryUserDirectory] = None,
    *,
    require_email_confirmation: bool = False,
) -> Wiring:
    directory = directory or InMemoryUserDirectory()

    async def _auth() -> AuthClientProtocol:
        return InMemoryAuthClient(directory, require_email_confirmation=require_email_confirmation)

    return Wiring(store=store or InMemoryDataStore(), auth_factory=_auth, directory=directory)


async def _supabase_wiring() -> Wiring:
    # Lazy import keeps the optional client out of in-memory code paths.
    from supabase import AsyncClientOptions, acreate_client

    from backend.storage.supabase_store import SupabaseDataStore

    settings = get_supabase_settings()
    data_client = await acreate_client(settings.url, settings.service_role_key or settings.anon_key)

    async def _auth() -> AuthClientProtocol:
        # PKCE: the verifier stays in this client, so /auth/callback must reuse it.
        client = await acreate_client(
            settings.url,
            settings.anon_key or settings.service_role_key,
            options=AsyncClientOptions(flow_type="pkce"),
        )
        return SupabaseAuthClient(client)

    return Wiring(store=SupabaseDataStore(data_client), auth_factory=_auth)


_WIRING: Optional[Wiring] = None
_LOCK: Optional[asyncio.Lock] = None


async def get_wiring() -> Wiring:
    """Return the active wiring, building it on first use."""
    global _WIRING, _LOCK
    if _WIRING is not None:
        return _WIRING
    if _LOCK is None:
        _LOCK = asyncio.Lock()
    async with _LOCK:
        if _WIRING is None:
            if get_supabase_settings().configured:
                _WIRING = await _supabase_wiring()
                logger.info("Supabase backends wired")
            else:
                _WIRING = in_memory_wiring()
                logger.info("Supabase not configured; using in-memory backends")
    return _WIRING


def use_wiring(wiring: Optional[Wiring]) -> None:
    global _WIRING
    _WIRING = wiring


def reset_wiring() -> None:
    global _WIRING, _LOCK
    _WIRING = None
    _LOCK = None


__all__ = ["Wiring", "get_wiring", "in_memory_wiring", "use_wiring", "reset_wiring"]
