"""
Landing-redirect effect (navigation decoupled from resolution) and the
opaque-id SessionStore.
"""
from __future__ import annotations

import pytest

from backend.identity_access.auth_memory import InMemoryAuthClient
from backend.identity_access.effects import LandingRedirectEffect
from backend.identity_access.profiles import ProfileRepository
from backend.identity_access.session_manager import SessionManager
from backend.identity_access.stores import SessionStore
from backend.storage.memory import InMemoryDataStore


pytestmark = pytest.mark.anyio("asyncio")


async def _started(store=None):
    auth = InMemoryAuthClient()
    auth.add_user("jane.doe@example.com", "secret123")
    manager = SessionManager(auth, ProfileRepository(store or InMemoryDataStore()))
    await manager.start()
    return manager


@pytest.mark.anyio
async def test_redirects_once_from_login_to_dashboard():
    manager = await _started()
    location = {"path": "/auth/login"}
    navigations = []
    effect = LandingRedirectEffect(
        manager, current_path=lambda: location["path"], navigate=navigations.append
    ).attach()

    await manager.sign_in("jane.doe@example.com", "secret123")
    await manager.drain()
    assert navigations == ["/student/dashboard"]

    # A token refresh for the same principal does not redirect again.
    await manager.sign_in("jane.doe@example.com", "secret123")
    await manager.drain()
    assert navigations == ["/student/dashboard"]
    effect.detach()


@pytest.mark.anyio
async def test_no_redirect_when_deep_in_the_app():
    manager = await _started()
    navigations = []
    LandingRedirectEffect(manager, current_path=lambda: "/courses/c1", navigate=navigations.append).attach()
    await manager.sign_in("jane.doe@example.com", "secret123")
    await manager.drain()
    assert navigations == []


@pytest.mark.anyio
async def test_sign_out_returns_to_landing():
    manager = await _started()
    location = {"path": "/courses/c1"}
    navigations = []
    LandingRedirectEffect(manager, current_path=lambda: location["path"], navigate=navigations.append).attach()
    await manager.sign_in("jane.doe@example.com", "secret123")
    await manager.drain()
    await manager.sign_out()
    assert navigations == ["/"]


@pytest.mark.anyio
async def test_session_store_creates_starts_and_expires(monkeypatch: pytest.MonkeyPatch):
    import backend.identity_access.stores as stores

    async def factory():
        return SessionManager(InMemoryAuthClient(), ProfileRepository(InMemoryDataStore()))

    store = SessionStore(factory, ttl_seconds=60)
    rec = await store.create()
    assert len(rec.session_id) >= 24
    assert rec.manager.state.loading is False  # started
    assert await store.get(rec.session_id) is rec
    assert len(store) == 1

    now = stores._now()
    monkeypatch.setattr(stores, "_now", lambda: now + 120)
    assert await store.get(rec.session_id) is None
    assert len(store) == 0


@pytest.mark.anyio
async def test_session_store_touch_and_delete():
    async def factory():
        return SessionManager(InMemoryAuthClient(), ProfileRepository(InMemoryDataStore()))

    store = SessionStore(factory, ttl_seconds=60)
    rec = await store.create()
    before = rec.expires_at
    rec.expires_at -= 30
    store.touch(rec)
    assert rec.expires_at >= before
    await store.delete(rec.session_id)
    assert await store.get(rec.session_id) is None
    await store.delete("unknown")


@pytest.mark.anyio
async def test_creating_a_session_sweeps_expired_ones(monkeypatch: pytest.MonkeyPatch):
    import backend.identity_access.stores as stores

    clients = []

    async def factory():
        auth = InMemoryAuthClient()
        clients.append(auth)
        return SessionManager(auth, ProfileRepository(InMemoryDataStore()))

    store = SessionStore(factory, ttl_seconds=300)
    abandoned = [await store.create() for _ in range(200)]
    assert len(store) == 200

    now = stores._now()
    monkeypatch.setattr(stores, "_now", lambda: now + 301)
    fresh = await store.create()

    assert len(store) == 1
    assert await store.get(fresh.session_id) is fresh
    assert [await store.get(rec.session_id) for rec in abandoned] == [None] * 200
    assert all(auth.closed for auth in clients[:200])
    assert clients[200].closed is False


@pytest.mark.anyio
async def test_sweep_keeps_live_sessions(monkeypatch: pytest.MonkeyPatch):
    import backend.identity_access.stores as stores

    async def factory():
        return SessionManager(InMemoryAuthClient(), ProfileRepository(InMemoryDataStore()))

    store = SessionStore(factory, ttl_seconds=300)
    old = await store.create()
    now = stores._now()
    monkeypatch.setattr(stores, "_now", lambda: now + 200)
    active = await store.create()
    store.touch(old)
    monkeypatch.setattr(stores, "_now", lambda: now + 400)
    assert await store.sweep() == 0
    assert len(store) == 2
    monkeypatch.setattr(stores, "_now", lambda: now + 800)
    assert await store.sweep() == 2
    assert len(store) == 0
