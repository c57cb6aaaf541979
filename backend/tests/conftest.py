"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, keep env-driven settings
deterministic, and give every test a fresh in-memory wiring and session store
(each AnyIO test runs on its own event loop).
"""
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
TESTS_DIR = REPO_ROOT / "backend" / "tests"
for p in (str(REPO_ROOT), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch):
    """Default to dev semantics and the in-memory backends unless a test opts in."""
    for var in (
        "LUMEN_ENV",
        "SUPABASE_URL",
        "SUPABASE_ANON_KEY",
        "SUPABASE_SERVICE_ROLE_KEY",
        "LUMEN_PUBLIC_BASE_URL",
        "LUMEN_OAUTH_PROVIDER",
        "LUMEN_SESSION_TTL_SECONDS",
        "LUMEN_TRUST_PROXY",
        "LUMEN_TABLE_PROFILES",
        "LUMEN_TABLE_COURSES",
        "LUMEN_TABLE_SECTIONS",
        "LUMEN_TABLE_CONTENT",
        "LUMEN_TABLE_PROGRESS",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def _reset_web_state():
    """Drop cached wiring and sessions so nothing leaks between event loops."""
    from backend.web import session_context, wiring

    wiring.reset_wiring()
    session_context.reset_session_store()
    yield
    wiring.reset_wiring()
    session_context.reset_session_store()
