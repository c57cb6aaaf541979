"""
Security config guard tests.

Production/staging must fail fast on a missing hosted backend, placeholder
keys or plain-http URLs; development stays permissive.
"""
from __future__ import annotations

import pytest

from backend.web import config as cfg


def _prod(monkeypatch: pytest.MonkeyPatch, **overrides: str) -> None:
    env = {
        "LUMEN_ENV": "prod",
        "SUPABASE_URL": "https://project.supabase.co",
        "SUPABASE_ANON_KEY": "anon-key",
        "SUPABASE_SERVICE_ROLE_KEY": "REAL_NON_DUMMY",
        "LUMEN_PUBLIC_BASE_URL": "https://lumen.example",
    }
    env.update(overrides)
    for key, value in env.items():
        monkeypatch.setenv(key, value)


def test_prod_with_complete_https_config_starts(monkeypatch: pytest.MonkeyPatch):
    _prod(monkeypatch)
    cfg.ensure_secure_config_on_startup()


@pytest.mark.parametrize(
    "overrides",
    [
        {"SUPABASE_URL": ""},
        {"SUPABASE_ANON_KEY": ""},
        {"SUPABASE_SERVICE_ROLE_KEY": ""},
        {"SUPABASE_SERVICE_ROLE_KEY": "DUMMY_DO_NOT_USE"},
        {"SUPABASE_SERVICE_ROLE_KEY": "change_me_later"},
        {"SUPABASE_URL": "http://project.supabase.co"},
        {"LUMEN_PUBLIC_BASE_URL": "http://lumen.example"},
    ],
)
def test_prod_guard_refuses_insecure_config(monkeypatch: pytest.MonkeyPatch, overrides):
    _prod(monkeypatch, **overrides)
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_staging_is_treated_like_prod(monkeypatch: pytest.MonkeyPatch):
    _prod(monkeypatch, LUMEN_ENV="staging", SUPABASE_SERVICE_ROLE_KEY="DUMMY_DO_NOT_USE")
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_dev_allows_in_memory_backends(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LUMEN_ENV", "dev")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "DUMMY_DO_NOT_USE")
    cfg.ensure_secure_config_on_startup()
    assert cfg.get_environment() == "dev"
    assert cfg.is_prod_like() is False


@pytest.mark.parametrize(
    "raw,expected",
    [(None, 3600), ("7200", 7200), ("10", 300), ("999999", 86400), ("soon", 3600)],
)
def test_session_ttl_is_clamped(monkeypatch: pytest.MonkeyPatch, raw, expected):
    if raw is not None:
        monkeypatch.setenv("LUMEN_SESSION_TTL_SECONDS", raw)
    assert cfg.get_session_ttl_seconds() == expected


def test_public_base_url_and_provider_defaults(monkeypatch: pytest.MonkeyPatch):
    assert cfg.get_public_base_url() == ""
    assert cfg.get_oauth_provider() == "google"
    monkeypatch.setenv("LUMEN_PUBLIC_BASE_URL", "https://lumen.example/")
    monkeypatch.setenv("LUMEN_OAUTH_PROVIDER", "GitHub")
    assert cfg.get_public_base_url() == "https://lumen.example"
    assert cfg.get_oauth_provider() == "github"
