"""
Centralized Data Store configuration for table names and Supabase wiring.

Intent:
    Provide a single source of truth for the logical table names consumed by
    the identity and learning contexts and their environment-variable
    overrides. Prevents drift across modules and enables simple testing.

Behavior:
    - `*_TABLE_DEFAULT` constants define canonical names matching the hosted
      schema (`profiles`, `courses`, `course_sections`, `course_content`, `user_progress`).
    - `get_*_table()` read env overrides (LUMEN_TABLE_*) with sane fallbacks.

Permissions:
    Pure configuration; no external calls or privileges required.
"""
from __future__ import annotations

import os
from dataclasses import dataclass


PROFILES_TABLE_DEFAULT = "profiles"
COURSES_TABLE_DEFAULT = "courses"
SECTIONS_TABLE_DEFAULT = "course_sections"
CONTENT_TABLE_DEFAULT = "course_content"
PROGRESS_TABLE_DEFAULT = "user_progress"


def _table(env_name: str, default: str) -> str:
    return (os.getenv(env_name) or default).strip() or default


def get_profiles_table() -> str:
    return _table("LUMEN_TABLE_PROFILES", PROFILES_TABLE_DEFAULT)


def get_courses_table() -> str:
    return _table("LUMEN_TABLE_COURSES", COURSES_TABLE_DEFAULT)


def get_sections_table() -> str:
    return _table("LUMEN_TABLE_SECTIONS", SECTIONS_TABLE_DEFAULT)


def get_content_table() -> str:
    return _table("LUMEN_TABLE_CONTENT", CONTENT_TABLE_DEFAULT)


def get_progress_table() -> str:
    return _table("LUMEN_TABLE_PROGRESS", PROGRESS_TABLE_DEFAULT)


@dataclass(frozen=True)
class SupabaseSettings:
    url: str
    anon_key: str
    service_role_key: str

    @property
    def configured(self) -> bool:
        return bool(self.url and (self.anon_key or self.service_role_key))


def get_supabase_settings() -> SupabaseSettings:
    """Read Supabase connection settings.

    Env:
        SUPABASE_URL, SUPABASE_ANON_KEY (auth flows) and
        SUPABASE_SERVICE_ROLE_KEY (server-side table access).
    """
    return SupabaseSettings(
        url=(os.getenv("SUPABASE_URL") or "").strip().rstrip("/"),
        anon_key=(os.getenv("SUPABASE_ANON_KEY") or "").strip(),
        service_role_key=(os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip(),
    )


__all__ = [
    "PROFILES_TABLE_DEFAULT",
    "COURSES_TABLE_DEFAULT",
    "SECTIONS_TABLE_DEFAULT",
    "CONTENT_TABLE_DEFAULT",
    "PROGRESS_TABLE_DEFAULT",
    "get_profiles_table",
    "get_courses_table",
    "get_sections_table",
    "get_content_table",
    "get_progress_table",
    "SupabaseSettings",
    "get_supabase_settings",
]
