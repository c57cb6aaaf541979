"""
Profile repository over the `profiles` table.

Why:
    Profile resolution needs to tell "no row" apart from every other failure:
    a missing profile is recovered by creating a default one, anything else
    (network, permission) must leave the profile unresolved.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from backend.storage.config import get_profiles_table
from backend.storage.ports import DataStoreProtocol, Row

from .domain import Profile, Role, display_name_from_email

logger = logging.getLogger("lumen.identity_access")


class ProfileNotFound(Exception):
    """No profile row exists for the principal (recovered locally)."""


class ProfileFetchError(Exception):
    """Profile could not be read or written for a reason other than absence."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def profile_from_row(row: Row) -> Profile:
    role = Role.parse(row.get("role"))
    if role is None:
        raise ProfileFetchError("invalid_role")
    email = str(row.get("email") or "")
    return Profile(
        id=str(row["id"]),
        email=email,
        display_name=str(row.get("name") or display_name_from_email(email)),
        role=role,
        full_name=row.get("full_name"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class ProfileRepository:
    def __init__(self, store: DataStoreProtocol, table: Optional[str] = None) -> None:
        self._store = store
        self._table = table or get_profiles_table()

    async def fetch(self, principal_id: str) -> Profile:
        """Return the profile or raise ProfileNotFound / ProfileFetchError."""
        res = await self._store.select(self._table, filters={"id": principal_id}, single=True)
        if res.error is not None:
            if res.error.is_no_rows:
                raise ProfileNotFound(principal_id)
            raise ProfileFetchError(res.error.code)
        row = res.first()
        if row is None:
            raise ProfileNotFound(principal_id)
        return profile_from_row(row)

    async def create_default(self, principal_id: str, *, email: str, full_name: Optional[str] = None) -> Profile:
        """Create the default student profile for a principal.

        A duplicate-key conflict means a concurrent resolution created the row
        first; the existing row is returned so both callers converge.
        """
        now = datetime.now(timezone.utc).isoformat()
        record = {
            "id": principal_id,
            "email": email or "",
            "name": display_name_from_email(email),
            "role": Role.STUDENT.value,
            "full_name": full_name or "Unknown User",
            "created_at": now,
            "updated_at": now,
        }
        res = await self._store.insert(self._table, record)
        if res.error is not None:
            if res.error.is_conflict:
                logger.info("Default profile already present; re-reading")
                return await self.fetch(principal_id)
            raise ProfileFetchError(res.error.code)
        return profile_from_row(res.first() or record)


__all__ = ["ProfileRepository", "ProfileNotFound", "ProfileFetchError", "profile_from_row"]
