"""
Fakes shaped like the supabase-py async client.

Only the surface our adapters touch is modelled: `client.table(name)` with a
chainable PostgREST builder and awaitable `execute()`, and `client.auth` with
the GoTrue calls used by the auth adapter.
"""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable, List, Optional


class FakeQuery:
    def __init__(self, client: "FakeSupabaseClient", table: str):
        self.client = client
        self.table = table
        self.calls: List[tuple] = []

    def _record(self, name: str, *args, **kwargs) -> "FakeQuery":
        self.calls.append((name, args, kwargs))
        return self

    def select(self, *args, **kwargs):
        return self._record("select", *args, **kwargs)

    def insert(self, *args, **kwargs):
        return self._record("insert", *args, **kwargs)

    def update(self, *args, **kwargs):
        return self._record("update", *args, **kwargs)

    def upsert(self, *args, **kwargs):
        return self._record("upsert", *args, **kwargs)

    def delete(self, *args, **kwargs):
        return self._record("delete", *args, **kwargs)

    def eq(self, *args, **kwargs):
        return self._record("eq", *args, **kwargs)

    def order(self, *args, **kwargs):
        return self._record("order", *args, **kwargs)

    def limit(self, *args, **kwargs):
        return self._record("limit", *args, **kwargs)

    def single(self, *args, **kwargs):
        return self._record("single", *args, **kwargs)

    async def execute(self):
        self.client.executed.append(self)
        if self.client.raise_on_execute is not None:
            raise self.client.raise_on_execute
        return SimpleNamespace(data=self.client.next_data)


class FakeSupabaseClient:
    def __init__(self, *, data: Any = None, auth: Any = None):
        self.next_data = data if data is not None else []
        self.raise_on_execute: Optional[BaseException] = None
        self.executed: List[FakeQuery] = []
        self.auth = auth or FakeGoTrue()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


def make_supabase_session(user_id: str = "u-1", email: str = "jane.doe@example.com", *, full_name: Optional[str] = None):
    user = SimpleNamespace(id=user_id, email=email, user_metadata={"full_name": full_name} if full_name else {})
    return SimpleNamespace(access_token="tok-" + user_id, expires_at=4102444800, user=user)


class FakeGoTrue:
    """Records calls; each method returns or raises what the test configured."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.responses: dict = {}
        self.errors: dict = {}
        self.listener: Optional[Callable[[Any, Any], None]] = None
        self.unsubscribed = False
        self.closed = False

    async def _answer(self, name: str, *args):
        self.calls.append((name, args))
        if name in self.errors:
            raise self.errors[name]
        return self.responses.get(name)

    async def sign_in_with_password(self, credentials):
        return await self._answer("sign_in_with_password", credentials)

    async def sign_up(self, credentials):
        return await self._answer("sign_up", credentials)

    async def sign_in_with_oauth(self, credentials):
        return await self._answer("sign_in_with_oauth", credentials)

    async def reset_password_for_email(self, email, options=None):
        return await self._answer("reset_password_for_email", email, options)

    async def sign_out(self, options=None):
        return await self._answer("sign_out")

    async def get_session(self):
        return await self._answer("get_session")

    def on_auth_state_change(self, callback):
        self.listener = callback
        fake = self

        class _Subscription:
            def unsubscribe(self_inner):
                fake.unsubscribed = True

        return _Subscription()

    async def exchange_code_for_session(self, params):
        resp = await self._answer("exchange_code_for_session", params)
        session = getattr(resp, "session", None)
        if session is not None and self.listener is not None:
            self.listener("SIGNED_IN", session)
        return resp

    async def close(self):
        self.closed = True
