"""In-memory stand-ins for the Supabase client and the Gemini bot."""

from __future__ import annotations

import copy
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable

import pytest

_BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FakeQuery:
    def __init__(self, client: "FakeSupabase", table: str) -> None:
        self._client = client
        self._table = table
        self._op = "select"
        self._payload: Any = None
        self._filters: list[Callable[[dict], bool]] = []
        self._order: tuple[str, bool] | None = None
        self._limit: int | None = None

    def select(self, _columns: str = "*") -> "FakeQuery":
        self._op = "select"
        return self

    def insert(self, payload: dict) -> "FakeQuery":
        self._op, self._payload = "insert", payload
        return self

    def update(self, payload: dict) -> "FakeQuery":
        self._op, self._payload = "update", payload
        return self

    def delete(self) -> "FakeQuery":
        self._op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def is_(self, column: str, value: str) -> "FakeQuery":
        assert value == "null"
        self._filters.append(lambda row: row.get(column) is None)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self._order = (column, desc)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self._limit = count
        return self

    def _matches(self, row: dict) -> bool:
        return all(check(row) for check in self._filters)

    def execute(self) -> SimpleNamespace:
        self._client.calls.append((self._table, self._op))
        for hook in list(self._client.hooks):
            hook(self._client, self._table, self._op)

        rows = self._client.tables.setdefault(self._table, [])
        if self._op == "insert":
            row = self._client.new_row(self._payload)
            rows.append(row)
            return SimpleNamespace(data=[copy.deepcopy(row)])
        if self._op == "update":
            hit = [row for row in rows if self._matches(row)]
            for row in hit:
                row.update(self._payload)
            return SimpleNamespace(data=copy.deepcopy(hit))
        if self._op == "delete":
            hit = [row for row in rows if self._matches(row)]
            self._client.tables[self._table] = [row for row in rows if not self._matches(row)]
            return SimpleNamespace(data=copy.deepcopy(hit))

        hit = [row for row in rows if self._matches(row)]
        if self._order is not None:
            column, desc = self._order
            hit.sort(key=lambda row: row.get(column) or "", reverse=desc)
        if self._limit is not None:
            hit = hit[: self._limit]
        return SimpleNamespace(data=copy.deepcopy(hit))


class FakeAuth:
    def __init__(self) -> None:
        self.tokens: dict[str, str] = {}

    def get_user(self, token: str) -> SimpleNamespace:
        if token not in self.tokens:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(id=self.tokens[token]))


class FakeSupabase:
    """Just enough of the supabase-py query builder for the Gymna modules."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self.hooks: list[Callable[["FakeSupabase", str, str], None]] = []
        self.auth = FakeAuth()
        self._clock = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def new_row(self, payload: dict) -> dict:
        stamp = (_BASE_TIME + timedelta(seconds=next(self._clock))).isoformat()
        row = {"id": str(uuid.uuid4()), "created_at": stamp}
        if "title" in payload:
            row["updated_at"] = stamp
        row.update(copy.deepcopy(payload))
        return row

    def fail_on(self, table: str, op: str, error: Exception | None = None, times: int | None = None) -> None:
        """Make the next `times` (default: all) `op` calls on `table` raise."""
        remaining = [times]

        def hook(_client: "FakeSupabase", t: str, o: str) -> None:
            if t == table and o == op and remaining[0] != 0:
                if remaining[0] is not None:
                    remaining[0] -= 1
                raise error or RuntimeError(f"{table} {op} failed")

        self.hooks.append(hook)

    # -- convenience ------------------------------------------------------

    def add_profile(self, user_id: str, credits: int | None) -> None:
        self.tables.setdefault("profiles", []).append({"id": user_id, "gymna_credits": credits})

    def credits(self, user_id: str) -> Any:
        for row in self.tables.get("profiles", []):
            if row["id"] == user_id:
                return row["gymna_credits"]
        return None

    def rows(self, table: str, **match: Any) -> list[dict]:
        return [row for row in self.tables.get(table, []) if all(row.get(k) == v for k, v in match.items())]


class FakeBot:
    """Scripted GymnaBot: returns queued replies or raises queued errors."""

    def __init__(self, replies: list[Any] | None = None, configured: bool = True) -> None:
        self.replies = list(replies or [])
        self.is_configured = configured
        self.plan_model = "plan-model"
        self.calls: list[dict] = []

    def reply(self, history, content, model_id=None):
        self.calls.append({"history": list(history), "content": content, "model_id": model_id})
        result = self.replies.pop(0) if self.replies else "Sure, here you go."
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture()
def db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture()
def bot() -> FakeBot:
    return FakeBot()


@pytest.fixture()
def user_id(db: FakeSupabase) -> str:
    uid = "user-1"
    db.add_profile(uid, 3)
    return uid
