"""
Shared fixtures: an in-memory Supabase stand-in and a clean settings cache.
"""

import copy
import itertools
import json
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from weblitho.config import get_settings

ENV_KEYS = [
    "OPENROUTER_KEY",
    "LOVABLE_API_KEY",
    "GEMINI_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
]

TABLE_DEFAULTS = {
    "user_credits": {
        "plan": "free",
        "credits_balance": 5,
        "monthly_credits": 5,
        "daily_credits": 5,
    },
}

_BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeQuery:
    """Chainable query mimicking the subset of the supabase-py builder we use."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.limit_to = None

    def select(self, columns="*"):
        self.op = "select"
        return self

    def insert(self, row):
        self.op = "insert"
        self.payload = row
        return self

    def update(self, values):
        self.op = "update"
        self.payload = values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def lt(self, column, value):
        self.filters.append(lambda r: r.get(column) is not None and r.get(column) < value)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_to = n
        return self

    def _matching(self):
        rows = self.db.tables.setdefault(self.table, [])
        return [r for r in rows if all(f(r) for f in self.filters)]

    def execute(self):
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            row = self.db.new_row(self.table, self.payload)
            rows.append(row)
            return SimpleNamespace(data=[copy.deepcopy(row)])

        matched = self._matching()

        if self.op == "update":
            for r in matched:
                if r.get("id") in self.db.failing_ids:
                    raise RuntimeError(f"update failed for {r['id']}")
            for r in matched:
                r.update(copy.deepcopy(self.payload))
            return SimpleNamespace(data=[copy.deepcopy(r) for r in matched])

        if self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if r not in matched]
            return SimpleNamespace(data=[copy.deepcopy(r) for r in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: r.get(column) or 0, reverse=desc)
        if self.limit_to is not None:
            matched = matched[: self.limit_to]
        return SimpleNamespace(data=[copy.deepcopy(r) for r in matched])


class FakeBucket:
    def __init__(self, db, name):
        self.db = db
        self.name = name

    def upload(self, path, data, options=None):
        self.db.objects[path] = {"data": data, "options": options or {}}

    def get_public_url(self, path):
        return f"https://storage.test/{self.name}/{path}"

    def list(self, prefix):
        return [
            {"name": path.split("/", 1)[1], "metadata": {"size": len(obj["data"])}, "created_at": "2026-01-01T00:00:00+00:00"}
            for path, obj in self.db.objects.items()
            if path.startswith(f"{prefix}/")
        ]

    def remove(self, paths):
        for p in paths:
            self.db.objects.pop(p, None)


class FakeAuth:
    def __init__(self, db):
        self.db = db

    def get_user(self, token):
        if token not in self.db.tokens:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(id=self.db.tokens[token]))


class FakeStorage:
    def __init__(self, db):
        self.db = db

    def from_(self, bucket):
        return FakeBucket(self.db, bucket)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.objects = {}
        self.tokens = {}
        self.failing_ids = set()
        self._clock = itertools.count(1)
        self.auth = FakeAuth(self)
        self.storage = FakeStorage(self)

    def table(self, name):
        return FakeQuery(self, name)

    def new_row(self, table, payload):
        stamp = (_BASE_TIME + timedelta(seconds=next(self._clock))).isoformat()
        row = {
            "id": str(uuid.uuid4()),
            "created_at": stamp,
            "updated_at": stamp,
            **TABLE_DEFAULTS.get(table, {}),
        }
        if table == "user_credits":
            row["last_daily_reset"] = stamp
        row.update(copy.deepcopy(payload))
        return row

    def rows(self, table):
        return self.tables.get(table, [])


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeSupabase()
    for module in ("weblitho.database", "weblitho.credits", "weblitho.auth", "weblitho.images"):
        monkeypatch.setattr(f"{module}.get_client", lambda: db)
    return db


@pytest.fixture
def set_env(monkeypatch):
    """Set settings env vars and drop the cached Settings."""
    def _set(**values):
        for key, value in values.items():
            monkeypatch.setenv(key, value)
        get_settings.cache_clear()
    return _set


class FakeStream:
    """Stands in for llm.UpstreamStream."""

    def __init__(self, lines):
        self.lines = lines
        self.closed = False

    async def iter_bytes(self):
        for line in self.lines:
            yield (line + "\n").encode()
        await self.aclose()

    async def iter_lines(self):
        for line in self.lines:
            yield line
        await self.aclose()

    async def aclose(self):
        self.closed = True


def delta_lines(*chunks):
    """OpenAI-style SSE lines for the given content chunks, ending with [DONE]."""
    lines = []
    for chunk in chunks:
        lines.append("data: " + json.dumps({"choices": [{"delta": {"content": chunk}, "index": 0}]}))
        lines.append("")
    lines.append("data: [DONE]")
    return lines
