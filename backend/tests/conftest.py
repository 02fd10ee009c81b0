"""
Shared fixtures: test settings and an in-memory stand-in for the Supabase
query builder (table().select/insert/update/upsert ... .execute()).
"""

import os
import re
from itertools import count

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")

import pytest

from studyhub.features.agent.registry import ToolRegistry
from studyhub.features.agent.tools import materials, navigation, study, whatsapp
from studyhub.features.plugins.runtime import clear_plugin_tools_cache


class FakeResponse:
    def __init__(self, data):
        self.data = data


def _ilike(value, pattern: str) -> bool:
    regex = "^" + ".*".join(re.escape(part) for part in pattern.split("%")) + "$"
    return value is not None and re.match(regex, str(value), re.IGNORECASE) is not None


# column.operator.value, where value is either "double quoted" or runs to the next comma
_OR_CLAUSE = re.compile(r'(\w+)\.(\w+)\.("(?:[^"\\]|\\.)*"|[^,]*)')


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.order_by = None
        self.limit_n = None

    # ── Operations ──
    def select(self, columns="*"):
        self.op = "select"
        return self

    def insert(self, data):
        self.op, self.payload = "insert", data
        return self

    def update(self, data):
        self.op, self.payload = "update", data
        return self

    def upsert(self, data, on_conflict=None):
        self.op, self.payload, self.on_conflict = "upsert", data, on_conflict
        return self

    # ── Filters ──
    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def ilike(self, column, pattern):
        self.filters.append(lambda row: _ilike(row.get(column), pattern))
        return self

    def or_(self, expression):
        clauses = []
        for match in _OR_CLAUSE.finditer(expression):
            column, operator, value = match.groups()
            assert operator == "ilike"
            if value.startswith('"'):
                value = re.sub(r"\\(.)", r"\1", value[1:-1])
            clauses.append((column, value))
        assert clauses, expression
        self.filters.append(lambda row: any(_ilike(row.get(c), p) for c, p in clauses))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    # ── Execution ──
    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table_name, self.op))
        error = self.db.fail_on.get((self.table_name, self.op))
        if error is not None:
            raise error

        rows = self.db.tables.setdefault(self.table_name, [])

        if self.op == "insert":
            return FakeResponse([self.db.add(self.table_name, self.payload)])

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return FakeResponse(updated)

        if self.op == "upsert":
            keys = (self.on_conflict or "id").split(",")
            for row in rows:
                if all(row.get(k) == self.payload.get(k) for k in keys if k in self.payload):
                    row.update(self.payload)
                    return FakeResponse([dict(row)])
            return FakeResponse([self.db.add(self.table_name, self.payload)])

        result = [dict(r) for r in rows if self._matches(r)]
        if self.order_by:
            column, desc = self.order_by
            result.sort(key=lambda r: r.get(column) or "", reverse=desc)
        if self.limit_n is not None:
            result = result[: self.limit_n]
        return FakeResponse(result)


class FakeSupabase:
    """Just enough of supabase.Client for the services under test."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: dict[tuple[str, str], Exception] = {}
        self._ids = count(1)

    def add(self, table: str, row: dict) -> dict:
        stored = dict(row)
        stored.setdefault("id", f"{table}-{next(self._ids)}")
        self.tables.setdefault(table, []).append(stored)
        return dict(stored)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeSupabase()
    for module in (navigation, whatsapp, study, materials):
        monkeypatch.setattr(module, "get_supabase_client", lambda: db)
    return db


@pytest.fixture
def registry():
    return ToolRegistry()


@pytest.fixture(autouse=True)
def _fresh_plugin_cache():
    clear_plugin_tools_cache()
    yield
    clear_plugin_tools_cache()
