"""
Shared fixtures: an in-memory stand-in for the supabase-py client.

FakeSupabase understands the slice of the PostgREST builder the analytics
layer uses (select/eq/neq/gt/gte/lt/lte/in_/is_/not_/order/limit/range/execute,
count="exact") and records every executed query so tests can inspect the
filters that were applied.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

# Add backend directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from analytics.helpers import parse_iso  # noqa: E402
from analytics.scope import ScopedClient, build_scope  # noqa: E402

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
TENANT_A = "tenant-a"
TENANT_B = "tenant-b"


def ts(days_ago: float = 0, hours: float = 0) -> str:
    """ISO timestamp ``days_ago`` days (plus ``hours``) before NOW."""
    return (NOW - timedelta(days=days_ago, hours=hours)).isoformat()


def _comparable(value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    dt = parse_iso(value)
    return dt if dt is not None else value


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.columns = "*"
        self.count_mode = None
        self.filters = []
        self._order = None
        self._limit = None
        self._offset = 0
        self._negate = False

    # builder API

    def select(self, columns="*", count=None):
        self.columns = columns
        self.count_mode = count
        return self

    @property
    def not_(self):
        self._negate = True
        return self

    def _add(self, op, column, value):
        self.filters.append((("not." if self._negate else "") + op, column, value))
        self._negate = False
        return self

    def eq(self, column, value):
        return self._add("eq", column, value)

    def neq(self, column, value):
        return self._add("neq", column, value)

    def gt(self, column, value):
        return self._add("gt", column, value)

    def gte(self, column, value):
        return self._add("gte", column, value)

    def lt(self, column, value):
        return self._add("lt", column, value)

    def lte(self, column, value):
        return self._add("lte", column, value)

    def in_(self, column, values):
        return self._add("in", column, list(values))

    def is_(self, column, value):
        return self._add("is", column, value)

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, n):
        self._limit = n
        return self

    def range(self, start, end):
        self._offset = start
        self._limit = end - start + 1
        return self

    # evaluation

    def _match(self, row) -> bool:
        for op, column, expected in self.filters:
            negate = op.startswith("not.")
            op = op[4:] if negate else op
            value = row.get(column)
            if op == "is":
                ok = value is None if expected in (None, "null") else value == expected
            elif op == "in":
                ok = value in expected
            elif value is None:
                ok = False
            elif op == "eq":
                ok = value == expected
            elif op == "neq":
                ok = value != expected
            else:
                a, b = _comparable(value), _comparable(expected)
                ok = {
                    "gt": lambda: a > b,
                    "gte": lambda: a >= b,
                    "lt": lambda: a < b,
                    "lte": lambda: a <= b,
                }[op]()
            if ok == negate:
                return False
        return True

    def execute(self):
        self.db.queries.append(self)
        if self.table in self.db.failing:
            raise RuntimeError(f"relation {self.table} is unavailable")

        rows = [dict(r) for r in self.db.tables.get(self.table, []) if self._match(r)]
        if self._order:
            column, desc = self._order
            rows.sort(key=lambda r: (r.get(column) is None, str(r.get(column))), reverse=desc)
        count = len(rows) if self.count_mode else None
        rows = rows[self._offset:]
        if self._limit is not None:
            rows = rows[:self._limit]
        return SimpleNamespace(data=rows, count=count)


class FakeAuth:
    def __init__(self, tokens):
        self.tokens = tokens

    def get_user(self, token):
        if token not in self.tokens:
            raise RuntimeError("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(id=self.tokens[token], email=None))


class FakeSupabase:
    def __init__(self, tables=None, failing=(), tokens=None):
        self.tables = tables or {}
        self.failing = set(failing)
        self.queries = []
        self.auth = FakeAuth(tokens or {})

    def table(self, name):
        return FakeQuery(self, name)

    def tables_queried(self):
        return {q.table for q in self.queries}


def make_client(supabase, role="admin", tenant_id=TENANT_A, days=30, now=NOW, **kwargs):
    return ScopedClient(supabase, build_scope(role, tenant_id, days, now=now), **kwargs)


@pytest.fixture
def fake_db():
    """Factory: fake_db({"leads": [...]}, failing={"messages"})."""
    def _make(tables=None, failing=(), tokens=None):
        return FakeSupabase(tables, failing, tokens)
    return _make
