import os
import sys

import pytest

# Ensure the repository root is importable so the 'cardsync' package resolves without install
THIS_DIR = os.path.dirname(__file__)
ROOT_DIR = os.path.abspath(os.path.join(THIS_DIR, ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from cardsync.config import SyncConfig


class FakeAPIError(Exception):
    pass


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Just enough of the postgrest query builder for the code under test."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.on_conflict = ""
        self.filters = []
        self._range = None
        self._limit = None
        self._order = []

    # builders
    def select(self, columns="*"):
        self.op = "select"
        self.columns = columns
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict="", returning=None, **kwargs):
        self.op = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, key, value):
        self.filters.append(lambda row: row.get(key) == value)
        return self

    def in_(self, key, values):
        values = list(values)
        self.filters.append(lambda row: row.get(key) in values)
        return self

    def lt(self, key, value):
        self.filters.append(lambda row: row.get(key) is not None and row.get(key) < value)
        return self

    def order(self, column, desc=False):
        self._order.append((column, desc))
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, n):
        self._limit = n
        return self

    # execution
    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        rows = self.db.tables.setdefault(self.table, [])
        if self.op == "select":
            self.db.select_calls.append((self.table, self._range))
            self.db.order_calls.append((self.table, list(self._order)))
            found = [row for row in rows if self._matches(row)]
            for column, desc in reversed(self._order):
                found.sort(key=lambda row: (row.get(column) is None, row.get(column)), reverse=desc)
            if self._range:
                found = found[self._range[0] : self._range[1] + 1]
            if self._limit is not None:
                found = found[: self._limit]
            if self.columns != "*":
                cols = [c.strip() for c in self.columns.split(",")]
                found = [{c: row.get(c) for c in cols} for row in found]
            return FakeResponse([dict(r) for r in found])

        if self.op == "delete":
            deleted = [row for row in rows if self._matches(row)]
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return FakeResponse(deleted)

        records = self.payload if isinstance(self.payload, list) else [self.payload]

        if self.op == "insert":
            keys = self.db.unique.get(self.table)
            for record in records:
                if keys and any(all(r.get(k) == record.get(k) for k in keys) for r in rows):
                    raise FakeAPIError(f"duplicate key value violates unique constraint on {self.table}")
                rows.append(dict(record))
            return FakeResponse([dict(r) for r in records])

        # upsert
        call_no = len([c for c in self.db.upsert_calls if c[0] == self.table])
        self.db.upsert_calls.append((self.table, [dict(r) for r in records], self.on_conflict))
        if call_no in self.db.failing_upserts.get(self.table, set()):
            raise FakeAPIError(f"upsert #{call_no} into {self.table} rejected")
        keys = [k.strip() for k in self.on_conflict.split(",") if k.strip()]
        for record in records:
            existing = None
            if keys:
                existing = next(
                    (r for r in rows if all(r.get(k) == record.get(k) for k in keys)), None
                )
            if existing is not None:
                existing.update(record)
            else:
                rows.append(dict(record))
        return FakeResponse([dict(r) for r in records])


class FakeSupabase:
    """In-memory stand-in for `supabase.Client`."""

    def __init__(self, tables=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.unique = {"scheduler_locks": ("job_name",)}
        self.upsert_calls = []
        self.select_calls = []
        self.order_calls = []
        # table -> set of 0-based upsert call numbers that should fail
        self.failing_upserts = {}

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def config():
    """Default lookup tables with every delay switched off."""
    return SyncConfig(
        request_delay=0,
        set_delay=0,
        last_sale_batch_delay=0,
    )
