import copy
import itertools
import os
import re
import sys

import django
import pytest

# Ensure project root is on sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "procurement_app.settings")
django.setup()

from postgrest.exceptions import APIError  # noqa: E402

from procurement.services import supabase_cache, supabase_client  # noqa: E402
from procurement.services.schema_capabilities import capabilities  # noqa: E402

# Parent tables reachable through ``<table>!inner(...)`` and the child column
# that points at them.
JOIN_KEYS = {
    "stock_receipt_notes": "receipt_note_uuid",
    "stock_return_notes": "return_note_uuid",
}
_JOIN = re.compile(r"(\w+)!inner\(")


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable stand-in for a postgrest request builder."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.count = None
        self.payload = None
        self.on_conflict = "uuid"
        self.filters = []
        self.ordering = []
        self.limit_to = None
        self.row_range = None
        self.single = False

    # -- builder ------------------------------------------------------------

    def select(self, *columns, count=None):
        self.columns = ",".join(columns) or "*"
        self.count = count
        return self

    def insert(self, rows):
        self.action, self.payload = "insert", rows
        return self

    def update(self, values):
        self.action, self.payload = "update", values
        return self

    def upsert(self, rows, on_conflict="uuid", **_):
        self.action, self.payload, self.on_conflict = "upsert", rows, on_conflict
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        return self

    def neq(self, column, value):
        self.filters.append(("neq", column, value))
        return self

    def in_(self, column, values):
        self.filters.append(("in", column, list(values)))
        return self

    def is_(self, column, value):
        self.filters.append(("is", column, value))
        return self

    def order(self, column, desc=False):
        self.ordering.append((column, desc))
        return self

    def limit(self, count):
        self.limit_to = count
        return self

    def range(self, start, end):
        self.row_range = (start, end)
        return self

    def maybe_single(self):
        self.single = True
        return self

    # -- helpers used by assertions -------------------------------------------

    def filter_value(self, op, column):
        for f_op, f_column, value in self.filters:
            if f_op == op and f_column == column:
                return value
        return None

    # -- execution ----------------------------------------------------------

    def _matches(self, row):
        for op, column, value in self.filters:
            current = row.get(column)
            if op == "eq" and current != value:
                return False
            if op == "neq" and current == value:
                return False
            if op == "in" and current not in value:
                return False
            if op == "is" and value == "null" and current is not None:
                return False
        return True

    def _joined(self, rows):
        for parent in _JOIN.findall(self.columns):
            key = JOIN_KEYS[parent]
            parents = {p["uuid"]: p for p in self.db.tables.get(parent, [])}
            joined = []
            for row in rows:
                if parent in row:
                    joined.append(row)
                elif row.get(key) in parents:
                    joined.append({**row, parent: copy.deepcopy(parents[row[key]])})
            rows = joined
        return rows

    def _sorted(self, rows):
        for column, desc in reversed(self.ordering):
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: r[column], reverse=desc)
            rows = present + missing if not desc else missing + present
        return rows

    def _check_columns(self, columns):
        missing = self.db.missing_columns.get(self.table, set())
        for column in columns:
            if column in missing:
                raise APIError(
                    {
                        "message": f"Could not find the '{column}' column of '{self.table}' in the schema cache",
                        "code": "PGRST204",
                        "hint": None,
                        "details": None,
                    }
                )

    def execute(self):
        self.db.calls.append(self)
        for table, action, predicate, error in self.db.failures:
            if table == self.table and action == self.action and predicate(self):
                raise APIError(error)

        table = self.db.tables.setdefault(self.table, [])
        if self.action == "select":
            self._check_columns(c.strip() for c in self.columns.split(","))
            data = self._sorted(self._joined([copy.deepcopy(r) for r in table if self._matches(r)]))
            count = len(data) if self.count else None
            if self.row_range is not None:
                data = data[self.row_range[0] : self.row_range[1] + 1]
            if self.limit_to is not None:
                data = data[: self.limit_to]
            if self.single:
                if len(data) > 1:
                    raise APIError(
                        {
                            "message": "JSON object requested, multiple (or no) rows returned",
                            "code": "PGRST116",
                            "hint": None,
                            "details": f"Results contain {len(data)} rows",
                        }
                    )
                return FakeResponse(data[0]) if data else None
            return FakeResponse(data, count)

        if self.action == "insert":
            inserted = []
            for row in self.payload:
                self._check_columns(row)
                stored = {"uuid": self.db.new_uuid(), "created_at": self.db.timestamp(), **row}
                table.append(stored)
                inserted.append(copy.deepcopy(stored))
            return FakeResponse(inserted)

        if self.action == "update":
            self._check_columns(self.payload)
            updated = []
            for row in table:
                if self._matches(row):
                    row.update(copy.deepcopy(self.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        if self.action == "upsert":
            written = []
            for row in self.payload:
                existing = next((r for r in table if r.get(self.on_conflict) == row.get(self.on_conflict)), None)
                if existing is None:
                    existing = {"created_at": self.db.timestamp()}
                    table.append(existing)
                existing.update(copy.deepcopy(row))
                written.append(copy.deepcopy(existing))
            return FakeResponse(written)

        removed = [r for r in table if self._matches(r)]
        self.db.tables[self.table] = [r for r in table if not self._matches(r)]
        return FakeResponse(copy.deepcopy(removed))


class FakeSupabase:
    """In-memory Supabase client holding one list of dict rows per table."""

    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = []
        self.missing_columns = {}
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)

    def table(self, name):
        return FakeQuery(self, name)

    def new_uuid(self):
        return f"00000000-0000-4000-8000-{next(self._ids):012d}"

    def timestamp(self):
        return f"2024-01-01T00:00:00.{next(self._clock):06d}Z"

    def seed(self, table, *rows):
        self.tables.setdefault(table, []).extend(copy.deepcopy(list(rows)))

    def fail(self, table, action="select", message="boom", code="XX000", when=None):
        """Make matching queries raise ``APIError``."""
        predicate = when or (lambda query: True)
        self.failures.append((table, action, predicate, {"message": message, "code": code, "hint": None, "details": None}))

    def calls_to(self, table, action=None):
        return [c for c in self.calls if c.table == table and (action is None or c.action == action)]


@pytest.fixture
def fake_supabase(monkeypatch):
    fake = FakeSupabase()
    monkeypatch.setattr(supabase_client, "_client", fake)
    return fake


@pytest.fixture(autouse=True)
def reset_caches():
    supabase_cache.clear_all()
    capabilities.reset()
    yield
    supabase_cache.clear_all()
    capabilities.reset()


@pytest.fixture
def api_client():
    from rest_framework.test import APIClient

    return APIClient()
