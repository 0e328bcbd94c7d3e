"""
In-memory stand-ins for the Supabase client used by the tests.

Only the slice of the PostgREST query builder and Storage API that the
services call is implemented. Rows are deep-copied in and out so tests cannot
mutate stored state by accident.
"""

import copy
import re
import uuid
from datetime import datetime, timedelta, timezone

from postgrest.exceptions import APIError
from storage3.utils import StorageException

UNIQUE_CONSTRAINTS = {
    "users": [("email",)],
    "bookmarks": [("user_id", "note_id")],
}

TABLE_DEFAULTS = {
    "notes": {"title": None, "content": None, "images": [], "tags": [], "is_public": False},
}

_BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, data: list[dict], count: int | None = None):
        self.data = data
        self.count = count


def _split_or_terms(expr: str) -> list[str]:
    # Split on commas that are not inside a double-quoted value
    terms, buf = [], []
    in_quotes = escaped = False
    for ch in expr:
        if escaped:
            buf.append(ch)
            escaped = False
        elif ch == "\\":
            buf.append(ch)
            escaped = True
        elif ch == '"':
            buf.append(ch)
            in_quotes = not in_quotes
        elif ch == "," and not in_quotes:
            terms.append("".join(buf))
            buf = []
        else:
            buf.append(ch)
    terms.append("".join(buf))
    return terms


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return re.sub(r"\\(.)", r"\1", value[1:-1])
    return value


def _like_regex(pattern: str) -> str:
    # LIKE semantics: % and _ are wildcards, a backslash makes the next char literal
    out, i = [], 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        out.append(".*" if ch == "%" else "." if ch == "_" else re.escape(ch))
        i += 1
    return "".join(out)


def _ilike(value, pattern: str) -> bool:
    if value is None:
        return False
    return re.fullmatch(_like_regex(pattern), str(value), re.IGNORECASE | re.DOTALL) is not None


def _sort_key(value):
    return (value is None, "" if value is None else value)


class FakeQuery:
    """Chainable query against one in-memory table."""

    def __init__(self, client: "FakeSupabaseClient", table: str):
        self.client = client
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.count = None
        self.payload = None
        self.filters = []
        self.ordering = None
        self.window = None

    # ── Operations ───────────────────────────────────────

    def select(self, *columns, count=None):
        self.op = "select"
        self.columns = ",".join(columns) or "*"
        self.count = count
        return self

    def insert(self, data):
        self.op = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.op = "update"
        self.payload = data
        return self

    def delete(self):
        self.op = "delete"
        return self

    # ── Filters ──────────────────────────────────────────

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def ilike(self, column, pattern):
        self.filters.append(lambda row: _ilike(row.get(column), pattern))
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def overlaps(self, column, values):
        wanted = set(values)
        self.filters.append(lambda row: bool(set(row.get(column) or []) & wanted))
        return self

    def or_(self, expr):
        checks = []
        for term in _split_or_terms(expr):
            column, op, raw = term.split(".", 2)
            value = _unquote(raw)
            if op == "ilike":
                checks.append(lambda row, c=column, v=value: _ilike(row.get(c), v))
            elif op == "eq":
                checks.append(lambda row, c=column, v=value: str(row.get(c)) == v)
            else:
                raise NotImplementedError(f"or_ operator {op!r}")
        self.filters.append(lambda row: any(check(row) for check in checks))
        return self

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self

    def range(self, start, end):
        self.window = (start, end)
        return self

    # ── Execution ────────────────────────────────────────

    def _matches(self, row) -> bool:
        return all(check(row) for check in self.filters)

    def _project(self, row: dict) -> dict:
        if self.columns.strip() == "*":
            return copy.deepcopy(row)
        names = [c.strip() for c in self.columns.split(",") if c.strip()]
        return {name: copy.deepcopy(row.get(name)) for name in names}

    def execute(self) -> FakeResponse:
        rows = self.client.tables.setdefault(self.table, [])

        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.client._insert_row(self.table, item) for item in items]
            return FakeResponse(copy.deepcopy(created))

        matched = [row for row in rows if self._matches(row)]

        if self.op == "update":
            for row in matched:
                self.client._check_unique(self.table, {**row, **self.payload}, ignore=row)
                row.update(copy.deepcopy(self.payload))
            return FakeResponse(copy.deepcopy(matched))

        if self.op == "delete":
            self.client.tables[self.table] = [row for row in rows if not self._matches(row)]
            return FakeResponse(copy.deepcopy(matched))

        if self.ordering:
            column, desc = self.ordering
            matched = sorted(matched, key=lambda row: _sort_key(row.get(column)), reverse=desc)
        total = len(matched)
        if self.window:
            start, end = self.window
            matched = matched[start:end + 1]
        return FakeResponse(
            [self._project(row) for row in matched],
            total if self.count else None,
        )


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self.storage = storage
        self.name = name

    @property
    def objects(self) -> dict[str, bytes]:
        return self.storage.buckets.setdefault(self.name, {})

    def upload(self, path, file, file_options=None):
        if self.storage.fail_uploads:
            raise StorageException("Storage is unavailable")
        self.objects[path] = bytes(file)
        return {"Key": f"{self.name}/{path}"}

    def download(self, path):
        if path not in self.objects:
            raise StorageException(f"Object not found: {path}")
        return self.objects[path]

    def remove(self, paths):
        if self.storage.fail_removals:
            raise StorageException("Storage is unavailable")
        removed = []
        for path in paths:
            if self.objects.pop(path, None) is not None:
                removed.append({"name": path, "bucket_id": self.name})
        return removed

    def get_public_url(self, path):
        return f"https://fake.supabase.co/storage/v1/object/public/{self.name}/{path}"


class FakeStorage:
    def __init__(self):
        self.buckets: dict[str, dict[str, bytes]] = {}
        self.fail_removals = False
        self.fail_uploads = False

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)


class FakeSupabaseClient:
    """Enough of supabase.Client for the services: tables plus one Storage API."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.storage = FakeStorage()
        self._ticks = 0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> list[dict]:
        return copy.deepcopy(self.tables.get(name, []))

    def _now(self) -> str:
        # Strictly increasing timestamps keep ordering by created_at deterministic
        self._ticks += 1
        return (_BASE_TIME + timedelta(seconds=self._ticks)).isoformat()

    def _check_unique(self, table: str, candidate: dict, ignore: dict | None = None) -> None:
        for columns in UNIQUE_CONSTRAINTS.get(table, []):
            key = tuple(candidate.get(c) for c in columns)
            for row in self.tables.get(table, []):
                if row is ignore:
                    continue
                if tuple(row.get(c) for c in columns) == key:
                    raise APIError({
                        "code": "23505",
                        "message": f"duplicate key value violates unique constraint on {table}{columns}",
                        "details": None,
                        "hint": None,
                    })

    def _insert_row(self, table: str, item: dict) -> dict:
        now = self._now()
        row = copy.deepcopy(TABLE_DEFAULTS.get(table, {}))
        row.update({"id": str(uuid.uuid4()), "created_at": now, "updated_at": now})
        row.update(copy.deepcopy(item))
        self._check_unique(table, row)
        self.tables.setdefault(table, []).append(row)
        return row
