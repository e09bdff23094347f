"""
Pytest configuration and shared fixtures.

Provides:
- FakeSupabase: an in-memory stand-in for the supabase client covering the
  PostgREST builder calls used by the services
- API test clients with the Supabase dependency and authentication overridden
- A provisioned user (free plan, membership, usage row, preferences)
"""

import itertools
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

# Set environment BEFORE importing app modules
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("QWEN_API_KEY", "test-qwen-key")
os.environ.setdefault("FIREBASE_PROJECT_ID", "cineprep-test")
os.environ["RATE_LIMIT"] = "1000/minute"
os.environ["GENERATION_RATE_LIMIT"] = "1000/minute"

from fastapi.testclient import TestClient

from cineprep.core.dependencies import get_current_user
from cineprep.database.supabase_client import get_supabase
from cineprep.main import app
from cineprep.modules.auth.service import clear_auth_cache
from cineprep.modules.membership.service import MembershipService

# ============================================================================
# In-memory Supabase
# ============================================================================

TABLE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "movie_recommendations": {"status": "pending"},
    "user_notification_tokens": {"is_active": True},
    "user_taste_profile": {"notification_enabled": True, "notification_frequency": "weekly"},
    "lore_cache": {"hit_count": 0},
}


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]], count: Optional[int] = None):
        self.data = data
        self.count = count


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.action = "select"
        self.columns = "*"
        self.count_mode = None
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.ignore_duplicates = False
        self.filters: List = []
        self.order_by: List = []
        self.limit_count: Optional[int] = None
        self.range_bounds: Optional[tuple] = None

    # -- actions ---------------------------------------------------------

    def select(self, columns: str = "*", count: Optional[str] = None):
        self.action = "select"
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None, ignore_duplicates: bool = False):
        self.action = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    # -- filters ---------------------------------------------------------

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def lte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) <= value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def order(self, column, desc: bool = False):
        self.order_by.append((column, desc))
        return self

    def limit(self, count: int):
        self.limit_count = count
        return self

    def range(self, start: int, end: int):
        self.range_bounds = (start, end)
        return self

    # -- execution -------------------------------------------------------

    def _rows(self) -> List[Dict[str, Any]]:
        return self.db.tables.setdefault(self.table_name, [])

    def _matching(self) -> List[Dict[str, Any]]:
        return [row for row in self._rows() if all(f(row) for f in self.filters)]

    def _project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self.columns.strip() == "*":
            return dict(row)
        wanted = [c.strip() for c in self.columns.split(",")]
        return {c: row[c] for c in wanted if c in row}

    def execute(self) -> FakeResponse:
        if self.table_name in self.db.failing_tables:
            raise Exception(f"relation {self.table_name} unavailable")
        handler = getattr(self, f"_execute_{self.action}")
        return handler()

    def _execute_select(self) -> FakeResponse:
        rows = self._matching()
        for column, desc in reversed(self.order_by):
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        count = len(rows) if self.count_mode else None
        if self.range_bounds:
            start, end = self.range_bounds
            rows = rows[start:end + 1]
        if self.limit_count is not None:
            rows = rows[:self.limit_count]
        return FakeResponse([self._project(r) for r in rows], count)

    def _new_row(self, values: Dict[str, Any]) -> Dict[str, Any]:
        row = {**TABLE_DEFAULTS.get(self.table_name, {}), **values}
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self.db.next_timestamp())
        self._rows().append(row)
        return dict(row)

    def _execute_insert(self) -> FakeResponse:
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        return FakeResponse([self._new_row(values) for values in payload])

    def _execute_upsert(self) -> FakeResponse:
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
        written = []
        for values in payload:
            existing = next(
                (r for r in self._rows() if all(r.get(k) == values.get(k) for k in keys)),
                None,
            )
            if existing is None:
                written.append(self._new_row(values))
            elif not self.ignore_duplicates:
                existing.update(values)
                written.append(dict(existing))
        return FakeResponse(written)

    def _execute_update(self) -> FakeResponse:
        rows = self._matching()
        for row in rows:
            row.update(self.payload)
        return FakeResponse([dict(r) for r in rows])

    def _execute_delete(self) -> FakeResponse:
        rows = self._matching()
        self.db.tables[self.table_name] = [r for r in self._rows() if r not in rows]
        return FakeResponse([dict(r) for r in rows])


class FakeSupabase:
    """Minimal in-memory Supabase client. `auth` is a MagicMock for GoTrue calls."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failing_tables = set()
        self.auth = MagicMock()
        self._clock = itertools.count()
        self._epoch = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def next_timestamp(self) -> str:
        return (self._epoch + timedelta(seconds=next(self._clock))).isoformat()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.get(name, [])

    def seed(self, name: str, *rows: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [self.table(name).insert(row).execute().data[0] for row in rows]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def user() -> Dict[str, str]:
    return {"id": "user-1", "email": "ana@cineprep.app"}


@pytest.fixture
def provisioned_user(fake_db: FakeSupabase, user: Dict[str, str]) -> Dict[str, str]:
    """User with the free plan, an active membership, a usage row and default preferences."""
    fake_db.seed("users", {"id": user["id"], "email": user["email"], "is_active": True})
    MembershipService(fake_db).provision_user(user["id"])
    return user


@pytest.fixture
def client(fake_db: FakeSupabase, user: Dict[str, str]):
    """TestClient authenticated as `user`."""
    app.dependency_overrides[get_supabase] = lambda: fake_db
    app.dependency_overrides[get_current_user] = lambda: user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client(fake_db: FakeSupabase):
    """TestClient without authentication overrides."""
    app.dependency_overrides[get_supabase] = lambda: fake_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _clear_auth_cache():
    clear_auth_cache()
    yield
    clear_auth_cache()


@pytest.fixture
def set_plan_limits(fake_db: FakeSupabase):
    """Update the free plan row, e.g. set_plan_limits(max_analyses_per_month=-1)."""
    def _set(**limits: Any) -> None:
        for plan in fake_db.rows("plans"):
            if plan["slug"] == "free":
                plan.update(limits)
    return _set


@pytest.fixture
def make_response():
    """Factory for requests.Response doubles."""
    def _make(status_code: int = 200, json_data: Any = None, text: str = "") -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        response.ok = 200 <= status_code < 300
        response.json.return_value = json_data
        response.text = text
        return response
    return _make
