import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient

from keygate.errors import StoreUnavailable


class FakeClock:
    """Settable clock for day-boundary tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _ts(value):
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)


class InMemoryKeyStore:
    """KeyStore fake with the same semantics as the Supabase tables."""

    def __init__(self, clock=None):
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.keys: dict[str, dict] = {}
        self.usage: list[dict] = []
        self.daily: dict[tuple[str, date], int] = {}
        self.fail_updates = False
        self.fail_inserts = False
        self.unavailable = False

    def _check(self):
        if self.unavailable:
            raise StoreUnavailable()

    def insert_key(self, record):
        self._check()
        if any(k["key_hash"] == record["key_hash"] for k in self.keys.values()):
            raise StoreUnavailable("duplicate key_hash")
        row = {"id": str(uuid.uuid4()), "created_at": self.clock().isoformat(), "last_used_at": None, **record}
        self.keys[row["id"]] = row
        return dict(row)

    def get_key(self, key_id):
        self._check()
        row = self.keys.get(key_id)
        return dict(row) if row else None

    def find_key_by_hash(self, key_hash):
        self._check()
        for row in self.keys.values():
            if row["key_hash"] == key_hash:
                return dict(row)
        return None

    def list_keys(self, owner_id):
        self._check()
        rows = [dict(r) for r in self.keys.values() if r["owner_id"] == owner_id]
        for r in rows:
            r.pop("key_hash")
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    def update_key(self, key_id, data):
        self._check()
        if self.fail_updates:
            raise StoreUnavailable("update failed")
        if key_id not in self.keys:
            return None
        self.keys[key_id].update(data)
        return dict(self.keys[key_id])

    def insert_usage(self, event):
        self._check()
        if self.fail_inserts:
            raise StoreUnavailable("insert failed")
        self.usage.append({"id": len(self.usage) + 1, **event})

    def count_usage_since(self, key_id, since):
        self._check()
        return sum(1 for e in self.usage if e["api_key_id"] == key_id and _ts(e["created_at"]) >= since)

    def list_usage_since(self, key_id, since, limit):
        self._check()
        events = [e for e in self.usage if e["api_key_id"] == key_id and _ts(e["created_at"]) >= since]
        events.sort(key=lambda e: _ts(e["created_at"]), reverse=True)
        return events[:limit]

    def increment_daily_usage(self, key_id, day):
        self._check()
        self.daily[(key_id, day)] = self.daily.get((key_id, day), 0) + 1
        return self.daily[(key_id, day)]

    def ping(self):
        self._check()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def store(clock):
    return InMemoryKeyStore(clock)


@pytest.fixture
def client():
    """Test client over an in-memory store (real wall clock)."""
    from keygate.main import create_app
    app = create_app(store=InMemoryKeyStore())
    with TestClient(app) as test_client:
        test_client.store = app.state.store
        yield test_client


@pytest.fixture
def mock_supabase():
    """Mock Supabase client for testing without real DB."""
    mock_client = MagicMock()
    mock_query = MagicMock()

    # Default: return empty results
    mock_result = MagicMock()
    mock_result.data = []
    mock_result.count = 0

    mock_query.select.return_value = mock_query
    mock_query.insert.return_value = mock_query
    mock_query.update.return_value = mock_query
    mock_query.eq.return_value = mock_query
    mock_query.gte.return_value = mock_query
    mock_query.order.return_value = mock_query
    mock_query.limit.return_value = mock_query
    mock_query.execute.return_value = mock_result

    mock_client.table.return_value = mock_query
    mock_client.rpc.return_value = mock_query

    return mock_client, mock_query, mock_result
