"""
Durable record of API keys and usage events.

Components receive a ``KeyStore`` at construction; ``SupabaseKeyStore`` is the
production implementation over PostgREST.
"""
import uuid
from datetime import date, datetime
from typing import Any, Protocol

from keygate.errors import StoreUnavailable
from keygate.storage.supabase import SupabaseClient

KEYS_TABLE = "api_keys"
USAGE_TABLE = "api_usage"
DAILY_COUNTER_FUNCTION = "increment_api_usage_daily"

# Everything except key_hash; listings must never expose the digest
PUBLIC_KEY_COLUMNS = "id,owner_id,key_prefix,name,plan,daily_quota,active,created_at,last_used_at"
USAGE_COLUMNS = "endpoint,tokens_in,tokens_out,latency_ms,status_code,created_at"


class KeyStore(Protocol):
    def insert_key(self, record: dict[str, Any]) -> dict[str, Any]: ...

    def get_key(self, key_id: str) -> dict[str, Any] | None: ...

    def find_key_by_hash(self, key_hash: str) -> dict[str, Any] | None: ...

    def list_keys(self, owner_id: str) -> list[dict[str, Any]]: ...

    def update_key(self, key_id: str, data: dict[str, Any]) -> dict[str, Any] | None: ...

    def insert_usage(self, event: dict[str, Any]) -> None: ...

    def count_usage_since(self, key_id: str, since: datetime) -> int: ...

    def list_usage_since(self, key_id: str, since: datetime, limit: int) -> list[dict[str, Any]]: ...

    def increment_daily_usage(self, key_id: str, day: date) -> int: ...

    def ping(self) -> None: ...


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, TypeError):
        return False
    return True


class SupabaseKeyStore:
    """KeyStore backed by the ``api_keys`` / ``api_usage`` tables (see sql/schema.sql)."""

    def __init__(self, client: SupabaseClient):
        self._sb = client

    def insert_key(self, record: dict[str, Any]) -> dict[str, Any]:
        resp = self._sb.table(KEYS_TABLE).insert(record).execute()
        if not resp.data:
            raise StoreUnavailable("Failed to create API key")
        return resp.data[0]

    def get_key(self, key_id: str) -> dict[str, Any] | None:
        # Postgres rejects malformed uuids with a 400; treat them as unknown ids
        if not _is_uuid(key_id):
            return None
        resp = self._sb.table(KEYS_TABLE).select("*").eq("id", key_id).limit(1).execute()
        return resp.data[0] if resp.data else None

    def find_key_by_hash(self, key_hash: str) -> dict[str, Any] | None:
        resp = (
            self._sb.table(KEYS_TABLE)
            .select("id,owner_id,plan,daily_quota,active")
            .eq("key_hash", key_hash)
            .limit(1)
            .execute()
        )
        return resp.data[0] if resp.data else None

    def list_keys(self, owner_id: str) -> list[dict[str, Any]]:
        resp = (
            self._sb.table(KEYS_TABLE)
            .select(PUBLIC_KEY_COLUMNS)
            .eq("owner_id", owner_id)
            .order("created_at", desc=True)
            .execute()
        )
        return resp.data

    def update_key(self, key_id: str, data: dict[str, Any]) -> dict[str, Any] | None:
        if not _is_uuid(key_id):
            return None
        resp = self._sb.table(KEYS_TABLE).update(data).eq("id", key_id).execute()
        return resp.data[0] if resp.data else None

    def insert_usage(self, event: dict[str, Any]) -> None:
        self._sb.table(USAGE_TABLE).insert(event).execute()

    def count_usage_since(self, key_id: str, since: datetime) -> int:
        resp = (
            self._sb.table(USAGE_TABLE)
            .select("id", count="exact")
            .eq("api_key_id", key_id)
            .gte("created_at", since.isoformat())
            .limit(1)
            .execute()
        )
        return resp.count or 0

    def list_usage_since(self, key_id: str, since: datetime, limit: int) -> list[dict[str, Any]]:
        resp = (
            self._sb.table(USAGE_TABLE)
            .select(USAGE_COLUMNS)
            .eq("api_key_id", key_id)
            .gte("created_at", since.isoformat())
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return resp.data

    def increment_daily_usage(self, key_id: str, day: date) -> int:
        resp = self._sb.rpc(
            DAILY_COUNTER_FUNCTION,
            {"p_api_key_id": key_id, "p_day": day.isoformat()},
        ).execute()
        if not resp.data:
            raise StoreUnavailable("Daily usage counter returned no value")
        return int(resp.data[0])

    def ping(self) -> None:
        self._sb.table(KEYS_TABLE).select("id").limit(1).execute()
