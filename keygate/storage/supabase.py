"""
Lightweight Supabase PostgREST wrapper.
Mirrors the subset of the supabase-py query API that keygate needs:
filters, ordering, exact counts and RPC calls.
"""
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from keygate.errors import StoreUnavailable

logger = logging.getLogger("keygate")


@dataclass
class QueryResult:
    data: list[Any]
    count: int | None = None


def _parse_content_range(value: str | None) -> int | None:
    """Total from a PostgREST Content-Range header, e.g. ``0-24/3573`` or ``*/0``."""
    if not value or "/" not in value:
        return None
    total = value.rsplit("/", 1)[1]
    return int(total) if total.isdigit() else None


class QueryBuilder:
    """Chainable PostgREST query builder mimicking supabase-py API."""

    def __init__(self, client: httpx.Client, path: str, base_url: str, headers: dict):
        self._client = client
        self._url = f"{base_url}/rest/v1/{path}"
        self._headers = headers
        self._params: dict[str, str] = {}
        self._method = "GET"
        self._body: Any = None

    def select(self, columns: str = "*", *, count: str | None = None) -> "QueryBuilder":
        self._method = "GET"
        self._params["select"] = columns
        if count:
            self._headers["Prefer"] = f"count={count}"
        return self

    def insert(self, data: dict | list) -> "QueryBuilder":
        self._method = "POST"
        self._body = data
        self._headers["Prefer"] = "return=representation"
        return self

    def update(self, data: dict) -> "QueryBuilder":
        self._method = "PATCH"
        self._body = data
        self._headers["Prefer"] = "return=representation"
        return self

    def call(self, params: dict) -> "QueryBuilder":
        self._method = "POST"
        self._body = params
        return self

    def eq(self, column: str, value: Any) -> "QueryBuilder":
        if isinstance(value, bool):
            value = str(value).lower()
        self._params[column] = f"eq.{value}"
        return self

    def gte(self, column: str, value: Any) -> "QueryBuilder":
        self._params[column] = f"gte.{value}"
        return self

    def order(self, column: str, *, desc: bool = False) -> "QueryBuilder":
        direction = "desc" if desc else "asc"
        self._params["order"] = f"{column}.{direction}"
        return self

    def limit(self, count: int) -> "QueryBuilder":
        self._params["limit"] = str(count)
        return self

    def execute(self) -> QueryResult:
        try:
            if self._method == "GET":
                resp = self._client.get(self._url, params=self._params, headers=self._headers)
            elif self._method == "POST":
                resp = self._client.post(self._url, json=self._body, params=self._params, headers=self._headers)
            elif self._method == "PATCH":
                resp = self._client.patch(self._url, json=self._body, params=self._params, headers=self._headers)
            else:
                raise ValueError(f"Unknown method: {self._method}")
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("Supabase %s %s failed: %s %s", self._method, self._url,
                         exc.response.status_code, exc.response.text[:200])
            raise StoreUnavailable(f"Key store rejected request ({exc.response.status_code})") from exc
        except httpx.HTTPError as exc:
            logger.error("Supabase %s %s unreachable: %s", self._method, self._url, exc)
            raise StoreUnavailable() from exc

        count = _parse_content_range(resp.headers.get("content-range"))

        if not resp.content:
            return QueryResult(data=[], count=count)
        try:
            data = resp.json()
        except ValueError:
            data = []

        # RPC functions may return a bare scalar or a single object
        if not isinstance(data, list):
            data = [data]

        return QueryResult(data=data, count=count)


class SupabaseClient:
    """Minimal Supabase client using PostgREST."""

    def __init__(self, url: str, key: str, timeout: float = 10.0):
        self._url = url.rstrip("/")
        self._key = key
        self._client = httpx.Client(timeout=timeout)

    def _headers(self) -> dict:
        return {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Content-Type": "application/json",
        }

    def table(self, name: str) -> QueryBuilder:
        return QueryBuilder(self._client, name, self._url, self._headers())

    def rpc(self, function: str, params: dict) -> QueryBuilder:
        return QueryBuilder(self._client, f"rpc/{function}", self._url, self._headers()).call(params)

    def close(self) -> None:
        self._client.close()


def create_client(url: str, key: str, timeout: float = 10.0) -> SupabaseClient:
    return SupabaseClient(url, key, timeout=timeout)
