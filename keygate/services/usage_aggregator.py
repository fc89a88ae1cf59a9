"""
Usage reporting over a trailing window.

Unlike quota enforcement, which resets at midnight, reports use a rolling
window of ``window_days`` ending now. Only the most recent ``limit`` events are
read, so totals are exact up to that cap and ``truncated`` is set beyond it.
"""
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from keygate.config import settings
from keygate.services.quota import Clock, start_of_day, utcnow
from keygate.storage.key_store import KeyStore


@dataclass
class UsageStats:
    total_requests: int = 0
    today_requests: int = 0
    total_tokens_in: int = 0
    total_tokens_out: int = 0
    avg_latency_ms: int = 0
    by_endpoint: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)
    truncated: bool = False
    daily_quota: int | None = None
    remaining_today: int | None = None


def _parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class UsageAggregator:
    def __init__(
        self,
        store: KeyStore,
        limit: int | None = None,
        tz: str | None = None,
        clock: Clock = utcnow,
    ):
        self._store = store
        self._limit = limit or settings.usage_query_limit
        self._tz = tz
        self._clock = clock

    def summarize(self, key_id: str, window_days: int, daily_quota: int | None = None) -> UsageStats:
        now = self._clock()
        since = now - timedelta(days=window_days)
        today = start_of_day(now, self._tz)

        # One extra row tells a full page apart from a cut-off one
        rows = self._store.list_usage_since(key_id, since, self._limit + 1)
        events = rows[: self._limit]

        total = len(events)
        latency_sum = sum(e.get("latency_ms") or 0 for e in events)
        today_count = sum(1 for e in events if _parse_timestamp(e["created_at"]) >= today)

        stats = UsageStats(
            total_requests=total,
            today_requests=today_count,
            total_tokens_in=sum(e.get("tokens_in") or 0 for e in events),
            total_tokens_out=sum(e.get("tokens_out") or 0 for e in events),
            avg_latency_ms=round(latency_sum / total) if total else 0,
            by_endpoint=dict(Counter(e["endpoint"] for e in events)),
            by_status=dict(Counter(str(e.get("status_code")) for e in events)),
            truncated=len(rows) > self._limit,
            daily_quota=daily_quota,
        )
        if daily_quota is not None:
            stats.remaining_today = max(0, daily_quota - today_count)
        return stats
