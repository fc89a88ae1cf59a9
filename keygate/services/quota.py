"""
Daily call budget enforcement.

The budget is a fixed calendar-day window: it resets at midnight in the
configured quota timezone, not on a rolling 24 hours. A key can therefore
spend a full day's quota just before and just after midnight.

Two modes:

- ``atomic``: increments a per-(key, day) counter in the store and admits the
  call if the new value is within the quota. No overrun under concurrency.
- ``ledger``: counts today's usage events and admits if the count is below the
  quota. Check-then-act without locking, so concurrent bursts may let a few
  calls past the limit before their usage events land.

Both modes admit calls 1..daily_quota and reject call daily_quota + 1.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from keygate.config import settings
from keygate.storage.key_store import KeyStore

logger = logging.getLogger("keygate")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class QuotaDecision:
    within_limit: bool
    used_today: int


def start_of_day(now: datetime, tz: str | None = None) -> datetime:
    """Midnight of ``now``'s calendar day in the quota timezone."""
    local = now.astimezone(ZoneInfo(tz or settings.quota_timezone))
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def seconds_until_reset(now: datetime, tz: str | None = None) -> int:
    """Seconds until the next quota reset, rounded up."""
    midnight = start_of_day(now, tz)
    remaining = (midnight + timedelta(days=1) - now).total_seconds()
    return max(1, math.ceil(remaining))


class QuotaEnforcer:
    def __init__(
        self,
        store: KeyStore,
        mode: str | None = None,
        tz: str | None = None,
        clock: Clock = utcnow,
    ):
        self._store = store
        self._mode = mode or settings.quota_mode
        self._tz = tz or settings.quota_timezone
        self._clock = clock
        if self._mode not in ("atomic", "ledger"):
            raise ValueError(f"Unknown quota mode: {self._mode}")

    @property
    def mode(self) -> str:
        return self._mode

    def check_quota(self, key: dict) -> QuotaDecision:
        today = start_of_day(self._clock(), self._tz)
        daily_quota = key["daily_quota"]

        if self._mode == "atomic":
            count = self._store.increment_daily_usage(key["id"], today.date())
            decision = QuotaDecision(within_limit=count <= daily_quota, used_today=count - 1)
        else:
            used = self._store.count_usage_since(key["id"], today)
            decision = QuotaDecision(within_limit=used < daily_quota, used_today=used)

        if not decision.within_limit:
            logger.info("API key %s over quota: %d/%d today", key["id"], decision.used_today, daily_quota)
        return decision

    def seconds_until_reset(self) -> int:
        return seconds_until_reset(self._clock(), self._tz)
