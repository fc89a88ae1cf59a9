import logging

from keygate.services.quota import Clock, utcnow
from keygate.storage.key_store import KeyStore

logger = logging.getLogger("keygate")


class UsageRecorder:
    def __init__(self, store: KeyStore, clock: Clock = utcnow):
        self._store = store
        self._clock = clock

    def record(
        self,
        key_id: str,
        endpoint: str,
        tokens_in: int = 0,
        tokens_out: int = 0,
        latency_ms: int = 0,
        status_code: int = 200,
    ) -> None:
        """Append one usage event. Losing a record beats failing the call it describes."""
        try:
            self._store.insert_usage({
                "api_key_id": key_id,
                "endpoint": endpoint,
                "tokens_in": tokens_in or 0,
                "tokens_out": tokens_out or 0,
                "latency_ms": latency_ms or 0,
                "status_code": status_code,
                "created_at": self._clock().isoformat(),
            })
        except Exception as exc:
            logger.error("Failed to record usage for API key %s on %s: %s", key_id, endpoint, exc)
