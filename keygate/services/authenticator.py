import logging
from dataclasses import dataclass
from typing import Mapping

from keygate.errors import (
    AuthenticationError,
    DeactivatedKey,
    InvalidKey,
    MissingKey,
    QuotaExceeded,
)
from keygate.services import secret_codec
from keygate.services.quota import Clock, QuotaEnforcer, utcnow
from keygate.storage.key_store import KeyStore

logger = logging.getLogger("keygate")

API_KEY_HEADER = "x-api-key"
AUTHORIZATION_HEADER = "authorization"


@dataclass
class AuthResult:
    valid: bool
    key_id: str | None = None
    owner_id: str | None = None
    plan: str | None = None
    daily_quota: int | None = None
    used_today: int | None = None
    error: AuthenticationError | None = None


def extract_secret(headers: Mapping[str, str]) -> str | None:
    """Candidate secret from ``X-API-Key``, falling back to ``Authorization: Bearer``."""
    lowered = {k.lower(): v for k, v in headers.items()}

    api_key = lowered.get(API_KEY_HEADER, "").strip()
    if api_key:
        return api_key

    scheme, _, token = lowered.get(AUTHORIZATION_HEADER, "").strip().partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


class RequestAuthenticator:
    def __init__(self, store: KeyStore, quota: QuotaEnforcer, clock: Clock = utcnow):
        self._store = store
        self._quota = quota
        self._clock = clock

    def authenticate(self, headers: Mapping[str, str]) -> AuthResult:
        """Resolve request headers to a key identity.

        Authentication failures come back as ``AuthResult(valid=False, error=...)``.
        Store failures raise ``StoreUnavailable`` and are never turned into a decision.
        """
        secret = extract_secret(headers)
        if not secret:
            return AuthResult(valid=False, error=MissingKey())

        key = self._store.find_key_by_hash(secret_codec.hash_secret(secret))
        if key is None:
            logger.info("Rejected unknown API key %s", secret_codec.mask_secret(secret))
            return AuthResult(valid=False, error=InvalidKey())

        if not key.get("active"):
            logger.info("Rejected deactivated API key %s", key["id"])
            return AuthResult(valid=False, key_id=key["id"], error=DeactivatedKey())

        decision = self._quota.check_quota(key)
        if not decision.within_limit:
            return AuthResult(
                valid=False,
                key_id=key["id"],
                owner_id=key["owner_id"],
                plan=key["plan"],
                daily_quota=key["daily_quota"],
                used_today=decision.used_today,
                error=QuotaExceeded(key["daily_quota"], retry_after=self._quota.seconds_until_reset()),
            )

        self._touch(key["id"])

        return AuthResult(
            valid=True,
            key_id=key["id"],
            owner_id=key["owner_id"],
            plan=key["plan"],
            daily_quota=key["daily_quota"],
            used_today=decision.used_today,
        )

    def _touch(self, key_id: str) -> None:
        # last_used_at is advisory; never fail the request over it
        try:
            self._store.update_key(key_id, {"last_used_at": self._clock().isoformat()})
        except Exception as exc:
            logger.warning("Failed to update last_used_at for API key %s: %s", key_id, exc)
