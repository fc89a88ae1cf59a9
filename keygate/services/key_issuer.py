import logging
from dataclasses import dataclass

from keygate.config import settings
from keygate.services import secret_codec
from keygate.services.plans import resolve_plan
from keygate.storage.key_store import KeyStore

logger = logging.getLogger("keygate")

DEFAULT_KEY_NAME = "default"


@dataclass
class IssuedKey:
    """Result of issuing a key. ``plaintext`` is never available again."""
    plaintext: str
    id: str
    prefix: str
    plan: str
    daily_quota: int


class KeyIssuer:
    def __init__(self, store: KeyStore, prefix_length: int | None = None):
        self._store = store
        self._prefix_length = prefix_length or settings.display_prefix_length

    def issue(self, owner_id: str, name: str | None = None, plan: str | None = None) -> IssuedKey:
        """Create a new active key for ``owner_id``. One durable write."""
        if not owner_id:
            raise ValueError("ownerId is required")
        resolved_plan, daily_quota = resolve_plan(plan)

        plaintext = secret_codec.generate_secret()
        prefix = secret_codec.secret_prefix(plaintext, self._prefix_length)

        row = self._store.insert_key({
            "owner_id": owner_id,
            "key_hash": secret_codec.hash_secret(plaintext),
            "key_prefix": prefix,
            "name": name or DEFAULT_KEY_NAME,
            "plan": resolved_plan.value,
            "daily_quota": daily_quota,
            "active": True,
        })
        logger.info("Issued API key %s (%s) for owner %s on plan %s",
                    row["id"], prefix, owner_id, resolved_plan.value)

        return IssuedKey(
            plaintext=plaintext,
            id=row["id"],
            prefix=prefix,
            plan=resolved_plan.value,
            daily_quota=daily_quota,
        )

    def list_keys(self, owner_id: str) -> list[dict]:
        """All keys of an owner, newest first, without hashes."""
        keys = self._store.list_keys(owner_id)
        return [{k: v for k, v in key.items() if k != "key_hash"} for key in keys]

    def deactivate(self, key_id: str) -> bool:
        """Turn a key off. Idempotent; False only if the key does not exist."""
        key = self._store.get_key(key_id)
        if key is None:
            return False
        if key.get("active"):
            self._store.update_key(key_id, {"active": False})
            logger.info("Deactivated API key %s", key_id)
        return True

    def reactivate(self, key_id: str) -> bool:
        key = self._store.get_key(key_id)
        if key is None:
            return False
        if not key.get("active"):
            self._store.update_key(key_id, {"active": True})
            logger.info("Re-activated API key %s", key_id)
        return True

    def rotate(self, key_id: str) -> IssuedKey | None:
        """Issue a replacement with the same owner, name and plan, then deactivate the old key."""
        old_key = self._store.get_key(key_id)
        if old_key is None:
            return None

        # Old key stays usable unless the replacement exists
        issued = self.issue(old_key["owner_id"], old_key.get("name"), old_key.get("plan"))
        self.deactivate(key_id)
        return issued
