import hashlib
import re
import secrets

from keygate.config import settings


def generate_secret(tag: str | None = None, nbytes: int | None = None) -> str:
    """Generate a new plaintext API key: namespace tag + hex-encoded random bytes."""
    tag = settings.secret_prefix if tag is None else tag
    nbytes = settings.secret_bytes if nbytes is None else nbytes
    if nbytes < 16:
        raise ValueError("API keys need at least 128 bits of entropy")
    return f"{tag}{secrets.token_hex(nbytes)}"


def hash_secret(plaintext: str) -> str:
    """SHA-256 hex digest of a plaintext key."""
    return hashlib.sha256(plaintext.encode()).hexdigest()


def secret_prefix(plaintext: str, n: int | None = None) -> str:
    return plaintext[: n or settings.display_prefix_length]


def looks_like_secret(value: str, tag: str | None = None, nbytes: int | None = None) -> bool:
    """True if ``value`` has the shape of a key issued by ``generate_secret``."""
    tag = settings.secret_prefix if tag is None else tag
    nbytes = settings.secret_bytes if nbytes is None else nbytes
    pattern = rf"{re.escape(tag)}[0-9a-f]{{{nbytes * 2}}}"
    return re.fullmatch(pattern, value) is not None


def mask_secret(value: str) -> str:
    """Loggable form of a presented credential.

    Only keys in our own format keep their display prefix; anything else may be
    some other credential and is hidden entirely.
    """
    if not looks_like_secret(value):
        return "…"
    return f"{secret_prefix(value)}…"
