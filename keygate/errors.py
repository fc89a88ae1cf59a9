class KeygateError(Exception):
    """Base class for errors surfaced by keygate services."""

    code = "internal_error"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class AuthenticationError(KeygateError):
    """The presented credential does not grant access. Terminal for the request."""

    code = "unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class MissingKey(AuthenticationError):
    code = "missing_api_key"
    default_message = "Missing API key. Pass via x-api-key header or Authorization: Bearer <key>"


class InvalidKey(AuthenticationError):
    # Same answer for malformed, unknown and never-issued secrets.
    code = "invalid_api_key"
    default_message = "Invalid API key"


class DeactivatedKey(AuthenticationError):
    code = "deactivated_api_key"
    default_message = "API key is deactivated. Request a new key."


class QuotaExceeded(AuthenticationError):
    code = "quota_exceeded"
    status_code = 429

    def __init__(self, daily_quota: int, retry_after: int | None = None):
        self.daily_quota = daily_quota
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded ({daily_quota}/day). Upgrade your plan.")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["dailyQuota"] = self.daily_quota
        return data


class StoreUnavailable(KeygateError):
    """The key store could not be reached, timed out, or rejected the request."""

    code = "store_unavailable"
    status_code = 503
    default_message = "Key store unavailable, retry later"
