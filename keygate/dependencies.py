import hmac

from fastapi import Depends, HTTPException, Request

from keygate.config import settings
from keygate.services.authenticator import AuthResult, RequestAuthenticator
from keygate.services.key_issuer import KeyIssuer
from keygate.services.quota import QuotaEnforcer
from keygate.services.usage_aggregator import UsageAggregator
from keygate.services.usage_recorder import UsageRecorder
from keygate.storage.key_store import KeyStore


def get_store(request: Request) -> KeyStore:
    """Key store attached to the app by ``create_app``."""
    return request.app.state.store


def get_key_issuer(store: KeyStore = Depends(get_store)) -> KeyIssuer:
    return KeyIssuer(store)


def get_quota_enforcer(store: KeyStore = Depends(get_store)) -> QuotaEnforcer:
    return QuotaEnforcer(store)


def get_authenticator(
    store: KeyStore = Depends(get_store),
    quota: QuotaEnforcer = Depends(get_quota_enforcer),
) -> RequestAuthenticator:
    return RequestAuthenticator(store, quota)


def get_usage_recorder(store: KeyStore = Depends(get_store)) -> UsageRecorder:
    return UsageRecorder(store)


def get_usage_aggregator(store: KeyStore = Depends(get_store)) -> UsageAggregator:
    return UsageAggregator(store)


def require_api_key(
    request: Request,
    authenticator: RequestAuthenticator = Depends(get_authenticator),
) -> AuthResult:
    """Authenticate the presented API key. Failures end the request."""
    result = authenticator.authenticate(request.headers)
    if not result.valid:
        raise result.error
    return result


def require_internal_secret(request: Request) -> None:
    """Validate X-Internal-Secret header for key management calls, when configured."""
    if not settings.internal_secret:
        return
    secret = request.headers.get("X-Internal-Secret", "")
    if not hmac.compare_digest(secret.encode(), settings.internal_secret.encode()):
        raise HTTPException(status_code=401, detail="Invalid internal secret")
