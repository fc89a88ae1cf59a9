from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request

from keygate.config import settings
from keygate.dependencies import (
    get_authenticator,
    get_key_issuer,
    get_usage_aggregator,
    get_usage_recorder,
    require_api_key,
    require_internal_secret,
)
from keygate.metering import metered_call
from keygate.models.api_key import (
    ApiKeyCreate,
    ApiKeyCreatedResponse,
    ApiKeyListResponse,
    ApiKeyResponse,
    ApiKeyValidation,
    MessageResponse,
)
from keygate.models.common import ErrorResponse
from keygate.models.usage import UsageResponse, UsageStatsResponse
from keygate.services.authenticator import AuthResult, RequestAuthenticator
from keygate.services.key_issuer import IssuedKey, KeyIssuer
from keygate.services.usage_aggregator import UsageAggregator
from keygate.services.usage_recorder import UsageRecorder

router = APIRouter(
    prefix="/api/keys",
    tags=["API Keys"],
    responses={
        401: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


def _created(issued: IssuedKey) -> ApiKeyCreatedResponse:
    return ApiKeyCreatedResponse(
        key=issued.plaintext,
        key_id=issued.id,
        prefix=issued.prefix,
        plan=issued.plan,
        daily_quota=issued.daily_quota,
    )


@router.post("", response_model=ApiKeyCreatedResponse)
def create_key(
    body: ApiKeyCreate,
    request: Request,
    issuer: KeyIssuer = Depends(get_key_issuer),
):
    require_internal_secret(request)
    try:
        issued = issuer.issue(body.owner_id, body.name, body.plan)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _created(issued)


@router.get("", response_model=ApiKeyListResponse | ApiKeyValidation)
def list_or_validate_keys(
    request: Request,
    background_tasks: BackgroundTasks,
    owner_id: str | None = Query(None, alias="ownerId"),
    issuer: KeyIssuer = Depends(get_key_issuer),
    authenticator: RequestAuthenticator = Depends(get_authenticator),
    recorder: UsageRecorder = Depends(get_usage_recorder),
):
    # Without ownerId this validates the presented key instead of listing
    if not owner_id:
        identity = authenticator.authenticate(request.headers)
        if not identity.valid:
            raise identity.error
        with metered_call(background_tasks, recorder, identity, "keys.validate"):
            return ApiKeyValidation(
                valid=True,
                key_id=identity.key_id,
                owner_id=identity.owner_id,
                plan=identity.plan,
            )

    require_internal_secret(request)
    keys = issuer.list_keys(owner_id)
    return ApiKeyListResponse(keys=[ApiKeyResponse.from_row(k) for k in keys])


@router.delete("", response_model=MessageResponse)
def deactivate_key(
    request: Request,
    key_id: str | None = Query(None, alias="keyId"),
    issuer: KeyIssuer = Depends(get_key_issuer),
):
    require_internal_secret(request)
    if not key_id:
        raise HTTPException(status_code=400, detail="keyId is required")

    if not issuer.deactivate(key_id):
        raise HTTPException(status_code=404, detail="API key not found")
    return MessageResponse(message="API key deactivated")


@router.post("/{key_id}/reactivate", response_model=MessageResponse)
def reactivate_key(
    key_id: str,
    request: Request,
    issuer: KeyIssuer = Depends(get_key_issuer),
):
    require_internal_secret(request)
    if not issuer.reactivate(key_id):
        raise HTTPException(status_code=404, detail="API key not found")
    return MessageResponse(message="API key re-activated")


@router.post("/{key_id}/rotate", response_model=ApiKeyCreatedResponse)
def rotate_key(
    key_id: str,
    request: Request,
    issuer: KeyIssuer = Depends(get_key_issuer),
):
    require_internal_secret(request)
    issued = issuer.rotate(key_id)
    if not issued:
        raise HTTPException(status_code=404, detail="API key not found")
    return _created(issued)


@router.get("/usage", response_model=UsageResponse)
def key_usage(
    background_tasks: BackgroundTasks,
    days: int = Query(settings.usage_default_days, ge=1, le=settings.usage_max_days),
    identity: AuthResult = Depends(require_api_key),
    aggregator: UsageAggregator = Depends(get_usage_aggregator),
    recorder: UsageRecorder = Depends(get_usage_recorder),
):
    with metered_call(background_tasks, recorder, identity, "keys.usage"):
        stats = aggregator.summarize(identity.key_id, days, daily_quota=identity.daily_quota)
        return UsageResponse(
            key_id=identity.key_id,
            plan=identity.plan,
            period=f"{days} days",
            stats=UsageStatsResponse(**vars(stats)),
        )
