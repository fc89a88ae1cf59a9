from fastapi import APIRouter, Depends

from keygate.dependencies import get_store
from keygate.errors import StoreUnavailable
from keygate.models.common import HealthResponse, ReadyResponse
from keygate.storage.key_store import KeyStore

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok")


@router.get("/ready", response_model=ReadyResponse)
def ready(store: KeyStore = Depends(get_store)):
    try:
        store.ping()
        return ReadyResponse(status="ready", supabase=True)
    except StoreUnavailable as e:
        return ReadyResponse(status="degraded", supabase=False, detail=str(e))
