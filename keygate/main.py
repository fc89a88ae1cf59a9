import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from keygate.config import settings
from keygate.errors import KeygateError
from keygate.middleware.error_handler import (
    ErrorHandlerMiddleware,
    http_error_handler,
    keygate_error_handler,
    validation_error_handler,
)
from keygate.routers import api_keys, health
from keygate.storage.key_store import KeyStore, SupabaseKeyStore
from keygate.storage.supabase import create_client

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("keygate")


def create_app(store: KeyStore | None = None) -> FastAPI:
    """Build the API. Without an explicit ``store`` the Supabase store is used."""
    supabase = None
    if store is None:
        supabase = create_client(settings.supabase_url, settings.supabase_key, timeout=settings.store_timeout)
        store = SupabaseKeyStore(supabase)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Keygate starting on %s:%s (quota mode: %s)", settings.host, settings.port, settings.quota_mode)
        yield
        if supabase is not None:
            supabase.close()
        logger.info("Keygate shutting down")

    app = FastAPI(
        title="Keygate",
        version="0.1.0",
        description="API key issuance, authentication and usage metering",
        lifespan=lifespan,
    )
    app.state.store = store

    # Middleware (order matters: outermost = first to run)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(KeygateError, keygate_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(api_keys.router)

    return app


app = create_app()


# ── Entrypoint ───────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "keygate.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )
