"""FastAPI server for the reconciliation engine.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core import __version__
from core.config import Settings, build_record_store, get_settings
from core.observability.logging import configure_logging, get_logger
from storage.base import RecordStore

from api.routes import (
    health,
    validation,
    reconciliation,
    reports,
)


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    logger.info("Reconciliation API starting up", extra_fields=app.state.store.describe())

    yield

    logger.info("Reconciliation API shutting down")


def create_app(store: Optional[RecordStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Record store to serve; built from settings when omitted
        settings: Runtime settings; read from the environment when omitted
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title="Batch Reconciliation API",
        description="Batch-Formula-Requisition reconciliation over parsed manufacturing records",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.store = store if store is not None else build_record_store(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(validation.router, prefix="/api/data-validation", tags=["Data Validation"])
    app.include_router(reconciliation.router, prefix="/api/reconciliation", tags=["Reconciliation"])
    app.include_router(reports.router, prefix="/api", tags=["Reports"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
