"""FastAPI application bootstrap and router wiring."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assetdesk.api.routers import catalog, health, imports, transactions
from assetdesk.core.config import get_settings
from assetdesk.db.base import Base
from assetdesk.db.session import engine
from assetdesk.services.capabilities import RemoteCapabilities
from assetdesk.services.return_flow import InFlightReturns

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Import job metadata is the only schema owned by this service.
    Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    """Instantiate the FastAPI app and include top-level routers."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.capabilities = RemoteCapabilities()
    app.state.in_flight_returns = InFlightReturns()

    logger.info(f"[CORS] Allowed origins: {settings.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(imports.router, prefix="/api/imports", tags=["imports"])
    app.include_router(
        transactions.router, prefix="/api/transactions", tags=["transactions"]
    )
    app.include_router(catalog.router, prefix="/api")

    return app


app = create_app()
