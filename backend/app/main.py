"""FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.api.routes.chat import router as chat_router
from backend.app.api.routes.documents import router as documents_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.metrics import router as metrics_router
from backend.app.config import get_settings
from backend.app.errors import register_exception_handlers
from backend.app.services import Services, build_services
from backend.app.utils.logging import configure_logging

logger = logging.getLogger(__name__)

EXPOSED_HEADERS = ["X-Intent-Type", "X-Intent-Confidence", "X-RAG-Sources", "Retry-After"]


def create_app(services: Services | None = None) -> FastAPI:
    """Build the application.

    Args:
        services: Prebuilt services (tests); built from settings at startup when None
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services is not None:
            app.state.services = services
            yield
            await services.worker.drain()
            return

        settings = get_settings()
        configure_logging(settings.log_level)
        built = build_services(settings)
        app.state.services = built
        logger.info("NexusAI API started")
        try:
            yield
        finally:
            await built.aclose()

    settings = services.settings if services is not None else get_settings()

    app = FastAPI(title="NexusAI API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.ui_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
        expose_headers=EXPOSED_HEADERS,
    )
    register_exception_handlers(app)
    if services is not None:
        app.state.services = services

    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(documents_router)
    app.include_router(chat_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "NexusAI API", "version": "0.1.0"}

    return app


app = create_app()
