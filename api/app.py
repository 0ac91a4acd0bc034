"""
FastAPI application for the product docs RAG service.

Run locally:
  python run_pipeline.py serve
  # or: uvicorn api.app:create_app --factory --port 3001

The lifespan handler builds the service container (provider clients,
Neo4j driver, stages) once at startup unless one was injected, and closes
what it built on shutdown.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.agents import router as agents_router
from api.errors import register_exception_handlers
from api.health import router as health_router
from core.config import Settings
from core.config import settings as default_settings
from core.container import ServiceContainer, build_container

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services before the first request."""
    owned: ServiceContainer | None = None
    if app.state.container is None:
        owned = build_container(app.state.settings)
        app.state.container = owned

    logger.info("Product RAG service ready.")
    yield

    if owned is not None:
        await owned.aclose()
        app.state.container = None
    logger.info("Product RAG service shut down.")


def create_app(
    container: ServiceContainer | None = None, settings: Settings | None = None
) -> FastAPI:
    settings = settings or (container.settings if container else default_settings)

    app = FastAPI(
        title="Product Docs RAG API",
        description=(
            "Retrieval-augmented answers to product questions, returned "
            "whole or streamed as Server-Sent Events."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(agents_router)

    return app
