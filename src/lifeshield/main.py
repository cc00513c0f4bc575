# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""LifeShield API - Main Application Module."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from beartype import beartype
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.middleware import RequestContextMiddleware
from .api.v1 import router as v1_router
from .api.v1.health import router as health_router
from .container import ServiceContainer, build_container
from .core.config import get_settings
from .core.logging_utils import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle - startup and shutdown."""
    container: ServiceContainer = app.state.container
    await container.startup()

    workers = container.build_workers() if container.settings.run_background_workers else []
    for worker in workers:
        worker.start()

    yield

    logger.info(f"Shutting down {container.settings.app_name}")
    for worker in workers:
        await worker.stop()
    await container.shutdown()


@beartype
def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        container: Prebuilt services; built from settings when omitted.

    Returns:
        FastAPI: Configured application instance
    """
    if container is None:
        container = build_container(get_settings())
    settings = container.settings

    app = FastAPI(
        title="LifeShield API",
        description="Life insurance quoting and policy issuance",
        version="0.1.0",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router, tags=["health"])
    app.include_router(v1_router)
    return app


@beartype
def main() -> None:
    """Run the main application entry point."""
    settings = get_settings()
    configure_logging(level=settings.log_level)
    uvicorn.run(
        create_app(),
        host=settings.api_host,
        port=settings.api_port,
        log_level="info" if not settings.is_production else "error",
    )


if __name__ == "__main__":
    main()
