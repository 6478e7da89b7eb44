"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, a
lifespan that builds the hosted-backend clients, the v1 page-view router,
health checks and the Prometheus /metrics route.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.crm.api.middleware.logging import LoggingMiddleware
from src.crm.api.v1 import health
from src.crm.api.v1.router import router as v1_router
from src.crm.config import get_settings
from src.crm.core.auth import AuthClient
from src.crm.core.backend import BackendClient
from src.crm.core.logging import configure_structlog
from src.crm.core.monitoring import MetricsMiddleware, get_metrics_response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: configure logging and build backend clients."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if not settings.SUPABASE_ANON_KEY:
        log.warning("startup.anon_key_missing", supabase_url=settings.SUPABASE_URL)

    app.state.backend = BackendClient(
        settings.rest_url,
        settings.SUPABASE_ANON_KEY,
        timeout_read=settings.BACKEND_TIMEOUT_READ,
        timeout_mutate=settings.BACKEND_TIMEOUT_MUTATE,
    )
    app.state.auth_client = AuthClient(
        settings.auth_url,
        settings.SUPABASE_ANON_KEY,
        timeout=settings.BACKEND_TIMEOUT_READ,
    )
    log.info(
        "startup.complete",
        environment=settings.ENVIRONMENT.value,
        supabase_url=settings.SUPABASE_URL,
    )

    yield

    app.state.backend = None
    app.state.auth_client = None
    log.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Pipeline CRM API",
        version="0.1.0",
        description="Contacts, companies, leads, deal pipeline, activities and tasks",
        lifespan=lifespan,
    )

    # Last added runs outermost: metrics, then request logging, then CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(MetricsMiddleware)

    app.include_router(health.router)
    app.include_router(v1_router)
    app.add_api_route("/metrics", get_metrics_response, methods=["GET"], include_in_schema=False)

    return app


app = create_app()
