"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
database lifecycle) so tests can build isolated apps with fake collaborators.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool

from app.adapters.database.base import AbstractConnectionFactory
from app.adapters.database.executor import PooledQueryExecutor
from app.adapters.database.factory import create_connection_factory
from app.adapters.database.pool import ConnectionPool
from app.adapters.rate_limit.base import AbstractRateLimiter
from app.api.routes import health_router, users_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import rate_limit_middleware, request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import build_rate_limiter

logger = logging.getLogger(__name__)


def _build_lifespan(connection_factory: AbstractConnectionFactory | None):
    """Create the lifespan managing the connection pool.

    Startup builds the factory, pool and executor. Shutdown runs after the
    server stopped accepting requests and finished in-flight ones; it then
    drains outstanding leases and closes pooled connections.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        db = settings.db
        factory = connection_factory or create_connection_factory(db)
        pool = ConnectionPool(
            factory,
            capacity=db.pool_capacity,
            acquire_timeout_seconds=db.pool_acquire_timeout_seconds,
        )
        app.state.connection_factory = factory
        app.state.connection_pool = pool
        app.state.query_executor = PooledQueryExecutor(pool)
        app.state.user_query = db.query

        logger.info(
            "app.startup",
            extra={
                "db_host": db.host,
                "db_port": db.port,
                "db_name": db.name,
                "pool_capacity": db.pool_capacity,
                "rate_limit": settings.app.rate_limit_requests,
                "rate_limit_window_s": settings.app.rate_limit_window_seconds,
            },
        )
        try:
            yield
        finally:
            await run_in_threadpool(pool.close, db.pool_drain_timeout_seconds)
            logger.info("app.shutdown")

    return lifespan


def create_app(
    *,
    connection_factory: AbstractConnectionFactory | None = None,
    rate_limiter: AbstractRateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        connection_factory: Optional factory used by every strategy; defaults
            to the configured driver.
        rate_limiter: Optional limiter; defaults to an in-memory fixed window
            built from settings.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="DB Connection Strategies API",
        description=(
            "Lists users through three database connection strategies: a "
            "dedicated connection per request, a leased pooled connection, and "
            "a pooled query executor. Every route is rate limited per client."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=_build_lifespan(connection_factory),
    )
    app.state.rate_limiter = rate_limiter or build_rate_limiter(settings.app)

    # Middleware (the last registered runs first)
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(users_router)
    app.include_router(health_router)

    # OpenAPI customizations (tags, throttling response)
    apply_openapi_customizations(app)

    return app
