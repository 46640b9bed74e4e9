"""HR Portal — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.common.exceptions import register_exception_handlers
from backend.common.rate_limit import limiter
from backend.config import settings
from backend.database import async_session_factory, engine
from backend.documents.cache import DocumentCache
from backend.documents.store import DocumentStore
from backend.leave.router import router as leave_router

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Root logging setup shared by the app and the scripts."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    # Startup
    logger.info("HR portal starting (environment=%s)", settings.ENVIRONMENT)
    yield
    # Shutdown
    app.state.document_cache.invalidate()
    await engine.dispose()
    logger.info("HR portal stopped")


def create_app(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    cache_ttl_seconds: Optional[float] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``session_factory`` and ``cache_ttl_seconds`` default to the configured
    database and ``DB_CACHE_TTL_SECONDS``; tests pass their own.
    """
    configure_logging()

    app = FastAPI(
        title="HR Portal",
        description="Leave accrual engine over the HR document store",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # One document cache per process
    store = DocumentStore(session_factory or async_session_factory)
    app.state.document_cache = DocumentCache(
        store,
        ttl_seconds=(
            settings.DB_CACHE_TTL_SECONDS if cache_ttl_seconds is None else cache_ttl_seconds
        ),
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])

    return app


app = create_app()
