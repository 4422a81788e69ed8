"""FastAPI application factory.

create_app() returns a configured FastAPI instance. The lifespan manages
startup/shutdown (Redis pool, database engine). Middleware, CORS and
routers are all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auratask import __version__
from auratask.api import api_router
from auratask.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "auratask.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from auratask.cache import close_redis, init_redis
    try:
        await init_redis()
        logger.info("auratask.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("auratask.redis_unavailable", error=str(e))
        # Only rate limiting depends on Redis

    yield

    logger.info("auratask.shutdown")
    await close_redis()

    from auratask.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="AuraTask",
        description="AuraTask backend — AI credentials, guest migration, key pool admin",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from auratask.middleware.rate_limit import RateLimitMiddleware
    from auratask.middleware.request_id import RequestIdMiddleware
    from auratask.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
        ai_rpm=settings.rate_limit_ai_rpm,
        admin_rpm=settings.rate_limit_admin_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: auratask.main:app)
app = create_app()
