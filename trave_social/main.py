"""
FastAPI Application Entry Point.
Initializes the FastAPI app with middleware, CORS, and routes.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from trave_social.config import settings
from trave_social.core.cache import cache
from trave_social.core.database import AsyncSessionLocal, engine
from trave_social.core.events import side_effect_bus
from trave_social.core.logging_config import configure_logging
from trave_social.core.rate_limit import limiter
from trave_social.core.websocket import connection_manager
from trave_social.services.side_effects import register_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    configure_logging(settings.log_level, settings.log_format)
    await cache.connect()
    register_handlers(side_effect_bus)
    await side_effect_bus.start()
    logger.info(f"Trave Social server started ({settings.environment})")
    yield
    # Shutdown
    await side_effect_bus.stop()
    side_effect_bus.clear()
    await cache.disconnect()
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title="Trave Social Server",
    description="FastAPI backend for the Trave social app: messaging, notifications and profiles",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Add rate limiter state and error handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# CORS Middleware
# Socket.IO handles CORS for WebSocket connections itself (cors_allowed_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health Check Endpoints
@app.get("/health", tags=["Health"])
async def health_check():
    """Basic health check endpoint."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "environment": settings.environment,
        }
    )


@app.get("/health/ready", tags=["Health"])
async def readiness_check():
    """
    Readiness check endpoint.
    Verifies database and cache connectivity.
    """
    checks = {
        "database": False,
        "redis": "not_configured" if not settings.redis_url else False,
        "side_effects": side_effect_bus.is_running,
    }

    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
            checks["database"] = True
    except Exception as e:
        logger.warning(f"Readiness: database check failed: {e}")

    if settings.redis_url and cache.redis is not None:
        try:
            checks["redis"] = bool(await cache.redis.ping())
        except Exception as e:
            logger.warning(f"Readiness: redis check failed: {e}")

    redis_ok = checks["redis"] == "not_configured" or checks["redis"] is True
    all_healthy = checks["database"] and redis_ok
    status_code = 200 if all_healthy else 503

    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_healthy else "not ready",
            "checks": checks,
        }
    )


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Trave Social Server API",
        "version": fastapi_app.version,
        "docs": "/docs" if settings.debug else "Documentation disabled in production",
    }


# Include API routers
from trave_social.api.v1 import auth, conversations, media, notifications, users  # noqa: E402

app.include_router(
    auth.router,
    prefix="/api/v1/auth",
    tags=["Authentication"]
)

app.include_router(
    users.router,
    prefix="/api/v1/users",
    tags=["Users"]
)

app.include_router(
    conversations.router,
    prefix="/api/v1/conversations",
    tags=["Conversations"]
)

app.include_router(
    notifications.router,
    prefix="/api/v1/notifications",
    tags=["Notifications"]
)

app.include_router(
    media.router,
    prefix="/api/v1/media",
    tags=["Media"]
)

# Keep a reference to the FastAPI app for tests
fastapi_app = app

# Socket.IO wraps FastAPI and handles /socket.io/*
app = connection_manager.get_asgi_app(fastapi_app)
