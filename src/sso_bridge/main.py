"""SSO Bridge

Main FastAPI application entry point.
Bridges the application's credential layer and an OpenID Connect provider.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sso_bridge.api.routes import sso
from sso_bridge.config.settings import get_settings
from sso_bridge.infrastructure.cache.exchange_cache import ExchangeCache
from sso_bridge.infrastructure.database.session import close_db, init_db

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings = get_settings()

    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}")

    app.state.exchange_cache = ExchangeCache(
        ttl_seconds=settings.sso_exchange_cache_ttl_seconds,
        max_entries=settings.sso_exchange_cache_max_entries,
    )
    app.state.sso_service = None
    logger.info(
        f"Exchange cache ready (ttl={settings.sso_exchange_cache_ttl_seconds}s, "
        f"max_entries={settings.sso_exchange_cache_max_entries})"
    )

    if settings.database_auto_create:
        try:
            await init_db()
            logger.info("Database tables created")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    if not settings.sso_enabled:
        logger.warning("SSO is disabled; /api/v1/sso endpoints will return 404")

    yield

    # Shutdown
    logger.info("Shutting down SSO Bridge")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title="SSO Bridge",
    version=settings.service_version,
    description="OpenID Connect sign-in with deferred refresh token release after 2FA",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


# Health check endpoint
@app.get("/health")
async def root_health_check():
    """Root health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment,
        "sso_enabled": settings.sso_enabled,
    }


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "description": "OpenID Connect SSO Bridge",
        "docs": "/docs",
        "health": "/health"
    }


app.include_router(sso.router, tags=["sso"])


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "sso_bridge.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
