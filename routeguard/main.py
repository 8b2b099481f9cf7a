"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from routeguard.core.config import settings
from routeguard.core.enforcement import get_permission_table
from routeguard.core.exceptions import RouteGuardError, AuthenticationError
from routeguard.core.middleware import setup_middleware

from routeguard.api.auth import router as auth_router
from routeguard.api.matrix import router as matrix_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("routeguard")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting RouteGuard API")
    # Fail at startup, not on the first request, if the permission table is broken
    get_permission_table()

    if settings.GRANT_CACHE_ENABLED:
        from routeguard.services.cache_service import cache_service
        if cache_service.health_check():
            logger.info("Redis connected; grants cached for %ss", settings.GRANT_CACHE_TTL_SECONDS)
        else:
            logger.warning("Redis not available; grants will be read from the database per request")

    yield

    logger.info("Shutting down RouteGuard API")


app = FastAPI(
    title="RouteGuard API",
    description="Route registry driven role/permission enforcement",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

setup_middleware(app)


@app.exception_handler(RouteGuardError)
async def routeguard_exception_handler(request: Request, exc: RouteGuardError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


app.include_router(auth_router, prefix="/api")
app.include_router(matrix_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
