"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from scriptgate.core.config import settings
from scriptgate.core.middleware import setup_middleware
from scriptgate.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ResourceConflictError,
    ResourceNotFoundError,
    ScriptGateError,
)
from scriptgate.db.session import get_db, init_db
from scriptgate.services.cache_service import cache_service

from scriptgate.api.auth import router as auth_router
from scriptgate.api.modules import router as modules_router
from scriptgate.api.roles import router as roles_router
from scriptgate.api.admin import router as admin_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("scriptgate")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("🚀 Starting %s (auth mode: %s)", settings.APP_NAME, settings.AUTH_MODE)
    if settings.AUTO_CREATE_TABLES:
        init_db()
        logger.info("✅ Database tables ready")

    if settings.PERMISSION_CACHE_ENABLED:
        if cache_service.health_check():
            logger.info("✅ Redis connected (permission cache, ttl %ss)", settings.PERMISSION_CACHE_TTL_SECONDS)
        else:
            logger.warning("⚠️  Redis not available, permissions resolve from the database")

    yield

    logger.info("🔻 Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="Script Gate API",
    description="Role-gated execution of administrator-defined scripts",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)

_ERROR_STATUS = (
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (ResourceNotFoundError, 404),
    (ResourceConflictError, 409),
)


@app.exception_handler(ScriptGateError)
async def scriptgate_exception_handler(request: Request, exc: ScriptGateError):
    status_code = next((code for cls, code in _ERROR_STATUS if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(modules_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health(db: Session = Depends(get_db)):
    """System health check: database and (optional) Redis."""
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        logger.exception("Health check query failed")
        db_ok = False

    body = {
        "database": "ok" if db_ok else "error",
        "status": "healthy" if db_ok else "degraded",
    }
    if settings.PERMISSION_CACHE_ENABLED:
        body["redis"] = "ok" if cache_service.health_check() else "error"
    return body
