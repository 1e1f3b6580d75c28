"""
School Media Portal API: schools upload event photos and videos, the admin reviews and exports them.
"""
import shutil
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from botocore.exceptions import ClientError, BotoCoreError

import config
from database.connection import Database
from storage.file_store import LocalFileStore
from storage.s3_store import S3FileStore
from core.errors import PortalError, StorageFailure
from core.logger import logger
from middleware.security import (
    RateLimitMiddleware, SecurityHeadersMiddleware,
    setup_cors, setup_trusted_hosts
)
from middleware.auth_middleware import AuthRequiredMiddleware
from routers.auth import router as auth_router
from routers.media import router as media_router, files_router
from routers.events import router as events_router
from routers.dashboards import router as dashboards_router
from routers.profile import router as profile_router
from routers.admin import router as admin_router


def build_file_store():
    """File store selected by USE_S3."""
    if config.USE_S3:
        return S3FileStore(
            bucket_name=config.S3_BUCKET_NAME,
            prefix=config.S3_PREFIX,
            aws_access_key_id=config.S3_ACCESS_KEY_ID,
            aws_secret_access_key=config.S3_SECRET_ACCESS_KEY,
            region_name=config.S3_REGION,
            endpoint_url=config.S3_ENDPOINT_URL,
        )
    return LocalFileStore(config.UPLOADS_DIR)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Initialize database and file store on startup, unless already provided.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {config.APP_NAME} v{config.APP_VERSION}...")
    logger.info("=" * 60)

    if config.db is None:
        try:
            config.db = Database(
                database_url=config.DATABASE_URL,
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW
            )
            logger.info("Database initialized successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            raise
    if config.AUTO_CREATE_TABLES:
        config.db.create_tables()

    if config.file_store is None:
        config.file_store = build_file_store()

    logger.info(f"Environment: {config.ENVIRONMENT}")
    logger.info(f"Storage: {config.file_store.describe()}")
    logger.info("Server ready!")

    yield

    logger.info("Shutting down...")
    if config.db:
        config.db.dispose()
        logger.info("Database connections closed")


async def portal_error_handler(request: Request, exc: PortalError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())}
    )


async def internal_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}: {exc}", exc_info=exc)
    error = StorageFailure()
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


def create_app() -> FastAPI:
    """Build the FastAPI application with middleware, error handlers and routers."""
    app = FastAPI(
        title=config.APP_NAME,
        description="Media portal for schools: event uploads, dashboards and admin export",
        version=config.APP_VERSION,
        lifespan=lifespan
    )

    app.add_exception_handler(PortalError, portal_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, internal_error_handler)
    app.add_exception_handler(OSError, internal_error_handler)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_minute=config.RATE_LIMIT_PER_MINUTE,
        requests_per_hour=config.RATE_LIMIT_PER_HOUR
    )
    app.add_middleware(AuthRequiredMiddleware)
    setup_cors(app, config.CORS_ORIGINS)
    if config.ENVIRONMENT == "production":
        setup_trusted_hosts(app, config.TRUSTED_HOSTS)

    app.include_router(auth_router)
    app.include_router(media_router)
    app.include_router(events_router)
    app.include_router(dashboards_router)
    app.include_router(profile_router)
    app.include_router(admin_router)
    app.include_router(files_router)

    app.add_api_route("/", root, methods=["GET"])
    app.add_api_route("/health", health_check, methods=["GET"])
    return app


async def root():
    """API information. Public endpoint."""
    return {
        "message": config.APP_NAME,
        "version": config.APP_VERSION,
        "environment": config.ENVIRONMENT,
        "docs": "/docs",
        "storage": config.file_store.describe() if config.file_store else None,
    }


async def health_check():
    """Health check endpoint for monitoring. Public endpoint."""
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "checks": {}
    }

    try:
        if config.db is None:
            health_status["checks"]["database"] = {"status": "error", "error": "not initialized"}
            health_status["status"] = "degraded"
        else:
            config.db.ping()
            health_status["checks"]["database"] = {"status": "ok"}
    except SQLAlchemyError as e:
        health_status["checks"]["database"] = {"status": "error", "error": str(e)}
        health_status["status"] = "degraded"

    store = config.file_store
    if store is None:
        health_status["checks"]["storage"] = {"status": "error", "error": "not initialized"}
        health_status["status"] = "degraded"
    elif isinstance(store, S3FileStore):
        try:
            store.s3_client.head_bucket(Bucket=store.bucket_name)
            health_status["checks"]["storage"] = {"status": "ok", **store.describe()}
        except (ClientError, BotoCoreError) as e:
            health_status["checks"]["storage"] = {"status": "error", **store.describe(), "error": str(e)}
            health_status["status"] = "degraded"
    else:
        try:
            disk_usage = shutil.disk_usage(store.root)
            free_gb = disk_usage.free / (1024 ** 3)
            health_status["checks"]["storage"] = {
                "status": "ok",
                **store.describe(),
                "free_gb": round(free_gb, 2),
                "percent_free": round((disk_usage.free / disk_usage.total) * 100, 2)
            }
            if free_gb < 1:
                health_status["status"] = "degraded"
        except OSError as e:
            health_status["checks"]["storage"] = {"status": "error", **store.describe(), "error": str(e)}
            health_status["status"] = "degraded"

    return health_status


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
