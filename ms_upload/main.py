"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

For local development:
    uvicorn ms_upload.main:app --reload

For production:
    gunicorn ms_upload.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api.auth import TokenVerifier
from .api.routes import health, upload
from .config.settings import Settings, get_settings
from .core.errors import ErrorKind, UploadError
from .infrastructure.messaging import BrokerConfig, create_queue_publisher
from .infrastructure.snowflake.client import MockSnowflakeConnection
from .infrastructure.storage import StorageConfig, create_storage_client

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DEPENDENCY: 503,
}


def build_storage_config(settings: Settings) -> StorageConfig:
    return StorageConfig(
        endpoint_url=settings.minio_endpoint_url,
        access_key_id=settings.minio_access_key,
        secret_access_key=settings.minio_secret_key,
        video_bucket=settings.minio_bucket_videos,
        thumbnail_bucket=settings.minio_bucket_thumbnails,
        region=settings.minio_region,
        url_expiry_seconds=settings.presigned_url_expiry_seconds,
    )


def build_broker_config(settings: Settings) -> BrokerConfig:
    return BrokerConfig(
        url=settings.rabbitmq_url,
        processing_queue=settings.rabbitmq_queue_video_processing,
        failed_queue=settings.rabbitmq_queue_video_failed,
        connect_max_retries=settings.rabbitmq_connect_max_retries,
        publish_max_retries=settings.rabbitmq_publish_max_retries,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Acquires the long-lived external resources on startup and releases them
    on shutdown. A failure while ensuring buckets or connecting to the
    broker aborts startup.
    """
    settings: Settings = app.state.settings

    logger.info(
        "ms-upload starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "storage": settings.storage_mock_mode,
                "broker": settings.broker_mock_mode,
                "snowflake": settings.snowflake_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    storage = create_storage_client(
        config=build_storage_config(settings),
        mock_mode=settings.storage_mock_mode,
    )
    await storage.ensure_buckets()

    publisher = create_queue_publisher(
        config=build_broker_config(settings),
        mock_mode=settings.broker_mock_mode,
    )
    await publisher.connect()

    app.state.storage = storage
    app.state.publisher = publisher
    if settings.snowflake_mock_mode:
        app.state.mock_snowflake_connection = MockSnowflakeConnection()

    try:
        yield
    finally:
        logger.info("ms-upload shutting down")
        await publisher.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Tests pass their own Settings; production reads the environment.
    """
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Video upload ingestion service.

        Uploaded videos are stored in object storage, recorded as PENDING
        and queued for processing. All endpoints except health checks
        require a bearer token in the `Authorization` header.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    # Without a secret every authenticated route answers 401
    app.state.token_verifier = TokenVerifier(settings.jwt_secret) if settings.jwt_secret else None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(
        health.router,
        prefix="/upload",
        tags=["Health"],
    )

    app.include_router(
        upload.router,
        prefix="/upload",
        tags=["Upload"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "message": settings.service_name,
            "version": __version__,
            "docs": "/docs",
            "health": "/upload/health",
        }

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError):
        """Map each error kind to its status code."""
        status_code = STATUS_BY_KIND[exc.kind]
        log = logger.error if status_code >= 500 else logger.info
        log(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "kind": exc.kind.value,
                "error": exc.message,
            }
        )

        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "kind": exc.kind.value},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. We log the full error
        server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ms_upload.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=get_settings().log_level.lower(),
    )
