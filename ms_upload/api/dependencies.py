"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be mocked for testing
- Configuration is centralized
- Resource lifecycle (connections, clients) is managed properly

Long-lived resources (object store client, queue publisher, the shared mock
database connection) are created once in the application lifespan and
stored on app.state. Per-request resources (Snowflake connections) are
opened and closed here.
"""

import logging
from typing import Annotated, Generator, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from ..config.settings import Settings
from ..core.uploads import UploadLimits, UploadService
from ..infrastructure.messaging import QueuePublisher
from ..infrastructure.snowflake.client import create_snowflake_connection
from ..infrastructure.snowflake.repositories.videos import SnowflakeConfig, VideoRepository
from ..infrastructure.storage import StorageClient
from .auth import AuthContext, InvalidTokenError, TokenVerifier

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application State
# ---------------------------------------------------------------------------

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage_client(request: Request) -> StorageClient:
    return request.app.state.storage


def get_queue_publisher(request: Request) -> QueuePublisher:
    return request.app.state.publisher


def get_token_verifier(request: Request) -> Optional[TokenVerifier]:
    return request.app.state.token_verifier


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def get_current_user(
    verifier: Annotated[Optional[TokenVerifier], Depends(get_token_verifier)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> AuthContext:
    """
    Validate the bearer token and return the caller's identity.

    Raises 401 if the header is missing, the token does not verify, or no
    signing secret is configured.
    """
    if verifier is None:
        logger.error("Rejected request: JWT_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="authentication is not configured",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not authorization or not authorization.lower().startswith("bearer "):
        logger.warning("Request missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization.split(" ", 1)[1].strip()
    try:
        return verifier.decode(token)
    except InvalidTokenError as e:
        logger.warning("Rejected bearer token", extra={"reason": str(e)})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"invalid token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_video_repository(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Generator[VideoRepository, None, None]:
    """
    Provide VideoRepository with a database connection.

    This is a generator function (yields instead of returns) because
    we need to manage the connection lifecycle:
    1. Create connection
    2. Create repository
    3. Yield repository (FastAPI injects it)
    4. Close connection (cleanup after request)

    In mock mode, we reuse the connection created at startup so that data
    persists across requests.
    """
    if settings.snowflake_mock_mode:
        yield VideoRepository(request.app.state.mock_snowflake_connection)
        return

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    with create_snowflake_connection(config=config) as conn:
        logger.debug("Created VideoRepository with Snowflake connection")
        yield VideoRepository(conn)


def get_upload_service(
    settings: Annotated[Settings, Depends(get_app_settings)],
    storage: Annotated[StorageClient, Depends(get_storage_client)],
    publisher: Annotated[QueuePublisher, Depends(get_queue_publisher)],
    repository: Annotated[VideoRepository, Depends(get_video_repository)],
) -> UploadService:
    """The upload service is stateless, so one is built per request."""
    limits = UploadLimits(
        max_file_size=settings.max_file_size,
        allowed_mime_types=tuple(settings.allowed_mime_types_list),
    )
    return UploadService(
        storage=storage,
        repository=repository,
        publisher=publisher,
        limits=limits,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
UploadServiceDep = Annotated[UploadService, Depends(get_upload_service)]
QueuePublisherDep = Annotated[QueuePublisher, Depends(get_queue_publisher)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
