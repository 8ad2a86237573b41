"""
Shared fixtures.

Everything runs against the in-memory stand-ins (mock storage, mock
Snowflake connection, mock publisher), so no external service is needed.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from ms_upload.api.auth import TokenVerifier
from ms_upload.config.settings import Settings
from ms_upload.core.uploads import UploadLimits, UploadService
from ms_upload.infrastructure.messaging import MockQueuePublisher
from ms_upload.infrastructure.snowflake.client import MockSnowflakeConnection
from ms_upload.infrastructure.snowflake.repositories import VideoRepository
from ms_upload.infrastructure.storage import MockStorageClient
from ms_upload.main import create_app

JWT_SECRET = "test-secret"
PROCESSING_QUEUE = "video.processing"
FAILED_QUEUE = "video.failed"


@pytest.fixture
def storage():
    client = MockStorageClient(video_bucket="videos", thumbnail_bucket="thumbnails")
    asyncio.run(client.ensure_buckets())
    return client


@pytest.fixture
def connection():
    return MockSnowflakeConnection()


@pytest.fixture
def repository(connection):
    return VideoRepository(connection)


@pytest.fixture
def publisher():
    mock = MockQueuePublisher(PROCESSING_QUEUE, FAILED_QUEUE)
    asyncio.run(mock.connect())
    return mock


@pytest.fixture
def limits():
    return UploadLimits(
        max_file_size=1024,
        allowed_mime_types=("video/mp4", "video/quicktime"),
    )


@pytest.fixture
def service(storage, repository, publisher, limits):
    return UploadService(
        storage=storage,
        repository=repository,
        publisher=publisher,
        limits=limits,
    )


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        jwt_secret=JWT_SECRET,
        storage_mock_mode=True,
        broker_mock_mode=True,
        snowflake_mock_mode=True,
        rabbitmq_queue_video_processing=PROCESSING_QUEUE,
        rabbitmq_queue_video_failed=FAILED_QUEUE,
        max_file_size=1024,
        allowed_mime_types="video/mp4,video/quicktime",
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    verifier = TokenVerifier(JWT_SECRET)

    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {verifier.issue({'sub': user_id})}"}

    return _headers
