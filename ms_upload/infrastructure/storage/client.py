"""
Object storage client for uploaded videos.

Talks to MinIO (or any S3-compatible store) through boto3, with mock mode for
local development. Every operation is addressed by bucket and key; the
video-bucket helpers at the bottom of each class are what the upload service
uses.

boto3 is synchronous, so each call runs in a worker thread to keep the event
loop free.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Protocol
from urllib.parse import quote

from ...core.errors import DependencyError

logger = logging.getLogger(__name__)

DEFAULT_URL_EXPIRY_SECONDS = 7 * 24 * 60 * 60


class StorageError(DependencyError):
    """Raised when storage operations fail."""
    pass


@dataclass(frozen=True)
class StorageConfig:
    """
    Configuration for an S3-compatible object store.

    Bucket names are fixed for the life of the process.
    """
    endpoint_url: str
    access_key_id: str
    secret_access_key: str
    video_bucket: str
    thumbnail_bucket: str
    region: str = "us-east-1"
    url_expiry_seconds: int = DEFAULT_URL_EXPIRY_SECONDS

    @property
    def buckets(self) -> tuple[str, ...]:
        return (self.video_bucket, self.thumbnail_bucket)


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    async def ensure_bucket(self, bucket: str) -> None:
        """Create the bucket if it does not exist."""
        ...

    async def ensure_buckets(self) -> None:
        """Ensure every configured bucket exists."""
        ...

    async def put(self, bucket: str, key: str, data: bytes, content_type: str) -> dict[str, Any]:
        """Upload bytes, overwriting any existing object under key."""
        ...

    async def get(self, bucket: str, key: str) -> bytes:
        """Download object bytes."""
        ...

    async def delete(self, bucket: str, key: str) -> None:
        """Remove an object. Missing objects are not an error."""
        ...

    async def presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> str:
        """Generate a time-limited download URL."""
        ...

    async def upload_video(self, storage_key: str, data: bytes, content_type: str) -> dict[str, Any]:
        ...

    async def delete_video(self, storage_key: str) -> None:
        ...

    async def get_video_url(self, storage_key: str) -> str:
        ...


class S3StorageClient:
    """
    S3-compatible object storage client.

    Uses boto3 with path-style addressing and v4 signatures, which is what
    MinIO expects. The same class works against AWS S3 or R2 by changing
    the endpoint.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize the boto3 client.

        We import boto3 here (not at module level) because mock mode
        doesn't need it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for object storage. Install with: pip install boto3"
            )

        self._config = config

        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized object storage client",
            extra={
                "buckets": list(config.buckets),
                "endpoint": config.endpoint_url,
            }
        )

    @property
    def client(self):
        """Underlying boto3 client, for callers that need raw S3 calls."""
        return self._s3_client

    async def ensure_bucket(self, bucket: str) -> None:
        """
        Create the bucket if it is missing.

        Idempotent. Called at startup; a failure here should stop the
        process.
        """
        from botocore.exceptions import ClientError

        try:
            await asyncio.to_thread(self._s3_client.head_bucket, Bucket=bucket)
            logger.info("Bucket already exists", extra={"bucket": bucket})
            return
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            if code not in ('404', 'NoSuchBucket', 'NotFound'):
                logger.error(
                    "Failed to check bucket",
                    extra={"bucket": bucket, "error": str(e)}
                )
                raise StorageError(f"Bucket check failed: {e}")

        create_params: dict[str, Any] = {'Bucket': bucket}
        # us-east-1 is the default location and must not be sent explicitly
        if self._config.region != 'us-east-1':
            create_params['CreateBucketConfiguration'] = {
                'LocationConstraint': self._config.region,
            }

        try:
            await asyncio.to_thread(self._s3_client.create_bucket, **create_params)
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            if code in ('BucketAlreadyOwnedByYou', 'BucketAlreadyExists'):
                return
            logger.error(
                "Failed to create bucket",
                extra={"bucket": bucket, "error": str(e)}
            )
            raise StorageError(f"Bucket creation failed: {e}")

        logger.info("Bucket created", extra={"bucket": bucket})

    async def ensure_buckets(self) -> None:
        for bucket in self._config.buckets:
            await self.ensure_bucket(bucket)

    async def put(self, bucket: str, key: str, data: bytes, content_type: str) -> dict[str, Any]:
        """Upload bytes and return the store's confirmation (etag, version)."""
        try:
            response = await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )

            logger.debug(
                "Uploaded object",
                extra={"bucket": bucket, "key": key, "size_bytes": len(data)}
            )

            return {
                'etag': response.get('ETag'),
                'version_id': response.get('VersionId'),
            }

        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}")

    async def get(self, bucket: str, key: str) -> bytes:
        try:
            response = await asyncio.to_thread(
                self._s3_client.get_object,
                Bucket=bucket,
                Key=key,
            )

            return response['Body'].read()

        except Exception as e:
            logger.error(
                "Failed to download object",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StorageError(f"Download failed: {e}")

    async def delete(self, bucket: str, key: str) -> None:
        """S3 delete is already a no-op for missing keys."""
        try:
            await asyncio.to_thread(
                self._s3_client.delete_object,
                Bucket=bucket,
                Key=key,
            )

            logger.debug("Deleted object", extra={"bucket": bucket, "key": key})

        except Exception as e:
            logger.error(
                "Failed to delete object",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}")

    async def presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> str:
        """
        Generate a temporary download URL.

        The URL is signed locally; clients fetch the object directly from
        the store until it expires. Issued URLs cannot be revoked.
        """
        try:
            return await asyncio.to_thread(
                self._s3_client.generate_presigned_url,
                'get_object',
                Params={
                    'Bucket': bucket,
                    'Key': key,
                },
                ExpiresIn=expiry_seconds,
            )

        except Exception as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StorageError(f"Presigned URL generation failed: {e}")

    async def upload_video(self, storage_key: str, data: bytes, content_type: str) -> dict[str, Any]:
        return await self.put(self._config.video_bucket, storage_key, data, content_type)

    async def delete_video(self, storage_key: str) -> None:
        await self.delete(self._config.video_bucket, storage_key)

    async def get_video_url(self, storage_key: str) -> str:
        return await self.presigned_url(
            self._config.video_bucket,
            storage_key,
            self._config.url_expiry_seconds,
        )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    Objects live in a dictionary keyed by (bucket, key). URLs are mock URIs
    that carry their expiry as a unix timestamp so callers can still see
    when they lapse.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(
        self,
        video_bucket: str = "videos",
        thumbnail_bucket: str = "thumbnails",
        url_expiry_seconds: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> None:
        self._video_bucket = video_bucket
        self._thumbnail_bucket = thumbnail_bucket
        self._url_expiry_seconds = url_expiry_seconds
        self._buckets: set[str] = set()
        # {(bucket, key): (data, content_type)}
        self._objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    async def ensure_bucket(self, bucket: str) -> None:
        self._buckets.add(bucket)

    async def ensure_buckets(self) -> None:
        for bucket in (self._video_bucket, self._thumbnail_bucket):
            await self.ensure_bucket(bucket)

    async def put(self, bucket: str, key: str, data: bytes, content_type: str) -> dict[str, Any]:
        """Store object in memory."""
        if bucket not in self._buckets:
            raise StorageError(f"Bucket does not exist: {bucket}")

        self._objects[(bucket, key)] = (data, content_type)

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "key": key, "size_bytes": len(data)}
        )

        return {'etag': None, 'version_id': None}

    async def get(self, bucket: str, key: str) -> bytes:
        if (bucket, key) not in self._objects:
            raise StorageError(f"Object not found: {bucket}/{key}")

        return self._objects[(bucket, key)][0]

    async def delete(self, bucket: str, key: str) -> None:
        self._objects.pop((bucket, key), None)

    async def presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = DEFAULT_URL_EXPIRY_SECONDS,
    ) -> str:
        if (bucket, key) not in self._objects:
            raise StorageError(f"Object not found: {bucket}/{key}")

        expires_at = int(time.time()) + expiry_seconds
        return f"mock://storage/{bucket}/{quote(key)}?expires={expires_at}"

    async def upload_video(self, storage_key: str, data: bytes, content_type: str) -> dict[str, Any]:
        return await self.put(self._video_bucket, storage_key, data, content_type)

    async def delete_video(self, storage_key: str) -> None:
        await self.delete(self._video_bucket, storage_key)

    async def get_video_url(self, storage_key: str) -> str:
        return await self.presigned_url(
            self._video_bucket,
            storage_key,
            self._url_expiry_seconds,
        )

    # Helper methods for testing
    def _has_object(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self._objects

    def _keys(self, bucket: str) -> list[str]:
        return [key for (b, key) in self._objects if b == bucket]

    def _content_type(self, bucket: str, key: str) -> Optional[str]:
        entry = self._objects.get((bucket, key))
        return entry[1] if entry else None


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (S3 or Mock)
    """
    if mock_mode:
        if config is None:
            return MockStorageClient()
        return MockStorageClient(
            video_bucket=config.video_bucket,
            thumbnail_bucket=config.thumbnail_bucket,
            url_expiry_seconds=config.url_expiry_seconds,
        )

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)
