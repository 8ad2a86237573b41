"""
Upload orchestration.

Ingestion is a short saga over three collaborators:

1. Validate the incoming file (no side effects on rejection)
2. Store the binary in the object store under a freshly generated key
3. Create the PENDING metadata record
4. Publish the processing job

A failure in step 3 or 4 deletes the stored binary before the original error
is re-raised. The metadata record is not rolled back when step 4 fails, so a
PENDING record without a queued job can remain behind.

Reads, URL retrieval and deletion all go through the same ownership check.
"""

import logging
from typing import Optional, Protocol
from uuid import uuid4

from ..errors import AuthorizationError, NotFoundError, ValidationError
from .models import IncomingFile, ProcessingMessage, UploadLimits, Video, VideoStatus

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class VideoStorage(Protocol):
    """Object store operations scoped to the videos bucket."""

    async def upload_video(self, storage_key: str, data: bytes, content_type: str) -> dict:
        ...

    async def delete_video(self, storage_key: str) -> None:
        ...

    async def get_video_url(self, storage_key: str) -> str:
        ...


class VideoMetadataStore(Protocol):
    """Persistence for Video records."""

    async def create(self, video: Video) -> Video:
        ...

    async def find_by_id(self, video_id: str) -> Optional[Video]:
        ...

    async def find_all_by_user(self, user_id: str) -> list[Video]:
        ...

    async def delete(self, video_id: str) -> None:
        ...


class JobPublisher(Protocol):
    """Publishes processing jobs for the downstream worker."""

    async def publish_video_processing(self, message: dict) -> None:
        ...


# ---------------------------------------------------------------------------
# Upload Service
# ---------------------------------------------------------------------------

def generate_storage_key(file: IncomingFile) -> str:
    """
    Build an object key that never collides and never contains user input.

    A random UUID plus the original extension, so downloads keep a useful
    suffix.
    """
    ext = file.extension
    key = str(uuid4())
    return f"{key}.{ext}" if ext else key


class UploadService:
    """
    Ingestion workflow and ownership-checked access to uploaded videos.

    The service holds no per-request state; one instance can serve
    concurrent requests as long as its collaborators can.
    """

    def __init__(
        self,
        storage: VideoStorage,
        repository: VideoMetadataStore,
        publisher: JobPublisher,
        limits: UploadLimits,
    ) -> None:
        self._storage = storage
        self._repository = repository
        self._publisher = publisher
        self._limits = limits

    async def upload_video(self, user_id: str, file: Optional[IncomingFile]) -> Video:
        """
        Ingest one video and return the created record.

        The record is returned only after the binary is stored, the record
        is persisted and the processing job is published.
        """
        self._validate_file(file)

        storage_key = generate_storage_key(file)

        logger.info(
            "Uploading video to object store",
            extra={
                "user_id": user_id,
                "storage_key": storage_key,
                "size_bytes": file.size,
                "mime_type": file.content_type,
            }
        )
        # Nothing is persisted yet if this fails, so no cleanup.
        await self._storage.upload_video(storage_key, file.data, file.content_type)

        try:
            video = await self._repository.create(Video(
                user_id=user_id,
                filename=file.filename,
                storage_key=storage_key,
                mime_type=file.content_type,
                size=file.size,
                status=VideoStatus.PENDING,
            ))

            await self._publisher.publish_video_processing(
                ProcessingMessage.for_video(video).to_dict()
            )
        except Exception as e:
            logger.error(
                "Error uploading video, removing stored object",
                extra={"storage_key": storage_key, "error": str(e)},
            )
            await self._discard_object(storage_key)
            raise

        logger.info(
            "Video uploaded successfully",
            extra={"video_id": video.id, "storage_key": storage_key}
        )
        return video

    async def list_user_videos(self, user_id: str) -> list[Video]:
        """All videos owned by the user, most recent first."""
        return await self._repository.find_all_by_user(user_id)

    async def get_video_by_id(self, video_id: str, user_id: str) -> Video:
        video = await self._repository.find_by_id(video_id)

        if video is None:
            raise NotFoundError("Video not found")

        if not video.is_owned_by(user_id):
            logger.warning(
                "Rejected access to another user's video",
                extra={"video_id": video_id, "user_id": user_id}
            )
            raise AuthorizationError("Unauthorized access to video")

        return video

    async def get_video_url(self, video_id: str, user_id: str) -> str:
        """Presigned download URL for a video the user owns."""
        video = await self.get_video_by_id(video_id, user_id)
        return await self._storage.get_video_url(video.storage_key)

    async def delete_video(self, video_id: str, user_id: str) -> None:
        """
        Delete the stored binary, then the record.

        An object store failure is logged and does not stop the record from
        being removed; the binary is left orphaned.
        """
        video = await self.get_video_by_id(video_id, user_id)

        try:
            await self._storage.delete_video(video.storage_key)
        except Exception as e:
            logger.error(
                "Error deleting video from object store",
                extra={"video_id": video_id, "storage_key": video.storage_key, "error": str(e)},
            )

        await self._repository.delete(video_id)

        logger.info("Video deleted", extra={"video_id": video_id})

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _validate_file(self, file: Optional[IncomingFile]) -> None:
        if file is None or not file.filename:
            raise ValidationError("No file provided")

        max_size = self._limits.max_file_size
        if file.size > max_size:
            raise ValidationError(
                f"File size exceeds maximum allowed ({max_size / 1024 / 1024:g}MB)"
            )

        allowed = self._limits.allowed_mime_types
        if file.content_type not in allowed:
            raise ValidationError(
                f"Invalid file type. Allowed types: {', '.join(allowed)}"
            )

    async def _discard_object(self, storage_key: str) -> None:
        """Compensation step. Failures are logged, never raised."""
        try:
            await self._storage.delete_video(storage_key)
        except Exception as e:
            logger.error(
                "Error cleaning up stored object",
                extra={"storage_key": storage_key, "error": str(e)},
            )
