"""
Domain models for video ingestion.

These models have no dependencies on external frameworks, databases, or
brokers. Serialization to the wire (HTTP responses, queue messages) happens
at the edges.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a trailing Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class VideoStatus(Enum):
    """
    Lifecycle of an uploaded video.

    This service only ever writes PENDING. The remaining states belong to
    the processing worker.
    """
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class IncomingFile:
    """
    A file as received from the client, before any validation.

    content_type is whatever the client declared; filename is informational.
    """
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> Optional[str]:
        """
        Extension of the original filename, if it looks like one.

        Only short alphanumeric suffixes count. Anything else (no dot,
        path separators, dots in odd places) yields None.
        """
        if "." not in self.filename:
            return None
        ext = self.filename.rsplit(".", 1)[-1]
        if not ext or len(ext) > 16 or not ext.isascii() or not ext.isalnum():
            return None
        return ext.lower()


@dataclass(frozen=True)
class UploadLimits:
    """Validation limits loaded once at startup."""
    max_file_size: int
    allowed_mime_types: tuple[str, ...]

    def __post_init__(self) -> None:
        if self.max_file_size <= 0:
            raise ValueError("max_file_size must be positive")


@dataclass
class Video:
    """
    Metadata record for one uploaded video.

    Everything except status is fixed at creation. storage_key is the only
    reference to the binary in the object store.
    """
    user_id: str
    filename: str
    storage_key: str
    mime_type: str
    size: int
    id: str = field(default_factory=lambda: str(uuid4()))
    status: VideoStatus = VideoStatus.PENDING
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def is_owned_by(self, user_id: str) -> bool:
        return self.user_id == user_id


@dataclass(frozen=True)
class ProcessingMessage:
    """
    Job message for the processing queue.

    The key names are the contract the downstream worker parses; keep them
    stable.
    """
    video_id: str
    storage_key: str
    user_id: str
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def for_video(cls, video: Video) -> "ProcessingMessage":
        return cls(
            video_id=video.id,
            storage_key=video.storage_key,
            user_id=video.user_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "videoId": self.video_id,
            "storageKey": self.storage_key,
            "userId": self.user_id,
            "timestamp": format_timestamp(self.timestamp),
        }
