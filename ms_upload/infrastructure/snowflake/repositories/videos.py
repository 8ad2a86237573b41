"""
Snowflake repository for video metadata.

The repository:
1. Translates between the Video domain model and table rows
2. Encapsulates all SQL queries
3. Provides a clean interface for the upload service

Table layout (one row per uploaded video):

    videos (
        video_id     VARCHAR PRIMARY KEY,
        user_id      VARCHAR NOT NULL,
        filename     VARCHAR NOT NULL,
        storage_key  VARCHAR NOT NULL UNIQUE,
        mime_type    VARCHAR NOT NULL,
        size_bytes   NUMBER  NOT NULL,
        status       VARCHAR NOT NULL,
        created_at   TIMESTAMP_TZ NOT NULL,
        updated_at   TIMESTAMP_TZ NOT NULL
    )

The connector is blocking, so each public method runs its query in a worker
thread.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from ....core.errors import DependencyError
from ....core.uploads.models import Video, VideoStatus

logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a mock without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "MEDIA"
    schema: str = "UPLOADS"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


class RepositoryError(DependencyError):
    """Raised when a metadata query fails."""
    pass


_VIDEO_COLUMNS = """
    video_id,
    user_id,
    filename,
    storage_key,
    mime_type,
    size_bytes,
    status,
    created_at,
    updated_at
"""


class VideoRepository:
    """
    Repository for Video records.

    Each method corresponds to a use case the upload service needs:
    - create: Persist a freshly ingested video
    - find_by_id: Load a video by ID
    - find_all_by_user: List a user's videos, newest first
    - delete: Remove a video record
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    async def create(self, video: Video) -> Video:
        await asyncio.to_thread(self._run, "create video", self._insert, video)
        return video

    async def find_by_id(self, video_id: str) -> Optional[Video]:
        return await asyncio.to_thread(self._run, "load video", self._select_one, video_id)

    async def find_all_by_user(self, user_id: str) -> list[Video]:
        return await asyncio.to_thread(self._run, "list videos", self._select_by_user, user_id)

    async def delete(self, video_id: str) -> None:
        await asyncio.to_thread(self._run, "delete video", self._delete, video_id)

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _run(self, action: str, fn, *args):
        """Run one query with its own cursor and translate failures."""
        cursor = self._conn.cursor()

        try:
            return fn(cursor, *args)
        except Exception as e:
            logger.error(
                f"Failed to {action}",
                extra={"query_args": [str(arg) for arg in args], "error": str(e)}
            )
            raise RepositoryError(f"Failed to {action}: {e}")
        finally:
            cursor.close()

    def _insert(self, cursor, video: Video) -> None:
        cursor.execute("""
            INSERT INTO videos (
                video_id, user_id, filename, storage_key, mime_type,
                size_bytes, status, created_at, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        """, (
            video.id,
            video.user_id,
            video.filename,
            video.storage_key,
            video.mime_type,
            video.size,
            video.status.value,
            video.created_at,
            video.updated_at,
        ))
        self._conn.commit()

    def _select_one(self, cursor, video_id: str) -> Optional[Video]:
        cursor.execute(f"""
            SELECT {_VIDEO_COLUMNS}
            FROM videos
            WHERE video_id = %s
        """, (video_id,))

        row = cursor.fetchone()
        return self._build_video(row) if row else None

    def _select_by_user(self, cursor, user_id: str) -> list[Video]:
        cursor.execute(f"""
            SELECT {_VIDEO_COLUMNS}
            FROM videos
            WHERE user_id = %s
            ORDER BY created_at DESC
        """, (user_id,))

        return [self._build_video(row) for row in cursor.fetchall()]

    def _delete(self, cursor, video_id: str) -> None:
        cursor.execute("""
            DELETE FROM videos
            WHERE video_id = %s
        """, (video_id,))
        self._conn.commit()

    def _build_video(self, row) -> Video:
        """Construct a Video from a row in _VIDEO_COLUMNS order."""
        return Video(
            id=str(row[0]),
            user_id=row[1],
            filename=row[2],
            storage_key=row[3],
            mime_type=row[4],
            size=int(row[5]),
            status=VideoStatus(row[6]),
            created_at=row[7],
            updated_at=row[8],
        )
