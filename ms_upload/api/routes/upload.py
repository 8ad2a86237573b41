"""
Video upload API endpoints.

Thin mapping between HTTP and the UploadService:
- POST   /upload/video               ingest a video (multipart field "file")
- GET    /upload/videos              list the caller's videos
- GET    /upload/videos/{id}         one video
- GET    /upload/videos/{id}/url     presigned download URL
- DELETE /upload/videos/{id}         delete a video

Every route requires a bearer token. Domain errors (validation, not found,
forbidden, dependency failures) are mapped to status codes by the
application's exception handler, not here.
"""

import logging
from datetime import datetime
from typing import Annotated, Union

from fastapi import APIRouter, File, Response, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field

from ...core.uploads import IncomingFile, Video
from ..dependencies import CurrentUser, SettingsDep, UploadServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class VideoResponse(BaseModel):
    """A stored video as returned to clients."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Video identifier")
    user_id: str = Field(alias="userId", description="Owning user")
    filename: str = Field(description="Original client filename")
    storage_key: str = Field(alias="storageKey", description="Object key in the videos bucket")
    mime_type: str = Field(alias="mimeType", description="Content type of the upload")
    size: int = Field(description="Size in bytes")
    status: str = Field(description="Processing status")
    created_at: datetime = Field(alias="createdAt", description="When the video was uploaded")
    updated_at: datetime = Field(alias="updatedAt", description="Last status change")

    @classmethod
    def from_video(cls, video: Video) -> "VideoResponse":
        return cls(
            id=video.id,
            user_id=video.user_id,
            filename=video.filename,
            storage_key=video.storage_key,
            mime_type=video.mime_type,
            size=video.size,
            status=video.status.value,
            created_at=video.created_at,
            updated_at=video.updated_at,
        )


class VideoUrlResponse(BaseModel):
    """Presigned download URL."""
    url: str = Field(description="Time-limited URL to fetch the video directly from storage")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/video",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload video",
    description="Store a video and queue it for processing",
    responses={
        400: {"description": "Invalid file"},
        401: {"description": "Unauthorized"},
    },
)
async def upload_video(
    user: CurrentUser,
    service: UploadServiceDep,
    settings: SettingsDep,
    file: Annotated[Union[UploadFile, str, None], File(description="Video file")] = None,
) -> VideoResponse:
    """
    Upload a video.

    A "file" field sent as plain text counts as no file, so it is rejected
    by the service like a missing one. At most one byte past the size limit
    is read into memory; that is enough for the service to reject it.
    """
    incoming = None
    if file is not None and not isinstance(file, str):
        incoming = IncomingFile(
            filename=file.filename or "",
            content_type=file.content_type or "",
            data=await file.read(settings.max_file_size + 1),
        )

    logger.info(
        "Video upload started",
        extra={
            "user_id": user.user_id,
            "video_filename": incoming.filename if incoming else None,
            "content_type": incoming.content_type if incoming else None,
        }
    )

    video = await service.upload_video(user.user_id, incoming)
    return VideoResponse.from_video(video)


@router.get(
    "/videos",
    response_model=list[VideoResponse],
    status_code=status.HTTP_200_OK,
    summary="List my videos",
    description="All videos uploaded by the authenticated user, most recent first",
)
async def list_videos(
    user: CurrentUser,
    service: UploadServiceDep,
) -> list[VideoResponse]:
    videos = await service.list_user_videos(user.user_id)
    return [VideoResponse.from_video(video) for video in videos]


@router.get(
    "/videos/{video_id}",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Get video",
    responses={
        403: {"description": "Video belongs to another user"},
        404: {"description": "Video not found"},
    },
)
async def get_video(
    video_id: str,
    user: CurrentUser,
    service: UploadServiceDep,
) -> VideoResponse:
    video = await service.get_video_by_id(video_id, user.user_id)
    return VideoResponse.from_video(video)


@router.get(
    "/videos/{video_id}/url",
    response_model=VideoUrlResponse,
    status_code=status.HTTP_200_OK,
    summary="Get download URL",
    responses={
        403: {"description": "Video belongs to another user"},
        404: {"description": "Video not found"},
    },
)
async def get_video_url(
    video_id: str,
    user: CurrentUser,
    service: UploadServiceDep,
) -> VideoUrlResponse:
    url = await service.get_video_url(video_id, user.user_id)
    return VideoUrlResponse(url=url)


@router.delete(
    "/videos/{video_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete video",
    responses={
        403: {"description": "Video belongs to another user"},
        404: {"description": "Video not found"},
    },
)
async def delete_video(
    video_id: str,
    user: CurrentUser,
    service: UploadServiceDep,
) -> Response:
    await service.delete_video(video_id, user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
