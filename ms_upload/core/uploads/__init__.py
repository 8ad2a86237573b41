"""
Video ingestion logic.

Contains the domain models and the upload orchestrator.
"""

from .models import (
    IncomingFile,
    ProcessingMessage,
    UploadLimits,
    Video,
    VideoStatus,
)
from .service import UploadService, generate_storage_key

__all__ = [
    "IncomingFile",
    "ProcessingMessage",
    "UploadLimits",
    "Video",
    "VideoStatus",
    "UploadService",
    "generate_storage_key",
]
