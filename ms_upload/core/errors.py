"""
Error kinds surfaced by the ingestion service.

Each exception carries an ErrorKind so the HTTP layer can pick a status code
without inspecting message text.
"""

from enum import Enum


class ErrorKind(Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    DEPENDENCY = "dependency"


class UploadError(Exception):
    """Base class for every error the upload service reports to callers."""
    kind: ErrorKind = ErrorKind.DEPENDENCY

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(UploadError):
    """Missing, oversized or disallowed file. Raised before any side effect."""
    kind = ErrorKind.VALIDATION


class NotFoundError(UploadError):
    """The requested video does not exist."""
    kind = ErrorKind.NOT_FOUND


class AuthorizationError(UploadError):
    """The video exists but belongs to another user."""
    kind = ErrorKind.FORBIDDEN


class DependencyError(UploadError):
    """Object store, database or broker call failed."""
    kind = ErrorKind.DEPENDENCY
