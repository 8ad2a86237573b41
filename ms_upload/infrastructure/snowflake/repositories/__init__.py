"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .videos import RepositoryError, VideoRepository

__all__ = ["RepositoryError", "VideoRepository"]
