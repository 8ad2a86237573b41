"""
ms-upload - video ingestion service.

Accepts video uploads from authenticated users, stores the binary in object
storage, records metadata in Snowflake and enqueues a processing job:
- core: Framework-agnostic ingestion logic
- infrastructure: External service integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
