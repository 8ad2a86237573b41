"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object storage (MinIO/S3)
- messaging: Message broker (RabbitMQ via kombu)
- snowflake: Video metadata persistence

These wrappers translate between external formats and our domain models.
"""
