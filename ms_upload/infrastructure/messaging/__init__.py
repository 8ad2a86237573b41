"""
Message broker integration for processing jobs.

Publishes to durable RabbitMQ queues via kombu.
Includes mock mode for local development without a broker.
"""

from .publisher import (
    BrokerConfig,
    KombuQueuePublisher,
    MockQueuePublisher,
    PublishError,
    QueuePublisher,
    create_queue_publisher,
)

__all__ = [
    "BrokerConfig",
    "KombuQueuePublisher",
    "MockQueuePublisher",
    "PublishError",
    "QueuePublisher",
    "create_queue_publisher",
]
