"""
Message broker publisher for processing jobs.

Publishes JSON messages to durable RabbitMQ queues through kombu. kombu owns
the reconnection logic: a publish that hits a dropped connection reconnects,
re-declares its queue and retries a bounded number of times, then fails with
PublishError. A publish never reports success without the broker having
accepted the message (publisher confirms are requested on AMQP).

One connection and one producer are shared by every request. kombu channels
are not thread-safe, so publishes are serialized behind a lock.

Mock mode records messages in memory for local development and tests.
"""

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from ...core.errors import DependencyError

logger = logging.getLogger(__name__)


class PublishError(DependencyError):
    """Raised when a message could not be handed to the broker."""
    pass


@dataclass(frozen=True)
class BrokerConfig:
    """Connection URL, queue names and retry bounds."""
    url: str
    processing_queue: str
    failed_queue: str
    connect_max_retries: int = 5
    publish_max_retries: int = 3

    @property
    def queues(self) -> tuple[str, ...]:
        return (self.processing_queue, self.failed_queue)


class QueuePublisher(Protocol):
    """
    Protocol for job publishing.

    connect() and close() bracket the lifetime of the application.
    """

    @property
    def is_connected(self) -> bool:
        ...

    async def connect(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def publish(self, queue_name: str, message: dict[str, Any]) -> None:
        ...

    async def publish_video_processing(self, message: dict[str, Any]) -> None:
        ...

    async def publish_video_failed(self, message: dict[str, Any]) -> None:
        ...


class KombuQueuePublisher:
    """
    RabbitMQ publisher built on kombu.

    Both queues are declared durable when the connection is established.
    Declaration is idempotent, so restarting against an existing broker is
    harmless as long as the queue arguments have not changed.
    """

    def __init__(self, config: BrokerConfig) -> None:
        try:
            from kombu import Queue
        except ImportError:
            raise ImportError(
                "kombu is required for publishing. Install with: pip install kombu"
            )

        self._config = config
        self._queues = {
            name: Queue(name, routing_key=name, durable=True)
            for name in config.queues
        }
        self._connection = None
        self._producer = None
        self._lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return self._producer is not None and bool(self._connection and self._connection.connected)

    async def connect(self) -> None:
        await asyncio.to_thread(self._connect)

    async def close(self) -> None:
        await asyncio.to_thread(self._close)

    async def publish(self, queue_name: str, message: dict[str, Any]) -> None:
        """
        Serialize message as JSON and send it to the named queue.

        Raises PublishError if the publisher is not connected, the queue is
        unknown, or the broker stays unreachable through every retry.
        """
        await asyncio.to_thread(self._publish, queue_name, message)

    async def publish_video_processing(self, message: dict[str, Any]) -> None:
        await self.publish(self._config.processing_queue, message)

    async def publish_video_failed(self, message: dict[str, Any]) -> None:
        await self.publish(self._config.failed_queue, message)

    # -----------------------------------------------------------------------
    # Private Methods (run in worker threads)
    # -----------------------------------------------------------------------

    def _connect(self) -> None:
        from kombu import Connection, Producer

        with self._lock:
            if self._producer is not None:
                return

            connection = Connection(
                self._config.url,
                transport_options={'confirm_publish': True},
            )

            try:
                connection.ensure_connection(
                    errback=self._on_connection_error,
                    max_retries=self._config.connect_max_retries,
                )
                channel = connection.channel()
                for queue in self._queues.values():
                    queue(channel).declare()
            except Exception as e:
                logger.error(
                    "Failed to connect to broker",
                    extra={"error": str(e)}
                )
                connection.release()
                raise PublishError(f"Broker connection failed: {e}")

            self._connection = connection
            self._producer = Producer(channel, serializer='json')

        logger.info(
            "Connected to broker, queues asserted",
            extra={"queues": list(self._queues)}
        )

    def _publish(self, queue_name: str, message: dict[str, Any]) -> None:
        queue = self._queues.get(queue_name)
        if queue is None:
            raise PublishError(f"Unknown queue: {queue_name}")

        with self._lock:
            if self._producer is None:
                raise PublishError("Broker channel is not available")

            try:
                self._producer.publish(
                    message,
                    exchange='',
                    routing_key=queue_name,
                    declare=[queue],
                    delivery_mode=2,
                    retry=True,
                    retry_policy={
                        'max_retries': self._config.publish_max_retries,
                        'errback': self._on_connection_error,
                    },
                )
            except Exception as e:
                logger.error(
                    "Error publishing message",
                    extra={"queue": queue_name, "error": str(e)}
                )
                raise PublishError(f"Publish to {queue_name} failed: {e}")

        logger.info(
            "Message published",
            extra={"queue": queue_name, "body": json.dumps(message)}
        )

    def _close(self) -> None:
        """Close the channel, then the connection."""
        with self._lock:
            producer, connection = self._producer, self._connection
            self._producer = None
            self._connection = None

            if producer is not None:
                try:
                    producer.channel.close()
                except Exception as e:
                    logger.warning(
                        "Error closing broker channel",
                        extra={"error": str(e)}
                    )

            if connection is not None:
                connection.release()
                logger.info("Disconnected from broker")

    def _on_connection_error(self, exc: Exception, interval: float) -> None:
        logger.error(
            "Broker connection lost, retrying",
            extra={"error": str(exc), "retry_in_seconds": interval}
        )


# ---------------------------------------------------------------------------
# Mock Publisher for Local Development
# ---------------------------------------------------------------------------

class MockQueuePublisher:
    """
    In-memory publisher for local development.

    Messages are kept per queue in publish order. Publishing before
    connect() or after close() fails the same way the real publisher does.
    """

    def __init__(
        self,
        processing_queue: str = "video.processing",
        failed_queue: str = "video.failed",
    ) -> None:
        self._processing_queue = processing_queue
        self._failed_queue = failed_queue
        self._connected = False
        self.messages: dict[str, list[dict[str, Any]]] = {
            processing_queue: [],
            failed_queue: [],
        }
        logger.info("Initialized mock queue publisher (in-memory)")

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    async def publish(self, queue_name: str, message: dict[str, Any]) -> None:
        if not self._connected:
            raise PublishError("Broker channel is not available")
        if queue_name not in self.messages:
            raise PublishError(f"Unknown queue: {queue_name}")

        # Round-trip through JSON so non-serializable payloads fail here too
        self.messages[queue_name].append(json.loads(json.dumps(message)))

    async def publish_video_processing(self, message: dict[str, Any]) -> None:
        await self.publish(self._processing_queue, message)

    async def publish_video_failed(self, message: dict[str, Any]) -> None:
        await self.publish(self._failed_queue, message)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_queue_publisher(
    config: Optional[BrokerConfig] = None,
    mock_mode: bool = False,
) -> QueuePublisher:
    """
    Create queue publisher based on configuration.

    The returned publisher is not connected yet; call connect() during
    application startup.
    """
    if mock_mode:
        if config is None:
            return MockQueuePublisher()
        return MockQueuePublisher(config.processing_queue, config.failed_queue)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return KombuQueuePublisher(config)
