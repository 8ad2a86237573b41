"""
Tests for the queue publishers.

The kombu publisher runs against kombu's in-memory transport, which goes
through the same Connection/Producer/Queue machinery as AMQP without a
broker. Queue names are randomized because memory transport state is
shared by every connection in the process.
"""

import asyncio
import uuid

import pytest
from kombu import Connection

from ms_upload.infrastructure.messaging import (
    BrokerConfig,
    KombuQueuePublisher,
    MockQueuePublisher,
    PublishError,
    create_queue_publisher,
)


def run(coro):
    return asyncio.run(coro)


def receive(queue_name: str):
    with Connection("memory://") as conn:
        queue = conn.SimpleQueue(queue_name)
        try:
            message = queue.get(block=True, timeout=1)
            message.ack()
            return message.payload
        finally:
            queue.close()


@pytest.fixture
def config():
    suffix = uuid.uuid4().hex
    return BrokerConfig(
        url="memory://",
        processing_queue=f"video.processing.{suffix}",
        failed_queue=f"video.failed.{suffix}",
    )


@pytest.fixture
def kombu_publisher(config):
    publisher = KombuQueuePublisher(config)
    run(publisher.connect())
    yield publisher
    run(publisher.close())


# ---------------------------------------------------------------------------
# Kombu Publisher
# ---------------------------------------------------------------------------

class TestKombuPublisher:

    def test_connect_marks_publisher_ready(self, kombu_publisher):
        assert kombu_publisher.is_connected

    def test_processing_message_is_delivered_as_json(self, kombu_publisher, config):
        message = {
            "videoId": "v1",
            "storageKey": "k.mp4",
            "userId": "u1",
            "timestamp": "2024-03-01T12:00:00.000Z",
        }

        run(kombu_publisher.publish_video_processing(message))

        assert receive(config.processing_queue) == message

    def test_failed_message_goes_to_failed_queue(self, kombu_publisher, config):
        run(kombu_publisher.publish_video_failed({"videoId": "v1", "error": "decode"}))

        assert receive(config.failed_queue) == {"videoId": "v1", "error": "decode"}

    def test_messages_keep_publish_order(self, kombu_publisher, config):
        for n in range(3):
            run(kombu_publisher.publish(config.processing_queue, {"n": n}))

        assert [receive(config.processing_queue)["n"] for _ in range(3)] == [0, 1, 2]

    def test_unknown_queue_is_rejected(self, kombu_publisher):
        with pytest.raises(PublishError, match="Unknown queue"):
            run(kombu_publisher.publish("somewhere.else", {"x": 1}))

    def test_connect_is_idempotent(self, kombu_publisher, config):
        run(kombu_publisher.connect())
        run(kombu_publisher.publish_video_processing({"x": 1}))
        assert receive(config.processing_queue) == {"x": 1}

    def test_publish_before_connect_fails(self, config):
        publisher = KombuQueuePublisher(config)
        assert not publisher.is_connected

        with pytest.raises(PublishError, match="not available"):
            run(publisher.publish_video_processing({"x": 1}))

    def test_publish_after_close_fails(self, config):
        publisher = KombuQueuePublisher(config)
        run(publisher.connect())
        run(publisher.close())

        assert not publisher.is_connected
        with pytest.raises(PublishError):
            run(publisher.publish_video_processing({"x": 1}))

    def test_close_twice_is_harmless(self, config):
        publisher = KombuQueuePublisher(config)
        run(publisher.connect())
        run(publisher.close())
        run(publisher.close())


# ---------------------------------------------------------------------------
# Mock Publisher
# ---------------------------------------------------------------------------

class TestMockPublisher:

    def test_records_messages_per_queue(self):
        publisher = MockQueuePublisher("p", "f")
        run(publisher.connect())

        run(publisher.publish_video_processing({"videoId": "v1"}))
        run(publisher.publish_video_failed({"videoId": "v2"}))

        assert publisher.messages == {"p": [{"videoId": "v1"}], "f": [{"videoId": "v2"}]}

    def test_requires_connection(self):
        publisher = MockQueuePublisher()
        with pytest.raises(PublishError):
            run(publisher.publish_video_processing({"x": 1}))

    def test_rejects_unserializable_payload(self):
        publisher = MockQueuePublisher()
        run(publisher.connect())
        with pytest.raises(TypeError):
            run(publisher.publish_video_processing({"x": object()}))


class TestFactory:

    def test_mock_mode(self, config):
        publisher = create_queue_publisher(config, mock_mode=True)
        assert isinstance(publisher, MockQueuePublisher)
        assert set(publisher.messages) == set(config.queues)

    def test_real_mode_requires_config(self):
        with pytest.raises(ValueError):
            create_queue_publisher(mock_mode=False)

    def test_real_mode_builds_kombu_publisher(self, config):
        assert isinstance(create_queue_publisher(config), KombuQueuePublisher)
