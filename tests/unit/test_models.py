"""
Unit tests for the ingestion domain models.

These tests verify the core value objects without touching
external services (no object store, no database, no broker).
"""

from datetime import datetime, timedelta, timezone

import pytest

from ms_upload.core.uploads.models import (
    IncomingFile,
    ProcessingMessage,
    UploadLimits,
    Video,
    VideoStatus,
    format_timestamp,
)
from ms_upload.core.uploads.service import generate_storage_key


def make_video(**overrides) -> Video:
    fields = dict(
        user_id="u1",
        filename="clip.mp4",
        storage_key="abc.mp4",
        mime_type="video/mp4",
        size=10,
    )
    fields.update(overrides)
    return Video(**fields)


# ---------------------------------------------------------------------------
# IncomingFile Tests
# ---------------------------------------------------------------------------

class TestIncomingFile:
    """Tests for the IncomingFile value object."""

    def test_size_is_byte_length(self):
        file = IncomingFile("clip.mp4", "video/mp4", b"0123456789")
        assert file.size == 10

    def test_extension_is_lowercased(self):
        assert IncomingFile("Holiday.MOV", "video/quicktime", b"x").extension == "mov"

    def test_extension_uses_last_suffix(self):
        assert IncomingFile("clip.final.mp4", "video/mp4", b"x").extension == "mp4"

    @pytest.mark.parametrize("filename", [
        "clip",
        "clip.",
        "../../etc/passwd",
        "clip.mp4/../../x",
        "clip.a-b",
        "clip." + "x" * 17,
    ])
    def test_suspicious_extensions_are_dropped(self, filename):
        """Anything that isn't a short alphanumeric suffix is ignored."""
        assert IncomingFile(filename, "video/mp4", b"x").extension is None


class TestUploadLimits:

    def test_rejects_non_positive_size(self):
        with pytest.raises(ValueError, match="positive"):
            UploadLimits(max_file_size=0, allowed_mime_types=("video/mp4",))


# ---------------------------------------------------------------------------
# Storage Key Tests
# ---------------------------------------------------------------------------

class TestStorageKey:
    """Storage keys must be unique and free of user input."""

    def test_key_keeps_extension(self):
        key = generate_storage_key(IncomingFile("clip.mp4", "video/mp4", b"x"))
        assert key.endswith(".mp4")

    def test_key_ignores_filename(self):
        key = generate_storage_key(IncomingFile("my secret clip.mp4", "video/mp4", b"x"))
        assert "secret" not in key
        assert " " not in key

    def test_key_without_extension_has_no_dot(self):
        key = generate_storage_key(IncomingFile("../../clip", "video/mp4", b"x"))
        assert "." not in key
        assert "/" not in key

    def test_keys_are_unique(self):
        file = IncomingFile("clip.mp4", "video/mp4", b"x")
        keys = {generate_storage_key(file) for _ in range(200)}
        assert len(keys) == 200


# ---------------------------------------------------------------------------
# Video Tests
# ---------------------------------------------------------------------------

class TestVideo:

    def test_new_video_is_pending(self):
        video = make_video()
        assert video.status == VideoStatus.PENDING

    def test_ids_are_generated(self):
        assert make_video().id != make_video().id

    def test_ownership(self):
        video = make_video(user_id="u1")
        assert video.is_owned_by("u1")
        assert not video.is_owned_by("u2")


# ---------------------------------------------------------------------------
# Processing Message Tests
# ---------------------------------------------------------------------------

class TestProcessingMessage:
    """The queue message is a wire contract with the processing worker."""

    def test_message_has_exact_keys(self):
        message = ProcessingMessage.for_video(make_video()).to_dict()
        assert set(message) == {"videoId", "storageKey", "userId", "timestamp"}

    def test_message_references_video(self):
        video = make_video(user_id="u7", storage_key="k.mp4")
        message = ProcessingMessage.for_video(video).to_dict()

        assert message["videoId"] == video.id
        assert message["storageKey"] == "k.mp4"
        assert message["userId"] == "u7"

    def test_timestamp_is_utc_iso8601(self):
        moment = datetime(2024, 3, 1, 12, 30, 5, 123456, tzinfo=timezone.utc)
        message = ProcessingMessage("v", "k", "u", timestamp=moment).to_dict()
        assert message["timestamp"] == "2024-03-01T12:30:05.123Z"

    def test_format_timestamp_converts_to_utc(self):
        moment = datetime(2024, 3, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(moment) == "2024-03-01T12:00:00.000Z"
