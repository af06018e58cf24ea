"""
Unit tests for message, handle and batch types.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from leasequeue.types import Message, MessageBatch, QueueHandle, compute_checksum, normalize_body
from leasequeue.exceptions import InvalidArgumentError

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_message(message_id: int, body: bytes = b"hello", token: str | None = "tok") -> Message:
    return Message(
        id=message_id,
        queue_id=1,
        body=body,
        checksum=compute_checksum(body),
        created_at=NOW,
        lease_token=token,
        lease_expires_at=NOW + timedelta(seconds=30) if token else None,
    )


class TestMessage:
    """Tests for the Message snapshot."""

    def test_checksum_is_md5(self):
        """Test the checksum format."""
        assert compute_checksum(b"") == "d41d8cd98f00b204e9800998ecf8427e"

    def test_verify_checksum_detects_tampering(self):
        """Test checksum verification."""
        message = make_message(1)
        tampered = message.model_copy(update={"body": b"other"})

        assert message.verify_checksum() is True
        assert tampered.verify_checksum() is False

    def test_naive_timestamps_read_as_utc(self):
        """Test naive datetimes from the store are given UTC."""
        message = Message(
            id=1,
            queue_id=1,
            body=b"x",
            checksum=compute_checksum(b"x"),
            created_at=datetime(2026, 1, 1),
        )
        assert message.created_at == NOW

    def test_is_leased(self):
        """Test lease evaluation against a point in time."""
        message = make_message(1)

        assert message.is_leased(NOW) is True
        assert message.is_leased(NOW + timedelta(seconds=31)) is False
        assert make_message(2, token=None).is_leased(NOW) is False

    def test_frozen(self):
        """Test messages are immutable."""
        with pytest.raises(ValidationError):
            make_message(1).lease_token = "other"

    def test_json_keeps_binary_body(self):
        """Test a persisted message restores its exact body."""
        message = make_message(1, body=b"\x00\xff")

        restored = Message.model_validate_json(message.model_dump_json())

        assert restored == message
        assert restored.handle == "tok"

    @pytest.mark.parametrize(
        "body, expected",
        [
            ("  text\n", b"text"),
            (b" raw ", b" raw "),
            (bytearray(b"ba"), b"ba"),
        ],
    )
    def test_normalize_body(self, body, expected):
        """Test payload coercion."""
        assert normalize_body(body) == expected

    def test_normalize_body_rejects_other_types(self):
        """Test unsupported payload types."""
        with pytest.raises(InvalidArgumentError):
            normalize_body(12)


class TestQueueHandle:
    """Tests for QueueHandle validation."""

    def test_defaults(self):
        """Test the default visibility timeout."""
        assert QueueHandle(name="q").timeout == 30

    @pytest.mark.parametrize("kwargs", [{"name": ""}, {"name": "q", "timeout": 0}])
    def test_invalid(self, kwargs):
        """Test empty names and non-positive timeouts are rejected."""
        with pytest.raises(ValidationError):
            QueueHandle(**kwargs)


class TestMessageBatch:
    """Tests for the batch snapshot."""

    def test_sequence_behaviour(self):
        """Test length, indexing and slicing."""
        batch = MessageBatch([make_message(i, token=f"t{i}") for i in range(3)], queue_name="q")

        assert len(batch) == 3
        assert batch[1].id == 1
        assert isinstance(batch[1:], MessageBatch)
        assert [m.id for m in batch[1:]] == [1, 2]
        assert batch.tokens() == ["t0", "t1", "t2"]
        assert batch.queue_name == "q"

    def test_iteration_is_restartable(self):
        """Test iterating twice replays the same snapshot."""
        batch = MessageBatch([make_message(i) for i in range(2)])

        assert [m.id for m in batch] == [m.id for m in batch]

    def test_snapshot_ignores_source_changes(self):
        """Test later changes to the source list do not leak in."""
        source = [make_message(1)]
        batch = MessageBatch(source)
        source.append(make_message(2))

        assert len(batch) == 1

    def test_empty(self):
        """Test an empty batch is falsy."""
        assert not MessageBatch()
        assert MessageBatch().to_list() == []

    def test_to_list(self):
        """Test the plain-dict form."""
        [row] = MessageBatch([make_message(7)]).to_list()

        assert row["id"] == 7
        assert row["body"] == b"hello"
