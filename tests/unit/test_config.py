"""
Unit tests for settings and observability setup.
"""

import json
import logging
from collections.abc import Iterator

import pytest
import structlog
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import CollectorRegistry, generate_latest
from pydantic import ValidationError

from leasequeue import Queue
from leasequeue.backends import DatabaseBackend
from leasequeue.config import Settings
from leasequeue.constants import BackendKind
from leasequeue.db import LeaseStore
from leasequeue.observability import get_logger, log_context, setup_logging, tracing
from leasequeue.observability.metrics import MetricsCollector


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        """Test default values."""
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("BACKEND", raising=False)

        settings = Settings(_env_file=None)

        assert settings.backend == BackendKind.DATABASE
        assert settings.database_url is None
        assert settings.default_visibility_timeout == 30

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch):
        """Test values are read from the environment."""
        monkeypatch.setenv("BACKEND", "memory")
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
        monkeypatch.setenv("DEFAULT_VISIBILITY_TIMEOUT", "90")

        settings = Settings(_env_file=None)

        assert settings.backend == BackendKind.MEMORY
        assert settings.database_url == "sqlite+aiosqlite:///:memory:"
        assert settings.default_visibility_timeout == 90

    def test_rejects_non_positive_timeout(self):
        """Test the default timeout must be positive."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_visibility_timeout=0)


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Put the root and package loggers back the way the test found them."""
    loggers = [logging.getLogger(), logging.getLogger("leasequeue")]
    saved = [(logger.handlers[:], logger.level) for logger in loggers]
    yield
    for logger, (handlers, level) in zip(loggers, saved):
        logger.handlers = handlers
        logger.setLevel(level)
    structlog.reset_defaults()


class TestObservability:
    """Tests for logging, metrics and tracing."""

    def test_setup_logging_leaves_root_alone(self, test_settings: Settings, restore_logging):
        """Test the package logger is configured without touching root handlers."""
        root_handlers = logging.getLogger().handlers[:]

        configured = setup_logging(test_settings)
        setup_logging(test_settings)

        assert configured.name == "leasequeue"
        assert len(configured.handlers) == 1
        assert configured.level == logging.DEBUG
        assert logging.getLogger().handlers == root_handlers
        get_logger().info("configured", queue="q")

    def test_setup_logging_root(self, test_settings: Settings, restore_logging):
        """Test root mode quiets statement-level driver logging."""
        configured = setup_logging(test_settings, root=True)

        assert configured is logging.getLogger()
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_rejects_unknown_log_format(self):
        """Test only json and console rendering are accepted."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_format="xml")

    def test_log_context_is_scoped(self):
        """Test context fields are dropped when the block exits."""
        with log_context(queue="jobs", operation="send"):
            assert structlog.contextvars.get_contextvars() == {
                "queue": "jobs",
                "operation": "send",
            }
        assert "queue" not in structlog.contextvars.get_contextvars()

    async def test_store_records_carry_queue_context(
        self,
        test_settings: Settings,
        database_backend: DatabaseBackend,
        capsys: pytest.CaptureFixture[str],
        restore_logging,
    ):
        """Test records logged by the store carry the facade's queue and operation."""
        queue = await Queue.open(database_backend, "q")
        setup_logging(test_settings.model_copy(update={"log_format": "json"}))

        await queue.send("A")

        events = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line]
        [sent] = [event for event in events if event["event"] == "Sent message"]
        assert sent["queue"] == "q"
        assert sent["operation"] == "send"
        assert sent["logger"] == "leasequeue.db.repository"
        assert "message_id" in sent

    def test_metrics_collector(self):
        """Test claim and delete outcomes are counted."""
        registry = CollectorRegistry()
        metrics = MetricsCollector(registry)

        metrics.record_claim("1", claimed=2, lost=1, duration_seconds=0.01)
        metrics.record_delete(True)
        metrics.record_delete(False)

        assert metrics.registry is registry
        assert registry.get_sample_value("queue_messages_claimed_total", {"queue": "1"}) == 2
        assert registry.get_sample_value("queue_claim_races_lost_total", {"queue": "1"}) == 1
        assert registry.get_sample_value("queue_messages_deleted_total") == 1
        assert registry.get_sample_value("queue_delete_misses_total") == 1
        assert b"queue_claim_latency_seconds" in generate_latest(registry)

    async def test_store_operations_emit_spans(
        self,
        monkeypatch: pytest.MonkeyPatch,
        store: LeaseStore,
        queue_id: int,
    ):
        """Test send, claim and delete each run inside a span."""
        exporter = InMemorySpanExporter()
        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        monkeypatch.setattr(tracing, "_tracer", provider.get_tracer("leasequeue-test"))

        await store.send(queue_id, "A")
        [message] = await store.claim(queue_id, 1, 30)
        await store.delete(message.lease_token)

        spans = exporter.get_finished_spans()
        assert [span.name for span in spans] == [
            "send_message",
            "claim_messages",
            "delete_message",
        ]
        assert spans[1].attributes["max_messages"] == "1"
