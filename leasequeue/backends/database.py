"""
SQL database backend built on the lease store.
"""

import logging

from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncEngine

from leasequeue.backends.base import Backend
from leasequeue.clock import Clock, utcnow
from leasequeue.config import Settings, get_settings
from leasequeue.constants import BackendKind, Capability
from leasequeue.db.connection import create_engine, create_schema, create_session_factory
from leasequeue.db.repository import LeaseStore
from leasequeue.observability.metrics import MetricsCollector, get_metrics
from leasequeue.observability.tracing import instrument_sqlalchemy
from leasequeue.types.message import Message
from leasequeue.validation import validate_claim_arguments

logger = logging.getLogger(__name__)


class DatabaseBackend(Backend):
    """
    Backend storing queues and messages in a SQL database.

    Queue names are resolved to ids on every call; nothing read from the
    store is cached between calls.
    """

    kind = BackendKind.DATABASE
    CAPABILITIES = {
        Capability.CREATE: True,
        Capability.DELETE: True,
        Capability.SEND: True,
        Capability.RECEIVE: True,
        Capability.DELETE_MESSAGE: True,
        Capability.GET_QUEUES: True,
        Capability.COUNT: True,
        Capability.IS_EXISTS: True,
    }

    def __init__(
        self,
        settings: Settings | None = None,
        engine: AsyncEngine | None = None,
        clock: Clock = utcnow,
    ):
        """
        Initialize the backend.

        Args:
            settings: Settings carrying the database URL. Uses the global settings if not provided.
            engine: Existing engine to share. Built from settings if not provided.
            clock: Source of "now" for lease arithmetic.

        Raises:
            ConfigurationError: If no engine is given and no database URL is configured.
        """
        super().__init__(settings or get_settings())
        self._owns_engine = engine is None
        self._engine = engine or create_engine(self._settings)
        if self._settings.otel_instrument_sqlalchemy:
            instrument_sqlalchemy(self._engine.sync_engine)
        if self._settings.metrics_enabled:
            metrics = get_metrics()
        else:
            # Private registry: nothing is exported
            metrics = MetricsCollector(CollectorRegistry())
        self._store = LeaseStore(create_session_factory(self._engine), clock=clock, metrics=metrics)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def store(self) -> LeaseStore:
        return self._store

    async def create_schema(self) -> None:
        """Create the queue tables if they are missing."""
        await create_schema(self._engine)

    async def create(self, name: str, timeout: int) -> bool:
        return await self._store.create_queue(name, timeout)

    async def delete(self, name: str) -> bool:
        return await self._store.delete_queue(name)

    async def is_exists(self, name: str) -> bool:
        return await self._store.queue_exists(name)

    async def get_queues(self) -> set[str]:
        return await self._store.list_queue_names()

    async def count(self, name: str) -> int:
        queue_id = await self._store.get_queue_id(name)
        return await self._store.count(queue_id)

    async def send(self, name: str, body: bytes | str) -> Message:
        queue_id = await self._store.get_queue_id(name)
        return await self._store.send(queue_id, body, queue_name=name)

    async def receive(self, name: str, max_messages: int, timeout: int) -> list[Message]:
        # A zero-message receive must not even resolve the queue
        validate_claim_arguments(max_messages, timeout)
        if max_messages == 0:
            return []
        queue_id = await self._store.get_queue_id(name)
        return await self._store.claim(queue_id, max_messages, timeout, queue_name=name)

    async def delete_message(self, lease_token: str) -> bool:
        return await self._store.delete(lease_token)

    async def close(self) -> None:
        if self._owns_engine:
            await self._engine.dispose()
            logger.info("Database backend closed")

    def __repr__(self) -> str:
        return f"DatabaseBackend(url={self._engine.url!r})"
