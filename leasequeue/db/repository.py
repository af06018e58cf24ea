"""
Lease store for database operations.
Implements the visibility-timeout leasing protocol over the messages table.
"""

import logging
import secrets
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leasequeue.clock import Clock, utcnow
from leasequeue.constants import (
    DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
    LEASE_TOKEN_BYTES,
    SPAN_CLAIM_MESSAGES,
    SPAN_DELETE_MESSAGE,
    SPAN_SEND_MESSAGE,
)
from leasequeue.db.connection import unit_of_work
from leasequeue.db.models import MessageRecord, QueueRecord
from leasequeue.exceptions import (
    QueueError,
    QueueNotFoundError,
    StoreConnectionError,
    StoreError,
)
from leasequeue.observability.metrics import MetricsCollector, get_metrics
from leasequeue.observability.tracing import start_span
from leasequeue.types.message import Message, compute_checksum, normalize_body
from leasequeue.validation import (
    require_int,
    validate_claim_arguments,
    validate_lease_token,
    validate_queue_name,
)

logger = logging.getLogger(__name__)


def new_lease_token() -> str:
    """Generate an unguessable lease token."""
    return secrets.token_hex(LEASE_TOKEN_BYTES)


class LeaseStore:
    """
    Store for queue and message rows.

    Every public method runs as its own unit of work. Mutual exclusion between
    consumers comes solely from the conditional UPDATE issued per candidate
    row: the WHERE clause re-checks that the row is still claimable, so of two
    claimers racing for the same row only one sees ``rowcount == 1``.

    Claim order is unspecified. No FIFO or priority ordering is applied.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = utcnow,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the store.

        Args:
            session_factory: Factory producing sessions bound to the shared database.
            clock: Source of "now" for lease arithmetic, captured once per unit of work.
            metrics: Metrics collector. Uses the global collector if not provided.
        """
        self._session_factory = session_factory
        self._clock = clock
        self._metrics = metrics or get_metrics()

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncGenerator[AsyncSession]:
        """
        Open a unit of work and translate store failures.

        The connection is checked out before the block runs, so a store that
        cannot be reached surfaces as ``StoreConnectionError`` whatever the
        driver reports. The transaction is rolled back before any error leaves
        this block. Domain errors raised inside the block pass through unchanged.
        """
        try:
            async with unit_of_work(self._session_factory) as session:
                await self._connect(session, operation)
                yield session
        except QueueError:
            raise
        except (OSError, InterfaceError) as e:
            self._metrics.record_store_error(operation)
            logger.error(
                "Store unreachable",
                extra={"operation": operation, "error": str(e)},
            )
            raise StoreConnectionError(f"{operation} failed: store unreachable: {e}") from e
        except DBAPIError as e:
            self._metrics.record_store_error(operation)
            if e.connection_invalidated:
                logger.error(
                    "Connection lost",
                    extra={"operation": operation, "error": str(e)},
                )
                raise StoreConnectionError(f"{operation} failed: connection lost: {e}") from e
            logger.error(
                "Unit of work rolled back",
                extra={"operation": operation, "error": str(e)},
            )
            raise StoreError(f"{operation} failed: {e}") from e
        except SQLAlchemyError as e:
            self._metrics.record_store_error(operation)
            logger.error(
                "Unit of work rolled back",
                extra={"operation": operation, "error": str(e)},
            )
            raise StoreError(f"{operation} failed: {e}") from e

    async def _connect(self, session: AsyncSession, operation: str) -> None:
        try:
            await session.connection()
        except (OSError, DBAPIError, PoolTimeoutError) as e:
            self._metrics.record_store_error(operation)
            logger.error(
                "Store unreachable",
                extra={"operation": operation, "error": str(e)},
            )
            raise StoreConnectionError(f"{operation} failed: store unreachable: {e}") from e

    # -- queues ---------------------------------------------------------------

    async def create_queue(
        self,
        name: str,
        timeout: int = DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
    ) -> bool:
        """
        Persist a new queue.

        Args:
            name: Unique queue name.
            timeout: Default visibility timeout in seconds.

        Returns:
            True if the queue was created, False if the name is already taken.
        """
        validate_queue_name(name)
        require_int("timeout", timeout, 1)

        try:
            async with self._transaction("create_queue") as session:
                if await self._find_queue(session, name) is not None:
                    return False
                session.add(QueueRecord(name=name, timeout=timeout))
                await session.flush()
        except StoreError as e:
            # Another process inserted the same name between our check and insert
            if isinstance(e.__cause__, IntegrityError):
                logger.info("Queue created concurrently", extra={"queue": name})
                return False
            raise

        logger.info("Created queue", extra={"queue": name, "timeout": timeout})
        return True

    async def get_queue(self, name: str) -> QueueRecord | None:
        """
        Get a queue by name.

        Args:
            name: The queue name.

        Returns:
            The detached QueueRecord or None if not found.
        """
        async with self._transaction("get_queue") as session:
            return await self._find_queue(session, name)

    async def get_queue_id(self, name: str) -> int:
        """
        Resolve a queue name to its id.

        Raises:
            QueueNotFoundError: If no queue has this name.
        """
        queue = await self.get_queue(name)
        if queue is None:
            raise QueueNotFoundError(name)
        return queue.id

    async def queue_exists(self, name: str) -> bool:
        """Check whether a queue with this name exists."""
        return await self.get_queue(name) is not None

    async def delete_queue(self, name: str) -> bool:
        """
        Delete a queue and every message scoped to it.

        Args:
            name: The queue name.

        Returns:
            True if the queue existed and was removed, False otherwise.
        """
        async with self._transaction("delete_queue") as session:
            queue = await self._find_queue(session, name)
            if queue is None:
                return False

            # Explicit cascade so the behaviour does not depend on FK enforcement
            result = await session.execute(
                delete(MessageRecord)
                .where(MessageRecord.queue_id == queue.id)
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                delete(QueueRecord)
                .where(QueueRecord.id == queue.id)
                .execution_options(synchronize_session=False)
            )

        logger.info(
            "Deleted queue",
            extra={"queue": name, "messages_removed": result.rowcount},
        )
        return True

    async def list_queue_names(self) -> set[str]:
        """Get the names of all queues."""
        async with self._transaction("get_queues") as session:
            result = await session.execute(select(QueueRecord.name))
            return set(result.scalars().all())

    async def count(self, queue_id: int) -> int:
        """
        Count the messages of a queue, leased or not.

        Args:
            queue_id: The queue id.

        Returns:
            Number of messages currently stored for the queue.
        """
        async with self._transaction("count") as session:
            stmt = (
                select(func.count())
                .select_from(MessageRecord)
                .where(MessageRecord.queue_id == queue_id)
            )
            result = await session.execute(stmt)
            depth = result.scalar() or 0

        self._metrics.update_queue_depth(str(queue_id), depth)
        return depth

    # -- messages -------------------------------------------------------------

    async def send(
        self,
        queue_id: int,
        body: bytes | str,
        queue_name: str | None = None,
    ) -> Message:
        """
        Insert a new, unleased message.

        Args:
            queue_id: The owning queue id.
            body: Message payload. Text is stripped and UTF-8 encoded.
            queue_name: Optional queue name to stamp on the returned copy.

        Returns:
            Copy of the stored message, including its id and checksum.

        Raises:
            QueueNotFoundError: If the queue does not exist.
        """
        payload = normalize_body(body)
        now = self._clock()

        with start_span(SPAN_SEND_MESSAGE, queue_id=queue_id, size=len(payload)):
            async with self._transaction("send") as session:
                queue = await session.get(QueueRecord, queue_id)
                if queue is None:
                    raise QueueNotFoundError(queue_id)

                record = MessageRecord(
                    queue_id=queue_id,
                    body=payload,
                    checksum=compute_checksum(payload),
                    created_at=now,
                    lease_token=None,
                    lease_expires_at=None,
                )
                session.add(record)
                await session.flush()
                message = record.to_message(queue_name=queue_name or queue.name)

        self._metrics.record_sent(str(queue_id))
        logger.debug(
            "Sent message",
            extra={"queue_id": queue_id, "message_id": message.id},
        )
        return message

    async def claim(
        self,
        queue_id: int,
        max_messages: int,
        visibility_timeout: int,
        queue_name: str | None = None,
    ) -> list[Message]:
        """
        Lease up to ``max_messages`` claimable messages.

        A request for zero messages returns immediately without touching the
        store. Otherwise one transaction selects candidate rows and leases each
        one through a conditional update; rows that another claimer leased in
        the meantime are skipped, so the result may be shorter than the
        candidate list.

        Concurrent claimers often select the same candidates, so a claim can
        come back short or empty while other messages are still claimable.
        An empty result means "nothing won this round", not "queue drained";
        consumers should simply claim again.

        Args:
            queue_id: The queue id.
            max_messages: Maximum number of messages to lease.
            visibility_timeout: Lease duration in seconds.
            queue_name: Optional queue name to stamp on the returned copies.

        Returns:
            Copies of the leased messages carrying their new lease tokens.

        Raises:
            InvalidArgumentError: If max_messages or visibility_timeout is invalid.
            StoreError: If the unit of work failed; no lease survives.
        """
        validate_claim_arguments(max_messages, visibility_timeout)
        if max_messages == 0:
            return []

        now = self._clock()
        expires_at = now + timedelta(seconds=visibility_timeout)
        claimed: list[Message] = []
        lost = 0
        started = time.perf_counter()

        with start_span(SPAN_CLAIM_MESSAGES, queue_id=queue_id, max_messages=max_messages):
            async with self._transaction("claim") as session:
                candidates = await self._select_claimable(session, queue_id, max_messages, now)
                for record in candidates:
                    token = new_lease_token()
                    if await self._lease(session, record.id, token, expires_at, now):
                        claimed.append(
                            record.to_message(
                                queue_name=queue_name,
                                lease_token=token,
                                lease_expires_at=expires_at,
                            )
                        )
                    else:
                        lost += 1

        self._metrics.record_claim(
            str(queue_id),
            claimed=len(claimed),
            lost=lost,
            duration_seconds=time.perf_counter() - started,
        )
        if claimed or lost:
            logger.info(
                f"Leased {len(claimed)} messages",
                extra={
                    "queue_id": queue_id,
                    "claimed": len(claimed),
                    "lost": lost,
                    "visibility_timeout": visibility_timeout,
                },
            )
        return claimed

    async def delete(self, lease_token: str) -> bool:
        """
        Delete the message holding this lease token.

        The row is removed even if its lease already expired, as long as no
        other claim has replaced the token.

        Args:
            lease_token: Token returned by the claim.

        Returns:
            True if a message was deleted, False if the token matched nothing.
        """
        validate_lease_token(lease_token)

        with start_span(SPAN_DELETE_MESSAGE):
            async with self._transaction("delete_message") as session:
                result = await session.execute(
                    delete(MessageRecord)
                    .where(MessageRecord.lease_token == lease_token)
                    .execution_options(synchronize_session=False)
                )
                deleted = result.rowcount > 0

        self._metrics.record_delete(deleted)
        if not deleted:
            logger.debug("Lease token matched no message")
        return deleted

    # -- internals ------------------------------------------------------------

    async def _find_queue(self, session: AsyncSession, name: str) -> QueueRecord | None:
        result = await session.execute(select(QueueRecord).where(QueueRecord.name == name))
        return result.scalar_one_or_none()

    async def _select_claimable(
        self,
        session: AsyncSession,
        queue_id: int,
        limit: int,
        now: datetime,
    ) -> list[MessageRecord]:
        """
        Select up to ``limit`` claimable rows of a queue.

        SKIP LOCKED keeps concurrent claimers from queueing behind each other
        on dialects that support it; it is not what guarantees exclusivity.
        """
        stmt = (
            select(MessageRecord)
            .where(
                MessageRecord.queue_id == queue_id,
                MessageRecord.claimable_clause(now),
            )
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def _lease(
        self,
        session: AsyncSession,
        message_id: int,
        token: str,
        expires_at: datetime,
        now: datetime,
    ) -> bool:
        """
        Lease one row if it is still claimable at ``now``.

        Returns:
            True if this update won the row, False if another claimer holds it.
        """
        stmt = (
            update(MessageRecord)
            .where(
                MessageRecord.id == message_id,
                MessageRecord.claimable_clause(now),
            )
            .values(lease_token=token, lease_expires_at=expires_at)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1
