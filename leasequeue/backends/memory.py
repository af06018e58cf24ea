"""
In-process memory backend.

Implements the same leasing rules as the database backend for a single
process: a message is claimable when it has no lease or its lease expired,
and expiry is only evaluated when the next claim looks at it.
"""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from leasequeue.backends.base import Backend
from leasequeue.clock import Clock, utcnow
from leasequeue.config import Settings
from leasequeue.constants import BackendKind, Capability
from leasequeue.db.repository import new_lease_token
from leasequeue.exceptions import QueueNotFoundError
from leasequeue.types.message import Message, compute_checksum, normalize_body
from leasequeue.validation import (
    require_int,
    validate_claim_arguments,
    validate_lease_token,
    validate_queue_name,
)

logger = logging.getLogger(__name__)


@dataclass
class _StoredMessage:
    id: int
    body: bytes
    checksum: str
    created_at: datetime
    lease_token: str | None = None
    lease_expires_at: datetime | None = None

    def is_claimable(self, now: datetime) -> bool:
        return self.lease_token is None or (
            self.lease_expires_at is not None and self.lease_expires_at < now
        )


@dataclass
class _StoredQueue:
    id: int
    name: str
    timeout: int
    messages: dict[int, _StoredMessage] = field(default_factory=dict)


class MemoryBackend(Backend):
    """Backend keeping queues in a dictionary guarded by a lock."""

    kind = BackendKind.MEMORY
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

    def __init__(self, clock: Clock = utcnow, settings: Settings | None = None):
        super().__init__(settings)
        self._clock = clock
        self._queues: dict[str, _StoredQueue] = {}
        # lease token -> (queue name, message id)
        self._tokens: dict[str, tuple[str, int]] = {}
        self._queue_ids = itertools.count(1)
        self._message_ids = itertools.count(1)
        self._lock = threading.RLock()

    def _get_queue(self, name: str) -> _StoredQueue:
        queue = self._queues.get(name)
        if queue is None:
            raise QueueNotFoundError(name)
        return queue

    def _to_message(self, queue: _StoredQueue, stored: _StoredMessage) -> Message:
        return Message(
            id=stored.id,
            queue_id=queue.id,
            queue_name=queue.name,
            body=stored.body,
            checksum=stored.checksum,
            created_at=stored.created_at,
            lease_token=stored.lease_token,
            lease_expires_at=stored.lease_expires_at,
        )

    async def create(self, name: str, timeout: int) -> bool:
        validate_queue_name(name)
        require_int("timeout", timeout, 1)
        with self._lock:
            if name in self._queues:
                return False
            self._queues[name] = _StoredQueue(id=next(self._queue_ids), name=name, timeout=timeout)
        logger.info("Created queue", extra={"queue": name, "timeout": timeout})
        return True

    async def delete(self, name: str) -> bool:
        with self._lock:
            queue = self._queues.pop(name, None)
            if queue is None:
                return False
            for stored in queue.messages.values():
                if stored.lease_token is not None:
                    self._tokens.pop(stored.lease_token, None)
        logger.info(
            "Deleted queue",
            extra={"queue": name, "messages_removed": len(queue.messages)},
        )
        return True

    async def is_exists(self, name: str) -> bool:
        with self._lock:
            return name in self._queues

    async def get_queues(self) -> set[str]:
        with self._lock:
            return set(self._queues)

    async def count(self, name: str) -> int:
        with self._lock:
            return len(self._get_queue(name).messages)

    async def send(self, name: str, body: bytes | str) -> Message:
        payload = normalize_body(body)
        with self._lock:
            queue = self._get_queue(name)
            stored = _StoredMessage(
                id=next(self._message_ids),
                body=payload,
                checksum=compute_checksum(payload),
                created_at=self._clock(),
            )
            queue.messages[stored.id] = stored
            return self._to_message(queue, stored)

    async def receive(self, name: str, max_messages: int, timeout: int) -> list[Message]:
        validate_claim_arguments(max_messages, timeout)
        if max_messages == 0:
            return []

        now = self._clock()
        expires_at = now + timedelta(seconds=timeout)
        claimed: list[Message] = []
        with self._lock:
            queue = self._get_queue(name)
            for stored in queue.messages.values():
                if len(claimed) >= max_messages:
                    break
                if not stored.is_claimable(now):
                    continue
                if stored.lease_token is not None:
                    # Expired lease: the old token no longer acknowledges anything
                    self._tokens.pop(stored.lease_token, None)
                stored.lease_token = new_lease_token()
                stored.lease_expires_at = expires_at
                self._tokens[stored.lease_token] = (name, stored.id)
                claimed.append(self._to_message(queue, stored))
        return claimed

    async def delete_message(self, lease_token: str) -> bool:
        validate_lease_token(lease_token)
        with self._lock:
            location = self._tokens.pop(lease_token, None)
            if location is None:
                return False
            queue_name, message_id = location
            queue = self._queues.get(queue_name)
            if queue is None:
                return False
            return queue.messages.pop(message_id, None) is not None
