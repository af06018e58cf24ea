"""
Queue facade.
Routes send/receive/delete calls to a backend after checking its capabilities.
"""

import logging
from typing import Any

from leasequeue.backends.base import Backend
from leasequeue.backends.factory import create_backend
from leasequeue.backends.null import NullBackend
from leasequeue.config import Settings
from leasequeue.constants import DEFAULT_RECEIVE_MAX_MESSAGES, Capability
from leasequeue.exceptions import ConfigurationError, InvalidArgumentError, UnsupportedOperation
from leasequeue.observability.logging import log_context
from leasequeue.types.batch import MessageBatch
from leasequeue.types.message import Message
from leasequeue.types.queue import QueueHandle
from leasequeue.validation import require_int, validate_claim_arguments, validate_queue_name

logger = logging.getLogger(__name__)


class Queue:
    """
    Facade over one named queue of a backend.

    Operations that not every backend implements (``create_queue``,
    ``delete_queue``, ``get_queues``, ``count``) are checked against the
    backend's capability table before dispatch. Callers should consult
    ``is_supported`` first; an unsupported call raises
    ``UnsupportedOperation``, except ``delete_queue`` which reports success.

    After ``delete_queue`` the facade is rebound to a ``NullBackend``, so
    receiving from the deleted handle yields empty batches instead of errors.
    """

    def __init__(
        self,
        backend: Backend,
        name: str | None = None,
        timeout: int | None = None,
        owns_backend: bool = False,
    ):
        """
        Initialize the facade.

        Args:
            backend: The backend to dispatch to.
            name: Name of the queue to bind to.
            timeout: Default visibility timeout in seconds. Defaults to the
                backend settings' ``default_visibility_timeout``.
            owns_backend: Whether ``close`` should also close the backend.

        Raises:
            ConfigurationError: If the backend is not a Backend.
            InvalidArgumentError: If the name or timeout is malformed.
        """
        if not isinstance(backend, Backend):
            raise ConfigurationError(
                f"backend must be a Backend instance, not {type(backend).__name__}"
            )
        if name is not None:
            validate_queue_name(name)
        if timeout is None:
            timeout = backend.default_visibility_timeout
        require_int("timeout", timeout, 1)

        self._backend = backend
        self._name = name
        self._timeout = timeout
        self._owns_backend = owns_backend

    @classmethod
    async def open(
        cls,
        backend: Backend,
        name: str,
        timeout: int | None = None,
        owns_backend: bool = False,
    ) -> "Queue":
        """
        Bind a facade to ``name``, creating the queue when the backend can.

        Args:
            backend: The backend to dispatch to.
            name: Queue name.
            timeout: Default visibility timeout in seconds.
            owns_backend: Whether ``close`` should also close the backend.

        Returns:
            Queue: A facade bound to the queue.
        """
        queue = cls(backend, name=name, timeout=timeout, owns_backend=owns_backend)
        if backend.is_supported(Capability.CREATE):
            exists = backend.is_supported(Capability.IS_EXISTS) and await backend.is_exists(name)
            if not exists:
                await backend.create(name, queue.timeout)
        return queue

    @classmethod
    async def reconnect(
        cls,
        handle: QueueHandle,
        settings: Settings | None = None,
        backend: Backend | None = None,
    ) -> "Queue":
        """
        Rebuild a live facade from a persisted handle.

        Args:
            handle: The persisted queue handle.
            settings: Settings to build a backend from when none is given.
            backend: Existing backend to reuse.

        Returns:
            Queue: A facade bound to the handle's queue.
        """
        owns_backend = backend is None
        if backend is None:
            backend = create_backend(settings=settings)
        return await cls.open(backend, handle.name, handle.timeout, owns_backend=owns_backend)

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def timeout(self) -> int:
        return self._timeout

    @property
    def handle(self) -> QueueHandle:
        """Persistable description of the bound queue."""
        return QueueHandle(name=self._require_name(), timeout=self._timeout)

    def _require_name(self) -> str:
        if self._name is None:
            raise ConfigurationError("No queue name is bound to this facade")
        return self._name

    def _require_support(self, capability: Capability, operation: str) -> None:
        if not self._backend.is_supported(capability):
            raise UnsupportedOperation(operation, type(self._backend).__name__)

    # -- capabilities -----------------------------------------------------------

    def is_supported(self, name: Capability | str) -> bool:
        """Check whether the backend implements an operation."""
        return self._backend.is_supported(name)

    def get_capabilities(self) -> dict[str, bool]:
        """The backend's capability table."""
        return self._backend.get_capabilities()

    # -- queue management -------------------------------------------------------

    async def create_queue(self, name: str, timeout: int | None = None) -> bool:
        """
        Create a queue on the backend.

        Args:
            name: Queue name.
            timeout: Default visibility timeout. Defaults to this facade's timeout.

        Returns:
            True if created, False if a queue of that name already exists.

        Raises:
            UnsupportedOperation: If the backend cannot create queues.
        """
        validate_queue_name(name)
        if timeout is None:
            timeout = self._timeout
        require_int("timeout", timeout, 1)
        self._require_support(Capability.CREATE, "create_queue")

        can_check = self._backend.is_supported(Capability.IS_EXISTS)
        with log_context(queue=name, operation="create_queue"):
            if can_check and await self._backend.is_exists(name):
                return False
            return await self._backend.create(name, timeout)

    async def delete_queue(self) -> bool:
        """
        Delete the bound queue and all of its messages.

        A backend without delete support reports success. Either way the
        facade is rebound to a NullBackend afterwards.

        Returns:
            Whether the backend deleted the queue.
        """
        name = self._require_name()
        with log_context(queue=name, operation="delete_queue"):
            if self._backend.is_supported(Capability.DELETE):
                deleted = await self._backend.delete(name)
            else:
                deleted = True

            previous = self._backend
            self._backend = NullBackend()
            if self._owns_backend:
                await previous.close()
                self._owns_backend = False

            logger.info("Queue deleted, facade detached", extra={"deleted": deleted})
        return deleted

    async def is_exists(self, name: str | None = None) -> bool:
        """
        Check whether a queue exists.

        Args:
            name: Queue name. Defaults to the bound queue.
        """
        name = name if name is not None else self._require_name()
        if not self._backend.is_supported(Capability.IS_EXISTS):
            return False
        return await self._backend.is_exists(name)

    async def get_queues(self) -> set[str]:
        """
        Names of every queue on the backend.

        Raises:
            UnsupportedOperation: If the backend cannot list queues.
        """
        self._require_support(Capability.GET_QUEUES, "get_queues")
        return await self._backend.get_queues()

    async def count(self) -> int:
        """
        Number of messages in the bound queue, leased or not.

        Raises:
            UnsupportedOperation: If the backend cannot count messages.
        """
        name = self._require_name()
        self._require_support(Capability.COUNT, "count")
        with log_context(queue=name, operation="count"):
            return await self._backend.count(name)

    # -- messages ---------------------------------------------------------------

    async def send(self, body: bytes | str) -> Message:
        """
        Send a message to the bound queue.

        Args:
            body: Payload. Text is stripped and UTF-8 encoded.

        Returns:
            Message: The stored message, with its id and checksum.

        Raises:
            UnsupportedOperation: If the backend cannot send (e.g. after delete_queue).
        """
        name = self._require_name()
        self._require_support(Capability.SEND, "send")
        with log_context(queue=name, operation="send"):
            return await self._backend.send(name, body)

    async def receive(
        self,
        max_messages: int | None = None,
        timeout: int | None = None,
    ) -> MessageBatch:
        """
        Lease messages from the bound queue.

        ``max_messages=0`` returns an empty batch without touching the store.
        The order of the returned messages is unspecified.

        Args:
            max_messages: Maximum number of messages. Defaults to 1.
            timeout: Visibility timeout in seconds. Defaults to the facade's timeout.

        Returns:
            MessageBatch: Snapshot of the leased messages.

        Raises:
            InvalidArgumentError: If max_messages or timeout is malformed.
        """
        if max_messages is None:
            max_messages = DEFAULT_RECEIVE_MAX_MESSAGES
        if timeout is None:
            timeout = self._timeout
        validate_claim_arguments(max_messages, timeout)

        name = self._require_name()
        if not self._backend.is_supported(Capability.RECEIVE):
            return MessageBatch(queue_name=name)

        with log_context(queue=name, operation="receive"):
            messages = await self._backend.receive(name, max_messages, timeout)
        return MessageBatch(messages, queue_name=name)

    async def delete_message(self, message: Message | str) -> bool:
        """
        Acknowledge a leased message.

        Args:
            message: A received Message or its lease token.

        Returns:
            True if the message was deleted, False if the token matched nothing
            or the backend cannot delete messages.
        """
        token = message.lease_token if isinstance(message, Message) else message
        if token is None:
            raise InvalidArgumentError("Message carries no lease token; receive it first")
        if not self._backend.is_supported(Capability.DELETE_MESSAGE):
            return False
        with log_context(queue=self._name, operation="delete_message"):
            return await self._backend.delete_message(token)

    # -- lifecycle --------------------------------------------------------------

    def debug_info(self) -> dict[str, Any]:
        """Describe the facade, its backend and the backend's capabilities."""
        info: dict[str, Any] = {
            "self": type(self).__name__,
            "adapter": type(self._backend).__name__,
        }
        for capability, supported in self._backend.get_capabilities().items():
            info[f"adapter-{capability}"] = "yes" if supported else "no"
        info["current_queue"] = self._name
        info["timeout"] = self._timeout
        return info

    async def close(self) -> None:
        """Close the backend if this facade owns it."""
        if self._owns_backend:
            await self._backend.close()
            self._owns_backend = False

    async def __aenter__(self) -> "Queue":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"Queue(name={self._name!r}, backend={self._backend!r})"
