"""
Backend bound to a facade after its queue was deleted.
"""

from leasequeue.backends.base import Backend
from leasequeue.constants import BackendKind, Capability
from leasequeue.exceptions import UnsupportedOperation
from leasequeue.types.message import Message


class NullBackend(Backend):
    """
    Backend that supports nothing.

    Reads degrade to empty results so a handle whose queue is gone can still
    be polled. Sending raises, since accepting the message would lose it.
    """

    kind = BackendKind.NULL
    CAPABILITIES = {capability: False for capability in Capability}

    async def create(self, name: str, timeout: int) -> bool:
        return False

    async def delete(self, name: str) -> bool:
        return False

    async def is_exists(self, name: str) -> bool:
        return False

    async def get_queues(self) -> set[str]:
        return set()

    async def count(self, name: str) -> int:
        return 0

    async def send(self, name: str, body: bytes | str) -> Message:
        raise UnsupportedOperation("send", type(self).__name__)

    async def receive(self, name: str, max_messages: int, timeout: int) -> list[Message]:
        return []

    async def delete_message(self, lease_token: str) -> bool:
        return False
