"""
Result set returned by a receive call.
"""

from collections.abc import Iterable, Iterator, Sequence
from typing import Any, overload

from leasequeue.types.message import Message


class MessageBatch(Sequence[Message]):
    """
    Finite, pre-materialized sequence of claimed messages.

    The batch is captured once when the claim commits. Iterating it again
    replays the same snapshot; it never reflects later changes in the store,
    such as a lease expiring or another consumer deleting a message.
    """

    __slots__ = ("_messages", "_queue_name")

    def __init__(self, messages: Iterable[Message] = (), queue_name: str | None = None):
        self._messages: tuple[Message, ...] = tuple(messages)
        self._queue_name = queue_name

    @property
    def queue_name(self) -> str | None:
        """Name of the queue the messages were claimed from."""
        return self._queue_name

    @overload
    def __getitem__(self, index: int) -> Message: ...

    @overload
    def __getitem__(self, index: slice) -> "MessageBatch": ...

    def __getitem__(self, index: int | slice) -> "Message | MessageBatch":
        if isinstance(index, slice):
            return MessageBatch(self._messages[index], queue_name=self._queue_name)
        return self._messages[index]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MessageBatch):
            return self._messages == other._messages
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def tokens(self) -> list[str]:
        """Lease tokens of every message in the batch."""
        return [m.lease_token for m in self._messages if m.lease_token is not None]

    def to_list(self) -> list[dict[str, Any]]:
        """Plain-dict form of every message, in batch order."""
        return [m.model_dump() for m in self._messages]

    def __repr__(self) -> str:
        return f"MessageBatch(queue={self._queue_name!r}, size={len(self._messages)})"
