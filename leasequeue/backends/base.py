"""
Backend interface shared by every backing store.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, ClassVar

from leasequeue.config import Settings, get_settings
from leasequeue.constants import CAPABILITY_ALIASES, BackendKind, Capability
from leasequeue.types.message import Message


def resolve_capability(name: "Capability | str") -> Capability | None:
    """
    Map an operation name onto a capability.

    Accepts a ``Capability``, its value, or a facade alias such as
    ``"deleteQueue"``. Unknown names resolve to None.
    """
    if isinstance(name, Capability):
        return name
    if name in CAPABILITY_ALIASES:
        return CAPABILITY_ALIASES[name]
    try:
        return Capability(name)
    except ValueError:
        return None


class Backend(ABC):
    """
    A backing store the queue facade dispatches to.

    Subclasses declare a complete capability table: every ``Capability``
    member must be present, which is checked when the subclass is defined.
    Operations marked unsupported may still be implemented as harmless
    fallbacks, but the facade never calls them without checking first.
    """

    kind: ClassVar[BackendKind]
    CAPABILITIES: ClassVar[Mapping[Capability, bool]]

    def __init__(self, settings: Settings | None = None):
        self._settings = settings

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table = getattr(cls, "CAPABILITIES", None)
        if table is None:
            return
        missing = set(Capability) - set(table)
        if missing:
            names = ", ".join(sorted(c.value for c in missing))
            raise TypeError(f"{cls.__name__}.CAPABILITIES is missing: {names}")
        cls.CAPABILITIES = MappingProxyType(dict(table))

    @property
    def settings(self) -> Settings:
        """Settings this backend was built with, or the global settings."""
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    @property
    def default_visibility_timeout(self) -> int:
        """Lease duration used when a facade is opened without a timeout."""
        return self.settings.default_visibility_timeout

    def is_supported(self, name: Capability | str) -> bool:
        """Check whether this backend implements an operation."""
        capability = resolve_capability(name)
        if capability is None:
            return False
        return bool(self.CAPABILITIES[capability])

    def get_capabilities(self) -> dict[str, bool]:
        """Copy of the capability table keyed by operation name."""
        return {capability.value: supported for capability, supported in self.CAPABILITIES.items()}

    @abstractmethod
    async def create(self, name: str, timeout: int) -> bool:
        """Create a queue. Returns False if it already exists."""

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Delete a queue and its messages. Returns False if it did not exist."""

    @abstractmethod
    async def is_exists(self, name: str) -> bool:
        """Check whether a queue exists."""

    @abstractmethod
    async def get_queues(self) -> set[str]:
        """Names of all queues."""

    @abstractmethod
    async def count(self, name: str) -> int:
        """Number of messages in a queue, leased or not."""

    @abstractmethod
    async def send(self, name: str, body: bytes | str) -> Message:
        """Append a message to a queue."""

    @abstractmethod
    async def receive(self, name: str, max_messages: int, timeout: int) -> list[Message]:
        """
        Lease up to ``max_messages`` messages for ``timeout`` seconds.

        May return fewer, even none, while messages remain claimable if
        concurrent consumers won the candidates this call selected.
        """

    @abstractmethod
    async def delete_message(self, lease_token: str) -> bool:
        """Acknowledge a leased message. Returns False if the token matches nothing."""

    async def close(self) -> None:
        """Release live resources held by the backend."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
