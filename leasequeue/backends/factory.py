"""
Backend construction from a closed set of backend kinds.
"""

from collections.abc import Callable

from leasequeue.backends.base import Backend
from leasequeue.backends.database import DatabaseBackend
from leasequeue.backends.memory import MemoryBackend
from leasequeue.backends.null import NullBackend
from leasequeue.config import Settings, get_settings
from leasequeue.constants import BackendKind
from leasequeue.exceptions import ConfigurationError

_BACKEND_FACTORIES: dict[BackendKind, Callable[[Settings], Backend]] = {
    BackendKind.DATABASE: lambda settings: DatabaseBackend(settings),
    BackendKind.MEMORY: lambda settings: MemoryBackend(settings=settings),
    BackendKind.NULL: lambda settings: NullBackend(settings),
}


def create_backend(
    kind: BackendKind | str | None = None,
    settings: Settings | None = None,
) -> Backend:
    """
    Build a backend of the given kind.

    Args:
        kind: Backend kind. Defaults to ``settings.backend``.
        settings: Settings to configure the backend with. Uses the global settings if not provided.

    Returns:
        Backend: A new backend instance.

    Raises:
        ConfigurationError: If the kind is unknown or its required settings are missing.
    """
    settings = settings or get_settings()
    try:
        kind = BackendKind(kind if kind is not None else settings.backend)
    except ValueError as e:
        raise ConfigurationError(f"Unknown backend kind: {kind!r}") from e
    return _BACKEND_FACTORIES[kind](settings)
