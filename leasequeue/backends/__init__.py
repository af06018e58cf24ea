"""
Backing store implementations for the queue facade.
"""

from leasequeue.backends.base import Backend, resolve_capability
from leasequeue.backends.database import DatabaseBackend
from leasequeue.backends.factory import create_backend
from leasequeue.backends.memory import MemoryBackend
from leasequeue.backends.null import NullBackend
from leasequeue.constants import BackendKind, Capability

__all__ = [
    "Backend",
    "BackendKind",
    "Capability",
    "DatabaseBackend",
    "MemoryBackend",
    "NullBackend",
    "create_backend",
    "resolve_capability",
]
