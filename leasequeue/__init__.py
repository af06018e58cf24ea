"""
Lease-based Message Queue

A queue-access facade over interchangeable backing stores, built around a
visibility-timeout leasing protocol that lets independent consumers claim
messages from a shared SQL table without double delivery of a live lease.
"""

from leasequeue.backends import BackendKind, Capability, create_backend
from leasequeue.exceptions import (
    ConfigurationError,
    InvalidArgumentError,
    QueueError,
    QueueNotFoundError,
    StoreConnectionError,
    StoreError,
    UnsupportedOperation,
)
from leasequeue.queue import Queue
from leasequeue.types import Message, MessageBatch, QueueHandle

__version__ = "1.0.0"

__all__ = [
    "Queue",
    "QueueHandle",
    "Message",
    "MessageBatch",
    "BackendKind",
    "Capability",
    "create_backend",
    "QueueError",
    "ConfigurationError",
    "StoreConnectionError",
    "UnsupportedOperation",
    "QueueNotFoundError",
    "InvalidArgumentError",
    "StoreError",
]
