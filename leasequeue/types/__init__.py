"""
Type definitions for the queue facade.
"""

from leasequeue.types.batch import MessageBatch
from leasequeue.types.message import Message, compute_checksum, normalize_body
from leasequeue.types.queue import QueueHandle

__all__ = [
    "Message",
    "MessageBatch",
    "QueueHandle",
    "compute_checksum",
    "normalize_body",
]
