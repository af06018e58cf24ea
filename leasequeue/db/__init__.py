"""
Database module.
Contains database connection, models, and the lease store.
"""

from leasequeue.db.connection import (
    create_engine,
    create_schema,
    create_session_factory,
    drop_schema,
    unit_of_work,
)
from leasequeue.db.models import Base, MessageRecord, QueueRecord
from leasequeue.db.repository import LeaseStore

__all__ = [
    "create_engine",
    "create_session_factory",
    "create_schema",
    "drop_schema",
    "unit_of_work",
    "Base",
    "QueueRecord",
    "MessageRecord",
    "LeaseStore",
]
