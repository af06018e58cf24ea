"""
SQLAlchemy database models.
Defines the queues and messages tables.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    ColumnElement,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    func,
    or_,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from leasequeue.clock import as_utc
from leasequeue.constants import (
    CHECKSUM_LENGTH,
    DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
    QUEUE_NAME_MAX_LENGTH,
    MessageState,
)
from leasequeue.types.message import Message


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class QueueRecord(Base):
    """
    A named queue. Messages are partitioned by ``queue_id``.

    Deleting a queue removes every message scoped to it.
    """

    __tablename__ = "queues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(
        String(QUEUE_NAME_MAX_LENGTH),
        nullable=False,
        unique=True,
    )
    timeout: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("timeout > 0", name="ck_queues_timeout_positive"),
    )

    def __repr__(self) -> str:
        return f"QueueRecord(id={self.id}, name={self.name!r}, timeout={self.timeout})"


class MessageRecord(Base):
    """
    A message stored in a queue.

    ``body`` and ``checksum`` never change after insert. Only the lease pair
    (``lease_token``, ``lease_expires_at``) is rewritten, and only through a
    conditional update that re-checks claimability in its WHERE clause.
    """

    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    queue_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("queues.id", ondelete="CASCADE"),
        nullable=False,
    )
    body: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    checksum: Mapped[str] = mapped_column(String(CHECKSUM_LENGTH), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Lease management
    lease_token: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
    )
    lease_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        # Index for the claim scan
        Index("ix_messages_queue_lease", "queue_id", "lease_expires_at"),
    )

    @classmethod
    def claimable_clause(cls, now: datetime) -> ColumnElement[bool]:
        """A message is claimable when it has no lease or its lease expired."""
        return or_(cls.lease_token.is_(None), cls.lease_expires_at < now)

    def state(self, now: datetime) -> MessageState:
        """Derive the lifecycle state from the lease columns."""
        expires_at = as_utc(self.lease_expires_at)
        if self.lease_token is None or expires_at is None or expires_at < now:
            return MessageState.AVAILABLE
        return MessageState.LEASED

    def to_message(self, queue_name: str | None = None, **overrides) -> Message:
        """Detached copy of this row, optionally with replaced fields."""
        values = {
            "id": self.id,
            "queue_id": self.queue_id,
            "body": self.body,
            "checksum": self.checksum,
            "created_at": self.created_at,
            "lease_token": self.lease_token,
            "lease_expires_at": self.lease_expires_at,
            "queue_name": queue_name,
        }
        values.update(overrides)
        return Message(**values)

    def __repr__(self) -> str:
        return (
            f"MessageRecord(id={self.id}, queue_id={self.queue_id}, "
            f"leased={self.lease_token is not None})"
        )
