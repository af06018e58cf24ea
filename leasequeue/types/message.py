"""
Message type definitions.
A Message is a detached copy of a stored MessageRecord.
"""

import hashlib
from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from leasequeue.clock import as_utc, utcnow
from leasequeue.exceptions import InvalidArgumentError


def compute_checksum(body: bytes) -> str:
    """Hex MD5 digest of the message body."""
    return hashlib.md5(body).hexdigest()


def normalize_body(body: bytes | bytearray | memoryview | str) -> bytes:
    """
    Coerce a payload to bytes.

    Strings are stripped of surrounding whitespace and encoded as UTF-8.

    Raises:
        InvalidArgumentError: If the payload is neither text nor bytes.
    """
    if isinstance(body, str):
        return body.strip().encode("utf-8")
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    raise InvalidArgumentError(
        f"Message body must be str or bytes, not {type(body).__name__}"
    )


class Message(BaseModel):
    """
    Caller-visible snapshot of a message.

    Holds no connection to the store: it can be serialized with
    ``model_dump_json()`` and validated back later. Acknowledging it requires
    the ``lease_token`` handed out by the claim that returned it.
    """

    model_config = ConfigDict(
        frozen=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    id: int | str
    queue_id: int | str
    body: bytes
    checksum: str
    created_at: datetime
    lease_token: str | None = None
    lease_expires_at: datetime | None = None
    queue_name: str | None = None

    @field_validator("created_at", "lease_expires_at")
    @classmethod
    def _normalize_timestamp(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @property
    def handle(self) -> str | None:
        """Alias for the lease token."""
        return self.lease_token

    @property
    def text(self) -> str:
        """The body decoded as UTF-8."""
        return self.body.decode("utf-8")

    def verify_checksum(self) -> bool:
        """Check the body against the checksum computed at send time."""
        return compute_checksum(self.body) == self.checksum

    def is_leased(self, now: datetime | None = None) -> bool:
        """Check whether this copy carried an unexpired lease at ``now``."""
        if self.lease_token is None or self.lease_expires_at is None:
            return False
        return self.lease_expires_at >= (now or utcnow())

    def __str__(self) -> str:
        return self.body.decode("utf-8", errors="replace")
