"""
Application constants.
Centralized location for all constant values used across the package.
"""

from enum import StrEnum


class MessageState(StrEnum):
    """
    Message lifecycle states.

    The state is derived from the lease columns, it is never stored:
    - AVAILABLE -> LEASED (claim)
    - LEASED -> AVAILABLE (lease expiry, evaluated lazily on the next claim)
    - LEASED -> DELETED (acknowledge)
    """

    AVAILABLE = "available"
    LEASED = "leased"
    DELETED = "deleted"


class BackendKind(StrEnum):
    """Closed set of backing store implementations."""

    DATABASE = "database"
    MEMORY = "memory"
    NULL = "null"


class Capability(StrEnum):
    """Operations a backend may or may not implement."""

    CREATE = "create"
    DELETE = "delete"
    SEND = "send"
    RECEIVE = "receive"
    DELETE_MESSAGE = "delete_message"
    GET_QUEUES = "get_queues"
    COUNT = "count"
    IS_EXISTS = "is_exists"


# Facade-level operation names mapped onto backend capabilities
CAPABILITY_ALIASES: dict[str, Capability] = {
    "createQueue": Capability.CREATE,
    "create_queue": Capability.CREATE,
    "deleteQueue": Capability.DELETE,
    "delete_queue": Capability.DELETE,
    "deleteMessage": Capability.DELETE_MESSAGE,
    "getQueues": Capability.GET_QUEUES,
    "isExists": Capability.IS_EXISTS,
}

# Default values
DEFAULT_VISIBILITY_TIMEOUT_SECONDS = 30
DEFAULT_RECEIVE_MAX_MESSAGES = 1
LEASE_TOKEN_BYTES = 16
CHECKSUM_LENGTH = 32
QUEUE_NAME_MAX_LENGTH = 255

# Metrics names
METRIC_MESSAGES_SENT = "queue_messages_sent_total"
METRIC_MESSAGES_CLAIMED = "queue_messages_claimed_total"
METRIC_CLAIM_RACES_LOST = "queue_claim_races_lost_total"
METRIC_MESSAGES_DELETED = "queue_messages_deleted_total"
METRIC_DELETE_MISSES = "queue_delete_misses_total"
METRIC_STORE_ERRORS = "queue_store_errors_total"
METRIC_CLAIM_LATENCY = "queue_claim_latency_seconds"
METRIC_QUEUE_DEPTH = "queue_depth"

# Trace span names
SPAN_SEND_MESSAGE = "send_message"
SPAN_CLAIM_MESSAGES = "claim_messages"
SPAN_DELETE_MESSAGE = "delete_message"
