"""
Exception hierarchy for queue operations.

Only two outcomes are soft failures that return ``False`` instead of
raising: creating a queue whose name is taken and deleting a message whose
lease token no longer matches a row. Everything else surfaces here.
"""


class QueueError(Exception):
    """Base class for all queue errors."""


class ConfigurationError(QueueError):
    """A required connection or queue parameter is missing or invalid."""


class StoreConnectionError(QueueError, ConnectionError):
    """The backing store is unreachable or rejected the connection."""


class UnsupportedOperation(QueueError):
    """The backend's capability table does not include the operation."""

    def __init__(self, operation: str, backend: str):
        self.operation = operation
        self.backend = backend
        super().__init__(f"{operation}() is not supported by {backend}")


class QueueNotFoundError(QueueError, LookupError):
    """The referenced queue does not exist."""

    def __init__(self, queue: str | int):
        self.queue = queue
        super().__init__(f"Queue does not exist: {queue}")


class InvalidArgumentError(QueueError, ValueError):
    """Malformed input such as a negative message count or a wrong type."""


class StoreError(QueueError):
    """
    A unit of work against the store failed.

    The transaction has already been rolled back when this is raised, so the
    whole operation can be retried.
    """
