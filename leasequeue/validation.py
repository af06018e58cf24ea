"""
Argument validation shared by the store, the backends and the facade.
"""

from leasequeue.constants import QUEUE_NAME_MAX_LENGTH
from leasequeue.exceptions import InvalidArgumentError


def require_int(name: str, value: object, minimum: int) -> int:
    """
    Check that ``value`` is an integer no smaller than ``minimum``.

    Raises:
        InvalidArgumentError: If the value is not an int (bools excluded) or too small.
    """
    # bool is an int subclass but never a meaningful count
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer, not {type(value).__name__}")
    if value < minimum:
        raise InvalidArgumentError(f"{name} must be >= {minimum}, got {value}")
    return value


def validate_claim_arguments(max_messages: object, visibility_timeout: object) -> None:
    """
    Validate the arguments of a claim.

    Raises:
        InvalidArgumentError: If either value is not a non-negative integer.
    """
    require_int("max_messages", max_messages, 0)
    require_int("visibility_timeout", visibility_timeout, 0)


def validate_queue_name(name: object) -> str:
    """
    Validate a queue name.

    Raises:
        InvalidArgumentError: If the name is not a non-empty string of allowed length.
    """
    if not isinstance(name, str):
        raise InvalidArgumentError(f"Queue name must be a string, not {type(name).__name__}")
    if not name or len(name) > QUEUE_NAME_MAX_LENGTH:
        raise InvalidArgumentError(
            f"Queue name must be between 1 and {QUEUE_NAME_MAX_LENGTH} characters"
        )
    return name


def validate_lease_token(lease_token: object) -> str:
    """
    Validate a lease token.

    Raises:
        InvalidArgumentError: If the token is not a non-empty string.
    """
    if not isinstance(lease_token, str) or not lease_token:
        raise InvalidArgumentError("lease_token must be a non-empty string")
    return lease_token
