"""
Queue handle definitions.
"""

from pydantic import BaseModel, ConfigDict, Field

from leasequeue.constants import DEFAULT_VISIBILITY_TIMEOUT_SECONDS, QUEUE_NAME_MAX_LENGTH


class QueueHandle(BaseModel):
    """
    Names a logical queue and its default visibility timeout.

    A handle is plain data and safe to persist. Use ``Queue.reconnect`` to
    turn it back into a live facade.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, max_length=QUEUE_NAME_MAX_LENGTH)
    timeout: int = Field(default=DEFAULT_VISIBILITY_TIMEOUT_SECONDS, gt=0)
