"""
Message queue capability used by the enqueue path.
"""

from typing import Protocol


class MessageQueue(Protocol):
    """Publishes opaque payloads and returns the message id."""

    def publish(self, payload: bytes) -> str:
        ...
