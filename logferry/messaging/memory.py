"""
In-memory message queue.
"""

import threading
import uuid


class MemoryQueue:
    """
    Message queue keeping published payloads in a list.

    Attributes:
        messages: (message_id, payload) pairs in publish order
    """

    def __init__(self) -> None:
        self.messages: list[tuple[str, bytes]] = []
        self._lock = threading.Lock()

    def publish(self, payload: bytes) -> str:
        message_id = str(uuid.uuid4())
        with self._lock:
            self.messages.append((message_id, payload))
        return message_id

    def payloads(self) -> list[bytes]:
        return [payload for _, payload in self.messages]
