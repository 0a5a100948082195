"""
Message queue that dumps each payload into a file.

Useful to inspect what would be published without a broker.
"""

import uuid
from pathlib import Path

from logferry.observability.logger import get_logger

logger = get_logger(__name__)


class DumpQueue:
    """Writes every published payload to ``<out_dir>/<message_id>.json``."""

    def __init__(self, out_dir: str | Path):
        self.out_dir = Path(out_dir)

    def publish(self, payload: bytes) -> str:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        message_id = str(uuid.uuid4())
        path = self.out_dir / f"{message_id}.json"
        path.write_bytes(payload)
        logger.debug("Dumped message", extra={"message_id": message_id, "path": str(path)})
        return message_id
