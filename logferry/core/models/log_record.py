"""
LogRecord model: a validated, de-duplication ready row awaiting ingest.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class LogRecord(BaseModel):
    """
    A structured log row ready to be inserted into the warehouse.

    The event time is kept as the (seconds, nanoseconds) pair it was
    resolved into; ``timestamp`` combines both into a datetime.

    Attributes:
        id: Non-empty record identifier, deterministic when derived
        timestamp_seconds: Whole seconds since the Unix epoch
        timestamp_nanos: Sub-second remainder in nanoseconds
        ingested_at: When the record was built
        ingest_id: Ingest run that loaded the record, set at ingest time
        data: Payload with all null leaves removed
    """

    id: str = Field(..., min_length=1)
    timestamp_seconds: int
    timestamp_nanos: int = 0
    ingested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ingest_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def timestamp(self) -> datetime:
        """Event time as an aware UTC datetime (microsecond precision)."""
        return EPOCH + timedelta(
            seconds=self.timestamp_seconds,
            microseconds=self.timestamp_nanos / 1000,
        )

    def to_row(self, ingest_id: str | None = None) -> dict[str, Any]:
        """
        Build the warehouse row for this record.

        Args:
            ingest_id: Ingest run id; falls back to the record's own ingest_id

        Returns:
            Row mapping with the fixed id/timestamp/ingest columns and data
        """
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "ingested_at": self.ingested_at,
            "ingest_id": ingest_id or self.ingest_id,
            "data": self.data,
        }
