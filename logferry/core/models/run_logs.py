"""
Run log models persisted as the audit record of one load call.

SourceLog is created per load request, IngestLog per destination and
LoadLog per load call; the LoadLog embeds the other two.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .load_request import SourceDescriptor


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceLog(BaseModel):
    """
    Outcome of importing one source object.

    Attributes:
        bucket: Bucket of the source object
        object_name: Name of the source object
        source: Descriptor used to read the object
        row_count: Raw records attempted, whatever their outcome
        success: Whether the whole source was imported
        error: Error text when the source failed
        started_at: When the import started
        finished_at: When the import ended
    """

    bucket: str
    object_name: str
    source: SourceDescriptor
    row_count: int = Field(0, ge=0)
    success: bool = False
    error: str | None = None
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        return {
            "bucket": self.bucket,
            "object_name": self.object_name,
            "parser": self.source.parser,
            "schema": self.source.schema_name,
            "compress": self.source.compress,
            "row_count": self.row_count,
            "success": self.success,
            "error": self.error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


class IngestLog(BaseModel):
    """
    Outcome of loading one destination.

    Attributes:
        id: Ingest run identifier, also stamped on every inserted row
        dataset: Destination dataset
        table: Destination table
        log_count: Number of records handed to the ingestor
        table_schema: JSON serialized inferred schema
        success: Whether every chunk was inserted
        error: Error text when the ingest failed
    """

    id: str
    dataset: str
    table: str
    log_count: int = Field(0, ge=0)
    table_schema: str | None = None
    success: bool = False
    error: str | None = None
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()


class LoadLog(BaseModel):
    """
    Audit record of one end-to-end load call.

    Attributes:
        id: Run identifier
        sources: One SourceLog per load request
        ingests: One IngestLog per destination attempted
        success: Whether every source and destination succeeded
        error: Aggregated error text, if any
    """

    id: str
    sources: list[SourceLog] = Field(default_factory=list)
    ingests: list[IngestLog] = Field(default_factory=list)
    success: bool = False
    error: str | None = None
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sources": [log.to_row() for log in self.sources],
            "ingests": [log.to_row() for log in self.ingests],
            "success": self.success,
            "error": self.error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
