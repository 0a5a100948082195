"""
Record builder: turns one policy output row into a LogRecord.
"""

import math
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from logferry.core.errors import RecordValidationError
from logferry.core.models import LogRecord, ObjectRef, StructuredLog

# Namespace of ids derived from (bucket, object, output index)
LOG_ID_NAMESPACE = uuid.UUID("5b1f3c52-8d0e-4f4e-9a51-0f1d3c9e7a10")


def new_log_id(bucket: str, name: str, index: int) -> str:
    """
    Derive a deterministic record id.

    Re-processing the same object yields the same ids, which lets the
    warehouse drop duplicates of retried loads.

    Args:
        bucket: Object bucket
        name: Object name
        index: Zero-based output index within the raw record's emitted logs

    Returns:
        UUIDv5 string
    """
    return str(uuid.uuid5(LOG_ID_NAMESPACE, f"{bucket}/{name}/{index}"))


def resolve_timestamp(value: float) -> tuple[int, int]:
    """
    Split epoch seconds into whole seconds and a nanosecond remainder.

    Negative values keep the sign of fmod on both parts, e.g. -1.5
    becomes (-1, -500000000); the pair is not normalized.

    Args:
        value: Unix epoch seconds

    Returns:
        Tuple of (seconds, nanoseconds)
    """
    seconds = int(value)
    nanos = round(math.fmod(value, 1.0) * 1_000_000_000)
    return seconds, nanos


def strip_nulls(value: Any) -> Any:
    """
    Remove every mapping entry whose value is None, at every depth.

    Lists are traversed so mappings nested in lists are cleaned too.

    Args:
        value: Decoded JSON value

    Returns:
        Copy of value without null mapping entries
    """
    if isinstance(value, Mapping):
        return {key: strip_nulls(item) for key, item in value.items() if item is not None}
    if isinstance(value, list):
        return [strip_nulls(item) for item in value]
    return value


class RecordBuilder:
    """Validates structured logs and builds LogRecords from them."""

    def validate(self, log: StructuredLog | Mapping[str, Any]) -> StructuredLog:
        """
        Validate one policy output row.

        Args:
            log: StructuredLog or its raw mapping form

        Returns:
            Validated StructuredLog

        Raises:
            RecordValidationError: If required fields are missing or malformed
        """
        if isinstance(log, StructuredLog):
            return log
        if not isinstance(log, Mapping):
            raise RecordValidationError("policy log must be a mapping", log_type=type(log).__name__)

        try:
            return StructuredLog.model_validate(log)
        except ValidationError as e:
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in e.errors()})
            raise RecordValidationError(
                f"invalid policy log: {e.error_count()} error(s)", fields=fields
            ) from e

    def build(
        self,
        log: StructuredLog,
        obj: ObjectRef,
        index: int,
        ingested_at: datetime | None = None,
    ) -> LogRecord:
        """
        Build a LogRecord.

        Args:
            log: Validated structured log
            obj: Object the raw record was read from
            index: Zero-based output index within the raw record's emitted logs
            ingested_at: Build time (now if None)

        Returns:
            LogRecord with id, resolved timestamp and null-free data
        """
        record_id = log.id or new_log_id(obj.bucket, obj.name, index)
        seconds, nanos = resolve_timestamp(log.timestamp)

        return LogRecord(
            id=record_id,
            timestamp_seconds=seconds,
            timestamp_nanos=nanos,
            ingested_at=ingested_at or datetime.now(timezone.utc),
            # Null-only fields give schema inference nothing to type
            data=strip_nulls(log.data),
        )
