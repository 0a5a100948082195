"""
Core data models for the log loader.

All models use Pydantic for runtime validation and type safety, except
RecordSet which is a plain ordered container.
"""

from .destination import PARTITION_UNITS, Destination
from .enqueue import EnqueueRequest, EnqueueResponse
from .load_request import (
    GZIP_COMPRESSION,
    JSON_PARSER,
    NO_COMPRESSION,
    LoadMessage,
    LoadRequest,
    ObjectAttrs,
    ObjectRef,
    SourceDescriptor,
)
from .log_record import LogRecord
from .record_set import RecordSet
from .run_logs import IngestLog, LoadLog, SourceLog
from .structured_log import PolicyOutput, StructuredLog
from .table_metadata import TableMetadata, TimePartitioning

__all__ = [
    "PARTITION_UNITS",
    "JSON_PARSER",
    "NO_COMPRESSION",
    "GZIP_COMPRESSION",
    "Destination",
    "ObjectRef",
    "ObjectAttrs",
    "SourceDescriptor",
    "LoadRequest",
    "LoadMessage",
    "EnqueueRequest",
    "EnqueueResponse",
    "StructuredLog",
    "PolicyOutput",
    "LogRecord",
    "RecordSet",
    "SourceLog",
    "IngestLog",
    "LoadLog",
    "TableMetadata",
    "TimePartitioning",
]
