"""
Batch loading: import sources, merge and ingest into the warehouse.
"""

from .enqueue import Enqueuer
from .importer import ImportOutcome, SourceImporter
from .pipeline import LoadPipeline
from .record_builder import RecordBuilder
from .scheduler import ImportResult, ImportScheduler
from .writers import BatchWarehouseWriter

__all__ = [
    "LoadPipeline",
    "SourceImporter",
    "ImportOutcome",
    "ImportScheduler",
    "ImportResult",
    "RecordBuilder",
    "BatchWarehouseWriter",
    "Enqueuer",
]
