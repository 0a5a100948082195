"""
Batch warehouse writer for log records.

Evolves the destination table, then inserts its records in fixed-size
chunks, in order.
"""

import uuid
from typing import Sequence

from logferry.core.errors import IngestError
from logferry.core.models import Destination, IngestLog, LogRecord
from logferry.core.models.run_logs import utcnow
from logferry.core.schema import schema_to_json
from logferry.observability.logger import get_logger
from logferry.observability.metrics import MetricsCollector
from logferry.warehouse.base import Warehouse
from logferry.warehouse.schema_mgmt import SchemaManager

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 256


class BatchWarehouseWriter:
    """
    Loads the records of one destination into the warehouse.

    A failing chunk aborts the remaining chunks. Chunks already inserted
    are not rolled back.
    """

    def __init__(
        self,
        warehouse: Warehouse,
        schema_manager: SchemaManager | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize batch warehouse writer.

        Args:
            warehouse: Warehouse receiving the rows
            schema_manager: Schema manager for the destination tables
            chunk_size: Maximum number of rows per insert call
            metrics: Metrics collector (default instance if None)
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        self.warehouse = warehouse
        self.metrics = metrics or MetricsCollector()
        self.schema_manager = schema_manager or SchemaManager(warehouse, metrics=self.metrics)
        self.chunk_size = chunk_size

    def ingest(self, destination: Destination, records: Sequence[LogRecord]) -> IngestLog:
        """
        Ingest the records of one destination.

        Args:
            destination: Destination table
            records: Records to insert, in order

        Returns:
            Successful IngestLog

        Raises:
            IngestError: If schema evolution or any insert fails; carries the
                unsuccessful IngestLog
        """
        ingest_log = IngestLog(
            id=str(uuid.uuid4()),
            dataset=destination.dataset,
            table=destination.table,
            log_count=len(records),
        )

        try:
            schema, inferred = self.schema_manager.evolve(destination, records)
            ingest_log.table_schema = schema_to_json(inferred)

            rows = [record.to_row(ingest_log.id) for record in records]
            for start in range(0, len(rows), self.chunk_size):
                chunk = rows[start:start + self.chunk_size]
                try:
                    self.warehouse.insert(destination.dataset, destination.table, schema, chunk)
                except Exception:
                    self.metrics.record_insert_chunk(destination.dataset, destination.table, len(chunk), False)
                    raise
                self.metrics.record_insert_chunk(destination.dataset, destination.table, len(chunk), True)
        except Exception as e:
            ingest_log.error = str(e)
            ingest_log.finished_at = utcnow()
            logger.error(
                f"Failed to ingest destination: {e}",
                extra={
                    "destination": str(destination),
                    "ingest_id": ingest_log.id,
                    "log_count": ingest_log.log_count,
                    "error_type": type(e).__name__,
                },
            )
            raise IngestError(
                f"failed to ingest {destination}: {e}",
                ingest_log=ingest_log,
                destination=str(destination),
            ) from e

        ingest_log.success = True
        ingest_log.finished_at = utcnow()
        logger.info(
            "Ingested destination",
            extra={
                "destination": str(destination),
                "ingest_id": ingest_log.id,
                "log_count": ingest_log.log_count,
            },
        )
        return ingest_log
