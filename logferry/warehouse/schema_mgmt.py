"""
Schema management operations for destination tables.

Infers the schema of pending records, merges it additively into the
existing table schema and creates or updates the table.
"""

from typing import Iterable

from pyspark.sql.types import StructType

from logferry.core.errors import ConfigurationError, EtagMismatchError
from logferry.core.models import PARTITION_UNITS, Destination, LogRecord, TableMetadata, TimePartitioning
from logferry.core.schema import SchemaEvolutionManager, SchemaInferrer
from logferry.core.schema.inference import TIMESTAMP_FIELD
from logferry.observability.logger import get_logger
from logferry.observability.metrics import MetricsCollector

from .base import Warehouse

logger = get_logger(__name__)


def time_partitioning_for(destination: Destination) -> TimePartitioning | None:
    """
    Resolve the time partitioning of a destination.

    Args:
        destination: Destination with an optional partition unit

    Returns:
        TimePartitioning on the timestamp column, or None when unpartitioned

    Raises:
        ConfigurationError: If the partition unit is not hour, day, month or year
    """
    if not destination.partition:
        return None
    if destination.partition not in PARTITION_UNITS:
        raise ConfigurationError(
            "invalid time partition unit",
            partition=destination.partition,
            destination=str(destination),
        )
    return TimePartitioning(field=TIMESTAMP_FIELD, unit=destination.partition)


class SchemaManager:
    """
    Manages destination table schemas in the warehouse.

    Handles:
    - Inferring schemas from pending records
    - Creating missing tables (with optional time partitioning)
    - Appending new columns to existing tables, never dropping or retyping
    """

    def __init__(
        self,
        warehouse: Warehouse,
        inferrer: SchemaInferrer | None = None,
        evolution: SchemaEvolutionManager | None = None,
        metrics: MetricsCollector | None = None,
        max_update_attempts: int = 3,
    ):
        """
        Initialize schema manager.

        Args:
            warehouse: Warehouse holding the tables
            inferrer: Schema inferrer (default instance if None)
            evolution: Schema evolution manager (default instance if None)
            metrics: Metrics collector (default instance if None)
            max_update_attempts: Attempts when a concurrent update changes the etag
        """
        self.warehouse = warehouse
        self.inferrer = inferrer or SchemaInferrer()
        self.evolution = evolution or SchemaEvolutionManager()
        self.metrics = metrics or MetricsCollector()
        self.max_update_attempts = max_update_attempts

    def evolve(self, destination: Destination, records: Iterable[LogRecord]) -> tuple[StructType, StructType]:
        """
        Make the destination table able to hold the records.

        Args:
            destination: Destination table
            records: Pending records for the destination

        Returns:
            Tuple of (finalized_schema, inferred_schema)

        Raises:
            ConfigurationError: If the partition unit is unknown
            SchemaInferenceError: If the records have conflicting field types
            WarehouseError: If the table cannot be read, created or updated
        """
        partitioning = time_partitioning_for(destination)
        inferred = self.inferrer.infer_from_records(records)

        finalized = self.create_or_update_table(
            destination.dataset,
            destination.table,
            TableMetadata(table_schema=inferred, time_partitioning=partitioning),
        )
        return finalized, inferred

    def create_or_update_table(self, dataset: str, table: str, metadata: TableMetadata) -> StructType:
        """
        Create the table, or append the missing columns of ``metadata`` to it.

        Args:
            dataset: Warehouse dataset
            table: Warehouse table
            metadata: Desired schema and partitioning

        Returns:
            Schema of the table after the change
        """
        for attempt in range(1, self.max_update_attempts + 1):
            current = self.warehouse.get_metadata(dataset, table)

            if current is None:
                self.warehouse.create_table(dataset, table, metadata)
                self.metrics.record_schema_change(dataset, table, "create_table")
                logger.info(
                    "Created table",
                    extra={"dataset": dataset, "table": table, "field_count": len(metadata.table_schema.fields)},
                )
                return metadata.table_schema

            merged, changes = self.evolution.merge_schemas(current.table_schema, metadata.table_schema)
            if not changes:
                return current.table_schema

            try:
                self.warehouse.update_table(dataset, table, merged, current.etag)
            except EtagMismatchError:
                if attempt == self.max_update_attempts:
                    raise
                logger.warning(
                    "Table changed during schema update, retrying",
                    extra={"dataset": dataset, "table": table, "attempt": attempt},
                )
                continue

            summary = self.evolution.detect_schema_changes(current.table_schema, merged)
            self.metrics.record_schema_change(dataset, table, "add_field", len(changes))
            logger.info(
                "Updated table schema",
                extra={
                    "dataset": dataset,
                    "table": table,
                    "changes": changes,
                    "added_columns": summary["added_fields"],
                },
            )
            return merged

        # Unreachable: the loop either returns or raises
        raise AssertionError("schema update loop exited without result")
