"""
Audit record persistence for load runs.

Each load call writes one LoadLog row, embedding its source and ingest
logs, into the configured audit table.
"""

from pyspark.sql.types import (
    ArrayType,
    BooleanType,
    LongType,
    StringType,
    StructField,
    StructType,
    TimestampType,
)

from logferry.core.models import LoadLog, TableMetadata
from logferry.observability.logger import get_logger

from .base import Warehouse
from .schema_mgmt import SchemaManager

logger = get_logger(__name__)

SOURCE_LOG_SCHEMA = StructType([
    StructField("bucket", StringType(), True),
    StructField("object_name", StringType(), True),
    StructField("parser", StringType(), True),
    StructField("schema", StringType(), True),
    StructField("compress", StringType(), True),
    StructField("row_count", LongType(), True),
    StructField("success", BooleanType(), True),
    StructField("error", StringType(), True),
    StructField("started_at", TimestampType(), True),
    StructField("finished_at", TimestampType(), True),
])

INGEST_LOG_SCHEMA = StructType([
    StructField("id", StringType(), True),
    StructField("dataset", StringType(), True),
    StructField("table", StringType(), True),
    StructField("log_count", LongType(), True),
    StructField("table_schema", StringType(), True),
    StructField("success", BooleanType(), True),
    StructField("error", StringType(), True),
    StructField("started_at", TimestampType(), True),
    StructField("finished_at", TimestampType(), True),
])

LOAD_LOG_SCHEMA = StructType([
    StructField("id", StringType(), False),
    StructField("sources", ArrayType(SOURCE_LOG_SCHEMA, True), True),
    StructField("ingests", ArrayType(INGEST_LOG_SCHEMA, True), True),
    StructField("success", BooleanType(), True),
    StructField("error", StringType(), True),
    StructField("started_at", TimestampType(), True),
    StructField("finished_at", TimestampType(), True),
])


class AuditWriter:
    """
    Writes LoadLog records to the audit table.

    The audit table is created (or evolved) on first write and its
    finalized schema is reused afterwards.
    """

    def __init__(self, warehouse: Warehouse, dataset: str, table: str):
        """
        Initialize audit writer.

        Args:
            warehouse: Warehouse holding the audit table
            dataset: Audit dataset
            table: Audit table
        """
        self.warehouse = warehouse
        self.dataset = dataset
        self.table = table
        self._schema: StructType | None = None

    def setup_table(self) -> StructType:
        """
        Create or update the audit table.

        Returns:
            Finalized audit table schema
        """
        if self._schema is None:
            manager = SchemaManager(self.warehouse)
            self._schema = manager.create_or_update_table(
                self.dataset, self.table, TableMetadata(table_schema=LOAD_LOG_SCHEMA)
            )
        return self._schema

    def write(self, load_log: LoadLog) -> None:
        """
        Insert one load log row.

        Args:
            load_log: Finalized load log

        Raises:
            WarehouseError: If the table cannot be prepared or the insert fails
        """
        schema = self.setup_table()
        self.warehouse.insert(self.dataset, self.table, schema, [load_log.to_row()])
        logger.debug(
            "Inserted load log",
            extra={"run_id": load_log.id, "dataset": self.dataset, "table": self.table},
        )
