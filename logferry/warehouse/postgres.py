"""
PostgreSQL warehouse backend.

Datasets map to PostgreSQL schemas and tables to tables. Top-level
columns of the table schema become real columns (structs and arrays as
JSONB). Table metadata and its etag live in a registry table so schema
updates can be guarded with optimistic concurrency.

Inserts use INSERT ... ON CONFLICT (id) DO NOTHING, so re-loading an
object with deterministic ids does not duplicate rows.
"""

import json
from typing import Any, Iterator, Mapping, Sequence

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb
from pyspark.sql.types import (
    ArrayType,
    BooleanType,
    DataType,
    DoubleType,
    LongType,
    StringType,
    StructType,
    TimestampType,
)

from logferry.core.errors import EtagMismatchError, TableNotFoundError, WarehouseError
from logferry.core.models import TableMetadata, TimePartitioning
from logferry.core.schema import dict_to_schema, schema_to_dict
from logferry.observability.logger import get_logger

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

METADATA_TABLE = "logferry_table_metadata"

# Spark type -> PostgreSQL column type
COLUMN_TYPES = {
    StringType: "TEXT",
    LongType: "BIGINT",
    DoubleType: "DOUBLE PRECISION",
    BooleanType: "BOOLEAN",
    TimestampType: "TIMESTAMPTZ",
}


def column_type(data_type: DataType) -> str:
    """
    Map a Spark data type to a PostgreSQL column type.

    Args:
        data_type: Spark data type of a top-level column

    Returns:
        PostgreSQL type name; nested types are stored as JSONB
    """
    if isinstance(data_type, (StructType, ArrayType)):
        return "JSONB"
    return COLUMN_TYPES.get(type(data_type), "TEXT")


class PostgresWarehouse:
    """
    Warehouse backed by PostgreSQL.

    Handles:
    - Table creation from a Spark schema
    - Additive column changes guarded by an etag
    - Idempotent inserts keyed by record id
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize PostgreSQL warehouse.

        Args:
            pool: Open database connection pool
        """
        self.pool = pool
        self._registry_ready = False

    def _ensure_registry(self) -> None:
        if self._registry_ready:
            return
        with self.pool.transaction() as cur:
            cur.execute(
                sql.SQL("""
                    CREATE TABLE IF NOT EXISTS {} (
                        dataset TEXT NOT NULL,
                        table_name TEXT NOT NULL,
                        table_schema JSONB NOT NULL,
                        time_partitioning JSONB,
                        etag BIGINT NOT NULL DEFAULT 1,
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                        PRIMARY KEY (dataset, table_name)
                    )
                """).format(sql.Identifier(METADATA_TABLE))
            )
        self._registry_ready = True

    def insert(
        self,
        dataset: str,
        table: str,
        schema: StructType,
        rows: Sequence[Mapping[str, Any]],
    ) -> None:
        if not rows:
            return

        columns = list(schema.fields)
        query = sql.SQL("INSERT INTO {}.{} ({}) VALUES ({}) ON CONFLICT (id) DO NOTHING").format(
            sql.Identifier(dataset),
            sql.Identifier(table),
            sql.SQL(", ").join(sql.Identifier(field.name) for field in columns),
            sql.SQL(", ").join(sql.Placeholder() for _ in columns),
        )

        params = [
            tuple(self._adapt(row.get(field.name), field.dataType) for field in columns)
            for row in rows
        ]

        try:
            with self.pool.transaction() as cur:
                cur.executemany(query, params)
        except psycopg.errors.UndefinedTable as e:
            raise TableNotFoundError("table not found", dataset=dataset, table=table) from e
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to insert rows: {e}", extra={"dataset": dataset, "table": table})
            raise WarehouseError(f"insert failed: {e}", dataset=dataset, table=table) from e

    def _adapt(self, value: Any, data_type: DataType) -> Any:
        if value is not None and isinstance(data_type, (StructType, ArrayType)):
            return Jsonb(value, dumps=lambda obj: json.dumps(obj, default=str))
        return value

    def get_metadata(self, dataset: str, table: str) -> TableMetadata | None:
        self._ensure_registry()
        rows = self.pool.execute_query(
            sql.SQL(
                "SELECT table_schema, time_partitioning, etag FROM {} "
                "WHERE dataset = %s AND table_name = %s"
            ).format(sql.Identifier(METADATA_TABLE)),
            (dataset, table),
        )
        if not rows:
            return None

        row = rows[0]
        partitioning = row["time_partitioning"]
        return TableMetadata(
            table_schema=dict_to_schema(row["table_schema"]),
            time_partitioning=TimePartitioning(**partitioning) if partitioning else None,
            etag=str(row["etag"]),
        )

    def create_table(self, dataset: str, table: str, metadata: TableMetadata) -> None:
        self._ensure_registry()
        schema = metadata.table_schema
        column_defs = []
        for field in schema.fields:
            definition = sql.SQL("{} {}").format(sql.Identifier(field.name), sql.SQL(column_type(field.dataType)))
            if field.name == "id":
                definition = sql.SQL("{} PRIMARY KEY").format(definition)
            elif not field.nullable:
                definition = sql.SQL("{} NOT NULL").format(definition)
            column_defs.append(definition)

        partitioning = metadata.time_partitioning
        try:
            with self.pool.transaction() as cur:
                cur.execute(sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(dataset)))
                cur.execute(
                    sql.SQL("CREATE TABLE {}.{} ({})").format(
                        sql.Identifier(dataset), sql.Identifier(table), sql.SQL(", ").join(column_defs)
                    )
                )
                if partitioning is not None:
                    # BRIN index on the partition field stands in for time partitioning
                    cur.execute(
                        sql.SQL("CREATE INDEX {} ON {}.{} USING BRIN ({})").format(
                            sql.Identifier(f"{table}_{partitioning.field}_{partitioning.unit}_idx"),
                            sql.Identifier(dataset),
                            sql.Identifier(table),
                            sql.Identifier(partitioning.field),
                        )
                    )
                cur.execute(
                    sql.SQL(
                        "INSERT INTO {} (dataset, table_name, table_schema, time_partitioning) "
                        "VALUES (%s, %s, %s, %s)"
                    ).format(sql.Identifier(METADATA_TABLE)),
                    (
                        dataset,
                        table,
                        Jsonb(schema_to_dict(schema)),
                        Jsonb(partitioning.model_dump()) if partitioning else None,
                    ),
                )
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to create table: {e}", extra={"dataset": dataset, "table": table})
            raise WarehouseError(f"create table failed: {e}", dataset=dataset, table=table) from e

    def update_table(self, dataset: str, table: str, schema: StructType, etag: str | None) -> None:
        self._ensure_registry()
        current = self.get_metadata(dataset, table)
        if current is None:
            raise TableNotFoundError("table not found", dataset=dataset, table=table)

        existing = set(current.table_schema.fieldNames())
        try:
            with self.pool.transaction() as cur:
                cur.execute(
                    sql.SQL(
                        "UPDATE {} SET table_schema = %s, etag = etag + 1, updated_at = NOW() "
                        "WHERE dataset = %s AND table_name = %s AND etag = %s"
                    ).format(sql.Identifier(METADATA_TABLE)),
                    (Jsonb(schema_to_dict(schema)), dataset, table, int(etag) if etag else -1),
                )
                if cur.rowcount == 0:
                    raise EtagMismatchError(
                        "table was modified concurrently", dataset=dataset, table=table, etag=etag
                    )

                for field in schema.fields:
                    if field.name in existing:
                        continue
                    cur.execute(
                        sql.SQL("ALTER TABLE {}.{} ADD COLUMN IF NOT EXISTS {} {}").format(
                            sql.Identifier(dataset),
                            sql.Identifier(table),
                            sql.Identifier(field.name),
                            sql.SQL(column_type(field.dataType)),
                        )
                    )
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to update table: {e}", extra={"dataset": dataset, "table": table})
            raise WarehouseError(f"update table failed: {e}", dataset=dataset, table=table) from e

    def query(self, query: str) -> Iterator[Mapping[str, Any]]:
        try:
            return iter(self.pool.execute_query(query))
        except psycopg.DatabaseError as e:
            raise WarehouseError(f"query failed: {e}") from e
