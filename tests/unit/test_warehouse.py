"""
Unit tests for warehouse operations (schema management, audit and backends).
"""

import logging

import pytest
from pyspark.sql.types import LongType, StringType, StructField, StructType

from logferry.core.errors import ConfigurationError, EtagMismatchError, TableNotFoundError
from logferry.core.models import Destination, LoadLog, LogRecord, SourceDescriptor, SourceLog, TableMetadata
from logferry.warehouse import (
    LOAD_LOG_SCHEMA,
    AuditWriter,
    DumpWarehouse,
    MemoryWarehouse,
    SchemaManager,
    time_partitioning_for,
)


def records(*payloads) -> list[LogRecord]:
    return [LogRecord(id=str(i), timestamp_seconds=0, data=p) for i, p in enumerate(payloads)]


SIMPLE_SCHEMA = StructType([
    StructField("id", StringType(), False),
    StructField("count", LongType(), True),
])


@pytest.mark.unit
class TestTimePartitioning:
    """Tests for time_partitioning_for"""

    @pytest.mark.parametrize("unit", ["hour", "day", "month", "year"])
    def test_known_units(self, unit):
        partitioning = time_partitioning_for(Destination(dataset="d", table="t", partition=unit))
        assert partitioning.field == "timestamp"
        assert partitioning.unit == unit

    def test_unpartitioned(self):
        assert time_partitioning_for(Destination(dataset="d", table="t")) is None

    def test_unknown_unit(self):
        with pytest.raises(ConfigurationError):
            time_partitioning_for(Destination(dataset="d", table="t", partition="minute"))


@pytest.mark.unit
class TestSchemaManager:
    """Tests for SchemaManager"""

    def test_creates_missing_table(self):
        warehouse = MemoryWarehouse()
        dst = Destination(dataset="logs", table="events", partition="day")

        finalized, inferred = SchemaManager(warehouse).evolve(dst, records({"a": 1}))

        metadata = warehouse.tables[("logs", "events")]
        assert finalized == inferred
        assert metadata.table_schema == finalized
        assert metadata.time_partitioning.unit == "day"

    def test_additive_evolution(self):
        """Test that evolving keeps existing columns and appends new ones"""
        warehouse = MemoryWarehouse()
        dst = Destination(dataset="logs", table="events")
        manager = SchemaManager(warehouse)

        manager.evolve(dst, records({"a": 1, "keep": "x"}))
        finalized, _ = manager.evolve(dst, records({"a": "text", "b": True}))

        data = finalized["data"].dataType
        assert data.fieldNames() == ["a", "keep", "b"]
        assert isinstance(data["a"].dataType, LongType)
        assert warehouse.tables[("logs", "events")].etag == "2"

    def test_update_logs_added_columns(self, caplog):
        """Test that a schema update reports the top-level columns it adds"""
        warehouse = MemoryWarehouse()
        manager = SchemaManager(warehouse)
        base = StructType([StructField("id", StringType(), False)])
        wider = StructType(base.fields + [StructField("region", StringType(), True)])

        logger = logging.getLogger("logferry")
        logger.addHandler(caplog.handler)
        caplog.set_level(logging.INFO, logger="logferry")
        try:
            manager.create_or_update_table("logs", "events", TableMetadata(table_schema=base))
            manager.create_or_update_table("logs", "events", TableMetadata(table_schema=wider))
        finally:
            logger.removeHandler(caplog.handler)

        updates = [r for r in caplog.records if r.getMessage() == "Updated table schema"]
        assert len(updates) == 1
        assert updates[0].added_columns == ["region"]

    def test_unchanged_schema_not_updated(self):
        warehouse = MemoryWarehouse()
        dst = Destination(dataset="logs", table="events")
        manager = SchemaManager(warehouse)

        manager.evolve(dst, records({"a": 1}))
        manager.evolve(dst, records({"a": 2}))

        assert warehouse.tables[("logs", "events")].etag == "1"

    def test_retries_on_etag_mismatch(self):
        """Test that a concurrent update is retried with fresh metadata"""
        warehouse = MemoryWarehouse()
        warehouse.create_table("logs", "events", TableMetadata(table_schema=SIMPLE_SCHEMA))
        original_update = warehouse.update_table
        calls = []

        def racing_update(dataset, table, schema, etag):
            calls.append(etag)
            if len(calls) == 1:
                # Another writer bumps the etag first
                original_update(dataset, table, warehouse.tables[(dataset, table)].table_schema, etag)
            original_update(dataset, table, schema, etag)

        warehouse.update_table = racing_update
        wanted = StructType(SIMPLE_SCHEMA.fields + [StructField("extra", StringType(), True)])

        schema = SchemaManager(warehouse).create_or_update_table("logs", "events", TableMetadata(table_schema=wanted))

        assert calls == ["1", "2"]
        assert schema.fieldNames() == ["id", "count", "extra"]

    def test_gives_up_after_max_attempts(self):
        warehouse = MemoryWarehouse()
        warehouse.create_table("logs", "events", TableMetadata(table_schema=SIMPLE_SCHEMA))

        def always_stale(dataset, table, schema, etag):
            raise EtagMismatchError("stale")

        warehouse.update_table = always_stale
        wanted = StructType(SIMPLE_SCHEMA.fields + [StructField("extra", StringType(), True)])

        with pytest.raises(EtagMismatchError):
            SchemaManager(warehouse, max_update_attempts=2).create_or_update_table(
                "logs", "events", TableMetadata(table_schema=wanted)
            )


@pytest.mark.unit
class TestMemoryWarehouse:
    """Tests for MemoryWarehouse"""

    def test_insert_requires_table(self):
        warehouse = MemoryWarehouse()
        with pytest.raises(TableNotFoundError):
            warehouse.insert("logs", "events", SIMPLE_SCHEMA, [{"id": "1"}])
        assert len(warehouse.inserted) == 1

    def test_rows_deduplicated_by_id(self):
        warehouse = MemoryWarehouse()
        warehouse.create_table("logs", "events", TableMetadata(table_schema=SIMPLE_SCHEMA))
        warehouse.insert("logs", "events", SIMPLE_SCHEMA, [{"id": "1", "count": 1}])
        warehouse.insert("logs", "events", SIMPLE_SCHEMA, [{"id": "1", "count": 2}, {"id": "2", "count": 3}])

        assert [row["count"] for row in warehouse.table_rows("logs", "events")] == [1, 3]

    def test_stale_etag(self):
        warehouse = MemoryWarehouse()
        warehouse.create_table("logs", "events", TableMetadata(table_schema=SIMPLE_SCHEMA))
        with pytest.raises(EtagMismatchError):
            warehouse.update_table("logs", "events", SIMPLE_SCHEMA, "0")


@pytest.mark.unit
class TestDumpWarehouse:
    """Tests for DumpWarehouse"""

    def test_create_insert_and_query(self, tmp_path):
        warehouse = DumpWarehouse(tmp_path)
        warehouse.create_table("logs", "events", TableMetadata(table_schema=SIMPLE_SCHEMA))
        warehouse.insert("logs", "events", SIMPLE_SCHEMA, [{"id": "1", "count": 1}, {"id": "2", "count": 2}])

        assert (tmp_path / "logs" / "events.schema.json").exists()
        assert [row["id"] for row in warehouse.query("logs.events")] == ["1", "2"]

        metadata = warehouse.get_metadata("logs", "events")
        assert metadata.table_schema == SIMPLE_SCHEMA
        assert metadata.etag == "1"

    def test_update_bumps_etag(self, tmp_path):
        warehouse = DumpWarehouse(tmp_path)
        warehouse.create_table("logs", "events", TableMetadata(table_schema=SIMPLE_SCHEMA))
        wider = StructType(SIMPLE_SCHEMA.fields + [StructField("extra", StringType(), True)])

        warehouse.update_table("logs", "events", wider, "1")

        assert warehouse.get_metadata("logs", "events").etag == "2"
        with pytest.raises(EtagMismatchError):
            warehouse.update_table("logs", "events", wider, "1")

    def test_missing_table(self, tmp_path):
        warehouse = DumpWarehouse(tmp_path)
        assert warehouse.get_metadata("logs", "events") is None
        with pytest.raises(TableNotFoundError):
            warehouse.insert("logs", "events", SIMPLE_SCHEMA, [{"id": "1"}])


@pytest.mark.unit
class TestAuditWriter:
    """Tests for AuditWriter"""

    def test_write_creates_table_once(self):
        warehouse = MemoryWarehouse()
        writer = AuditWriter(warehouse, "test-dataset", "test-table")
        source_log = SourceLog(
            bucket="b", object_name="o.json", source=SourceDescriptor(schema="cloudtrail"), success=True
        )

        writer.write(LoadLog(id="run-1", sources=[source_log], success=True))
        writer.write(LoadLog(id="run-2"))

        assert warehouse.tables[("test-dataset", "test-table")].table_schema == LOAD_LOG_SCHEMA
        rows = warehouse.table_rows("test-dataset", "test-table")
        assert [row["id"] for row in rows] == ["run-1", "run-2"]
        assert rows[0]["sources"][0]["schema"] == "cloudtrail"
