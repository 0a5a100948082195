"""
Prometheus metrics collection for logferry

This module provides metrics instrumentation for monitoring
import throughput, ingest health and schema evolution.
"""
import os
from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
)


# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# IMPORT METRICS
# =======================

# Sources imported counter
sources_imported_total = Counter(
    name="logferry_sources_imported_total",
    documentation="Total number of source objects imported",
    labelnames=["schema", "status"],  # status: success, failure
    registry=REGISTRY,
)

# Raw rows decoded from source objects
raw_rows_total = Counter(
    name="logferry_raw_rows_total",
    documentation="Total number of raw records decoded from source objects",
    labelnames=["schema"],
    registry=REGISTRY,
)

# Log records built from policy output
records_built_total = Counter(
    name="logferry_records_built_total",
    documentation="Total number of log records built from policy output",
    labelnames=["schema"],
    registry=REGISTRY,
)

# Raw rows without any policy output
empty_policy_outputs_total = Counter(
    name="logferry_empty_policy_outputs_total",
    documentation="Raw records for which the policy emitted no logs",
    labelnames=["schema"],
    registry=REGISTRY,
)

# Source import duration
import_duration_seconds = Histogram(
    name="logferry_import_duration_seconds",
    documentation="Time spent importing one source object in seconds",
    labelnames=["schema"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
    registry=REGISTRY,
)

# =======================
# INGEST METRICS
# =======================

# Insert calls issued to the warehouse
insert_chunks_total = Counter(
    name="logferry_insert_chunks_total",
    documentation="Total number of warehouse insert calls",
    labelnames=["dataset", "table", "status"],  # status: success, failure
    registry=REGISTRY,
)

# Records inserted into the warehouse
records_ingested_total = Counter(
    name="logferry_records_ingested_total",
    documentation="Total number of records inserted into the warehouse",
    labelnames=["dataset", "table"],
    registry=REGISTRY,
)

# Schema evolution events
schema_evolution_total = Counter(
    name="logferry_schema_evolution_total",
    documentation="Total number of schema evolution events",
    labelnames=["dataset", "table", "change_type"],  # change_type: create_table, add_field
    registry=REGISTRY,
)

# Load duration
load_duration_seconds = Histogram(
    name="logferry_load_duration_seconds",
    documentation="Time spent in one end-to-end load call in seconds",
    labelnames=["status"],
    buckets=[0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get content type for Prometheus metrics"""
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: the HTTP server is only needed when the endpoint is enabled
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    counter.labels(**labels).inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """
    Observe a value in a histogram metric

    Args:
        histogram: Prometheus Histogram metric
        value: Value to observe
        **labels: Label values for the metric
    """
    histogram.labels(**labels).observe(value)


# =======================
# METRICS COLLECTOR CLASS
# =======================

class MetricsCollector:
    """
    Metrics collector for loader components.

    Provides a unified interface so importer, ingestor and pipeline
    do not touch the individual metric objects.
    """

    def record_source_imported(
        self,
        schema: str,
        row_count: int,
        record_count: int,
        success: bool,
        duration_seconds: float = 0.0,
    ) -> None:
        """
        Record the outcome of one source import.

        Args:
            schema: Schema name of the source descriptor
            row_count: Raw records attempted
            record_count: Log records built (0 when the source failed)
            success: Whether the source was imported successfully
            duration_seconds: Time taken to import the source
        """
        status = "success" if success else "failure"
        increment_counter(sources_imported_total, 1, schema=schema, status=status)
        if row_count > 0:
            increment_counter(raw_rows_total, row_count, schema=schema)
        if record_count > 0:
            increment_counter(records_built_total, record_count, schema=schema)
        if duration_seconds > 0:
            observe_histogram(import_duration_seconds, duration_seconds, schema=schema)

    def record_empty_output(self, schema: str) -> None:
        """Record a raw record skipped because the policy emitted nothing."""
        increment_counter(empty_policy_outputs_total, 1, schema=schema)

    def record_insert_chunk(self, dataset: str, table: str, size: int, success: bool) -> None:
        """
        Record one warehouse insert call.

        Args:
            dataset: Destination dataset
            table: Destination table
            size: Number of rows in the chunk
            success: Whether the insert succeeded
        """
        status = "success" if success else "failure"
        increment_counter(insert_chunks_total, 1, dataset=dataset, table=table, status=status)
        if success and size > 0:
            increment_counter(records_ingested_total, size, dataset=dataset, table=table)

    def record_schema_change(self, dataset: str, table: str, change_type: str, count: int = 1) -> None:
        """Record schema evolution events for a destination table."""
        if count > 0:
            increment_counter(schema_evolution_total, count, dataset=dataset, table=table, change_type=change_type)

    def record_load(self, success: bool, duration_seconds: float) -> None:
        """Record the duration of one end-to-end load call."""
        status = "success" if success else "failure"
        observe_histogram(load_duration_seconds, duration_seconds, status=status)
