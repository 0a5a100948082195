"""
Run logging for load calls.

Wraps one load call: allocates its LoadLog, finalizes it on exit and
persists it to the audit table when one is configured.
"""

import time
import uuid

from logferry.core.models import LoadLog
from logferry.core.models.run_logs import utcnow
from logferry.warehouse.audit import AuditWriter

from .logger import get_logger
from .metrics import MetricsCollector

logger = get_logger(__name__)


class RunLogger:
    """
    Context manager around one load call.

    Usage:
        with RunLogger(audit_writer) as load_log:
            load_log.sources.extend(...)
            load_log.success = True

    Audit write failures are logged and never propagate; an exception
    raised inside the block is recorded and re-raised unchanged.
    """

    def __init__(self, audit_writer: AuditWriter | None = None, metrics: MetricsCollector | None = None):
        """
        Initialize run logger.

        Args:
            audit_writer: Writer for the audit table (no audit record if None)
            metrics: Metrics collector (default instance if None)
        """
        self.audit_writer = audit_writer
        self.metrics = metrics or MetricsCollector()
        self.load_log: LoadLog | None = None
        self._started = 0.0

    def __enter__(self) -> LoadLog:
        self.load_log = LoadLog(id=str(uuid.uuid4()))
        self._started = time.monotonic()
        return self.load_log

    def __exit__(self, exc_type, exc_val, exc_tb):
        load_log = self.load_log
        load_log.finished_at = utcnow()
        if exc_val is not None:
            load_log.success = False
            if load_log.error is None:
                load_log.error = str(exc_val)

        duration = time.monotonic() - self._started
        logger.info(
            "request handled",
            extra={
                "run_id": load_log.id,
                "success": load_log.success,
                "source_count": len(load_log.sources),
                "ingest_count": len(load_log.ingests),
                "duration_seconds": round(duration, 3),
                "error": load_log.error,
            },
        )
        self.metrics.record_load(load_log.success, duration)

        if self.audit_writer is not None:
            try:
                self.audit_writer.write(load_log)
            except Exception as e:
                logger.error(
                    f"Failed to write load log: {e}",
                    extra={"run_id": load_log.id, "error_type": type(e).__name__},
                )
        return False
