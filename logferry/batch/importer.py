"""
Source importer: turns one source object into destination keyed records.

Flow: read object → evaluate policy per raw record → validate → build
records. Any failure discards everything the source produced.
"""

import time
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from logferry.core.errors import PipelineError, RecordValidationError, SourceImportError
from logferry.core.models import LoadRequest, PolicyOutput, RecordSet, SourceLog
from logferry.core.models.run_logs import utcnow
from logferry.observability.logger import get_logger
from logferry.observability.metrics import MetricsCollector
from logferry.policy import PolicyEvaluator
from logferry.storage import ObjectStore

from .readers import ObjectReader
from .record_builder import RecordBuilder

logger = get_logger(__name__)


def source_error(request: LoadRequest, error: Exception) -> PipelineError:
    """
    Name the failing object in the error's context.

    Unexpected exceptions are wrapped in SourceImportError.

    Args:
        request: Request whose import failed
        error: The failure

    Returns:
        PipelineError whose context includes the object URL
    """
    if not isinstance(error, PipelineError):
        wrapped = SourceImportError(f"{type(error).__name__}: {error}")
        wrapped.__cause__ = error
        error = wrapped
    return error.add_context(object=str(request.object))


@dataclass
class ImportOutcome:
    """
    Result of importing one source.

    Attributes:
        record_set: Records built from the source (empty when it failed)
        source_log: Finalized log of the source
        error: The failure, or None on success
    """

    record_set: RecordSet
    source_log: SourceLog
    error: Exception | None = None


class SourceImporter:
    """
    Imports one load request.

    Each call builds its own RecordSet, so one importer can serve many
    worker threads at once.
    """

    def __init__(
        self,
        object_store: ObjectStore,
        policy: PolicyEvaluator,
        builder: RecordBuilder | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize source importer.

        Args:
            object_store: Store the source objects are read from
            policy: Policy evaluator transforming raw records
            builder: Record builder (default instance if None)
            metrics: Metrics collector (default instance if None)
        """
        self.reader = ObjectReader(object_store)
        self.policy = policy
        self.builder = builder or RecordBuilder()
        self.metrics = metrics or MetricsCollector()

    def import_source(self, request: LoadRequest) -> ImportOutcome:
        """
        Import one source object.

        Failures are not raised; they are returned in the outcome and
        recorded in its source log.

        Args:
            request: Object and source descriptor

        Returns:
            ImportOutcome with the partial record set and source log
        """
        source_log = SourceLog(
            bucket=request.object.bucket,
            object_name=request.object.name,
            source=request.source,
        )
        record_set = RecordSet()
        started = time.monotonic()
        error: Exception | None = None

        try:
            for row in self.reader.read(request):
                source_log.row_count += 1
                self._import_row(request, row, record_set)
        except Exception as e:
            error = source_error(request, e)
            source_log.error = str(error)
            # Nothing of a failed source is loaded
            record_set = RecordSet()
            logger.error(
                f"Failed to import source: {e}",
                extra={
                    "object": str(request.object),
                    "schema": request.source.schema_name,
                    "row_count": source_log.row_count,
                    "error_type": type(e).__name__,
                },
            )
        else:
            source_log.success = True
            logger.info(
                "Imported source",
                extra={
                    "object": str(request.object),
                    "schema": request.source.schema_name,
                    "row_count": source_log.row_count,
                    "record_count": record_set.total_records(),
                },
            )
        finally:
            source_log.finished_at = utcnow()

        try:
            self.metrics.record_source_imported(
                schema=request.source.schema_name,
                row_count=source_log.row_count,
                record_count=record_set.total_records(),
                success=source_log.success,
                duration_seconds=time.monotonic() - started,
            )
        except Exception as e:
            logger.warning(f"Failed to record import metrics: {e}", extra={"object": str(request.object)})
        return ImportOutcome(record_set=record_set, source_log=source_log, error=error)

    def _import_row(self, request: LoadRequest, row: Any, record_set: RecordSet) -> None:
        result = self.policy.query(request.source.schema_query(), row)
        try:
            output = PolicyOutput.model_validate(result)
        except ValidationError as e:
            raise RecordValidationError(
                "invalid policy output", schema=request.source.schema_name
            ) from e

        if not output.logs:
            logger.warning(
                "No log data in schema policy",
                extra={"object": str(request.object), "schema": request.source.schema_name},
            )
            self.metrics.record_empty_output(request.source.schema_name)
            return

        # Validate the whole batch first so a bad row leaves no partial output
        logs = [self.builder.validate(raw) for raw in output.logs]
        for index, log in enumerate(logs):
            record = self.builder.build(log, request.object, index)
            record_set.add(log.destination, record)
