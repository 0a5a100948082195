"""
Import scheduler: fans load requests out to a bounded worker pool and
merges their results once every worker is done.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Iterable

from logferry.core.errors import LoadError
from logferry.core.models import LoadRequest, RecordSet, SourceLog
from logferry.core.models.run_logs import utcnow
from logferry.observability.logger import get_logger

from .importer import ImportOutcome, SourceImporter, source_error

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 32


@dataclass
class ImportResult:
    """
    Merged result of importing many sources.

    Attributes:
        record_set: Records of every successful source, merged by destination
        source_logs: One SourceLog per request, in completion order
        errors: One error per failed request
    """

    record_set: RecordSet = field(default_factory=RecordSet)
    source_logs: list[SourceLog] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)

    @property
    def error(self) -> LoadError | None:
        """Aggregate of every source error, or None if all sources succeeded."""
        return LoadError(self.errors) if self.errors else None


class ImportScheduler:
    """
    Runs SourceImporter over many requests with a fixed worker budget.

    One failing source never stops the others; its log is kept and its
    error is aggregated.
    """

    def __init__(self, importer: SourceImporter, max_workers: int = DEFAULT_MAX_WORKERS):
        """
        Initialize import scheduler.

        Args:
            importer: Importer run for every request
            max_workers: Maximum number of concurrent imports
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.importer = importer
        self.max_workers = max_workers

    def run(self, requests: Iterable[LoadRequest]) -> ImportResult:
        """
        Import every request and merge the outcomes.

        Args:
            requests: Load requests

        Returns:
            ImportResult with merged records, all source logs and all errors
        """
        requests = list(requests)
        result = ImportResult()
        if not requests:
            return result

        outcomes: list[ImportOutcome] = []
        workers = min(self.max_workers, len(requests))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="logferry-import") as executor:
            futures = {executor.submit(self.importer.import_source, request): request for request in requests}
            for future in as_completed(futures):
                try:
                    outcomes.append(future.result())
                except Exception as e:
                    outcomes.append(self._failed_outcome(futures[future], e))

        # The executor has shut down: every worker is finished, merge single-threaded
        for outcome in outcomes:
            result.source_logs.append(outcome.source_log)
            if outcome.error is not None:
                result.errors.append(outcome.error)
                continue
            result.record_set.merge(outcome.record_set)

        logger.info(
            "Imported sources",
            extra={
                "source_count": len(requests),
                "failed_count": len(result.errors),
                "destination_count": len(result.record_set),
                "record_count": result.record_set.total_records(),
            },
        )
        return result

    @staticmethod
    def _failed_outcome(request: LoadRequest, error: Exception) -> ImportOutcome:
        """Outcome for an import that raised instead of returning."""
        error = source_error(request, error)

        logger.error(
            f"Import worker failed: {error}",
            extra={"object": str(request.object), "error_type": type(error).__name__},
        )
        source_log = SourceLog(
            bucket=request.object.bucket,
            object_name=request.object.name,
            source=request.source,
            error=str(error),
            finished_at=utcnow(),
        )
        return ImportOutcome(record_set=RecordSet(), source_log=source_log, error=error)
