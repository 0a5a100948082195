"""
Load pipeline orchestration.

Coordinates the flow: import sources → merge by destination → evolve
tables → insert records → write the audit record.
"""

import json
from typing import Any, Iterable

from pydantic import ValidationError

from logferry.core.config import Clients, PipelineConfig, build_clients, setup_observability
from logferry.core.errors import IngestError, LoadError, PolicyError, SourceDecodeError
from logferry.core.models import LoadLog, LoadMessage, LoadRequest, ObjectRef, SourceDescriptor
from logferry.observability.logger import get_logger, log_operation
from logferry.observability.metrics import MetricsCollector
from logferry.observability.run_logger import RunLogger
from logferry.policy import PolicyEvaluator
from logferry.warehouse.audit import AuditWriter
from logferry.warehouse.schema_mgmt import SchemaManager

from .importer import SourceImporter
from .record_builder import RecordBuilder
from .scheduler import ImportScheduler
from .writers import BatchWarehouseWriter

logger = get_logger(__name__)

# Policy query selecting the source descriptors of an object event
SOURCE_QUERY = "data.source"


class LoadPipeline:
    """
    Orchestrates one load call end to end.

    Flow:
    1. Import every request concurrently (ImportScheduler)
    2. For each destination: evolve the table, insert in chunks
    3. Record and persist the LoadLog (RunLogger)

    Sources that fail contribute their SourceLog but no records; the
    records of the other sources are still loaded. Every destination is
    attempted. All failures are raised together as one LoadError after
    the audit record is written.
    """

    def __init__(self, clients: Clients, config: PipelineConfig | None = None):
        """
        Initialize load pipeline.

        Args:
            clients: Object store, policy, warehouse (and queue) collaborators
            config: Loader configuration (defaults if None)
        """
        self.clients = clients
        self.config = config or PipelineConfig()
        self.metrics = MetricsCollector()

        importer = SourceImporter(
            clients.object_store,
            clients.policy,
            builder=RecordBuilder(),
            metrics=self.metrics,
        )
        self.scheduler = ImportScheduler(importer, max_workers=self.config.max_workers)
        self.writer = BatchWarehouseWriter(
            clients.warehouse,
            schema_manager=SchemaManager(clients.warehouse, metrics=self.metrics),
            chunk_size=self.config.insert_chunk_size,
            metrics=self.metrics,
        )

        self.audit_writer = None
        if self.config.audit.enabled:
            self.audit_writer = AuditWriter(clients.warehouse, self.config.audit.dataset, self.config.audit.table)

    @classmethod
    def from_config(cls, config: PipelineConfig, policy: PolicyEvaluator) -> "LoadPipeline":
        """
        Configure logging and metrics, then build a pipeline over the
        configured backends.

        Args:
            config: Loader configuration
            policy: Policy evaluator

        Returns:
            LoadPipeline ready to load
        """
        setup_observability(config)
        return cls(build_clients(config, policy), config)

    def load(self, requests: Iterable[LoadRequest]) -> LoadLog:
        """
        Import, transform and load a set of source objects.

        Args:
            requests: Load requests

        Returns:
            Successful LoadLog

        Raises:
            LoadError: If any source or destination failed; ``load_log``
                carries the finalized LoadLog
        """
        requests = list(requests)
        with RunLogger(self.audit_writer, self.metrics) as load_log:
            with log_operation("Importing sources", logger=logger, source_count=len(requests)):
                result = self.scheduler.run(requests)
            load_log.sources = result.source_logs
            errors: list[Exception] = list(result.errors)

            for destination, records in result.record_set.items():
                try:
                    ingest_log = self.writer.ingest(destination, records)
                except IngestError as e:
                    ingest_log = e.ingest_log
                    errors.append(e)
                load_log.ingests.append(ingest_log)

            if errors:
                error = LoadError(errors, load_log=load_log)
                load_log.error = str(error)
            else:
                error = None
                load_log.success = True

        # Raised after RunLogger has finalized and persisted the log
        if error is not None:
            raise error
        return load_log

    def object_requests(self, url: str) -> list[LoadRequest]:
        """
        Build the load requests of one object by asking the policy which
        sources apply to it.

        Args:
            url: Object URL (<scheme>://<bucket>/<name>)

        Returns:
            One LoadRequest per matching source descriptor

        Raises:
            ConfigurationError: If the URL is malformed
            SourceDecodeError: If the object attributes cannot be read
            PolicyError: If the policy output is not a list of source descriptors
        """
        obj = ObjectRef.from_url(url)
        attrs = self.clients.object_store.attrs(obj)
        result = self.clients.policy.query(SOURCE_QUERY, attrs.to_event())

        try:
            sources = [SourceDescriptor.model_validate(source) for source in result.get("sources", [])]
        except (ValidationError, TypeError) as e:
            raise PolicyError(f"invalid source policy output: {e}", object=str(obj)) from e

        if not sources:
            logger.warning("No source matched object", extra={"object": str(obj)})
        return [LoadRequest(object=obj, source=source) for source in sources]

    def load_object(self, url: str) -> LoadLog | None:
        """
        Load one object by URL.

        Returns:
            LoadLog of the load, or None when no source matched the object
        """
        requests = self.object_requests(url)
        if not requests:
            return None
        return self.load(requests)

    def handle_message(self, payload: bytes | str) -> list[LoadLog]:
        """
        Load every object of a published load message.

        Args:
            payload: JSON encoded LoadMessage

        Returns:
            LoadLogs of the loads that ran

        Raises:
            SourceDecodeError: If the payload is not a valid load message
            LoadError: If any object failed; the other objects are still loaded
        """
        message = self._decode_message(payload)

        load_logs: list[LoadLog] = []
        errors: list[Exception] = []
        for url in message.urls:
            try:
                load_log = self.load_object(url)
            except LoadError as e:
                errors.extend(e.errors)
                if e.load_log is not None:
                    load_logs.append(e.load_log)
                continue
            except Exception as e:
                logger.error(f"Failed to load object: {e}", extra={"url": url, "error_type": type(e).__name__})
                errors.append(e)
                continue
            if load_log is not None:
                load_logs.append(load_log)

        if errors:
            raise LoadError(errors)
        return load_logs

    @staticmethod
    def _decode_message(payload: bytes | str) -> LoadMessage:
        try:
            data: Any = json.loads(payload)
            return LoadMessage.model_validate(data)
        except (ValueError, ValidationError) as e:
            raise SourceDecodeError(f"invalid load message: {e}") from e
