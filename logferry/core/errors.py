"""
Exception hierarchy for the loader.

Per-source errors (decode, validation, policy, configuration) abort a
single source; warehouse errors abort a single destination. LoadError
aggregates everything that failed during one load call.
"""

from typing import Any


class PipelineError(Exception):
    """Base class for all loader errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context

    def __str__(self) -> str:
        message = super().__str__()
        if not self.context:
            return message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{message} ({details})"

    def add_context(self, **context: Any) -> "PipelineError":
        """
        Add context entries that are not already set.

        Returns:
            self, so the call can be used in a raise or return
        """
        for key, value in context.items():
            self.context.setdefault(key, value)
        return self


class ConfigurationError(PipelineError):
    """Raised for caller configuration mistakes (unknown compression, partition unit, ...)."""
    pass


class SourceDecodeError(PipelineError):
    """Raised when a source object cannot be opened, decompressed or decoded."""
    pass


class PolicyError(PipelineError):
    """Raised when the policy evaluator fails for a raw record."""
    pass


class RecordValidationError(PipelineError):
    """Raised when a structured log emitted by the policy is invalid."""
    pass


class SourceImportError(PipelineError):
    """Raised for unexpected failures while importing a source."""
    pass


class SchemaInferenceError(PipelineError):
    """Raised when observed values have no common column type."""
    pass


class WarehouseError(PipelineError):
    """Raised by warehouse backends for metadata or insert failures."""
    pass


class TableNotFoundError(WarehouseError):
    """Raised when a table is updated or written before it exists."""
    pass


class EtagMismatchError(WarehouseError):
    """Raised when a table update carries a stale etag."""
    pass


class IngestError(PipelineError):
    """
    Raised when loading one destination fails.

    Attributes:
        ingest_log: The finalized (unsuccessful) IngestLog of the destination
    """

    def __init__(self, message: str, ingest_log: Any = None, **context: Any):
        super().__init__(message, **context)
        self.ingest_log = ingest_log


class LoadError(PipelineError):
    """
    Aggregate of every failure within one load call.

    Attributes:
        errors: The individual errors, one per failing source or destination
        load_log: LoadLog of the failed call, when raised by a load
    """

    def __init__(self, errors: list[Exception], load_log: Any = None):
        self.errors = list(errors)
        self.load_log = load_log
        lines = [f"{len(self.errors)} error(s) during load:"]
        lines.extend(f"  - {type(err).__name__}: {err}" for err in self.errors)
        super().__init__("\n".join(lines))
