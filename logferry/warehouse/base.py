"""
Warehouse capability.
"""

from typing import Any, Iterator, Mapping, Protocol, Sequence

from pyspark.sql.types import StructType

from logferry.core.models import TableMetadata


class Warehouse(Protocol):
    """
    Analytical warehouse holding destination and audit tables.

    Tables are addressed by (dataset, table). Backends raise
    WarehouseError subclasses on failure.
    """

    def insert(
        self,
        dataset: str,
        table: str,
        schema: StructType,
        rows: Sequence[Mapping[str, Any]],
    ) -> None:
        """Insert rows shaped by ``schema``; rows whose id already exists may be dropped."""
        ...

    def get_metadata(self, dataset: str, table: str) -> TableMetadata | None:
        """Return table metadata (schema + etag), or None if the table does not exist."""
        ...

    def create_table(self, dataset: str, table: str, metadata: TableMetadata) -> None:
        """Create a table; fails if it already exists."""
        ...

    def update_table(self, dataset: str, table: str, schema: StructType, etag: str | None) -> None:
        """Replace the table schema if ``etag`` is still current (raises EtagMismatchError otherwise)."""
        ...

    def query(self, query: str) -> Iterator[Mapping[str, Any]]:
        """Run a query and iterate over result rows."""
        ...
