"""
In-memory warehouse for tests and dry runs.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Sequence

from pyspark.sql.types import StructType

from logferry.core.errors import EtagMismatchError, TableNotFoundError, WarehouseError
from logferry.core.models import TableMetadata


@dataclass
class InsertCall:
    """One recorded insert call."""

    dataset: str
    table: str
    schema: StructType
    rows: list[Mapping[str, Any]] = field(default_factory=list)


class MemoryWarehouse:
    """
    Warehouse keeping tables in dictionaries and recording every call.

    Attributes:
        tables: (dataset, table) -> TableMetadata
        rows: (dataset, table) -> inserted rows, de-duplicated by id
        inserted: Every insert call, in call order
        insert_hook: Optional callable invoked before each insert; raise from
            it to simulate warehouse failures
        query_results: Canned results returned by ``query``
    """

    def __init__(self, insert_hook: Callable[[InsertCall], None] | None = None):
        self.tables: dict[tuple[str, str], TableMetadata] = {}
        self.rows: dict[tuple[str, str], dict[str, Mapping[str, Any]]] = {}
        self.inserted: list[InsertCall] = []
        self.insert_hook = insert_hook
        self.query_results: dict[str, list[Mapping[str, Any]]] = {}
        self._lock = threading.Lock()

    def insert(
        self,
        dataset: str,
        table: str,
        schema: StructType,
        rows: Sequence[Mapping[str, Any]],
    ) -> None:
        call = InsertCall(dataset=dataset, table=table, schema=schema, rows=list(rows))
        with self._lock:
            self.inserted.append(call)
            if self.insert_hook is not None:
                self.insert_hook(call)
            if (dataset, table) not in self.tables:
                raise TableNotFoundError("table not found", dataset=dataset, table=table)

            stored = self.rows.setdefault((dataset, table), {})
            for row in call.rows:
                # Same id means same record; keep the first copy
                stored.setdefault(str(row.get("id")), row)

    def get_metadata(self, dataset: str, table: str) -> TableMetadata | None:
        with self._lock:
            metadata = self.tables.get((dataset, table))
            return metadata.model_copy() if metadata else None

    def create_table(self, dataset: str, table: str, metadata: TableMetadata) -> None:
        with self._lock:
            if (dataset, table) in self.tables:
                raise WarehouseError("table already exists", dataset=dataset, table=table)
            self.tables[(dataset, table)] = metadata.model_copy(update={"etag": "1"})

    def update_table(self, dataset: str, table: str, schema: StructType, etag: str | None) -> None:
        with self._lock:
            current = self.tables.get((dataset, table))
            if current is None:
                raise TableNotFoundError("table not found", dataset=dataset, table=table)
            if etag != current.etag:
                raise EtagMismatchError(
                    "table was modified concurrently",
                    dataset=dataset, table=table, etag=etag, current=current.etag,
                )
            self.tables[(dataset, table)] = current.model_copy(
                update={"table_schema": schema, "etag": str(int(current.etag) + 1)}
            )

    def query(self, query: str) -> Iterator[Mapping[str, Any]]:
        return iter(self.query_results.get(query, []))

    def table_rows(self, dataset: str, table: str) -> list[Mapping[str, Any]]:
        """Rows stored for a table, in first insert order."""
        return list(self.rows.get((dataset, table), {}).values())
