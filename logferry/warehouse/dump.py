"""
Warehouse that dumps tables to JSON files.

Layout under the output directory:
    <dataset>/<table>.schema.json   metadata (schema, partitioning, etag)
    <dataset>/<table>.jsonl         one inserted row per line
"""

import json
import threading
from pathlib import Path
from typing import Any, Iterator, Mapping, Sequence

from pyspark.sql.types import StructType

from logferry.core.errors import EtagMismatchError, TableNotFoundError, WarehouseError
from logferry.core.models import TableMetadata, TimePartitioning
from logferry.core.schema import dict_to_schema, schema_to_dict
from logferry.observability.logger import get_logger

logger = get_logger(__name__)


class DumpWarehouse:
    """File based warehouse for local runs without a database."""

    def __init__(self, out_dir: str | Path):
        self.out_dir = Path(out_dir)
        self._lock = threading.Lock()

    def _schema_path(self, dataset: str, table: str) -> Path:
        return self.out_dir / dataset / f"{table}.schema.json"

    def _rows_path(self, dataset: str, table: str) -> Path:
        return self.out_dir / dataset / f"{table}.jsonl"

    def _write_metadata(self, dataset: str, table: str, metadata: TableMetadata) -> None:
        path = self._schema_path(dataset, table)
        path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "schema": schema_to_dict(metadata.table_schema),
            "time_partitioning": (
                metadata.time_partitioning.model_dump() if metadata.time_partitioning else None
            ),
            "etag": metadata.etag,
        }
        path.write_text(json.dumps(document, indent=2, sort_keys=True))

    def insert(
        self,
        dataset: str,
        table: str,
        schema: StructType,
        rows: Sequence[Mapping[str, Any]],
    ) -> None:
        with self._lock:
            if not self._schema_path(dataset, table).exists():
                raise TableNotFoundError("table not found", dataset=dataset, table=table)
            with open(self._rows_path(dataset, table), "a", encoding="utf-8") as f:
                for row in rows:
                    f.write(json.dumps(row, default=str, sort_keys=True))
                    f.write("\n")
        logger.debug("Dumped rows", extra={"dataset": dataset, "table": table, "row_count": len(rows)})

    def get_metadata(self, dataset: str, table: str) -> TableMetadata | None:
        path = self._schema_path(dataset, table)
        if not path.exists():
            return None
        document = json.loads(path.read_text())
        partitioning = document.get("time_partitioning")
        return TableMetadata(
            table_schema=dict_to_schema(document["schema"]),
            time_partitioning=TimePartitioning(**partitioning) if partitioning else None,
            etag=document.get("etag"),
        )

    def create_table(self, dataset: str, table: str, metadata: TableMetadata) -> None:
        with self._lock:
            if self._schema_path(dataset, table).exists():
                raise WarehouseError("table already exists", dataset=dataset, table=table)
            self._write_metadata(dataset, table, metadata.model_copy(update={"etag": "1"}))

    def update_table(self, dataset: str, table: str, schema: StructType, etag: str | None) -> None:
        with self._lock:
            current = self.get_metadata(dataset, table)
            if current is None:
                raise TableNotFoundError("table not found", dataset=dataset, table=table)
            if etag != current.etag:
                raise EtagMismatchError(
                    "table was modified concurrently",
                    dataset=dataset, table=table, etag=etag, current=current.etag,
                )
            self._write_metadata(
                dataset,
                table,
                current.model_copy(update={"table_schema": schema, "etag": str(int(current.etag) + 1)}),
            )

    def query(self, query: str) -> Iterator[Mapping[str, Any]]:
        """
        Read back a dumped table.

        Args:
            query: Table reference "<dataset>.<table>"; SQL is not supported
        """
        dataset, sep, table = query.strip().partition(".")
        if not sep or not table:
            raise WarehouseError("dump warehouse only answers '<dataset>.<table>' queries", query=query)
        path = self._rows_path(dataset, table)
        if not path.exists():
            return iter(())
        with open(path, encoding="utf-8") as f:
            return iter([json.loads(line) for line in f if line.strip()])
