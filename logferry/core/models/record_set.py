"""
RecordSet: destination keyed collection of pending log records.
"""

from typing import Iterator

from .destination import Destination
from .log_record import LogRecord


class RecordSet:
    """
    Ordered mapping of Destination to the records pending for it.

    Destinations keep first-seen order and records keep the order they
    were added. Merging appends, it never de-duplicates. A RecordSet is
    not thread safe; workers each build their own and the scheduler
    merges them once all workers are done.
    """

    def __init__(self) -> None:
        self._records: dict[Destination, list[LogRecord]] = {}

    def add(self, destination: Destination, record: LogRecord) -> None:
        self._records.setdefault(destination, []).append(record)

    def merge(self, other: "RecordSet") -> None:
        """
        Append every destination sequence of ``other`` to this set.

        Args:
            other: Record set to merge in; left unchanged
        """
        for destination, records in other.items():
            self._records.setdefault(destination, []).extend(records)

    def get(self, destination: Destination) -> list[LogRecord]:
        return self._records.get(destination, [])

    def destinations(self) -> list[Destination]:
        return list(self._records)

    def items(self) -> Iterator[tuple[Destination, list[LogRecord]]]:
        return iter(self._records.items())

    def total_records(self) -> int:
        return sum(len(records) for records in self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, destination: object) -> bool:
        return destination in self._records

    def __repr__(self) -> str:
        return f"RecordSet(destinations={len(self)}, records={self.total_records()})"
