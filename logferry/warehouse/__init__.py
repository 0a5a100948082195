"""
Warehouse capability, its variants and table management.
"""

from .audit import AuditWriter, LOAD_LOG_SCHEMA
from .base import Warehouse
from .dump import DumpWarehouse
from .memory import InsertCall, MemoryWarehouse
from .schema_mgmt import SchemaManager, time_partitioning_for

__all__ = [
    "Warehouse",
    "MemoryWarehouse",
    "InsertCall",
    "DumpWarehouse",
    "SchemaManager",
    "time_partitioning_for",
    "AuditWriter",
    "LOAD_LOG_SCHEMA",
]
