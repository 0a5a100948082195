"""
Warehouse table metadata: schema, time partitioning and etag.
"""

from pydantic import BaseModel
from pyspark.sql.types import StructType


class TimePartitioning(BaseModel):
    """Time partitioning of a table on a timestamp field."""

    field: str
    unit: str


class TableMetadata(BaseModel):
    """
    Metadata of a warehouse table.

    Attributes:
        table_schema: Column schema as a Spark StructType
        time_partitioning: Optional partitioning configuration
        etag: Version tag used for optimistic concurrency on updates
    """

    table_schema: StructType
    time_partitioning: TimePartitioning | None = None
    etag: str | None = None

    class Config:
        arbitrary_types_allowed = True
