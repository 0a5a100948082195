"""
Destination model identifying where a group of records is loaded.
"""

from pydantic import BaseModel, Field

# Time-bucketing units accepted for partitioned destination tables
PARTITION_UNITS = ("hour", "day", "month", "year")


class Destination(BaseModel):
    """
    Warehouse dataset and table (plus optional partition unit).

    Destinations are frozen so they can be used as mapping keys; two
    destinations with the same values are the same key.

    Attributes:
        dataset: Warehouse dataset identifier
        table: Warehouse table identifier
        partition: Optional time partition unit (hour, day, month, year).
            Unknown units are rejected when the table is created, not here.
    """

    dataset: str = Field(..., min_length=1)
    table: str = Field(..., min_length=1)
    partition: str | None = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "dataset": "security_logs",
                "table": "cloudtrail",
                "partition": "day",
            }
        }

    def __str__(self) -> str:
        return f"{self.dataset}.{self.table}"
