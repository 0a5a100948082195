"""
StructuredLog model: one row emitted by the policy transform.
"""

import math
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .destination import Destination

# Epoch seconds representable as a UTC datetime (years 1 through 9999)
MIN_TIMESTAMP = -62135596800.0
MAX_TIMESTAMP = 253402300799.0


class StructuredLog(BaseModel):
    """
    Policy output row, prior to becoming a LogRecord.

    Attributes:
        id: Optional identifier; a deterministic one is derived when empty
        timestamp: Event time as floating point Unix epoch seconds
        data: Payload mapping to store
        destination: Where the row is loaded
        schema_name: Policy schema that produced the row
    """

    id: str | None = None
    timestamp: float
    data: dict[str, Any]
    destination: Destination
    schema_name: str | None = Field(None, alias="schema")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "ac3cfd93-435d-41cc-bbd7-aad0340ec668",
                "timestamp": 1700000000.25,
                "data": {"eventName": "ConsoleLogin", "awsRegion": "us-east-1"},
                "destination": {"dataset": "security_logs", "table": "cloudtrail"},
                "schema": "cloudtrail",
            }
        }

    @field_validator("timestamp")
    @classmethod
    def timestamp_must_be_in_range(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("timestamp must be a finite number")
        if not MIN_TIMESTAMP <= value <= MAX_TIMESTAMP:
            raise ValueError(f"timestamp {value} is outside the supported datetime range")
        return value


class PolicyOutput(BaseModel):
    """Result of evaluating a schema policy against one raw record."""

    logs: list[dict[str, Any]] = Field(default_factory=list)
