"""
Schema inference for pending log records.

Builds a Spark StructType describing the rows a destination will receive:
the fixed record columns followed by a ``data`` struct inferred from the
union of every observed payload.
"""

from collections.abc import Mapping
from datetime import datetime
from functools import reduce
from typing import Any, Iterable

from pyspark.sql.types import (
    ArrayType,
    BooleanType,
    DataType,
    DoubleType,
    LongType,
    StringType,
    StructField,
    StructType,
    TimestampType,
)

from logferry.core.errors import SchemaInferenceError
from logferry.core.models import LogRecord
from logferry.observability.logger import get_logger

logger = get_logger(__name__)

ID_FIELD = "id"
TIMESTAMP_FIELD = "timestamp"
INGESTED_AT_FIELD = "ingested_at"
INGEST_ID_FIELD = "ingest_id"
DATA_FIELD = "data"

# Columns every destination table carries, in this order
RECORD_FIELDS = [
    StructField(ID_FIELD, StringType(), False),
    StructField(TIMESTAMP_FIELD, TimestampType(), False),
    StructField(INGESTED_AT_FIELD, TimestampType(), True),
    StructField(INGEST_ID_FIELD, StringType(), True),
]

# Numeric types that widen into one another
NUMERIC_TYPES = (LongType, DoubleType)


class SchemaInferrer:
    """
    Infers a column schema from log record payloads.

    Every observed field becomes a nullable column typed with the most
    general type compatible with all of its values. Fields are sorted by
    name at every depth so identical input always yields a byte-identical
    schema serialization.
    """

    def infer_from_records(self, records: Iterable[LogRecord]) -> StructType:
        """
        Infer the destination table schema for a batch of records.

        Args:
            records: Pending log records of one destination

        Returns:
            Fixed record columns plus the inferred ``data`` struct

        Raises:
            SchemaInferenceError: If a field is seen both as a struct/array and a scalar
        """
        data_type = self.infer_from_payloads(record.data for record in records)

        fields = list(RECORD_FIELDS)
        if data_type is not None:
            fields.append(StructField(DATA_FIELD, data_type, True))
        return StructType(fields)

    def infer_from_payloads(self, payloads: Iterable[Mapping[str, Any]]) -> StructType | None:
        """
        Infer one struct type covering every payload.

        Args:
            payloads: Data mappings

        Returns:
            Merged struct type, or None when no payload has a typed field
        """
        inferred = (self.infer_type(payload, DATA_FIELD) for payload in payloads)
        return reduce(
            lambda left, right: self.merge_types(left, right, DATA_FIELD),
            inferred,
            None,
        )

    def infer_type(self, value: Any, path: str = DATA_FIELD) -> DataType | None:
        """
        Infer the column type of a single JSON value.

        Nulls, empty mappings and lists without typed elements carry no
        type information and yield None.

        Args:
            value: Decoded JSON value
            path: Dotted field path, used in error messages

        Returns:
            Spark data type or None
        """
        if value is None:
            return None
        # bool is a subclass of int, check it first
        if isinstance(value, bool):
            return BooleanType()
        if isinstance(value, int):
            return LongType()
        if isinstance(value, float):
            return DoubleType()
        if isinstance(value, str):
            return StringType()
        if isinstance(value, datetime):
            return TimestampType()
        if isinstance(value, Mapping):
            fields = []
            for key in sorted(value):
                field_type = self.infer_type(value[key], f"{path}.{key}")
                if field_type is not None:
                    fields.append(StructField(str(key), field_type, True))
            return StructType(fields) if fields else None
        if isinstance(value, (list, tuple)):
            element_type = reduce(
                lambda left, right: self.merge_types(left, right, f"{path}[]"),
                (self.infer_type(item, f"{path}[]") for item in value),
                None,
            )
            return ArrayType(element_type, True) if element_type is not None else None

        raise SchemaInferenceError(
            "unsupported value type", field=path, value_type=type(value).__name__
        )

    def merge_types(
        self,
        left: DataType | None,
        right: DataType | None,
        path: str = DATA_FIELD,
    ) -> DataType | None:
        """
        Return the most general type compatible with both types.

        Args:
            left: First type (None means unknown)
            right: Second type (None means unknown)
            path: Dotted field path, used in error messages

        Returns:
            Merged data type

        Raises:
            SchemaInferenceError: If a struct or array meets an incompatible type
        """
        if left is None:
            return right
        if right is None:
            return left

        if isinstance(left, StructType) and isinstance(right, StructType):
            return self._merge_structs(left, right, path)

        if isinstance(left, ArrayType) and isinstance(right, ArrayType):
            element = self.merge_types(left.elementType, right.elementType, f"{path}[]")
            return ArrayType(element, True)

        if isinstance(left, (StructType, ArrayType)) or isinstance(right, (StructType, ArrayType)):
            raise SchemaInferenceError(
                "conflicting field types", field=path, left=left.simpleString(), right=right.simpleString()
            )

        if type(left) == type(right):
            return left

        if isinstance(left, NUMERIC_TYPES) and isinstance(right, NUMERIC_TYPES):
            return DoubleType()

        # Any other scalar mix can only be represented as text
        logger.debug(
            "Widening scalar field to string",
            extra={"field": path, "left": left.simpleString(), "right": right.simpleString()},
        )
        return StringType()

    def _merge_structs(self, left: StructType, right: StructType, path: str) -> StructType:
        merged: dict[str, DataType] = {field.name: field.dataType for field in left.fields}
        for field in right.fields:
            merged[field.name] = self.merge_types(
                merged.get(field.name), field.dataType, f"{path}.{field.name}"
            )

        return StructType([
            StructField(name, merged[name], True) for name in sorted(merged)
        ])


def schema_to_dict(schema: StructType) -> dict[str, Any]:
    """
    Convert Spark schema to dictionary format.

    Args:
        schema: Spark StructType schema

    Returns:
        Dictionary representation of schema (Spark JSON layout)
    """
    return schema.jsonValue()


def schema_to_json(schema: StructType) -> str:
    """Serialize a schema deterministically (sorted keys, compact)."""
    return schema.json()


def dict_to_schema(schema_dict: dict[str, Any]) -> StructType:
    """
    Convert dictionary (Spark JSON layout) back to a Spark schema.

    Args:
        schema_dict: Dictionary produced by schema_to_dict

    Returns:
        Spark StructType schema
    """
    return StructType.fromJson(schema_dict)
