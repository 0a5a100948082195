"""
Schema evolution and merging logic.

Evolution is strictly additive: existing columns are never removed or
retyped, new columns are appended (also inside nested structs).
"""

import logging
from typing import List, Dict, Any, Tuple

from pyspark.sql.types import ArrayType, StructField, StructType

logger = logging.getLogger(__name__)


class SchemaEvolutionManager:
    """
    Merges an inferred schema into an existing table schema.

    Handles:
    - Appending new fields (top-level and nested)
    - Keeping existing fields untouched when types disagree
    - Reporting what changed
    """

    def merge_schemas(
        self,
        old_schema: StructType,
        new_schema: StructType,
    ) -> Tuple[StructType, List[str]]:
        """
        Merge two schemas, appending fields of new_schema missing from old_schema.

        Args:
            old_schema: Existing table schema
            new_schema: Schema inferred from pending records

        Returns:
            Tuple of (merged_schema, list_of_changes)
        """
        changes: List[str] = []
        merged = self._merge_struct(old_schema, new_schema, "", changes)

        logger.info(
            f"Schema merge complete: {len(changes)} changes, "
            f"{len(merged.fields)} total fields"
        )

        return merged, changes

    def _merge_struct(
        self,
        old_struct: StructType,
        new_struct: StructType,
        prefix: str,
        changes: List[str],
    ) -> StructType:
        merged_fields: Dict[str, StructField] = {}

        # Existing fields keep their position, type and nullability
        for field in old_struct.fields:
            merged_fields[field.name] = field

        for new_field in new_struct.fields:
            field_name = new_field.name
            path = f"{prefix}{field_name}"

            if field_name not in merged_fields:
                # Appended columns must accept nulls for existing rows
                merged_fields[field_name] = StructField(field_name, new_field.dataType, True)
                changes.append(f"Added field: {path} ({new_field.dataType.simpleString()})")
                logger.info(f"Schema evolution: Added field '{path}'")
                continue

            old_field = merged_fields[field_name]
            merged_type = self._merge_nested(old_field.dataType, new_field.dataType, path, changes)
            if merged_type is not None:
                merged_fields[field_name] = StructField(
                    field_name, merged_type, old_field.nullable, old_field.metadata
                )
            elif old_field.dataType != new_field.dataType:
                logger.warning(
                    f"Schema evolution: keeping existing type for '{path}' "
                    f"({old_field.dataType.simpleString()}, inferred {new_field.dataType.simpleString()})"
                )

        return StructType(list(merged_fields.values()))

    def _merge_nested(self, old_type, new_type, path: str, changes: List[str]):
        """Merge nested structs (directly or as array elements); None otherwise."""
        if isinstance(old_type, StructType) and isinstance(new_type, StructType):
            return self._merge_struct(old_type, new_type, f"{path}.", changes)

        if isinstance(old_type, ArrayType) and isinstance(new_type, ArrayType):
            element = self._merge_nested(old_type.elementType, new_type.elementType, f"{path}[]", changes)
            if element is not None:
                return ArrayType(element, old_type.containsNull)

        return None

    def detect_schema_changes(
        self,
        old_schema: StructType,
        new_schema: StructType
    ) -> Dict[str, Any]:
        """
        Detect top-level differences between two schemas.

        Args:
            old_schema: Original schema
            new_schema: New schema

        Returns:
            Dictionary with added, removed and retyped field names
        """
        old_fields = {f.name: f for f in old_schema.fields}
        new_fields = {f.name: f for f in new_schema.fields}

        return {
            "added_fields": [name for name in new_fields if name not in old_fields],
            "removed_fields": [name for name in old_fields if name not in new_fields],
            "type_changes": [
                {
                    "field": name,
                    "old_type": old_fields[name].dataType.simpleString(),
                    "new_type": new_fields[name].dataType.simpleString(),
                }
                for name in old_fields
                if name in new_fields and old_fields[name].dataType != new_fields[name].dataType
            ],
        }
