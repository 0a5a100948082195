"""
Schema inference and additive evolution.
"""

from .evolution import SchemaEvolutionManager
from .inference import SchemaInferrer, dict_to_schema, schema_to_dict, schema_to_json

__all__ = [
    "SchemaInferrer",
    "SchemaEvolutionManager",
    "dict_to_schema",
    "schema_to_dict",
    "schema_to_json",
]
