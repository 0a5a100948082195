"""
Source object readers.
"""

from .object_reader import ObjectReader, decode_json_stream

__all__ = [
    "ObjectReader",
    "decode_json_stream",
]
