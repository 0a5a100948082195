"""
Object store capability and its variants.
"""

from .base import ObjectStore
from .local import LocalObjectStore
from .memory import MemoryObjectStore
from .s3 import S3ObjectStore, create_s3_client

__all__ = [
    "ObjectStore",
    "MemoryObjectStore",
    "LocalObjectStore",
    "S3ObjectStore",
    "create_s3_client",
]
