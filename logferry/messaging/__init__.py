"""
Message queue capability and its variants.
"""

from .base import MessageQueue
from .dump import DumpQueue
from .memory import MemoryQueue

__all__ = ["MessageQueue", "MemoryQueue", "DumpQueue"]
