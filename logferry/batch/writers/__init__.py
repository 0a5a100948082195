"""
Warehouse writers for batch loads.
"""

from .warehouse_writer import BatchWarehouseWriter

__all__ = ["BatchWarehouseWriter"]
