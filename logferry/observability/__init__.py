"""
Logging, metrics and run logging for the loader.
"""

from .logger import get_logger, log_operation, setup_logger
from .metrics import MetricsCollector, generate_metrics, start_metrics_server

__all__ = [
    "get_logger",
    "setup_logger",
    "log_operation",
    "MetricsCollector",
    "generate_metrics",
    "start_metrics_server",
]
