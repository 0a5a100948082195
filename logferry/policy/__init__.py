"""
Policy evaluator capability and its variants.
"""

from .base import PolicyEvaluator
from .callable_policy import CallablePolicy, StaticPolicy

__all__ = ["PolicyEvaluator", "CallablePolicy", "StaticPolicy"]
