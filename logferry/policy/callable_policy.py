"""
Policy evaluators backed by Python callables or fixed results.
"""

from typing import Any, Callable, Mapping

from logferry.core.errors import PolicyError
from logferry.observability.logger import get_logger

logger = get_logger(__name__)

PolicyRule = Callable[[Any], Mapping[str, Any]]


class CallablePolicy:
    """
    Policy evaluator dispatching query paths to Python callables.

    Usage:
        policy = CallablePolicy({"data.schema.cloudtrail": cloudtrail_rule})
        output = policy.query("data.schema.cloudtrail", raw_record)

    Unknown query paths evaluate to an empty result, like an undefined
    policy rule would.
    """

    def __init__(self, rules: Mapping[str, PolicyRule] | None = None):
        self.rules: dict[str, PolicyRule] = dict(rules or {})

    def register(self, path: str, rule: PolicyRule) -> None:
        self.rules[path] = rule

    def query(self, path: str, input_value: Any) -> Mapping[str, Any]:
        rule = self.rules.get(path)
        if rule is None:
            logger.debug("No policy rule for query path", extra={"query_path": path})
            return {}

        try:
            result = rule(input_value)
        except Exception as e:
            raise PolicyError(f"policy evaluation failed: {e}", query_path=path) from e

        if result is None:
            return {}
        if not isinstance(result, Mapping):
            raise PolicyError(
                "policy result must be a mapping",
                query_path=path,
                result_type=type(result).__name__,
            )
        return result


class StaticPolicy:
    """
    Policy evaluator returning a fixed result per query path.

    Records every evaluated (path, input) pair in ``calls``.
    """

    def __init__(self, results: Mapping[str, Mapping[str, Any]] | None = None):
        self.results = dict(results or {})
        self.calls: list[tuple[str, Any]] = []

    def query(self, path: str, input_value: Any) -> Mapping[str, Any]:
        self.calls.append((path, input_value))
        return self.results.get(path, {})
