"""
Policy evaluator capability.
"""

from typing import Any, Mapping, Protocol


class PolicyEvaluator(Protocol):
    """
    Evaluates a transform policy against one input value.

    Evaluation is deterministic for identical input. Failures raise
    PolicyError and are fatal for the source being imported.
    """

    def query(self, path: str, input_value: Any) -> Mapping[str, Any]:
        """
        Evaluate the policy at ``path`` with ``input_value`` as input.

        Args:
            path: Query path such as "data.schema.cloudtrail"
            input_value: Decoded raw record or object event

        Returns:
            Mapping result, e.g. {"logs": [...]} for schema queries
        """
        ...
