"""
Condition evaluators for the Automation engine.

Conditions are checked against live host state right before actions run.
"""

import logging
from typing import TYPE_CHECKING, Any, Iterable

from .models import ConditionConfig, NumericStateCondition, StateCondition, is_number

if TYPE_CHECKING:
    from .adapter import HostAdapter

logger = logging.getLogger(__name__)


class ConditionEvaluator:
    """
    Evaluates conditions for automation rules.

    Conditions on entities the host can't resolve are treated as satisfied.
    """

    def __init__(self, adapter: "HostAdapter") -> None:
        self._adapter = adapter

    def evaluate(self, condition: ConditionConfig) -> bool:
        """
        Evaluate a condition.

        Args:
            condition: The condition to evaluate

        Returns:
            True if condition is met, False otherwise
        """
        entity = self._adapter.resolve_entity(condition.entity)
        if entity is None:
            logger.debug(f"Condition entity not found: {condition.entity}, assuming met")
            return True

        state = self._adapter.get_state(entity)

        if isinstance(condition, StateCondition):
            return state.get(condition.attribute) == condition.state
        elif isinstance(condition, NumericStateCondition):
            return self._check_numeric_state(condition, state.get(condition.attribute))
        else:
            logger.warning(f"Unknown condition type: {type(condition)}")
            return False

    def evaluate_all(self, conditions: Iterable[ConditionConfig]) -> bool:
        """
        Evaluate all conditions (AND logic).

        Returns:
            True if ALL conditions are met (an empty list is met)
        """
        for condition in conditions:
            if not self.evaluate(condition):
                logger.debug(f"Condition not met: {condition}")
                return False
        return True

    def _check_numeric_state(self, condition: NumericStateCondition, value: Any) -> bool:
        """Check if the live value is within [above, below]."""
        if not is_number(value):
            logger.debug(
                f"Numeric state unavailable: {condition.entity}.{condition.attribute}={value!r}"
            )
            return False

        if condition.above is not None and value < condition.above:
            return False
        if condition.below is not None and value > condition.below:
            return False
        return True
