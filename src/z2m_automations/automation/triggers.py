"""
Trigger matching for the Automation engine.

Pure functions: given a trigger and an observed transition, decide whether
the rule should fire, whether a pending delayed fire should be cancelled,
or whether the update is irrelevant.
"""

from typing import Any, Dict

from .models import (
    ActionTrigger,
    NumericStateTrigger,
    StateTrigger,
    TriggerConfig,
    TriggerResult,
    is_number,
)

State = Dict[str, Any]


def check_trigger(
    trigger: TriggerConfig,
    update: State,
    from_state: State,
    to_state: State,
) -> TriggerResult:
    """
    Check a trigger against one state change.

    Args:
        trigger: The rule's trigger
        update: Fields carried by this update
        from_state: State snapshot before the update
        to_state: State snapshot after the update

    Returns:
        MATCH, NEGATIVE_EDGE or NO_MATCH
    """
    if isinstance(trigger, ActionTrigger):
        return _check_action(trigger, update)
    elif isinstance(trigger, StateTrigger):
        return _check_state(trigger, update, from_state, to_state)
    elif isinstance(trigger, NumericStateTrigger):
        return _check_numeric_state(trigger, update, from_state, to_state)
    return TriggerResult.NO_MATCH


def _check_action(trigger: ActionTrigger, update: State) -> TriggerResult:
    # Actions are pulses, not levels: there is no negative edge
    if "action" not in update:
        return TriggerResult.NO_MATCH
    if update["action"] in trigger.actions:
        return TriggerResult.MATCH
    return TriggerResult.NO_MATCH


def _is_transition(attribute: str, update: State, from_state: State, to_state: State) -> bool:
    """True when all three snapshots carry the attribute and its value changed."""
    if attribute not in update or attribute not in from_state or attribute not in to_state:
        return False
    return from_state[attribute] != to_state[attribute]


def _check_state(
    trigger: StateTrigger,
    update: State,
    from_state: State,
    to_state: State,
) -> TriggerResult:
    attribute = trigger.attribute
    if not _is_transition(attribute, update, from_state, to_state):
        return TriggerResult.NO_MATCH

    # The update carries the authoritative value; from/to only prove a transition
    if update[attribute] in trigger.states:
        return TriggerResult.MATCH
    return TriggerResult.NEGATIVE_EDGE


def _check_numeric_state(
    trigger: NumericStateTrigger,
    update: State,
    from_state: State,
    to_state: State,
) -> TriggerResult:
    attribute = trigger.attribute
    if not _is_transition(attribute, update, from_state, to_state):
        return TriggerResult.NO_MATCH

    old = from_state[attribute]
    new = to_state[attribute]
    if not (is_number(old) and is_number(new)):
        return TriggerResult.NO_MATCH

    if trigger.above is not None:
        if new < trigger.above:
            return TriggerResult.NEGATIVE_EDGE
        if old >= trigger.above:
            return TriggerResult.NO_MATCH

    if trigger.below is not None:
        if new > trigger.below:
            return TriggerResult.NEGATIVE_EDGE
        if old <= trigger.below:
            return TriggerResult.NO_MATCH

    return TriggerResult.MATCH
