"""
Action execution for the Automation engine.

Computes the target state for each action and publishes a command to the
target's "<base_topic>/<name>/set" topic, skipping commands that would not
change anything.
"""

import json
import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional

from .models import Action, OnOff, Service

if TYPE_CHECKING:
    from .adapter import HostAdapter

logger = logging.getLogger(__name__)


def compute_new_state(service: Service, current: Any) -> Optional[str]:
    """
    Target on/off state for a non-custom service.

    A missing or unknown current state counts as OFF for toggling.
    """
    if service is Service.TURN_ON:
        return OnOff.ON.value
    if service is Service.TURN_OFF:
        return OnOff.OFF.value
    if service is Service.TOGGLE:
        return OnOff.OFF.value if current == OnOff.ON.value else OnOff.ON.value
    return None


def command_topic(base_topic: str, name: str) -> str:
    return f"{base_topic}/{name}/set"


class ActionRunner:
    """Runs a rule's actions through the host adapter."""

    def __init__(self, adapter: "HostAdapter", base_topic: str) -> None:
        self._adapter = adapter
        self._base_topic = base_topic

    def run(self, actions: Iterable[Action]) -> int:
        """
        Run actions in order.

        Misses (unknown entity, no-op transition, failed publish) skip that
        action only.

        Returns:
            Number of commands published
        """
        published = 0
        for action in actions:
            try:
                if self._run_action(action):
                    published += 1
            except Exception as e:
                logger.error(f"Error running action for {action.entity}: {e}", exc_info=True)
        return published

    def _run_action(self, action: Action) -> bool:
        destination = self._adapter.resolve_entity(action.entity)
        if destination is None:
            logger.debug(f"Destination not found for entity '{action.entity}'")
            return False

        if action.service is Service.CUSTOM:
            payload = dict(action.data)
        else:
            current = self._adapter.get_state(destination).get("state")
            new_state = compute_new_state(action.service, current)
            if current == new_state:
                logger.debug(f"Skipping {action.service.value} for {action.entity} (already {current})")
                return False
            payload = {"state": new_state}

        topic = command_topic(self._base_topic, destination.name)
        logger.info(f"Executing: {action.service.value} -> {action.entity}")
        self._adapter.publish(topic, json.dumps(payload, sort_keys=True))
        return True
