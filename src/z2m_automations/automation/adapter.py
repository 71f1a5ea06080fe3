"""
Host adapter interface for the Automation engine.

The adapter is the boundary between the engine and the host bridge: entity
lookup by name, live state reads, and the command publish path. The host
integration provides a concrete implementation.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from z2m_automations.core.bus import EntityRef


class HostAdapter(ABC):
    """
    Abstract interface for host operations.

    This interface is intentionally minimal:
    - resolve_entity: Look up a device/group by name or id
    - get_state: Read the live state of a resolved entity
    - publish: Dispatch a command message (fire-and-forget)
    """

    @abstractmethod
    def resolve_entity(self, entity_id: str) -> Optional[EntityRef]:
        """
        Resolve an entity by friendly name or id.

        Returns:
            The entity, or None if the host doesn't know it
        """
        pass

    @abstractmethod
    def get_state(self, entity: EntityRef) -> Dict[str, Any]:
        """
        Get the live state of an entity.

        Returns:
            Attribute mapping (empty if the host has no state yet)
        """
        pass

    @abstractmethod
    def publish(self, topic: str, payload: str) -> None:
        """
        Publish a command message.

        Args:
            topic: Full command topic (e.g., "zigbee2mqtt/lamp/set")
            payload: Serialized JSON payload
        """
        pass


class MockHostAdapter(HostAdapter):
    """
    Mock adapter for testing.

    Holds entities and states in memory and records published messages.
    """

    def __init__(self) -> None:
        self._entities: Dict[str, EntityRef] = {}
        self._states: Dict[str, Dict[str, Any]] = {}
        self._published: List[Tuple[str, str]] = []

    def add_entity(self, name: str, state: Optional[Dict[str, Any]] = None) -> EntityRef:
        """Register an entity (and optionally its state) for testing."""
        entity = EntityRef(id=name, name=name)
        self._entities[name] = entity
        if state is not None:
            self._states[name] = dict(state)
        return entity

    def set_state(self, name: str, state: Dict[str, Any]) -> None:
        """Set entity state for testing."""
        self._states[name] = dict(state)

    def get_published(self) -> List[Tuple[str, str]]:
        """Get recorded (topic, payload) messages."""
        return self._published.copy()

    def clear_published(self) -> None:
        """Clear recorded messages."""
        self._published.clear()

    # HostAdapter implementation

    def resolve_entity(self, entity_id: str) -> Optional[EntityRef]:
        return self._entities.get(entity_id)

    def get_state(self, entity: EntityRef) -> Dict[str, Any]:
        return dict(self._states.get(entity.name, {}))

    def publish(self, topic: str, payload: str) -> None:
        self._published.append((topic, payload))
