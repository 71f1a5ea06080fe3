"""
Core components shared with the host.

This package contains:
- bus: Event Bus, state-change events and entity references
- config: Extension settings
"""

from z2m_automations.core.bus import EntityRef, EventBus, StateChangeEvent, Subscription
from z2m_automations.core.config import ExtensionSettings

__all__ = [
    "EntityRef",
    "EventBus",
    "StateChangeEvent",
    "Subscription",
    "ExtensionSettings",
]
