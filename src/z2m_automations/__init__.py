"""
z2m-automations: declarative automations for a Zigbee-to-MQTT bridge.

This library provides:
- Trigger/condition/action rules bound to named entities
- Delayed ("for") firing with cancellation
- A synchronous Event Bus for host state changes
- Host adapter interface for entity lookup, state reads and command publish
"""

from z2m_automations.core.bus import EntityRef, EventBus, StateChangeEvent, Subscription
from z2m_automations.core.config import ExtensionSettings
from z2m_automations.automation import AutomationEngine, AutomationsExtension, RuleStore

__version__ = "0.1.0"

__all__ = [
    "EntityRef",
    "EventBus",
    "StateChangeEvent",
    "Subscription",
    "ExtensionSettings",
    "AutomationEngine",
    "AutomationsExtension",
    "RuleStore",
]
