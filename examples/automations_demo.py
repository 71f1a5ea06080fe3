#!/usr/bin/env python3
"""
Demo of the AutomationsExtension with common automation patterns.

This example demonstrates:
1. Setting up the extension with the mock host adapter
2. A button (action trigger) toggling a light
3. A state trigger with a lux condition
4. A numeric_state trigger with a "for" delay, and its cancellation

Run with: python -m examples.automations_demo
"""

import asyncio
import json
import logging

from z2m_automations import AutomationsExtension, EntityRef, EventBus, ExtensionSettings, StateChangeEvent
from z2m_automations.automation import MockHostAdapter

AUTOMATIONS = {
    "bedroom_button": {
        "trigger": {"platform": "action", "entity": "bedroom_button", "action": "single"},
        "action": {"entity": "bedroom_light", "service": "toggle"},
    },
    "hallway_motion": {
        "trigger": {
            "platform": "state",
            "entity": "hallway_motion",
            "attribute": "occupancy",
            "state": True,
        },
        "condition": {
            "platform": "numeric_state",
            "entity": "hallway_motion",
            "attribute": "illuminance",
            "below": 50,
        },
        "action": {"entity": "hallway_light", "service": "turn_on"},
    },
    "attic_fan": {
        "trigger": {
            "platform": "numeric_state",
            "entity": "attic_sensor",
            "attribute": "temperature",
            "above": 30,
            "for": 0.2,
        },
        "action": {"entity": "attic_fan", "service": "custom", "data": {"state": "ON", "speed": "high"}},
    },
}


def change(name, update, from_state, to_state):
    return StateChangeEvent(
        entity=EntityRef(id=name, name=name),
        update=update,
        from_state=from_state,
        to_state=to_state,
    )


def show(adapter):
    messages = adapter.get_published()
    if messages:
        for topic, payload in messages:
            print(f"   Published: {topic} {json.loads(payload)}")
    else:
        print("   Nothing published")
    adapter.clear_published()


async def main():
    print("=" * 60)
    print("AutomationsExtension Demo")
    print("=" * 60)

    bus = EventBus()
    adapter = MockHostAdapter()
    adapter.add_entity("bedroom_button")
    adapter.add_entity("bedroom_light", {"state": "OFF"})
    adapter.add_entity("hallway_motion", {"occupancy": False, "illuminance": 20})
    adapter.add_entity("hallway_light", {"state": "OFF"})
    adapter.add_entity("attic_sensor", {"temperature": 26})
    adapter.add_entity("attic_fan", {"state": "OFF"})

    extension = AutomationsExtension(adapter, bus, ExtensionSettings(automations=AUTOMATIONS))
    extension.start()
    print(f"✓ Loaded {extension.store.automation_count} automations")

    print("\n1. BUTTON PRESS")
    print("-" * 40)
    bus.publish(change("bedroom_button", {"action": "single"}, {}, {"action": "single"}))
    show(adapter)

    print("\n2. MOTION IN THE DARK")
    print("-" * 40)
    bus.publish(
        change(
            "hallway_motion",
            {"occupancy": True},
            {"occupancy": False, "illuminance": 20},
            {"occupancy": True, "illuminance": 20},
        )
    )
    show(adapter)

    print("\n3. ATTIC HEATS UP, COOLS DOWN BEFORE THE DELAY")
    print("-" * 40)
    bus.publish(change("attic_sensor", {"temperature": 31}, {"temperature": 26}, {"temperature": 31}))
    print(f"   Pending timers: {extension.engine.pending_timers}")
    bus.publish(change("attic_sensor", {"temperature": 29}, {"temperature": 31}, {"temperature": 29}))
    await asyncio.sleep(0.3)
    show(adapter)

    print("\n4. ATTIC STAYS HOT")
    print("-" * 40)
    bus.publish(change("attic_sensor", {"temperature": 33}, {"temperature": 29}, {"temperature": 33}))
    await asyncio.sleep(0.3)
    show(adapter)

    extension.stop()

    print("\n5. HISTORY")
    print("-" * 40)
    for execution in extension.engine.get_history():
        print(
            f"   {execution.rule_name}: delayed={execution.delayed} "
            f"conditions_met={execution.conditions_met} "
            f"published={execution.commands_published}"
        )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
