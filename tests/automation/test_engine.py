"""Tests for the automation engine."""

import asyncio
import json

import pytest

from z2m_automations.automation import AutomationEngine, MockHostAdapter, RuleStore
from z2m_automations.core.bus import EntityRef, EventBus, StateChangeEvent


@pytest.fixture
def adapter():
    """Create a mock host adapter with a switch, a lamp and a sensor."""
    adapter = MockHostAdapter()
    adapter.add_entity("X", {"state": "OFF"})
    adapter.add_entity("Y", {"state": "OFF"})
    adapter.add_entity("sensor", {"temperature": 20})
    return adapter


def make_engine(adapter, config, loop=None):
    return AutomationEngine(adapter, RuleStore.from_config(config), loop=loop)


def state_change(entity: str, update, from_state, to_state) -> StateChangeEvent:
    return StateChangeEvent(
        entity=EntityRef(id=entity, name=entity),
        update=update,
        from_state=from_state,
        to_state=to_state,
    )


def switch_on(entity: str = "X") -> StateChangeEvent:
    return state_change(entity, {"state": "ON"}, {"state": "OFF"}, {"state": "ON"})


def switch_off(entity: str = "X") -> StateChangeEvent:
    return state_change(entity, {"state": "OFF"}, {"state": "ON"}, {"state": "OFF"})


def temperature(old, new) -> StateChangeEvent:
    from_state = {} if old is None else {"temperature": old}
    return state_change("sensor", {"temperature": new}, from_state, {"temperature": new})


def payloads(adapter):
    return [(topic, json.loads(payload)) for topic, payload in adapter.get_published()]


X_TURNS_ON_Y = {
    "x_on": {
        "trigger": {"platform": "state", "entity": "X", "state": ["ON"]},
        "action": {"entity": "Y", "service": "turn_on"},
    }
}


def delayed(seconds, **trigger):
    base = {"platform": "state", "entity": "X", "state": "ON", "for": seconds}
    base.update(trigger)
    return {
        "x_on_for": {
            "trigger": base,
            "action": {"entity": "Y", "service": "turn_on"},
        }
    }


class TestImmediateRules:
    """Tests for rules without a delay."""

    def test_match_publishes(self, adapter):
        """Test that a matching state change turns on the target."""
        engine = make_engine(adapter, X_TURNS_ON_Y)

        result = engine.process_event(switch_on())

        assert result.rules_evaluated == 1
        assert result.rules_triggered == 1
        assert result.commands_published == 1
        assert payloads(adapter) == [("zigbee2mqtt/Y/set", {"state": "ON"})]

    def test_target_already_on(self, adapter):
        """Test that no command is sent when the target is already on."""
        adapter.set_state("Y", {"state": "ON"})
        engine = make_engine(adapter, X_TURNS_ON_Y)

        result = engine.process_event(switch_on())

        assert result.rules_triggered == 1
        assert result.commands_published == 0
        assert adapter.get_published() == []

    def test_other_entity_ignored(self, adapter):
        engine = make_engine(adapter, X_TURNS_ON_Y)

        result = engine.process_event(switch_on("Y"))

        assert result.rules_evaluated == 0
        assert adapter.get_published() == []

    def test_negative_edge_without_timer(self, adapter):
        engine = make_engine(adapter, X_TURNS_ON_Y)

        result = engine.process_event(switch_off())

        assert result.rules_triggered == 0
        assert result.timers_cancelled == 0
        assert adapter.get_published() == []

    def test_conditions_gate_actions(self, adapter):
        config = {
            "x_on": {
                "trigger": {"platform": "state", "entity": "X", "state": "ON"},
                "condition": [
                    {
                        "platform": "numeric_state",
                        "entity": "sensor",
                        "attribute": "temperature",
                        "above": 25,
                    }
                ],
                "action": {"entity": "Y", "service": "turn_on"},
            }
        }
        engine = make_engine(adapter, config)

        engine.process_event(switch_on())
        assert adapter.get_published() == []

        adapter.set_state("sensor", {"temperature": 26})
        engine.process_event(switch_on())
        assert payloads(adapter) == [("zigbee2mqtt/Y/set", {"state": "ON"})]

    def test_action_trigger(self, adapter):
        config = {
            "button": {
                "trigger": {"platform": "action", "entity": "X", "action": "single"},
                "action": [
                    {"entity": "Y", "service": "toggle"},
                    {"entity": "sensor", "service": "custom", "data": {"calibrate": True}},
                ],
            }
        }
        engine = make_engine(adapter, config)

        engine.process_event(state_change("X", {"action": "single"}, {}, {"action": "single"}))

        assert payloads(adapter) == [
            ("zigbee2mqtt/Y/set", {"state": "ON"}),
            ("zigbee2mqtt/sensor/set", {"calibrate": True}),
        ]

    def test_rules_fire_in_config_order(self, adapter):
        config = {
            "first": {
                "trigger": {"platform": "state", "entity": "X", "state": "ON"},
                "action": {"entity": "Y", "service": "custom", "data": {"order": 1}},
            },
            "second": {
                "trigger": {"platform": "state", "entity": "X", "state": "ON"},
                "action": {"entity": "Y", "service": "custom", "data": {"order": 2}},
            },
        }
        engine = make_engine(adapter, config)

        engine.process_event(switch_on())

        assert [p["order"] for _, p in payloads(adapter)] == [1, 2]

    def test_numeric_sequence(self, adapter):
        """Test 25 -> 35 -> 32 with an above=30 trigger fires once."""
        config = {
            "hot": {
                "trigger": {
                    "platform": "numeric_state",
                    "entity": "sensor",
                    "attribute": "temperature",
                    "above": 30,
                },
                "action": {"entity": "Y", "service": "custom", "data": {"fan": "high"}},
            }
        }
        engine = make_engine(adapter, config)

        triggered = [
            engine.process_event(temperature(None, 25)).rules_triggered,
            engine.process_event(temperature(25, 35)).rules_triggered,
            engine.process_event(temperature(35, 32)).rules_triggered,
        ]

        assert triggered == [0, 1, 0]
        assert len(adapter.get_published()) == 1

    def test_failing_rule_does_not_stop_others(self, adapter, monkeypatch):
        """Test that an exception in one rule is recorded and processing continues."""
        config = {
            "broken": {
                "trigger": {"platform": "state", "entity": "X", "state": "ON"},
                "condition": {"platform": "state", "entity": "sensor", "state": "ON"},
                "action": {"entity": "Y", "service": "turn_on"},
            },
            "working": {
                "trigger": {"platform": "state", "entity": "X", "state": "ON"},
                "action": {"entity": "Y", "service": "turn_on"},
            },
        }
        engine = make_engine(adapter, config)
        original = adapter.get_state

        def get_state(entity):
            if entity.name == "sensor":
                raise RuntimeError("state store unavailable")
            return original(entity)

        monkeypatch.setattr(adapter, "get_state", get_state)

        result = engine.process_event(switch_on())

        assert len(result.errors) == 1
        assert result.errors[0].startswith("broken")
        assert payloads(adapter) == [("zigbee2mqtt/Y/set", {"state": "ON"})]


class TestDelayedRules:
    """Tests for "for" delays."""

    def test_fires_after_delay(self, adapter, fake_loop):
        engine = make_engine(adapter, delayed(10), loop=fake_loop)

        result = engine.process_event(switch_on())
        assert result.timers_started == 1
        assert adapter.get_published() == []
        assert len(engine.pending_timers) == 1

        fake_loop.advance(10)

        assert payloads(adapter) == [("zigbee2mqtt/Y/set", {"state": "ON"})]
        assert engine.pending_timers == []

    def test_negative_edge_cancels(self, adapter, fake_loop):
        """Test that leaving the trigger state before expiry cancels the fire."""
        engine = make_engine(adapter, delayed(10), loop=fake_loop)

        engine.process_event(switch_on())
        fake_loop.advance(5)
        result = engine.process_event(switch_off())
        fake_loop.advance(10)

        assert result.timers_cancelled == 1
        assert adapter.get_published() == []
        assert engine.pending_timers == []

    def test_repeat_match_starts_one_timer(self, adapter, fake_loop):
        """Test that matches while pending don't restart or duplicate the timer."""
        config = delayed(10)
        config["x_on_for"]["action"] = {"entity": "Y", "service": "custom", "data": {"n": 1}}
        engine = make_engine(adapter, config, loop=fake_loop)

        engine.process_event(switch_on())
        fake_loop.advance(6)
        second = engine.process_event(switch_on())
        fake_loop.advance(4)

        assert second.timers_started == 0
        assert len(adapter.get_published()) == 1

        fake_loop.advance(10)
        assert len(adapter.get_published()) == 1

    def test_irrelevant_update_keeps_timer(self, adapter, fake_loop):
        engine = make_engine(adapter, delayed(10), loop=fake_loop)

        engine.process_event(switch_on())
        engine.process_event(state_change("X", {"linkquality": 80}, {"state": "ON"}, {"state": "ON"}))
        fake_loop.advance(10)

        assert len(adapter.get_published()) == 1

    def test_conditions_checked_at_fire_time(self, adapter, fake_loop):
        config = delayed(10)
        config["x_on_for"]["condition"] = {"platform": "state", "entity": "X", "state": "ON"}
        engine = make_engine(adapter, config, loop=fake_loop)

        engine.process_event(switch_on())
        fake_loop.advance(10)
        assert adapter.get_published() == []

        history = engine.get_history()
        assert history[0].delayed is True
        assert history[0].conditions_met is False

    def test_numeric_negative_edge_cancels(self, adapter, fake_loop):
        config = {
            "hot_for_a_while": {
                "trigger": {
                    "platform": "numeric_state",
                    "entity": "sensor",
                    "attribute": "temperature",
                    "above": 30,
                    "for": 60,
                },
                "action": {"entity": "Y", "service": "turn_on"},
            }
        }
        engine = make_engine(adapter, config, loop=fake_loop)

        engine.process_event(temperature(25, 35))
        engine.process_event(temperature(35, 32))  # still above, timer untouched
        assert len(engine.pending_timers) == 1

        engine.process_event(temperature(32, 28))
        fake_loop.advance(60)

        assert adapter.get_published() == []

    def test_replicas_have_independent_timers(self, adapter, fake_loop):
        """Test that each watched entity of one automation has its own timer."""
        adapter.add_entity("X2", {"state": "OFF"})
        engine = make_engine(adapter, delayed(10, entity=["X", "X2"]), loop=fake_loop)

        engine.process_event(switch_on("X"))
        engine.process_event(switch_on("X2"))
        engine.process_event(switch_off("X"))
        fake_loop.advance(10)

        assert len(engine.pending_timers) == 0
        assert payloads(adapter) == [("zigbee2mqtt/Y/set", {"state": "ON"})]
        assert engine.get_history()[0].entity_id == "X2"

    def test_real_event_loop(self, adapter):
        """Test the delay path on a real asyncio loop."""

        async def scenario():
            engine = make_engine(adapter, delayed(0.01))
            engine.process_event(switch_on())
            await asyncio.sleep(0.05)

        asyncio.run(scenario())

        assert payloads(adapter) == [("zigbee2mqtt/Y/set", {"state": "ON"})]

    def test_no_event_loop_is_reported(self, adapter):
        """Test that a delayed match with no event loop is an error, not a trigger."""
        engine = make_engine(adapter, delayed(1))

        result = engine.process_event(switch_on())

        assert result.rules_triggered == 0
        assert result.timers_started == 0
        assert len(result.errors) == 1
        assert result.errors[0].startswith("x_on_for")
        assert engine.pending_timers == []

    def test_loop_captured_at_start(self, adapter):
        """Test that events published from sync code use the loop seen at start."""
        bus = EventBus()
        engine = make_engine(adapter, delayed(0.01))
        loop = asyncio.new_event_loop()
        try:

            async def start():
                engine.start(bus)

            loop.run_until_complete(start())

            bus.publish(switch_on())
            assert len(engine.pending_timers) == 1

            loop.run_until_complete(asyncio.sleep(0.05))
        finally:
            engine.stop()
            loop.close()

        assert payloads(adapter) == [("zigbee2mqtt/Y/set", {"state": "ON"})]


class TestLifecycle:
    """Tests for start/stop."""

    def test_start_subscribes(self, adapter):
        bus = EventBus()
        engine = make_engine(adapter, X_TURNS_ON_Y)

        engine.start(bus)
        bus.publish(switch_on())

        assert engine.is_running
        assert len(adapter.get_published()) == 1

    def test_start_twice_subscribes_once(self, adapter):
        bus = EventBus()
        engine = make_engine(adapter, X_TURNS_ON_Y)

        engine.start(bus)
        engine.start(bus)

        assert bus.subscriber_count == 1

    def test_stop_unsubscribes(self, adapter):
        bus = EventBus()
        engine = make_engine(adapter, X_TURNS_ON_Y)
        engine.start(bus)

        engine.stop()
        bus.publish(switch_on())

        assert not engine.is_running
        assert bus.subscriber_count == 0
        assert adapter.get_published() == []

    def test_stop_cancels_pending_timers(self, adapter, fake_loop):
        """Test that actions never run once the engine is stopped mid-delay."""
        bus = EventBus()
        engine = make_engine(adapter, delayed(10), loop=fake_loop)
        engine.start(bus)

        bus.publish(switch_on())
        fake_loop.advance(5)
        engine.stop()
        fake_loop.advance(10)

        assert adapter.get_published() == []
        assert engine.pending_timers == []

    def test_stopped_engine_ignores_events(self, adapter):
        engine = make_engine(adapter, X_TURNS_ON_Y)
        engine.stop()

        result = engine.process_event(switch_on())

        assert result.rules_evaluated == 0
        assert adapter.get_published() == []

    def test_stop_is_idempotent(self, adapter):
        engine = make_engine(adapter, X_TURNS_ON_Y)
        engine.start(EventBus())

        engine.stop()
        engine.stop()

        assert not engine.is_running


class TestHistory:
    """Tests for execution history."""

    def test_records_executions(self, adapter):
        engine = make_engine(adapter, X_TURNS_ON_Y)

        engine.process_event(switch_on())
        engine.process_event(switch_on())

        history = engine.get_history()
        assert len(history) == 2
        # Newest first: Y was still OFF in the mock store both times
        assert history[0].rule_name == "x_on"
        assert history[0].conditions_met is True
        assert history[0].commands_published == 1
        assert history[0].delayed is False

    def test_filters_and_limit(self, adapter):
        engine = make_engine(adapter, X_TURNS_ON_Y)
        rule_id = engine.store.rules_for("X")[0].id

        for _ in range(5):
            engine.process_event(switch_on())

        assert len(engine.get_history(limit=3)) == 3
        assert len(engine.get_history(rule_id=rule_id)) == 5
        assert engine.get_history(entity_id="Y") == []

    def test_bounded(self, adapter):
        engine = make_engine(adapter, X_TURNS_ON_Y)

        for _ in range(AutomationEngine.HISTORY_SIZE + 10):
            engine.process_event(switch_on())

        assert len(engine.get_history(limit=1000)) == AutomationEngine.HISTORY_SIZE
