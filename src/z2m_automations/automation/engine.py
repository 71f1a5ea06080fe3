"""
Automation engine - core rule processing logic.

Handles trigger matching, delayed firing, condition evaluation, and action
execution for state-change events.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import TYPE_CHECKING, Deque, List, Optional

from z2m_automations.core.bus import EventBus, StateChangeEvent, Subscription

from .actions import ActionRunner
from .evaluators import ConditionEvaluator
from .models import Rule, TriggerResult
from .scheduler import TimerScheduler
from .store import RuleStore
from .triggers import check_trigger

if TYPE_CHECKING:
    from .adapter import HostAdapter

logger = logging.getLogger(__name__)


@dataclass
class EngineResult:
    """Result of processing one state-change event."""

    rules_evaluated: int = 0
    rules_triggered: int = 0
    timers_started: int = 0
    timers_cancelled: int = 0
    commands_published: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass
class RuleExecution:
    """Record of a rule firing (for history/debugging)."""

    rule_id: str
    rule_name: str
    entity_id: str
    delayed: bool
    conditions_met: bool
    commands_published: int
    timestamp: datetime


class AutomationEngine:
    """
    Core engine for automation rule processing.

    Responsibilities:
    - Look up rules watching the changed entity
    - Match the state change against each rule's trigger
    - Start/cancel "for" timers
    - Gate actions on conditions and run them
    - Track execution history
    """

    HISTORY_SIZE = 100  # Number of executions to keep in history

    def __init__(
        self,
        adapter: "HostAdapter",
        store: RuleStore,
        base_topic: str = "zigbee2mqtt",
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._adapter = adapter
        self._store = store
        self._evaluator = ConditionEvaluator(adapter)
        self._runner = ActionRunner(adapter, base_topic)
        self._scheduler = TimerScheduler(loop)

        self._subscription: Optional[Subscription] = None
        self._bus: Optional[EventBus] = None
        self._stopped = False

        # Execution history (ring buffer)
        self._history: Deque[RuleExecution] = deque(maxlen=self.HISTORY_SIZE)

    @property
    def store(self) -> RuleStore:
        return self._store

    @property
    def pending_timers(self) -> List[str]:
        """Timer keys of rules waiting on a "for" delay."""
        return self._scheduler.pending_keys()

    @property
    def is_running(self) -> bool:
        return self._subscription is not None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, bus: EventBus) -> None:
        """
        Subscribe to state-change events on the host bus.

        When called inside a running event loop that loop is kept for "for"
        timers, so events published later from synchronous code still
        schedule delayed rules.
        """
        if self._subscription is not None:
            return
        self._stopped = False
        if not self._scheduler.bind_running_loop():
            logger.debug("No running event loop at start, timers bind on first use")
        self._bus = bus
        self._subscription = bus.subscribe(self.process_event)
        logger.info(f"Automation engine started ({len(self._store)} rule(s))")

    def stop(self) -> None:
        """Unsubscribe and cancel every pending timer. Nothing fires afterwards."""
        self._stopped = True
        if self._bus is not None and self._subscription is not None:
            self._bus.unsubscribe(self._subscription)
        self._subscription = None
        self._bus = None

        cancelled = self._scheduler.cancel_all()
        logger.info(f"Automation engine stopped, cancelled {cancelled} pending timer(s)")

    # =========================================================================
    # Event Processing
    # =========================================================================

    def process_event(self, event: StateChangeEvent) -> EngineResult:
        """
        Process a state change and fire matching rules.

        Args:
            event: The state change to process

        Returns:
            Result with counts of rules evaluated/triggered
        """
        result = EngineResult()
        if self._stopped:
            return result

        entity_id = event.entity.name
        rules = self._store.rules_for(entity_id)
        if not rules:
            return result

        logger.debug(f"Checking {len(rules)} automation(s) for entity '{entity_id}'")

        for rule in rules:
            result.rules_evaluated += 1
            try:
                self._process_rule(rule, event, result)
            except Exception as e:
                result.errors.append(f"{rule.name}: {e}")
                logger.error(f"Error processing automation '{rule.name}': {e}", exc_info=True)

        if result.rules_triggered > 0:
            logger.debug(
                f"Processed event for {entity_id}: "
                f"{result.rules_triggered}/{result.rules_evaluated} rules triggered, "
                f"{result.commands_published} commands published"
            )

        return result

    def _process_rule(self, rule: Rule, event: StateChangeEvent, result: EngineResult) -> None:
        match = check_trigger(rule.trigger, event.update, event.from_state, event.to_state)

        if match is TriggerResult.NEGATIVE_EDGE:
            if self._scheduler.cancel(rule.timer_key):
                result.timers_cancelled += 1
                logger.debug(f"Cancelled pending automation '{rule.name}'")
            return

        if match is TriggerResult.NO_MATCH:
            return

        # A pending timer wins over new matches
        if self._scheduler.is_pending(rule.timer_key):
            return

        if rule.delay > 0:
            if not self._scheduler.start(
                rule.timer_key, rule.delay, lambda: self._fire_delayed(rule)
            ):
                result.errors.append(f"{rule.name}: no event loop for {rule.delay}s delay")
                return
            result.rules_triggered += 1
            result.timers_started += 1
            logger.debug(f"Start automation '{rule.name}' on {rule.entity} in {rule.delay}s")
            return

        result.rules_triggered += 1
        logger.debug(f"Start automation '{rule.name}' on {rule.entity}")
        result.commands_published += self._run_rule(rule, delayed=False)

    def _fire_delayed(self, rule: Rule) -> None:
        if self._stopped:
            return
        self._run_rule(rule, delayed=True)

    def _run_rule(self, rule: Rule, delayed: bool) -> int:
        """Run a rule's actions if its conditions hold. Returns commands published."""
        conditions_met = self._evaluator.evaluate_all(rule.conditions)
        published = self._runner.run(rule.actions) if conditions_met else 0

        self._history.append(
            RuleExecution(
                rule_id=rule.id,
                rule_name=rule.name,
                entity_id=rule.entity,
                delayed=delayed,
                conditions_met=conditions_met,
                commands_published=published,
                timestamp=datetime.now(UTC),
            )
        )
        return published

    # =========================================================================
    # History
    # =========================================================================

    def get_history(
        self,
        entity_id: Optional[str] = None,
        rule_id: Optional[str] = None,
        limit: int = 20,
    ) -> List[RuleExecution]:
        """
        Get execution history.

        Args:
            entity_id: Filter by watched entity (optional)
            rule_id: Filter by rule (optional)
            limit: Maximum entries to return

        Returns:
            List of RuleExecution records (newest first)
        """
        result = []
        for execution in reversed(self._history):
            if entity_id and execution.entity_id != entity_id:
                continue
            if rule_id and execution.rule_id != rule_id:
                continue
            result.append(execution)
            if len(result) >= limit:
                break
        return result
