"""
Automation engine for z2m-automations.

Provides trigger/condition/action rules bound to named entities.

Features:
- Action, state (state, state_l1, state_l2) and numeric_state triggers
- Delayed firing with "for", cancelled when the trigger stops holding
- State and numeric_state conditions (implicit AND)
- toggle / turn_on / turn_off / custom actions
- Device state checking (avoid redundant commands)
- Execution history for debugging
"""

from .models import (
    # Enums
    TriggerPlatform,
    ConditionPlatform,
    Service,
    OnOff,
    TriggerResult,
    # Triggers
    ActionTrigger,
    StateTrigger,
    NumericStateTrigger,
    TriggerConfig,
    # Conditions
    StateCondition,
    NumericStateCondition,
    ConditionConfig,
    # Actions
    Action,
    # Rule
    Rule,
    # Parsing
    ConfigValidationError,
    parse_trigger,
    parse_condition,
    parse_action,
)
from .adapter import HostAdapter, MockHostAdapter
from .triggers import check_trigger
from .evaluators import ConditionEvaluator
from .actions import ActionRunner
from .scheduler import TimerScheduler
from .store import RuleStore, load_automations
from .engine import AutomationEngine, EngineResult, RuleExecution
from .extension import AutomationsExtension

__all__ = [
    # Extension
    "AutomationsExtension",
    # Engine
    "AutomationEngine",
    "EngineResult",
    "RuleExecution",
    # Components
    "RuleStore",
    "load_automations",
    "check_trigger",
    "ConditionEvaluator",
    "ActionRunner",
    "TimerScheduler",
    # Adapter
    "HostAdapter",
    "MockHostAdapter",
    # Enums
    "TriggerPlatform",
    "ConditionPlatform",
    "Service",
    "OnOff",
    "TriggerResult",
    # Triggers
    "ActionTrigger",
    "StateTrigger",
    "NumericStateTrigger",
    "TriggerConfig",
    # Conditions
    "StateCondition",
    "NumericStateCondition",
    "ConditionConfig",
    # Actions
    "Action",
    # Rule
    "Rule",
    # Parsing
    "ConfigValidationError",
    "parse_trigger",
    "parse_condition",
    "parse_action",
]
