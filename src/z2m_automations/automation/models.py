"""
Data models for the Automation engine.

Defines triggers, conditions, actions and rules, plus parsers that turn raw
configuration mappings into these models.
"""

import numbers
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class ConfigValidationError(ValueError):
    """Raised when a raw automation entry cannot be turned into a rule."""


# =============================================================================
# Enums
# =============================================================================


class TriggerPlatform(Enum):
    """Kinds of triggers an automation can use."""

    ACTION = "action"  # Discrete "action" pulse (button press, etc.)
    STATE = "state"
    STATE_L1 = "state_l1"  # Secondary switch channels
    STATE_L2 = "state_l2"
    NUMERIC_STATE = "numeric_state"

    @property
    def default_attribute(self) -> Optional[str]:
        """Attribute checked when the config doesn't name one."""
        return _DEFAULT_ATTRIBUTES.get(self)


class ConditionPlatform(Enum):
    """Kinds of conditions. Mirrors the state-bearing trigger platforms."""

    STATE = "state"
    STATE_L1 = "state_l1"
    STATE_L2 = "state_l2"
    NUMERIC_STATE = "numeric_state"

    @property
    def default_attribute(self) -> Optional[str]:
        return _DEFAULT_ATTRIBUTES.get(self)


_DEFAULT_ATTRIBUTES = {
    TriggerPlatform.STATE: "state",
    TriggerPlatform.STATE_L1: "state_l1",
    TriggerPlatform.STATE_L2: "state_l2",
    ConditionPlatform.STATE: "state",
    ConditionPlatform.STATE_L1: "state_l1",
    ConditionPlatform.STATE_L2: "state_l2",
}

STATE_LIKE_TRIGGERS = frozenset(
    {TriggerPlatform.STATE, TriggerPlatform.STATE_L1, TriggerPlatform.STATE_L2}
)


class Service(Enum):
    """Services an action can request."""

    TOGGLE = "toggle"
    TURN_ON = "turn_on"
    TURN_OFF = "turn_off"
    CUSTOM = "custom"  # Publish the configured payload verbatim


class OnOff(Enum):
    """Binary state values."""

    ON = "ON"
    OFF = "OFF"


class TriggerResult(Enum):
    """Outcome of checking a trigger against a state change."""

    NO_MATCH = "no_match"  # Irrelevant update, leave pending timers alone
    NEGATIVE_EDGE = "negative_edge"  # Left the matching region, cancel pending timer
    MATCH = "match"


# =============================================================================
# Trigger Configs
# =============================================================================


@dataclass(frozen=True)
class ActionTrigger:
    """Trigger on an update carrying one of the accepted action names."""

    entities: Tuple[str, ...]
    actions: Tuple[str, ...]
    for_seconds: float = 0

    @property
    def platform(self) -> TriggerPlatform:
        return TriggerPlatform.ACTION


@dataclass(frozen=True)
class StateTrigger:
    """Trigger on a change of an attribute into one of the accepted values."""

    platform: TriggerPlatform
    entities: Tuple[str, ...]
    attribute: str
    states: Tuple[Any, ...]
    for_seconds: float = 0


@dataclass(frozen=True)
class NumericStateTrigger:
    """Trigger when a numeric attribute crosses into the above/below range."""

    entities: Tuple[str, ...]
    attribute: str
    above: Optional[float] = None
    below: Optional[float] = None
    for_seconds: float = 0

    @property
    def platform(self) -> TriggerPlatform:
        return TriggerPlatform.NUMERIC_STATE


TriggerConfig = Union[ActionTrigger, StateTrigger, NumericStateTrigger]


# =============================================================================
# Condition Configs
# =============================================================================


@dataclass(frozen=True)
class StateCondition:
    """Check that an entity attribute equals a value."""

    platform: ConditionPlatform
    entity: str
    attribute: str
    state: Any


@dataclass(frozen=True)
class NumericStateCondition:
    """Check that an entity's numeric attribute is within range (inclusive)."""

    entity: str
    attribute: str
    above: Optional[float] = None  # Value must be >= this
    below: Optional[float] = None  # Value must be <= this

    @property
    def platform(self) -> ConditionPlatform:
        return ConditionPlatform.NUMERIC_STATE


ConditionConfig = Union[StateCondition, NumericStateCondition]


# =============================================================================
# Action Configs
# =============================================================================


@dataclass(frozen=True)
class Action:
    """Command a target entity's state."""

    entity: str
    service: Service
    data: Dict[str, Any] = field(default_factory=dict)  # Payload for custom actions


# =============================================================================
# Rule
# =============================================================================


@dataclass(frozen=True)
class Rule:
    """
    One automation bound to one watched entity.

    A raw automation naming several trigger entities expands into one Rule
    per entity. The replicas share ``id`` but each keeps its own timer slot
    (see ``timer_key``).
    """

    id: str
    name: str
    entity: str
    trigger: TriggerConfig
    conditions: Tuple[ConditionConfig, ...]
    actions: Tuple[Action, ...]

    @property
    def timer_key(self) -> str:
        return f"{self.entity}:{self.id}"

    @property
    def delay(self) -> float:
        return self.trigger.for_seconds


# =============================================================================
# Parsing
# =============================================================================


def to_list(value: Any) -> List[Any]:
    """Wrap a single value in a list. None becomes an empty list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def is_number(value: Any) -> bool:
    """True for ints and floats, but not bools."""
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _optional_number(data: Dict[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if not is_number(value):
        raise ConfigValidationError(f"'{key}' must be a number, got {value!r}")
    return value


def _require_mapping(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{what} must be a mapping, got {type(data).__name__}")
    return data


def _has_entity(value: Any) -> bool:
    return value is not None and value != ""


def _entity_list(data: Dict[str, Any], what: str) -> Tuple[str, ...]:
    raw = [e for e in to_list(data.get("entity")) if _has_entity(e)]
    entities = tuple(dict.fromkeys(str(e) for e in raw))
    if not entities:
        raise ConfigValidationError(f"{what} entity not specified")
    return entities


def parse_trigger(data: Any) -> TriggerConfig:
    """Parse trigger config from dict."""
    data = _require_mapping(data, "trigger")
    raw_platform = data.get("platform")
    try:
        platform = TriggerPlatform(raw_platform)
    except ValueError:
        raise ConfigValidationError(f"unknown trigger platform '{raw_platform}'") from None

    entities = _entity_list(data, "trigger")

    for_seconds = _optional_number(data, "for") or 0
    if for_seconds < 0:
        raise ConfigValidationError(f"'for' must not be negative, got {for_seconds}")

    if platform is TriggerPlatform.ACTION:
        return ActionTrigger(
            entities=entities,
            actions=tuple(to_list(data.get("action"))),
            for_seconds=for_seconds,
        )
    elif platform in STATE_LIKE_TRIGGERS:
        # Accepted values live under the platform's own key (state, state_l1, ...)
        return StateTrigger(
            platform=platform,
            entities=entities,
            attribute=data.get("attribute") or platform.default_attribute,
            states=tuple(to_list(data.get(platform.value))),
            for_seconds=for_seconds,
        )
    else:
        attribute = data.get("attribute")
        if not attribute:
            raise ConfigValidationError("numeric_state trigger requires 'attribute'")
        return NumericStateTrigger(
            entities=entities,
            attribute=attribute,
            above=_optional_number(data, "above"),
            below=_optional_number(data, "below"),
            for_seconds=for_seconds,
        )


def parse_condition(data: Any) -> ConditionConfig:
    """Parse condition config from dict."""
    data = _require_mapping(data, "condition")
    if not _has_entity(data.get("entity")):
        raise ConfigValidationError("condition entity not specified")

    raw_platform = data.get("platform")
    try:
        platform = ConditionPlatform(raw_platform)
    except ValueError:
        raise ConfigValidationError(f"unknown condition platform '{raw_platform}'") from None

    entity = str(data["entity"])

    if platform is ConditionPlatform.NUMERIC_STATE:
        attribute = data.get("attribute")
        if not attribute:
            raise ConfigValidationError("numeric_state condition requires 'attribute'")
        return NumericStateCondition(
            entity=entity,
            attribute=attribute,
            above=_optional_number(data, "above"),
            below=_optional_number(data, "below"),
        )

    expected = data.get("state", data.get(platform.value))
    return StateCondition(
        platform=platform,
        entity=entity,
        attribute=data.get("attribute") or platform.default_attribute,
        state=expected,
    )


def parse_action(data: Any) -> Action:
    """Parse action config from dict."""
    data = _require_mapping(data, "action")
    raw_service = data.get("service")
    try:
        service = Service(raw_service)
    except ValueError:
        raise ConfigValidationError(f"unknown service '{raw_service}'") from None

    if not _has_entity(data.get("entity")):
        raise ConfigValidationError("action entity not specified")

    payload = data.get("data")
    if service is Service.CUSTOM:
        if not isinstance(payload, dict):
            raise ConfigValidationError("custom action requires a 'data' mapping")
    else:
        payload = {}

    return Action(entity=str(data["entity"]), service=service, data=dict(payload))
