"""
Rule store: normalizes raw automation config into per-entity rule lists.

Raw config maps an automation name to::

    {
        "trigger": {"platform": ..., "entity": "name" | [names], ...},
        "action": {...} | [{...}, ...],
        "condition": {...} | [{...}, ...],   # optional
    }

or is a path to a YAML file holding such a mapping. Invalid entries are
logged and dropped; they never stop the remaining entries from loading.
"""

import logging
import re
import uuid
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import yaml

from .models import (
    ConfigValidationError,
    Rule,
    parse_action,
    parse_condition,
    parse_trigger,
    to_list,
)

logger = logging.getLogger(__name__)

_BOOL_TAG = "tag:yaml.org,2002:bool"


class AutomationsLoader(yaml.SafeLoader):
    """
    SafeLoader with YAML 1.2 booleans.

    Only true/false resolve to bools, so ON, OFF, yes and no stay strings
    and match the state values devices report.
    """


AutomationsLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _BOOL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
AutomationsLoader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def load_automations(
    source: Union[Mapping[str, Any], str, Path, None],
    data_path: Optional[Path] = None,
) -> Dict[str, Any]:
    """
    Resolve an automations source to a raw mapping.

    Args:
        source: Inline mapping, or path to a YAML file
        data_path: Directory that relative file paths resolve against

    Returns:
        The raw automations mapping (empty if the file is missing or invalid)
    """
    if source is None:
        return {}
    if isinstance(source, Mapping):
        return dict(source)
    if not isinstance(source, (str, Path)):
        logger.error(
            f"Automations must be a mapping or a file path, got {type(source).__name__}"
        )
        return {}

    path = Path(source)
    if not path.is_absolute() and data_path is not None:
        path = Path(data_path) / path

    if not path.exists():
        logger.warning(f"Automations file not found at {path}")
        return {}

    try:
        with open(path, "r") as f:
            loaded = yaml.load(f, Loader=AutomationsLoader) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to read automations from {path}: {e}")
        return {}

    if not isinstance(loaded, dict):
        logger.error(f"Automations file {path} must contain a mapping")
        return {}

    logger.debug(f"Loaded {len(loaded)} automation(s) from {path}")
    return loaded


class RuleStore:
    """
    Index from watched entity to the rules triggered by it.

    Built once; rule order within an entity is config order and is the
    firing order.
    """

    def __init__(self) -> None:
        self._rules: Dict[str, List[Rule]] = {}
        self._automation_count = 0

    @classmethod
    def from_config(
        cls,
        source: Union[Mapping[str, Any], str, Path, None],
        data_path: Optional[Path] = None,
    ) -> "RuleStore":
        """
        Build a store from raw config (inline mapping or YAML file path).
        """
        store = cls()
        for name, raw in load_automations(source, data_path).items():
            try:
                rules = store._build_rules(str(name), raw)
            except ConfigValidationError as e:
                logger.warning(f"Config validation error in automation '{name}': {e}")
                continue

            for rule in rules:
                store._rules.setdefault(rule.entity, []).append(rule)
            store._automation_count += 1

        logger.debug(
            f"Registered {store._automation_count} automation(s) "
            f"on {len(store._rules)} entity(ies)"
        )
        return store

    @staticmethod
    def _build_rules(name: str, raw: Any) -> List[Rule]:
        """Validate one raw entry and expand it into per-entity replicas."""
        if not isinstance(raw, dict):
            raise ConfigValidationError("automation must be a mapping")
        if "trigger" not in raw:
            raise ConfigValidationError("trigger not specified")

        trigger = parse_trigger(raw["trigger"])

        raw_actions = to_list(raw.get("action"))
        if not raw_actions:
            raise ConfigValidationError("no action specified")
        actions = tuple(parse_action(a) for a in raw_actions)
        conditions = tuple(parse_condition(c) for c in to_list(raw.get("condition")))

        rule_id = uuid.uuid4().hex
        return [
            Rule(
                id=rule_id,
                name=name,
                entity=entity,
                trigger=trigger,
                conditions=conditions,
                actions=actions,
            )
            for entity in trigger.entities
        ]

    # =========================================================================
    # Queries
    # =========================================================================

    def rules_for(self, entity_id: str) -> Tuple[Rule, ...]:
        """Rules watching an entity, in firing order."""
        return tuple(self._rules.get(entity_id, ()))

    def entities(self) -> List[str]:
        return list(self._rules)

    @property
    def automation_count(self) -> int:
        """Number of raw automations that loaded."""
        return self._automation_count

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Summary for debug logging."""
        return {
            entity: [
                {"id": r.id, "name": r.name, "platform": r.trigger.platform.value}
                for r in rules
            ]
            for entity, rules in self._rules.items()
        }

    def __iter__(self) -> Iterator[Rule]:
        for rules in self._rules.values():
            yield from rules

    def __len__(self) -> int:
        return sum(len(rules) for rules in self._rules.values())

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._rules
