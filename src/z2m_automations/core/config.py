"""
Extension settings.

Settings are handed over by the host as a plain dict (the host owns the
configuration file format). Only the keys this extension reads are kept.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

DEFAULT_BASE_TOPIC = "zigbee2mqtt"

AutomationsSource = Union[Dict[str, Any], str, Path]


@dataclass
class ExtensionSettings:
    """
    Configuration for the automations extension.

    Attributes:
        base_topic: MQTT base topic used to build command topics
        automations: Inline automations mapping, or a path to a YAML file
        data_path: Directory that relative automation file paths resolve against
    """

    base_topic: str = DEFAULT_BASE_TOPIC
    automations: AutomationsSource = field(default_factory=dict)
    data_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the host's settings shape."""
        automations = self.automations
        if isinstance(automations, Path):
            automations = str(automations)
        return {
            "mqtt": {"base_topic": self.base_topic},
            "automations": automations,
            "data_path": str(self.data_path) if self.data_path else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtensionSettings":
        """Deserialize from the host's settings dict."""
        mqtt = data.get("mqtt") or {}
        data_path = data.get("data_path")
        return cls(
            base_topic=mqtt.get("base_topic", DEFAULT_BASE_TOPIC),
            automations=data.get("automations") or {},
            data_path=Path(data_path) if data_path else None,
        )
