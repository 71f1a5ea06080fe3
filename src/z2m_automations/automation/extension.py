"""
AutomationsExtension implementation.

Host-facing wrapper: builds the rule store from the extension settings and
attaches the engine to the host's event bus on start().
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from z2m_automations.core.bus import EventBus
from z2m_automations.core.config import ExtensionSettings

from .engine import AutomationEngine
from .store import RuleStore

if TYPE_CHECKING:
    from .adapter import HostAdapter

logger = logging.getLogger(__name__)


class AutomationsExtension:
    """
    Extension that runs configured automations inside the host bridge.

    The host constructs it with its adapter, bus and settings, then calls
    start() and stop() with the rest of its extensions.
    """

    def __init__(
        self,
        adapter: "HostAdapter",
        bus: EventBus,
        settings: ExtensionSettings,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._bus = bus
        self._settings = settings
        self._store = RuleStore.from_config(settings.automations, settings.data_path)
        self._engine = AutomationEngine(adapter, self._store, settings.base_topic, loop)

        logger.info("AutomationsExtension loaded")
        logger.debug(f"Registered automations: {self._store.to_dict()}")

    @property
    def id(self) -> str:
        return "automations"

    @property
    def engine(self) -> AutomationEngine:
        return self._engine

    @property
    def store(self) -> RuleStore:
        return self._store

    def start(self) -> None:
        """Start handling state changes."""
        self._engine.start(self._bus)

    def stop(self) -> None:
        """Stop handling state changes and drop pending timers."""
        self._engine.stop()
