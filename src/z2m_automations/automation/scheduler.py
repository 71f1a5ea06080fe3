"""
Delayed firing for triggers with a "for" duration.

One pending timer per key, backed by asyncio TimerHandles on the host's
event loop. Timers live in memory only.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], None]


class TimerScheduler:
    """
    Tracks at most one pending timer per key.

    - start() while a timer is pending is a no-op (the first timer wins)
    - cancel() drops the timer without running its callback
    - a fired timer is removed before its callback runs
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """
        Args:
            loop: Event loop to schedule on. Defaults to the first running
                loop seen by bind_running_loop() or start().
        """
        self._loop = loop
        self._pending: Dict[str, asyncio.TimerHandle] = {}

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    def bind_running_loop(self) -> bool:
        """
        Bind to the running event loop if no loop is bound yet.

        Timers started later, including from synchronous callers, are
        scheduled on the bound loop.

        Returns:
            True if a loop is bound
        """
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                return False
        return True

    def start(self, key: str, delay: float, callback: TimerCallback) -> bool:
        """
        Start a timer unless one is already pending for this key.

        Returns:
            True if a new timer was started. False if one is already pending
            or no event loop is available.
        """
        if key in self._pending:
            return False

        if not self.bind_running_loop():
            logger.error(f"No event loop available, cannot start {delay}s timer for {key}")
            return False

        self._pending[key] = self._loop.call_later(delay, self._fire, key, callback)
        logger.debug(f"Started {delay}s timer for {key}")
        return True

    def cancel(self, key: str) -> bool:
        """
        Cancel the pending timer for a key.

        Returns:
            True if a timer was pending
        """
        handle = self._pending.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        logger.debug(f"Cancelled timer for {key}")
        return True

    def cancel_all(self) -> int:
        """Cancel every pending timer. Returns how many were cancelled."""
        count = 0
        for key in list(self._pending):
            if self.cancel(key):
                count += 1
        return count

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def pending_keys(self) -> List[str]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def _fire(self, key: str, callback: TimerCallback) -> None:
        self._pending.pop(key, None)
        logger.debug(f"Timer fired for {key}")
        try:
            callback()
        except Exception as e:
            logger.error(f"Error in timer callback for {key}: {e}", exc_info=True)
