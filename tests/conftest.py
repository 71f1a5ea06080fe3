"""Shared fixtures."""

import pytest


class FakeTimerHandle:
    """Stand-in for asyncio.TimerHandle."""

    def __init__(self, when, callback, args):
        self.when = when
        self._callback = callback
        self._args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def run(self):
        self._callback(*self._args)


class FakeLoop:
    """Manually advanced clock implementing loop.call_later()."""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def call_later(self, delay, callback, *args):
        handle = FakeTimerHandle(self.now + delay, callback, args)
        self.handles.append(handle)
        return handle

    @property
    def active(self):
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds):
        """Move the clock forward, running timers that come due."""
        self.now += seconds
        due = sorted(
            (h for h in self.handles if not h.cancelled and h.when <= self.now),
            key=lambda h: h.when,
        )
        for handle in due:
            self.handles.remove(handle)
            handle.run()


@pytest.fixture
def fake_loop():
    """A manually advanced event loop for timer tests."""
    return FakeLoop()
