"""
SCHEDULING
==========

Timers used by the group creation wizard.

A scheduler is any object with ``call_later(delay, callback)`` returning a
handle that has ``cancel()``. An asyncio event loop fits this contract,
which is what an interactive host uses. The HTTP host uses
ImmediateScheduler: its browser client does the waiting.
"""


class _DoneHandle:
    """Handle for a callback that already ran."""

    def cancel(self):
        pass


class ImmediateScheduler:
    """Runs every callback synchronously, ignoring the delay."""

    def call_later(self, delay, callback, *args):
        callback(*args)
        return _DoneHandle()


class Debouncer:
    """
    Collapse bursts of triggers into a single callback.

    Every trigger() cancels the pending timer and starts a new one, so the
    callback fires once, ``delay`` seconds after the last trigger, and it
    observes whatever state exists at that moment.
    """

    def __init__(self, delay, callback, scheduler):
        self.delay = delay
        self.callback = callback
        self.scheduler = scheduler
        self._handle = None
        self._pending = False
        self._generation = 0

    @property
    def pending(self):
        return self._pending

    def trigger(self):
        self.cancel()
        self._generation += 1
        generation = self._generation
        self._pending = True
        handle = self.scheduler.call_later(self.delay, self._fire, generation)
        # A synchronous scheduler has already fired by now.
        if self._pending and generation == self._generation:
            self._handle = handle

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = False

    def _fire(self, generation):
        if generation != self._generation or not self._pending:
            return
        self._handle = None
        self._pending = False
        self.callback()
