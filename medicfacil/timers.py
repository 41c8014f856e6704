"""
Delayed reminders for MedicFácil.

When the user answers "Lembrar Depois" the dose is announced again after the
reminder interval. DelayedReminderScheduler keeps those one-shot timers in
memory and fires them from the same loop that polls for due medications, so
every action runs on the caller's thread, in the order it became due.

Timers are not saved anywhere: if the app is closed before a timer fires,
that re-announcement is lost. There is no cancel; scheduling twice makes two
independent timers.
"""

import heapq
import itertools
from datetime import datetime, timedelta
from typing import Callable, Optional

from .logger import get_logger


logger = get_logger(__name__)


class DelayedReminderScheduler:
    """In-memory one-shot timers, fired by run_due()."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock
        self._heap = []
        self._counter = itertools.count()

    def after(self, interval: timedelta, action: Callable[[], None],
              now: Optional[datetime] = None) -> datetime:
        """
        Run `action` once, `interval` after now.

        Args:
            interval: Delay, measured from this call
            action: Zero-argument callable
            now: Scheduling instant (defaults to the clock)

        Returns:
            The instant the action becomes due
        """
        if now is None:
            now = self.clock()
        due_at = now + interval
        # The counter keeps timers with the same instant in scheduling order
        heapq.heappush(self._heap, (due_at, next(self._counter), action))
        logger.info("Delayed reminder set for %s", due_at.strftime('%H:%M:%S'))
        return due_at

    def run_due(self, now: Optional[datetime] = None) -> int:
        """
        Fire every timer that is due at `now`, earliest first.

        Returns:
            How many actions ran
        """
        if now is None:
            now = self.clock()

        fired = 0
        while self._heap and self._heap[0][0] <= now:
            due_at, _, action = heapq.heappop(self._heap)
            logger.info("Delayed reminder due at %s fired", due_at.strftime('%H:%M:%S'))
            action()
            fired += 1
        return fired

    def pending(self) -> int:
        """Number of timers that have not fired yet."""
        return len(self._heap)

    def next_due(self) -> Optional[datetime]:
        """When the next timer fires, or None if there is none."""
        return self._heap[0][0] if self._heap else None
