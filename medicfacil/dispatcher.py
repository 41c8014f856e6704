"""
Reminder dispatcher for MedicFácil.

Turns due medications into announcements and records what the user decides.

Each occurrence goes through:

    Idle -> Announcing -> (taken | delayed | skipped) -> next occurrence or Idle

- poll() asks the resolver which occurrences are due and queues the new
  ones by scheduled time. Each occurrence is queued once per day; polling again
  never announces it a second time, and an occurrence the ledger already
  shows as taken or skipped (answered in an earlier run) is not queued.
- Only one occurrence is announced at a time. Announcing delivers it once
  on every channel of the CapabilitySet.
- take() / skip() write a dose event and move on to the next queued
  occurrence. snooze() writes a "delayed" event, moves on, and asks the
  DelayedReminderScheduler to announce the same occurrence again later.
- The dose event is written before the queue advances. If the write fails,
  StorageError reaches the caller and the occurrence stays announced, so the
  user can answer again.

An occurrence nobody answers stays announced; the dispatcher does not
escalate or expire it.
"""

from collections import deque
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, List, Optional

from . import config
from .channels import CapabilitySet
from .errors import NoActiveReminder
from .ledger import AdherenceLedger
from .logger import get_logger
from .models import DoseEvent, DoseStatus
from .schedules import Occurrence, due_occurrences
from .timers import DelayedReminderScheduler


logger = get_logger(__name__)


class DispatcherState(str, Enum):
    IDLE = 'idle'
    ANNOUNCING = 'announcing'


class ReminderDispatcher:
    """Announces due occurrences one by one and records the user's decisions."""

    def __init__(self, ledger: AdherenceLedger, capabilities: CapabilitySet,
                 timers: DelayedReminderScheduler,
                 reminder_interval: timedelta = timedelta(minutes=config.DEFAULT_REMINDER_INTERVAL_MINUTES),
                 tolerance_minutes: int = config.DUE_TOLERANCE_MINUTES):
        self.ledger = ledger
        self.capabilities = capabilities
        self.timers = timers
        self.reminder_interval = reminder_interval
        self.tolerance_minutes = tolerance_minutes

        self.current: Optional[Occurrence] = None
        self.queue: deque = deque()
        self.permissions: Optional[dict] = None
        self._seen = set()

    @property
    def state(self) -> DispatcherState:
        return DispatcherState.ANNOUNCING if self.current else DispatcherState.IDLE

    @property
    def pending(self) -> List[Occurrence]:
        """Occurrences waiting behind the current one."""
        return list(self.queue)

    def start(self) -> dict:
        """
        Ask for notification permission before the first announcement.

        A refusal only turns that channel off; the others keep working.
        """
        if self.permissions is None:
            self.permissions = self.capabilities.request_permissions()
            logger.info("Channels: %s, permissions: %s",
                        ', '.join(self.capabilities.names()), self.permissions)
        return self.permissions

    # ============================================================
    # POLLING
    # ============================================================

    def poll(self, medications: Iterable, now: datetime) -> List[Occurrence]:
        """
        Queue the occurrences that became due and announce if idle.

        Call this periodically (every minute) so medications that become due
        while the app is open are picked up.

        Returns:
            The occurrences queued by this poll
        """
        self.start()
        self._forget_previous_days(now)
        answered = self._answered_keys(now.date())

        new = []
        for occurrence in due_occurrences(medications, now, self.tolerance_minutes):
            if occurrence.key in self._seen or occurrence.key in answered:
                continue
            self._seen.add(occurrence.key)
            new.append(occurrence)

        if new:
            for occurrence in sorted(new, key=lambda occ: occ.scheduled_at):
                self._enqueue(occurrence)
            logger.info("Queued %d due occurrence(s)", len(new))

        if self.current is None:
            self._announce_next()

        return new

    def _answered_keys(self, day: date) -> set:
        """
        Keys of the occurrences already taken or skipped on `day`.

        Read from the ledger, so answers given in another run (a previous
        'medic take', or the service before a restart) are not asked again.
        A "delayed" answer does not count: the dose is still open.
        """
        return {
            (event.medication_id, day.isoformat(), event.scheduled_time.strftime('%H:%M'))
            for event in self.ledger.by_date(day)
            if event.status in (DoseStatus.TAKEN, DoseStatus.SKIPPED)
        }

    def _enqueue(self, occurrence: Occurrence):
        # Behind every queued occurrence that is not later; entries already
        # queued (a snoozed one at the front included) keep their places
        index = len(self.queue)
        while index > 0 and self.queue[index - 1].scheduled_at > occurrence.scheduled_at:
            index -= 1
        self.queue.insert(index, occurrence)

    def _forget_previous_days(self, now: datetime):
        today = now.date().isoformat()
        self._seen = {key for key in self._seen if key[1] >= today}

    # ============================================================
    # ANNOUNCING
    # ============================================================

    def _announce_next(self):
        if self.queue:
            self._announce(self.queue.popleft())
        else:
            self.current = None

    def _announce(self, occurrence: Occurrence):
        self.current = occurrence
        logger.info("Announcing %s at %s", occurrence.medication.name, occurrence.time_point)
        results = self.capabilities.deliver(occurrence)
        failed = [name for name, ok in results.items() if not ok]
        if failed:
            logger.info("Announced without: %s", ', '.join(failed))

    def repeat(self) -> dict:
        """Read the current medication aloud again ("Ouvir Novamente")."""
        occurrence = self._require_current()
        return self.capabilities.deliver(occurrence, only=['speech'])

    def reannounce(self, occurrence: Occurrence):
        """
        Bring a snoozed occurrence back.

        It is announced right away when nothing else is, otherwise it goes
        to the front of the queue. Later polls insert new occurrences by
        scheduled time behind every entry that is not later, without
        reordering what is already queued; only an occurrence scheduled
        earlier than it can get ahead of it.
        """
        if self.current is None:
            self._announce(occurrence)
        else:
            self.queue.appendleft(occurrence)

    # ============================================================
    # USER DECISIONS
    # ============================================================

    def take(self, now: datetime) -> DoseEvent:
        """The user pressed "TOMEI": record a taken dose and move on."""
        return self._resolve(DoseStatus.TAKEN, now)

    def skip(self, now: datetime) -> DoseEvent:
        """The user skipped this dose: record it and move on."""
        return self._resolve(DoseStatus.SKIPPED, now)

    def snooze(self, now: datetime) -> DoseEvent:
        """
        The user pressed "Lembrar Depois".

        Records a delayed dose, moves on, and announces this occurrence again
        after the reminder interval. Returns without waiting for the timer.
        """
        occurrence = self.current
        event = self._resolve(DoseStatus.DELAYED, now)
        self.timers.after(self.reminder_interval, lambda: self.reannounce(occurrence), now=now)
        return event

    def _resolve(self, status: DoseStatus, now: datetime) -> DoseEvent:
        occurrence = self._require_current()
        event = DoseEvent.new(
            medication_id=occurrence.medication.id,
            scheduled_time=occurrence.scheduled_at,
            status=status,
            now=now,
        )
        # StorageError propagates; the occurrence stays current for a retry
        self.ledger.record(event)
        self._announce_next()
        return event

    def _require_current(self) -> Occurrence:
        if self.current is None:
            raise NoActiveReminder("No medication is being announced")
        return self.current
