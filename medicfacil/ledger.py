"""
Adherence ledger for MedicFácil.

An append-only history of dose events: one event per user decision
("taken", "delayed", "skipped"). Events are never deleted, and deleting a
medication leaves its events in place (they keep the old medication id).

Daily figures (counts per status, adherence percentage per medication) are
computed from the events on demand; nothing aggregated is stored.
"""

from datetime import datetime, date
from typing import List, Optional, Iterable

from .database import Storage
from .models import DoseEvent, DoseStatus
from .logger import get_logger


logger = get_logger(__name__)

COLLECTION = 'logs'


class AdherenceLedger:
    """Reads and appends dose events in the 'logs' collection."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def record(self, event: DoseEvent) -> DoseEvent:
        """
        Append a dose event.

        The write has completed when this returns.

        Raises:
            StorageError: if the database write fails (including an id clash)
        """
        self.storage.add(COLLECTION, event.to_record())
        logger.info("Recorded %s for medication %s (scheduled %s)",
                    event.status.value, event.medication_id,
                    event.scheduled_time.strftime('%Y-%m-%d %H:%M'))
        return event

    def get(self, event_id: str) -> Optional[DoseEvent]:
        """Get a single event by id."""
        record = self.storage.get(COLLECTION, event_id)
        return DoseEvent.from_record(record) if record else None

    def by_date(self, day: date) -> List[DoseEvent]:
        """
        Get the events whose scheduled time falls on a calendar day.

        Events come back in storage order; sort by scheduled_time if you
        need them chronologically.
        """
        records = self.storage.find_prefix(COLLECTION, 'scheduled_time', day.isoformat())
        return [DoseEvent.from_record(r) for r in records]

    def by_medication(self, medication_id: str) -> List[DoseEvent]:
        """Get every event of one medication, in storage order."""
        records = self.storage.find(COLLECTION, 'medication_id', medication_id)
        return [DoseEvent.from_record(r) for r in records]

    def update_status(self, event_id: str, status: DoseStatus,
                      taken_at: datetime = None) -> Optional[DoseEvent]:
        """
        Correct the status of an existing event.

        Marking an event "taken" without a time uses the current time;
        any other status clears taken_at.

        Returns:
            The updated event, or None if no event has that id
        """
        event = self.get(event_id)
        if event is None:
            return None

        status = DoseStatus(status)
        if status == DoseStatus.TAKEN:
            event.taken_at = taken_at or event.taken_at or datetime.now()
        else:
            event.taken_at = None
        event.status = status

        self.storage.put(COLLECTION, event.to_record())
        logger.info("Corrected event %s to %s", event_id, status.value)
        return event


# ============================================================
# DAILY FIGURES
# ============================================================

def count_by_status(events: Iterable[DoseEvent]) -> dict:
    """
    Count events per status.

    Returns:
        Dict with a count for every status (zero when absent)
    """
    counts = {status: 0 for status in DoseStatus}
    for event in events:
        counts[event.status] += 1
    return counts


def adherence_percentage(events: Iterable[DoseEvent], medication_id: str) -> int:
    """
    Percentage of a medication's events that are "taken", rounded.

    With no events for the medication the result is 0.
    """
    med_events = [e for e in events if e.medication_id == medication_id]
    total = len(med_events)
    if total == 0:
        return 0
    taken = sum(1 for e in med_events if e.status == DoseStatus.TAKEN)
    # Halves round up (1 of 8 -> 13%)
    return int(taken * 100 / total + 0.5)


def day_summary(ledger: AdherenceLedger, day: date, medications: Iterable) -> dict:
    """
    Build the history view of one day.

    Args:
        ledger: The adherence ledger
        day: The calendar day
        medications: Current medications (for names and per-medication figures)

    Returns:
        Dict with:
        - 'events': the day's events, oldest scheduled first
        - 'counts': events per status
        - 'medications': one entry per medication with taken/total/percentage
    """
    events = sorted(ledger.by_date(day), key=lambda e: e.scheduled_time)

    per_medication = []
    for medication in medications:
        med_events = [e for e in events if e.medication_id == medication.id]
        per_medication.append({
            'id': medication.id,
            'name': medication.name,
            'dosage': medication.dosage,
            'taken': sum(1 for e in med_events if e.status == DoseStatus.TAKEN),
            'total': len(med_events),
            'percentage': adherence_percentage(events, medication.id),
        })

    return {
        'date': day,
        'events': events,
        'counts': count_by_status(events),
        'medications': per_medication,
    }
