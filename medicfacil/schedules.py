"""
Schedule resolver for MedicFácil.

Every medication has a set of daily time points ("HH:MM", 24h). This module
answers two questions about them, always relative to a reference instant
that the caller passes in (nothing here reads the clock):

- next_occurrence(): which time point comes next? The earliest one later
  today, or tomorrow's earliest when all of today's have passed.
- is_due_now(): is a time point inside the due window? The window is
  symmetric: a dose is due from 30 minutes before its time until 30 minutes
  after. Past the late bound it simply drops out (no escalation).

Only hours and minutes are compared; seconds of the reference are ignored.
"""

from dataclasses import dataclass
from datetime import datetime, date, time
from typing import Optional, Iterable, List, Any

from . import config


@dataclass(frozen=True)
class Occurrence:
    """One dose of one medication at one time point on one day."""
    medication: Any
    time_point: str
    scheduled_at: datetime
    minutes_until: int

    @property
    def key(self) -> tuple:
        """Identifies the occurrence: (medication id, day, "HH:MM")."""
        return (self.medication.id, self.scheduled_at.date().isoformat(), self.time_point)


# ============================================================
# TIME POINT PARSING
# ============================================================

def parse_time_point(time_point: str) -> int:
    """
    Convert "HH:MM" into minutes since midnight.

    Raises:
        ValueError: if the text is not a valid 24h time
    """
    try:
        hours_str, minutes_str = time_point.strip().split(':')
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time '{time_point}', expected HH:MM") from None

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid time '{time_point}', expected HH:MM")
    return hours * 60 + minutes


def minutes_of_day(reference: datetime) -> int:
    """Minutes since midnight of the reference instant (seconds dropped)."""
    return reference.hour * 60 + reference.minute


def minutes_until(time_point: str, reference: datetime) -> int:
    """
    Signed minutes from the reference to the time point on the same day.

    Positive when the time point is still ahead, negative when it passed.
    """
    return parse_time_point(time_point) - minutes_of_day(reference)


def scheduled_datetime(time_point: str, day: date) -> datetime:
    """The instant of a time point on a given day."""
    total = parse_time_point(time_point)
    return datetime.combine(day, time(total // 60, total % 60))


# ============================================================
# RESOLVER
# ============================================================

def next_occurrence(time_points: Iterable[str], reference: datetime) -> Optional[str]:
    """
    Get the next time point after the reference.

    Among the time points strictly later than the reference's time of day,
    returns the earliest. If all of them have passed, returns the earliest of
    the whole set (tomorrow's first dose). Returns None for an empty set.

    Example:
        next_occurrence(["08:00", "20:00"], datetime(2025, 1, 1, 9, 0))  -> "20:00"
        next_occurrence(["08:00", "20:00"], datetime(2025, 1, 1, 21, 0)) -> "08:00"
    """
    points = list(time_points)
    if not points:
        return None

    now_minutes = minutes_of_day(reference)
    upcoming = [p for p in points if parse_time_point(p) > now_minutes]
    if upcoming:
        return min(upcoming, key=parse_time_point)
    return min(points, key=parse_time_point)


def is_due_now(time_point: str, reference: datetime,
               tolerance_minutes: int = config.DUE_TOLERANCE_MINUTES) -> bool:
    """
    Check whether a time point is inside the due window.

    True when the signed difference between the time point (today) and the
    reference lies within [-tolerance, +tolerance], bounds included.
    """
    return abs(minutes_until(time_point, reference)) <= tolerance_minutes


def due_time_points(time_points: Iterable[str], reference: datetime,
                    tolerance_minutes: int = config.DUE_TOLERANCE_MINUTES) -> List[str]:
    """The time points of a set that are due at the reference, in input order."""
    return [p for p in time_points if is_due_now(p, reference, tolerance_minutes)]


def due_occurrences(medications: Iterable, reference: datetime,
                    tolerance_minutes: int = config.DUE_TOLERANCE_MINUTES) -> List[Occurrence]:
    """
    Get every occurrence that is due at the reference, soonest first.

    Medications without time points, or outside their start/end period, are
    left out. Occurrences are sorted by minutes until the scheduled time;
    ties keep the input order (medication order, then time point order).
    Duplicate time points of a medication count once.
    """
    today = reference.date()
    found = []

    for medication in medications:
        if not medication.schedules:
            continue
        if not medication.is_active_on(today):
            continue

        seen = set()
        for point in due_time_points(medication.schedules, reference, tolerance_minutes):
            if point in seen:
                continue
            seen.add(point)
            found.append(Occurrence(
                medication=medication,
                time_point=point,
                scheduled_at=scheduled_datetime(point, today),
                minutes_until=minutes_until(point, reference),
            ))

    # sorted() is stable, so equal distances keep their input order
    return sorted(found, key=lambda occ: occ.minutes_until)


def upcoming_medications(medications: Iterable, reference: datetime) -> list:
    """
    Pair each schedulable medication with its next time point.

    Returns:
        List of (medication, "HH:MM") ordered by how soon that time comes,
        counting a time point that already passed today as tomorrow's
    """
    today = reference.date()
    now_minutes = minutes_of_day(reference)
    pairs = []

    for medication in medications:
        if not medication.schedules or not medication.is_active_on(today):
            continue
        upcoming = next_occurrence(medication.schedules, reference)
        pairs.append((medication, upcoming))

    def wait(pair):
        point_minutes = parse_time_point(pair[1])
        if point_minutes > now_minutes:
            return point_minutes - now_minutes
        return point_minutes + 24 * 60 - now_minutes

    return sorted(pairs, key=wait)


# ============================================================
# SCHEDULE FORMATTING
# ============================================================

def format_time_points(time_points: Iterable[str]) -> str:
    """Format time points for display, e.g. "08:00, 20:00"."""
    points = sorted(set(time_points), key=parse_time_point)
    if not points:
        return "No times set"
    return ', '.join(points)


def format_minutes_until(minutes: int) -> str:
    """
    Describe a signed distance to a dose.

    Returns:
        String like "in 15 min", "now" or "10 min late"
    """
    if minutes > 0:
        return f"in {minutes} min"
    if minutes < 0:
        return f"{-minutes} min late"
    return "now"
