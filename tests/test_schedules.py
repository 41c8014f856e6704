from datetime import date, datetime

import pytest

from medicfacil.models import Medication
from medicfacil.schedules import (
    parse_time_point,
    next_occurrence,
    is_due_now,
    due_time_points,
    due_occurrences,
    upcoming_medications,
    minutes_until,
    format_minutes_until,
)
from tests.conftest import at


def med(med_id, schedules, **kwargs):
    kwargs.setdefault('start_date', date(2026, 1, 1))
    return Medication(id=med_id, name=med_id.title(), dosage='', schedules=schedules, **kwargs)


# ============================================================
# PARSING
# ============================================================

def test_parse_time_point():
    assert parse_time_point("00:00") == 0
    assert parse_time_point("08:30") == 510
    assert parse_time_point("23:59") == 1439


@pytest.mark.parametrize("bad", ["24:00", "8h", "12:60", "", "ab:cd"])
def test_parse_time_point_rejects_garbage(bad):
    with pytest.raises(ValueError):
        parse_time_point(bad)


def test_minutes_until_ignores_seconds():
    reference = datetime(2026, 10, 19, 7, 45, 59)
    assert minutes_until("08:00", reference) == 15


# ============================================================
# NEXT OCCURRENCE
# ============================================================

def test_next_occurrence_picks_earliest_later_today():
    assert next_occurrence(["20:00", "08:00", "14:00"], at("09:00")) == "14:00"


def test_next_occurrence_today_case():
    assert next_occurrence(["08:00", "20:00"], at("06:00")) == "08:00"


def test_next_occurrence_wraps_to_tomorrow():
    assert next_occurrence(["08:00", "20:00"], at("21:00")) == "08:00"


def test_next_occurrence_same_minute_is_not_later():
    assert next_occurrence(["08:00", "20:00"], at("08:00")) == "20:00"


def test_next_occurrence_empty_set():
    assert next_occurrence([], at("08:00")) is None


def test_next_occurrence_with_duplicates():
    assert next_occurrence(["08:00", "08:00"], at("07:00")) == "08:00"


@pytest.mark.parametrize("reference", ["00:00", "07:59", "08:00", "12:00", "20:00", "23:59"])
def test_next_occurrence_is_a_member(reference):
    points = ["08:00", "12:30", "20:00"]
    assert next_occurrence(points, at(reference)) in points


# ============================================================
# DUE WINDOW
# ============================================================

def test_due_window_bounds_are_inclusive():
    assert is_due_now("08:00", at("07:30"))
    assert is_due_now("08:00", at("08:30"))


def test_due_window_one_minute_outside():
    assert not is_due_now("08:00", at("07:29"))
    assert not is_due_now("08:00", at("08:31"))


def test_due_window_custom_tolerance():
    assert is_due_now("08:00", at("08:10"), tolerance_minutes=10)
    assert not is_due_now("08:00", at("08:11"), tolerance_minutes=10)


def test_losartana_scenario():
    points = ["08:00", "20:00"]
    assert due_time_points(points, at("07:45")) == ["08:00"]
    assert due_time_points(points, at("08:31")) == []
    assert due_time_points(points, at("19:35")) == ["20:00"]


# ============================================================
# DUE OCCURRENCES
# ============================================================

def test_due_occurrences_soonest_first():
    late = med('late', ["07:40"])
    soon = med('soon', ["08:10"])
    now = med('now', ["08:00"])

    due = due_occurrences([soon, now, late], at("08:00"))

    assert [o.medication.id for o in due] == ['late', 'now', 'soon']
    assert [o.minutes_until for o in due] == [-20, 0, 10]


def test_due_occurrences_ties_keep_input_order():
    first = med('first', ["08:00"])
    second = med('second', ["08:00"])

    due = due_occurrences([first, second], at("07:50"))

    assert [o.medication.id for o in due] == ['first', 'second']


def test_due_occurrences_skip_medications_without_times():
    assert due_occurrences([med('empty', [])], at("08:00")) == []


def test_due_occurrences_respect_treatment_period():
    finished = med('finished', ["08:00"], end_date=date(2026, 10, 18))
    future = med('future', ["08:00"], start_date=date(2026, 10, 20))
    current = med('current', ["08:00"], end_date=date(2026, 10, 19))

    due = due_occurrences([finished, future, current], at("08:00"))

    assert [o.medication.id for o in due] == ['current']


def test_duplicate_time_points_give_one_occurrence():
    due = due_occurrences([med('dup', ["08:00", "08:00"])], at("08:00"))
    assert len(due) == 1
    assert due[0].scheduled_at == at("08:00")
    assert due[0].key == ('dup', '2026-10-19', '08:00')


# ============================================================
# UPCOMING
# ============================================================

def test_upcoming_medications_orders_by_wait():
    evening = med('evening', ["20:00"])
    morning = med('morning', ["08:00"])
    noon = med('noon', ["12:00"])

    upcoming = upcoming_medications([morning, evening, noon], at("10:00"))

    # 08:00 already passed, so it is tomorrow's dose and comes last
    assert [(m.id, t) for m, t in upcoming] == [
        ('noon', '12:00'), ('evening', '20:00'), ('morning', '08:00')]


def test_format_minutes_until():
    assert format_minutes_until(15) == "in 15 min"
    assert format_minutes_until(0) == "now"
    assert format_minutes_until(-5) == "5 min late"
