from datetime import timedelta

from medicfacil.timers import DelayedReminderScheduler
from tests.conftest import at


def test_action_fires_once_after_interval():
    timers = DelayedReminderScheduler()
    fired = []

    due_at = timers.after(timedelta(minutes=5), lambda: fired.append('x'), now=at('08:00'))

    assert due_at == at('08:05')
    assert timers.run_due(at('08:04')) == 0
    assert fired == []
    assert timers.run_due(at('08:05')) == 1
    assert fired == ['x']
    assert timers.run_due(at('09:00')) == 0
    assert fired == ['x']
    assert timers.pending() == 0


def test_timers_fire_in_due_order():
    timers = DelayedReminderScheduler()
    fired = []

    timers.after(timedelta(minutes=10), lambda: fired.append('late'), now=at('08:00'))
    timers.after(timedelta(minutes=5), lambda: fired.append('early'), now=at('08:00'))
    timers.after(timedelta(minutes=5), lambda: fired.append('early-2'), now=at('08:00'))

    assert timers.next_due() == at('08:05')
    timers.run_due(at('08:30'))

    assert fired == ['early', 'early-2', 'late']


def test_scheduling_twice_makes_two_timers():
    timers = DelayedReminderScheduler()
    fired = []
    action = lambda: fired.append(1)  # noqa: E731

    timers.after(timedelta(minutes=5), action, now=at('08:00'))
    timers.after(timedelta(minutes=5), action, now=at('08:01'))

    assert timers.pending() == 2
    timers.run_due(at('08:10'))
    assert fired == [1, 1]


def test_clock_is_used_when_no_instant_given():
    timers = DelayedReminderScheduler(clock=lambda: at('10:00'))
    assert timers.after(timedelta(minutes=1), lambda: None) == at('10:01')
    assert timers.next_due() == at('10:01')


def test_nothing_pending():
    timers = DelayedReminderScheduler()
    assert timers.next_due() is None
    assert timers.run_due(at('08:00')) == 0
