from datetime import date, timedelta

import pytest

from medicfacil.channels import CapabilitySet
from medicfacil.dispatcher import DispatcherState, ReminderDispatcher
from medicfacil.errors import ChannelUnavailable, NoActiveReminder, StorageError
from medicfacil.models import DoseStatus, get_all_medications
from medicfacil.timers import DelayedReminderScheduler
from tests.conftest import BrokenChannel, RecordingChannel, at


@pytest.fixture
def timers():
    return DelayedReminderScheduler()


@pytest.fixture
def dispatcher(ledger, capabilities, timers):
    return ReminderDispatcher(ledger, capabilities, timers,
                              reminder_interval=timedelta(minutes=5))


def test_idle_until_something_is_due(storage, dispatcher, visual, make_medication):
    make_medication('Losartana', ['08:00'])

    assert dispatcher.poll(get_all_medications(storage), at('07:00')) == []
    assert dispatcher.state == DispatcherState.IDLE
    assert visual.delivered == []


def test_take_records_one_event_and_announces_next(storage, dispatcher, ledger, visual,
                                                   make_medication):
    losartana = make_medication('Losartana', ['08:00'])
    vitamina = make_medication('Vitamina D', ['08:10'])

    dispatcher.poll(get_all_medications(storage), at('08:05'))

    assert dispatcher.state == DispatcherState.ANNOUNCING
    assert dispatcher.current.medication.id == losartana.id
    assert [o.medication.id for o in dispatcher.pending] == [vitamina.id]

    event = dispatcher.take(at('08:06'))

    assert event.status == DoseStatus.TAKEN
    assert event.scheduled_time == at('08:00')
    assert event.taken_at == at('08:06')
    assert ledger.by_medication(losartana.id) == [event]
    assert dispatcher.current.medication.id == vitamina.id
    assert [o.medication.id for o in visual.delivered] == [losartana.id, vitamina.id]


def test_each_occurrence_is_announced_once(storage, dispatcher, visual, make_medication):
    make_medication('Losartana', ['08:00'])
    medications = get_all_medications(storage)

    dispatcher.poll(medications, at('08:00'))
    dispatcher.take(at('08:01'))
    dispatcher.poll(medications, at('08:02'))
    dispatcher.poll(medications, at('08:20'))

    assert len(visual.delivered) == 1
    assert dispatcher.state == DispatcherState.IDLE


def test_simultaneous_doses_are_announced_one_by_one(storage, dispatcher, visual, make_medication):
    first = make_medication('Losartana', ['08:00'])
    second = make_medication('Omeprazol', ['08:00'])
    medications = get_all_medications(storage)

    dispatcher.poll(medications, at('08:00'))
    assert [o.medication.id for o in visual.delivered] == [first.id]

    dispatcher.skip(at('08:01'))
    assert [o.medication.id for o in visual.delivered] == [first.id, second.id]

    dispatcher.take(at('08:02'))
    assert dispatcher.state == DispatcherState.IDLE


def test_queue_stays_soonest_first_across_polls(storage, dispatcher, make_medication):
    make_medication('Losartana', ['08:00'])
    make_medication('Vitamina D', ['08:40'])
    make_medication('Omeprazol', ['08:20'])
    medications = get_all_medications(storage)

    dispatcher.poll(medications, at('08:00'))
    dispatcher.poll(medications, at('08:15'))

    assert [o.time_point for o in dispatcher.pending] == ['08:20', '08:40']


def test_snooze_brings_the_reminder_back_after_interval(storage, dispatcher, ledger, timers,
                                                        visual, make_medication):
    losartana = make_medication('Losartana', ['08:00'])
    medications = get_all_medications(storage)

    dispatcher.poll(medications, at('08:00'))
    event = dispatcher.snooze(at('08:01'))

    assert event.status == DoseStatus.DELAYED
    assert event.taken_at is None
    assert dispatcher.state == DispatcherState.IDLE
    assert timers.next_due() == at('08:06')

    timers.run_due(at('08:05'))
    dispatcher.poll(medications, at('08:05'))
    assert len(visual.delivered) == 1

    timers.run_due(at('08:06'))
    assert dispatcher.current.medication.id == losartana.id
    assert len(visual.delivered) == 2

    dispatcher.take(at('08:07'))
    statuses = [e.status for e in ledger.by_medication(losartana.id)]
    assert statuses == [DoseStatus.DELAYED, DoseStatus.TAKEN]


def test_snoozed_reminder_waits_behind_current_one(storage, dispatcher, timers, make_medication):
    losartana = make_medication('Losartana', ['08:00'])
    vitamina = make_medication('Vitamina D', ['08:05'])
    omeprazol = make_medication('Omeprazol', ['08:10'])
    medications = get_all_medications(storage)

    dispatcher.poll(medications, at('08:00'))
    dispatcher.snooze(at('08:00'))
    assert dispatcher.current.medication.id == vitamina.id

    timers.run_due(at('08:05'))

    assert dispatcher.current.medication.id == vitamina.id
    assert [o.medication.id for o in dispatcher.pending] == [losartana.id, omeprazol.id]


def test_failed_write_keeps_the_reminder(storage, dispatcher, ledger, monkeypatch, make_medication):
    losartana = make_medication('Losartana', ['08:00'])
    dispatcher.poll(get_all_medications(storage), at('08:00'))

    def broken_record(event):
        raise StorageError("disk full")

    monkeypatch.setattr(ledger, 'record', broken_record)

    with pytest.raises(StorageError):
        dispatcher.take(at('08:01'))

    assert dispatcher.current.medication.id == losartana.id
    monkeypatch.undo()
    assert ledger.by_medication(losartana.id) == []

    dispatcher.take(at('08:02'))
    assert len(ledger.by_medication(losartana.id)) == 1


def test_failed_snooze_write_schedules_nothing(storage, dispatcher, ledger, timers,
                                               monkeypatch, make_medication):
    make_medication('Losartana', ['08:00'])
    dispatcher.poll(get_all_medications(storage), at('08:00'))

    def broken_record(event):
        raise StorageError("disk full")

    monkeypatch.setattr(ledger, 'record', broken_record)

    with pytest.raises(StorageError):
        dispatcher.snooze(at('08:01'))

    assert timers.pending() == 0
    assert dispatcher.state == DispatcherState.ANNOUNCING


def test_answer_without_reminder(dispatcher):
    with pytest.raises(NoActiveReminder):
        dispatcher.take(at('08:00'))
    with pytest.raises(NoActiveReminder):
        dispatcher.repeat()


def test_broken_channel_does_not_stop_the_others(storage, ledger, timers, make_medication):
    broken = BrokenChannel('speech', ChannelUnavailable("no speaker"))
    visual = RecordingChannel('visual')
    dispatcher = ReminderDispatcher(ledger, CapabilitySet([broken, visual]), timers)
    make_medication('Losartana', ['08:00'])

    dispatcher.poll(get_all_medications(storage), at('08:00'))

    assert broken.calls == 1
    assert len(visual.delivered) == 1
    assert dispatcher.state == DispatcherState.ANNOUNCING


def test_repeat_only_speaks(storage, ledger, timers, make_medication):
    speech = RecordingChannel('speech')
    visual = RecordingChannel('visual')
    dispatcher = ReminderDispatcher(ledger, CapabilitySet([visual, speech]), timers)
    make_medication('Losartana', ['08:00'])
    dispatcher.poll(get_all_medications(storage), at('08:00'))

    assert dispatcher.repeat() == {'speech': True}
    assert len(speech.delivered) == 2
    assert len(visual.delivered) == 1


def test_next_day_is_announced_again(storage, dispatcher, visual, make_medication):
    make_medication('Losartana', ['08:00'])
    medications = get_all_medications(storage)

    dispatcher.poll(medications, at('08:00'))
    dispatcher.take(at('08:01'))
    dispatcher.poll(medications, at('08:00', date(2026, 10, 20)))

    assert len(visual.delivered) == 2
    assert dispatcher.current.scheduled_at == at('08:00', date(2026, 10, 20))


def test_answered_dose_is_not_asked_again_after_a_restart(storage, ledger, make_medication):
    losartana = make_medication('Losartana', ['08:00'])
    medications = get_all_medications(storage)

    first = ReminderDispatcher(ledger, CapabilitySet([RecordingChannel()]),
                               DelayedReminderScheduler())
    first.poll(medications, at('07:50'))
    first.take(at('07:55'))

    visual = RecordingChannel()
    second = ReminderDispatcher(ledger, CapabilitySet([visual]), DelayedReminderScheduler())
    second.poll(medications, at('08:05'))

    assert visual.delivered == []
    assert second.state == DispatcherState.IDLE
    assert [e.status for e in ledger.by_medication(losartana.id)] == [DoseStatus.TAKEN]


def test_skipped_dose_is_not_asked_again_after_a_restart(storage, ledger, make_medication):
    make_medication('Losartana', ['08:00'])
    medications = get_all_medications(storage)

    first = ReminderDispatcher(ledger, CapabilitySet([]), DelayedReminderScheduler())
    first.poll(medications, at('08:00'))
    first.skip(at('08:01'))

    second = ReminderDispatcher(ledger, CapabilitySet([]), DelayedReminderScheduler())
    assert second.poll(medications, at('08:10')) == []


def test_delayed_dose_is_asked_again_after_a_restart(storage, ledger, make_medication):
    losartana = make_medication('Losartana', ['08:00'])
    medications = get_all_medications(storage)

    first = ReminderDispatcher(ledger, CapabilitySet([]), DelayedReminderScheduler())
    first.poll(medications, at('08:00'))
    first.snooze(at('08:01'))

    second = ReminderDispatcher(ledger, CapabilitySet([]), DelayedReminderScheduler())
    second.poll(medications, at('08:05'))

    assert second.current.medication.id == losartana.id


def test_new_doses_do_not_reorder_the_queue(storage, dispatcher, timers, make_medication):
    make_medication('Losartana', ['08:10'])
    dispatcher.poll(get_all_medications(storage), at('08:00'))

    # Registered after the first poll, with earlier times
    make_medication('Omeprazol', ['07:45'])
    make_medication('Vitamina D', ['07:50'])
    dispatcher.poll(get_all_medications(storage), at('08:01'))
    assert [o.time_point for o in dispatcher.pending] == ['07:45', '07:50']

    dispatcher.snooze(at('08:02'))
    timers.run_due(at('08:07'))
    assert [o.time_point for o in dispatcher.pending] == ['08:10', '07:50']

    make_medication('Dipirona', ['08:38'])
    dispatcher.poll(get_all_medications(storage), at('08:08'))

    assert dispatcher.current.time_point == '07:45'
    assert [o.time_point for o in dispatcher.pending] == ['08:10', '07:50', '08:38']
