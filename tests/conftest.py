"""Shared fixtures: a throwaway database, fixed instants and fake channels."""

from datetime import datetime, date

import pytest

from medicfacil import config
from medicfacil.channels import Channel, CapabilitySet
from medicfacil.database import Storage
from medicfacil.ledger import AdherenceLedger
from medicfacil.models import add_medication


DAY = date(2026, 10, 19)


def at(hhmm: str, day: date = DAY) -> datetime:
    """datetime for "HH:MM" on the test day."""
    hours, minutes = map(int, hhmm.split(':'))
    return datetime(day.year, day.month, day.day, hours, minutes)


class RecordingChannel(Channel):
    """Remembers every occurrence it was asked to deliver."""

    def __init__(self, name='visual'):
        self.name = name
        self.delivered = []

    def deliver(self, occurrence):
        self.delivered.append(occurrence)


class BrokenChannel(Channel):
    """Always fails with the given exception."""

    def __init__(self, name, error):
        self.name = name
        self.error = error
        self.calls = 0

    def deliver(self, occurrence):
        self.calls += 1
        raise self.error


@pytest.fixture
def storage(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'DB_PATH', tmp_path / 'medicfacil.db')
    monkeypatch.setattr(config, 'LOGS_DIR', tmp_path / 'logs')
    store = Storage(tmp_path / 'medicfacil.db')
    store.init()
    return store


@pytest.fixture
def ledger(storage):
    return AdherenceLedger(storage)


@pytest.fixture
def visual():
    return RecordingChannel('visual')


@pytest.fixture
def capabilities(visual):
    return CapabilitySet([visual])


@pytest.fixture
def make_medication(storage):
    def _make(name, schedules, **kwargs):
        kwargs.setdefault('dosage', '1 comprimido')
        kwargs.setdefault('start_date', date(2026, 1, 1))
        return add_medication(storage, name=name, schedules=schedules, **kwargs)
    return _make
