from datetime import datetime

import pytest
from click.testing import CliRunner

from medicfacil import channels, config, export
from medicfacil.cli import cli
from medicfacil.database import Storage
from medicfacil.errors import StorageError
from medicfacil.ledger import AdherenceLedger
from medicfacil.models import DoseStatus, get_all_family_members, get_all_medications, get_settings


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'DB_PATH', tmp_path / 'medicfacil.db')
    monkeypatch.setattr(config, 'LOGS_DIR', tmp_path / 'logs')
    monkeypatch.setattr(export, 'EXPORT_DIR', tmp_path / 'exports')
    return CliRunner()


@pytest.fixture
def db(tmp_path):
    return Storage(tmp_path / 'medicfacil.db')


def add_losartana(runner):
    return runner.invoke(cli, ['med', 'add', '--name', 'Losartana', '--dosage', '50mg',
                               '--times', '08:00, 20:00', '--color', 'azul',
                               '--start', '2026-01-01'])


def test_med_add_and_list(runner, db):
    result = add_losartana(runner)
    assert result.exit_code == 0, result.output
    assert 'Added medication: Losartana' in result.output

    medications = get_all_medications(db)
    assert [m.schedules for m in medications] == [['08:00', '20:00']]
    assert medications[0].color == '#BFDBFE'

    result = runner.invoke(cli, ['med', 'list'])
    assert result.exit_code == 0
    assert 'Losartana' in result.output
    assert '08:00, 20:00' in result.output


def test_med_add_rejects_bad_time(runner, db):
    result = runner.invoke(cli, ['med', 'add', '--name', 'X', '--dosage', '',
                                 '--times', '25:00'])
    assert result.exit_code != 0
    assert get_all_medications(db) == []


def test_med_remove_by_partial_name(runner, db):
    add_losartana(runner)

    result = runner.invoke(cli, ['med', 'remove', 'losar', '--yes'])

    assert result.exit_code == 0
    assert 'Deleted: Losartana' in result.output
    assert get_all_medications(db) == []


def test_history_show_empty_day(runner):
    result = runner.invoke(cli, ['history', 'show', '--date', '2026-10-19'])

    assert result.exit_code == 0
    assert 'HISTÓRICO - 19/10/2026' in result.output
    assert 'No doses recorded on this day.' in result.output


def test_history_export_csv(runner, tmp_path):
    result = runner.invoke(cli, ['history', 'export', '--date', '2026-10-19', '--format', 'csv'])

    assert result.exit_code == 0
    assert (tmp_path / 'exports' / 'historico-2026-10-19.csv').exists()


def test_settings_set(runner, db):
    result = runner.invoke(cli, ['settings', 'set', 'reminder_interval', '10'])
    assert result.exit_code == 0
    result = runner.invoke(cli, ['settings', 'set', 'voice_enabled', 'off'])
    assert result.exit_code == 0

    settings = get_settings(db)
    assert settings.reminder_interval == 10
    assert settings.voice_enabled is False


@pytest.mark.parametrize('key,value', [
    ('reminder_interval', '0'),
    ('font_size', 'huge'),
    ('pin', '12'),
    ('sound_enabled', 'maybe'),
])
def test_settings_set_rejects_bad_values(runner, key, value):
    result = runner.invoke(cli, ['settings', 'set', key, value])
    assert result.exit_code != 0


def test_family_add_and_list(runner, db):
    result = runner.invoke(cli, ['family', 'add', '--name', 'Maria', '--email', 'maria@example.com',
                                 '--phone', ''])
    assert result.exit_code == 0, result.output

    members = get_all_family_members(db)
    assert len(members) == 1
    assert f'Access code: {members[0].access_code}' in result.output

    result = runner.invoke(cli, ['family', 'list'])
    assert 'Maria' in result.output
    assert members[0].access_code in result.output


def test_take_with_nothing_due(runner):
    result = runner.invoke(cli, ['take'])

    assert result.exit_code == 0
    assert 'Nenhum medicamento agendado agora' in result.output


def test_reminder_log_shows_activity(runner):
    add_losartana(runner)

    result = runner.invoke(cli, ['reminder', 'log'])

    assert result.exit_code == 0
    assert 'Added medication Losartana' in result.output


# ============================================================
# TAKE NOW
# ============================================================

@pytest.fixture
def quiet_channels(monkeypatch):
    monkeypatch.setattr(channels.shutil, 'which', lambda command: None)


def add_due_now(runner):
    result = runner.invoke(cli, ['med', 'add', '--name', 'Losartana', '--dosage', '50mg',
                                 '--times', datetime.now().strftime('%H:%M')])
    assert result.exit_code == 0, result.output


def statuses(db):
    medication = get_all_medications(db)[0]
    return [e.status for e in AdherenceLedger(db).by_medication(medication.id)]


def test_take_records_the_answer_once(runner, db, quiet_channels):
    add_due_now(runner)

    result = runner.invoke(cli, ['take'], input='t\n')

    assert result.exit_code == 0, result.output
    assert 'HORA DO REMÉDIO' in result.output
    assert '✓ Tomado' in result.output
    assert statuses(db) == [DoseStatus.TAKEN]

    again = runner.invoke(cli, ['take'])
    assert 'Nenhum medicamento agendado agora' in again.output
    assert statuses(db) == [DoseStatus.TAKEN]


def test_take_remind_later_only_records_delayed(runner, db, quiet_channels):
    add_due_now(runner)

    result = runner.invoke(cli, ['take'], input='l\n')

    assert result.exit_code == 0, result.output
    assert 'Adiado (recorded only)' in result.output
    assert "only brings a dose back inside 'medic reminder start'" in result.output
    assert statuses(db) == [DoseStatus.DELAYED]

    later = runner.invoke(cli, ['take'], input='t\n')
    assert '✓ Tomado' in later.output
    assert statuses(db) == [DoseStatus.DELAYED, DoseStatus.TAKEN]


def test_take_asks_again_when_the_write_fails(runner, db, quiet_channels, monkeypatch):
    add_due_now(runner)
    record = AdherenceLedger.record
    attempts = []

    def flaky_record(self, event):
        attempts.append(event)
        if len(attempts) == 1:
            raise StorageError("database is locked")
        return record(self, event)

    monkeypatch.setattr(AdherenceLedger, 'record', flaky_record)

    result = runner.invoke(cli, ['take'], input='t\nt\n')

    assert result.exit_code == 0, result.output
    assert 'Erro ao registrar. Tente novamente.' in result.output
    assert '✓ Tomado' in result.output
    assert len(attempts) == 2
    assert statuses(db) == [DoseStatus.TAKEN]
