"""
Foreground reminder service for MedicFácil.

Usage:
    medic reminder start            # Ctrl+C to stop

The service:
1. Every minute, fires the delayed reminders that are due ("Lembrar Depois")
2. Asks the dispatcher to queue the medications that became due
3. Shows the announced medication and waits for the answer:
   [t] TOMEI, [l] Lembrar Depois, [p] Pular, [o] Ouvir Novamente

Everything runs on one thread. While waiting for an answer the loop wakes up
at least once per check interval, so new doses and delayed reminders are
never held back by an unanswered prompt.
"""

import select
import signal
import sys
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

import click

from . import config
from .channels import build_capabilities
from .database import Storage
from .dispatcher import ReminderDispatcher
from .errors import StorageError
from .ledger import AdherenceLedger
from .logger import get_logger
from .models import get_all_medications, get_settings
from .timers import DelayedReminderScheduler


logger = get_logger(__name__)

ANSWERS = {
    't': 'take',
    'l': 'snooze',
    'p': 'skip',
    'o': 'repeat',
}


class ReminderService:
    """Wires the timers and the dispatcher to the medications in storage."""

    def __init__(self, storage: Storage, dispatcher: ReminderDispatcher,
                 timers: DelayedReminderScheduler,
                 clock: Callable[[], datetime] = datetime.now):
        self.storage = storage
        self.dispatcher = dispatcher
        self.timers = timers
        self.clock = clock

    def tick(self, now: Optional[datetime] = None) -> list:
        """
        One pass of the service loop.

        Delayed reminders fire first, then due medications are polled.

        Returns:
            The occurrences newly queued by this pass
        """
        if now is None:
            now = self.clock()
        self.timers.run_due(now)
        medications = get_all_medications(self.storage)
        return self.dispatcher.poll(medications, now)

    def answer(self, choice: str, now: Optional[datetime] = None):
        """
        Apply an answer key ('t', 'l', 'p', 'o') to the current occurrence.

        Returns:
            The recorded DoseEvent, or the channel results for 'o'
        """
        action = ANSWERS.get(choice.strip().lower()[:1])
        if action is None:
            raise ValueError(f"Unknown answer: {choice}")
        if now is None:
            now = self.clock()
        if action == 'repeat':
            return self.dispatcher.repeat()
        return getattr(self.dispatcher, action)(now)


def build_service(storage: Storage, renderer: Optional[Callable] = None) -> ReminderService:
    """
    Build a service from the user's settings.

    The settings decide which channels are on and the snooze interval.
    """
    settings = get_settings(storage)
    timers = DelayedReminderScheduler()
    dispatcher = ReminderDispatcher(
        ledger=AdherenceLedger(storage),
        capabilities=build_capabilities(settings, renderer=renderer),
        timers=timers,
        reminder_interval=timedelta(minutes=settings.reminder_interval
                                    or config.DEFAULT_REMINDER_INTERVAL_MINUTES),
    )
    return ReminderService(storage, dispatcher, timers)


def render_card(occurrence):
    """Draw the announcement card in the terminal."""
    medication = occurrence.medication
    click.echo()
    click.echo(click.style("=" * 50, fg='yellow'))
    click.echo(click.style("  ⏰ HORA DO REMÉDIO!", fg='yellow', bold=True))
    click.echo(click.style("=" * 50, fg='yellow'))
    click.echo(click.style(f"\n  {medication.name}", bold=True))
    if medication.dosage:
        click.echo(f"  {medication.dosage}")
    click.echo(f"  {medication.type.label} - {occurrence.time_point}")
    if medication.frequency:
        click.echo(f"  {medication.frequency}")
    if medication.instructions:
        click.echo(f"\n  {medication.instructions}")
    click.echo()


def _prompt():
    click.echo("  [t] TOMEI   [l] Lembrar Depois   [p] Pular   [o] Ouvir Novamente")
    click.echo("  > ", nl=False)


def _wait_for_line(timeout: float) -> Optional[str]:
    """
    Read a line from stdin.

    Returns None if nothing arrives within `timeout` seconds, and '' once
    stdin is closed (end of file).
    """
    ready, _, _ = select.select([sys.stdin], [], [], timeout)
    if not ready:
        return None
    return sys.stdin.readline()


def run_service(service: ReminderService, check_interval: int = config.POLL_INTERVAL_SECONDS):
    """
    Run the reminder service until Ctrl+C.

    Args:
        service: Service from build_service()
        check_interval: How often to poll for due medications (in seconds)
    """
    click.echo("\n" + "=" * 50)
    click.echo("  MEDICFÁCIL REMINDER SERVICE")
    click.echo("=" * 50)
    click.echo(f"\n  Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    click.echo(f"  Check interval: {check_interval} seconds")
    click.echo(f"  Due window: ±{service.dispatcher.tolerance_minutes} minutes")
    click.echo(f"  Remind later: {int(service.dispatcher.reminder_interval.total_seconds() // 60)} minutes")

    permissions = service.dispatcher.start()
    click.echo(f"  Channels: {', '.join(service.dispatcher.capabilities.names())}")
    if permissions and not all(permissions.values()):
        refused = [name for name, ok in permissions.items() if not ok]
        click.echo(f"  Not permitted: {', '.join(refused)}")
    click.echo("\n  Press Ctrl+C to stop\n")
    click.echo("-" * 50)

    def signal_handler(sig, frame):
        click.echo(f"\n\n[{datetime.now().strftime('%H:%M')}] Shutting down reminder service...")
        if service.timers.pending():
            click.echo(f"  {service.timers.pending()} delayed reminder(s) will not be shown.")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    prompted = None
    reading = True
    while True:
        try:
            service.tick()
        except StorageError as e:
            click.echo(f"[{datetime.now().strftime('%H:%M')}] Database error: {e}")

        # No keyboard (nohup, systemd, cron): announce only, at the check interval
        if not reading:
            time.sleep(check_interval)
            continue

        current = service.dispatcher.current
        if current is None:
            prompted = None
        elif prompted is not current:
            _prompt()
            prompted = current

        line = _wait_for_line(check_interval)
        if line == '':
            reading = False
            logger.warning("Standard input closed; reminders will be shown but not answered")
            click.echo("\n  No keyboard input: reminders are shown, answers cannot be read.")
            continue
        if line is None or not line.strip() or current is None:
            continue

        try:
            service.answer(line)
        except ValueError:
            click.echo("  Please answer t, l, p or o.")
        except StorageError as e:
            logger.error("Could not record answer: %s", e)
            click.echo(click.style("  Erro ao registrar. Tente novamente.", fg='red', bold=True))
        else:
            prompted = None
