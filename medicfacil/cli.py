"""
Command-line interface for MedicFácil.

Usage:
    medic med add               - Register a medication with its daily times
    medic med list              - List medications and their next dose
    medic med remove <name>     - Delete a medication (its history is kept)
    medic med next              - What is coming up next

    medic take                  - Announce what is due now and record the answer

    medic history show          - Today's doses and adherence
    medic history export        - Save the history as PDF, Excel, CSV or text

    medic family add            - Add a family member (generates an access code)
    medic family list           - List family members
    medic family invite <name>  - Text the access code to a family member
    medic family email          - Email today's history to the family

    medic settings show         - Show preferences
    medic settings set KEY VAL  - Change a preference

    medic reminder start        - Run the reminder service (Ctrl+C to stop)
    medic reminder status       - Show channels and what is due
    medic reminder log          - Show the end of the log file
"""

import click
from datetime import datetime, date
from tabulate import tabulate

from . import __version__, config
from .database import Storage
from .errors import StorageError
from .ledger import AdherenceLedger, day_summary
from .logger import setup_logger, get_logger, get_log_tail
from .models import (
    MedicationType,
    DoseStatus,
    MEDICATION_COLORS,
    FREQUENCY_OPTIONS,
    FONT_SIZES,
    add_medication,
    get_all_medications,
    get_medication_by_name,
    delete_medication,
    get_settings,
    save_settings,
    add_family_member,
    get_all_family_members,
    get_family_member_by_name,
    delete_family_member,
)
from .schedules import (
    due_occurrences,
    upcoming_medications,
    format_time_points,
    format_minutes_until,
)
from .reminders import format_upcoming_doses, send_family_invite
from .scheduler import build_service, render_card, run_service
from . import export as history_export
from .email_sender import send_history_to_family


logger = get_logger(__name__)


# ============================================================
# MAIN CLI GROUP
# ============================================================

@click.group()
@click.version_option(version=__version__, prog_name="MedicFácil")
@click.pass_context
def cli(ctx):
    """
    MedicFácil - lembretes de medicamentos

    Register medications, get reminded when a dose is due, and keep
    a history of what was taken.
    """
    setup_logger()
    storage = Storage()
    try:
        storage.init()
    except StorageError as e:
        raise click.ClickException(str(e))
    ctx.obj = storage


def _find_medication(storage, name):
    medication = get_medication_by_name(storage, name)
    if not medication:
        click.echo(f"Medication '{name}' not found.")
        click.echo("Use 'medic med list' to see all medications.")
    return medication


def _parse_times(value: str) -> list:
    return [t.strip() for t in value.split(',') if t.strip()]


# ============================================================
# MEDICATION COMMANDS
# ============================================================

@cli.group()
def med():
    """Manage medications."""
    pass


@med.command("add")
@click.option("--name", "-n", prompt="Medication name", help="Name of the medication")
@click.option("--dosage", "-d", prompt="Dosage (e.g., 50mg - 1 comprimido)", default="",
              help="Dosage text")
@click.option("--times", "-t", prompt="Times, comma separated (e.g., 08:00,20:00)",
              help="Daily times as HH:MM")
@click.option("--type", "med_type", type=click.Choice([t.value for t in MedicationType]),
              default=MedicationType.TABLET.value, show_default=True, help="Kind of medication")
@click.option("--color", "-c", type=click.Choice([name for name, _ in MEDICATION_COLORS],
                                                 case_sensitive=False),
              default="Branco", show_default=True, help="Pill color")
@click.option("--frequency", "-f", default=FREQUENCY_OPTIONS[0], show_default=True,
              help="Frequency label")
@click.option("--instructions", "-i", default="", help="Special instructions")
@click.option("--start", "start_date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="First day (YYYY-MM-DD, default today)")
@click.option("--end", "end_date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Last day (YYYY-MM-DD)")
@click.option("--photo", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Picture of the medication")
@click.pass_obj
def med_add(storage, name, dosage, times, med_type, color, frequency, instructions,
            start_date, end_date, photo):
    """Register a new medication."""
    schedules = _parse_times(times)
    if not schedules:
        raise click.BadParameter("at least one time is needed", param_hint="--times")

    color_value = dict((n.lower(), v) for n, v in MEDICATION_COLORS)[color.lower()]

    try:
        medication = add_medication(
            storage,
            name=name,
            dosage=dosage,
            schedules=schedules,
            color=color_value,
            med_type=MedicationType(med_type),
            frequency=frequency,
            start_date=start_date.date() if start_date else None,
            end_date=end_date.date() if end_date else None,
            instructions=instructions or None,
            photo=photo,
        )
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--times")

    click.echo(f"\nAdded medication: {medication.name}")
    if medication.dosage:
        click.echo(f"  Dosage: {medication.dosage}")
    click.echo(f"  Times: {format_time_points(medication.schedules)}")
    click.echo(f"  ID: {medication.id}")
    click.echo("\nUse 'medic reminder start' to be reminded when it is due.")


@med.command("list")
@click.pass_obj
def med_list(storage):
    """List all medications."""
    medications = get_all_medications(storage)

    if not medications:
        click.echo("No medications found. Use 'medic med add' to add one.")
        return

    now = datetime.now()
    next_by_id = {m.id: t for m, t in upcoming_medications(medications, now)}

    table_data = []
    for medication in medications:
        table_data.append([
            medication.name,
            medication.dosage or "-",
            medication.type.label,
            format_time_points(medication.schedules),
            next_by_id.get(medication.id, "-"),
            medication.instructions or "-",
        ])

    headers = ["Name", "Dosage", "Type", "Times", "Next", "Instructions"]
    click.echo("\nMedications:")
    click.echo(tabulate(table_data, headers=headers, tablefmt="simple"))
    click.echo()


@med.command("remove")
@click.argument("medication")
@click.confirmation_option(prompt="Delete this medication? Its history is kept.")
@click.pass_obj
def med_remove(storage, medication):
    """Delete a medication. Its dose history is kept."""
    med_record = _find_medication(storage, medication)
    if not med_record:
        return

    delete_medication(storage, med_record.id)
    click.echo(f"\nDeleted: {med_record.name}\n")


@med.command("next")
@click.pass_obj
def med_next(storage):
    """Show the next dose of each medication, soonest first."""
    upcoming = upcoming_medications(get_all_medications(storage), datetime.now())
    click.echo("\nNext doses:")
    click.echo(format_upcoming_doses(upcoming))
    click.echo()


# ============================================================
# TAKE NOW
# ============================================================

@cli.command("take")
@click.pass_obj
def take_now(storage):
    """
    Announce the medications due now and record each answer.

    Medications are shown one at a time, soonest first. "Lembrar Depois"
    only records the dose as Adiado here; bringing it back later needs
    'medic reminder start'.
    """
    service = build_service(storage, renderer=render_card)
    service.tick()

    if service.dispatcher.current is None:
        click.echo("\n✅ Nenhum medicamento agendado agora.")
        click.echo("Você está em dia com seus medicamentos!\n")
        return

    while service.dispatcher.current is not None:
        choice = click.prompt(
            "  [t] TOMEI   [l] Lembrar Depois   [p] Pular   [o] Ouvir Novamente",
            type=click.Choice(['t', 'l', 'p', 'o'], case_sensitive=False),
            show_choices=False,
        )
        try:
            result = service.answer(choice)
        except StorageError as e:
            logger.error("Could not record answer: %s", e)
            click.echo(click.style("  Erro ao registrar. Tente novamente.", fg='red', bold=True))
            continue

        if choice.lower() == 'l':
            click.echo("  ✓ Adiado (recorded only). 'medic take' will not remind you again;")
            click.echo("    \"Lembrar Depois\" only brings a dose back inside 'medic reminder start'.")
            click.echo("    Run 'medic take' again later to answer this dose.")
        elif choice.lower() != 'o':
            click.echo(f"  ✓ {result.status.label}")

    click.echo()


# ============================================================
# HISTORY COMMANDS
# ============================================================

@cli.group()
def history():
    """Dose history and adherence."""
    pass


@history.command("show")
@click.option("--date", "-d", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Day to show (YYYY-MM-DD, default today)")
@click.pass_obj
def history_show(storage, day):
    """Show the doses and adherence of a day."""
    day = day.date() if day else date.today()
    medications = get_all_medications(storage)
    names = {m.id: m.name for m in medications}
    summary = day_summary(AdherenceLedger(storage), day, medications)

    click.echo("\n" + "=" * 50)
    click.echo(f"  HISTÓRICO - {day.strftime('%d/%m/%Y')}")
    click.echo("=" * 50 + "\n")

    counts = summary['counts']
    click.echo(f"  Tomados: {counts[DoseStatus.TAKEN]}   "
               f"Adiados: {counts[DoseStatus.DELAYED]}   "
               f"Pulados: {counts[DoseStatus.SKIPPED]}\n")

    if summary['events']:
        table_data = []
        for event in summary['events']:
            table_data.append([
                event.scheduled_time.strftime("%H:%M"),
                names.get(event.medication_id, "(removido)"),
                event.status.label,
                event.taken_at.strftime("%H:%M") if event.taken_at else "-",
            ])
        click.echo(tabulate(table_data, headers=["Time", "Medication", "Status", "Taken at"],
                            tablefmt="simple"))
    else:
        click.echo("  No doses recorded on this day.")

    if summary['medications']:
        click.echo("\nAdherence:")
        for entry in summary['medications']:
            click.echo(f"  {entry['name']}: {entry['percentage']}% "
                       f"({entry['taken']} of {entry['total']} doses taken)")
    click.echo()


@history.command("export")
@click.option("--date", "-d", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Day to export (YYYY-MM-DD, default today)")
@click.option("--format", "-f", "fmt", type=click.Choice(['pdf', 'excel', 'csv', 'text']),
              default='pdf', show_default=True)
@click.pass_obj
def history_export_cmd(storage, day, fmt):
    """Export a day of history to a file."""
    day = day.date() if day else date.today()
    path = _export(storage, day, fmt)
    click.echo(f"\n✓ Exported to {path}\n")


def _export(storage, day, fmt):
    if fmt == 'excel':
        return history_export.export_excel(storage, day)
    if fmt == 'csv':
        return history_export.export_csv(storage, day)
    if fmt == 'text':
        return history_export.export_text(storage, day)
    return history_export.export_pdf(storage, day)


# ============================================================
# FAMILY COMMANDS
# ============================================================

@cli.group()
def family():
    """Family members who follow your medications."""
    pass


@family.command("add")
@click.option("--name", "-n", prompt="Name", help="Family member's name")
@click.option("--email", "-e", prompt="Email", help="Contact email")
@click.option("--phone", "-p", prompt="Phone (optional)", default="", help="Phone with country code")
@click.option("--can-edit", is_flag=True, help="Allow this member to edit medications")
@click.pass_obj
def family_add(storage, name, email, phone, can_edit):
    """Add a family member and generate their access code."""
    member = add_family_member(storage, name, email, phone or None, can_edit)
    click.echo(f"\nAdded: {member.name}")
    click.echo(f"  Access code: {member.access_code}")
    if member.phone:
        click.echo(f"\nSend it with: medic family invite \"{member.name}\"")
    click.echo()


@family.command("list")
@click.pass_obj
def family_list(storage):
    """List family members and their access codes."""
    members = get_all_family_members(storage)
    if not members:
        click.echo("No family members. Use 'medic family add' to add one.")
        return

    table_data = [[m.name, m.email, m.phone or "-", m.access_code, "yes" if m.can_edit else "no"]
                  for m in members]
    click.echo()
    click.echo(tabulate(table_data, headers=["Name", "Email", "Phone", "Code", "Can edit"],
                        tablefmt="simple"))
    click.echo()


@family.command("remove")
@click.argument("name")
@click.pass_obj
def family_remove(storage, name):
    """Remove a family member."""
    member = get_family_member_by_name(storage, name)
    if not member:
        click.echo(f"Family member '{name}' not found.")
        return
    delete_family_member(storage, member.id)
    click.echo(f"\nRemoved: {member.name}\n")


@family.command("invite")
@click.argument("name")
@click.pass_obj
def family_invite(storage, name):
    """Text the access code to a family member (needs Twilio)."""
    member = get_family_member_by_name(storage, name)
    if not member:
        click.echo(f"Family member '{name}' not found.")
        return

    if not config.is_twilio_configured():
        click.echo("\nTwilio is not configured.")
        click.echo(f"  Missing: {', '.join(config.get_missing_twilio_config())}")
        click.echo("Run 'medic family sms-setup' for instructions.\n")
        return

    result = send_family_invite(member)
    if result['success']:
        click.echo(f"\n✓ Access code sent to {member.name}\n")
    else:
        click.echo(f"\n✗ Failed to send: {result['error']}\n")


@family.command("sms-setup")
def family_sms_setup():
    """Show instructions for setting up Twilio SMS."""
    config.print_twilio_setup_instructions()


@family.command("email")
@click.option("--date", "-d", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Day to send (YYYY-MM-DD, default today)")
@click.option("--format", "-f", "fmt", type=click.Choice(['pdf', 'excel', 'csv', 'text']),
              default='pdf', show_default=True)
@click.pass_obj
def family_email(storage, day, fmt):
    """Email a day of history to every family member."""
    day = day.date() if day else date.today()
    members = get_all_family_members(storage)
    if not members:
        click.echo("No family members. Use 'medic family add' to add one.")
        return

    path = _export(storage, day, fmt)
    result = send_history_to_family(path, members, day)
    if result['success']:
        click.echo(f"\n✓ {result['message']}\n")
    else:
        click.echo(f"\n✗ {result['error']}\n")


# ============================================================
# SETTINGS COMMANDS
# ============================================================

BOOLEAN_SETTINGS = ['high_contrast', 'sound_enabled', 'voice_enabled', 'vibration_enabled',
                    'backup_enabled']


@cli.group()
def settings():
    """View and change preferences."""
    pass


@settings.command("show")
@click.pass_obj
def settings_show(storage):
    """Show the current preferences."""
    current = get_settings(storage)
    rows = [
        ["font_size", current.font_size],
        ["high_contrast", "on" if current.high_contrast else "off"],
        ["sound_enabled", "on" if current.sound_enabled else "off"],
        ["voice_enabled", "on" if current.voice_enabled else "off"],
        ["vibration_enabled", "on" if current.vibration_enabled else "off"],
        ["reminder_interval", f"{current.reminder_interval} min"],
        ["pin", "set" if current.pin else "not set"],
        ["backup_enabled", "on" if current.backup_enabled else "off"],
    ]
    click.echo()
    click.echo(tabulate(rows, headers=["Setting", "Value"], tablefmt="simple"))
    click.echo()


@settings.command("set")
@click.argument("key", type=click.Choice(['font_size', 'reminder_interval', 'pin'] + BOOLEAN_SETTINGS))
@click.argument("value")
@click.pass_obj
def settings_set(storage, key, value):
    """
    Change a preference.

    Examples:
        medic settings set reminder_interval 10
        medic settings set voice_enabled off
        medic settings set font_size large
    """
    current = get_settings(storage)

    if key in BOOLEAN_SETTINGS:
        lowered = value.lower()
        if lowered not in ('on', 'off', 'true', 'false', 'yes', 'no', '1', '0'):
            raise click.BadParameter("use on or off", param_hint="VALUE")
        setattr(current, key, lowered in ('on', 'true', 'yes', '1'))
    elif key == 'reminder_interval':
        try:
            minutes = int(value)
        except ValueError:
            raise click.BadParameter("must be a number of minutes", param_hint="VALUE")
        if minutes < 1:
            raise click.BadParameter("must be at least 1 minute", param_hint="VALUE")
        current.reminder_interval = minutes
    elif key == 'font_size':
        if value not in FONT_SIZES:
            raise click.BadParameter(f"choose one of {', '.join(FONT_SIZES)}", param_hint="VALUE")
        current.font_size = value
    elif key == 'pin':
        if not (value.isdigit() and 4 <= len(value) <= 6):
            raise click.BadParameter("the PIN must have 4 to 6 digits", param_hint="VALUE")
        current.pin = value

    save_settings(storage, current)
    click.echo(f"\n✓ {key} updated\n")


# ============================================================
# REMINDER COMMANDS
# ============================================================

@cli.group()
def reminder():
    """Run and inspect the reminder service."""
    pass


@reminder.command("start")
@click.option("--interval", "-i", default=config.POLL_INTERVAL_SECONDS,
              help="Check interval in seconds (default: 60)")
@click.pass_obj
def reminder_start(storage, interval):
    """
    Start the reminder service.

    Checks for due medications every minute, alerts with a notification,
    sound, vibration and voice, and records your answer. Press Ctrl+C to stop.

    Reminders postponed with "Lembrar Depois" only come back while the
    service is running.
    """
    service = build_service(storage, renderer=render_card)
    run_service(service, check_interval=interval)


@reminder.command("status")
@click.pass_obj
def reminder_status(storage):
    """Show which channels are on and what is due now."""
    current = get_settings(storage)
    click.echo("\n" + "=" * 50)
    click.echo("  REMINDER STATUS")
    click.echo("=" * 50)

    click.echo(f"\n  Sound: {'on' if current.sound_enabled else 'off'}")
    click.echo(f"  Voice: {'on' if current.voice_enabled else 'off'}")
    click.echo(f"  Vibration: {'on' if current.vibration_enabled else 'off'}")
    click.echo(f"  Remind later: {current.reminder_interval} minutes")

    now = datetime.now()
    due = due_occurrences(get_all_medications(storage), now)
    if due:
        click.echo(f"\n  Due now: {len(due)}")
        for occurrence in due:
            click.echo(f"    • {occurrence.time_point} {occurrence.medication.name} "
                       f"({format_minutes_until(occurrence.minutes_until)})")
    else:
        click.echo("\n  Due now: nothing")
    click.echo()


@reminder.command("log")
@click.option("--lines", "-n", default=50, show_default=True, help="Number of lines to show")
def reminder_log(lines):
    """Show the end of the log file (announcements, answers, channel errors)."""
    click.echo(get_log_tail(lines))


def main():
    cli()


if __name__ == "__main__":
    main()
