"""
Reminder texts and SMS delivery for MedicFácil.

This module handles:
- The wording of an announcement (notification title/body, spoken text)
- Sending SMS through Twilio (used for family invites)
- Formatting the list of upcoming doses
"""

from typing import Optional

from . import config
from .logger import get_logger


logger = get_logger(__name__)

NOTIFICATION_TITLE = "⏰ Hora do Remédio!"


# ============================================================
# ANNOUNCEMENT TEXTS
# ============================================================

def notification_body(medication, time_point: str) -> str:
    """Body of the system notification: name, dosage and time on separate lines."""
    lines = [medication.name]
    if medication.dosage:
        lines.append(medication.dosage)
    lines.append(time_point)
    return "\n".join(lines)


def notification_tag(medication, time_point: str) -> str:
    """Tag that identifies the notification of one occurrence."""
    return f"medication-{medication.id}-{time_point}"


def speech_text(medication) -> str:
    """
    What the speech channel says for a medication.

    Example:
        "Atenção! Hora de tomar o remédio Losartana. Dosagem: 50mg. Tomar em jejum"
    """
    text = f"Atenção! Hora de tomar o remédio {medication.name}."
    if medication.dosage:
        text += f" Dosagem: {medication.dosage}."
    if medication.instructions:
        text += f" {medication.instructions}"
    return text


def family_invite_text(member) -> str:
    """Message sent to a family member with their access code."""
    return (
        "Você foi adicionado ao MedicFácil!\n\n"
        f"Código de Acesso: {member.access_code}\n\n"
        "Use este código para acompanhar os medicamentos."
    )


def format_upcoming_doses(upcoming: list) -> str:
    """
    Format the next dose of each medication for display.

    Args:
        upcoming: List of (medication, "HH:MM") from schedules.upcoming_medications()

    Returns:
        Formatted string
    """
    if not upcoming:
        return "No upcoming doses"

    lines = []
    for medication, time_point in upcoming:
        if medication.dosage:
            lines.append(f"  {time_point} - {medication.name} ({medication.dosage})")
        else:
            lines.append(f"  {time_point} - {medication.name}")

    return "\n".join(lines)


# ============================================================
# SMS (TWILIO)
# ============================================================

def send_sms(to_number: str, message: str) -> dict:
    """
    Send an SMS message via Twilio.

    Args:
        to_number: Destination phone number with country code
        message: The text message to send

    Returns:
        Dict with 'success' boolean and either 'sid' (message ID) or 'error'
    """
    # Import here to avoid errors if Twilio isn't configured yet
    from twilio.rest import Client
    from twilio.base.exceptions import TwilioRestException

    if not config.is_twilio_configured():
        return {
            'success': False,
            'error': 'Twilio not configured. Run "medic family sms-setup" for instructions.'
        }

    try:
        client = Client(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN)

        sent = client.messages.create(
            body=message,
            from_=config.TWILIO_PHONE_NUMBER,
            to=to_number
        )

        logger.info("SMS sent to %s (%s)", to_number, sent.sid)
        return {
            'success': True,
            'sid': sent.sid,
        }

    except TwilioRestException as e:
        logger.warning("Twilio refused SMS to %s: %s", to_number, e.msg)
        return {
            'success': False,
            'error': f"Twilio error: {e.msg}"
        }
    except Exception as e:
        logger.warning("SMS to %s failed: %s", to_number, e)
        return {
            'success': False,
            'error': f"Error: {str(e)}"
        }


def send_family_invite(member, phone: Optional[str] = None) -> dict:
    """
    Text a family member their access code.

    Args:
        member: The FamilyMember
        phone: Number to use instead of the member's own phone

    Returns:
        Result dict from send_sms()
    """
    to_number = phone or member.phone
    if not to_number:
        return {
            'success': False,
            'error': f"{member.name} has no phone number"
        }
    return send_sms(to_number, family_invite_text(member))
