"""
Email sender for MedicFácil.

Sends the medication history to family members via SMTP, with the exported
report attached.

Configuration is done via environment variables:
- MEDICFACIL_EMAIL: Your email address (sender)
- MEDICFACIL_EMAIL_PASSWORD: App password (not your regular password!)
- MEDICFACIL_SMTP_HOST: SMTP server (default: smtp.gmail.com)
- MEDICFACIL_SMTP_PORT: SMTP port (default: 587)
"""

import os
import smtplib
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.mime.base import MIMEBase
from email import encoders
from pathlib import Path
from typing import List

from .logger import get_logger


logger = get_logger(__name__)


# ============================================================
# CONFIGURATION
# ============================================================

def get_email_config() -> dict:
    """Get email configuration from environment variables."""
    return {
        'email': os.environ.get('MEDICFACIL_EMAIL'),
        'password': os.environ.get('MEDICFACIL_EMAIL_PASSWORD'),
        'smtp_host': os.environ.get('MEDICFACIL_SMTP_HOST', 'smtp.gmail.com'),
        'smtp_port': int(os.environ.get('MEDICFACIL_SMTP_PORT', '587')),
    }


def is_email_configured() -> bool:
    """Check if email is configured."""
    config = get_email_config()
    return bool(config['email'] and config['password'])


def get_missing_email_config() -> List[str]:
    """Return list of missing configuration items."""
    config = get_email_config()
    missing = []
    if not config['email']:
        missing.append('MEDICFACIL_EMAIL')
    if not config['password']:
        missing.append('MEDICFACIL_EMAIL_PASSWORD')
    return missing


# ============================================================
# EMAIL SENDING
# ============================================================

def send_email(
    to_addresses: List[str],
    subject: str,
    body: str,
    attachments: List[Path] = None,
) -> dict:
    """
    Send an email with optional attachments.

    Args:
        to_addresses: List of recipient email addresses
        subject: Email subject
        body: Email body (plain text)
        attachments: List of file paths to attach

    Returns:
        Dict with 'success' and either 'message' or 'error'
    """
    if not is_email_configured():
        return {
            'success': False,
            'error': 'Email not configured. Set ' + ' and '.join(get_missing_email_config()) + '.'
        }
    if not to_addresses:
        return {
            'success': False,
            'error': 'No recipients.'
        }

    config = get_email_config()

    try:
        msg = MIMEMultipart()
        msg['From'] = config['email']
        msg['To'] = ', '.join(to_addresses)
        msg['Subject'] = subject

        msg.attach(MIMEText(body, 'plain', 'utf-8'))

        for filepath in attachments or []:
            filepath = Path(filepath)
            if not filepath.exists():
                logger.warning("Attachment not found: %s", filepath)
                continue
            with open(filepath, 'rb') as f:
                part = MIMEBase('application', 'octet-stream')
                part.set_payload(f.read())
            encoders.encode_base64(part)
            part.add_header(
                'Content-Disposition',
                f'attachment; filename="{filepath.name}"'
            )
            msg.attach(part)

        with smtplib.SMTP(config['smtp_host'], config['smtp_port']) as server:
            server.starttls()
            server.login(config['email'], config['password'])
            server.send_message(msg)

        logger.info("Email '%s' sent to %d recipient(s)", subject, len(to_addresses))
        return {
            'success': True,
            'message': f'Email sent to {len(to_addresses)} recipient(s)'
        }

    except smtplib.SMTPAuthenticationError:
        logger.warning("SMTP authentication failed for %s", config['email'])
        return {
            'success': False,
            'error': 'Authentication failed. Check your email and app password.'
        }
    except Exception as e:
        logger.warning("Email '%s' failed: %s", subject, e)
        return {
            'success': False,
            'error': str(e)
        }


def send_history_to_family(report_path: Path, members: list, day: date) -> dict:
    """
    Email a history report to family members.

    Args:
        report_path: Exported report (PDF, Excel, CSV or text)
        members: FamilyMember list; members without an email are left out
        day: Day the report covers

    Returns:
        Dict with 'success' and either 'message' or 'error'
    """
    to_addresses = [m.email for m in members if m.email]
    subject = f"MedicFácil - Histórico de Medicamentos {day.strftime('%d/%m/%Y')}"
    body = (
        "Olá!\n\n"
        f"Segue em anexo o histórico de medicamentos de {day.strftime('%d/%m/%Y')}.\n\n"
        "---\n"
        "Enviado pelo MedicFácil."
    )
    return send_email(to_addresses, subject, body, [report_path])
