"""
Configuration for MedicFácil.

Sensitive values (API keys, phone numbers, passwords) are loaded from
environment variables so they stay out of the code.

To set environment variables on Linux, add these lines to your ~/.bashrc:
    export TWILIO_ACCOUNT_SID="your_account_sid"
    export TWILIO_AUTH_TOKEN="your_auth_token"
    export TWILIO_PHONE_NUMBER="+5511999999999"

Then run: source ~/.bashrc (or restart your terminal)

User preferences (sound, voice, vibration, reminder interval...) are NOT
here - they live in the Settings record in the database.
"""

import os
from pathlib import Path


# ============================================================
# FILE PATHS
# ============================================================

# Project root directory (where setup.py is)
PROJECT_ROOT = Path(__file__).parent.parent

# Data directory for the database and logs
DATA_DIR = Path(os.environ.get("MEDICFACIL_DATA_DIR", PROJECT_ROOT / "data"))

# Database file path
DB_PATH = DATA_DIR / "medicfacil.db"

# Log files
LOGS_DIR = DATA_DIR / "logs"

# Sound played when a dose is announced
ALERT_SOUND = Path(os.environ.get("MEDICFACIL_ALERT_SOUND", PROJECT_ROOT / "assets" / "alert.wav"))


# ============================================================
# REMINDER ENGINE SETTINGS
# ============================================================

# A dose is "due" from this many minutes before its time until this many after
DUE_TOLERANCE_MINUTES = 30

# How often the reminder service looks for newly due medications
POLL_INTERVAL_SECONDS = 60

# Snooze interval used when the Settings record has none
DEFAULT_REMINDER_INTERVAL_MINUTES = 5

# Speech: slower than normal for elderly users
SPEECH_LOCALE = "pt-BR"
SPEECH_RATE = 0.8
SPEECH_PITCH = 1.0
SPEECH_VOLUME = 1.0

# Vibration pattern in milliseconds (on, off, on, off, on)
VIBRATION_PATTERN = (500, 200, 500, 200, 500)


# ============================================================
# DEVICE COMMANDS (used by the delivery channels)
# ============================================================

# Command that plays a sound file, e.g. "aplay" or "paplay"
AUDIO_PLAYER = os.environ.get("MEDICFACIL_AUDIO_PLAYER", "aplay")

# Text-to-speech command, e.g. "espeak-ng" or "espeak"
SPEECH_COMMAND = os.environ.get("MEDICFACIL_SPEECH_COMMAND", "espeak-ng")

# Vibration command (receives the pattern as arguments). Unset on most desktops.
VIBRATE_COMMAND = os.environ.get("MEDICFACIL_VIBRATE_COMMAND")


# ============================================================
# TWILIO CONFIGURATION (for SMS family invites)
# ============================================================

# Your Twilio Account SID (found on Twilio console dashboard)
TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID")

# Your Twilio Auth Token (found on Twilio console dashboard)
TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN")

# Your Twilio phone number (must include country code), e.g. "+5511999999999"
TWILIO_PHONE_NUMBER = os.environ.get("TWILIO_PHONE_NUMBER")


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def is_twilio_configured() -> bool:
    """Check if all Twilio settings are configured."""
    return all([
        TWILIO_ACCOUNT_SID,
        TWILIO_AUTH_TOKEN,
        TWILIO_PHONE_NUMBER,
    ])


def get_missing_twilio_config() -> list:
    """Return a list of missing Twilio configuration items."""
    missing = []
    if not TWILIO_ACCOUNT_SID:
        missing.append("TWILIO_ACCOUNT_SID")
    if not TWILIO_AUTH_TOKEN:
        missing.append("TWILIO_AUTH_TOKEN")
    if not TWILIO_PHONE_NUMBER:
        missing.append("TWILIO_PHONE_NUMBER")
    return missing


def print_twilio_setup_instructions():
    """Print instructions for setting up Twilio."""
    print("""
╔══════════════════════════════════════════════════════════════════════════════╗
║                           TWILIO SETUP INSTRUCTIONS                          ║
╠══════════════════════════════════════════════════════════════════════════════╣
║                                                                              ║
║  Twilio is only used to text access codes to family members.                 ║
║                                                                              ║
║  1. Create a Twilio account at: https://www.twilio.com/try-twilio            ║
║                                                                              ║
║  2. From your Twilio Console (https://console.twilio.com):                   ║
║     - Copy your Account SID                                                  ║
║     - Copy your Auth Token                                                   ║
║     - Get a phone number                                                     ║
║                                                                              ║
║  3. Add these lines to your ~/.bashrc file:                                  ║
║                                                                              ║
║     export TWILIO_ACCOUNT_SID="ACxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx"           ║
║     export TWILIO_AUTH_TOKEN="your_auth_token_here"                          ║
║     export TWILIO_PHONE_NUMBER="+5511999999999"                              ║
║                                                                              ║
║  4. Run: source ~/.bashrc                                                    ║
║                                                                              ║
║  5. Send an invite with: medic family invite <name>                          ║
║                                                                              ║
╚══════════════════════════════════════════════════════════════════════════════╝
""")
