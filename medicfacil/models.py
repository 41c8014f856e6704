"""
Data models and helper functions for MedicFácil.

This module provides:
- The records the app stores (Medication, DoseEvent, Settings, FamilyMember)
- Functions to add, retrieve and delete medications
- The Settings singleton (created with defaults on first access)
- Family members and their access codes

Records are plain dataclasses. They are converted to JSON-friendly dicts
with to_record() before going into Storage, and back with from_record().
Dates and times are stored as ISO strings in local time.
"""

import secrets
import string
import time
from dataclasses import dataclass, field, asdict
from datetime import datetime, date
from enum import Enum
from typing import Optional, List

from .database import Storage
from .logger import get_logger
from .schedules import parse_time_point


logger = get_logger(__name__)

SETTINGS_ID = 'main'

# Colors offered when registering a medication (name, hex value)
MEDICATION_COLORS = [
    ('Branco', '#FFFFFF'),
    ('Amarelo', '#FEF08A'),
    ('Rosa', '#FBCFE8'),
    ('Azul', '#BFDBFE'),
    ('Verde', '#BBF7D0'),
    ('Laranja', '#FED7AA'),
    ('Roxo', '#DDD6FE'),
    ('Vermelho', '#FECACA'),
    ('Marrom', '#D6BCAB'),
]

# Frequency labels are informative only - the time points drive the reminders
FREQUENCY_OPTIONS = [
    '1x ao dia',
    '2x ao dia',
    '3x ao dia',
    '4x ao dia',
    'A cada 4 horas',
    'A cada 6 horas',
    'A cada 8 horas',
    'A cada 12 horas',
    'Quando necessário',
]

FONT_SIZES = ['normal', 'large', 'extra-large']


class MedicationType(str, Enum):
    TABLET = 'tablet'
    CAPSULE = 'capsule'
    LIQUID = 'liquid'
    OINTMENT = 'ointment'
    INJECTION = 'injection'

    @property
    def label(self) -> str:
        return MEDICATION_TYPE_LABELS[self]


MEDICATION_TYPE_LABELS = {
    MedicationType.TABLET: 'Comprimido',
    MedicationType.CAPSULE: 'Cápsula',
    MedicationType.LIQUID: 'Líquido',
    MedicationType.OINTMENT: 'Pomada',
    MedicationType.INJECTION: 'Injeção',
}


class DoseStatus(str, Enum):
    PENDING = 'pending'
    TAKEN = 'taken'
    SKIPPED = 'skipped'
    DELAYED = 'delayed'

    @property
    def label(self) -> str:
        return DOSE_STATUS_LABELS[self]


DOSE_STATUS_LABELS = {
    DoseStatus.PENDING: 'Pendente',
    DoseStatus.TAKEN: 'Tomado',
    DoseStatus.SKIPPED: 'Pulado',
    DoseStatus.DELAYED: 'Adiado',
}


# ============================================================
# ID GENERATION
# ============================================================

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ACCESS_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_id() -> str:
    """
    Generate a record id like '1760880000000-k3j9x0a1b'.

    Milliseconds since the epoch plus 9 random base36 characters.
    """
    millis = int(time.time() * 1000)
    suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{millis}-{suffix}"


def generate_access_code() -> str:
    """Generate a 6-character uppercase alphanumeric access code."""
    return ''.join(secrets.choice(_ACCESS_CODE_ALPHABET) for _ in range(6))


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _parse_date(value) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


# ============================================================
# RECORDS
# ============================================================

@dataclass
class Medication:
    """A medication the user takes, with its daily time points ("HH:MM")."""
    id: str
    name: str
    dosage: str
    schedules: List[str]
    color: str = '#FFFFFF'
    type: MedicationType = MedicationType.TABLET
    frequency: str = '1x ao dia'
    start_date: date = field(default_factory=date.today)
    end_date: Optional[date] = None
    instructions: Optional[str] = None
    photo: Optional[str] = None          # path to the picture on disk
    created_at: datetime = field(default_factory=datetime.now)

    def is_active_on(self, day: date) -> bool:
        """True if `day` is inside the start/end period of this medication."""
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True

    def to_record(self) -> dict:
        record = asdict(self)
        record['type'] = self.type.value
        record['schedules'] = list(self.schedules)
        record['start_date'] = self.start_date.isoformat() if self.start_date else None
        record['end_date'] = self.end_date.isoformat() if self.end_date else None
        record['created_at'] = self.created_at.isoformat()
        return record

    @classmethod
    def from_record(cls, record: dict) -> 'Medication':
        return cls(
            id=record['id'],
            name=record['name'],
            dosage=record.get('dosage') or '',
            schedules=list(record.get('schedules') or []),
            color=record.get('color') or '#FFFFFF',
            type=MedicationType(record.get('type') or MedicationType.TABLET.value),
            frequency=record.get('frequency') or '',
            start_date=_parse_date(record.get('start_date')),
            end_date=_parse_date(record.get('end_date')),
            instructions=record.get('instructions'),
            photo=record.get('photo'),
            created_at=_parse_datetime(record.get('created_at')) or datetime.now(),
        )


@dataclass
class DoseEvent:
    """
    One entry of the adherence history.

    A "taken" event always carries taken_at; the other statuses may not.
    """
    id: str
    medication_id: str
    scheduled_time: datetime
    status: DoseStatus
    taken_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.status = DoseStatus(self.status)
        if self.status == DoseStatus.TAKEN and self.taken_at is None:
            raise ValueError("A taken dose needs a taken_at time")

    @classmethod
    def new(cls, medication_id: str, scheduled_time: datetime, status: DoseStatus,
            now: datetime = None) -> 'DoseEvent':
        """
        Build a fresh event for a user decision.

        taken_at is set to `now` for "taken" and left empty otherwise.
        """
        if now is None:
            now = datetime.now()
        status = DoseStatus(status)
        return cls(
            id=generate_id(),
            medication_id=medication_id,
            scheduled_time=scheduled_time,
            status=status,
            taken_at=now if status == DoseStatus.TAKEN else None,
            created_at=now,
        )

    def to_record(self) -> dict:
        return {
            'id': self.id,
            'medication_id': self.medication_id,
            'scheduled_time': self.scheduled_time.isoformat(),
            'taken_at': self.taken_at.isoformat() if self.taken_at else None,
            'status': self.status.value,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_record(cls, record: dict) -> 'DoseEvent':
        return cls(
            id=record['id'],
            medication_id=record['medication_id'],
            scheduled_time=_parse_datetime(record['scheduled_time']),
            status=DoseStatus(record['status']),
            taken_at=_parse_datetime(record.get('taken_at')),
            created_at=_parse_datetime(record.get('created_at')) or datetime.now(),
        )


@dataclass
class Settings:
    """User preferences. There is exactly one, with id 'main'."""
    id: str = SETTINGS_ID
    font_size: str = 'extra-large'
    high_contrast: bool = False
    sound_enabled: bool = True
    voice_enabled: bool = True
    vibration_enabled: bool = True
    reminder_interval: int = 5           # minutes
    pin: Optional[str] = None
    backup_enabled: bool = False

    def to_record(self) -> dict:
        return asdict(self)

    @classmethod
    def from_record(cls, record: dict) -> 'Settings':
        defaults = cls()
        known = {k: v for k, v in record.items() if k in defaults.__dataclass_fields__}
        settings = cls(**known)
        settings.id = SETTINGS_ID
        return settings


@dataclass
class FamilyMember:
    """Someone allowed to follow the user's medications with an access code."""
    id: str
    name: str
    email: str
    access_code: str
    phone: Optional[str] = None
    can_edit: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    def to_record(self) -> dict:
        record = asdict(self)
        record['created_at'] = self.created_at.isoformat()
        return record

    @classmethod
    def from_record(cls, record: dict) -> 'FamilyMember':
        return cls(
            id=record['id'],
            name=record['name'],
            email=record.get('email') or '',
            access_code=record['access_code'],
            phone=record.get('phone') or None,
            can_edit=bool(record.get('can_edit')),
            created_at=_parse_datetime(record.get('created_at')) or datetime.now(),
        )


# ============================================================
# MEDICATION FUNCTIONS
# ============================================================

def add_medication(storage: Storage, name: str, dosage: str, schedules: List[str],
                   color: str = '#FFFFFF', med_type: MedicationType = MedicationType.TABLET,
                   frequency: str = '1x ao dia', start_date: date = None,
                   end_date: date = None, instructions: str = None,
                   photo: str = None) -> Medication:
    """
    Add a new medication.

    Args:
        storage: The database
        name: Name of the medication (e.g., "Losartana")
        dosage: Dosage text (e.g., "50mg - 1 comprimido")
        schedules: Daily time points as "HH:MM" (e.g., ["08:00", "20:00"])
        color: Hex color of the pill, used when there is no photo
        med_type: Tablet, capsule, liquid, ointment or injection
        frequency: Free-form label (see FREQUENCY_OPTIONS)
        start_date: First day of treatment (defaults to today)
        end_date: Last day of treatment (optional)
        instructions: Special instructions (e.g., "Tomar em jejum")
        photo: Path to a picture of the medication (optional)

    Returns:
        The stored Medication
    """
    for point in schedules:
        parse_time_point(point)

    medication = Medication(
        id=generate_id(),
        name=name,
        dosage=dosage,
        schedules=list(schedules),
        color=color,
        type=MedicationType(med_type),
        frequency=frequency,
        start_date=start_date or date.today(),
        end_date=end_date,
        instructions=instructions,
        photo=photo,
    )
    storage.add('medications', medication.to_record())
    logger.info("Added medication %s (%s) at %s", medication.name, medication.id,
                ', '.join(medication.schedules))
    return medication


def get_medication(storage: Storage, med_id: str) -> Optional[Medication]:
    """Get a medication by id, or None if it does not exist (e.g. deleted)."""
    record = storage.get('medications', med_id)
    return Medication.from_record(record) if record else None


def get_all_medications(storage: Storage) -> List[Medication]:
    """Get all medications, in the order they were added."""
    return [Medication.from_record(r) for r in storage.get_all('medications')]


def get_medication_by_name(storage: Storage, name: str) -> Optional[Medication]:
    """
    Find a medication by name (case-insensitive partial match).

    Returns:
        The first match, or None if not found
    """
    needle = name.lower()
    for medication in get_all_medications(storage):
        if needle in medication.name.lower():
            return medication
    return None


def update_medication(storage: Storage, medication: Medication):
    """Save changes to an existing medication."""
    storage.put('medications', medication.to_record())


def delete_medication(storage: Storage, med_id: str) -> bool:
    """
    Delete a medication.

    Its dose events are kept: the history still points at the deleted id.

    Returns:
        True if the medication existed
    """
    deleted = storage.delete('medications', med_id)
    if deleted:
        logger.info("Deleted medication %s (history kept)", med_id)
    return deleted


# ============================================================
# SETTINGS
# ============================================================

def get_settings(storage: Storage) -> Settings:
    """Get the settings, creating them with defaults on first access."""
    record = storage.get('settings', SETTINGS_ID)
    if record is None:
        settings = Settings()
        save_settings(storage, settings)
        logger.info("Created default settings")
        return settings
    return Settings.from_record(record)


def save_settings(storage: Storage, settings: Settings):
    """Save the settings record (always under id 'main')."""
    settings.id = SETTINGS_ID
    storage.put('settings', settings.to_record())


# ============================================================
# FAMILY
# ============================================================

def add_family_member(storage: Storage, name: str, email: str, phone: str = None,
                      can_edit: bool = False) -> FamilyMember:
    """
    Add a family member with a freshly generated access code.

    The access code never changes afterwards.
    """
    member = FamilyMember(
        id=generate_id(),
        name=name,
        email=email,
        access_code=generate_access_code(),
        phone=phone or None,
        can_edit=can_edit,
    )
    storage.add('family', member.to_record())
    logger.info("Added family member %s (%s)", member.name, member.id)
    return member


def get_all_family_members(storage: Storage) -> List[FamilyMember]:
    """Get all family members, in the order they were added."""
    return [FamilyMember.from_record(r) for r in storage.get_all('family')]


def get_family_member_by_name(storage: Storage, name: str) -> Optional[FamilyMember]:
    """Find a family member by name (case-insensitive partial match)."""
    needle = name.lower()
    for member in get_all_family_members(storage):
        if needle in member.name.lower():
            return member
    return None


def delete_family_member(storage: Storage, member_id: str) -> bool:
    """Remove a family member. Returns True if they existed."""
    deleted = storage.delete('family', member_id)
    if deleted:
        logger.info("Deleted family member %s", member_id)
    return deleted
