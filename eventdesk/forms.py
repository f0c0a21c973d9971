"""Typed form records for the three pages."""
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Mapping, Tuple
from zoneinfo import ZoneInfo

FORM_DATETIME_FORMAT = '%Y-%m-%dT%H:%M'


class FormError(ValueError):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def normalize_timestamp(value: str, tz_name: str = 'UTC') -> datetime:
    """Turn a ``datetime-local`` value into a naive UTC datetime.

    Values without an offset are read in ``tz_name``.
    """
    try:
        parsed = datetime.fromisoformat(value.strip())
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=ZoneInfo(tz_name))
        return parsed.astimezone(timezone.utc).replace(tzinfo=None, second=0, microsecond=0)
    except (ValueError, OverflowError):
        raise FormError(f'Invalid date: {value}') from None


def to_local(value: datetime, tz_name: str = 'UTC') -> datetime:
    """Stored UTC value in ``tz_name``; left in UTC at the edges of the calendar."""
    stored = value.replace(tzinfo=timezone.utc)
    try:
        return stored.astimezone(ZoneInfo(tz_name))
    except OverflowError:
        return stored


def format_timestamp(value: datetime, tz_name: str = 'UTC') -> str:
    """Inverse of :func:`normalize_timestamp`, for pre-filling a form."""
    return to_local(value, tz_name).strftime(FORM_DATETIME_FORMAT)


@dataclass
class RecordForm:
    REQUIRED: ClassVar[Tuple[str, ...]] = ()
    TIMESTAMPS: ClassVar[Tuple[str, ...]] = ()
    LABELS: ClassVar[Dict[str, str]] = {}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]):
        """Build a form from submitted values, ignoring unknown keys."""
        values = {}
        for f in fields(cls):
            raw = data.get(f.name)
            values[f.name] = '' if raw is None else str(raw).strip()
        return cls(**values)

    @classmethod
    def from_record(cls, record: Mapping[str, Any], tz_name: str = 'UTC'):
        values = {}
        for f in fields(cls):
            raw = record.get(f.name)
            if raw is None:
                values[f.name] = ''
            elif f.name in cls.TIMESTAMPS and isinstance(raw, datetime):
                values[f.name] = format_timestamp(raw, tz_name)
            else:
                values[f.name] = str(raw)
        return cls(**values)

    def missing(self) -> List[str]:
        return [name for name in self.REQUIRED if not getattr(self, name)]

    def validate(self) -> None:
        missing = self.missing()
        if missing:
            labels = ', '.join(self.LABELS.get(name, name) for name in missing)
            raise FormError(f'Please fill in: {labels}')

    def to_record(self, tz_name: str = 'UTC') -> Dict[str, Any]:
        """Validated column values ready for the gateway."""
        self.validate()
        record: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in self.TIMESTAMPS:
                value = normalize_timestamp(value, tz_name)
            record[f.name] = value
        return record

    def cleared(self):
        return type(self)()


@dataclass
class EventForm(RecordForm):
    REQUIRED: ClassVar[Tuple[str, ...]] = ('name', 'location', 'date')
    TIMESTAMPS: ClassVar[Tuple[str, ...]] = ('date',)
    LABELS: ClassVar[Dict[str, str]] = {'name': 'Event Name', 'location': 'Location', 'date': 'Date'}

    name: str = ''
    description: str = ''
    location: str = ''
    date: str = ''


@dataclass
class AttendeeForm(RecordForm):
    REQUIRED: ClassVar[Tuple[str, ...]] = ('name', 'email')
    LABELS: ClassVar[Dict[str, str]] = {'name': 'Name', 'email': 'Email'}

    name: str = ''
    email: str = ''
    task: str = ''


@dataclass
class TaskForm(RecordForm):
    REQUIRED: ClassVar[Tuple[str, ...]] = ('name', 'deadline', 'event_id')
    TIMESTAMPS: ClassVar[Tuple[str, ...]] = ('deadline',)
    LABELS: ClassVar[Dict[str, str]] = {'name': 'Task Name', 'deadline': 'Deadline', 'event_id': 'Event'}

    name: str = ''
    deadline: str = ''
    event_id: str = ''
    attendee_id: str = ''

    def to_record(self, tz_name: str = 'UTC') -> Dict[str, Any]:
        record = super().to_record(tz_name)
        record['attendee_id'] = record['attendee_id'] or None
        return record
