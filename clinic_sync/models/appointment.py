"""
Appointment model as stored by the appointment repository.

The API speaks camelCase (the browser app's shape); the database speaks
snake_case. ``remote_event_id`` is the link to the Google Calendar event and
is stored in the ``google_calendar_event_id`` column.
"""
import re
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class AppointmentType(str, Enum):
    PATIENT = "patient"
    PERSONAL = "personal"


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


# model field -> database column, where they differ
_COLUMN_NAMES = {
    'remote_event_id': 'google_calendar_event_id',
}

_TIME_WITH_SECONDS = re.compile(r"^\d{2}:\d{2}:\d{2}")


class Appointment(BaseModel):
    id: str
    user_id: str = Field(alias="userId")
    appointment_type: AppointmentType = Field(default=AppointmentType.PATIENT.value, alias="appointmentType")
    patient_id: Optional[str] = Field(default=None, alias="patientId")
    patient_name: Optional[str] = Field(default=None, alias="patientName")
    title: Optional[str] = None
    treatment: Optional[str] = None
    fee: Optional[float] = None
    deposit: Optional[float] = None
    date: str
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    duration: int = 0
    status: str = AppointmentStatus.SCHEDULED.value
    notes: Optional[str] = None
    remote_event_id: Optional[str] = Field(default=None, alias="remoteEventId")

    class Config:
        populate_by_name = True  # Accept both snake_case and camelCase
        use_enum_values = True

    @field_validator("start_time", "end_time")
    @classmethod
    def strip_seconds(cls, v: str) -> str:
        # Postgres time columns come back as HH:MM:SS
        if isinstance(v, str) and _TIME_WITH_SECONDS.match(v):
            return v[:5]
        return v

    @property
    def is_patient(self) -> bool:
        return self.appointment_type == AppointmentType.PATIENT.value

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Appointment":
        """Build from a database row (snake_case columns)."""
        data = dict(row)
        for field, column in _COLUMN_NAMES.items():
            if column in data:
                data[field] = data.pop(column)
        known = {k: v for k, v in data.items() if k in cls.model_fields}
        return cls(**known)

    def to_row(self) -> Dict[str, Any]:
        """Database row for this appointment."""
        return to_columns(self.model_dump(by_alias=False))


def to_columns(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Rename model field names to database column names."""
    return {_COLUMN_NAMES.get(key, key): value for key, value in fields.items()}
