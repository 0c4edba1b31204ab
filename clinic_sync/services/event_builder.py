"""
Appointment -> Google Calendar event payload.

Summary: tooth glyph plus the patient name (patient appointments) or the
title (personal events). Description: for patients, the treatment and money
lines followed by the notes; for personal events, the notes verbatim.
"""

from typing import Any, Dict, Iterable, Optional

from .. import config
from ..exceptions import InvalidArgumentError
from ..models.appointment import Appointment, AppointmentType
from ..models.calendar import (
    META_APPOINTMENT_ID,
    META_APPOINTMENT_TYPE,
    META_PATIENT_ID,
    META_PATIENT_NAME,
    META_USER_ID,
)
from ..utils.timezone_utils import to_event_time

SUMMARY_GLYPH = "🦷"
PAID_MARKER = "✅ Pagado"

# Google Calendar event colors
VALID_COLOR_IDS = {str(n) for n in range(1, 12)}


def format_amount(value: float) -> str:
    if float(value).is_integer():
        return f"${int(value)}"
    return f"${value:.2f}"


def build_summary(appointment: Appointment) -> str:
    if appointment.is_patient:
        label = appointment.patient_name or "Sin nombre"
    else:
        label = appointment.title or ""
    return f"{SUMMARY_GLYPH} {label}".rstrip()


def strip_summary_glyph(summary: Optional[str]) -> str:
    """Title text of a summary, without the leading glyph if present."""
    summary = (summary or "").strip()
    if summary.startswith(SUMMARY_GLYPH):
        summary = summary[len(SUMMARY_GLYPH):].strip()
    return summary


def build_description(appointment: Appointment, payments: Iterable[float] = ()) -> str:
    notes = appointment.notes or ""
    if not appointment.is_patient:
        return notes

    paid_total = sum(payments)
    lines = []
    if appointment.treatment:
        lines.append(f"Tratamiento: {appointment.treatment}")
    if appointment.fee is not None:
        lines.append(f"Honorarios: {format_amount(appointment.fee)}")
    deposit = appointment.deposit or 0
    if deposit > 0:
        lines.append(f"Seña: {format_amount(deposit)}")
    if paid_total > 0:
        lines.append(f"Pagos: {format_amount(paid_total)}")
    if appointment.fee is not None:
        balance = appointment.fee - deposit - paid_total
        if balance > 0:
            lines.append(f"Saldo: {format_amount(balance)}")
        else:
            lines.append(PAID_MARKER)

    if notes:
        if lines:
            lines.append("")
        lines.append(notes)
    return "\n".join(lines)


def build_private_metadata(appointment: Appointment) -> Dict[str, str]:
    metadata = {
        META_APPOINTMENT_ID: appointment.id,
        META_USER_ID: appointment.user_id,
        META_APPOINTMENT_TYPE: AppointmentType(appointment.appointment_type).value,
    }
    if appointment.is_patient:
        if appointment.patient_id:
            metadata[META_PATIENT_ID] = appointment.patient_id
        if appointment.patient_name:
            metadata[META_PATIENT_NAME] = appointment.patient_name
    return metadata


def build_event_draft(
    appointment: Appointment,
    payments: Iterable[float] = (),
    color_id: Optional[str] = None,
    timezone_str: str = None
) -> Dict[str, Any]:
    """
    Event body for events.insert / events.update.

    Start and end are the appointment's wall-clock times tagged with the
    clinic timezone; Google does the UTC normalization.
    """
    timezone_str = timezone_str or config.CALENDAR_TIMEZONE
    try:
        start = to_event_time(appointment.date, appointment.start_time, timezone_str)
        end = to_event_time(appointment.date, appointment.end_time, timezone_str)
    except ValueError as e:
        raise InvalidArgumentError(
            f"Appointment {appointment.id} has an unreadable date or time: {e}"
        ) from e

    draft = {
        'summary': build_summary(appointment),
        'description': build_description(appointment, payments),
        'start': start,
        'end': end,
        'extendedProperties': {
            'private': build_private_metadata(appointment),
        },
    }
    if color_id is not None and str(color_id) in VALID_COLOR_IDS:
        draft['colorId'] = str(color_id)
    return draft
