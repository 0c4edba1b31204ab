"""
Inbound sync: fold Google Calendar state into local appointments.

Each pass lists the events changed in [now - 1 month, now + 6 months),
matches every event to at most one local appointment and creates, updates
or deletes locally so the appointment set converges on the calendar.
Every write is gated by a field-level diff, so a pass over an unchanged
calendar writes nothing.

Matching uses two indexes over the user's appointments: by appointment id
(read from the event's private ``appointmentId``) and by linked remote
event id. An appointment id match wins when it does not contradict an
existing link; otherwise the remote event id link is used.
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from .. import config
from ..calendar.calendar_client import GoogleCalendarClient
from ..models.appointment import Appointment, AppointmentStatus, AppointmentType
from ..models.calendar import (
    META_APPOINTMENT_ID,
    META_PATIENT_ID,
    META_PATIENT_NAME,
    is_cancelled,
    private_metadata,
)
from ..utils.timezone_utils import parse_event_time, split_event_range, sync_window
from .appointment_repository import AppointmentRepository
from .event_builder import strip_summary_glyph

logger = logging.getLogger(__name__)

TEMPORAL_FIELDS = ('date', 'start_time', 'end_time', 'duration')


@dataclass
class ReconcileStats:
    total: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    skipped: int = 0

    @property
    def writes(self) -> int:
        return self.created + self.updated + self.deleted

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def derive_appointment_type(metadata: Dict[str, str]) -> str:
    """Patient only when the event still carries patient metadata."""
    if metadata.get(META_PATIENT_NAME) or metadata.get(META_PATIENT_ID):
        return AppointmentType.PATIENT.value
    return AppointmentType.PERSONAL.value


def _normalize_date(value: Optional[str]) -> str:
    return (value or '').split('T')[0]


def _normalize_time(value: Optional[str]) -> str:
    # Postgres time columns come back as HH:MM:SS
    return (value or '')[:5]


class _AppointmentIndex:
    """Lookup tables over the local appointment set, kept current during a pass."""

    def __init__(self, appointments: Iterable[Appointment]):
        self.by_id: Dict[str, Appointment] = {}
        self.by_remote_id: Dict[str, Appointment] = {}
        for appointment in appointments:
            self.add(appointment)

    def add(self, appointment: Appointment) -> None:
        self.by_id[appointment.id] = appointment
        if appointment.remote_event_id:
            self.by_remote_id[appointment.remote_event_id] = appointment

    def remove(self, appointment: Appointment) -> None:
        self.by_id.pop(appointment.id, None)
        if appointment.remote_event_id and self.by_remote_id.get(appointment.remote_event_id) is appointment:
            del self.by_remote_id[appointment.remote_event_id]

    def replace(self, old: Appointment, new: Appointment) -> None:
        self.remove(old)
        self.add(new)


class InboundReconciler:
    """
    Reconciles Google Calendar events into local appointments.

    Passes are single-flight per process: a pass requested while another
    is running is dropped, not queued.
    """

    def __init__(
        self,
        client: GoogleCalendarClient,
        repository: AppointmentRepository,
        timezone_str: str = None
    ):
        self.client = client
        self.repository = repository
        self.timezone_str = timezone_str or config.CALENDAR_TIMEZONE
        self._latch = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._latch.locked()

    async def run(
        self,
        user_ids: Iterable[str],
        now: Optional[datetime] = None
    ) -> Optional[Dict[str, Optional[Dict[str, int]]]]:
        """
        Run one pass for each user, behind the single-flight latch.

        A failure aborts that user's pass (writes already made stay) and is
        logged; it never propagates.

        Returns:
            user_id -> stats dict (None for a failed pass), or None if
            another pass was already running
        """
        if self._latch.locked():
            logger.info("Inbound calendar sync already running, skipping this trigger")
            return None

        async with self._latch:
            results: Dict[str, Optional[Dict[str, int]]] = {}
            for user_id in user_ids:
                try:
                    stats = await self.reconcile_user(user_id, now=now)
                    results[user_id] = stats.as_dict()
                except Exception as e:
                    logger.error(f"Inbound calendar sync failed for user {user_id}: {e}", exc_info=True)
                    results[user_id] = None
            return results

    async def reconcile_user(self, user_id: str, now: Optional[datetime] = None) -> ReconcileStats:
        """One reconciliation pass for one user (no latch, errors propagate)."""
        time_min, time_max = sync_window(
            now,
            months_back=config.SYNC_WINDOW_MONTHS_BACK,
            months_ahead=config.SYNC_WINDOW_MONTHS_AHEAD
        )
        events = await self.client.list_events(user_id, time_min, time_max)
        index = _AppointmentIndex(await self.repository.list_appointments(user_id))

        stats = ReconcileStats(total=len(events))
        for event in events:
            await self._apply_event(user_id, event, index, stats)

        logger.info(
            f"Inbound calendar sync for user {user_id}: {stats.total} events, "
            f"{stats.created} created, {stats.updated} updated, {stats.deleted} deleted, "
            f"{stats.unchanged} unchanged, {stats.skipped} skipped"
        )
        return stats

    def _resolve(self, event: Dict[str, Any], index: _AppointmentIndex) -> tuple:
        """
        Find the local appointment for an event.

        Returns:
            (appointment or None, conflict) where conflict means the event
            names an appointment that is already linked to another event
        """
        event_id = event.get('id')
        linked = index.by_remote_id.get(event_id)

        appointment_id = private_metadata(event).get(META_APPOINTMENT_ID)
        candidate = index.by_id.get(appointment_id) if appointment_id else None
        if candidate is not None:
            if candidate.remote_event_id in (None, '', event_id) and linked in (None, candidate):
                return candidate, False
            if linked is None:
                return None, True

        return linked, False

    async def _apply_event(
        self,
        user_id: str,
        event: Dict[str, Any],
        index: _AppointmentIndex,
        stats: ReconcileStats
    ) -> None:
        event_id = event.get('id')
        if not event_id:
            stats.skipped += 1
            return

        match, conflict = self._resolve(event, index)
        if conflict:
            logger.warning(
                f"Event {event_id} points at an appointment already linked to another event, skipping"
            )
            stats.skipped += 1
            return

        if is_cancelled(event):
            if match is None:
                stats.skipped += 1
                return
            await self.repository.delete_appointment(match.id, user_id=user_id)
            index.remove(match)
            stats.deleted += 1
            logger.info(f"Deleted appointment {match.id} (event {event_id} cancelled)")
            return

        start = parse_event_time(event.get('start'), self.timezone_str)
        end = parse_event_time(event.get('end'), self.timezone_str)
        if start is None or end is None:
            logger.warning(f"Skipping event {event_id} - missing times")
            stats.skipped += 1
            return

        date, start_time, end_time, duration = split_event_range(start, end)
        temporal = {'date': date, 'start_time': start_time, 'end_time': end_time, 'duration': duration}

        if match is None:
            created = await self.repository.create_appointment(
                self._new_appointment_fields(user_id, event, temporal)
            )
            index.add(created)
            stats.created += 1
            logger.info(f"Created appointment {created.id} from event {event_id}")
            return

        changes = self._diff(match, event, temporal)
        if not changes:
            stats.unchanged += 1
            return

        await self.repository.update_appointment(match.id, changes, user_id=user_id)
        index.replace(match, match.model_copy(update=changes))
        stats.updated += 1
        logger.info(f"Updated appointment {match.id} from event {event_id}: {sorted(changes)}")

    def _new_appointment_fields(
        self,
        user_id: str,
        event: Dict[str, Any],
        temporal: Dict[str, Any]
    ) -> Dict[str, Any]:
        metadata = private_metadata(event)
        appointment_type = derive_appointment_type(metadata)

        fields = {
            'user_id': user_id,
            'appointment_type': appointment_type,
            'status': AppointmentStatus.SCHEDULED.value,
            'remote_event_id': event['id'],
            **temporal,
        }
        if appointment_type == AppointmentType.PATIENT.value:
            fields['patient_id'] = metadata.get(META_PATIENT_ID)
            fields['patient_name'] = metadata.get(META_PATIENT_NAME)
        else:
            fields['title'] = strip_summary_glyph(event.get('summary'))
            fields['notes'] = event.get('description') or ''
        return fields

    def _diff(
        self,
        appointment: Appointment,
        event: Dict[str, Any],
        temporal: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Fields of ``appointment`` that differ from the event."""
        current = {
            'date': _normalize_date(appointment.date),
            'start_time': _normalize_time(appointment.start_time),
            'end_time': _normalize_time(appointment.end_time),
            'duration': appointment.duration,
        }
        changes = {
            field: temporal[field]
            for field in TEMPORAL_FIELDS
            if current[field] != temporal[field]
        }

        # Patient descriptions are a one-way projection of local data
        if not appointment.is_patient:
            title = strip_summary_glyph(event.get('summary'))
            if (appointment.title or '') != title:
                changes['title'] = title
            notes = event.get('description') or ''
            if (appointment.notes or '') != notes:
                changes['notes'] = notes

        if not appointment.remote_event_id:
            changes['remote_event_id'] = event['id']
        return changes
