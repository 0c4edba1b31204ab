"""
Outbound sync: one local appointment change -> one Google Calendar mutation.

Runs inline with the action that changed the appointment. The only local
field it writes is the appointment's remote event id; a failure is returned
to the caller and never rolls back the local change.
"""

import logging
from typing import Optional, Union

from ..calendar.calendar_client import GoogleCalendarClient
from ..exceptions import CalendarSyncError, InvalidArgumentError
from ..models.appointment import Appointment
from ..models.calendar import SyncAction
from .appointment_repository import AppointmentRepository
from .event_builder import build_event_draft

logger = logging.getLogger(__name__)


class OutboundSync:
    def __init__(self, client: GoogleCalendarClient, repository: AppointmentRepository):
        self.client = client
        self.repository = repository

    async def sync(
        self,
        user_id: str,
        appointment: Appointment,
        action: Union[SyncAction, str],
        color_id: Optional[str] = None
    ) -> Optional[str]:
        """
        Push one appointment change to the user's Google Calendar.

        Callers choose create vs update from the presence of
        ``appointment.remote_event_id``; a second create for an already
        linked appointment is not detected here.

        Returns:
            The remote event id after the change (None after delete)
        """
        action = SyncAction(action)
        try:
            if action == SyncAction.DELETE:
                return await self._delete(user_id, appointment)
            if action == SyncAction.UPDATE:
                return await self._update(user_id, appointment, color_id)
            return await self._create(user_id, appointment, color_id)
        except CalendarSyncError as e:
            logger.error(
                f"Calendar {action.value} failed for appointment {appointment.id}: "
                f"[{e.code}] {e.message}"
            )
            raise

    async def _build_draft(self, appointment: Appointment, color_id: Optional[str]):
        payments = []
        if appointment.is_patient:
            payments = await self.repository.list_payment_amounts(appointment.id)
        return build_event_draft(appointment, payments, color_id)

    async def _create(self, user_id: str, appointment: Appointment, color_id: Optional[str]) -> str:
        draft = await self._build_draft(appointment, color_id)
        event_id = await self.client.create_event(user_id, draft)
        await self._link(user_id, appointment, event_id)
        logger.info(f"Created Google Calendar event {event_id} for appointment {appointment.id}")
        return event_id

    async def _update(self, user_id: str, appointment: Appointment, color_id: Optional[str]) -> str:
        if not appointment.remote_event_id:
            raise InvalidArgumentError(f"Appointment {appointment.id} has no remote event to update")

        draft = await self._build_draft(appointment, color_id)
        event_id = await self.client.update_event(user_id, appointment.remote_event_id, draft)
        if event_id != appointment.remote_event_id:
            await self._link(user_id, appointment, event_id)
        logger.info(f"Updated Google Calendar event {event_id} for appointment {appointment.id}")
        return event_id

    async def _delete(self, user_id: str, appointment: Appointment) -> None:
        if appointment.remote_event_id:
            deleted = await self.client.delete_event(user_id, appointment.remote_event_id)
            if deleted:
                logger.info(
                    f"Deleted Google Calendar event {appointment.remote_event_id} "
                    f"for appointment {appointment.id}"
                )
            await self._link(user_id, appointment, None)
        return None

    async def _link(self, user_id: str, appointment: Appointment, event_id: Optional[str]) -> None:
        await self.repository.update_appointment(
            appointment.id, {'remote_event_id': event_id}, user_id=user_id
        )
        appointment.remote_event_id = event_id
