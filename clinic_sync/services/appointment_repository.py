"""
Appointment repository backed by Supabase.

The calendar sync engine only needs list/create/update/delete over a user's
appointments plus the payments recorded against one appointment.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

from .. import config
from ..database import get_supabase_client
from ..models.appointment import Appointment, to_columns

logger = logging.getLogger(__name__)

COMPLETED_PAYMENT = "completed"


class AppointmentRepository:
    def __init__(
        self,
        supabase: Client = None,
        table: str = config.APPOINTMENTS_TABLE,
        payments_table: str = config.PAYMENTS_TABLE
    ):
        self.supabase = supabase or get_supabase_client()
        self.table = table
        self.payments_table = payments_table

    async def list_appointments(self, user_id: Optional[str] = None) -> List[Appointment]:
        """All appointments for a user, or every appointment when user_id is None."""
        def _execute():
            query = self.supabase.table(self.table).select('*')
            if user_id:
                query = query.eq('user_id', user_id)
            return query.execute().data or []

        rows = await asyncio.to_thread(_execute)
        return [Appointment.from_row(row) for row in rows]

    async def create_appointment(self, fields: Dict[str, Any]) -> Appointment:
        """
        Insert an appointment from a partial field set (model field names).

        Returns:
            The stored appointment
        """
        now = datetime.now(timezone.utc).isoformat()
        row = to_columns(fields)
        row.setdefault('id', str(uuid.uuid4()))
        row['created_at'] = now
        row['updated_at'] = now

        def _execute():
            return self.supabase.table(self.table).insert(row).execute().data or []

        rows = await asyncio.to_thread(_execute)
        return Appointment.from_row(rows[0] if rows else row)

    async def update_appointment(
        self,
        appointment_id: str,
        fields: Dict[str, Any],
        user_id: Optional[str] = None
    ) -> None:
        """
        Write only the given fields (model field names).

        With user_id, rows owned by anyone else are left untouched.
        """
        row = to_columns(fields)
        row['updated_at'] = datetime.now(timezone.utc).isoformat()

        def _execute():
            query = self.supabase.table(self.table).update(row).eq('id', appointment_id)
            if user_id:
                query = query.eq('user_id', user_id)
            query.execute()

        await asyncio.to_thread(_execute)

    async def delete_appointment(self, appointment_id: str, user_id: Optional[str] = None) -> None:
        def _execute():
            query = self.supabase.table(self.table).delete().eq('id', appointment_id)
            if user_id:
                query = query.eq('user_id', user_id)
            query.execute()

        await asyncio.to_thread(_execute)

    async def list_payment_amounts(self, appointment_id: str) -> List[float]:
        """Amounts of completed payments recorded against an appointment."""
        def _execute():
            return self.supabase.table(self.payments_table).select('amount, status').eq(
                'appointment_id', appointment_id
            ).execute().data or []

        rows = await asyncio.to_thread(_execute)
        return [
            float(row['amount']) for row in rows
            if row.get('amount') is not None and row.get('status', COMPLETED_PAYMENT) == COMPLETED_PAYMENT
        ]
