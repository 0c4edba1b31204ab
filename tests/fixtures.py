"""
Test doubles for the calendar sync tests

In-memory stand-ins for the Supabase-backed stores and a fake Google
Calendar service that keeps events in a dict.
"""

import itertools
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import httplib2
from googleapiclient.errors import HttpError

from clinic_sync.models.appointment import Appointment, to_columns


class InMemoryConnectionStore:
    def __init__(self, tokens: Dict[str, str] = None):
        self.tokens = dict(tokens or {})

    async def get_refresh_token(self, user_id: str) -> Optional[str]:
        return self.tokens.get(user_id)

    async def has_refresh_token(self, user_id: str) -> bool:
        return bool(self.tokens.get(user_id))

    async def store_refresh_token(self, user_id: str, refresh_token: str) -> None:
        self.tokens[user_id] = refresh_token

    async def list_user_ids(self) -> List[str]:
        return list(self.tokens)


class InMemoryStateStore:
    def __init__(self):
        self.states: Dict[str, tuple] = {}

    async def create(self, state: str, user_id: str) -> None:
        self.states[state] = (user_id, datetime.now(timezone.utc))

    async def consume(self, state: str):
        return self.states.pop(state, None)


class InMemoryAppointmentRepository:
    """Stores rows keyed by id, using the database column names."""

    def __init__(self, appointments: List[Appointment] = (), payments: Dict[str, List[float]] = None):
        self.rows: Dict[str, Dict[str, Any]] = {a.id: a.to_row() for a in appointments}
        self.payments = payments or {}
        self.writes: List[tuple] = []

    async def list_appointments(self, user_id: Optional[str] = None) -> List[Appointment]:
        return [
            Appointment.from_row(row) for row in self.rows.values()
            if user_id is None or row['user_id'] == user_id
        ]

    async def create_appointment(self, fields: Dict[str, Any]) -> Appointment:
        row = to_columns(fields)
        row.setdefault('id', str(uuid.uuid4()))
        self.rows[row['id']] = row
        self.writes.append(('create', row['id']))
        return Appointment.from_row(row)

    def _owned(self, appointment_id: str, user_id: Optional[str]) -> bool:
        row = self.rows.get(appointment_id)
        return row is not None and (user_id is None or row.get('user_id') == user_id)

    async def update_appointment(self, appointment_id: str, fields: Dict[str, Any], user_id: Optional[str] = None) -> None:
        if self._owned(appointment_id, user_id):
            self.rows[appointment_id].update(to_columns(fields))
            self.writes.append(('update', appointment_id))

    async def delete_appointment(self, appointment_id: str, user_id: Optional[str] = None) -> None:
        if self._owned(appointment_id, user_id):
            self.rows.pop(appointment_id)
            self.writes.append(('delete', appointment_id))

    async def list_payment_amounts(self, appointment_id: str) -> List[float]:
        return list(self.payments.get(appointment_id, []))


class FakeCalendarService:
    """
    Mimics the discovery client's ``service.events().<op>(...).execute()`` chain.

    ``fail_with`` maps an operation name to an exception raised on execute.
    """

    def __init__(self):
        self.events: Dict[str, Dict[str, Any]] = {}
        self.fail_with: Dict[str, Exception] = {}
        self.calls: List[tuple] = []
        self._ids = itertools.count(1)
        self._clock = itertools.count(1)

    def _request(self, op: str, result_fn):
        request = MagicMock()

        def _execute():
            if op in self.fail_with:
                raise self.fail_with[op]
            return result_fn()

        request.execute.side_effect = _execute
        return request

    def _touch(self, event: Dict[str, Any]) -> Dict[str, Any]:
        event['updated'] = f"2026-01-01T00:00:{next(self._clock):02d}Z"
        return event

    def put(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Add or replace an event as if edited in the Google UI."""
        event = dict(event)
        event.setdefault('status', 'confirmed')
        self.events[event['id']] = self._touch(event)
        return event

    def events_resource(self):
        resource = MagicMock()
        resource.list.side_effect = self._list
        resource.insert.side_effect = self._insert
        resource.update.side_effect = self._update
        resource.delete.side_effect = self._delete
        return resource

    def _list(self, **params):
        self.calls.append(('list', params))
        return self._request('list', lambda: {'items': [dict(e) for e in self.events.values()]})

    def _insert(self, calendarId, body):
        self.calls.append(('insert', body))

        def _run():
            event_id = f"evt-{next(self._ids)}"
            return self.put({**body, 'id': event_id})

        return self._request('insert', _run)

    def _update(self, calendarId, eventId, body):
        self.calls.append(('update', eventId, body))
        return self._request('update', lambda: self.put({**body, 'id': eventId}))

    def _delete(self, calendarId, eventId):
        self.calls.append(('delete', eventId))

        def _run():
            self.events.pop(eventId)
            return ''

        return self._request('delete', _run)


def make_appointment(**overrides) -> Appointment:
    fields = {
        'id': 'appt-1',
        'user_id': 'user-1',
        'appointment_type': 'patient',
        'patient_id': 'pat-1',
        'patient_name': 'Ana Pérez',
        'treatment': 'Limpieza',
        'fee': 10000,
        'deposit': 2000,
        'date': '2026-03-10',
        'start_time': '10:00',
        'end_time': '11:00',
        'duration': 60,
        'notes': 'Traer radiografía',
    }
    fields.update(overrides)
    return Appointment(**fields)


def http_error(status: int, reason: str = None) -> HttpError:
    """HttpError as raised by the discovery client for a given status."""
    body = {'error': {'code': status, 'message': 'error'}}
    if reason:
        body['error']['errors'] = [{'reason': reason, 'message': 'error'}]
    return HttpError(httplib2.Response({'status': status}), json.dumps(body).encode('utf-8'))
