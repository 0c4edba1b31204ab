"""
Tests for the Supabase-backed connection, state and appointment stores
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from clinic_sync.calendar.connection_store import ConnectionStore, OAuthStateStore
from clinic_sync.services.appointment_repository import AppointmentRepository


def mock_result(data):
    result = MagicMock()
    result.data = data
    return result


@pytest.fixture
def mock_supabase_client():
    """Supabase client whose query builder chains back to itself"""
    client = MagicMock()
    query = client.table.return_value
    for method in ('select', 'eq', 'limit', 'insert', 'upsert', 'update', 'delete'):
        getattr(query, method).return_value = query
    query.execute.return_value = mock_result([])
    return client


def query_of(client):
    return client.table.return_value


class TestConnectionStore:

    @pytest.mark.asyncio
    async def test_get_refresh_token(self, mock_supabase_client):
        query_of(mock_supabase_client).execute.return_value = mock_result([{'refresh_token': 'r1'}])
        store = ConnectionStore(mock_supabase_client)

        assert await store.get_refresh_token('user-1') == 'r1'
        mock_supabase_client.table.assert_called_with('google_calendar_tokens')
        query_of(mock_supabase_client).eq.assert_called_with('user_id', 'user-1')

    @pytest.mark.asyncio
    async def test_missing_token(self, mock_supabase_client):
        store = ConnectionStore(mock_supabase_client)

        assert await store.get_refresh_token('user-1') is None
        assert await store.has_refresh_token('user-1') is False

    @pytest.mark.asyncio
    async def test_store_overwrites_by_user(self, mock_supabase_client):
        store = ConnectionStore(mock_supabase_client)

        await store.store_refresh_token('user-1', 'r2')

        row = query_of(mock_supabase_client).upsert.call_args.args[0]
        assert row['user_id'] == 'user-1'
        assert row['refresh_token'] == 'r2'
        assert query_of(mock_supabase_client).upsert.call_args.kwargs == {'on_conflict': 'user_id'}

    @pytest.mark.asyncio
    async def test_delete(self, mock_supabase_client):
        store = ConnectionStore(mock_supabase_client)

        await store.delete('user-1')

        query_of(mock_supabase_client).delete.assert_called_once()
        query_of(mock_supabase_client).eq.assert_called_with('user_id', 'user-1')

    @pytest.mark.asyncio
    async def test_list_user_ids(self, mock_supabase_client):
        query_of(mock_supabase_client).execute.return_value = mock_result([
            {'user_id': 'a'}, {'user_id': None}, {'user_id': 'b'},
        ])

        assert await ConnectionStore(mock_supabase_client).list_user_ids() == ['a', 'b']


class TestOAuthStateStore:

    @pytest.mark.asyncio
    async def test_consume_returns_deleted_row(self, mock_supabase_client):
        query_of(mock_supabase_client).execute.return_value = mock_result([
            {'state': 's', 'user_id': 'user-1', 'created_at': '2026-03-01T12:00:00Z'},
        ])

        user_id, created_at = await OAuthStateStore(mock_supabase_client).consume('s')

        assert user_id == 'user-1'
        assert created_at == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        query_of(mock_supabase_client).delete.assert_called_once()
        query_of(mock_supabase_client).eq.assert_called_with('state', 's')

    @pytest.mark.asyncio
    async def test_consume_unknown_state(self, mock_supabase_client):
        assert await OAuthStateStore(mock_supabase_client).consume('s') is None


class TestAppointmentRepository:

    @pytest.mark.asyncio
    async def test_create_maps_remote_event_column(self, mock_supabase_client):
        repository = AppointmentRepository(mock_supabase_client)

        created = await repository.create_appointment({
            'user_id': 'user-1',
            'appointment_type': 'personal',
            'title': 'Almuerzo',
            'date': '2026-03-12',
            'start_time': '13:00',
            'end_time': '14:00',
            'duration': 60,
            'remote_event_id': 'evt-1',
        })

        row = query_of(mock_supabase_client).insert.call_args.args[0]
        assert row['google_calendar_event_id'] == 'evt-1'
        assert row['id']
        assert created.remote_event_id == 'evt-1'
        assert created.id == row['id']

    @pytest.mark.asyncio
    async def test_update_writes_only_given_fields(self, mock_supabase_client):
        await AppointmentRepository(mock_supabase_client).update_appointment('a1', {'remote_event_id': None})

        row = query_of(mock_supabase_client).update.call_args.args[0]
        assert set(row) == {'google_calendar_event_id', 'updated_at'}
        query_of(mock_supabase_client).eq.assert_called_with('id', 'a1')

    @pytest.mark.asyncio
    async def test_payment_amounts_completed_only(self, mock_supabase_client):
        query_of(mock_supabase_client).execute.return_value = mock_result([
            {'amount': 1000, 'status': 'completed'},
            {'amount': 500, 'status': 'pending'},
            {'amount': '250.5', 'status': 'completed'},
        ])

        amounts = await AppointmentRepository(mock_supabase_client).list_payment_amounts('a1')

        assert amounts == [1000.0, 250.5]
        mock_supabase_client.table.assert_called_with('payments')

    @pytest.mark.asyncio
    async def test_writes_scoped_to_owner(self, mock_supabase_client):
        repository = AppointmentRepository(mock_supabase_client)

        await repository.update_appointment('a1', {'remote_event_id': 'evt-1'}, user_id='user-1')
        query_of(mock_supabase_client).eq.assert_called_with('user_id', 'user-1')

        query_of(mock_supabase_client).eq.reset_mock()
        await repository.delete_appointment('a1', user_id='user-1')
        query_of(mock_supabase_client).eq.assert_any_call('id', 'a1')
        query_of(mock_supabase_client).eq.assert_called_with('user_id', 'user-1')
