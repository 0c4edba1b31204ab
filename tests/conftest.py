"""
Shared fixtures for the calendar sync tests
"""

from unittest.mock import MagicMock

import pytest

from clinic_sync.calendar.calendar_client import GoogleCalendarClient
from clinic_sync.calendar.connection_monitor import ConnectionMonitor
from tests.fixtures import (
    FakeCalendarService,
    InMemoryAppointmentRepository,
    InMemoryConnectionStore,
    InMemoryStateStore,
)


@pytest.fixture
def connections():
    return InMemoryConnectionStore({'user-1': 'refresh-1'})


@pytest.fixture
def state_store():
    return InMemoryStateStore()


@pytest.fixture
def monitor(connections):
    return ConnectionMonitor(connections)


@pytest.fixture
def calendar_service():
    return FakeCalendarService()


@pytest.fixture
def calendar_client(connections, monitor, calendar_service):
    service = MagicMock()
    service.events.side_effect = calendar_service.events_resource
    return GoogleCalendarClient(connections, monitor=monitor, service_factory=lambda credentials: service)


@pytest.fixture
def repository():
    return InMemoryAppointmentRepository()
