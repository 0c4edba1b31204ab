"""
Wiring for the calendar sync components.

One instance of each component per process; the monitor's in-memory state
and the reconciler's single-flight latch depend on that.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .calendar.calendar_client import GoogleCalendarClient
from .calendar.connection_monitor import ConnectionMonitor
from .calendar.connection_store import ConnectionStore, OAuthStateStore
from .calendar.oauth_manager import CalendarOAuthManager
from .services.appointment_repository import AppointmentRepository
from .services.inbound_sync import InboundReconciler
from .services.outbound_sync import OutboundSync

logger = logging.getLogger(__name__)


@dataclass
class CalendarServices:
    connections: ConnectionStore
    monitor: ConnectionMonitor
    oauth: CalendarOAuthManager
    client: GoogleCalendarClient
    repository: AppointmentRepository
    outbound: OutboundSync
    reconciler: InboundReconciler


def build_calendar_services(
    connections: ConnectionStore = None,
    states: OAuthStateStore = None,
    repository: AppointmentRepository = None,
    client: GoogleCalendarClient = None
) -> CalendarServices:
    connections = connections or ConnectionStore()
    states = states or OAuthStateStore()
    repository = repository or AppointmentRepository()
    monitor = ConnectionMonitor(connections)
    if client is None:
        client = GoogleCalendarClient(connections, monitor=monitor)
    else:
        client.monitor = monitor

    return CalendarServices(
        connections=connections,
        monitor=monitor,
        oauth=CalendarOAuthManager(connections, states, monitor=monitor),
        client=client,
        repository=repository,
        outbound=OutboundSync(client, repository),
        reconciler=InboundReconciler(client, repository),
    )


_services: Optional[CalendarServices] = None


def get_calendar_services() -> CalendarServices:
    """Get or create the process-wide calendar services"""
    global _services
    if _services is None:
        _services = build_calendar_services()
        logger.info("Calendar sync services initialized")
    return _services
