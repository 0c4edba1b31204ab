"""
Calendar sync types.

Remote events are kept as the plain dicts the Google Calendar API returns;
these helpers read the parts the sync engine relies on.
"""
from enum import Enum
from typing import Any, Dict


class SyncAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    TOKEN_EXPIRED = "token_expired"


# Keys written to extendedProperties.private on every outbound event
META_APPOINTMENT_ID = "appointmentId"
META_USER_ID = "userId"
META_APPOINTMENT_TYPE = "appointmentType"
META_PATIENT_ID = "patientId"
META_PATIENT_NAME = "patientName"

EVENT_STATUS_CANCELLED = "cancelled"


def private_metadata(event: Dict[str, Any]) -> Dict[str, str]:
    """The event's private extended properties (empty dict if stripped)."""
    return (event.get('extendedProperties') or {}).get('private') or {}


def is_cancelled(event: Dict[str, Any]) -> bool:
    return event.get('status') == EVENT_STATUS_CANCELLED
