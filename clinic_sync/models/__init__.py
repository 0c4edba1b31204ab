from .appointment import Appointment, AppointmentType, AppointmentStatus
from .calendar import ConnectionState, SyncAction, private_metadata

__all__ = [
    'Appointment',
    'AppointmentType',
    'AppointmentStatus',
    'ConnectionState',
    'SyncAction',
    'private_metadata',
]
