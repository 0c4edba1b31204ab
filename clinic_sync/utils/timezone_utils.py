"""
Timezone Utilities for calendar sync

Appointments store wall-clock date and time in the clinic timezone. Google
Calendar events are written with that wall-clock time plus an explicit
timeZone (never converted to UTC) and read back as offset timestamps that
are converted into the clinic timezone.
"""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo
from typing import Dict, Optional, Tuple
import logging

from dateutil import parser
from dateutil.relativedelta import relativedelta

from ..config import CALENDAR_TIMEZONE

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def now_in_timezone(timezone_str: str = CALENDAR_TIMEZONE) -> datetime:
    """Get current time in specified timezone."""
    return datetime.now(ZoneInfo(timezone_str))


def to_event_time(date_str: str, time_str: str, timezone_str: str = CALENDAR_TIMEZONE) -> Dict[str, str]:
    """
    Build a Google Calendar start/end object from wall-clock values.

    Args:
        date_str: "YYYY-MM-DD" (an ISO timestamp is truncated to its date)
        time_str: "HH:MM"
        timezone_str: IANA timezone sent alongside the local time

    Returns:
        {'dateTime': 'YYYY-MM-DDTHH:MM:00', 'timeZone': timezone_str}
    """
    date_only = date_str.split('T')[0]
    local = datetime.strptime(f"{date_only} {time_str}", f"{DATE_FORMAT} {TIME_FORMAT}")
    return {
        'dateTime': local.strftime("%Y-%m-%dT%H:%M:%S"),
        'timeZone': timezone_str,
    }


def parse_event_time(value: Dict[str, str], timezone_str: str = CALENDAR_TIMEZONE) -> Optional[datetime]:
    """
    Parse a Google Calendar start/end object into clinic-local time.

    Timed events carry ``dateTime`` (with offset); all-day events carry
    ``date`` and map to local midnight. Returns None when neither is present.
    """
    if not value:
        return None

    tz = ZoneInfo(timezone_str)
    if value.get('dateTime'):
        parsed = parser.isoparse(value['dateTime'])
        if parsed.tzinfo is None:
            # A bare local time is interpreted in the event's own timezone
            parsed = parsed.replace(tzinfo=ZoneInfo(value.get('timeZone') or timezone_str))
        return parsed.astimezone(tz)
    if value.get('date'):
        return datetime.strptime(value['date'], DATE_FORMAT).replace(tzinfo=tz)
    return None


def split_event_range(
    start: datetime,
    end: datetime
) -> Tuple[str, str, str, int]:
    """
    Turn a local start/end pair into appointment temporal fields.

    Appointments live on a single day, so an end past midnight is clamped
    to 23:59 of the start day.

    Returns:
        (date, start_time, end_time, duration_minutes)
    """
    day_end = start.replace(hour=23, minute=59, second=0, microsecond=0)
    if end > day_end:
        end = day_end
    if end < start:
        end = start

    start_time = start.strftime(TIME_FORMAT)
    end_time = end.strftime(TIME_FORMAT)
    return start.strftime(DATE_FORMAT), start_time, end_time, minutes_between(start_time, end_time)


def minutes_between(start_time: str, end_time: str) -> int:
    """Duration in minutes between two "HH:MM" values on the same day."""
    start = datetime.strptime(start_time, TIME_FORMAT)
    end = datetime.strptime(end_time, TIME_FORMAT)
    return int((end - start) / timedelta(minutes=1))


def sync_window(
    now: Optional[datetime] = None,
    months_back: int = 1,
    months_ahead: int = 6
) -> Tuple[datetime, datetime]:
    """
    Reconciliation window [now - months_back, now + months_ahead).

    Args:
        now: Reference time (timezone-aware); defaults to the current time
    """
    now = now or now_in_timezone()
    return now - relativedelta(months=months_back), now + relativedelta(months=months_ahead)


def to_rfc3339(dt: datetime) -> str:
    """RFC 3339 timestamp as the Calendar API expects for timeMin/timeMax."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(CALENDAR_TIMEZONE))
    return dt.isoformat()
