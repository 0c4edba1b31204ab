"""
Google Calendar API client.

Wraps the four event operations the sync engine needs. Access tokens are
minted from the stored refresh token by google-auth and refreshed
transparently; API errors are translated into the sync error taxonomy.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .. import config
from ..exceptions import (
    CalendarNotConnectedError,
    CalendarSyncError,
    ForbiddenError,
    InvalidArgumentError,
    RemoteEventNotFoundError,
    TransientError,
    UnauthenticatedError,
)
from ..utils.timezone_utils import to_rfc3339
from .connection_monitor import ConnectionMonitor
from .connection_store import ConnectionStore

logger = logging.getLogger(__name__)

PAGE_SIZE = 250
RATE_LIMIT_REASONS = {'rateLimitExceeded', 'userRateLimitExceeded', 'quotaExceeded'}


def _error_reason(error: HttpError) -> Optional[str]:
    """First error reason reported by the API, e.g. 'rateLimitExceeded'."""
    details = getattr(error, 'error_details', None)
    if isinstance(details, list):
        for detail in details:
            if isinstance(detail, dict) and detail.get('reason'):
                return detail['reason']
    try:
        payload = json.loads(error.content.decode('utf-8'))
        return payload['error']['errors'][0]['reason']
    except (AttributeError, ValueError, KeyError, IndexError, TypeError):
        return None


def translate_error(error: Exception, event_id: str = None) -> Optional[CalendarSyncError]:
    """
    Map a Google client exception onto the sync error taxonomy.

    Returns None for exceptions that are not calendar API failures.
    """
    if isinstance(error, HttpError):
        status = error.resp.status
        if status == 401:
            return UnauthenticatedError(str(error))
        if status == 403:
            if _error_reason(error) in RATE_LIMIT_REASONS:
                return TransientError(str(error))
            return ForbiddenError(str(error))
        if status in (404, 410):
            return RemoteEventNotFoundError(event_id)
        if status == 400:
            return InvalidArgumentError(str(error))
        if status == 429 or status >= 500:
            return TransientError(str(error))
        return CalendarSyncError(str(error))
    if isinstance(error, RefreshError):
        return UnauthenticatedError(f"Token refresh rejected: {error}")
    if isinstance(error, (TransportError, httplib2.HttpLib2Error, OSError)):
        return TransientError(f"Network error: {error}")
    return None


class GoogleCalendarClient:
    """Event operations against one Google calendar per user"""

    def __init__(
        self,
        connections: ConnectionStore,
        monitor: Optional[ConnectionMonitor] = None,
        calendar_id: str = None,
        service_factory: Callable[[Credentials], Any] = None,
    ):
        self.connections = connections
        self.monitor = monitor
        self.calendar_id = calendar_id or config.GOOGLE_CALENDAR_ID
        self.service_factory = service_factory or self._build_service
        # user_id -> credentials, reused so access tokens live until expiry
        self._credentials: Dict[str, Credentials] = {}

    @staticmethod
    def _build_service(credentials: Credentials):
        return build('calendar', 'v3', credentials=credentials, cache_discovery=False)

    async def _get_credentials(self, user_id: str) -> Credentials:
        refresh_token = await self.connections.get_refresh_token(user_id)
        if not refresh_token:
            self._credentials.pop(user_id, None)
            raise CalendarNotConnectedError(user_id)

        cached = self._credentials.get(user_id)
        if cached is not None and cached.refresh_token == refresh_token:
            return cached

        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=config.GOOGLE_TOKEN_URI,
            client_id=config.GOOGLE_CLIENT_ID,
            client_secret=config.GOOGLE_CLIENT_SECRET,
            scopes=list(config.CALENDAR_SCOPES),
        )
        self._credentials[user_id] = credentials
        return credentials

    async def _execute(self, user_id: str, make_request: Callable[[Any], Any], event_id: str = None) -> Any:
        """Run one API request in a worker thread and record its outcome."""
        credentials = await self._get_credentials(user_id)

        def _run():
            service = self.service_factory(credentials)
            return make_request(service).execute()

        try:
            result = await asyncio.to_thread(_run)
        except Exception as e:
            error = translate_error(e, event_id)
            if error is None:
                raise
            if isinstance(error, UnauthenticatedError):
                self._credentials.pop(user_id, None)
                if self.monitor:
                    self.monitor.record_unauthenticated(user_id)
            raise error from e

        if self.monitor:
            self.monitor.record_success(user_id)
        return result

    async def list_events(
        self,
        user_id: str,
        time_min: Union[datetime, str],
        time_max: Union[datetime, str]
    ) -> List[Dict[str, Any]]:
        """
        Events overlapping [time_min, time_max), cancelled ones included,
        ordered by last update.
        """
        if isinstance(time_min, datetime):
            time_min = to_rfc3339(time_min)
        if isinstance(time_max, datetime):
            time_max = to_rfc3339(time_max)

        events: List[Dict[str, Any]] = []
        page_token = None
        while True:
            params = {
                'calendarId': self.calendar_id,
                'timeMin': time_min,
                'timeMax': time_max,
                'singleEvents': True,
                'showDeleted': True,
                'orderBy': 'updated',
                'maxResults': PAGE_SIZE,
            }
            if page_token:
                params['pageToken'] = page_token

            page = await self._execute(user_id, lambda service: service.events().list(**params))
            events.extend(page.get('items', []))
            page_token = page.get('nextPageToken')
            if not page_token:
                break

        # Pages are ordered individually; keep the whole listing in update order
        events.sort(key=lambda event: event.get('updated') or '')
        logger.debug(f"Listed {len(events)} Google Calendar events for user {user_id}")
        return events

    async def create_event(self, user_id: str, draft: Dict[str, Any]) -> str:
        created = await self._execute(
            user_id,
            lambda service: service.events().insert(calendarId=self.calendar_id, body=draft)
        )
        return created['id']

    async def update_event(self, user_id: str, event_id: str, draft: Dict[str, Any]) -> str:
        updated = await self._execute(
            user_id,
            lambda service: service.events().update(
                calendarId=self.calendar_id, eventId=event_id, body=draft
            ),
            event_id=event_id
        )
        return updated.get('id', event_id)

    async def delete_event(self, user_id: str, event_id: str) -> bool:
        """
        Delete a remote event.

        Returns:
            True if deleted, False if it was already gone
        """
        try:
            await self._execute(
                user_id,
                lambda service: service.events().delete(calendarId=self.calendar_id, eventId=event_id),
                event_id=event_id
            )
        except RemoteEventNotFoundError:
            logger.info(f"Google Calendar event {event_id} already deleted")
            return False
        return True
