"""
Custom exceptions for the calendar sync backend.

Each error carries a stable ``code`` for API clients and the HTTP status
the routes answer with.
"""


class CalendarSyncError(Exception):
    """Base class for calendar connection and sync failures."""

    code = "calendar_error"
    status_code = 500

    def __init__(self, message: str = None):
        self.message = message or self.__class__.__doc__.strip()
        super().__init__(self.message)


# OAuth handshake -------------------------------------------------------------

class InvalidStateError(CalendarSyncError):
    """OAuth state is unknown, expired or already used."""

    code = "invalid_state"
    status_code = 400


class RefreshTokenMissingError(CalendarSyncError):
    """Google did not return a refresh token and none is on file."""

    code = "refresh_token_missing"
    status_code = 400


class AuthorizationFailedError(CalendarSyncError):
    """Authorization code exchange with Google failed."""

    code = "authorization_failed"
    status_code = 502


# Remote calendar calls -------------------------------------------------------

class CalendarNotConnectedError(CalendarSyncError):
    """No Google Calendar credential is stored for this user."""

    code = "not_connected"
    status_code = 409

    def __init__(self, user_id: str = None):
        self.user_id = user_id
        message = f"Google Calendar not connected for user {user_id}" if user_id else None
        super().__init__(message)


class UnauthenticatedError(CalendarSyncError):
    """Google rejected the access or refresh token; reconnect required."""

    code = "token_expired"
    status_code = 401


class ForbiddenError(CalendarSyncError):
    """Granted OAuth scopes do not allow this calendar operation."""

    code = "forbidden"
    status_code = 403


class RemoteEventNotFoundError(CalendarSyncError):
    """Remote calendar event does not exist."""

    code = "not_found"
    status_code = 404

    def __init__(self, event_id: str = None):
        self.event_id = event_id
        message = f"Remote event {event_id} not found" if event_id else None
        super().__init__(message)


class TransientError(CalendarSyncError):
    """Network failure or provider-side error; the next pass may succeed."""

    code = "transient"
    status_code = 503


class InvalidArgumentError(CalendarSyncError):
    """Sync request or event payload is malformed."""

    code = "invalid_argument"
    status_code = 422
