"""
OAuth Manager for Google Calendar
Handles the authorization redirect handshake and refresh token storage
"""

import asyncio
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
from urllib.parse import urlencode

import aiohttp

from .. import config
from ..exceptions import (
    AuthorizationFailedError,
    InvalidStateError,
    RefreshTokenMissingError,
)
from .connection_monitor import ConnectionMonitor
from .connection_store import ConnectionStore, OAuthStateStore

logger = logging.getLogger(__name__)

TOKEN_EXCHANGE_TIMEOUT = 15  # seconds


class CalendarOAuthManager:
    """
    Manages the Google OAuth flow for calendar access.

    A state record moves through requested (stored by begin_authorization),
    authorizing (consumed by the callback) and completed or failed (the
    outcome of the code exchange). Each step depends only on the stored
    state plus the one input Google sends back.
    """

    def __init__(
        self,
        connections: ConnectionStore,
        states: OAuthStateStore,
        monitor: Optional[ConnectionMonitor] = None,
        client_id: str = None,
        client_secret: str = None,
        state_ttl: timedelta = None,
    ):
        self.connections = connections
        self.states = states
        self.monitor = monitor
        self.google_config = {
            'client_id': client_id or config.GOOGLE_CLIENT_ID,
            'client_secret': client_secret or config.GOOGLE_CLIENT_SECRET,
            'auth_uri': config.GOOGLE_AUTH_URI,
            'token_uri': config.GOOGLE_TOKEN_URI,
            'scopes': list(config.CALENDAR_SCOPES),
        }
        self.state_ttl = state_ttl or timedelta(minutes=config.OAUTH_STATE_TTL_MINUTES)

    async def begin_authorization(
        self,
        user_id: str,
        redirect_uri: str,
        force_consent: bool = True
    ) -> str:
        """
        Start the Google Calendar OAuth flow for a user.

        Args:
            user_id: Application user the credential will belong to
            redirect_uri: Callback URL registered with Google
            force_consent: Ask Google to show the consent screen so a new
                refresh token is issued

        Returns:
            OAuth authorization URL
        """
        state = secrets.token_urlsafe(32)
        await self.states.create(state, user_id)

        params = {
            'client_id': self.google_config['client_id'],
            'redirect_uri': redirect_uri,
            'response_type': 'code',
            'scope': ' '.join(self.google_config['scopes']),
            'state': state,
            'access_type': 'offline',
            'include_granted_scopes': 'true',
        }
        if force_consent:
            params['prompt'] = 'consent'

        logger.info(f"Initiated Google Calendar OAuth for user {user_id}")
        return f"{self.google_config['auth_uri']}?{urlencode(params)}"

    async def complete_authorization(self, code: str, state: str, redirect_uri: str) -> str:
        """
        Handle the OAuth callback.

        Args:
            code: Authorization code from Google
            state: State parameter issued by begin_authorization
            redirect_uri: Same redirect URI used to start the flow

        Returns:
            The user id the calendar was connected for

        Raises:
            InvalidStateError: state unknown, expired or already used
            AuthorizationFailedError: code exchange failed
            RefreshTokenMissingError: no refresh token issued and none on file
        """
        consumed = await self.states.consume(state)
        if consumed is None:
            logger.warning("OAuth callback with unknown or reused state")
            raise InvalidStateError()

        user_id, created_at = consumed
        if not user_id:
            raise InvalidStateError()
        if created_at and datetime.now(timezone.utc) - created_at > self.state_ttl:
            logger.warning(f"OAuth state for user {user_id} expired")
            raise InvalidStateError("OAuth state expired")

        tokens = await self._exchange_code(code, redirect_uri)

        refresh_token = tokens.get('refresh_token')
        if refresh_token:
            await self.connections.store_refresh_token(user_id, refresh_token)
        elif not await self.connections.has_refresh_token(user_id):
            logger.warning(f"Google did not issue a refresh token for user {user_id}")
            raise RefreshTokenMissingError()

        if self.monitor:
            self.monitor.record_connected(user_id)

        logger.info(f"Successfully connected Google Calendar for user {user_id}")
        return user_id

    async def _exchange_code(self, code: str, redirect_uri: str) -> Dict[str, Any]:
        """Exchange an authorization code for tokens."""
        try:
            timeout = aiohttp.ClientTimeout(total=TOKEN_EXCHANGE_TIMEOUT)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.google_config['token_uri'],
                    data={
                        'code': code,
                        'client_id': self.google_config['client_id'],
                        'client_secret': self.google_config['client_secret'],
                        'redirect_uri': redirect_uri,
                        'grant_type': 'authorization_code'
                    }
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise AuthorizationFailedError(f"Token exchange failed: {error_text}")

                    return await response.json()

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Token exchange request failed: {e}")
            raise AuthorizationFailedError(f"Token exchange failed: {e}") from e
