"""
Google Calendar connection state per user.

The state is recomputed on every read from two inputs: whether a refresh
token is on file, and the outcome of the most recent remote call. Only the
last outcome is kept in memory; after a restart every user with a token
reads as connected until a call says otherwise.
"""

import logging
from typing import Dict

from ..models.calendar import ConnectionState
from .connection_store import ConnectionStore

logger = logging.getLogger(__name__)


def compute_state(has_credential: bool, last_call_unauthenticated: bool) -> ConnectionState:
    if not has_credential:
        return ConnectionState.DISCONNECTED
    if last_call_unauthenticated:
        return ConnectionState.TOKEN_EXPIRED
    return ConnectionState.CONNECTED


class ConnectionMonitor:
    def __init__(self, store: ConnectionStore):
        self.store = store
        self._unauthenticated: Dict[str, bool] = {}

    def record_success(self, user_id: str) -> None:
        if self._unauthenticated.pop(user_id, False):
            logger.info(f"Google Calendar connection restored for user {user_id}")

    def record_unauthenticated(self, user_id: str) -> None:
        if not self._unauthenticated.get(user_id):
            logger.warning(f"Google Calendar token expired for user {user_id}")
        self._unauthenticated[user_id] = True

    def record_connected(self, user_id: str) -> None:
        """A fresh credential was stored by the OAuth callback."""
        self._unauthenticated.pop(user_id, None)

    async def get_state(self, user_id: str) -> ConnectionState:
        has_credential = await self.store.has_refresh_token(user_id)
        return compute_state(has_credential, self._unauthenticated.get(user_id, False))
