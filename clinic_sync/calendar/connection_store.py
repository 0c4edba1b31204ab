"""
Connection and OAuth state storage for Google Calendar.

One refresh token per application user, plus the short-lived OAuth state
records that guard the redirect handshake. Both live in Supabase tables and
are accessed through a thread so the sync client never blocks the loop.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from supabase import Client

from .. import config
from ..database import get_supabase_client

logger = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionStore:
    """Refresh credential per user, keyed by user id"""

    def __init__(self, supabase: Client = None, table: str = config.TOKEN_TABLE):
        self.supabase = supabase or get_supabase_client()
        self.table = table

    async def get_refresh_token(self, user_id: str) -> Optional[str]:
        def _execute():
            result = self.supabase.table(self.table).select('refresh_token').eq(
                'user_id', user_id
            ).limit(1).execute()
            if not result.data:
                return None
            return result.data[0].get('refresh_token') or None

        return await asyncio.to_thread(_execute)

    async def has_refresh_token(self, user_id: str) -> bool:
        return bool(await self.get_refresh_token(user_id))

    async def store_refresh_token(self, user_id: str, refresh_token: str) -> None:
        """Store or overwrite the user's refresh token."""
        def _execute():
            self.supabase.table(self.table).upsert({
                'user_id': user_id,
                'refresh_token': refresh_token,
                'updated_at': _utcnow_iso(),
            }, on_conflict='user_id').execute()

        await asyncio.to_thread(_execute)
        logger.info(f"Stored Google Calendar refresh token for user {user_id}")

    async def delete(self, user_id: str) -> None:
        def _execute():
            self.supabase.table(self.table).delete().eq('user_id', user_id).execute()

        await asyncio.to_thread(_execute)
        logger.info(f"Removed Google Calendar connection for user {user_id}")

    async def list_user_ids(self) -> List[str]:
        """Users with a stored credential (the worker's sync targets)."""
        def _execute():
            result = self.supabase.table(self.table).select('user_id').execute()
            return [row['user_id'] for row in result.data or [] if row.get('user_id')]

        return await asyncio.to_thread(_execute)


class OAuthStateStore:
    """Single-use OAuth state tokens"""

    def __init__(self, supabase: Client = None, table: str = config.STATE_TABLE):
        self.supabase = supabase or get_supabase_client()
        self.table = table

    async def create(self, state: str, user_id: str) -> None:
        def _execute():
            self.supabase.table(self.table).insert({
                'state': state,
                'user_id': user_id,
                'created_at': _utcnow_iso(),
            }).execute()

        await asyncio.to_thread(_execute)

    async def consume(self, state: str) -> Optional[Tuple[str, Optional[datetime]]]:
        """
        Delete the state record and return (user_id, created_at).

        The delete returns the removed rows, so two concurrent callbacks
        with the same state cannot both see it. Returns None if the state
        is unknown or was already consumed.
        """
        def _execute():
            result = self.supabase.table(self.table).delete().eq('state', state).execute()
            return result.data or []

        rows = await asyncio.to_thread(_execute)
        if not rows:
            return None

        row = rows[0]
        created_at = row.get('created_at')
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at.replace('Z', '+00:00'))
        return row.get('user_id'), created_at
