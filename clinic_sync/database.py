"""
Canonical Supabase client module.

This is the only module that calls create_client directly; everything else
goes through get_supabase_client().
"""
import logging
from typing import Dict

import httpx
from supabase import create_client, Client
from supabase.client import ClientOptions

from . import config

logger = logging.getLogger(__name__)

DEFAULT_DB_TIMEOUT = 30.0  # seconds
DEFAULT_CONNECT_TIMEOUT = 10.0  # seconds

# Cached clients per schema
_supabase_clients: Dict[str, Client] = {}


def _get_credentials() -> tuple:
    """Get Supabase credentials from configuration."""
    if not config.SUPABASE_URL or not config.SUPABASE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY/SERVICE_ROLE_KEY must be set")
    return config.SUPABASE_URL, config.SUPABASE_KEY


def _build_http_client() -> httpx.Client:
    """Build sync HTTP client with HTTP/1.1 and tight timeouts."""
    return httpx.Client(
        http2=False,
        timeout=httpx.Timeout(
            connect=DEFAULT_CONNECT_TIMEOUT,
            read=DEFAULT_DB_TIMEOUT,
            write=DEFAULT_DB_TIMEOUT,
            pool=DEFAULT_DB_TIMEOUT
        ),
        follow_redirects=True
    )


def get_supabase_client(schema: str = None) -> Client:
    """
    Create or get cached Supabase client for the given schema.

    Args:
        schema: Database schema (defaults to SUPABASE_SCHEMA)

    Returns:
        Configured Supabase client
    """
    schema = schema or config.SUPABASE_SCHEMA

    if schema in _supabase_clients:
        return _supabase_clients[schema]

    supabase_url, supabase_key = _get_credentials()

    options = ClientOptions(
        schema=schema,
        auto_refresh_token=False,  # service-role usage, no user session
        persist_session=False
    )
    client = create_client(supabase_url, supabase_key, options=options)

    try:
        http_client = _build_http_client()
        if hasattr(client, '_postgrest') and hasattr(client._postgrest, 'session'):
            client._postgrest.session = http_client
    except Exception as e:
        logger.warning(f"Could not apply HTTP optimization: {e}")

    _supabase_clients[schema] = client
    logger.info(f"Created Supabase client for schema: {schema}")
    return client


def reset_clients() -> None:
    """Drop cached clients (used on shutdown and in tests)."""
    _supabase_clients.clear()
