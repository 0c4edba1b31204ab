"""
Application Configuration
Centralized configuration for Supabase, Google OAuth and the sync worker
"""
import os
from typing import Optional

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY")
SUPABASE_SCHEMA = os.getenv("SUPABASE_SCHEMA", "public")

# Table names
TOKEN_TABLE = "google_calendar_tokens"
STATE_TABLE = "google_calendar_oauth_states"
APPOINTMENTS_TABLE = "appointments"
PAYMENTS_TABLE = "payments"

# Google OAuth
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI")
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]
OAUTH_STATE_TTL_MINUTES = int(os.getenv("OAUTH_STATE_TTL_MINUTES", "10"))

# Public URLs
APP_BASE_URL = os.getenv("APP_BASE_URL")
FRONTEND_URL = os.getenv("FRONTEND_URL")
CALLBACK_PATH = "/api/google/calendar/callback"

# Calendar
GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID", "primary")
CALENDAR_TIMEZONE = os.getenv("CALENDAR_TIMEZONE", "America/Argentina/Buenos_Aires")

# Inbound sync worker
CALENDAR_SYNC_ENABLED = os.getenv("CALENDAR_SYNC_ENABLED", "true").lower() == "true"
CALENDAR_SYNC_INTERVAL_MINUTES = int(os.getenv("CALENDAR_SYNC_INTERVAL_MINUTES", "5"))
CALENDAR_SYNC_STARTUP_DELAY_SECONDS = int(os.getenv("CALENDAR_SYNC_STARTUP_DELAY_SECONDS", "30"))

# Reconciliation window, relative to now
SYNC_WINDOW_MONTHS_BACK = 1
SYNC_WINDOW_MONTHS_AHEAD = 6


def get_base_url(headers: Optional[dict] = None) -> str:
    """
    Resolve the public base URL of this service.

    APP_BASE_URL wins; otherwise it is rebuilt from the request's
    forwarded protocol and host headers.
    """
    if APP_BASE_URL:
        return APP_BASE_URL.rstrip("/")
    headers = headers or {}
    host = headers.get("host", "")
    proto = headers.get("x-forwarded-proto", "http")
    return f"{proto}://{host}"


def get_redirect_uri(headers: Optional[dict] = None) -> str:
    """OAuth redirect URI registered with Google for this deployment."""
    if GOOGLE_REDIRECT_URI:
        return GOOGLE_REDIRECT_URI
    return f"{get_base_url(headers)}{CALLBACK_PATH}"


def get_frontend_url(headers: Optional[dict] = None) -> str:
    """Base URL of the browser app that hosts the callback landing pages."""
    if FRONTEND_URL:
        return FRONTEND_URL.rstrip("/")
    return get_base_url(headers)
