"""
Application startup and shutdown lifecycle management.

Handles:
- Environment validation
- Calendar services wiring
- Inbound calendar sync worker start/stop
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import config
from .database import reset_clients
from .startup_validation import validate_or_exit

logger = logging.getLogger(__name__)


async def init_workers(app: FastAPI):
    """Start the inbound calendar sync worker."""
    if not config.CALENDAR_SYNC_ENABLED:
        logger.info("Calendar sync worker disabled (CALENDAR_SYNC_ENABLED=false)")
        return

    try:
        from .dependencies import get_calendar_services
        from .workers.calendar_sync_worker import CalendarSyncWorker

        services = get_calendar_services()
        worker = CalendarSyncWorker(services.reconciler, services.connections)
        worker.start()
        app.state.calendar_sync_worker = worker
        logger.info("✅ Calendar sync worker started")
    except Exception as e:
        logger.error(f"Failed to start calendar sync worker: {str(e)}")


async def stop_workers(app: FastAPI):
    """Stop background workers gracefully."""
    worker = getattr(app.state, 'calendar_sync_worker', None)
    if worker is None:
        return
    try:
        worker.stop()
        logger.info("✅ Calendar sync worker stopped")
    except Exception as e:
        logger.error(f"Error stopping calendar sync worker: {str(e)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle manager."""
    # === STARTUP ===
    logger.info("Starting Clinic Calendar Sync backend...")
    validate_or_exit()

    await init_workers(app)

    yield

    # === SHUTDOWN ===
    logger.info("Shutting down services...")
    await stop_workers(app)
    reset_clients()
    logger.info("Clinic Calendar Sync backend shutdown complete")
