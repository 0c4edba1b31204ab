#!/usr/bin/env python3
"""
Standalone inbound calendar sync worker
Runs independently from the FastAPI web server

Usage:
    python run_worker.py [--once]

Environment Variables:
    SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY - appointment and token storage
    GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET - OAuth client for token refresh
    CALENDAR_SYNC_INTERVAL_MINUTES - pass interval (default 5)
"""
import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv

load_dotenv()

from clinic_sync.utils.logging_config import configure_logging  # noqa: E402

configure_logging()
logger = logging.getLogger(__name__)


async def main(run_once: bool = False):
    from clinic_sync.dependencies import get_calendar_services
    from clinic_sync.workers.calendar_sync_worker import CalendarSyncWorker

    services = get_calendar_services()
    worker = CalendarSyncWorker(services.reconciler, services.connections, startup_delay_seconds=0)

    if run_once:
        stats = await worker.run_once()
        logger.info(f"Single pass finished: {stats}")
        return

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    worker.start()
    logger.info("Worker running, press Ctrl+C to stop")
    await stop_event.wait()
    worker.stop()


if __name__ == "__main__":
    asyncio.run(main(run_once="--once" in sys.argv[1:]))
