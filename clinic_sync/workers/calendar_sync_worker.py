"""
Background worker for inbound Google Calendar reconciliation

Runs one reconciliation pass for every user with a stored calendar
credential on a fixed interval, plus once shortly after startup. Overlap
with foreground-triggered passes is handled by the reconciler's
single-flight latch; a tick that lands while a pass is running is dropped.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .. import config
from ..calendar.connection_store import ConnectionStore
from ..services.inbound_sync import InboundReconciler

logger = logging.getLogger(__name__)


class CalendarSyncWorker:
    """
    Scheduled inbound sync over all connected users
    """

    def __init__(
        self,
        reconciler: InboundReconciler,
        connections: ConnectionStore,
        interval_minutes: int = None,
        startup_delay_seconds: int = None
    ):
        self.reconciler = reconciler
        self.connections = connections
        self.interval_minutes = interval_minutes or config.CALENDAR_SYNC_INTERVAL_MINUTES
        self.startup_delay_seconds = (
            config.CALENDAR_SYNC_STARTUP_DELAY_SECONDS
            if startup_delay_seconds is None else startup_delay_seconds
        )
        self.scheduler = AsyncIOScheduler()
        self.is_running = False

        logger.info(f"Initialized CalendarSyncWorker with {self.interval_minutes} minute interval")

    def start(self):
        """Start the scheduled sync worker"""
        if self.is_running:
            return

        self.scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id='calendar_inbound_sync',
            name='Calendar Inbound Sync',
            misfire_grace_time=60,
            coalesce=True,
            max_instances=1
        )

        # Run once on startup, after health checks have had a chance to pass
        self.scheduler.add_job(
            self.run_once,
            trigger='date',
            run_date=datetime.now() + timedelta(seconds=self.startup_delay_seconds),
            id='calendar_inbound_sync_startup',
            name='Calendar Inbound Sync (Startup)'
        )

        self.scheduler.start()
        self.is_running = True
        logger.info(f"Calendar sync worker started (runs every {self.interval_minutes} minutes)")

    def stop(self):
        """Stop the scheduled sync worker"""
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Calendar sync worker stopped")

    async def run_once(self) -> Optional[Dict[str, Any]]:
        """
        One pass over every connected user.

        Returns:
            Pass statistics, or None when the pass was skipped or failed
        """
        if self.reconciler.is_running:
            logger.info("Skipping calendar sync tick, previous pass still running")
            return None

        start_time = datetime.now()
        try:
            user_ids = await self.connections.list_user_ids()
        except Exception as e:
            logger.error(f"Could not list connected calendar users: {e}", exc_info=True)
            return None

        if not user_ids:
            logger.debug("No users with Google Calendar connected")
            return {"users": 0, "failed": 0}

        results = await self.reconciler.run(user_ids)
        if results is None:
            return None

        failed = sum(1 for stats in results.values() if stats is None)
        duration = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Calendar sync worker completed: {len(results)} users, "
            f"{failed} failed in {duration:.2f}s"
        )
        return {"users": len(results), "failed": failed, "results": results}
