"""
Console Sync Scheduler - Background Scheduler Service

Main entry point for the scheduler service. Runs APScheduler jobs:
- periodic full app sync requests, published to the sync queue
- daily DSL version retention

IMPORTANT: This container MUST run as a single instance (replicas: 1)
because APScheduler jobs should not run in parallel across multiple instances.
"""

import asyncio
import logging
import signal
import sys
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from src.config import get_settings
from src.core.database import close_db, init_db
from src.jobs.consumers.app_sync import publish_sync_request
from src.jobs.rabbitmq import rabbitmq
from src.jobs.schedulers.dsl_retention import cleanup_old_dsl_versions

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Suppress noisy third-party loggers
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)
logging.getLogger("aiormq").setLevel(logging.WARNING)
logging.getLogger("aio_pika").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def request_scheduled_sync() -> None:
    """Queue a full sync; the request id changes every run so it is never deduplicated."""
    try:
        await publish_sync_request(
            metadata={
                "request_id": f"scheduled-{datetime.now(timezone.utc).isoformat()}",
                "source": "scheduler",
            }
        )
    except Exception as e:
        logger.error(f"Failed to queue scheduled app sync: {e}", exc_info=True)


class Scheduler:
    """Background scheduler service."""

    def __init__(self):
        self.settings = get_settings()
        self.running = False
        self._shutdown_event = asyncio.Event()
        self._scheduler: AsyncIOScheduler | None = None

    async def start(self) -> None:
        """Start the scheduler."""
        self.running = True
        logger.info("Starting Console Sync Scheduler...")
        logger.info(f"Environment: {self.settings.environment}")

        logger.info("Initializing database connection...")
        await init_db()
        logger.info("Database connection established")

        logger.info("Starting APScheduler...")
        self._start_scheduler()

        logger.info("Console Sync Scheduler started")
        logger.info("Running... (Ctrl+C to stop)")

        await self._shutdown_event.wait()

    def _start_scheduler(self) -> None:
        """Start APScheduler with all scheduled jobs."""
        scheduler = AsyncIOScheduler()

        misfire_options = {
            "misfire_grace_time": 60 * 10,  # 10 minute grace period
            "coalesce": True,  # Combine missed runs into one
        }

        interval = self.settings.scheduled_sync_interval_minutes
        if interval > 0:
            scheduler.add_job(
                request_scheduled_sync,
                IntervalTrigger(minutes=interval),
                id="scheduled_app_sync",
                name="Queue full app sync",
                replace_existing=True,
                next_run_time=datetime.now(),  # Run immediately at startup
                **misfire_options,
            )
            logger.info(f"App sync job scheduled (every {interval} min)")
        else:
            logger.info("Scheduled app sync disabled")

        # DSL retention - daily at 3:00 AM UTC
        scheduler.add_job(
            cleanup_old_dsl_versions,
            CronTrigger(hour=3, minute=0),
            id="dsl_retention",
            name=f"Trim DSL history to {self.settings.dsl_retention_keep} versions per app",
            replace_existing=True,
            **misfire_options,
        )
        logger.info("DSL retention job scheduled (daily at 3:00 AM)")

        scheduler.start()
        self._scheduler = scheduler
        logger.info("APScheduler started with scheduled jobs")

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        logger.info("Stopping Console Sync Scheduler...")
        self.running = False

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            logger.info("APScheduler stopped")

        await rabbitmq.close()
        await close_db()
        logger.info("Database connections closed")

        self._shutdown_event.set()
        logger.info("Console Sync Scheduler stopped")

    def handle_signal(self, signum: int, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, initiating shutdown...")
        asyncio.create_task(self.stop())


async def main() -> None:
    """Main entry point."""
    scheduler = Scheduler()

    def make_handler(s: signal.Signals) -> None:
        scheduler.handle_signal(int(s), None)

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, make_handler, signal.SIGINT)
    loop.add_signal_handler(signal.SIGTERM, make_handler, signal.SIGTERM)

    try:
        await scheduler.start()
    except Exception as e:
        logger.error(f"Scheduler error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
