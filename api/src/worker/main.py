"""
Console Sync Worker - Background Worker Service

Main entry point for the app sync worker. Consumes sync requests from
RabbitMQ and runs them against the database.

Can be scaled horizontally; duplicate in-flight messages are dropped via
Redis message locks.
"""

import asyncio
import logging
import signal
import sys

from src.config import get_settings
from src.core.database import close_db, init_db
from src.core.locks import get_message_lock_service
from src.jobs.consumers.app_sync import AppSyncConsumer
from src.jobs.rabbitmq import rabbitmq

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Suppress noisy third-party loggers
logging.getLogger("aiormq").setLevel(logging.WARNING)
logging.getLogger("aio_pika").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


class Worker:
    """Background worker running the app sync consumer."""

    def __init__(self):
        self.settings = get_settings()
        self.running = False
        self._shutdown_event = asyncio.Event()
        self._consumers: list[AppSyncConsumer] = []

    async def start(self) -> None:
        """Start the worker."""
        self.running = True
        logger.info("Starting Console Sync Worker...")
        logger.info(f"Environment: {self.settings.environment}")

        logger.info("Initializing database connection...")
        await init_db()
        logger.info("Database connection established")

        logger.info("Starting RabbitMQ consumers...")
        await self._start_consumers()

        logger.info("Console Sync Worker started")
        logger.info("Waiting for messages... (Ctrl+C to stop)")

        await self._shutdown_event.wait()

    async def _start_consumers(self) -> None:
        self._consumers = [AppSyncConsumer()]

        for consumer in self._consumers:
            try:
                await consumer.start()
                logger.info(f"Started consumer: {consumer.queue_name}")
            except Exception as e:
                logger.error(f"Failed to start consumer {consumer.queue_name}: {e}")
                raise

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        logger.info("Stopping Console Sync Worker...")
        self.running = False

        for consumer in self._consumers:
            try:
                await consumer.stop()
                logger.info(f"Stopped consumer: {consumer.queue_name}")
            except Exception as e:
                logger.error(f"Error stopping consumer {consumer.queue_name}: {e}")

        await rabbitmq.close()
        await get_message_lock_service().close()

        await close_db()
        logger.info("Database connections closed")

        self._shutdown_event.set()
        logger.info("Console Sync Worker stopped")

    def handle_signal(self, signum: int, frame) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, initiating shutdown...")
        asyncio.create_task(self.stop())


async def main() -> None:
    """Main entry point."""
    worker = Worker()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: worker.handle_signal(s, None))

    try:
        await worker.start()
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
