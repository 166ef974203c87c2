"""
App Sync Consumer

Processes app sync requests from the sync queue. Each message runs one
AppSyncService.sync_apps() over the message's scope in its own session.

Duplicate deliveries of a message that is still being processed are
dropped: the consumer claims the message id in Redis before running it.
"""

import logging
import time
from typing import Any

from src.config import get_settings
from src.core.database import get_db_context
from src.core.locks import MessageLockService, get_message_lock_service
from src.jobs.rabbitmq import BaseConsumer, publish_message
from src.models.contracts.messages import SyncAppsMessage
from src.models.contracts.sync import SyncStats
from src.services.app_sync import AppSyncService

logger = logging.getLogger(__name__)


async def handle_sync_message(message: SyncAppsMessage) -> SyncStats:
    """
    Run the sync a message asks for.

    Raises:
        Exception: any failure outside the per-app and per-account
            boundaries, so the broker can dead-letter the message
    """
    started = time.monotonic()
    logger.info(
        f"Handling app sync message {message.message_id} ({message.scope_description})",
        extra={"message_id": message.message_id, "metadata": message.metadata},
    )

    try:
        async with get_db_context() as db:
            service = AppSyncService(db)
            stats = await service.sync_apps(
                instance_id=message.instance_id,
                account_id=message.account_id,
                app_type=message.app_type,
            )
            await db.commit()
    except Exception as e:
        logger.error(
            f"App sync message {message.message_id} failed: {e}",
            extra={"message_id": message.message_id, "scope": message.scope_description},
            exc_info=True,
        )
        raise

    elapsed = time.monotonic() - started
    logger.info(
        f"App sync message {message.message_id} done in {elapsed:.2f}s",
        extra={"message_id": message.message_id, "stats": stats.model_dump()},
    )
    if stats.errors > 0:
        logger.warning(
            f"App sync message {message.message_id} finished with {stats.errors} errors",
            extra={"message_id": message.message_id, "error_details": stats.error_details},
        )
    return stats


async def publish_sync_request(
    instance_id: int | None = None,
    account_id: int | None = None,
    app_type: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> SyncAppsMessage:
    """Enqueue a sync request and return the message that was sent."""
    message = SyncAppsMessage(
        instance_id=instance_id,
        account_id=account_id,
        app_type=app_type,
        metadata=metadata or {},
    )
    await publish_message(
        get_settings().sync_queue_name,
        message.to_dict(),
        priority=message.priority,
        message_id=message.message_id,
    )
    logger.info(
        f"Queued app sync request {message.message_id} ({message.scope_description})",
        extra={"message_id": message.message_id, "priority": message.priority},
    )
    return message


class AppSyncConsumer(BaseConsumer):
    """
    Consumer for the app sync queue.

    Message format:
    {
        "instance_id": 1 (optional),
        "account_id": 2 (optional),
        "app_type": "workflow" (optional),
        "metadata": {"request_id": "..."} (optional)
    }
    """

    def __init__(self, locks: MessageLockService | None = None):
        settings = get_settings()
        super().__init__(
            queue_name=settings.sync_queue_name,
            prefetch_count=settings.max_concurrency,
        )
        self._locks = locks

    @property
    def locks(self) -> MessageLockService:
        if self._locks is None:
            self._locks = get_message_lock_service()
        return self._locks

    async def process_message(self, body: dict[str, Any]) -> None:
        message = SyncAppsMessage.model_validate(body)

        if not await self.locks.acquire(message.message_id, message.scope_description):
            logger.info(
                f"Skipping duplicate app sync message {message.message_id}",
                extra={"message_id": message.message_id},
            )
            return

        try:
            await handle_sync_message(message)
        finally:
            await self.locks.release(message.message_id)
