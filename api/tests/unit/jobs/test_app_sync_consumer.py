"""
Unit tests for the app sync consumer and publisher.
"""

import json
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.jobs.consumers.app_sync import AppSyncConsumer, handle_sync_message, publish_sync_request
from src.jobs.rabbitmq import MAX_PRIORITY, queue_arguments
from src.models.contracts.messages import SyncAppsMessage
from src.models.contracts.sync import SyncStats

MODULE = "src.jobs.consumers.app_sync"


@pytest.fixture
def locks() -> AsyncMock:
    locks = AsyncMock()
    locks.acquire.return_value = True
    return locks


@pytest.fixture
def consumer(locks) -> AppSyncConsumer:
    return AppSyncConsumer(locks=locks)


def fake_db_context(session):
    @asynccontextmanager
    async def context():
        yield session

    return context


class TestQueueArguments:
    def test_priority_and_dead_lettering(self):
        args = queue_arguments("console-app-sync")

        assert args["x-max-priority"] == MAX_PRIORITY == 10
        assert args["x-dead-letter-exchange"] == "console-app-sync-dlx"
        assert args["x-dead-letter-routing-key"] == "console-app-sync"


class TestAppSyncConsumer:
    def test_queue_settings(self, consumer):
        assert consumer.queue_name == "console-app-sync"
        assert consumer.prefetch_count == 2

    async def test_runs_sync_and_releases_lock(self, consumer, locks):
        body = {"instance_id": 1, "metadata": {"request_id": "r1"}}
        expected = SyncAppsMessage.model_validate(body)

        with patch(f"{MODULE}.handle_sync_message", new_callable=AsyncMock) as handle:
            await consumer.process_message(body)

        handle.assert_awaited_once_with(expected)
        locks.acquire.assert_awaited_once_with(expected.message_id, "instance=1")
        locks.release.assert_awaited_once_with(expected.message_id)

    async def test_duplicate_message_is_skipped(self, consumer, locks):
        locks.acquire.return_value = False

        with patch(f"{MODULE}.handle_sync_message", new_callable=AsyncMock) as handle:
            await consumer.process_message({})

        handle.assert_not_awaited()
        locks.release.assert_not_awaited()

    async def test_lock_released_when_sync_fails(self, consumer, locks):
        with patch(f"{MODULE}.handle_sync_message", new_callable=AsyncMock) as handle:
            handle.side_effect = RuntimeError("database gone")
            with pytest.raises(RuntimeError):
                await consumer.process_message({"app_type": "workflow"})

        locks.release.assert_awaited_once()

    async def test_failed_message_is_rejected_without_requeue(self, consumer):
        processed = []

        @asynccontextmanager
        async def process(requeue: bool):
            processed.append(requeue)
            yield

        message = MagicMock()
        message.body = json.dumps({"app_type": "chat"}).encode()
        message.message_id = "m1"
        message.process = process

        with patch.object(consumer, "process_message", new_callable=AsyncMock) as process_message:
            process_message.side_effect = RuntimeError("boom")
            with pytest.raises(RuntimeError):
                await consumer._process_message_with_ack(message)

        process_message.assert_awaited_once_with({"app_type": "chat"})
        assert processed == [False]


class TestHandleSyncMessage:
    async def test_runs_sync_for_message_scope(self):
        session = AsyncMock()
        stats = SyncStats(synced_apps=3)

        with patch(f"{MODULE}.get_db_context", fake_db_context(session)), \
                patch(f"{MODULE}.AppSyncService") as service_cls:
            service_cls.return_value.sync_apps = AsyncMock(return_value=stats)

            result = await handle_sync_message(SyncAppsMessage(account_id=2, app_type="workflow"))

        assert result is stats
        service_cls.assert_called_once_with(session)
        service_cls.return_value.sync_apps.assert_awaited_once_with(
            instance_id=None, account_id=2, app_type="workflow"
        )
        session.commit.assert_awaited_once()

    async def test_failure_is_raised(self):
        session = AsyncMock()

        with patch(f"{MODULE}.get_db_context", fake_db_context(session)), \
                patch(f"{MODULE}.AppSyncService") as service_cls:
            service_cls.return_value.sync_apps = AsyncMock(side_effect=RuntimeError("no database"))

            with pytest.raises(RuntimeError, match="no database"):
                await handle_sync_message(SyncAppsMessage())

        session.commit.assert_not_awaited()


class TestPublishSyncRequest:
    async def test_publishes_with_priority_and_id(self):
        with patch(f"{MODULE}.publish_message", new_callable=AsyncMock) as publish:
            message = await publish_sync_request(instance_id=1, metadata={"request_id": "r1"})

        publish.assert_awaited_once_with(
            "console-app-sync",
            message.to_dict(),
            priority=10,
            message_id=message.message_id,
        )

    async def test_unscoped_request_has_normal_priority(self):
        with patch(f"{MODULE}.publish_message", new_callable=AsyncMock) as publish:
            message = await publish_sync_request()

        assert message.priority == 5
        assert publish.await_args.kwargs["priority"] == 5
        assert message.metadata == {}
