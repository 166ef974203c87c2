"""
Unit tests for the scheduler service jobs.
"""

from unittest.mock import AsyncMock, patch

from src.config import get_settings
from src.scheduler.main import Scheduler, request_scheduled_sync


async def test_scheduled_sync_uses_fresh_request_id():
    with patch("src.scheduler.main.publish_sync_request", new_callable=AsyncMock) as publish:
        await request_scheduled_sync()

    metadata = publish.await_args.kwargs["metadata"]
    assert metadata["source"] == "scheduler"
    assert metadata["request_id"].startswith("scheduled-")


async def test_scheduled_sync_swallows_broker_errors():
    with patch("src.scheduler.main.publish_sync_request", new_callable=AsyncMock) as publish:
        publish.side_effect = ConnectionError("broker down")

        await request_scheduled_sync()

    publish.assert_awaited_once()


async def test_registers_sync_and_retention_jobs():
    scheduler = Scheduler()
    scheduler._start_scheduler()
    try:
        job_ids = {job.id for job in scheduler._scheduler.get_jobs()}
    finally:
        scheduler._scheduler.shutdown(wait=False)

    assert job_ids == {"scheduled_app_sync", "dsl_retention"}


async def test_interval_zero_disables_scheduled_sync(monkeypatch):
    monkeypatch.setenv("CONSOLE_SYNC_SCHEDULED_SYNC_INTERVAL_MINUTES", "0")
    get_settings.cache_clear()

    scheduler = Scheduler()
    scheduler._start_scheduler()
    try:
        job_ids = {job.id for job in scheduler._scheduler.get_jobs()}
    finally:
        scheduler._scheduler.shutdown(wait=False)

    assert job_ids == {"dsl_retention"}
