"""
Unit tests for the DSL retention job.
"""

from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest_asyncio

from src.jobs.schedulers.dsl_retention import cleanup_old_dsl_versions
from src.models.orm import AppDslVersion, WorkflowApp
from src.repositories.dsl_versions import AppDslVersionRepository

MODULE = "src.jobs.schedulers.dsl_retention"


def db_context_for(session):
    @asynccontextmanager
    async def context():
        yield session

    return context


async def add_app_with_versions(db_session, instance, account, remote_id: str, count: int) -> WorkflowApp:
    app = WorkflowApp(
        instance=instance,
        instance_id=instance.id,
        account_id=account.id,
        remote_app_id=remote_id,
    )
    db_session.add(app)
    await db_session.flush()
    for version in range(1, count + 1):
        db_session.add(
            AppDslVersion(
                app_id=app.id,
                version=version,
                dsl_content={"v": version},
                dsl_raw_content=f"v: {version}\n",
                dsl_hash=f"{version:064d}",
            )
        )
    await db_session.flush()
    return app


@pytest_asyncio.fixture
async def apps(db_session, instance, account):
    busy = await add_app_with_versions(db_session, instance, account, "busy", 4)
    quiet = await add_app_with_versions(db_session, instance, account, "quiet", 1)
    await db_session.commit()
    return busy, quiet


async def test_trims_history_to_newest_versions(db_session, apps):
    busy, quiet = apps

    with patch(f"{MODULE}.get_db_context", db_context_for(db_session)):
        results = await cleanup_old_dsl_versions(keep=2)

    assert results["keep"] == 2
    assert results["apps_trimmed"] == 1
    assert results["versions_deleted"] == 2
    assert results["errors"] == []
    assert "duration_seconds" in results

    repo = AppDslVersionRepository(db_session)
    assert [v.version for v in await repo.list_history(busy)] == [4, 3]
    assert await repo.count_by_app(quiet) == 1
    assert await repo.get_next_version_number(busy) == 5


async def test_uses_configured_retention(db_session, apps):
    with patch(f"{MODULE}.get_db_context", db_context_for(db_session)):
        results = await cleanup_old_dsl_versions()

    assert results["keep"] == 10
    assert results["versions_deleted"] == 0


async def test_failure_is_reported():
    @asynccontextmanager
    async def broken():
        raise RuntimeError("database unavailable")
        yield

    with patch(f"{MODULE}.get_db_context", broken):
        results = await cleanup_old_dsl_versions(keep=1)

    assert results["errors"] == [{"error": "database unavailable"}]
    assert results["versions_deleted"] == 0
