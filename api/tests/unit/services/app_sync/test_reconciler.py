"""
Unit tests for AppEntityReconciler.
"""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError

from src.core.exceptions import SyncValidationError
from src.models.enums import AppVariant
from src.models.orm import ChatAssistantApp, ChatflowApp, ConsoleAccount, WorkflowApp
from src.services.app_sync.reconciler import AppEntityReconciler
from src.services.app_sync.statistics import initialize_sync_stats


@pytest.fixture
def reconciler(db_session) -> AppEntityReconciler:
    return AppEntityReconciler(db_session)


class TestResolveVariant:
    @pytest.mark.parametrize(
        "app_type, variant",
        [
            ("chat", AppVariant.CHAT_ASSISTANT),
            ("agent-chat", AppVariant.CHAT_ASSISTANT),
            ("advanced-chat", AppVariant.CHAT_ASSISTANT),
            ("completion", AppVariant.CHAT_ASSISTANT),
            ("workflow", AppVariant.WORKFLOW),
            ("chatflow", AppVariant.CHATFLOW),
        ],
    )
    def test_mapping(self, app_type, variant):
        assert AppEntityReconciler.resolve_variant(app_type) is variant
        assert AppEntityReconciler.is_supported_app_type(app_type)

    @pytest.mark.parametrize("app_type", ["agent", "", None, 3])
    def test_unsupported(self, app_type):
        assert not AppEntityReconciler.is_supported_app_type(app_type)
        with pytest.raises(SyncValidationError) as exc_info:
            AppEntityReconciler.resolve_variant(app_type)

        assert exc_info.value.field == "mode"


class TestFindOrCreate:
    async def test_unsupported_type_raises_before_lookup(self, instance, account):
        session = AsyncMock()
        reconciler = AppEntityReconciler(session)

        with pytest.raises(SyncValidationError):
            await reconciler.find_or_create(instance, account, "a1", "agent")

        session.execute.assert_not_awaited()

    @pytest.mark.parametrize(
        "app_type, model",
        [("chat", ChatAssistantApp), ("chatflow", ChatflowApp), ("workflow", WorkflowApp)],
    )
    async def test_new_app_is_transient(self, reconciler, db_session, instance, account, app_type, model):
        result = await reconciler.find_or_create(instance, account, "a1", app_type)

        assert result.is_new is True
        assert isinstance(result.app, model)
        assert result.app.remote_app_id == "a1"
        assert result.app.instance_id == instance.id
        assert result.app.account_id == account.id
        assert result.app not in db_session

    async def test_existing_app_is_found_from_another_account(
        self, reconciler, db_session, instance, account
    ):
        created = await reconciler.find_or_create(instance, account, "a1", "chat")
        await reconciler.persist(created, "chat", initialize_sync_stats())

        other = ConsoleAccount(instance_id=instance.id, email="other@example.com", password="pw")
        db_session.add(other)
        await db_session.flush()

        found = await reconciler.find_or_create(instance, other, "a1", "chat")

        assert found.is_new is False
        assert found.app is created.app
        assert found.app.account_id == account.id


class TestPersist:
    async def test_counts_created_then_updated(self, reconciler, db_session, instance, account):
        result = await reconciler.find_or_create(instance, account, "a1", "workflow")
        result.app.name = "Invoices"

        stats = await reconciler.persist(result, "workflow", initialize_sync_stats())

        assert result.app.id is not None
        assert result.app.app_type == AppVariant.WORKFLOW.value
        assert (stats.created_apps, stats.updated_apps) == (1, 0)
        assert stats.app_types == {"workflow": 1}

        again = await reconciler.find_or_create(instance, account, "a1", "workflow")
        stats = await reconciler.persist(again, "workflow", stats)

        assert (stats.synced_apps, stats.created_apps, stats.updated_apps) == (2, 1, 1)
        assert stats.app_types == {"workflow": 2}

    async def test_failed_insert_removes_new_app(self, reconciler, db_session, instance, account):
        existing = await reconciler.find_or_create(instance, account, "a1", "chat")
        await reconciler.persist(existing, "chat", initialize_sync_stats())

        # Same remote id under a different variant violates the identity index
        clash = await reconciler.find_or_create(instance, account, "a1", "workflow")
        assert clash.is_new is True

        with pytest.raises(IntegrityError):
            await reconciler.persist(clash, "workflow", initialize_sync_stats())

        assert clash.app not in db_session
        assert existing.app in db_session
