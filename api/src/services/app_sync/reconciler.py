"""
App Entity Reconciler

Resolves a remote app type to a local variant and finds (or creates) the
local app record for a remote app id.

Lookups use (instance, remote_app_id) only. A miss yields a transient
entity with the account set; it joins the session in persist().
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import SyncValidationError
from src.models.contracts.sync import SyncStats
from src.models.enums import AppVariant
from src.models.orm import App, ConsoleAccount, ConsoleInstance
from src.repositories.apps import get_app_repository
from src.services.app_sync.statistics import (
    record_app_created,
    record_app_updated,
    update_app_type_stats,
)

logger = logging.getLogger(__name__)

APP_TYPE_MAPPING: dict[str, AppVariant] = {
    "chat": AppVariant.CHAT_ASSISTANT,
    "agent-chat": AppVariant.CHAT_ASSISTANT,
    "advanced-chat": AppVariant.CHAT_ASSISTANT,
    "completion": AppVariant.CHAT_ASSISTANT,
    "workflow": AppVariant.WORKFLOW,
    "chatflow": AppVariant.CHATFLOW,
}


@dataclass
class ReconcileResult:
    app: App
    is_new: bool


class AppEntityReconciler:
    """Find-or-create for app records across variants."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def is_supported_app_type(app_type: Any) -> bool:
        return isinstance(app_type, str) and app_type in APP_TYPE_MAPPING

    @staticmethod
    def resolve_variant(app_type: Any) -> AppVariant:
        """
        Raises:
            SyncValidationError: unsupported remote app type
        """
        if not isinstance(app_type, str) or app_type not in APP_TYPE_MAPPING:
            raise SyncValidationError(f"Unsupported app type: {app_type!r}", field="mode")
        return APP_TYPE_MAPPING[app_type]

    async def find_or_create(
        self,
        instance: ConsoleInstance,
        account: ConsoleAccount,
        remote_app_id: str,
        app_type: str,
    ) -> ReconcileResult:
        variant = self.resolve_variant(app_type)
        repo = get_app_repository(variant, self.session)

        existing = await repo.find_by_remote_id(instance, remote_app_id)
        if existing is not None:
            return ReconcileResult(app=existing, is_new=False)

        app = repo.new(
            instance,
            remote_app_id=remote_app_id,
            account=account,
            account_id=account.id,
        )
        return ReconcileResult(app=app, is_new=True)

    async def persist(
        self,
        result: ReconcileResult,
        app_type: str,
        stats: SyncStats,
    ) -> SyncStats:
        """
        Write the app and record it in the stats.

        The flush runs in a SAVEPOINT. On failure a new app is removed from
        the session before the error propagates.
        """
        app = result.app
        try:
            async with self.session.begin_nested():
                if result.is_new:
                    self.session.add(app)
                await self.session.flush()
        except Exception as e:
            if result.is_new and app in self.session:
                self.session.expunge(app)
            logger.error(
                f"Failed to persist app {app.remote_app_id}: {e}",
                extra={"remote_app_id": app.remote_app_id, "app_name": app.name, "app_type": app_type},
            )
            raise

        stats = record_app_created(stats) if result.is_new else record_app_updated(stats)
        stats = update_app_type_stats(stats, app_type)

        logger.debug(
            f"Synced app {app.remote_app_id} ({app_type})",
            extra={"remote_app_id": app.remote_app_id, "app_name": app.name, "is_new": result.is_new},
        )
        return stats
