"""
App Sync Service

Top-level "sync apps" operation. For every matched (instance, account)
pair it lists remote apps page by page and runs each one through
reconcile -> field mapping -> site merge -> persist -> DSL versioning,
folding the outcome into SyncStats.

Failure boundaries:
- one app failing is recorded and the page continues (SAVEPOINT per app)
- one account failing (auth, listing) is recorded and the next account runs
- anything else is logged and re-raised to the caller

Remote calls for an app (detail, DSL export) happen outside its SAVEPOINT,
so a rolled-back app never discards a refreshed account token.
"""

import asyncio
import logging
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import get_settings
from src.core.database import get_session_factory
from src.models.contracts.console import AppListQuery
from src.models.contracts.sync import SyncStats, ValidationOutcome
from src.models.orm import ConsoleAccount, ConsoleInstance
from src.repositories.instances import AccountRepository, InstanceRepository
from src.services.app_sync.field_mapper import AppFieldMapper
from src.services.app_sync.reconciler import AppEntityReconciler
from src.services.app_sync.site_merger import SiteMerger
from src.services.app_sync.statistics import (
    add_sync_error,
    initialize_sync_stats,
    merge_sync_errors,
    merge_sync_stats,
    record_account_processed,
    record_dsl_version_created,
    record_instance_processed,
)
from src.services.console.client import ConsoleClientService
from src.services.console.gateway import ConsoleGateway
from src.services.dsl_sync import DslSyncService

logger = logging.getLogger(__name__)


def validate_app_data(app_data: dict[str, Any], account_id: int) -> ValidationOutcome:
    """`id` and `mode` must both be strings."""
    if isinstance(app_data.get("id"), str) and isinstance(app_data.get("mode"), str):
        return ValidationOutcome()
    return ValidationOutcome(
        is_valid=False,
        errors=[f"Invalid app data [account {account_id}]: id or mode is not a string"],
    )


class AppSyncService:
    """Synchronize remote console apps into the local store."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: ConsoleGateway | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.session_factory = session_factory
        self.settings = get_settings()

        self.client = ConsoleClientService(db, gateway=gateway)
        self.instances = InstanceRepository(db)
        self.accounts = AccountRepository(db)
        self.reconciler = AppEntityReconciler(db)
        self.field_mapper = AppFieldMapper()
        self.site_merger = SiteMerger(db)
        self.dsl_sync = DslSyncService(db, self.client)

    # ==========================================================================
    # Entry points
    # ==========================================================================

    async def sync_apps(
        self,
        instance_id: int | None = None,
        account_id: int | None = None,
        app_type: str | None = None,
    ) -> SyncStats:
        """
        Sync apps for the given scope.

        Args:
            instance_id: Only this instance (processed even when disabled)
            account_id: Only this account; also selects its instance when
                instance_id is not given
            app_type: Only remote apps whose `mode` equals this value

        Returns:
            Statistics for the run
        """
        logger.info(
            "Starting app sync",
            extra={"instance_id": instance_id, "account_id": account_id, "app_type": app_type},
        )
        stats = initialize_sync_stats()

        try:
            instance_id = await self._resolve_instance_id(instance_id, account_id)
            for current_instance_id in await self._instance_ids_to_process(instance_id):
                instance = await self.instances.get_by_id(current_instance_id)
                if instance is None:
                    continue
                stats = record_instance_processed(stats)
                stats = await self._sync_instance(instance, account_id, app_type, stats)
        except Exception as e:
            stats = add_sync_error(stats, f"App sync failed: {e}")
            logger.error(f"App sync failed: {e}", extra={"stats": stats.model_dump()}, exc_info=True)
            raise

        logger.info(
            f"App sync finished: {stats.synced_apps} apps, {stats.errors} errors",
            extra={"stats": stats.model_dump()},
        )
        return stats

    async def sync_apps_by_types(
        self,
        app_types: Sequence[str],
        instance_id: int | None = None,
        account_id: int | None = None,
    ) -> SyncStats:
        """
        Run one sync per app type concurrently and fold the results.

        Each type runs in its own session; concurrency is bounded by
        max_concurrency. A type whose run raises is recorded as an error.
        """
        factory = self.session_factory or get_session_factory()
        semaphore = asyncio.Semaphore(self.settings.max_concurrency)

        async def run(app_type: str) -> SyncStats:
            async with semaphore:
                async with factory() as session:
                    service = AppSyncService(session, gateway=self.gateway, session_factory=factory)
                    return await service.sync_apps(instance_id, account_id, app_type)

        results = await asyncio.gather(*(run(t) for t in app_types), return_exceptions=True)

        total = initialize_sync_stats()
        for app_type, result in zip(app_types, results):
            if isinstance(result, BaseException):
                total = add_sync_error(total, f"Sync for app type {app_type} failed: {result}")
            else:
                total = merge_sync_stats(total, result)
        return total

    # ==========================================================================
    # Scope resolution
    # ==========================================================================

    async def _resolve_instance_id(self, instance_id: int | None, account_id: int | None) -> int | None:
        if instance_id is not None or account_id is None:
            return instance_id
        account = await self.accounts.get_by_id(account_id)
        return account.instance_id if account is not None else None

    async def _instance_ids_to_process(self, instance_id: int | None) -> list[int]:
        if instance_id is not None:
            instance = await self.instances.get_by_id(instance_id)
            return [instance.id] if instance is not None else []
        return [instance.id for instance in await self.instances.list_enabled()]

    # ==========================================================================
    # Instance / account loops
    # ==========================================================================

    async def _sync_instance(
        self,
        instance: ConsoleInstance,
        account_id: int | None,
        app_type: str | None,
        stats: SyncStats,
    ) -> SyncStats:
        current_instance_id = instance.id
        account_ids = [
            account.id
            for account in await self.accounts.list_enabled_for_instance(current_instance_id, account_id)
        ]

        for current_account_id in account_ids:
            stats = record_account_processed(stats)
            try:
                # Reload: a previous account's rollback expires loaded objects
                instance = await self.instances.get_by_id(current_instance_id, reload=True)
                account = await self.accounts.get_by_id(current_account_id, reload=True)
                if instance is None or account is None:
                    continue
                stats = await self._sync_account(instance, account, app_type, stats)
                await self.db.commit()
            except Exception as e:
                await self.db.rollback()
                stats = add_sync_error(stats, f"Account sync failed [account {current_account_id}]: {e}")
                logger.error(
                    f"Account sync failed: {e}",
                    extra={"instance_id": current_instance_id, "account_id": current_account_id},
                )

        return stats

    async def _sync_account(
        self,
        instance: ConsoleInstance,
        account: ConsoleAccount,
        app_type: str | None,
        stats: SyncStats,
    ) -> SyncStats:
        logger.debug(
            f"Syncing apps of {account.email} on {instance.base_url}",
            extra={"instance_id": instance.id, "account_id": account.id},
        )
        limit = self.settings.app_list_page_size
        page = 1

        while True:
            query = AppListQuery(page=page, limit=limit, mode=app_type)
            result = await self.client.get_apps(account, query)

            for app_data in result.data:
                if not isinstance(app_data, dict):
                    logger.debug(f"Skipping non-object app entry on page {page}")
                    continue
                stats = await self._process_app(instance, account, app_data, app_type, stats)

            if not result.data or not result.has_more:
                break
            if result.total > 0 and page * limit >= result.total:
                break
            if page >= self.settings.app_list_max_pages:
                logger.warning(
                    f"Stopped listing apps of {account.email} after {page} pages",
                    extra={"instance_id": instance.id, "account_id": account.id},
                )
                break
            page += 1

        return stats

    # ==========================================================================
    # Single app
    # ==========================================================================

    async def _process_app(
        self,
        instance: ConsoleInstance,
        account: ConsoleAccount,
        app_data: dict[str, Any],
        app_type: str | None,
        stats: SyncStats,
    ) -> SyncStats:
        if app_type is not None and app_data.get("mode") != app_type:
            return stats

        outcome = validate_app_data(app_data, account.id)
        if not outcome.is_valid:
            return merge_sync_errors(stats, outcome)

        remote_id: str = app_data["id"]
        mode: str = app_data["mode"]
        if not self.reconciler.is_supported_app_type(mode):
            logger.warning(
                f"Unsupported app type {mode!r} for app {remote_id}",
                extra={"remote_app_id": remote_id, "app_name": app_data.get("name")},
            )
            return stats

        try:
            stats = await self._sync_single_app(instance, account, app_data, remote_id, mode, stats)
        except Exception as e:
            stats = add_sync_error(stats, f"App sync failed [{remote_id}]: {e}")
            logger.error(
                f"App sync failed for {remote_id}: {e}",
                extra={"remote_app_id": remote_id, "account_id": account.id},
                exc_info=True,
            )
            return stats

        await self.db.commit()
        return stats

    async def _sync_single_app(
        self,
        instance: ConsoleInstance,
        account: ConsoleAccount,
        app_data: dict[str, Any],
        remote_id: str,
        mode: str,
        stats: SyncStats,
    ) -> SyncStats:
        data = await self._fetch_app_detail(account, remote_id, app_data)

        async with self.db.begin_nested():
            result = await self.reconciler.find_or_create(instance, account, remote_id, mode)
            try:
                self.field_mapper.update_basic_fields(result.app, instance, data)
                stats = await self.site_merger.merge(result.app, data, stats)
                self.field_mapper.apply_variant_fields(result.app, data)
                stats = await self.reconciler.persist(result, mode, stats)
            except Exception:
                if result.is_new and result.app in self.db:
                    self.db.expunge(result.app)
                raise

        if self.settings.sync_dsl_enabled:
            dsl_result = await self.dsl_sync.sync_app_dsl(result.app, account)
            if not dsl_result.success:
                stats = add_sync_error(stats, f"DSL sync failed [{remote_id}]: {dsl_result.message}")
            elif dsl_result.is_new_version:
                stats = record_dsl_version_created(stats)

        return stats

    async def _fetch_app_detail(
        self, account: ConsoleAccount, remote_id: str, app_data: dict[str, Any]
    ) -> dict[str, Any]:
        """Detail payload layered over the list entry; the list entry alone on failure."""
        try:
            detail = await self.client.get_app_detail(account, remote_id)
        except Exception as e:
            logger.warning(
                f"App detail unavailable for {remote_id}, using list data: {e}",
                extra={"remote_app_id": remote_id},
            )
            return app_data

        if detail is None:
            return app_data
        return {**app_data, **detail}
