"""
DSL Sync Service

Content-addressed versioning of app DSL. A sync exports the DSL, hashes
its canonical JSON form and appends a version only when the hash differs
from the app's latest version. Versions are never rewritten; an export
that reverts to older content still gets a new, higher version number.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.models.orm import App, AppDslVersion, ConsoleAccount
from src.repositories.dsl_versions import AppDslVersionRepository
from src.services.console.client import ConsoleClientService

logger = logging.getLogger(__name__)

# Volatile fields dropped before hashing
VOLATILE_DSL_FIELDS = frozenset({"created_at", "updated_at", "id"})


@dataclass
class DslSyncResult:
    success: bool
    message: str
    version: AppDslVersion | None = None
    is_new_version: bool = False


def _strip_volatile(data: dict[str, Any]) -> dict[str, Any]:
    """Drop volatile keys from a mapping and its nested mappings (list items are kept as-is)."""
    return {
        key: _strip_volatile(value) if isinstance(value, dict) else value
        for key, value in data.items()
        if key not in VOLATILE_DSL_FIELDS
    }


def calculate_dsl_hash(content: dict[str, Any]) -> str:
    """SHA-256 hex of the canonical JSON encoding (sorted keys, compact, unescaped unicode)."""
    canonical = json.dumps(
        _strip_volatile(content),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class DslSyncService:
    """Exports app DSL and records new versions on change."""

    def __init__(self, session: AsyncSession, client: ConsoleClientService):
        self.session = session
        self.client = client
        self.versions = AppDslVersionRepository(session)

    calculate_dsl_hash = staticmethod(calculate_dsl_hash)

    async def get_latest_version(self, app: App) -> AppDslVersion | None:
        return await self.versions.find_latest_by_app(app)

    async def should_create_new_version(self, app: App, dsl_hash: str) -> bool:
        """True unless the app's latest version already has this hash."""
        latest = await self.get_latest_version(app)
        return latest is None or latest.dsl_hash != dsl_hash

    async def sync_app_dsl(self, app: App, account: ConsoleAccount) -> DslSyncResult:
        """
        Export and version the DSL of one app.

        Never raises: export problems and unexpected errors are reported
        as success=False.
        """
        try:
            logger.debug(
                f"Syncing DSL of app {app.remote_app_id}",
                extra={"app_id": app.id, "account_id": account.id},
            )
            include_secret = get_settings().dsl_export_include_secret
            export = await self.client.export_app_dsl(account, app.remote_app_id, include_secret)
            if not export.success or export.content is None:
                return DslSyncResult(success=False, message=export.error_message or "DSL export failed")

            dsl_hash = calculate_dsl_hash(export.content)

            async with self.session.begin_nested():
                latest = await self.get_latest_version(app)
                if latest is not None and latest.dsl_hash == dsl_hash:
                    logger.debug(
                        f"DSL of app {app.remote_app_id} unchanged at v{latest.version}",
                        extra={"app_id": app.id, "dsl_hash": dsl_hash},
                    )
                    return DslSyncResult(success=True, message="DSL unchanged", version=latest)

                version = AppDslVersion(
                    app_id=app.id,
                    version=await self.versions.get_next_version_number(app),
                    dsl_content=export.content,
                    dsl_raw_content=export.raw_content or "",
                    dsl_hash=dsl_hash,
                    include_secret=include_secret,
                    synced_at=datetime.now(timezone.utc),
                )
                self.versions.add(version)
                await self.session.flush()

            logger.info(
                f"Created DSL v{version.version} for app {app.remote_app_id}",
                extra={"app_id": app.id, "version": version.version, "dsl_hash": dsl_hash},
            )
            return DslSyncResult(
                success=True,
                message=f"Created version v{version.version}",
                version=version,
                is_new_version=True,
            )

        except Exception as e:
            logger.error(
                f"DSL sync failed for app {app.remote_app_id}: {e}",
                extra={"app_id": app.id, "account_id": account.id},
                exc_info=True,
            )
            return DslSyncResult(success=False, message=f"DSL sync failed: {e}")
