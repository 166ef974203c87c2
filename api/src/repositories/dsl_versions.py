"""
DSL Version Repository

Append-only DSL history. "Latest" always means highest version number.
"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import delete, func, select

from src.models.orm import App, AppDslVersion
from src.repositories.base import BaseRepository


class AppDslVersionRepository(BaseRepository[AppDslVersion]):
    """Queries over an app's DSL history."""

    model = AppDslVersion

    async def find_latest_by_app(self, app: App) -> AppDslVersion | None:
        stmt = (
            select(AppDslVersion)
            .where(AppDslVersion.app_id == app.id)
            .order_by(AppDslVersion.version.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_app_and_version(self, app: App, version: int) -> AppDslVersion | None:
        return await self.get(app_id=app.id, version=version)

    async def find_by_app_and_hash(self, app: App, dsl_hash: str) -> AppDslVersion | None:
        """Newest version of the app with this hash (older reverts may share it)."""
        stmt = (
            select(AppDslVersion)
            .where(AppDslVersion.app_id == app.id, AppDslVersion.dsl_hash == dsl_hash)
            .order_by(AppDslVersion.version.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_history(self, app: App, limit: int | None = None) -> Sequence[AppDslVersion]:
        """Versions of an app, newest first."""
        stmt = (
            select(AppDslVersion)
            .where(AppDslVersion.app_id == app.id)
            .order_by(AppDslVersion.version.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def find_versions_since(self, app: App, since: datetime) -> Sequence[AppDslVersion]:
        """Versions synced at or after `since`, oldest first."""
        stmt = (
            select(AppDslVersion)
            .where(AppDslVersion.app_id == app.id, AppDslVersion.synced_at >= since)
            .order_by(AppDslVersion.version.asc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_by_app(self, app: App) -> int:
        return await self.count(app_id=app.id)

    async def get_next_version_number(self, app: App) -> int:
        stmt = select(func.max(AppDslVersion.version)).where(AppDslVersion.app_id == app.id)
        result = await self.session.execute(stmt)
        current = result.scalar_one_or_none()
        return (current or 0) + 1

    async def list_app_ids_over(self, keep: int) -> Sequence[int]:
        """App ids holding more than `keep` versions."""
        stmt = (
            select(AppDslVersion.app_id)
            .group_by(AppDslVersion.app_id)
            .having(func.count() > keep)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def delete_old_versions(self, app: App | int, keep: int) -> int:
        """
        Delete all but the newest `keep` versions of an app.

        Returns:
            Number of rows deleted
        """
        app_id = app if isinstance(app, int) else app.id
        keep_stmt = (
            select(AppDslVersion.id)
            .where(AppDslVersion.app_id == app_id)
            .order_by(AppDslVersion.version.desc())
            .limit(keep)
        )
        keep_ids = list((await self.session.execute(keep_stmt)).scalars().all())

        stmt = delete(AppDslVersion).where(AppDslVersion.app_id == app_id)
        if keep_ids:
            stmt = stmt.where(AppDslVersion.id.not_in(keep_ids))
        result = await self.session.execute(stmt)
        return result.rowcount or 0
