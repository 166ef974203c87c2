"""
Base Repository

Generic async data access over one ORM model. Subclasses set `model` and
add their own queries.
"""

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.orm.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    CRUD helpers shared by all repositories.

    Example usage:
        class SiteRepository(BaseRepository[Site]):
            model = Site

        repo = SiteRepository(db)
        site = await repo.get(site_id="abc")
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: int, reload: bool = False) -> ModelT | None:
        """Get an entity by primary key; reload=True refreshes an already loaded one."""
        return await self.session.get(self.model, id, populate_existing=reload)

    async def get(self, **filters: Any) -> ModelT | None:
        """Get a single entity matching all filters, or None."""
        stmt = select(self.model).filter_by(**filters).limit(1)
        result = await self.session.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def find_by(self, **filters: Any) -> Sequence[ModelT]:
        """List entities matching all filters, ordered by primary key."""
        stmt = select(self.model).filter_by(**filters).order_by(self.model.id)  # type: ignore[attr-defined]
        result = await self.session.execute(stmt)
        return result.unique().scalars().all()

    async def count(self, **filters: Any) -> int:
        stmt = select(func.count()).select_from(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    def add(self, entity: ModelT) -> ModelT:
        """Add an entity to the session without flushing."""
        self.session.add(entity)
        return entity

    async def create(self, entity: ModelT) -> ModelT:
        """Add and flush so database defaults and the primary key are populated."""
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def flush(self) -> None:
        await self.session.flush()

    async def delete(self, entity: ModelT) -> None:
        await self.session.delete(entity)
        await self.session.flush()
