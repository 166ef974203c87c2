"""
Instance and Account Repositories
"""

from typing import Sequence

from sqlalchemy import select

from src.models.orm import ConsoleAccount, ConsoleInstance
from src.repositories.base import BaseRepository


class InstanceRepository(BaseRepository[ConsoleInstance]):
    """Console instance lookups."""

    model = ConsoleInstance

    async def list_enabled(self) -> Sequence[ConsoleInstance]:
        return await self.find_by(is_enabled=True)

    async def get_by_name(self, name: str) -> ConsoleInstance | None:
        return await self.get(name=name)


class AccountRepository(BaseRepository[ConsoleAccount]):
    """Console account lookups."""

    model = ConsoleAccount

    async def list_enabled_for_instance(
        self,
        instance_id: int,
        account_id: int | None = None,
    ) -> Sequence[ConsoleAccount]:
        """Enabled accounts of an instance, optionally narrowed to one account."""
        stmt = select(ConsoleAccount).where(
            ConsoleAccount.instance_id == instance_id,
            ConsoleAccount.is_enabled.is_(True),
        )
        if account_id is not None:
            stmt = stmt.where(ConsoleAccount.id == account_id)
        stmt = stmt.order_by(ConsoleAccount.id)
        result = await self.session.execute(stmt)
        return result.unique().scalars().all()

    async def get_by_email(self, instance_id: int, email: str) -> ConsoleAccount | None:
        return await self.get(instance_id=instance_id, email=email)
