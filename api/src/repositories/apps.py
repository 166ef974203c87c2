"""
App Repositories

One repository per app variant, all sharing the (instance, remote_app_id)
lookup. get_app_repository() selects the repository for a variant.
"""

from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.enums import AppVariant
from src.models.orm import App, ChatAssistantApp, ChatflowApp, ConsoleInstance, WorkflowApp
from src.repositories.base import BaseRepository

AppT = TypeVar("AppT", bound=App)


class AppRepository(BaseRepository[AppT], Generic[AppT]):
    """
    Lookups keyed by remote identity.

    Account is not part of the key; see src.models.orm.apps.
    """

    async def find_by_remote_id(
        self, instance: ConsoleInstance, remote_app_id: str
    ) -> AppT | None:
        stmt = select(self.model).where(
            self.model.instance_id == instance.id,
            self.model.remote_app_id == remote_app_id,
        )
        result = await self.session.execute(stmt)
        return result.unique().scalar_one_or_none()

    def new(self, instance: ConsoleInstance, **fields) -> AppT:
        """Transient entity of this repository's variant (not added to the session)."""
        return self.model(instance=instance, instance_id=instance.id, **fields)


class ChatAssistantAppRepository(AppRepository[ChatAssistantApp]):
    model = ChatAssistantApp


class ChatflowAppRepository(AppRepository[ChatflowApp]):
    model = ChatflowApp


class WorkflowAppRepository(AppRepository[WorkflowApp]):
    model = WorkflowApp


class AnyAppRepository(AppRepository[App]):
    """Polymorphic access across all variants."""

    model = App


APP_REPOSITORIES: dict[AppVariant, type[AppRepository]] = {
    AppVariant.CHAT_ASSISTANT: ChatAssistantAppRepository,
    AppVariant.CHATFLOW: ChatflowAppRepository,
    AppVariant.WORKFLOW: WorkflowAppRepository,
}


def get_app_repository(variant: AppVariant, session: AsyncSession) -> AppRepository:
    """Repository for one variant."""
    return APP_REPOSITORIES[variant](session)
