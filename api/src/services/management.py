"""
Instance and Account Management

Create, update, enable and disable console instances and accounts, and
list the ones a sync run should visit. Methods flush; committing is the
caller's responsibility.
"""

import logging
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from src.models.contracts.management import (
    AccountCreate,
    AccountUpdate,
    InstanceCreate,
    InstanceUpdate,
)
from src.models.orm import ConsoleAccount, ConsoleInstance
from src.repositories.instances import AccountRepository, InstanceRepository

logger = logging.getLogger(__name__)


class InstanceManagementService:
    """Manage console instances."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.instances = InstanceRepository(db)

    async def create_instance(self, request: InstanceCreate) -> ConsoleInstance:
        instance = ConsoleInstance(
            name=request.name,
            base_url=request.base_url,
            description=request.description,
            is_enabled=request.is_enabled,
        )
        instance = await self.instances.create(instance)
        logger.info(f"Created console instance {instance.name}", extra={"instance_id": instance.id})
        return instance

    async def update_instance(self, instance_id: int, request: InstanceUpdate) -> ConsoleInstance:
        """
        Apply the fields set on the request.

        Raises:
            ValueError: If the instance does not exist
        """
        instance = await self.instances.get_by_id(instance_id)
        if instance is None:
            raise ValueError(f"Console instance {instance_id} not found")

        for field, value in request.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(instance, field, value)
        await self.instances.flush()

        logger.info(f"Updated console instance {instance.name}", extra={"instance_id": instance_id})
        return instance

    async def enable_instance(self, instance_id: int) -> bool:
        return await self._set_enabled(instance_id, True)

    async def disable_instance(self, instance_id: int) -> bool:
        return await self._set_enabled(instance_id, False)

    async def _set_enabled(self, instance_id: int, enabled: bool) -> bool:
        """False when the instance does not exist."""
        instance = await self.instances.get_by_id(instance_id)
        if instance is None:
            logger.warning(f"Cannot change status of missing console instance {instance_id}")
            return False
        if instance.is_enabled != enabled:
            instance.is_enabled = enabled
            await self.instances.flush()
            logger.info(
                f"Console instance {instance_id} {'enabled' if enabled else 'disabled'}",
                extra={"instance_id": instance_id},
            )
        return True

    async def get_enabled_instances(self) -> Sequence[ConsoleInstance]:
        return await self.instances.list_enabled()

    async def get_all_instances(self) -> Sequence[ConsoleInstance]:
        return await self.instances.find_by()


class AccountManagementService:
    """Manage console accounts."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.instances = InstanceRepository(db)
        self.accounts = AccountRepository(db)

    async def create_account(self, request: AccountCreate) -> ConsoleAccount:
        """
        Raises:
            ValueError: If the instance does not exist or the email is taken on it
        """
        instance = await self.instances.get_by_id(request.instance_id)
        if instance is None:
            raise ValueError(f"Console instance {request.instance_id} not found")
        if await self.accounts.get_by_email(instance.id, request.email) is not None:
            raise ValueError(f"Account {request.email} already exists on instance {instance.id}")

        account = ConsoleAccount(
            instance=instance,
            instance_id=instance.id,
            email=request.email,
            password=request.password,
            nickname=request.nickname,
            is_enabled=request.is_enabled,
        )
        account = await self.accounts.create(account)
        logger.info(
            f"Created console account {account.email}",
            extra={"account_id": account.id, "instance_id": instance.id},
        )
        return account

    async def update_account(self, account_id: int, request: AccountUpdate) -> ConsoleAccount:
        """
        Apply the fields set on the request. A new password drops the cached token.

        Raises:
            ValueError: If the account does not exist or the new email is taken
        """
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            raise ValueError(f"Console account {account_id} not found")

        if request.email is not None and request.email != account.email:
            existing = await self.accounts.get_by_email(account.instance_id, request.email)
            if existing is not None and existing.id != account_id:
                raise ValueError(f"Account {request.email} already exists on instance {account.instance_id}")
            account.email = request.email

        if request.password is not None:
            account.password = request.password
            account.access_token = None
            account.token_expires_at = None
        if request.nickname is not None:
            account.nickname = request.nickname
        if request.is_enabled is not None:
            account.is_enabled = request.is_enabled

        await self.accounts.flush()
        logger.info(f"Updated console account {account.email}", extra={"account_id": account_id})
        return account

    async def enable_account(self, account_id: int) -> bool:
        return await self._set_enabled(account_id, True)

    async def disable_account(self, account_id: int) -> bool:
        return await self._set_enabled(account_id, False)

    async def _set_enabled(self, account_id: int, enabled: bool) -> bool:
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            logger.warning(f"Cannot change status of missing console account {account_id}")
            return False
        if account.is_enabled != enabled:
            account.is_enabled = enabled
            await self.accounts.flush()
        return True

    async def get_accounts_by_instance(self, instance_id: int) -> Sequence[ConsoleAccount]:
        return await self.accounts.find_by(instance_id=instance_id)

    async def get_enabled_accounts(self, instance_id: int | None = None) -> Sequence[ConsoleAccount]:
        if instance_id is None:
            return await self.accounts.find_by(is_enabled=True)
        return await self.accounts.list_enabled_for_instance(instance_id)

    async def get_all_accounts(self) -> Sequence[ConsoleAccount]:
        return await self.accounts.find_by()
