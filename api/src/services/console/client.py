"""
Console Client Service

High-level console operations: login, app listing, app detail and DSL
export. Authenticated calls first make sure the account holds a valid
token.

Error policy:
- ConsoleApiError subclasses propagate unchanged
- httpx transport failures become InstanceUnavailableError.connection_failed
- anything else becomes GenericApiError
- DSL export never raises; failures come back as success=False results
"""

import logging
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.core.exceptions import ConsoleApiError, GenericApiError, InstanceUnavailableError
from src.models.contracts.console import (
    AppDslExportResult,
    AppListQuery,
    AppListResult,
    AuthenticationResult,
)
from src.models.orm import ConsoleAccount, ConsoleInstance
from src.services.console.auth import AuthenticationProcessor
from src.services.console.gateway import ConsoleGateway
from src.services.console.responses import ResponseProcessor

logger = logging.getLogger(__name__)


class ConsoleClientService:
    """Console API client bound to one database session."""

    def __init__(
        self,
        session: AsyncSession | None = None,
        gateway: ConsoleGateway | None = None,
        responses: ResponseProcessor | None = None,
        auth: AuthenticationProcessor | None = None,
    ):
        self.gateway = gateway or ConsoleGateway()
        self.responses = responses or ResponseProcessor()
        self.auth = auth or AuthenticationProcessor(session)

    @staticmethod
    def get_instance(account: ConsoleAccount) -> ConsoleInstance:
        """
        Instance of the account.

        Raises:
            InstanceUnavailableError: the instance is disabled
        """
        instance = account.instance
        if not instance.is_enabled:
            raise InstanceUnavailableError.configuration_error(instance.base_url, "instance is disabled")
        return instance

    async def login(self, account: ConsoleAccount) -> AuthenticationResult:
        """
        Log in with the account's credentials.

        Does not modify the account; ensure_valid_token() stores the token.
        """
        instance = self.get_instance(account)
        try:
            response = await self.gateway.login(instance, account)
            data = self.auth.validate_login_response(response)
            token, expires_at = self.auth.extract_authentication_data(data)
        except ConsoleApiError:
            raise
        except httpx.TransportError as e:
            logger.error(
                f"Network error logging in to {instance.base_url}: {e}",
                extra={"account_id": account.id},
            )
            raise InstanceUnavailableError.connection_failed(instance.base_url) from e
        except Exception as e:
            logger.error(f"Unexpected login error: {e}", extra={"account_id": account.id}, exc_info=True)
            raise GenericApiError.create(f"Login failed: {e}") from e

        self.auth.log_successful_login(account)
        return AuthenticationResult(success=True, access_token=token, expires_at=expires_at)

    async def refresh_token(self, account: ConsoleAccount) -> AuthenticationResult:
        return await self.login(account)

    async def _ensure_token(self, account: ConsoleAccount) -> None:
        await self.auth.ensure_valid_token(account, lambda: self.refresh_token(account))

    async def get_apps(self, account: ConsoleAccount, query: AppListQuery) -> AppListResult:
        """One page of the account's apps."""
        instance = self.get_instance(account)
        try:
            await self._ensure_token(account)
            response = await self.gateway.list_apps(instance, account, query)
            return self.responses.process_apps_list(response, query, instance.base_url)
        except ConsoleApiError:
            raise
        except httpx.TransportError as e:
            raise InstanceUnavailableError.connection_failed(instance.base_url) from e
        except Exception as e:
            raise GenericApiError.create(f"Failed to list apps: {e}") from e

    async def get_app_detail(self, account: ConsoleAccount, app_id: str) -> dict[str, Any] | None:
        instance = self.get_instance(account)
        try:
            await self._ensure_token(account)
            response = await self.gateway.get_app_detail(instance, account, app_id)
            return self.responses.process_app_detail(response, instance.base_url)
        except ConsoleApiError:
            raise
        except httpx.TransportError as e:
            raise InstanceUnavailableError.connection_failed(instance.base_url) from e
        except Exception as e:
            raise GenericApiError.create(f"Failed to get app detail: {e}") from e

    async def export_app_dsl(
        self,
        account: ConsoleAccount,
        app_id: str,
        include_secret: bool | None = None,
    ) -> AppDslExportResult:
        if include_secret is None:
            include_secret = get_settings().dsl_export_include_secret

        try:
            instance = self.get_instance(account)
            await self._ensure_token(account)
            response = await self.gateway.export_app_dsl(instance, account, app_id, include_secret)
        except ConsoleApiError as e:
            logger.warning(f"DSL export for app {app_id} failed: {e.message}", extra={"app_id": app_id})
            return AppDslExportResult(success=False, error_message=e.message)
        except httpx.TransportError as e:
            logger.error(f"DSL export network error for app {app_id}: {e}", extra={"app_id": app_id})
            return AppDslExportResult(success=False, error_message=f"Network request failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected DSL export error for app {app_id}: {e}", exc_info=True)
            return AppDslExportResult(success=False, error_message=f"Unexpected error: {e}")

        return self.responses.process_dsl_export(response, app_id)
