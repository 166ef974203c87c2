"""
Console HTTP Gateway

Issues the four remote calls (login, app list, app detail, DSL export).
Every call uses the configured fixed timeout; there is no retry here.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from src.config import get_settings
from src.models.contracts.console import AppListQuery
from src.models.orm import ConsoleAccount, ConsoleInstance

logger = logging.getLogger(__name__)

LOGIN_PATH = "/console/api/login"
APPS_PATH = "/console/api/apps"


class ConsoleGateway:
    """
    Thin httpx wrapper for the console API.

    A shared AsyncClient may be injected (tests pass one built on
    httpx.MockTransport); otherwise each call opens its own client.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float | None = None):
        self._client = client
        self.timeout = timeout if timeout is not None else get_settings().http_timeout_seconds

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient() as client:
            yield client

    @staticmethod
    def _auth_headers(account: ConsoleAccount) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {account.access_token}",
            "Accept": "application/json",
        }

    async def login(self, instance: ConsoleInstance, account: ConsoleAccount) -> httpx.Response:
        url = f"{instance.base_url}{LOGIN_PATH}"
        logger.debug(f"POST {url}", extra={"account_id": account.id})
        async with self._http() as client:
            return await client.post(
                url,
                json={"email": account.email, "password": account.password},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )

    async def list_apps(
        self, instance: ConsoleInstance, account: ConsoleAccount, query: AppListQuery
    ) -> httpx.Response:
        url = f"{instance.base_url}{APPS_PATH}"
        logger.debug(f"GET {url} page={query.page}", extra={"account_id": account.id})
        async with self._http() as client:
            return await client.get(
                url,
                params=query.to_params(),
                headers=self._auth_headers(account),
                timeout=self.timeout,
            )

    async def get_app_detail(
        self, instance: ConsoleInstance, account: ConsoleAccount, app_id: str
    ) -> httpx.Response:
        url = f"{instance.base_url}{APPS_PATH}/{app_id}"
        async with self._http() as client:
            return await client.get(url, headers=self._auth_headers(account), timeout=self.timeout)

    async def export_app_dsl(
        self,
        instance: ConsoleInstance,
        account: ConsoleAccount,
        app_id: str,
        include_secret: bool = False,
    ) -> httpx.Response:
        url = f"{instance.base_url}{APPS_PATH}/{app_id}/export"
        async with self._http() as client:
            return await client.get(
                url,
                params={"include_secret": str(include_secret).lower()},
                headers=self._auth_headers(account),
                timeout=self.timeout,
            )
