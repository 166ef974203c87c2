"""
Unit tests for ConsoleClientService against an in-memory console.
"""

import httpx
import pytest

from src.core.exceptions import (
    AuthenticationError,
    GenericApiError,
    InstanceUnavailableError,
    RateLimitError,
)
from src.models.contracts.console import AppListQuery
from src.services.console.client import ConsoleClientService
from src.services.console.gateway import ConsoleGateway
from tests.helpers.factories import make_dsl, make_remote_app


@pytest.fixture
def client(db_session, console) -> ConsoleClientService:
    return ConsoleClientService(db_session, gateway=console.gateway())


class TestLogin:
    async def test_login_posts_credentials(self, client, console, account):
        result = await client.login(account)

        assert result.success is True
        assert result.access_token == console.token
        request = console.calls("POST", "/console/api/login")[0]
        assert request.url == f"{console.base_url}/console/api/login"
        assert b'"email":"owner@example.com"' in request.content.replace(b" ", b"")

    async def test_login_failure(self, client, console, account):
        console.fail("POST", "/console/api/login", 401, text="invalid credentials")

        with pytest.raises(AuthenticationError):
            await client.login(account)

    async def test_disabled_instance(self, client, account, instance):
        instance.is_enabled = False

        with pytest.raises(InstanceUnavailableError) as exc_info:
            await client.login(account)

        assert exc_info.value.reason_code == "CONFIGURATION_ERROR"

    async def test_transport_error_becomes_connection_failed(self, db_session, account):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        gateway = ConsoleGateway(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        client = ConsoleClientService(db_session, gateway=gateway)

        with pytest.raises(InstanceUnavailableError) as exc_info:
            await client.login(account)

        assert exc_info.value.reason_code == "CONNECTION_FAILED"


class TestGetApps:
    async def test_logs_in_once_and_sends_bearer(self, client, console, account):
        console.add_app(make_remote_app("a1", mode="workflow"))

        first = await client.get_apps(account, AppListQuery())
        second = await client.get_apps(account, AppListQuery(page=1, limit=10, mode="workflow"))

        assert [app["id"] for app in first.data] == ["a1"]
        assert second.total == 1
        assert console.login_count == 1
        assert account.access_token == console.token
        assert account.token_expires_at is not None
        assert account.last_login_at is not None

        last = console.list_requests[-1]
        assert last.headers["Authorization"] == f"Bearer {console.token}"
        assert last.url.params["mode"] == "workflow"
        assert last.url.params["limit"] == "10"

    async def test_429_on_list_is_rate_limit(self, client, console, account):
        console.fail("GET", "/console/api/apps", 429, headers={"Retry-After": "3"})

        with pytest.raises(RateLimitError):
            await client.get_apps(account, AppListQuery())

    async def test_503_on_list_carries_instance_url(self, client, console, account):
        console.fail("GET", "/console/api/apps", 503, text="maintenance")

        with pytest.raises(InstanceUnavailableError) as exc_info:
            await client.get_apps(account, AppListQuery())

        assert exc_info.value.instance_url == console.base_url

    async def test_404_on_list_is_generic(self, client, console, account):
        console.fail("GET", "/console/api/apps", 404, json={"message": "gone"})

        with pytest.raises(GenericApiError) as exc_info:
            await client.get_apps(account, AppListQuery())

        assert exc_info.value.status_code == 404


class TestGetAppDetail:
    async def test_detail(self, client, console, account):
        console.add_app(make_remote_app("a1"), detail=make_remote_app("a1", name="Detailed"))

        detail = await client.get_app_detail(account, "a1")

        assert detail["name"] == "Detailed"

    async def test_missing_app(self, client, account):
        with pytest.raises(GenericApiError):
            await client.get_app_detail(account, "missing")


class TestExportAppDsl:
    async def test_export(self, client, console, account):
        console.add_app(make_remote_app("a1", mode="workflow"), dsl=make_dsl())

        result = await client.export_app_dsl(account, "a1")

        assert result.success is True
        assert result.content["kind"] == "app"
        request = console.calls("GET", "/console/api/apps/a1/export")[0]
        assert request.url.params["include_secret"] == "false"

    async def test_export_failure_does_not_raise(self, client, account):
        result = await client.export_app_dsl(account, "missing")

        assert result.success is False
        assert result.error_message == "App not found"

    async def test_export_auth_failure_does_not_raise(self, client, console, account):
        console.fail("POST", "/console/api/login", 401)

        result = await client.export_app_dsl(account, "a1")

        assert result.success is False
        assert result.error_message == "Console login failed"
