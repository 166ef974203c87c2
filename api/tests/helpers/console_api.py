"""
In-memory console API for tests.

FakeConsole answers the four console endpoints from plain dicts through
httpx.MockTransport, so the real gateway, response processor and
authentication code run unchanged.

Usage:
    console = FakeConsole()
    console.add_app(make_remote_app("app-1", mode="workflow"), dsl=make_dsl())
    service = AppSyncService(db_session, gateway=console.gateway())
"""

import re
from typing import Any, Callable

import httpx

from src.services.console.gateway import ConsoleGateway

BASE_URL = "https://console.example"

DETAIL_PATH = re.compile(r"^/console/api/apps/(?P<app_id>[^/]+)$")
EXPORT_PATH = re.compile(r"^/console/api/apps/(?P<app_id>[^/]+)/export$")

Override = Callable[[httpx.Request], httpx.Response | None]


class FakeConsole:
    """Console deployment served from memory."""

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.apps: list[dict[str, Any] | str] = []
        self.details: dict[str, dict[str, Any]] = {}
        self.dsl: dict[str, Any] = {}
        self.token = "console-token"
        self.expires_in: int | None = 3600
        self.requests: list[httpx.Request] = []
        self.overrides: list[Override] = []

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def add_app(
        self,
        app: dict[str, Any],
        detail: dict[str, Any] | None = None,
        dsl: Any = None,
    ) -> None:
        """Register an app; detail defaults to the list entry itself."""
        self.apps.append(app)
        self.details[app["id"]] = detail if detail is not None else dict(app)
        if dsl is not None:
            self.dsl[app["id"]] = dsl

    def fail(self, method: str, path: str, status_code: int, **kwargs: Any) -> None:
        """Answer method+path with a fixed error response."""

        def override(request: httpx.Request) -> httpx.Response | None:
            if request.method == method and request.url.path == path:
                return httpx.Response(status_code, **kwargs)
            return None

        self.overrides.append(override)

    def gateway(self) -> ConsoleGateway:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return ConsoleGateway(client=client)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def calls(self, method: str, path_prefix: str = "") -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and r.url.path.startswith(path_prefix)
        ]

    @property
    def login_count(self) -> int:
        return len(self.calls("POST", "/console/api/login"))

    @property
    def list_requests(self) -> list[httpx.Request]:
        return [r for r in self.calls("GET") if r.url.path == "/console/api/apps"]

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        for override in self.overrides:
            response = override(request)
            if response is not None:
                return response

        path = request.url.path
        if request.method == "POST" and path == "/console/api/login":
            return self._login()

        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return httpx.Response(401, json={"message": "Unauthorized"})

        if request.method == "GET" and path == "/console/api/apps":
            return self._list(request)

        match = EXPORT_PATH.match(path)
        if request.method == "GET" and match:
            app_id = match.group("app_id")
            if app_id not in self.dsl:
                return httpx.Response(404, json={"message": "App not found"})
            return httpx.Response(200, json={"data": self.dsl[app_id]})

        match = DETAIL_PATH.match(path)
        if request.method == "GET" and match:
            detail = self.details.get(match.group("app_id"))
            if detail is None:
                return httpx.Response(404, json={"message": "App not found"})
            return httpx.Response(200, json=detail)

        return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})

    def _login(self) -> httpx.Response:
        data: dict[str, Any] = {"access_token": self.token}
        if self.expires_in is not None:
            data["expires_in"] = self.expires_in
        return httpx.Response(200, json={"result": "success", "data": data})

    def _list(self, request: httpx.Request) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        limit = int(request.url.params.get("limit", "30"))
        mode = request.url.params.get("mode")

        apps = [
            app for app in self.apps
            if mode is None or not isinstance(app, dict) or app.get("mode") == mode
        ]
        start = (page - 1) * limit
        return httpx.Response(
            200,
            json={
                "data": apps[start:start + limit],
                "page": page,
                "limit": limit,
                "total": len(apps),
                "has_more": start + limit < len(apps),
            },
        )
