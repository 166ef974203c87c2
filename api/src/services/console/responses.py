"""
Console Response Processor

Turns raw console responses into typed results or typed errors. All
non-success statuses funnel through raise_for_status(); DSL export
problems are reported as AppDslExportResult(success=False) instead.
"""

import json
import logging
import math
from datetime import date
from typing import Any

import httpx
import yaml

from src.core.exceptions import (
    AuthenticationError,
    GenericApiError,
    InstanceUnavailableError,
    RateLimitError,
)
from src.models.contracts.console import AppDslExportResult, AppListQuery, AppListResult

logger = logging.getLogger(__name__)

UNAVAILABLE_STATUSES = frozenset({500, 501, 502, 503, 504})


def ensure_string_keys(data: dict[Any, Any]) -> dict[str, Any]:
    """Drop non-string keys from a mapping."""
    return {key: value for key, value in data.items() if isinstance(key, str)}


def json_document(value: Any) -> Any:
    """
    Coerce a parsed YAML value into plain JSON types.

    Mapping keys become strings and dates become ISO strings. Any other
    non-JSON scalar, including NaN and infinities, becomes its str().
    """
    if isinstance(value, dict):
        return {key if isinstance(key, str) else str(key): json_document(item) for key, item in value.items()}
    if isinstance(value, set):
        return [json_document(item) for item in sorted(value, key=str)]
    if isinstance(value, (list, tuple)):
        return [json_document(item) for item in value]
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if value is None or isinstance(value, (str, int, float)):
        return value
    return str(value)


def _int_value(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            return int(value)
        except (ValueError, OverflowError):
            return default
    if isinstance(value, str):
        try:
            return int(float(value))
        except (ValueError, OverflowError):
            return default
    return default


def extract_error_message(body: str) -> str:
    """
    Best-effort error text from a response body.

    Uses the first of `message`, `error`, `detail` in a JSON object, else
    the raw body. Returns "" when nothing useful is present.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return body.strip()

    if not isinstance(data, dict):
        return ""
    for key in ("message", "error", "detail"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


class ResponseProcessor:
    """Error classification and payload normalization for console responses."""

    def raise_for_status(self, response: httpx.Response, instance_url: str = "") -> None:
        """
        Raise the typed error for a non-200 response.

        Raises:
            AuthenticationError: 401 / 403
            RateLimitError: 429
            InstanceUnavailableError: 500-504
            GenericApiError: anything else
        """
        status = response.status_code
        if status == 200:
            return

        body = response.text
        if status == 401:
            raise AuthenticationError.token_invalid(body)
        if status == 403:
            raise AuthenticationError.insufficient_permissions()
        if status == 429:
            raise RateLimitError.from_headers(response.headers, body)
        if status in UNAVAILABLE_STATUSES:
            raise InstanceUnavailableError.service_unavailable(instance_url, body, status)

        message = extract_error_message(body) or f"HTTP {status}"
        raise GenericApiError.create(message, status, body)

    def _json_object(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise GenericApiError.create(
                f"Invalid JSON in console response: {e}", response.status_code, response.text
            ) from e
        if not isinstance(data, dict):
            return {}
        return ensure_string_keys(data)

    def process_apps_list(
        self, response: httpx.Response, query: AppListQuery, instance_url: str
    ) -> AppListResult:
        self.raise_for_status(response, instance_url)
        data = self._json_object(response)

        apps: list[dict[str, Any] | str] = []
        raw_apps = data.get("data")
        if isinstance(raw_apps, list):
            for entry in raw_apps:
                if isinstance(entry, dict):
                    apps.append(ensure_string_keys(entry))
                elif isinstance(entry, str):
                    apps.append(entry)

        total = _int_value(data, "total", 0)
        page = _int_value(data, "page", query.page)
        limit = _int_value(data, "limit", query.limit) or query.limit
        has_more = data.get("has_more")
        if not isinstance(has_more, bool):
            has_more = page * limit < total

        return AppListResult(data=apps, total=total, page=page, limit=limit, has_more=has_more)

    def process_app_detail(self, response: httpx.Response, instance_url: str) -> dict[str, Any] | None:
        """String-keyed app payload, or None when the console returned nothing."""
        self.raise_for_status(response, instance_url)
        data = self._json_object(response)
        return data or None

    def process_dsl_export(self, response: httpx.Response, app_id: str) -> AppDslExportResult:
        if response.status_code != 200:
            message = extract_error_message(response.text) or f"HTTP {response.status_code}"
            logger.warning(
                f"DSL export failed for app {app_id}: {message}",
                extra={"app_id": app_id, "status_code": response.status_code},
            )
            return AppDslExportResult(success=False, error_message=message)

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Unparsable DSL export response for app {app_id}: {e}")
            return AppDslExportResult(success=False, error_message=f"Unparsable export response: {e}")

        if not isinstance(data, dict):
            return AppDslExportResult(success=False, error_message="Export response is not an object")

        raw = data.get("data")
        if raw is None:
            return AppDslExportResult(success=False, error_message="No DSL data in export response")
        return self.parse_dsl(raw)

    def parse_dsl(self, raw: Any) -> AppDslExportResult:
        """
        Parse the `data` field of an export.

        A YAML string is parsed and kept verbatim as raw content; a mapping
        is re-serialized to canonical YAML. Content is coerced to plain JSON
        types either way.
        """
        if isinstance(raw, str):
            try:
                content = yaml.safe_load(raw)
            except yaml.YAMLError as e:
                return AppDslExportResult(success=False, error_message=f"DSL YAML parse failed: {e}")
            if not isinstance(content, dict):
                return AppDslExportResult(success=False, error_message="DSL YAML is not a mapping")
            return AppDslExportResult(
                success=True, content=json_document(ensure_string_keys(content)), raw_content=raw
            )

        if isinstance(raw, dict):
            content = json_document(ensure_string_keys(raw))
            try:
                raw_content = yaml.safe_dump(
                    content, sort_keys=True, allow_unicode=True, default_flow_style=False
                )
            except yaml.YAMLError as e:
                return AppDslExportResult(success=False, error_message=f"DSL YAML dump failed: {e}")
            return AppDslExportResult(success=True, content=content, raw_content=raw_content)

        return AppDslExportResult(success=False, error_message="Invalid DSL data format")
