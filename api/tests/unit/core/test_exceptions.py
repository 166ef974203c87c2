"""
Unit tests for the console error taxonomy.
"""

from datetime import datetime, timezone

import httpx

from src.core.exceptions import (
    AuthenticationError,
    ConsoleApiError,
    InstanceUnavailableError,
    RateLimitError,
    SyncError,
)


class TestRateLimitError:
    def test_from_headers_reads_retry_hints(self):
        headers = httpx.Headers(
            {"Retry-After": "30", "X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1704067200"}
        )

        error = RateLimitError.from_headers(headers, "slow down")

        assert error.status_code == 429
        assert error.retry_after_seconds == 30
        assert error.remaining_requests == 0
        assert error.reset_time == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert error.response_body == "slow down"

    def test_from_headers_ignores_non_numeric_values(self):
        error = RateLimitError.from_headers({"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})

        assert error.retry_after_seconds is None
        assert error.reset_timestamp == 0

    def test_is_console_api_error(self):
        assert isinstance(RateLimitError.rate_limit_exceeded(), ConsoleApiError)


class TestInstanceUnavailableError:
    def test_connection_failed(self):
        error = InstanceUnavailableError.connection_failed("https://console.example")

        assert error.instance_url == "https://console.example"
        assert error.reason_code == "CONNECTION_FAILED"
        assert "https://console.example" in error.message

    def test_configuration_error_carries_reason(self):
        error = InstanceUnavailableError.configuration_error("https://c.example", "instance is disabled")

        assert error.reason_code == "CONFIGURATION_ERROR"
        assert error.message.endswith("instance is disabled")


class TestAuthenticationError:
    def test_statuses(self):
        assert AuthenticationError.login_failed("bad").status_code == 401
        assert AuthenticationError.token_expired().status_code == 401
        assert AuthenticationError.insufficient_permissions().status_code == 403


class TestSyncError:
    def test_app_sync_failed_context(self):
        error = SyncError.app_sync_failed("app-1", "boom")

        assert error.sync_type == "app_sync"
        assert error.entity_id == "app-1"
        assert error.context == {"app_id": "app-1", "reason": "boom"}

    def test_data_validation_failed(self):
        error = SyncError.data_validation_failed("app_sync", "app-1", {"id": "missing"})

        assert error.context == {"validation_errors": {"id": "missing"}}
