"""
Core Exceptions

Error taxonomy for talking to remote console instances and for the
sync engine that mirrors them.

Remote API errors all derive from ConsoleApiError and carry the HTTP
status and raw response body for diagnostics. Sync-level errors
(SyncValidationError, SyncError) are raised locally.
"""

from datetime import datetime, timezone
from typing import Any, Mapping


class ConsoleApiError(Exception):
    """Base class for failures reported by (or while reaching) a console instance."""

    def __init__(
        self,
        message: str = "",
        status_code: int = 0,
        response_body: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(self.message)


class AuthenticationError(ConsoleApiError):
    """
    Login or token failure.

    Raised for failed logins, expired tokens that could not be refreshed,
    rejected tokens (401) and missing permissions (403).
    """

    @classmethod
    def login_failed(cls, response_body: str = "") -> "AuthenticationError":
        return cls("Console login failed", 401, response_body)

    @classmethod
    def token_expired(cls) -> "AuthenticationError":
        return cls("Console token expired and could not be refreshed", 401)

    @classmethod
    def token_invalid(cls, response_body: str = "") -> "AuthenticationError":
        return cls("Console token is invalid", 401, response_body)

    @classmethod
    def insufficient_permissions(cls) -> "AuthenticationError":
        return cls("Insufficient permissions", 403)


class RateLimitError(ConsoleApiError):
    """
    HTTP 429 from the console.

    Carries the retry hints the console sent back, when it sent any.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded, retry later",
        retry_after_seconds: int | None = None,
        remaining_requests: int = 0,
        reset_timestamp: int = 0,
        response_body: str | None = None,
    ):
        super().__init__(message, 429, response_body)
        self.retry_after_seconds = retry_after_seconds
        self.remaining_requests = remaining_requests
        self.reset_timestamp = reset_timestamp

    @property
    def reset_time(self) -> datetime:
        """Reset time as an aware datetime (now when the console sent none)."""
        if self.reset_timestamp > 0:
            return datetime.fromtimestamp(self.reset_timestamp, tz=timezone.utc)
        return datetime.now(timezone.utc)

    @classmethod
    def from_headers(
        cls, headers: Mapping[str, Any], response_body: str = ""
    ) -> "RateLimitError":
        """Build from Retry-After / X-RateLimit-* response headers."""
        retry_after: int | None = None
        remaining = 0
        reset = 0

        for name, value in headers.items():
            lowered = name.lower()
            text = str(value).strip()
            if not text.isdigit():
                continue
            if lowered == "retry-after":
                retry_after = int(text)
            elif lowered == "x-ratelimit-remaining":
                remaining = int(text)
            elif lowered == "x-ratelimit-reset":
                reset = int(text)

        return cls(
            retry_after_seconds=retry_after,
            remaining_requests=remaining,
            reset_timestamp=reset,
            response_body=response_body,
        )

    @classmethod
    def rate_limit_exceeded(cls, response_body: str = "") -> "RateLimitError":
        return cls(response_body=response_body)


class InstanceUnavailableError(ConsoleApiError):
    """
    The console instance cannot serve requests.

    Covers 5xx responses, network failures, maintenance windows and
    local misconfiguration (e.g. a disabled instance).
    """

    def __init__(
        self,
        instance_url: str,
        message: str = "Console instance unavailable",
        reason_code: str | None = None,
        status_code: int = 503,
        response_body: str | None = None,
    ):
        super().__init__(message, status_code, response_body)
        self.instance_url = instance_url
        self.reason_code = reason_code

    @classmethod
    def connection_failed(cls, instance_url: str) -> "InstanceUnavailableError":
        return cls(
            instance_url,
            f"Cannot connect to console instance: {instance_url}",
            "CONNECTION_FAILED",
            0,
        )

    @classmethod
    def service_unavailable(
        cls, instance_url: str, response_body: str = "", status_code: int = 503
    ) -> "InstanceUnavailableError":
        return cls(
            instance_url,
            f"Console instance service unavailable: {instance_url}",
            "SERVICE_UNAVAILABLE",
            status_code,
            response_body,
        )

    @classmethod
    def maintenance(cls, instance_url: str, response_body: str = "") -> "InstanceUnavailableError":
        return cls(
            instance_url,
            f"Console instance under maintenance: {instance_url}",
            "MAINTENANCE",
            503,
            response_body,
        )

    @classmethod
    def configuration_error(cls, instance_url: str, reason: str = "") -> "InstanceUnavailableError":
        message = f"Console instance misconfigured: {instance_url}"
        if reason:
            message += f" - {reason}"
        return cls(instance_url, message, "CONFIGURATION_ERROR", 500)

    @classmethod
    def instance_unavailable(cls, response_body: str = "") -> "InstanceUnavailableError":
        return cls("", "Console instance service unavailable", "SERVICE_ERROR", 503, response_body)


class GenericApiError(ConsoleApiError):
    """Any other HTTP/API failure."""

    @classmethod
    def create(
        cls,
        message: str,
        status_code: int = 0,
        response_body: str | None = None,
    ) -> "GenericApiError":
        return cls(message, status_code, response_body)


class SyncValidationError(Exception):
    """Remote data failed a local check (missing or mistyped required field)."""

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


class SyncError(Exception):
    """
    Tagged wrapper naming the sync phase that failed.

    sync_type is one of "app_sync", "account_sync", "instance_sync" or the
    phase passed to data_validation_failed().
    """

    def __init__(
        self,
        sync_type: str,
        message: str,
        entity_id: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.sync_type = sync_type
        self.message = message
        self.entity_id = entity_id
        self.context = context or {}
        super().__init__(self.message)

    @classmethod
    def app_sync_failed(cls, app_id: str, reason: str) -> "SyncError":
        return cls("app_sync", f"App sync failed: {reason}", app_id, {"app_id": app_id, "reason": reason})

    @classmethod
    def account_sync_failed(cls, account_id: str, reason: str) -> "SyncError":
        return cls(
            "account_sync",
            f"Account sync failed: {reason}",
            account_id,
            {"account_id": account_id, "reason": reason},
        )

    @classmethod
    def instance_sync_failed(cls, instance_id: str, reason: str) -> "SyncError":
        return cls(
            "instance_sync",
            f"Instance sync failed: {reason}",
            instance_id,
            {"instance_id": instance_id, "reason": reason},
        )

    @classmethod
    def data_validation_failed(
        cls, sync_type: str, entity_id: str, errors: dict[str, Any]
    ) -> "SyncError":
        return cls(sync_type, "Data validation failed", entity_id, {"validation_errors": errors})
