"""
Authentication Processor

Validates login responses, extracts the bearer token and its expiry, and
refreshes expired account tokens.

Token expiry resolution, in order:
1. `exp` claim of a three-part JWT (signature is not verified)
2. integer `expires_in` seconds, top level or under `data`
3. default TTL (24 hours)

Refresh is single-flight per account: concurrent callers wait on the
account's lock and re-check expiry once they hold it.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.core.exceptions import (
    AuthenticationError,
    GenericApiError,
    InstanceUnavailableError,
    RateLimitError,
)
from src.core.locks import AccountLockRegistry, account_locks
from src.models.contracts.console import AuthenticationResult
from src.models.orm import ConsoleAccount

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Awaitable[AuthenticationResult]]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class AuthenticationProcessor:
    """Login response handling and token lifecycle for console accounts."""

    def __init__(self, session: AsyncSession | None = None, locks: AccountLockRegistry | None = None):
        self.session = session
        self.locks = locks or account_locks

    # ==========================================================================
    # Login response
    # ==========================================================================

    def validate_login_response(self, response: httpx.Response) -> dict[str, Any]:
        """
        Check a login response and return its JSON body.

        Raises:
            AuthenticationError: 401 / 403, or a body that is not a JSON object
            RateLimitError: 429
            InstanceUnavailableError: 5xx
            GenericApiError: any other non-200 status
        """
        status = response.status_code
        if status != 200:
            body = response.text
            if status in (401, 403):
                raise AuthenticationError.login_failed(body)
            if status == 429:
                raise RateLimitError.rate_limit_exceeded(body)
            if 500 <= status < 600:
                raise InstanceUnavailableError.instance_unavailable(body)
            raise GenericApiError.create(f"HTTP {status} error", status, body)

        try:
            data = response.json()
        except ValueError:
            raise AuthenticationError.login_failed(response.text)
        if not isinstance(data, dict):
            raise AuthenticationError.login_failed(response.text)
        return data

    def extract_authentication_data(self, data: dict[str, Any]) -> tuple[str, datetime]:
        """
        Token and expiry from a login payload.

        Raises:
            AuthenticationError: no non-empty string access_token present
        """
        token = data.get("access_token")
        nested = data.get("data")
        if token is None and isinstance(nested, dict):
            token = nested.get("access_token")

        if not isinstance(token, str) or not token:
            raise AuthenticationError.login_failed(json.dumps(data, default=str))

        return token, self.calculate_token_expiry(token, data)

    def calculate_token_expiry(
        self, token: str, data: dict[str, Any], now: datetime | None = None
    ) -> datetime:
        now = now or datetime.now(timezone.utc)

        expires_at = self.extract_expiry_from_jwt(token)
        if expires_at is not None:
            return expires_at

        expires_in = data.get("expires_in")
        nested = data.get("data")
        if expires_in is None and isinstance(nested, dict):
            expires_in = nested.get("expires_in")
        if _is_int(expires_in):
            return now + timedelta(seconds=expires_in)

        return now + timedelta(hours=get_settings().default_token_ttl_hours)

    @staticmethod
    def extract_expiry_from_jwt(token: str) -> datetime | None:
        """`exp` claim of a JWT, or None for opaque tokens and non-integer claims."""
        if token.count(".") != 2:
            return None
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError:
            return None

        exp = claims.get("exp") if isinstance(claims, dict) else None
        if not _is_int(exp):
            return None
        try:
            return datetime.fromtimestamp(exp, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug(f"JWT exp claim out of range: {exp}")
            return None

    # ==========================================================================
    # Token lifecycle
    # ==========================================================================

    async def ensure_valid_token(self, account: ConsoleAccount, refresh: RefreshCallback) -> None:
        """
        Refresh the account token when it is missing or expired.

        On success the account's access_token, token_expires_at and
        last_login_at are updated and flushed.

        Raises:
            AuthenticationError: the refresh reported success=False
        """
        if not account.is_token_expired():
            return

        async with self.locks.hold(account.id):
            recent = self.locks.recent_token(account.id)
            if recent is not None and recent[0] != account.access_token:
                token, expires_at, logged_in_at = recent
                account.access_token = token
                account.token_expires_at = expires_at
                account.last_login_at = logged_in_at
                if not account.is_token_expired():
                    await self._flush()
                    logger.debug(f"Reused token refreshed by a concurrent caller for account {account.id}")
                    return

            if not account.is_token_expired():
                return

            result = await refresh()
            if not isinstance(result, AuthenticationResult) or not result.success:
                raise AuthenticationError.token_expired()

            logged_in_at = datetime.now(timezone.utc)
            account.access_token = result.access_token
            account.token_expires_at = result.expires_at
            account.last_login_at = logged_in_at
            await self._flush()

            self.locks.remember_token(account.id, result.access_token or "", result.expires_at, logged_in_at)
            logger.info(
                f"Token refreshed for account {account.email}",
                extra={
                    "account_id": account.id,
                    "expires_at": result.expires_at.isoformat() if result.expires_at else None,
                },
            )

    async def _flush(self) -> None:
        if self.session is not None:
            await self.session.flush()

    def log_successful_login(self, account: ConsoleAccount) -> None:
        logger.info(
            f"Console login succeeded for {account.email}",
            extra={"account_id": account.id, "instance_id": account.instance_id},
        )
