"""
Lock Services

Two kinds of locks guard the sync engine:

1. AccountLockRegistry - in-process asyncio locks, one per account, used to
   serialize token refresh (single-flight login).
2. MessageLockService - Redis-based locks keyed by queue message id, used to
   drop duplicate deliveries of an in-flight sync request.

Message Lock Flow:
1. Consumer attempts SET NX EX on the message id
2. If the key already exists, another worker is running the same request
3. The TTL releases the lock if the worker crashes
4. On completion (success or failure), the lock is released
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

import redis.asyncio as redis

from src.config import get_settings

logger = logging.getLogger(__name__)

# Redis key prefix
MESSAGE_LOCK_KEY_PREFIX = "console-sync:message:"


class AccountLockRegistry:
    """
    Per-account asyncio locks.

    Locks are created lazily and live for the process lifetime; the number
    of accounts is small.

    The registry also remembers the last token obtained per account, so a
    caller holding a stale copy of the account (another session) can pick
    it up after waiting on the lock instead of logging in again.
    """

    def __init__(self):
        self._locks: dict[int, asyncio.Lock] = {}
        self._tokens: dict[int, tuple[str, datetime | None, datetime]] = {}

    def get(self, account_id: int) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, account_id: int) -> AsyncIterator[None]:
        async with self.get(account_id):
            yield

    def remember_token(
        self, account_id: int, token: str, expires_at: datetime | None, logged_in_at: datetime
    ) -> None:
        self._tokens[account_id] = (token, expires_at, logged_in_at)

    def recent_token(self, account_id: int) -> tuple[str, datetime | None, datetime] | None:
        """(token, expires_at, logged_in_at) of the last refresh, if any."""
        return self._tokens.get(account_id)

    def clear(self) -> None:
        self._locks.clear()
        self._tokens.clear()


# Process-wide registry used by the authentication processor
account_locks = AccountLockRegistry()


@dataclass
class MessageLockInfo:
    """Who is processing a message."""

    message_id: str
    scope: str
    locked_at: datetime

    def to_dict(self) -> dict:
        return {
            "message_id": self.message_id,
            "scope": self.scope,
            "locked_at": self.locked_at.isoformat(),
        }


class MessageLockService:
    """
    Deduplicate in-flight queue messages using Redis.

    Provides:
    - acquire/release keyed by message id
    - TTL-based auto-release on crash
    """

    def __init__(self, redis_client: redis.Redis | None = None):
        self._redis = redis_client

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            settings = get_settings()
            self._redis = redis.from_url(
                settings.redis_url,
                decode_responses=True,
            )
        return self._redis

    async def acquire(self, message_id: str, scope: str, ttl_seconds: int | None = None) -> bool:
        """
        Attempt to claim a message.

        Uses SET NX EX for atomic acquisition with expiry.

        Returns:
            True if claimed, False if another worker already holds it
        """
        redis_client = await self._get_redis()
        ttl = ttl_seconds or get_settings().message_dedup_ttl_seconds
        key = f"{MESSAGE_LOCK_KEY_PREFIX}{message_id}"
        info = MessageLockInfo(message_id, scope, datetime.now(timezone.utc))

        try:
            acquired = await redis_client.set(key, json.dumps(info.to_dict()), nx=True, ex=ttl)
        except Exception as e:
            logger.error(f"Failed to acquire message lock {message_id}: {e}")
            raise

        if acquired:
            logger.debug(f"Message lock acquired: {message_id} ({scope})")
            return True

        logger.info(f"Message lock denied: {message_id} already in flight")
        return False

    async def release(self, message_id: str) -> None:
        redis_client = await self._get_redis()
        try:
            await redis_client.delete(f"{MESSAGE_LOCK_KEY_PREFIX}{message_id}")
        except Exception as e:
            logger.error(f"Failed to release message lock {message_id}: {e}")
            raise

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None


# Singleton instance
_message_lock_service: MessageLockService | None = None


def get_message_lock_service() -> MessageLockService:
    """Get the message lock service singleton."""
    global _message_lock_service
    if _message_lock_service is None:
        _message_lock_service = MessageLockService()
    return _message_lock_service
