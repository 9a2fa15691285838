"""
Magnus Sync - Session locks.

Advisory, fail-open distributed lock per player, stored as a TTL'd Redis key.
Prevents a player from loading on one server while their save from another
server is still in flight. The TTL recovers from a crash between lock and
unlock.
"""
from __future__ import annotations
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID
import structlog

from magnus_infrastructure.redis import RedisClient

logger = structlog.get_logger(__name__)

LOCK_KEY_PREFIX = "lock:"
LOCK_MARKER = "LOCKED"
DEFAULT_LOCK_TTL_SECONDS = 30


class SessionLockManager:
    """Lock existence means "save in progress". No ownership token: any
    process may release any lock."""

    def __init__(self, client: RedisClient, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS) -> None:
        self._client = client
        self._ttl = ttl_seconds

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    @staticmethod
    def key_for(player_id: UUID) -> str:
        return f"{LOCK_KEY_PREFIX}{player_id}"

    async def is_locked(self, player_id: UUID) -> bool:
        """True if a save holds the lock. Fails open when Redis is unreachable."""
        try:
            return await self._client.exists(self.key_for(player_id)) > 0
        except Exception as e:
            logger.warning("lock_check_failed_fail_open", player_id=str(player_id), error=str(e))
            return False

    async def lock(self, player_id: UUID) -> None:
        try:
            await self._client.set(self.key_for(player_id), LOCK_MARKER, ttl=self._ttl)
            logger.debug("session_locked", player_id=str(player_id), ttl=self._ttl)
        except Exception as e:
            logger.error("session_lock_failed", player_id=str(player_id), error=str(e))

    async def unlock(self, player_id: UUID) -> None:
        try:
            await self._client.delete(self.key_for(player_id))
            logger.debug("session_unlocked", player_id=str(player_id))
        except Exception as e:
            logger.error("session_unlock_failed", player_id=str(player_id), error=str(e))

    @asynccontextmanager
    async def hold(self, player_id: UUID) -> AsyncIterator[None]:
        """Lock for the duration of the block; always unlocks."""
        await self.lock(player_id)
        try:
            yield
        finally:
            await self.unlock(player_id)
