"""
Magnus Sync - Player sync service.

Application seam between the server's join/quit hooks and storage.
"""
from __future__ import annotations
import asyncio
from collections.abc import Iterable
from uuid import UUID
import structlog

from magnus_common.exceptions import ErrorContext, SessionLockedError

from ..locking import SessionLockManager
from ..models import PlayerRecord
from ..ports import PlayerRepository

logger = structlog.get_logger(__name__)


class SyncService:
    """Coordinates session locks with the resilient repository."""

    def __init__(self, repository: PlayerRepository, locks: SessionLockManager,
                 retry_after_seconds: int = 5) -> None:
        self._repository = repository
        self._locks = locks
        self._retry_after = retry_after_seconds

    async def load_player(self, player_id: UUID) -> PlayerRecord | None:
        """Load a profile on join.

        Raises:
            SessionLockedError: another server is still saving this player.
            DataUnavailableError: no tier can answer; the join must be refused.
        """
        if await self._locks.is_locked(player_id):
            raise SessionLockedError(
                str(player_id),
                retry_after_seconds=self._retry_after,
                context=ErrorContext(operation="load_player", player_id=str(player_id)),
            )
        record = await self._repository.find_by_id(player_id)
        logger.debug("player_loaded", player_id=str(player_id), found=record is not None)
        return record

    async def save_player(self, record: PlayerRecord) -> None:
        async with self._locks.hold(record.uuid):
            await self._repository.save(record)
        logger.debug("player_saved", player_id=str(record.uuid), username=record.username)

    async def release_cache(self, player_id: UUID) -> None:
        await self._repository.evict_cache(player_id)

    async def save_all(self, records: Iterable[PlayerRecord]) -> int:
        """Save every online player. Returns how many saves succeeded."""
        batch = list(records)
        if not batch:
            return 0
        results = await asyncio.gather(*(self.save_player(r) for r in batch),
                                       return_exceptions=True)
        saved = 0
        for record, result in zip(batch, results):
            if isinstance(result, BaseException):
                logger.error("shutdown_save_failed", player_id=str(record.uuid), error=str(result))
            else:
                saved += 1
        logger.info("shutdown_save_completed", saved=saved, total=len(batch))
        return saved
