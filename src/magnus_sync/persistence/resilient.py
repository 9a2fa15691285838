"""
Magnus Sync - Resilient repository.

Wraps the cached repository with the local backup store:
- Write: if the remote tiers fail, buffer the record on local disk.
- Read: reconcile the remote copy with any local backup by ``last_updated``;
  refuse with ``DataUnavailableError`` rather than present an empty profile
  when nothing can answer.
"""
from __future__ import annotations
from uuid import UUID
import structlog

from magnus_common.exceptions import DataUnavailableError, ErrorContext

from ..models import PlayerRecord
from ..ports import PlayerRepository
from .local_backup import LocalBackupStore

logger = structlog.get_logger(__name__)


class ResilientPlayerRepository:
    """The single entry point for player data on the request path."""

    def __init__(self, primary: PlayerRepository, backup: LocalBackupStore) -> None:
        self._primary = primary
        self._backup = backup

    async def save(self, record: PlayerRecord) -> None:
        try:
            await self._primary.save(record)
            return
        except Exception as e:
            logger.error("primary_save_failed_failing_over", player_id=str(record.uuid),
                         username=record.username, error=str(e))
        try:
            await self._backup.save(record)
            logger.warning("saved_to_local_backup", player_id=str(record.uuid),
                           username=record.username)
        except Exception as e:
            # both layers lost the write
            logger.critical("local_backup_save_failed", player_id=str(record.uuid),
                            username=record.username, error=str(e))

    async def find_by_id(self, player_id: UUID) -> PlayerRecord | None:
        has_local = self._backup.has_backup(player_id)

        remote: PlayerRecord | None = None
        remote_error: Exception | None = None
        try:
            remote = await self._primary.find_by_id(player_id)
        except Exception as e:
            remote_error = e
            logger.error("primary_load_failed", player_id=str(player_id),
                         has_local=has_local, error=str(e))

        if has_local:
            local = await self._backup.find_by_id(player_id)
            if local is not None:
                if remote is None:
                    logger.warning("using_local_backup", player_id=str(player_id),
                                   reason="remote unavailable" if remote_error else "remote absent")
                    return local
                if local.is_newer_than(remote):
                    logger.warning("using_local_backup", player_id=str(player_id),
                                   reason="local is fresher", local_ts=local.last_updated,
                                   remote_ts=remote.last_updated)
                    return local

        if remote is not None:
            return remote
        if remote_error is not None:
            raise DataUnavailableError(
                str(player_id),
                context=ErrorContext(operation="find_by_id", player_id=str(player_id)),
                cause=remote_error,
            ) from remote_error
        return None

    async def evict_cache(self, player_id: UUID) -> None:
        try:
            await self._primary.evict_cache(player_id)
        except Exception as e:
            logger.warning("evict_cache_failed", player_id=str(player_id), error=str(e))
