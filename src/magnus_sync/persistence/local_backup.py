"""
Magnus Sync - Local failover store.

Last line of defense when both remote tiers reject a write. One pretty-printed
JSON file per player under ``root_dir``; an in-memory presence set answers
"is there a pending backup?" without touching the disk. The store is private to
this process and is only a write buffer, never shared truth.

Files that no longer parse are renamed to ``<uuid>.json.corrupt`` and dropped
from the index.
"""
from __future__ import annotations
import asyncio
from pathlib import Path
from uuid import UUID, uuid4

import aiofiles
import aiofiles.os
import structlog

from magnus_common.exceptions import LocalStorageError

from ..models import PlayerRecord

logger = structlog.get_logger(__name__)

BACKUP_SUFFIX = ".json"
CORRUPT_SUFFIX = ".corrupt"


class LocalBackupStore:
    """On-disk backup of player records that failed to reach the remote tiers."""

    def __init__(self, root_dir: Path | str) -> None:
        self._root = Path(root_dir)
        self._root.mkdir(parents=True, exist_ok=True)
        self._pending: set[UUID] = set()
        # serializes file replacement against conditional deletes and quarantine
        self._lock = asyncio.Lock()
        self._load_index()

    @property
    def root_dir(self) -> Path:
        return self._root

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _load_index(self) -> None:
        """Populate the presence set from the files already on disk."""
        for path in self._root.glob(f"*{BACKUP_SUFFIX}"):
            try:
                self._pending.add(UUID(path.stem))
            except ValueError:
                logger.warning("backup_file_ignored", path=str(path), reason="name is not a uuid")
        if self._pending:
            logger.info("backup_index_loaded", pending=len(self._pending), root=str(self._root))

    def path_for(self, player_id: UUID) -> Path:
        return self._root / f"{player_id}{BACKUP_SUFFIX}"

    def has_backup(self, player_id: UUID) -> bool:
        """O(1) presence check; never touches the disk."""
        return player_id in self._pending

    async def save(self, record: PlayerRecord) -> None:
        """Write (or overwrite) the backup for this player atomically."""
        target = self.path_for(record.uuid)
        tmp = target.with_name(f".{target.name}.{uuid4().hex}.tmp")
        async with self._lock:
            try:
                async with aiofiles.open(tmp, "w", encoding="utf-8") as f:
                    await f.write(record.to_json(indent=2))
                await aiofiles.os.replace(tmp, target)
            except OSError as e:
                await self._discard_tmp(tmp)
                raise LocalStorageError(
                    f"Failed to write local backup for {record.uuid}: {e}",
                    path=str(target), cause=e,
                ) from e
            self._pending.add(record.uuid)

    async def _discard_tmp(self, tmp: Path) -> None:
        try:
            await aiofiles.os.remove(tmp)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("backup_tmp_cleanup_failed", path=str(tmp), error=str(e))

    async def find_by_id(self, player_id: UUID) -> PlayerRecord | None:
        if player_id not in self._pending:
            return None
        path = self.path_for(player_id)
        async with self._lock:
            try:
                return await self._read(path)
            except FileNotFoundError:
                # index drifted from disk
                self._pending.discard(player_id)
                return None
            except ValueError as e:
                await self._quarantine(path, e)
                return None
            except OSError as e:
                logger.error("backup_read_failed", player_id=str(player_id), path=str(path),
                             error=str(e))
                return None

    async def _read(self, path: Path) -> PlayerRecord:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return PlayerRecord.from_json(await f.read())

    async def _quarantine(self, path: Path, error: Exception) -> None:
        """Move an unparseable backup aside so it stops counting as pending."""
        target = path.with_name(f"{path.name}{CORRUPT_SUFFIX}")
        try:
            await aiofiles.os.replace(path, target)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("backup_quarantine_failed", path=str(path), error=str(e))
            return
        else:
            logger.error("backup_quarantined", path=str(path), moved_to=str(target), error=str(error))
        try:
            self._pending.discard(UUID(path.stem))
        except ValueError:
            pass

    async def list_backups(self) -> list[PlayerRecord]:
        """Scan the directory itself rather than trusting the in-memory index."""
        records: list[PlayerRecord] = []
        for path in sorted(self._root.glob(f"*{BACKUP_SUFFIX}")):
            async with self._lock:
                try:
                    records.append(await self._read(path))
                except FileNotFoundError:
                    continue
                except ValueError as e:
                    await self._quarantine(path, e)
                except OSError as e:
                    logger.warning("backup_unreadable", path=str(path), error=str(e))
        return records

    async def delete_if_unchanged(self, record: PlayerRecord) -> bool:
        """Remove the backup only if the file still holds exactly ``record``.

        Returns False, leaving the file in place, when a newer failover write
        replaced it after ``record`` was read.
        """
        async with self._lock:
            try:
                current = await self._read(self.path_for(record.uuid))
            except FileNotFoundError:
                self._pending.discard(record.uuid)
                return True
            if current != record:
                return False
            await self._remove(record.uuid)
            return True

    async def _remove(self, player_id: UUID) -> None:
        path = self.path_for(player_id)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise LocalStorageError(
                f"Failed to delete local backup for {player_id}: {e}",
                path=str(path), cause=e,
            ) from e
        self._pending.discard(player_id)

    async def evict_cache(self, player_id: UUID) -> None:
        """Backups are never dropped on cache release."""
