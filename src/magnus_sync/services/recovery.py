"""
Magnus Sync - Backup recovery janitor.

Drains the local failover store back into the remote tiers once they are
reachable again. Must be wired to the raw cached repository, never to the
resilient wrapper, so a failed replay cannot write back to the same backup.
"""
from __future__ import annotations
import asyncio
from dataclasses import dataclass
import structlog

from ..models import PlayerRecord
from ..persistence.local_backup import LocalBackupStore
from ..ports import PlayerRepository

logger = structlog.get_logger(__name__)


@dataclass
class RecoveryReport:
    recovered: int = 0
    discarded: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.recovered + self.discarded + self.skipped


class BackupRecoveryService:
    """Background service that periodically reconciles local backups."""

    def __init__(
        self,
        local_backup: LocalBackupStore,
        primary_repo: PlayerRepository,
        interval_seconds: float = 300,
        initial_delay_seconds: float = 60,
    ) -> None:
        self._local = local_backup
        self._primary = primary_repo
        self._interval = interval_seconds
        self._initial_delay = initial_delay_seconds
        self._running = False
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="magnus-backup-janitor")
        logger.info("backup_janitor_started", initial_delay_s=self._initial_delay,
                    interval_s=self._interval)

    async def stop(self) -> None:
        """Stop after the entity currently being processed."""
        self._running = False
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        logger.info("backup_janitor_stopped")

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _run_loop(self) -> None:
        await self._sleep(self._initial_delay)
        while self._running:
            try:
                await self.process_backups()
            except Exception as e:
                logger.error("backup_janitor_cycle_failed", error=str(e))
            await self._sleep(self._interval)

    async def process_backups(self) -> RecoveryReport:
        report = RecoveryReport()
        backups = await self._local.list_backups()
        if not backups:
            return report
        logger.info("backup_recovery_started", pending=len(backups))
        for local in backups:
            if self._stop_event.is_set():
                logger.info("backup_recovery_interrupted", remaining=len(backups) - report.processed)
                break
            try:
                outcome = await self._reconcile(local)
            except Exception as e:
                logger.error("backup_recovery_entity_failed", player_id=str(local.uuid), error=str(e))
                report.skipped += 1
                continue
            setattr(report, outcome, getattr(report, outcome) + 1)
        logger.info("backup_recovery_completed", recovered=report.recovered,
                    discarded=report.discarded, skipped=report.skipped)
        return report

    async def _reconcile(self, local: PlayerRecord) -> str:
        try:
            remote = await self._primary.find_by_id(local.uuid)
        except Exception as e:
            logger.warning("backup_recovery_remote_unavailable", player_id=str(local.uuid),
                           error=str(e))
            return "skipped"

        if remote is None or local.is_newer_than(remote):
            await self._primary.save(local)
            await self._release(local)
            logger.info("backup_recovered", player_id=str(local.uuid), username=local.username,
                        local_ts=local.last_updated,
                        remote_ts=remote.last_updated if remote else None)
            return "recovered"

        await self._release(local)
        logger.info("backup_discarded_remote_fresher", player_id=str(local.uuid),
                    local_ts=local.last_updated, remote_ts=remote.last_updated)
        return "discarded"

    async def _release(self, local: PlayerRecord) -> None:
        # a failover write may have replaced the file while the remote was busy
        if not await self._local.delete_if_unchanged(local):
            logger.info("backup_superseded_kept", player_id=str(local.uuid),
                        reconciled_ts=local.last_updated)
