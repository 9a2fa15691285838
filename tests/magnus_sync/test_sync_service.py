"""Unit tests for the player sync service."""
from __future__ import annotations
from uuid import uuid4
import pytest

from magnus_common.exceptions import DataUnavailableError, SessionLockedError
from magnus_sync.locking import SessionLockManager
from magnus_sync.persistence.local_backup import LocalBackupStore
from magnus_sync.persistence.resilient import ResilientPlayerRepository
from magnus_sync.services.sync import SyncService


class TestSyncService:

    @pytest.fixture
    def locks(self, fake_redis):
        return SessionLockManager(fake_redis)

    @pytest.fixture
    def service(self, store_repo, locks):
        return SyncService(store_repo, locks, retry_after_seconds=3)

    @pytest.mark.asyncio
    async def test_load(self, service, store_repo, make_record, player_id):
        store_repo.records[player_id] = make_record()
        assert await service.load_player(player_id) == make_record()

    @pytest.mark.asyncio
    async def test_load_refused_while_locked(self, service, locks, store_repo, player_id):
        await locks.lock(player_id)

        with pytest.raises(SessionLockedError) as exc_info:
            await service.load_player(player_id)

        assert exc_info.value.retry_after_seconds == 3
        assert store_repo.reads == []

    @pytest.mark.asyncio
    async def test_load_proceeds_when_lock_store_down(self, service, fake_redis, store_repo,
                                                     make_record, player_id):
        store_repo.records[player_id] = make_record()
        fake_redis.fail = True
        assert await service.load_player(player_id) == make_record()

    @pytest.mark.asyncio
    async def test_unavailable_propagates(self, locks, store_repo, tmp_path, player_id):
        store_repo.go_down()
        service = SyncService(ResilientPlayerRepository(store_repo, LocalBackupStore(tmp_path)), locks)

        with pytest.raises(DataUnavailableError):
            await service.load_player(player_id)

    @pytest.mark.asyncio
    async def test_save_holds_lock_during_write(self, locks, make_record, player_id):
        observed = []

        class ObservingRepo:
            async def save(self, record):
                observed.append(await locks.is_locked(record.uuid))

        service = SyncService(ObservingRepo(), locks)
        await service.save_player(make_record())

        assert observed == [True]
        assert not await locks.is_locked(player_id)

    @pytest.mark.asyncio
    async def test_release_cache(self, service, store_repo, make_record, player_id):
        store_repo.volatile = True
        store_repo.records[player_id] = make_record()
        await service.release_cache(player_id)
        assert player_id not in store_repo.records

    @pytest.mark.asyncio
    async def test_save_all_isolates_failures(self, locks, make_record):
        records = [make_record(uuid=uuid4()) for _ in range(4)]
        failing = records[1].uuid
        saved = []

        class PartlyBrokenRepo:
            async def save(self, record):
                if record.uuid == failing:
                    raise ConnectionError("down")
                saved.append(record.uuid)

        service = SyncService(PartlyBrokenRepo(), locks)

        assert await service.save_all(records) == 3
        assert failing not in saved
        assert not await locks.is_locked(failing)

    @pytest.mark.asyncio
    async def test_save_all_empty(self, service):
        assert await service.save_all([]) == 0
