"""Unit tests for the resilient repository with local failover."""
from __future__ import annotations
from unittest.mock import patch
import pytest

from magnus_common.exceptions import DataUnavailableError, LocalStorageError
from magnus_sync.persistence.cached import CachedPlayerRepository
from magnus_sync.persistence.local_backup import LocalBackupStore
from magnus_sync.persistence.resilient import ResilientPlayerRepository


class TestResilientPlayerRepository:

    @pytest.fixture
    def backup(self, tmp_path):
        return LocalBackupStore(tmp_path)

    @pytest.fixture
    def primary(self, cache_repo, store_repo):
        return CachedPlayerRepository(cache_repo, store_repo)

    @pytest.fixture
    def repo(self, primary, backup):
        return ResilientPlayerRepository(primary, backup)

    @pytest.mark.asyncio
    async def test_save_goes_to_primary(self, repo, store_repo, backup, make_record, player_id):
        await repo.save(make_record())
        assert player_id in store_repo.records
        assert not backup.has_backup(player_id)

    @pytest.mark.asyncio
    async def test_save_fails_over_to_local(self, repo, store_repo, backup, make_record, player_id):
        store_repo.go_down()
        await repo.save(make_record())
        assert backup.has_backup(player_id)

    @pytest.mark.asyncio
    async def test_save_never_raises_when_both_fail(self, repo, store_repo, backup, make_record):
        store_repo.go_down()
        with patch.object(backup, "save", side_effect=LocalStorageError("disk full")):
            await repo.save(make_record())

    @pytest.mark.asyncio
    async def test_remote_only(self, repo, store_repo, make_record, player_id):
        store_repo.records[player_id] = make_record()
        assert await repo.find_by_id(player_id) == make_record()

    @pytest.mark.asyncio
    async def test_new_player(self, repo, player_id):
        assert await repo.find_by_id(player_id) is None

    @pytest.mark.asyncio
    async def test_local_newer_wins(self, repo, store_repo, backup, make_record, player_id):
        store_repo.records[player_id] = make_record(last_updated=1000, health=10.0)
        await backup.save(make_record(last_updated=2000, health=5.0))

        assert (await repo.find_by_id(player_id)).health == 5.0

    @pytest.mark.asyncio
    async def test_remote_wins_tie(self, repo, store_repo, backup, make_record, player_id):
        store_repo.records[player_id] = make_record(last_updated=2000, health=10.0)
        await backup.save(make_record(last_updated=2000, health=5.0))

        assert (await repo.find_by_id(player_id)).health == 10.0

    @pytest.mark.asyncio
    async def test_remote_newer_wins(self, repo, store_repo, backup, make_record, player_id):
        store_repo.records[player_id] = make_record(last_updated=3000)
        await backup.save(make_record(last_updated=2000))

        assert (await repo.find_by_id(player_id)).last_updated == 3000

    @pytest.mark.asyncio
    async def test_local_used_when_remote_down(self, repo, store_repo, cache_repo, backup,
                                              make_record, player_id):
        await backup.save(make_record(last_updated=2000))
        store_repo.go_down()
        cache_repo.go_down()

        assert (await repo.find_by_id(player_id)).last_updated == 2000

    @pytest.mark.asyncio
    async def test_local_used_when_remote_absent(self, repo, backup, make_record, player_id):
        await backup.save(make_record(last_updated=2000))
        assert (await repo.find_by_id(player_id)).last_updated == 2000

    @pytest.mark.asyncio
    async def test_unavailable_without_local_copy(self, repo, store_repo, player_id):
        store_repo.go_down()

        with pytest.raises(DataUnavailableError) as exc_info:
            await repo.find_by_id(player_id)

        assert exc_info.value.player_id == str(player_id)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_unreadable_local_and_remote_down(self, repo, store_repo, backup,
                                                   make_record, player_id):
        await backup.save(make_record())
        backup.path_for(player_id).write_text("corrupt", encoding="utf-8")
        store_repo.go_down()

        with pytest.raises(DataUnavailableError):
            await repo.find_by_id(player_id)

    @pytest.mark.asyncio
    async def test_outage_write_then_read_returns_local(self, repo, store_repo, cache_repo,
                                                       make_record, player_id):
        """Remote holds T=1000; outage write at T=2000 must win on next read."""
        await repo.save(make_record(last_updated=1000))
        store_repo.go_down()
        await repo.save(make_record(last_updated=2000))
        store_repo.come_back()
        cache_repo.records.clear()

        assert (await repo.find_by_id(player_id)).last_updated == 2000

    @pytest.mark.asyncio
    async def test_evict_failure_swallowed(self, backup, player_id):
        class Broken:
            async def evict_cache(self, _):
                raise ConnectionError("down")

        await ResilientPlayerRepository(Broken(), backup).evict_cache(player_id)
