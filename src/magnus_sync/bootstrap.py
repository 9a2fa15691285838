"""
Magnus Sync - Runtime wiring.

Builds the storage stack and services for one server process:

    RedisPlayerCache + PostgresPlayerStore -> CachedPlayerRepository
    CachedPlayerRepository + LocalBackupStore -> ResilientPlayerRepository

The recovery janitor drains the local backup into the cached repository
directly, bypassing the resilient wrapper.
"""
from __future__ import annotations
from collections.abc import Callable, Iterable
import structlog

from magnus_infrastructure.observability import ObservabilitySettings, configure_logging
from magnus_infrastructure.postgres import PostgresClient, PostgresSettings, create_postgres_client
from magnus_infrastructure.redis import RedisClient, RedisSettings, create_redis_client
from magnus_security.signing import MessageSigner

from .config import MagnusSettings
from .locking import SessionLockManager
from .messaging.bus import SecureRedisMessageBus
from .models import PlayerEntry, PlayerRecord
from .persistence import (
    CachedPlayerRepository,
    LocalBackupStore,
    PostgresPlayerStore,
    RedisPlayerCache,
    ResilientPlayerRepository,
)
from .services import BackupRecoveryService, GlobalChatService, GlobalPlayerListService, SyncService
from .services.chat import ChatHandler

logger = structlog.get_logger(__name__)


class MagnusRuntime:
    """Owns every long-lived component of the sync layer."""

    def __init__(
        self,
        *,
        settings: MagnusSettings,
        redis: RedisClient,
        postgres: PostgresClient,
        cached_repository: CachedPlayerRepository,
        local_backup: LocalBackupStore,
        repository: ResilientPlayerRepository,
        locks: SessionLockManager,
        bus: SecureRedisMessageBus,
        sync: SyncService,
        recovery: BackupRecoveryService,
        player_list: GlobalPlayerListService | None = None,
        chat: GlobalChatService | None = None,
    ) -> None:
        self.settings = settings
        self.redis = redis
        self.postgres = postgres
        self.cached_repository = cached_repository
        self.local_backup = local_backup
        self.repository = repository
        self.locks = locks
        self.bus = bus
        self.sync = sync
        self.recovery = recovery
        self.player_list = player_list
        self.chat = chat

    @classmethod
    async def create(
        cls,
        settings: MagnusSettings | None = None,
        redis_settings: RedisSettings | None = None,
        postgres_settings: PostgresSettings | None = None,
        *,
        local_players: Callable[[], list[PlayerEntry]] | None = None,
        chat_handler: ChatHandler | None = None,
        observability: ObservabilitySettings | None = None,
    ) -> MagnusRuntime:
        """Connect the remote tiers and start the background services."""
        settings = settings or MagnusSettings()
        configure_logging(observability, server_name=settings.server_name)
        redis = await create_redis_client(redis_settings)
        try:
            postgres = await create_postgres_client(postgres_settings)
        except Exception:
            await redis.disconnect()
            raise

        try:
            store = PostgresPlayerStore(postgres, table_name=postgres.settings.table_name,
                                        schema=postgres.settings.db_schema)
            await store.ensure_schema()
        except Exception:
            await postgres.disconnect()
            await redis.disconnect()
            raise

        cache = RedisPlayerCache(redis, max_payload_size=settings.max_payload_size)
        cached = CachedPlayerRepository(cache, store)
        local_backup = LocalBackupStore(settings.backup_dir)
        repository = ResilientPlayerRepository(cached, local_backup)
        locks = SessionLockManager(redis, ttl_seconds=settings.lock_ttl_seconds)

        signer = None
        if settings.signing_secret is not None:
            signer = MessageSigner(settings.signing_secret.get_secret_value())
        else:
            logger.warning("message_signing_disabled")
        bus = SecureRedisMessageBus(
            redis,
            signer=signer,
            max_payload_size=settings.max_payload_size,
            retry_delay_ms=settings.bus_retry_delay_ms,
            max_retries=settings.bus_max_retries,
            signature_max_age_ms=settings.signature_max_age_ms,
        )

        recovery = BackupRecoveryService(
            local_backup, cached,
            interval_seconds=settings.janitor_interval_seconds,
            initial_delay_seconds=settings.janitor_initial_delay_seconds,
        )
        await recovery.start()

        player_list = None
        if local_players is not None:
            player_list = GlobalPlayerListService(
                bus, settings.server_name, local_players,
                interval_ms=settings.heartbeat_interval_ms,
                stale_timeout_ms=settings.player_list_stale_ms,
            )
            await player_list.start()

        chat = None
        if chat_handler is not None:
            chat = GlobalChatService(bus, settings.server_name, chat_handler)
            await chat.start()

        logger.info("magnus_runtime_started", server_name=settings.server_name,
                    pending_backups=local_backup.pending_count,
                    signing=signer is not None)
        return cls(
            settings=settings, redis=redis, postgres=postgres,
            cached_repository=cached, local_backup=local_backup, repository=repository,
            locks=locks, bus=bus, sync=SyncService(repository, locks),
            recovery=recovery, player_list=player_list, chat=chat,
        )

    async def shutdown(self, online_records: Iterable[PlayerRecord] = ()) -> None:
        """Save online players, then stop services and close connections."""
        saved = await self.sync.save_all(online_records)
        if self.player_list is not None:
            await self.player_list.stop()
        await self.recovery.stop()
        await self.bus.close()
        await self.postgres.disconnect()
        await self.redis.disconnect()
        logger.info("magnus_runtime_stopped", server_name=self.settings.server_name, saved=saved)
