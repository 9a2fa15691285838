"""
Magnus Sync - Global player list.

Each server periodically broadcasts who is online over the message bus and
keeps the latest heartbeat from every other server. Servers that stop
sending heartbeats are pruned after a staleness timeout.
"""
from __future__ import annotations
import asyncio
from collections.abc import Callable
import structlog
from pydantic import ValidationError as PydanticValidationError

from magnus_common.utils import DateTimeUtils

from ..models import PlayerEntry, ServerPlayerInfo
from ..ports import MessageBus

logger = structlog.get_logger(__name__)

CHANNEL = "playerlist"


class GlobalPlayerListService:
    """Network-wide player list assembled from heartbeats."""

    def __init__(
        self,
        bus: MessageBus,
        server_name: str,
        local_players: Callable[[], list[PlayerEntry]],
        interval_ms: int = 2500,
        stale_timeout_ms: int = 10_000,
        clock: Callable[[], int] = DateTimeUtils.now_millis,
    ) -> None:
        self._bus = bus
        self._server_name = server_name
        self._local_players = local_players
        self._interval_ms = interval_ms
        self._stale_timeout_ms = stale_timeout_ms
        self._clock = clock
        self._servers: dict[str, ServerPlayerInfo] = {}
        self._running = False
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._bus.subscribe(CHANNEL, self.on_heartbeat)
        self._task = asyncio.create_task(self._heartbeat_loop(), name="magnus-player-list")
        logger.info("player_list_started", server_name=self._server_name,
                    interval_ms=self._interval_ms)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("player_list_stopped", server_name=self._server_name)

    async def _heartbeat_loop(self) -> None:
        while self._running:
            try:
                self.send_heartbeat()
            except Exception as e:
                logger.error("heartbeat_failed", error=str(e))
            await asyncio.sleep(self._interval_ms / 1000)

    def send_heartbeat(self) -> None:
        info = ServerPlayerInfo(server_name=self._server_name,
                                players=list(self._local_players()),
                                timestamp=self._clock())
        self._servers[self._server_name] = info
        self._bus.publish(CHANNEL, info.model_dump_json())

    def on_heartbeat(self, payload: str) -> None:
        try:
            info = ServerPlayerInfo.model_validate_json(payload)
        except PydanticValidationError as e:
            logger.warning("heartbeat_malformed", error=str(e))
            return
        self._servers[info.server_name] = info
        self._prune()

    def _prune(self) -> None:
        cutoff = self._clock() - self._stale_timeout_ms
        for name, info in list(self._servers.items()):
            if name != self._server_name and info.timestamp < cutoff:
                del self._servers[name]
                logger.info("server_pruned_stale", server_name=name)

    def global_player_count(self) -> int:
        self._prune()
        return sum(len(info.players) for info in self._servers.values())

    def players_by_server(self) -> dict[str, list[PlayerEntry]]:
        self._prune()
        return {name: list(info.players) for name, info in self._servers.items()}
