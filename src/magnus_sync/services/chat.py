"""
Magnus Sync - Global chat.

Relays player chat between servers over the message bus. Messages that
originate on this server are not delivered back to it.
"""
from __future__ import annotations
import inspect
from collections.abc import Awaitable, Callable
import structlog
from pydantic import ValidationError as PydanticValidationError

from ..models import ChatMessage
from ..ports import MessageBus

logger = structlog.get_logger(__name__)

CHANNEL = "chat"

ChatHandler = Callable[[ChatMessage], Awaitable[None] | None]


class GlobalChatService:
    """Publishes local chat and hands remote chat to ``deliver``."""

    def __init__(self, bus: MessageBus, server_name: str, deliver: ChatHandler) -> None:
        self._bus = bus
        self._server_name = server_name
        self._deliver = deliver
        self._started = False

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._bus.subscribe(CHANNEL, self.on_message)
        logger.info("global_chat_started", server_name=self._server_name)

    def publish_message(self, player_uuid: str, player_name: str, raw_message: str) -> None:
        try:
            message = ChatMessage(
                server_name=self._server_name,
                player_uuid=player_uuid,
                player_name=player_name,
                raw_message=raw_message,
            )
            self._bus.publish(CHANNEL, message.model_dump_json())
        except Exception as e:
            logger.error("chat_publish_failed", player_name=player_name, error=str(e))
            return
        logger.debug("chat_published", player_name=player_name)

    async def on_message(self, payload: str) -> None:
        try:
            message = ChatMessage.model_validate_json(payload)
        except PydanticValidationError as e:
            logger.warning("chat_message_malformed", error=str(e))
            return
        if message.server_name == self._server_name:
            return
        try:
            result = self._deliver(message)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("chat_delivery_failed", from_server=message.server_name, error=str(e))
            return
        logger.debug("chat_received", from_server=message.server_name,
                     player_name=message.player_name)
