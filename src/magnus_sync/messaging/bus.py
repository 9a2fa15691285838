"""
Magnus Sync - Secure Redis message bus.

Best-effort cross-server notifications over Redis pub/sub. Never used for
player records themselves.

Security:
- Optional HMAC signing of every published message
- Payload size limit on publish and on receive

Resilience:
- One long-lived listener task per channel
- Automatic resubscription with exponential backoff, abandoned after
  ``max_retries`` consecutive failures
- Shutdown cancels pending backoff and suppresses reconnection
"""
from __future__ import annotations
import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any
import structlog

from magnus_common.utils import backoff_delay_ms
from magnus_infrastructure.redis import RedisClient
from magnus_security.signing import DEFAULT_MAX_AGE_MS, MessageSigner

from ..ports import MessageCallback

logger = structlog.get_logger(__name__)


class SubscriptionState(str, Enum):
    """Lifecycle of a managed subscription."""
    IDLE = "idle"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    ABANDONED = "abandoned"


@dataclass
class ManagedSubscription:
    channel: str
    callback: MessageCallback
    state: SubscriptionState = SubscriptionState.IDLE
    attempt: int = 0
    task: asyncio.Task[None] | None = None


class SubscriptionEndedError(ConnectionError):
    """The pub/sub stream stopped without a shutdown request."""


class SecureRedisMessageBus:
    """Hardened pub/sub transport with signing, size limits and reconnection."""

    def __init__(
        self,
        client: RedisClient,
        signer: MessageSigner | None = None,
        max_payload_size: int = 65536,
        retry_delay_ms: int = 5000,
        max_retries: int = 10,
        signature_max_age_ms: int = DEFAULT_MAX_AGE_MS,
    ) -> None:
        self._client = client
        self._signer = signer
        self._max_payload_size = max_payload_size
        self._retry_delay_ms = retry_delay_ms
        self._max_retries = max_retries
        self._signature_max_age_ms = signature_max_age_ms
        self._subscriptions: dict[str, ManagedSubscription] = {}
        self._pending_publishes: set[asyncio.Task[None]] = set()
        self._shutting_down = False

    @property
    def active_channels(self) -> list[str]:
        return list(self._subscriptions)

    def subscription_state(self, channel: str) -> SubscriptionState | None:
        sub = self._subscriptions.get(channel)
        return sub.state if sub else None

    def publish(self, channel: str, message: str) -> None:
        """Schedule a publish; returns immediately."""
        size = len(message.encode("utf-8"))
        if size > self._max_payload_size:
            logger.warning("publish_rejected_oversized", channel=channel, size=size,
                           max_size=self._max_payload_size)
            return
        if self._shutting_down:
            logger.debug("publish_dropped_shutting_down", channel=channel)
            return
        task = asyncio.get_running_loop().create_task(self._publish(channel, message))
        self._pending_publishes.add(task)
        task.add_done_callback(self._pending_publishes.discard)

    async def _publish(self, channel: str, message: str) -> None:
        try:
            payload = self._signer.sign(message) if self._signer else message
            # receivers check the envelope, not the bare message
            size = len(payload.encode("utf-8"))
            if size > self._max_payload_size:
                logger.warning("publish_rejected_oversized", channel=channel, size=size,
                               max_size=self._max_payload_size, signed=True)
                return
            await self._client.publish(channel, payload)
        except Exception as e:
            logger.error("publish_failed", channel=channel, error=str(e))

    def subscribe(self, channel: str, callback: MessageCallback) -> None:
        if self._shutting_down:
            logger.warning("subscribe_ignored_shutting_down", channel=channel)
            return
        if channel in self._subscriptions:
            logger.warning("already_subscribed", channel=channel)
            return
        sub = ManagedSubscription(channel=channel, callback=callback)
        self._subscriptions[channel] = sub
        sub.task = asyncio.get_running_loop().create_task(
            self._run_subscription(sub), name=f"magnus-bus-sub-{channel}"
        )

    async def _run_subscription(self, sub: ManagedSubscription) -> None:
        while not self._shutting_down:
            try:
                await self._listen(sub)
                if self._shutting_down:
                    break
                raise SubscriptionEndedError(f"subscription to '{sub.channel}' ended")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._shutting_down:
                    break
                if sub.attempt >= self._max_retries:
                    sub.state = SubscriptionState.ABANDONED
                    self._subscriptions.pop(sub.channel, None)
                    logger.error("subscription_abandoned", channel=sub.channel,
                                 max_retries=self._max_retries, error=str(e))
                    return
                delay_ms = backoff_delay_ms(self._retry_delay_ms, sub.attempt)
                sub.attempt += 1
                sub.state = SubscriptionState.RECONNECTING
                logger.warning("subscription_failed_retrying", channel=sub.channel,
                               attempt=sub.attempt, max_retries=self._max_retries,
                               delay_ms=delay_ms, error=str(e))
                await asyncio.sleep(delay_ms / 1000)
        sub.state = SubscriptionState.IDLE

    async def _listen(self, sub: ManagedSubscription) -> None:
        pubsub = self._client.pubsub()
        try:
            await pubsub.subscribe(self._client.make_key(sub.channel))
            sub.state = SubscriptionState.CONNECTED
            sub.attempt = 0
            logger.info("subscribed", channel=sub.channel)
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                await self._dispatch(sub, message["data"])
        finally:
            await self._release(pubsub, sub.channel)

    async def _release(self, pubsub: Any, channel: str) -> None:
        try:
            await pubsub.unsubscribe()
        except Exception as e:
            logger.debug("unsubscribe_failed", channel=channel, error=str(e))
        try:
            await pubsub.aclose()
        except Exception as e:
            logger.debug("pubsub_close_failed", channel=channel, error=str(e))

    async def _dispatch(self, sub: ManagedSubscription, data: str | bytes) -> None:
        if isinstance(data, bytes):
            data = data.decode("utf-8", errors="replace")
        size = len(data.encode("utf-8"))
        if size > self._max_payload_size:
            logger.warning("message_dropped_oversized", channel=sub.channel, size=size,
                           max_size=self._max_payload_size)
            return
        payload: str | None = data
        if self._signer is not None:
            payload = self._signer.verify(data, self._signature_max_age_ms)
            if payload is None:
                logger.warning("message_dropped_bad_signature", channel=sub.channel)
                return
        try:
            result = sub.callback(payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("message_handler_failed", channel=sub.channel, error=str(e))

    async def close(self) -> None:
        self._shutting_down = True
        logger.info("message_bus_closing", subscriptions=len(self._subscriptions))
        subs = list(self._subscriptions.values())
        tasks = [s.task for s in subs if s.task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for sub in subs:
            sub.state = SubscriptionState.IDLE
        self._subscriptions.clear()
        if self._pending_publishes:
            await asyncio.gather(*list(self._pending_publishes), return_exceptions=True)
