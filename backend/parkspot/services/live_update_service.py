"""
Redis pub/sub live update channel for multi-process deployments.

Every API worker publishes committed spot changes to
"{LIVE_UPDATES_CHANNEL_PREFIX}:{location_id}" and runs a single pattern
subscription that fans incoming messages out to its own viewers through a
local InMemoryChannel. A viewer connected to worker A therefore sees a
booking committed on worker B.

Failure mode:
  Redis is advisory here, the spot store is authoritative. If Redis is
  down, publish falls back to local fan-out and logs the error; viewers on
  other workers miss the event and recover on their next re-read. A dropped
  pattern subscription is re-established by the listener itself.
"""

import asyncio
import json
from typing import Optional

import redis.asyncio as redis

from parkspot.core.config import get_settings
from parkspot.core.logging import get_logger
from parkspot.core.metrics import live_update_errors, live_updates_published, redis_connection_errors
from parkspot.services.cache_service import get_redis
from parkspot.services.interfaces.live_updates import (
    ChangeCallback,
    LiveUpdateChannel,
    SpotChange,
    Subscription,
)
from parkspot.services.interfaces.memory_channel import InMemoryChannel

logger = get_logger(__name__)


class RedisChannel(LiveUpdateChannel):
    """
    Cross-process fan-out over Redis pub/sub.

    Use when:
    - More than one API worker or host serves WebSocket viewers

    The pattern listener reconnects on its own with exponential backoff
    (reconnect_delay doubling up to max_reconnect_delay). publish() also
    restarts it if it is not running while local viewers are connected.
    """

    backend = "redis"

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        prefix: Optional[str] = None,
        local: Optional[InMemoryChannel] = None,
        reconnect_delay: float = 0.5,
        max_reconnect_delay: float = 30.0,
    ):
        self._client = client
        self.prefix = prefix or get_settings().LIVE_UPDATES_CHANNEL_PREFIX
        self._local = local or InMemoryChannel()
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self._pubsub = None
        self._listener: Optional[asyncio.Task] = None

    @property
    def pattern(self) -> str:
        return f"{self.prefix}:*"

    def channel_name(self, location_id: int) -> str:
        return f"{self.prefix}:{location_id}"

    @property
    def listening(self) -> bool:
        return self._listener is not None and not self._listener.done()

    async def _get_client(self) -> Optional[redis.Redis]:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    async def subscribe(self, location_id: int, on_change: ChangeCallback) -> Subscription:
        subscription = await self._local.subscribe(location_id, on_change)
        await self._ensure_listener()
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        await self._local.unsubscribe(subscription)

    async def publish(self, event: SpotChange) -> None:
        client = await self._get_client()
        if client is None:
            await self._local.publish(event)
            return

        if self._local.watched_locations():
            await self._ensure_listener()

        try:
            await client.publish(self.channel_name(event.location_id), json.dumps(event.to_dict()))
            live_updates_published.labels(backend=self.backend).inc()
        except Exception as e:
            live_update_errors.labels(stage="publish").inc()
            redis_connection_errors.inc()
            logger.error("live_update_publish_failed", location_id=event.location_id, error=str(e))
            await self._local.publish(event)

    def subscriber_count(self, location_id: int) -> int:
        return self._local.subscriber_count(location_id)

    async def _ensure_listener(self) -> None:
        if self.listening:
            return
        client = await self._get_client()
        if client is None:
            logger.warning("live_updates_redis_unavailable", message="Serving local subscribers only")
            return
        try:
            await self._open_pubsub(client)
        except Exception as e:
            # Retried on the next subscribe or publish
            live_update_errors.labels(stage="deliver").inc()
            redis_connection_errors.inc()
            logger.error("live_updates_listener_start_failed", error=str(e))
            await self._drop_pubsub()
            return
        self._listener = asyncio.create_task(self._listen(client), name="live-updates-redis")
        logger.info("live_updates_listener_started", pattern=self.pattern)

    async def _open_pubsub(self, client: redis.Redis):
        pubsub = client.pubsub()
        self._pubsub = pubsub
        await pubsub.psubscribe(self.pattern)
        return pubsub

    async def _drop_pubsub(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            await pubsub.aclose()
        except Exception as e:
            logger.warning("live_updates_pubsub_close_failed", error=str(e))

    async def _listen(self, client: redis.Redis) -> None:
        delay = self.reconnect_delay
        while True:
            try:
                pubsub = self._pubsub or await self._open_pubsub(client)
                async for message in pubsub.listen():
                    delay = self.reconnect_delay
                    self._dispatch(message)
                logger.warning("live_updates_stream_ended", retry_in=delay)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                live_update_errors.labels(stage="deliver").inc()
                redis_connection_errors.inc()
                logger.error("live_updates_listener_failed", error=str(e), retry_in=delay)
            await self._drop_pubsub()
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_reconnect_delay)
            logger.info("live_updates_listener_reconnecting", pattern=self.pattern)

    def _dispatch(self, message: dict) -> None:
        if message.get("type") != "pmessage":
            return
        try:
            event = SpotChange.from_dict(json.loads(message["data"]))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("live_update_malformed", channel=message.get("channel"), error=str(e))
            return
        self._local.deliver(event)

    async def close(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self._drop_pubsub()
        await self._local.close()
