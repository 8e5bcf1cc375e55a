"""
In-process live update channel over asyncio queues.

Each subscription owns a bounded mailbox and a pump task that awaits the
subscriber's callback, so one slow or failing viewer never holds up the
writer or the other viewers. When a mailbox is full the oldest event is
dropped: events only mean "re-read", and the newest one still triggers it.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from parkspot.core.config import get_settings
from parkspot.core.logging import get_logger
from parkspot.core.metrics import (
    active_subscriptions,
    live_update_errors,
    live_updates_delivered,
    live_updates_dropped,
    live_updates_published,
)
from parkspot.services.interfaces.live_updates import (
    ChangeCallback,
    LiveUpdateChannel,
    SpotChange,
    Subscription,
)

logger = get_logger(__name__)


@dataclass
class _Mailbox:
    subscription: Subscription
    queue: asyncio.Queue
    task: asyncio.Task


class InMemoryChannel(LiveUpdateChannel):
    """
    Single-process fan-out.

    Use when:
    - One API worker serves all viewers
    - Tests, where every subscriber lives in the test's event loop
    - As the local fan-out behind RedisChannel
    """

    backend = "memory"

    def __init__(self, queue_size: Optional[int] = None):
        self.queue_size = queue_size or get_settings().SUBSCRIBER_QUEUE_SIZE
        self._mailboxes: dict[int, dict[int, _Mailbox]] = {}

    async def subscribe(self, location_id: int, on_change: ChangeCallback) -> Subscription:
        subscription = Subscription(location_id=location_id, callback=on_change)
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        task = asyncio.create_task(
            self._pump(subscription, queue),
            name=f"live-updates-{subscription.id}",
        )
        self._mailboxes.setdefault(location_id, {})[subscription.id] = _Mailbox(
            subscription, queue, task
        )
        active_subscriptions.inc()
        logger.info("subscriber_registered", location_id=location_id, subscription_id=subscription.id)
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False
        boxes = self._mailboxes.get(subscription.location_id)
        if not boxes:
            return
        mailbox = boxes.pop(subscription.id, None)
        if not boxes:
            # Last viewer gone; nothing keeps the location entry alive
            del self._mailboxes[subscription.location_id]
        if mailbox is None:
            return

        active_subscriptions.dec()
        mailbox.task.cancel()
        if mailbox.task is not asyncio.current_task():
            try:
                await mailbox.task
            except asyncio.CancelledError:
                pass
        logger.info(
            "subscriber_unregistered",
            location_id=subscription.location_id,
            subscription_id=subscription.id,
        )

    async def publish(self, event: SpotChange) -> None:
        self.deliver(event)
        live_updates_published.labels(backend=self.backend).inc()

    def deliver(self, event: SpotChange) -> int:
        """Queue the event for every subscriber of its location. Returns the fan-out count."""
        mailboxes = list(self._mailboxes.get(event.location_id, {}).values())
        for mailbox in mailboxes:
            if mailbox.queue.full():
                mailbox.queue.get_nowait()
                live_updates_dropped.inc()
                logger.warning(
                    "live_update_dropped",
                    location_id=event.location_id,
                    subscription_id=mailbox.subscription.id,
                )
            mailbox.queue.put_nowait(event)
        return len(mailboxes)

    def subscriber_count(self, location_id: int) -> int:
        return len(self._mailboxes.get(location_id, {}))

    def watched_locations(self) -> list[int]:
        return sorted(self._mailboxes)

    async def close(self) -> None:
        for boxes in list(self._mailboxes.values()):
            for mailbox in list(boxes.values()):
                await self.unsubscribe(mailbox.subscription)

    async def _pump(self, subscription: Subscription, queue: asyncio.Queue) -> None:
        while True:
            event = await queue.get()
            try:
                await subscription.callback(event)
                live_updates_delivered.inc()
            except Exception as e:
                live_update_errors.labels(stage="deliver").inc()
                logger.error(
                    "live_update_delivery_failed",
                    location_id=subscription.location_id,
                    subscription_id=subscription.id,
                    error=str(e),
                )
