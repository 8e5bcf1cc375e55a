"""
No-op live update channel.
Viewers fall back to re-reading the spot store on their own schedule.
"""

from parkspot.services.interfaces.live_updates import (
    ChangeCallback,
    LiveUpdateChannel,
    SpotChange,
    Subscription,
)


class NullChannel(LiveUpdateChannel):
    """
    Accepts subscriptions and publishes, delivers nothing.

    Use when:
    - Running seed scripts or one-off tooling
    - Push updates are disabled (LIVE_UPDATES_BACKEND=none)
    """

    backend = "none"

    async def subscribe(self, location_id: int, on_change: ChangeCallback) -> Subscription:
        return Subscription(location_id=location_id, callback=on_change)

    async def unsubscribe(self, subscription: Subscription) -> None:
        subscription.active = False

    async def publish(self, event: SpotChange) -> None:
        pass

    def subscriber_count(self, location_id: int) -> int:
        return 0
