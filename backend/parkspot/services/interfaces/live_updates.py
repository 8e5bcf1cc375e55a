"""
Live update channel interface.
Allows swapping the pub/sub transport without changing reservation logic.
"""

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Awaitable, Callable


@dataclass(frozen=True)
class SpotChange:
    """
    A committed book/cancel on one spot.

    Subscribers should treat it as "something changed at this location,
    re-read": delivery order across events is not guaranteed and events can
    be dropped.
    """
    location_id: int
    spot_number: int
    is_occupied: bool
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    type: str = "spot_changed"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SpotChange":
        return cls(
            location_id=int(data["location_id"]),
            spot_number=int(data["spot_number"]),
            is_occupied=bool(data["is_occupied"]),
            occurred_at=datetime.fromisoformat(data["occurred_at"]),
        )


ChangeCallback = Callable[[SpotChange], Awaitable[None]]

_subscription_ids = itertools.count(1)


@dataclass(eq=False)
class Subscription:
    """Handle returned by subscribe(); pass it back to unsubscribe()."""
    location_id: int
    callback: ChangeCallback
    id: int = field(default_factory=lambda: next(_subscription_ids))
    active: bool = True


class LiveUpdateChannel(ABC):
    """
    Publish/subscribe scoped to a location.

    Implementations:
    - InMemoryChannel: single-process fan-out over asyncio queues
    - RedisChannel: Redis pub/sub for multi-process deployments
    - NullChannel: no-op, for tooling and tests that do not care
    """

    backend: str = "abstract"

    @abstractmethod
    async def subscribe(self, location_id: int, on_change: ChangeCallback) -> Subscription:
        """
        Register interest in a location.

        Args:
            location_id: Location to watch
            on_change: Awaited once per delivered SpotChange

        Returns:
            Subscription handle for unsubscribe()
        """
        pass

    @abstractmethod
    async def unsubscribe(self, subscription: Subscription) -> None:
        """Tear down a subscription. Safe to call more than once."""
        pass

    @abstractmethod
    async def publish(self, event: SpotChange) -> None:
        """
        Announce a committed change. Fire-and-forget: never waits for
        subscribers and never raises to the writer.
        """
        pass

    @abstractmethod
    def subscriber_count(self, location_id: int) -> int:
        pass

    async def close(self) -> None:
        """Release transport resources on shutdown."""
        pass
