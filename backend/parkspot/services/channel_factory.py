"""
Live update channel factory.
Configures which pub/sub transport viewers are notified through.
"""

from typing import Optional

from parkspot.services.interfaces.live_updates import LiveUpdateChannel
from parkspot.services.interfaces.memory_channel import InMemoryChannel
from parkspot.services.interfaces.null_channel import NullChannel
from parkspot.services.live_update_service import RedisChannel
from parkspot.core.config import get_settings


def build_channel(backend: Optional[str] = None) -> LiveUpdateChannel:
    """
    Build a channel for the configured backend.

    - memory: single worker (default)
    - redis: several workers behind a load balancer
    - none: push disabled, viewers re-read on their own

    Overridden via LIVE_UPDATES_BACKEND env var.
    """
    backend = (backend or get_settings().LIVE_UPDATES_BACKEND).lower()

    if backend == "redis":
        return RedisChannel()
    if backend == "none":
        return NullChannel()
    if backend == "memory":
        return InMemoryChannel()
    raise ValueError(f"Unknown LIVE_UPDATES_BACKEND: {backend}")


# Singleton instance
_channel: Optional[LiveUpdateChannel] = None


def get_live_updates() -> LiveUpdateChannel:
    """Get live update channel singleton."""
    global _channel
    if _channel is None:
        _channel = build_channel()
    return _channel


async def close_live_updates() -> None:
    global _channel
    if _channel is not None:
        await _channel.close()
        _channel = None
