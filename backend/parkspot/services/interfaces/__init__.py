"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .live_updates import LiveUpdateChannel, SpotChange, Subscription
from .memory_channel import InMemoryChannel
from .null_channel import NullChannel

__all__ = ['LiveUpdateChannel', 'SpotChange', 'Subscription', 'InMemoryChannel', 'NullChannel']
