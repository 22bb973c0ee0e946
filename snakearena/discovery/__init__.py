"""Bot discovery over UDP broadcast."""

from .broadcaster import DiscoveryBroadcaster
from .registry import BotRegistry, UpsertResult

__all__ = [
    "BotRegistry",
    "DiscoveryBroadcaster",
    "UpsertResult",
]
