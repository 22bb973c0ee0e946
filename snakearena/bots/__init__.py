"""Per-bot websocket channels."""

from .connection import BotChannel, BotConnection, ChannelHooks, Connector, connect_websocket

__all__ = [
    "BotChannel",
    "BotConnection",
    "ChannelHooks",
    "Connector",
    "connect_websocket",
]
