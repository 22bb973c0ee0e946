"""Runtime tunables for the bot discovery and session service."""

from __future__ import annotations

import os
from dataclasses import dataclass

DISCOVERY_MESSAGE = "DISCOVERY_REQUEST"
PLAYER_SLOTS = (1, 2)
ENV_PREFIX = "SNAKEARENA_"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip()
    return value if value else default


@dataclass(frozen=True, slots=True)
class ArenaSettings:
    host: str = "0.0.0.0"
    port: int = 1726
    discovery_port: int = 9999
    broadcast_address: str = "255.255.255.255"
    announce_interval: float = 5.0
    bot_timeout: float = 15.0
    move_request_interval: float = 0.2
    grid_size: int = 30
    game_speed_ms: int = 150
    bot_connect_timeout: float = 5.0
    default_bot_port: int = 8081

    @classmethod
    def from_env(cls) -> ArenaSettings:
        defaults = cls()
        return cls(
            host=_env_str(f"{ENV_PREFIX}HOST", defaults.host),
            port=_env_int(f"{ENV_PREFIX}PORT", defaults.port),
            discovery_port=_env_int(f"{ENV_PREFIX}DISCOVERY_PORT", defaults.discovery_port),
            broadcast_address=_env_str(f"{ENV_PREFIX}BROADCAST_ADDRESS", defaults.broadcast_address),
            announce_interval=max(0.1, _env_float(f"{ENV_PREFIX}ANNOUNCE_INTERVAL", defaults.announce_interval)),
            bot_timeout=max(0.1, _env_float(f"{ENV_PREFIX}BOT_TIMEOUT", defaults.bot_timeout)),
            move_request_interval=max(
                0.01,
                _env_float(f"{ENV_PREFIX}MOVE_REQUEST_INTERVAL", defaults.move_request_interval),
            ),
            grid_size=max(2, _env_int(f"{ENV_PREFIX}GRID_SIZE", defaults.grid_size)),
            game_speed_ms=max(1, _env_int(f"{ENV_PREFIX}GAME_SPEED_MS", defaults.game_speed_ms)),
            bot_connect_timeout=max(
                0.1,
                _env_float(f"{ENV_PREFIX}BOT_CONNECT_TIMEOUT", defaults.bot_connect_timeout),
            ),
            default_bot_port=_env_int(f"{ENV_PREFIX}DEFAULT_BOT_PORT", defaults.default_bot_port),
        )
