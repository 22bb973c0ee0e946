"""Websocket channel to a single bot for the lifetime of a session."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import websockets

from .. import protocol
from ..config import ArenaSettings
from ..models import BotRecord, Direction, GameState
from ..protocol import ProtocolError

logger = logging.getLogger(__name__)


class BotChannel(Protocol):
    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


Connector = Callable[[str, float], Awaitable[BotChannel]]


async def connect_websocket(endpoint: str, timeout: float) -> BotChannel:
    return await websockets.connect(endpoint, open_timeout=timeout)


@dataclass(slots=True, frozen=True)
class ChannelHooks:
    on_message: Callable[[BotConnection, Direction], None]
    on_closed: Callable[[BotConnection], None]
    on_failed: Callable[[BotConnection, BaseException], None]


class BotConnection:
    def __init__(
        self,
        record: BotRecord,
        slot: int,
        hooks: ChannelHooks,
        settings: ArenaSettings,
        *,
        game_state: Callable[[], GameState | None],
        is_active: Callable[[], bool],
        connector: Connector = connect_websocket,
    ) -> None:
        self.record = record
        self.slot = slot
        self.hooks = hooks
        self.settings = settings
        self._game_state = game_state
        self._is_active = is_active
        self._connector = connector
        self._channel: BotChannel | None = None
        self._reader: asyncio.Task[None] | None = None
        self._ticker: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def bot_id(self) -> str:
        return self.record.id

    @property
    def name(self) -> str:
        return self.record.name

    @property
    def is_open(self) -> bool:
        return self._channel is not None and not self._closed

    async def open(self) -> None:
        """Connect and send the game configuration before any move request."""
        if self._channel is not None:
            return
        self._channel = await self._connector(self.record.endpoint, self.settings.bot_connect_timeout)
        logger.info("Connected to bot %s as player %d at %s", self.name, self.slot, self.record.endpoint)
        config_message = protocol.game_config(
            player_num=self.slot,
            grid_size=self.settings.grid_size,
            game_speed=self.settings.game_speed_ms,
        )
        await self._channel.send(protocol.encode(config_message))
        self._reader = asyncio.create_task(self._read_loop(self._channel))

    def start_requests(self) -> None:
        if self._ticker is not None or not self.is_open:
            return
        self._ticker = asyncio.create_task(self._request_loop())

    async def request_move(self) -> bool:
        if not self.is_open or not self._is_active():
            return False
        state = self._game_state()
        if state is None:
            return False
        return await self._send(protocol.move_request(state, self.slot))

    async def close(self, reason: str) -> None:
        if self._closed:
            return
        self._closed = True

        current = asyncio.current_task()
        for task in (self._ticker, self._reader):
            if task is None or task is current:
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._ticker = None
        self._reader = None

        channel = self._channel
        if channel is None:
            return
        try:
            await channel.send(protocol.encode(protocol.game_ended(reason)))
        except Exception as exc:
            logger.debug("Could not notify bot %s of game end: %s", self.name, exc)
        try:
            await channel.close()
        except Exception as exc:
            logger.debug("Error closing channel to bot %s: %s", self.name, exc)
        logger.info("Closed channel to bot %s", self.name)

    async def _request_loop(self) -> None:
        interval = self.settings.move_request_interval
        while True:
            await asyncio.sleep(interval)
            try:
                await self.request_move()
            except Exception:
                logger.exception("Move request to bot %s failed", self.name)

    async def _read_loop(self, channel: BotChannel) -> None:
        try:
            async for raw in channel:
                self._handle_raw(raw)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._closed:
                logger.warning("Channel to bot %s failed: %s", self.name, exc)
                self.hooks.on_failed(self, exc)
            return
        if not self._closed:
            logger.info("Bot %s closed its channel", self.name)
            self.hooks.on_closed(self)

    def _handle_raw(self, raw: str | bytes) -> None:
        try:
            direction = protocol.parse_move_response(protocol.decode(raw))
        except ProtocolError as exc:
            logger.warning("Ignoring message from bot %s: %s", self.name, exc)
            return
        self.hooks.on_message(self, direction)

    async def _send(self, payload: dict) -> bool:
        if not self.is_open:
            return False
        try:
            await self._channel.send(protocol.encode(payload))
            return True
        except Exception as exc:
            logger.debug("Send to bot %s failed: %s", self.name, exc)
            return False
