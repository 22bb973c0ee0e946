"""Control channel to the operator frontend."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from . import protocol
from .discovery import BotRegistry
from .protocol import ProtocolError
from .session import FRONTEND_DISCONNECTED_REASON, SessionManager

logger = logging.getLogger(__name__)


class FrontendChannel:
    """Outbound side of one frontend websocket.

    Messages are queued and written in order by a single writer task; anything
    sent after the channel closed is dropped.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._open = True
        self._writer = asyncio.create_task(self._drain())

    @property
    def is_open(self) -> bool:
        return self._open

    def send(self, payload: dict[str, Any]) -> bool:
        if not self._open:
            return False
        self._queue.put_nowait(payload)
        return True

    async def close(self) -> None:
        self._open = False
        self._writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._writer

    async def _drain(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                await self.websocket.send_json(payload)
            except Exception as exc:
                logger.debug("Frontend send failed, closing channel: %s", exc)
                self._open = False
                return


class FrontendLink:
    """Slot holding the single authoritative frontend channel."""

    def __init__(self) -> None:
        self._current: FrontendChannel | None = None

    @property
    def current(self) -> FrontendChannel | None:
        return self._current

    def attach(self, channel: FrontendChannel) -> FrontendChannel | None:
        previous, self._current = self._current, channel
        if previous is not None:
            logger.info("New frontend connection supersedes the previous one")
        return previous

    def detach(self, channel: FrontendChannel) -> bool:
        if self._current is not channel:
            return False
        self._current = None
        return True

    def is_current(self, channel: FrontendChannel) -> bool:
        return self._current is channel

    def send(self, payload: dict[str, Any]) -> bool:
        channel = self._current
        if channel is None or not channel.is_open:
            logger.debug("No frontend connected; dropping %s", payload.get("type"))
            return False
        return channel.send(payload)

    def publish_bot_list(self, bots: list[dict[str, str]]) -> bool:
        return self.send(protocol.bot_list(bots))


class FrontendGateway:
    def __init__(self, link: FrontendLink, sessions: SessionManager, registry: BotRegistry) -> None:
        self.link = link
        self.sessions = sessions
        self.registry = registry
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[Any]]] = {
            protocol.START_GAME: self._start_game,
            protocol.RECONNECT_GAME: self._reconnect_game,
            protocol.REQUEST_NEW_GAME: self._request_new_game,
            protocol.CANCEL_GAME: self._cancel_game,
            protocol.GAME_STATE: self._game_state,
            protocol.GAME_OVER: self._game_over,
        }

    async def serve(self, websocket: WebSocket) -> None:
        await websocket.accept()
        channel = FrontendChannel(websocket)
        self.link.attach(channel)
        channel.send(protocol.bot_list(self.registry.snapshot()))
        logger.info("Frontend connected")

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                raw = message.get("text") or message.get("bytes")
                if raw is None:
                    continue
                if not self.link.is_current(channel):
                    logger.info("Ignoring command from superseded frontend connection")
                    continue
                await self.dispatch(raw)
        except WebSocketDisconnect:
            logger.info("Frontend disconnected")
        finally:
            await channel.close()
            if self.link.detach(channel):
                await self.sessions.stop(FRONTEND_DISCONNECTED_REASON)

    async def dispatch(self, raw: str | bytes) -> bool:
        try:
            message = protocol.decode(raw)
        except ProtocolError as exc:
            logger.warning("Dropping malformed frontend message: %s", exc)
            return False

        message_type = message.get("type")
        handler = self._handlers.get(message_type) if isinstance(message_type, str) else None
        if handler is None:
            logger.info("Unknown frontend message type: %r", message_type)
            return False

        try:
            await handler(message)
        except ProtocolError as exc:
            logger.warning("Dropping invalid %s message: %s", message_type, exc)
            return False
        return True

    async def _start_game(self, message: dict[str, Any]) -> None:
        await self.sessions.start(protocol.parse_bot_ids(message))

    async def _reconnect_game(self, message: dict[str, Any]) -> None:
        await self.sessions.reconnect(protocol.parse_bot_ids(message))

    async def _request_new_game(self, message: dict[str, Any]) -> None:
        await self.sessions.restart()

    async def _cancel_game(self, message: dict[str, Any]) -> None:
        reason = message.get("reason")
        await self.sessions.cancel(str(reason) if reason else None)

    async def _game_state(self, message: dict[str, Any]) -> None:
        self.sessions.update_game_state(protocol.parse_game_state(message))

    async def _game_over(self, message: dict[str, Any]) -> None:
        await self.sessions.game_over(message.get("winner"), message.get("reason"))
