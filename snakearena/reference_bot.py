"""Minimal bot that answers discovery and plays greedily toward the food."""

from __future__ import annotations

import asyncio
import logging
import socket
import uuid
from typing import Any

import websockets

from . import config, protocol
from .models import Direction
from .protocol import ProtocolError

logger = logging.getLogger(__name__)

_OPPOSITE = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}


def local_ip() -> str:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
        try:
            # No packet is sent; connecting only selects the outbound interface.
            probe.connect(("10.255.255.255", 1))
            return probe.getsockname()[0]
        except OSError:
            return "127.0.0.1"


def _point(raw: Any) -> tuple[int, int] | None:
    if isinstance(raw, dict) and "x" in raw and "y" in raw:
        try:
            return (int(raw["x"]), int(raw["y"]))
        except (TypeError, ValueError):
            return None
    return None


def choose_direction(my_snake: Any, food: Any, previous: Direction | None = None) -> Direction:
    head = _point(my_snake[0]) if isinstance(my_snake, list) and my_snake else None
    target = _point(food)
    fallback = previous or Direction.DOWN
    if head is None or target is None:
        return fallback

    dx = target[0] - head[0]
    dy = target[1] - head[1]
    horizontal = Direction.RIGHT if dx > 0 else Direction.LEFT
    vertical = Direction.DOWN if dy > 0 else Direction.UP
    preferred = [horizontal, vertical] if abs(dx) >= abs(dy) else [vertical, horizontal]
    if dx == 0:
        preferred.remove(horizontal)
    if dy == 0:
        preferred.remove(vertical)

    for direction in preferred:
        if previous is None or direction is not _OPPOSITE[previous]:
            return direction
    return fallback


class _DiscoveryResponder(asyncio.DatagramProtocol):
    def __init__(self, bot: ReferenceBot) -> None:
        self._bot = bot
        self._transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if data.decode("utf-8", errors="replace") != config.DISCOVERY_MESSAGE or self._transport is None:
            return
        self._transport.sendto(self._bot.discovery_reply(), addr)


class ReferenceBot:
    def __init__(
        self,
        *,
        bot_id: str | None = None,
        name: str = "UnnamedBot",
        ws_port: int = 8081,
        discovery_port: int = 9999,
        advertise_host: str | None = None,
    ) -> None:
        self.bot_id = bot_id or uuid.uuid4().hex[:8]
        self.name = name
        self.ws_port = ws_port
        self.discovery_port = discovery_port
        self.advertise_host = advertise_host
        self.player_num: int | None = None

    @property
    def url(self) -> str:
        return f"ws://{self.advertise_host or local_ip()}:{self.ws_port}/"

    def discovery_reply(self) -> bytes:
        reply = {"id": self.bot_id, "name": self.name, "language": "python", "url": self.url}
        return protocol.encode(reply).encode("utf-8")

    def respond(self, message: dict[str, Any], previous: Direction | None) -> dict[str, Any] | None:
        message_type = message.get("type")
        if message_type == protocol.GAME_CONFIG:
            self.player_num = message.get("playerNum")
            logger.info("[%s] Playing as player %s", self.name, self.player_num)
            return None
        if message_type == protocol.MOVE_REQ:
            direction = choose_direction(message.get("mySnake"), message.get("food"), previous)
            return {"type": protocol.MOVE_RESP, "direction": direction.value}
        if message_type == protocol.GAME_ENDED:
            logger.info("[%s] Game ended: %s", self.name, message.get("reason"))
        return None

    async def handle(self, websocket: Any) -> None:
        previous: Direction | None = None
        async for raw in websocket:
            try:
                message = protocol.decode(raw)
            except ProtocolError as exc:
                logger.warning("[%s] Bad message: %s", self.name, exc)
                continue
            reply = self.respond(message, previous)
            if reply is None:
                continue
            previous = Direction(reply["direction"])
            await websocket.send(protocol.encode(reply))

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _DiscoveryResponder(self),
            local_addr=("0.0.0.0", self.discovery_port),
            allow_broadcast=True,
            reuse_port=hasattr(socket, "SO_REUSEPORT"),
        )
        logger.info("[%s] Listening for discovery on UDP %d", self.name, self.discovery_port)
        try:
            async with websockets.serve(self.handle, "0.0.0.0", self.ws_port):
                logger.info("[%s] Serving moves at %s", self.name, self.url)
                await asyncio.Future()
        finally:
            transport.close()
