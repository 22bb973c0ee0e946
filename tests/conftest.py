"""Shared fakes for bot channels, the frontend websocket and discovery."""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable

import pytest

from snakearena.config import ArenaSettings
from snakearena.discovery import BotRegistry

_END = object()


class FakeChannel:
    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        self.sent: list[dict] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionError("channel closed")
        self.sent.append(json.loads(message))

    async def close(self) -> None:
        self.closed = True

    def feed(self, payload: dict | str) -> None:
        self._inbox.put_nowait(payload if isinstance(payload, str) else json.dumps(payload))

    def drop(self) -> None:
        """Simulate the bot closing its side."""
        self.closed = True
        self._inbox.put_nowait(_END)

    def fail(self, exc: BaseException) -> None:
        self.closed = True
        self._inbox.put_nowait(exc)

    def types(self) -> list[str]:
        return [message["type"] for message in self.sent]

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        item = await self._inbox.get()
        if item is _END:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class SlowCloseChannel(FakeChannel):
    """Channel whose close blocks until the shared gate is set."""

    def __init__(self, endpoint: str, gate: asyncio.Event) -> None:
        super().__init__(endpoint)
        self.gate = gate
        self.closing = False

    async def close(self) -> None:
        self.closing = True
        await self.gate.wait()
        self.closed = True


class FakeConnector:
    def __init__(self, factory: Callable[[str], FakeChannel] = FakeChannel) -> None:
        self.factory = factory
        self.opened: list[FakeChannel] = []
        self.channels: dict[str, FakeChannel] = {}
        self.unreachable: set[str] = set()
        self.calls: list[str] = []

    async def __call__(self, endpoint: str, timeout: float) -> FakeChannel:
        self.calls.append(endpoint)
        if endpoint in self.unreachable:
            raise OSError(f"connection refused: {endpoint}")
        channel = self.factory(endpoint)
        self.opened.append(channel)
        self.channels[endpoint] = channel
        return channel


class FakeDiscovery:
    def __init__(self) -> None:
        self.running = True
        self.events: list[str] = []

    def pause(self) -> None:
        self.running = False
        self.events.append("pause")

    def resume(self) -> None:
        self.running = True
        self.events.append("resume")


class FakeWebSocket:
    def __init__(self) -> None:
        self.accepted = False
        self.sent: list[dict] = []
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def accept(self) -> None:
        self.accepted = True

    async def receive(self) -> dict:
        item = await self._inbox.get()
        if item is _END:
            return {"type": "websocket.disconnect", "code": 1000}
        key = "bytes" if isinstance(item, bytes) else "text"
        return {"type": "websocket.receive", key: item}

    async def send_json(self, payload: dict) -> None:
        self.sent.append(payload)

    def push(self, payload: dict | str | bytes) -> None:
        self._inbox.put_nowait(payload if isinstance(payload, (str, bytes)) else json.dumps(payload))

    def disconnect(self) -> None:
        self._inbox.put_nowait(_END)

    def of_type(self, message_type: str) -> list[dict]:
        return [message for message in self.sent if message.get("type") == message_type]


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def settings() -> ArenaSettings:
    return ArenaSettings(
        broadcast_address="127.0.0.1",
        announce_interval=0.05,
        bot_timeout=15.0,
        move_request_interval=0.01,
        bot_connect_timeout=0.5,
    )


@pytest.fixture
def registry() -> BotRegistry:
    registry = BotRegistry(timeout=15.0)
    now = time.monotonic()
    registry.upsert("a1", name="Alpha", endpoint="ws://10.0.0.1:8081/", source_address="10.0.0.1", now=now)
    registry.upsert("b1", name="Bravo", endpoint="ws://10.0.0.2:8081/", source_address="10.0.0.2", now=now)
    return registry


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def discovery() -> FakeDiscovery:
    return FakeDiscovery()
