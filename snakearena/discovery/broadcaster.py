"""UDP announce/response loop that keeps the bot registry fresh."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable

from .. import config
from ..config import ArenaSettings
from ..protocol import ProtocolError, decode
from .registry import BotRegistry, UpsertResult

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[list[dict[str, str]]], None]


class _DiscoveryProtocol(asyncio.DatagramProtocol):
    def __init__(self, broadcaster: DiscoveryBroadcaster) -> None:
        self._broadcaster = broadcaster

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._broadcaster.handle_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.warning("Discovery socket error: %s", exc)


class DiscoveryBroadcaster:
    def __init__(
        self,
        registry: BotRegistry,
        settings: ArenaSettings,
        *,
        on_change: SnapshotListener | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self.on_change = on_change
        self._clock = clock
        self._transport: asyncio.DatagramTransport | None = None
        self._task: asyncio.Task[None] | None = None
        self._payload = config.DISCOVERY_MESSAGE.encode("utf-8")

    @property
    def running(self) -> bool:
        return self._task is not None

    async def open(self) -> None:
        if self._transport is not None:
            return
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _DiscoveryProtocol(self),
            local_addr=("0.0.0.0", 0),
            allow_broadcast=True,
        )
        self._transport = transport
        logger.info(
            "Discovery socket bound on %s, announcing to %s:%d",
            transport.get_extra_info("sockname"),
            self.settings.broadcast_address,
            self.settings.discovery_port,
        )

    async def close(self) -> None:
        task = self._task
        self.pause()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    def resume(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._announce_loop())
        logger.info("Discovery resumed")

    def pause(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("Discovery paused")

    async def _announce_loop(self) -> None:
        interval = self.settings.announce_interval
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("Discovery tick failed")
            await asyncio.sleep(interval)

    def tick(self, now: float | None = None) -> None:
        self.announce()
        self.sweep(now)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Active bots (%d):", len(self.registry))
            for record in self.registry.records():
                logger.debug("- %s @ %s", record.name, record.endpoint)

    def announce(self) -> bool:
        if self._transport is None:
            logger.debug("Discovery socket not open; skipping announce")
            return False
        try:
            self._transport.sendto(
                self._payload,
                (self.settings.broadcast_address, self.settings.discovery_port),
            )
        except OSError as exc:
            logger.warning("Discovery broadcast failed: %s", exc)
            return False
        logger.debug("Sent discovery broadcast")
        return True

    def sweep(self, now: float | None = None) -> list[str]:
        now = self._clock() if now is None else now
        removed = self.registry.sweep_expired(now)
        if removed:
            logger.info("Removing inactive bots: %s", ", ".join(removed))
            self._publish()
        return removed

    def handle_datagram(self, data: bytes, addr: tuple[str, int], now: float | None = None) -> UpsertResult | None:
        if data == self._payload:
            return None
        try:
            payload = decode(data)
        except ProtocolError as exc:
            logger.warning("Invalid bot response from %s: %s", addr[0], exc)
            return None

        bot_id = payload.get("id")
        if not isinstance(bot_id, (str, int)) or not str(bot_id).strip():
            logger.warning("Bot response from %s has no id", addr[0])
            return None
        bot_id = str(bot_id).strip()

        source_address = addr[0]
        name = payload.get("name")
        name = str(name).strip() if name else bot_id
        url = payload.get("url")
        endpoint = url.strip() if isinstance(url, str) and url.strip() else self._default_endpoint(source_address)
        metadata = {k: v for k, v in payload.items() if k not in {"id", "name", "url", "ip"}}

        result = self.registry.upsert(
            bot_id,
            name=name,
            endpoint=endpoint,
            source_address=source_address,
            now=self._clock() if now is None else now,
            metadata=metadata,
        )
        if result.is_new:
            logger.info("Discovered bot %s (%s) at %s", name, bot_id, endpoint)
            self._publish()
        return result

    def _default_endpoint(self, source_address: str) -> str:
        return f"ws://{source_address}:{self.settings.default_bot_port}/"

    def _publish(self) -> None:
        if self.on_change is not None:
            self.on_change(self.registry.snapshot())
