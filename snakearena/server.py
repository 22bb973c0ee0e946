"""FastAPI app wiring discovery, sessions and the frontend websocket."""

from __future__ import annotations

import contextlib
import time
from collections.abc import AsyncIterator

from fastapi import FastAPI, WebSocket

from .bots.connection import Connector, connect_websocket
from .config import ArenaSettings
from .discovery import BotRegistry, DiscoveryBroadcaster
from .gateway import FrontendGateway, FrontendLink
from .session import SessionManager


class ArenaServer:
    def __init__(self, settings: ArenaSettings | None = None, *, connector: Connector = connect_websocket) -> None:
        self.settings = settings or ArenaSettings.from_env()
        self.registry = BotRegistry(timeout=self.settings.bot_timeout)
        self.link = FrontendLink()
        self.discovery = DiscoveryBroadcaster(
            self.registry,
            self.settings,
            on_change=self.link.publish_bot_list,
        )
        self.sessions = SessionManager(
            self.registry,
            self.discovery,
            self.settings,
            emit=self.link.send,
            connector=connector,
        )
        self.gateway = FrontendGateway(self.link, self.sessions, self.registry)

    async def start(self) -> None:
        await self.discovery.open()
        self.discovery.resume()

    async def stop(self) -> None:
        await self.sessions.stop("Server shutting down.")
        await self.sessions.wait_for_teardowns()
        await self.discovery.close()

    def describe_bots(self) -> dict:
        return {
            "discoveryRunning": self.discovery.running,
            **self.registry.describe(now=time.monotonic()),
        }


def build_app(server: ArenaServer) -> FastAPI:
    @contextlib.asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await server.start()
        try:
            yield
        finally:
            await server.stop()

    app = FastAPI(title="Snake Arena", lifespan=lifespan)
    app.state.arena = server

    @app.get("/api/bots")
    async def bot_status() -> dict:
        return server.describe_bots()

    @app.get("/api/session")
    async def session_status() -> dict:
        return server.sessions.describe()

    @app.websocket("/")
    async def frontend_root(websocket: WebSocket) -> None:
        await server.gateway.serve(websocket)

    @app.websocket("/ws")
    async def frontend_handler(websocket: WebSocket) -> None:
        await server.gateway.serve(websocket)

    return app


state = ArenaServer()
app = build_app(state)
