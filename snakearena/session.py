"""Two-bot session lifecycle: connect, relay moves, tear down."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any

from . import protocol
from .bots.connection import BotConnection, ChannelHooks, Connector, connect_websocket
from .config import PLAYER_SLOTS, ArenaSettings
from .models import BotRecord, Direction, GameState, SessionState

if TYPE_CHECKING:
    from .discovery import BotRegistry, DiscoveryBroadcaster

logger = logging.getLogger(__name__)

Emit = Callable[[dict[str, Any]], Any]

REPLACED_REASON = "Game replaced by a new session."
CANCELLED_REASON = "Game cancelled by frontend."
FRONTEND_DISCONNECTED_REASON = "frontend disconnected"


class SessionStartError(Exception):
    """A start command could not be turned into a session."""


@dataclass(slots=True)
class Session:
    participants: tuple[BotRecord, BotRecord]
    state: SessionState = SessionState.CONNECTING
    connections: list[BotConnection] = field(default_factory=list)
    latest_game_state: GameState | None = None
    end_reason: str | None = None
    lost: list[str] = field(default_factory=list)

    @property
    def bot_ids(self) -> tuple[str, str]:
        first, second = self.participants
        return (first.id, second.id)


def describe_outcome(winner: Any, reason: Any, session: Session) -> str:
    """Build the GAME_ENDED reason for a game-over report.

    A missing winner is derived from the latest scores: the higher score wins
    and equal scores are a tie, whether the game ended on time or on a collision.
    """
    text = str(reason).strip() if reason else "Game over"
    label = str(winner).strip() if winner else ""
    if not label and session.latest_game_state is not None:
        leader = session.latest_game_state.leader()
        label = "tie" if leader is None else session.participants[leader - 1].name
    if not label:
        return text
    if label.lower() == "tie":
        return f"{text}: it's a tie."
    return f"{text}: {label} wins."


class SessionManager:
    def __init__(
        self,
        registry: BotRegistry,
        discovery: DiscoveryBroadcaster,
        settings: ArenaSettings,
        *,
        emit: Emit,
        connector: Connector = connect_websocket,
    ) -> None:
        self.registry = registry
        self.discovery = discovery
        self.settings = settings
        self._emit = emit
        self._connector = connector
        self._session: Session | None = None
        self._last_pairing: tuple[str, str] | None = None
        self._teardowns: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.IDLE
        return self._session.state

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def last_pairing(self) -> tuple[str, str] | None:
        return self._last_pairing

    def describe(self) -> dict:
        session = self._session
        return {
            "state": self.state.value,
            "bots": [record.summary() for record in session.participants] if session else [],
            "connections": len(session.connections) if session else 0,
            "hasGameState": bool(session and session.latest_game_state is not None),
            "lastPairing": list(self._last_pairing) if self._last_pairing else None,
        }

    async def start(self, bot_ids: Sequence[str]) -> bool:
        try:
            participants = self._resolve(bot_ids)
        except SessionStartError as exc:
            logger.warning("Cannot start game: %s", exc)
            self._emit(protocol.game_start_error(str(exc)))
            return False

        await self.stop(REPLACED_REASON)
        await self.wait_for_teardowns()

        self.discovery.pause()
        session = Session(participants=participants)
        self._session = session
        logger.info("Connecting to %s and %s", participants[0].name, participants[1].name)

        connections = [self._build_connection(session, record, slot) for slot, record in zip(PLAYER_SLOTS, participants)]
        results = await asyncio.gather(*(conn.open() for conn in connections), return_exceptions=True)

        if self._session is not session or session.state is not SessionState.CONNECTING:
            logger.info("Session ended while connecting; discarding channels")
            await self._close_all(connections, session.end_reason or REPLACED_REASON)
            return False

        failed = [conn for conn, result in zip(connections, results) if isinstance(result, BaseException)]
        if failed or session.lost:
            for conn, result in zip(connections, results):
                if isinstance(result, BaseException):
                    logger.warning("Could not connect to bot %s at %s: %s", conn.name, conn.record.endpoint, result)
            names = " and ".join([conn.name for conn in failed] + session.lost)
            session.state = SessionState.ENDED
            session.end_reason = "Game could not start."
            await self._close_all(connections, session.end_reason)
            self._session = None
            self.discovery.resume()
            self._emit(protocol.game_start_error(f"Could not connect to {names}."))
            return False

        session.connections.extend(connections)
        session.state = SessionState.ACTIVE
        self._last_pairing = session.bot_ids
        for conn in connections:
            conn.start_requests()
        logger.info("Game started: %s vs %s", participants[0].name, participants[1].name)
        self._emit(protocol.game_started(participants))
        return True

    async def reconnect(self, bot_ids: Sequence[str]) -> bool:
        return await self.start(bot_ids)

    async def restart(self) -> bool:
        if self._last_pairing is None:
            logger.warning("Restart requested with no previous game")
            self._emit(protocol.game_start_error("No previous game to restart."))
            return False
        return await self.start(self._last_pairing)

    async def cancel(self, reason: str | None = None) -> bool:
        return await self.stop(reason or CANCELLED_REASON)

    async def stop(self, reason: str) -> bool:
        session = self._end(reason)
        if session is None:
            return False
        await asyncio.shield(self._schedule_teardown(session))
        return True

    def update_game_state(self, state: GameState) -> bool:
        session = self._session
        if session is None or session.state is not SessionState.ACTIVE:
            logger.debug("Ignoring game state with no active session")
            return False
        session.latest_game_state = state
        return True

    async def game_over(self, winner: Any = None, reason: Any = None) -> bool:
        session = self._session
        if session is None or session.state is SessionState.ENDED:
            return False
        return await self.stop(describe_outcome(winner, reason, session))

    def _resolve(self, bot_ids: Sequence[str]) -> tuple[BotRecord, BotRecord]:
        ids = [str(bot_id) for bot_id in bot_ids]
        if len(ids) != 2:
            raise SessionStartError(f"Exactly two bots are required, got {len(ids)}.")
        if ids[0] == ids[1]:
            raise SessionStartError("Select two different bots.")
        records = []
        for bot_id in ids:
            record = self.registry.get(bot_id)
            if record is None:
                raise SessionStartError(f"Bot {bot_id} is not available.")
            records.append(record)
        return (records[0], records[1])

    def _build_connection(self, session: Session, record: BotRecord, slot: int) -> BotConnection:
        hooks = ChannelHooks(
            on_message=partial(self._handle_move, session),
            on_closed=partial(self._handle_lost, session),
            on_failed=partial(self._handle_failed, session),
        )
        return BotConnection(
            record,
            slot,
            hooks,
            self.settings,
            game_state=partial(self._latest_state, session),
            is_active=partial(self._is_active, session),
            connector=self._connector,
        )

    def _is_active(self, session: Session) -> bool:
        return self._session is session and session.state is SessionState.ACTIVE

    def _latest_state(self, session: Session) -> GameState | None:
        return session.latest_game_state

    def _handle_move(self, session: Session, connection: BotConnection, direction: Direction) -> None:
        if not self._is_active(session):
            logger.debug("Dropping late move from bot %s", connection.name)
            return
        self._emit(protocol.bot_move(connection.bot_id, direction))

    def _handle_lost(self, session: Session, connection: BotConnection) -> None:
        if self._session is not session:
            return
        if session.state is SessionState.CONNECTING:
            # start() reports it once every channel has settled.
            logger.warning("Bot %s dropped before the game started", connection.name)
            session.lost.append(connection.name)
            return
        ended = self._end(f"{connection.name} disconnected.")
        if ended is not None:
            self._schedule_teardown(ended)

    def _handle_failed(self, session: Session, connection: BotConnection, exc: BaseException) -> None:
        logger.debug("Bot %s channel error: %r", connection.name, exc)
        self._handle_lost(session, connection)

    def _end(self, reason: str) -> Session | None:
        session = self._session
        if session is None or session.state is SessionState.ENDED:
            return None
        logger.info("Stopping game: %s", reason)
        session.state = SessionState.ENDED
        session.end_reason = reason
        session.latest_game_state = None
        return session

    async def _teardown(self, session: Session) -> None:
        reason = session.end_reason or CANCELLED_REASON
        connections = list(session.connections)
        session.connections.clear()
        await self._close_all(connections, reason)
        if self._session is session:
            self._session = None
        self._emit(protocol.game_ended(reason))
        if self._session is None:
            self.discovery.resume()

    def _schedule_teardown(self, session: Session) -> asyncio.Task[None]:
        task = asyncio.create_task(self._teardown(session))
        self._teardowns.add(task)
        task.add_done_callback(self._teardowns.discard)
        return task

    async def wait_for_teardowns(self) -> None:
        while self._teardowns:
            await asyncio.gather(*list(self._teardowns), return_exceptions=True)

    @staticmethod
    async def _close_all(connections: Sequence[BotConnection], reason: str) -> None:
        results = await asyncio.gather(*(conn.close(reason) for conn in connections), return_exceptions=True)
        for conn, result in zip(connections, results):
            if isinstance(result, Exception):
                logger.debug("Error closing bot %s: %r", conn.name, result)
