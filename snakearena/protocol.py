"""Wire messages for the bot and frontend websocket channels."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from .models import BotRecord, Direction, GameState

# Backend -> bot
GAME_CONFIG = "GAME_CONFIG"
MOVE_REQ = "MOVE_REQ"
# Bot -> backend
MOVE_RESP = "MOVE_RESP"

# Backend -> frontend
BOT_LIST = "BOT_LIST"
GAME_STARTED = "GAME_STARTED"
GAME_START_ERROR = "GAME_START_ERROR"
GAME_ENDED = "GAME_ENDED"
BOT_MOVE = "BOT_MOVE"

# Frontend -> backend
START_GAME = "START_GAME"
RECONNECT_GAME = "RECONNECT_GAME"
REQUEST_NEW_GAME = "REQUEST_NEW_GAME"
CANCEL_GAME = "CANCEL_GAME"
GAME_STATE = "GAME_STATE"
GAME_OVER = "GAME_OVER"


class ProtocolError(ValueError):
    """Raised for payloads that are not valid messages."""


def decode(raw: str | bytes) -> dict[str, Any]:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolError("payload is not valid UTF-8") from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"payload is not JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ProtocolError(f"expected a JSON object, got {type(payload).__name__}")
    return payload


def encode(payload: dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"))


def game_config(player_num: int, grid_size: int, game_speed: int) -> dict[str, Any]:
    return {"type": GAME_CONFIG, "playerNum": player_num, "gridSize": grid_size, "gameSpeed": game_speed}


def move_request(state: GameState, slot: int) -> dict[str, Any]:
    return {"type": MOVE_REQ, **state.view_for(slot)}


def parse_move_response(payload: dict[str, Any]) -> Direction:
    if payload.get("type") != MOVE_RESP:
        raise ProtocolError(f"unexpected message type {payload.get('type')!r}")
    direction = Direction.parse(payload.get("direction"))
    if direction is None:
        raise ProtocolError(f"invalid direction {payload.get('direction')!r}")
    return direction


def game_ended(reason: str) -> dict[str, Any]:
    return {"type": GAME_ENDED, "reason": reason}


def bot_list(bots: Sequence[dict[str, str]]) -> dict[str, Any]:
    return {"type": BOT_LIST, "bots": list(bots)}


def game_started(participants: Sequence[BotRecord]) -> dict[str, Any]:
    return {
        "type": GAME_STARTED,
        "bots": [record.name for record in participants],
        "botIds": [record.id for record in participants],
    }


def game_start_error(message: str) -> dict[str, Any]:
    return {"type": GAME_START_ERROR, "message": message}


def bot_move(bot_id: str, direction: Direction) -> dict[str, Any]:
    return {"type": BOT_MOVE, "botId": bot_id, "direction": direction.value}


def parse_bot_ids(payload: dict[str, Any]) -> list[str]:
    raw = payload.get("botIds")
    if not isinstance(raw, list):
        raise ProtocolError("botIds must be a list")
    return [str(item) for item in raw]


def parse_game_state(payload: dict[str, Any]) -> GameState:
    missing = [key for key in ("snake1", "snake2", "food") if key not in payload]
    if missing:
        raise ProtocolError(f"game state is missing {', '.join(missing)}")
    return GameState(
        snake1=payload["snake1"],
        snake2=payload["snake2"],
        food=payload["food"],
        score1=payload.get("score1", 0),
        score2=payload.get("score2", 0),
        timer=payload.get("timer"),
    )
