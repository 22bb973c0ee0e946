"""Tests for wire message helpers."""

from __future__ import annotations

import pytest

from snakearena import protocol
from snakearena.models import BotRecord, Direction, GameState
from snakearena.protocol import ProtocolError


def test_decode_rejects_non_objects():
    with pytest.raises(ProtocolError):
        protocol.decode("nope")
    with pytest.raises(ProtocolError):
        protocol.decode("42")
    assert protocol.decode(b'{"type": "X"}') == {"type": "X"}


@pytest.mark.parametrize("raw", ["UP", "down", " Left ", "RIGHT"])
def test_parse_move_response_accepts_directions(raw):
    assert isinstance(protocol.parse_move_response({"type": "MOVE_RESP", "direction": raw}), Direction)


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "MOVE_RESP"},
        {"type": "MOVE_RESP", "direction": 3},
        {"type": "MOVE_RESP", "direction": "NORTH"},
        {"type": "MOVE", "direction": "UP"},
    ],
)
def test_parse_move_response_rejects_bad_payloads(payload):
    with pytest.raises(ProtocolError):
        protocol.parse_move_response(payload)


def test_game_started_lists_names_and_ids():
    records = [
        BotRecord(id="a1", name="Alpha", endpoint="ws://a/", source_address="1.1.1.1", last_seen_at=0.0),
        BotRecord(id="b1", name="Bravo", endpoint="ws://b/", source_address="1.1.1.2", last_seen_at=0.0),
    ]
    assert protocol.game_started(records) == {
        "type": "GAME_STARTED",
        "bots": ["Alpha", "Bravo"],
        "botIds": ["a1", "b1"],
    }


def test_parse_game_state_defaults_optional_fields():
    state = protocol.parse_game_state({"snake1": [], "snake2": [], "food": {"x": 1, "y": 1}})
    assert state == GameState(snake1=[], snake2=[], food={"x": 1, "y": 1}, score1=0, score2=0, timer=None)


def test_parse_bot_ids_stringifies():
    assert protocol.parse_bot_ids({"botIds": [1, "b"]}) == ["1", "b"]


@pytest.mark.parametrize(
    ("score1", "score2", "leader"),
    [(3, 1, 1), (1, 3, 2), (2, 2, None), ("x", 1, None)],
)
def test_game_state_leader(score1, score2, leader):
    assert GameState(snake1=[], snake2=[], food=None, score1=score1, score2=score2).leader() == leader
