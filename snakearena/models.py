"""Core dataclasses shared by discovery, bot channels and sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Direction(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    LEFT = "LEFT"
    RIGHT = "RIGHT"

    @classmethod
    def parse(cls, raw: Any) -> Direction | None:
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


class SessionState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"


@dataclass(slots=True)
class BotRecord:
    id: str
    name: str
    endpoint: str
    source_address: str
    last_seen_at: float
    metadata: dict[str, Any] = field(default_factory=dict)

    def summary(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}


@dataclass(slots=True, frozen=True)
class GameState:
    """Snapshot produced by the frontend's rule engine.

    Contents are forwarded as-is; only the slot orientation is applied.
    """

    snake1: Any
    snake2: Any
    food: Any
    score1: Any = 0
    score2: Any = 0
    timer: Any = None

    def view_for(self, slot: int) -> dict[str, Any]:
        if slot == 1:
            return {
                "mySnake": self.snake1,
                "opponentSnake": self.snake2,
                "food": self.food,
                "myScore": self.score1,
                "opponentScore": self.score2,
                "timer": self.timer,
            }
        return {
            "mySnake": self.snake2,
            "opponentSnake": self.snake1,
            "food": self.food,
            "myScore": self.score2,
            "opponentScore": self.score1,
            "timer": self.timer,
        }

    def leader(self) -> int | None:
        """Return the slot with the higher score, or None on a tie."""
        try:
            first = float(self.score1)
            second = float(self.score2)
        except (TypeError, ValueError):
            return None
        if first > second:
            return 1
        if second > first:
            return 2
        return None
