"""In-memory registry of bots seen by discovery."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..models import BotRecord


@dataclass(slots=True, frozen=True)
class UpsertResult:
    is_new: bool
    record: BotRecord


class BotRegistry:
    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        self._records: dict[str, BotRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, bot_id: object) -> bool:
        return bot_id in self._records

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._records.keys())

    def records(self) -> tuple[BotRecord, ...]:
        return tuple(self._records.values())

    def upsert(
        self,
        bot_id: str,
        *,
        name: str,
        endpoint: str,
        source_address: str,
        now: float,
        metadata: dict[str, Any] | None = None,
    ) -> UpsertResult:
        key = (bot_id or "").strip()
        if not key:
            raise ValueError("Bot id cannot be empty")

        record = self._records.get(key)
        if record is None:
            record = BotRecord(
                id=key,
                name=name,
                endpoint=endpoint,
                source_address=source_address,
                last_seen_at=now,
                metadata=dict(metadata or {}),
            )
            self._records[key] = record
            return UpsertResult(is_new=True, record=record)

        # Overwrite in place; insertion order and identity are preserved.
        record.name = name
        record.endpoint = endpoint
        record.source_address = source_address
        record.last_seen_at = now
        record.metadata = dict(metadata or {})
        return UpsertResult(is_new=False, record=record)

    def get(self, bot_id: str) -> BotRecord | None:
        return self._records.get(bot_id)

    def sweep_expired(self, now: float) -> list[str]:
        expired = [bot_id for bot_id, record in self._records.items() if now - record.last_seen_at > self.timeout]
        for bot_id in expired:
            del self._records[bot_id]
        return expired

    def snapshot(self) -> list[dict[str, str]]:
        return [record.summary() for record in self._records.values()]

    def describe(self, now: float) -> dict:
        return {
            "timeout": self.timeout,
            "count": len(self._records),
            "bots": [
                {
                    "id": record.id,
                    "name": record.name,
                    "url": record.endpoint,
                    "ip": record.source_address,
                    "secondsSinceSeen": round(max(0.0, now - record.last_seen_at), 3),
                }
                for record in self._records.values()
            ],
        }
