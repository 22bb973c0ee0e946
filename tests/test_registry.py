"""Tests for the in-memory bot registry."""

from __future__ import annotations

import pytest

from snakearena.discovery import BotRegistry


def _upsert(registry: BotRegistry, bot_id: str, now: float, name: str | None = None):
    return registry.upsert(
        bot_id,
        name=name or bot_id.upper(),
        endpoint=f"ws://{bot_id}:8081/",
        source_address="192.168.1.10",
        now=now,
    )


def test_new_id_reports_is_new_once():
    registry = BotRegistry(timeout=15.0)

    assert _upsert(registry, "a1", 0.0).is_new is True
    assert _upsert(registry, "a1", 1.0).is_new is False
    assert _upsert(registry, "a1", 2.0).is_new is False
    assert len(registry) == 1


def test_reupsert_overwrites_in_place():
    registry = BotRegistry(timeout=15.0)
    first = _upsert(registry, "a1", 0.0, name="Old").record
    second = _upsert(registry, "a1", 5.0, name="New").record

    assert first is second
    assert registry.get("a1").name == "New"
    assert registry.get("a1").last_seen_at == 5.0


def test_expiry_boundary():
    registry = BotRegistry(timeout=15.0)
    _upsert(registry, "a1", 0.0)

    assert registry.sweep_expired(14.999) == []
    assert "a1" in registry
    assert registry.sweep_expired(15.0) == []
    assert registry.sweep_expired(15.001) == ["a1"]
    assert registry.get("a1") is None


def test_expired_bot_is_new_again_when_rediscovered():
    registry = BotRegistry(timeout=15.0)
    _upsert(registry, "a1", 0.0)
    registry.sweep_expired(20.0)

    assert _upsert(registry, "a1", 21.0).is_new is True


def test_refresh_keeps_bot_alive():
    registry = BotRegistry(timeout=15.0)
    _upsert(registry, "a1", 0.0)
    _upsert(registry, "b1", 0.0)
    _upsert(registry, "a1", 10.0)

    assert registry.sweep_expired(20.0) == ["b1"]
    assert registry.ids == ("a1",)


def test_snapshot_keeps_insertion_order():
    registry = BotRegistry(timeout=15.0)
    _upsert(registry, "b1", 0.0, name="Bravo")
    _upsert(registry, "a1", 1.0, name="Alpha")
    _upsert(registry, "b1", 2.0, name="Bravo II")

    assert registry.snapshot() == [
        {"id": "b1", "name": "Bravo II"},
        {"id": "a1", "name": "Alpha"},
    ]


def test_empty_id_rejected():
    registry = BotRegistry(timeout=15.0)
    with pytest.raises(ValueError):
        _upsert(registry, "  ", 0.0)


def test_describe_reports_age():
    registry = BotRegistry(timeout=15.0)
    _upsert(registry, "a1", 10.0)

    described = registry.describe(now=12.5)
    assert described["count"] == 1
    assert described["bots"][0]["secondsSinceSeen"] == 2.5
    assert described["bots"][0]["ip"] == "192.168.1.10"
