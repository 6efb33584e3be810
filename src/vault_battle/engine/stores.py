"""Collaborator interfaces the engine reads from and writes to.

The engine only talks to these abstractions. In-memory implementations live
here for hosts and tests; SQLAlchemy-backed ones live in `vault_battle.services`.
"""

import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any

from .types import StatusEffectSpec


class StoreError(Exception):
    """A store read or write failed."""


@dataclass
class VaultSnapshot:
    """Persistent vault fields a battle reads at start."""

    player_id: str
    current_pp: int = 0
    capacity: int = 1000
    shield_strength: int = 0
    max_shield_strength: int = 100
    overshield: int = 0
    vault_health: int = 100
    max_vault_health: int = 100

    def to_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "player_id"}


@dataclass
class CatalogEntry:
    """Current definition of a move, possibly admin-overridden."""

    move_name: str
    display_name: str | None = None
    description: str | None = None
    damage: int = 0
    healing: int = 0
    shield_boost: int = 0
    status_effects: list[StatusEffectSpec] = field(default_factory=list)

    @staticmethod
    def normalize_amount(value: Any) -> int:
        """Take a scalar or a legacy {"min", "max"} range and return a scalar (the max)."""
        if value is None:
            return 0
        if isinstance(value, dict):
            if "max" in value:
                return int(value["max"] or 0)
            return int(value.get("value", 0) or 0)
        return int(value)

    @classmethod
    def from_dict(cls, move_name: str, data: dict[str, Any]) -> "CatalogEntry":
        """Build from a loosely shaped catalog document."""
        effects = data.get("statusEffects") or data.get("status_effects") or []
        if isinstance(effects, dict):
            effects = [effects]
        return cls(
            move_name=move_name,
            display_name=data.get("name") or data.get("display_name"),
            description=data.get("description"),
            damage=cls.normalize_amount(data.get("damage")),
            healing=cls.normalize_amount(data.get("healing")),
            shield_boost=cls.normalize_amount(data.get("shieldBoost", data.get("shield_boost"))),
            status_effects=[StatusEffectSpec.from_dict(e) for e in effects if e and e.get("type")],
        )


class VaultStore(ABC):
    """Persistent per-player vault."""

    @abstractmethod
    async def read(self, player_id: str) -> VaultSnapshot:
        """Read a vault. Raises StoreError if missing or unreadable."""

    @abstractmethod
    async def write(self, player_id: str, values: dict[str, int]) -> None:
        """Write a partial set of vault fields. Raises StoreError on failure."""


class MoveLogStore(ABC):
    """Shared append-only move log, keyed by battle room."""

    @abstractmethod
    async def append(self, room_id: str, record: dict[str, Any]) -> str:
        """Append a record; the store assigns `id` and `timestamp`. Returns the id."""

    @abstractmethod
    async def query_unprocessed(self, room_id: str, exclude_actor_id: str, self_id: str) -> list[dict[str, Any]]:
        """Records not written by `exclude_actor_id` and not yet processed by `self_id`."""

    @abstractmethod
    async def mark_processed(self, room_id: str, record_id: str, self_id: str) -> None:
        """Add `self_id` to the record's processed_by set."""


class MoveCatalog(ABC):
    """Lookup of current move definitions by name."""

    @abstractmethod
    async def lookup(self, move_name: str) -> CatalogEntry | None:
        """Return the current definition of a move, or None if unknown."""


class InMemoryVaultStore(VaultStore):
    """Dictionary-backed vault store."""

    def __init__(self, vaults: dict[str, VaultSnapshot] | None = None) -> None:
        self.vaults: dict[str, VaultSnapshot] = dict(vaults or {})

    async def read(self, player_id: str) -> VaultSnapshot:
        vault = self.vaults.get(player_id)
        if vault is None:
            raise StoreError(f"Vault not found: {player_id}")
        return VaultSnapshot(player_id=player_id, **vault.to_dict())

    async def write(self, player_id: str, values: dict[str, int]) -> None:
        vault = self.vaults.setdefault(player_id, VaultSnapshot(player_id=player_id))
        for key, value in values.items():
            if not hasattr(vault, key) or key == "player_id":
                raise StoreError(f"Unknown vault field: {key}")
            setattr(vault, key, value)


class InMemoryMoveLogStore(MoveLogStore):
    """List-backed move log. Timestamps are assigned on append."""

    def __init__(self) -> None:
        self.rooms: dict[str, list[dict[str, Any]]] = {}
        self._ids = itertools.count(1)

    async def append(self, room_id: str, record: dict[str, Any]) -> str:
        stored = dict(record)
        stored["id"] = str(next(self._ids))
        stored.setdefault("timestamp", datetime.now(timezone.utc))
        stored["processed_by"] = list(stored.get("processed_by") or [])
        self.rooms.setdefault(room_id, []).append(stored)
        return stored["id"]

    async def query_unprocessed(self, room_id: str, exclude_actor_id: str, self_id: str) -> list[dict[str, Any]]:
        return [
            {**record, "processed_by": list(record["processed_by"])}
            for record in self.rooms.get(room_id, [])
            if record.get("actor_id") != exclude_actor_id and self_id not in record["processed_by"]
        ]

    async def mark_processed(self, room_id: str, record_id: str, self_id: str) -> None:
        for record in self.rooms.get(room_id, []):
            if record["id"] == record_id:
                if self_id not in record["processed_by"]:
                    record["processed_by"].append(self_id)
                return
        raise StoreError(f"Move record not found: {record_id}")


class InMemoryMoveCatalog(MoveCatalog):
    """Dictionary-backed move catalog."""

    def __init__(self, entries: dict[str, CatalogEntry] | None = None) -> None:
        self.entries: dict[str, CatalogEntry] = dict(entries or {})

    async def lookup(self, move_name: str) -> CatalogEntry | None:
        return self.entries.get(move_name)
