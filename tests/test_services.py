"""Tests for the SQL-backed stores."""

import logging

import pytest
from conftest import MaxRandom, make_combatant

from vault_battle.db.models import MoveOverride
from vault_battle.db.models.enums import BattleMode, StatusEffectType
from vault_battle.engine.battle import BattleSession
from vault_battle.engine.stores import StoreError
from vault_battle.engine.sync import PvPSynchronizer
from vault_battle.services import SqlMoveCatalog, SqlMoveLogStore, SqlVaultStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestSqlVaultStore:
    """Tests for SqlVaultStore."""

    async def test_missing_vault(self, session_factory):
        store = SqlVaultStore(session_factory)
        with pytest.raises(StoreError):
            await store.read("nobody")

    async def test_write_creates_and_updates(self, session_factory):
        store = SqlVaultStore(session_factory)

        await store.write("p1", {"current_pp": 250, "vault_health": 70})
        await store.write("p1", {"shield_strength": 30})
        vault = await store.read("p1")

        assert vault.current_pp == 250
        assert vault.vault_health == 70
        assert vault.shield_strength == 30
        assert vault.max_vault_health == 100

    async def test_unknown_field_rejected(self, session_factory):
        store = SqlVaultStore(session_factory)
        with pytest.raises(StoreError):
            await store.write("p1", {"gold": 5})

    async def test_get_or_create(self, session_factory):
        store = SqlVaultStore(session_factory)

        created = await store.get_or_create("p7")
        await store.write("p7", {"current_pp": 10})
        loaded = await store.get_or_create("p7")

        assert created.current_pp == 0
        assert created.capacity == 1000
        assert loaded.current_pp == 10


class TestSqlMoveLogStore:
    """Tests for SqlMoveLogStore."""

    async def test_append_and_query(self, session_factory):
        store = SqlMoveLogStore(session_factory)
        first = await store.append("room", {"actor_id": "p2", "move_name": "Strike", "processed_by": ["p2"]})
        await store.append("room", {"actor_id": "p1", "move_name": "Guard", "processed_by": ["p1"]})
        await store.append("other", {"actor_id": "p2", "move_name": "Strike", "processed_by": ["p2"]})

        records = await store.query_unprocessed("room", "p1", "p1")

        assert [r["id"] for r in records] == [first]
        assert records[0]["move_name"] == "Strike"
        assert records[0]["room_id"] == "room"
        assert records[0]["timestamp"] is not None

    async def test_mark_processed(self, session_factory):
        store = SqlMoveLogStore(session_factory)
        record_id = await store.append("room", {"actor_id": "p2", "move_name": "Strike", "processed_by": ["p2"]})

        await store.mark_processed("room", record_id, "p1")
        await store.mark_processed("room", record_id, "p1")

        assert await store.query_unprocessed("room", "p1", "p1") == []
        assert len(await store.query_unprocessed("room", "p3", "p3")) == 1

    async def test_mark_processed_logged(self, session_factory, caplog):
        store = SqlMoveLogStore(session_factory)

        with caplog.at_level(logging.DEBUG, logger="vault_battle.services.move_log"):
            record_id = await store.append("room", {"actor_id": "p2", "move_name": "Strike", "processed_by": ["p2"]})
            await store.mark_processed("room", record_id, "p1")

        assert f"Move record {record_id} appended in room room" in caplog.text
        assert f"Move record {record_id} processed by p1" in caplog.text

    async def test_mark_missing_record(self, session_factory):
        store = SqlMoveLogStore(session_factory)
        with pytest.raises(StoreError):
            await store.mark_processed("room", "42", "p1")
        with pytest.raises(StoreError):
            await store.mark_processed("room", "not-a-number", "p1")

    async def test_pvp_round_trip(self, session_factory, settings, strike):
        """Two sessions exchange a move through the SQL move log."""
        store = SqlMoveLogStore(session_factory)

        hero_a = make_combatant("p1", name="Hero", is_player=True, moves=[strike])
        rival_a = make_combatant("p2", name="Rival")
        side_a = BattleSession("a", hero_a, [rival_a], mode=BattleMode.PVP, settings=settings, rng=MaxRandom(1))
        PvPSynchronizer(side_a, store, "room", "p1")

        rival_b = make_combatant("p2", name="Rival", is_player=True)
        hero_b = make_combatant("p1", name="Hero")
        side_b = BattleSession("b", rival_b, [hero_b], mode=BattleMode.PVP, settings=settings, rng=MaxRandom(2))
        sync_b = PvPSynchronizer(side_b, store, "room", "p2")

        await side_a.select_move("strike")
        await side_a.select_target("p2")

        assert await sync_b.poll_once() == 1
        assert rival_b.health == 80
        assert await sync_b.poll_once() == 0


class TestSqlMoveCatalog:
    """Tests for SqlMoveCatalog."""

    async def add_override(self, session_factory, **values):
        async with session_factory() as session:
            session.add(MoveOverride(**values))
            await session.commit()

    async def test_lookup_normalizes_range(self, session_factory):
        await self.add_override(
            session_factory,
            move_name="quake",
            display_name="Earthquake",
            damage={"min": 8, "max": 14},
            status_effects=[{"type": "stun", "duration": 1, "successChance": 25}],
        )
        catalog = SqlMoveCatalog(session_factory, ttl=60)

        entry = await catalog.lookup("quake")

        assert entry.display_name == "Earthquake"
        assert entry.damage == 14
        assert entry.status_effects[0].type == StatusEffectType.STUN
        assert entry.status_effects[0].success_chance == 25

    async def test_unknown_move(self, session_factory):
        catalog = SqlMoveCatalog(session_factory, ttl=60)
        assert await catalog.lookup("nothing") is None

    async def test_cache_expires(self, session_factory):
        clock = FakeClock()
        catalog = SqlMoveCatalog(session_factory, ttl=60, clock=clock)

        assert await catalog.lookup("blast") is None
        await self.add_override(session_factory, move_name="blast", display_name="Blast", damage={"value": 9})
        assert await catalog.lookup("blast") is None

        clock.now = 61
        entry = await catalog.lookup("blast")
        assert entry.damage == 9

    async def test_invalidate(self, session_factory):
        catalog = SqlMoveCatalog(session_factory, ttl=60, clock=FakeClock())

        assert await catalog.lookup("zap") is None
        await self.add_override(session_factory, move_name="zap", display_name="Zap", healing=5)
        catalog.invalidate("zap")

        entry = await catalog.lookup("zap")
        assert entry.healing == 5

    async def test_lookup_logged(self, session_factory, caplog):
        catalog = SqlMoveCatalog(session_factory, ttl=60)

        with caplog.at_level(logging.DEBUG, logger="vault_battle.services.move_catalog"):
            await catalog.lookup("ghost")

        assert "Move catalog miss for ghost" in caplog.text
