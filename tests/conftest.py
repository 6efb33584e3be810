"""Shared fixtures for engine and store tests."""

import random

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vault_battle.config import Settings
from vault_battle.db.engine import create_engine, create_session_factory
from vault_battle.db.models import Base, PoolKind
from vault_battle.engine.types import BattleContext, Combatant, Move


class MaxRandom(random.Random):
    """Random source whose percentile draws always return 0.

    Every roll lands on its maximum, every success chance passes and every
    confuse triggers. `choice` and `random` still come from the seeded base.
    """

    def randrange(self, *args, **kwargs):
        return 0


def make_combatant(
    combatant_id: str = "p1",
    name: str | None = None,
    level: int = 1,
    pool_kind: PoolKind = PoolKind.VAULT_HEALTH,
    health: int = 100,
    max_health: int | None = None,
    shield: int = 0,
    max_shield: int = 100,
    **kwargs,
) -> Combatant:
    """Build a combatant with sensible defaults."""
    return Combatant(
        id=combatant_id,
        name=name or combatant_id,
        level=level,
        pool_kind=pool_kind,
        health=health,
        max_health=max_health if max_health is not None else max(health, 100),
        shield=shield,
        max_shield=max_shield,
        **kwargs,
    )


def make_context(*combatants: Combatant, rng: random.Random | None = None, turn: int = 1) -> BattleContext:
    """Wrap combatants in a battle context."""
    return BattleContext(
        battle_id="test",
        current_turn=turn,
        combatants={c.id: c for c in combatants},
        rng=rng or random.Random(1),
    )


@pytest.fixture
def settings() -> Settings:
    """Settings with no pacing delays."""
    return Settings(
        opponent_turn_delay=0.0,
        pvp_poll_interval=0.0,
        rng_seed=7,
    )


@pytest.fixture
def max_rng() -> MaxRandom:
    return MaxRandom(7)


@pytest.fixture
def strike() -> Move:
    return Move(id="strike", name="Strike", damage=20)


@pytest.fixture
def player(strike: Move) -> Combatant:
    """Local player with a vault-health pool."""
    return make_combatant("p1", name="Hero", is_player=True, resource=100, moves=[strike])


@pytest.fixture
def cpu() -> Combatant:
    """CPU opponent whose health doubles as PP."""
    return make_combatant(
        "cpu1",
        name="Golem",
        pool_kind=PoolKind.HEALTH,
        health=100,
        max_shield=0,
        resource=50,
        moves=[Move(id="slam", name="Slam", damage=5)],
    )


@pytest.fixture
async def async_engine():
    """Create async SQLite in-memory engine for testing."""
    engine = create_engine("sqlite+aiosqlite:///:memory:")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(async_engine)
