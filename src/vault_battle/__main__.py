"""Entry point for running a simulated CPU battle."""

import asyncio
import logging
import sys

from vault_battle.config import get_settings
from vault_battle.db.models.enums import CounterCondition, MoveKind, StatusEffectType
from vault_battle.engine import (
    BattleEvent,
    BattleEventType,
    BattleSession,
    CombatLogger,
    CounterAttack,
    InMemoryVaultStore,
    Move,
    OpponentTemplate,
    StanceSpec,
    StatusEffectSpec,
    VaultSnapshot,
    cpu_from_template,
)

PLAYER_ID = "player-1"

PLAYER_MOVES = [
    Move(id="strike", name="Vault Strike", damage=18, level=2, mastery_level=2),
    Move(
        id="siphon",
        name="Siphon",
        damage=8,
        pp_steal=10,
        status_effects=[StatusEffectSpec(type=StatusEffectType.BURN, duration=2, damage_per_turn=4, success_chance=70)],
    ),
    Move(
        id="guard",
        name="Iron Guard",
        kind=MoveKind.DEFENSE,
        shield_boost=15,
        stance=StanceSpec(
            name="Iron Guard",
            duration=1,
            percent_reduction=30,
            counter=CounterAttack(condition=CounterCondition.HEALTH_DAMAGED, damage=6),
        ),
        cooldown=2,
    ),
]

TERRA = OpponentTemplate(
    name="Terra",
    level=3,
    max_health=120,
    max_shield=30,
    pp_reward=75,
    moves=[
        Move(id="quake", name="Quake", damage=14),
        Move(
            id="petrify",
            name="Petrify",
            kind=MoveKind.CONTROL,
            damage=6,
            status_effects=[StatusEffectSpec(type=StatusEffectType.STUN, duration=1, success_chance=25)],
        ),
    ],
)


def log_event(event: BattleEvent) -> None:
    """Echo new battle log lines."""
    if event.type == BattleEventType.LOG_UPDATED:
        for line in event.payload["lines"]:
            logging.info(line)


async def main() -> None:
    """Run one battle, choosing the player's moves at random."""
    settings = get_settings()

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    vaults = InMemoryVaultStore({PLAYER_ID: VaultSnapshot(player_id=PLAYER_ID, current_pp=200, shield_strength=40)})
    combat_logger = CombatLogger(battle_id="demo")
    session = await BattleSession.from_vault(
        battle_id="demo",
        vault_store=vaults,
        player_id=PLAYER_ID,
        player_name="Player",
        player_level=4,
        moves=PLAYER_MOVES,
        opponents=[cpu_from_template("cpu-terra", TERRA, settings)],
        settings=settings,
        combat_logger=combat_logger,
    )
    session.subscribe(log_event)

    logging.info("Starting battle against %s...", TERRA.name)
    while not session.is_over:
        moves = session.player.available_moves()
        move = session.rng.choice(moves)
        target = session.player if move.kind == MoveKind.DEFENSE else session.opponents[0]
        await session.select_move(move.id)
        await session.select_target(target.id)

    logging.info("Battle ended: %s", session.end_result)
    if settings.debug:
        print(combat_logger.get_log().format_readable())


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(0)
