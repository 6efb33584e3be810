"""Effect ledger - attaches timed status effects and ticks them at turn start."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..db.models.enums import StatusEffectType
from .types import ActiveEffect, BattleContext, Combatant

if TYPE_CHECKING:
    from .logging import CombatLogger

logger = logging.getLogger(__name__)

DEFAULT_CONFUSE_CHANCE = 50

SKIP_TURN_EFFECTS = {
    StatusEffectType.STUN: "stunned",
    StatusEffectType.FREEZE: "frozen",
}

DAMAGE_TICK_ICONS = {
    StatusEffectType.BURN: "🔥",
    StatusEffectType.POISON: "☠️",
}


@dataclass
class EffectOutcome:
    """What a single effect did on one tick."""

    effect_type: StatusEffectType
    value: int
    description: str


@dataclass
class TickResult:
    """Result of the turn-start tick for one combatant."""

    skip_turn: bool = False
    confused: bool = False
    outcomes: list[EffectOutcome] = field(default_factory=list)
    log_lines: list[str] = field(default_factory=list)


class EffectLedger:
    """Applies and ticks the active status effects of combatants."""

    def __init__(self, combat_logger: "CombatLogger | None" = None) -> None:
        self.combat_logger = combat_logger

    def apply_status_effect(self, target: Combatant, effect: ActiveEffect) -> None:
        """Attach an effect to a target.

        Poison stacks, cleanse clears everything, every other type replaces
        the existing instance of the same type.
        """
        if effect.type == StatusEffectType.CLEANSE:
            target.effects.clear()
            return

        if effect.type != StatusEffectType.POISON:
            target.effects = [e for e in target.effects if e.type != effect.type]
        target.effects.append(effect)

    def apply_turn_start_effects(self, owner: Combatant, context: BattleContext) -> TickResult:
        """Tick every effect on `owner` once, before its move.

        Burn and poison are summed and applied once, shield-first; each still
        gets its own log line. Durations decrement after the tick and expired
        effects are removed.
        """
        result = TickResult()
        if not owner.effects:
            return result

        turn = context.current_turn

        if any(e.type == StatusEffectType.CLEANSE for e in owner.effects):
            owner.effects.clear()
            line = f"✨ {owner.name} is cleansed of all effects!"
            result.outcomes.append(EffectOutcome(StatusEffectType.CLEANSE, 0, "cleansed"))
            result.log_lines.append(line)
            return result

        combined_damage = 0
        for effect in owner.effects:
            outcome: EffectOutcome | None = None
            match effect.type:
                case StatusEffectType.STUN | StatusEffectType.FREEZE:
                    result.skip_turn = True
                    state = SKIP_TURN_EFFECTS[effect.type]
                    outcome = EffectOutcome(effect.type, 0, state)
                    result.log_lines.append(f"💫 {owner.name} is {state} and cannot act!")

                case StatusEffectType.BURN | StatusEffectType.POISON:
                    amount = max(0, effect.damage_per_turn)
                    combined_damage += amount
                    outcome = EffectOutcome(effect.type, amount, f"{effect.type.value} damage")
                    icon = DAMAGE_TICK_ICONS[effect.type]
                    result.log_lines.append(f"{icon} {owner.name} takes {amount} {effect.type.value} damage!")

                case StatusEffectType.BLEED:
                    lost = owner.lose_health(effect.pp_loss_per_turn or effect.damage_per_turn)
                    outcome = EffectOutcome(effect.type, lost, "bleed")
                    result.log_lines.append(f"🩸 {owner.name} bleeds for {lost} {owner.pool_label}!")

                case StatusEffectType.DRAIN:
                    drained = owner.lose_pp(effect.pp_steal_per_turn)
                    source = context.get(effect.source_id) if effect.source_id else None
                    healed = 0
                    if source is not None and source.is_alive():
                        healed = source.heal(effect.heal_per_turn or drained)
                    outcome = EffectOutcome(effect.type, drained, f"source healed {healed}")
                    line = f"🌀 {owner.name} is drained of {drained} PP!"
                    if source is not None and healed:
                        line += f" {source.name} recovers {healed}."
                    result.log_lines.append(line)

                case StatusEffectType.CONFUSE:
                    chance = DEFAULT_CONFUSE_CHANCE if effect.chance is None else effect.chance
                    if context.rng.randrange(100) < chance:
                        result.confused = True
                        outcome = EffectOutcome(effect.type, 0, "confused")
                        result.log_lines.append(f"😵 {owner.name} is confused!")

            if outcome is None:
                continue
            result.outcomes.append(outcome)
            if self.combat_logger is None:
                continue
            if result.skip_turn and effect.type in SKIP_TURN_EFFECTS:
                self.combat_logger.log_turn_skipped(turn, owner.id, outcome.description)
            else:
                self.combat_logger.log_effect_ticked(
                    turn, owner.id, effect.type.value, outcome.value, outcome.description
                )

        if combined_damage:
            split = owner.take_hit(combined_damage)
            logger.debug(
                "Damage effects on %s: %d total (%d shield, %d health)",
                owner.id,
                combined_damage,
                split.shield_damage,
                split.health_damage,
            )

        # Decrement after the tick, never below zero
        remaining: list[ActiveEffect] = []
        for effect in owner.effects:
            effect.duration = max(0, effect.duration - 1)
            if effect.duration > 0:
                remaining.append(effect)
                continue
            result.log_lines.append(f"{owner.name}'s {effect.type.value} has worn off.")
            if self.combat_logger:
                self.combat_logger.log_effect_expired(turn, owner.id, effect.type.value)
        owner.effects = remaining

        return result
