"""Move executor - resolves one move against live combatant state."""

import logging
from typing import TYPE_CHECKING

from ..db.models.enums import CounterCondition, RollKind
from .effects import EffectLedger
from .rolls import RollResult, format_range, roll_value
from .stores import CatalogEntry
from .types import BattleContext, Combatant, DamageSplit, Move, MoveOutcome

if TYPE_CHECKING:
    from .logging import CombatLogger

logger = logging.getLogger(__name__)

DEFAULT_PP_STEAL_RATIO = 0.6


class MoveExecutor:
    """Resolves a move's numeric effects in a fixed order.

    a. damage, reduced by the target's stances, shield first, counters
    b. PP steal, rolled on its own and banked by the caller
    c. shield boost on the actor
    d. healing on the actor
    e. status effects, each rolled against its success chance

    Resolution stops right after (a) if either side was defeated.
    """

    def __init__(
        self,
        ledger: EffectLedger | None = None,
        pp_steal_ratio: float = DEFAULT_PP_STEAL_RATIO,
        combat_logger: "CombatLogger | None" = None,
    ) -> None:
        self.ledger = ledger or EffectLedger(combat_logger=combat_logger)
        self.pp_steal_ratio = pp_steal_ratio
        self.combat_logger = combat_logger

    def execute(
        self,
        actor: Combatant,
        target: Combatant,
        move: Move,
        context: BattleContext,
        catalog_entry: CatalogEntry | None = None,
    ) -> MoveOutcome:
        """Resolve `move` from `actor` onto `target` and return what changed.

        Args:
            actor: Combatant using the move
            target: Combatant receiving it (the actor itself when confused)
            move: The move being used
            context: Battle context holding the shared random source
            catalog_entry: Current catalog definition, used when the move
                carries no value of its own for a field

        Returns:
            MoveOutcome with deltas and log lines
        """
        name = catalog_entry.display_name if catalog_entry and catalog_entry.display_name else move.name
        outcome = MoveOutcome(actor_id=actor.id, target_id=target.id, move_id=move.id, move_name=name)

        base_damage = move.damage or (catalog_entry.damage if catalog_entry else 0)
        if base_damage > 0:
            self._resolve_damage(actor, target, move, name, base_damage, context, outcome)
            if not target.is_alive() or not actor.is_alive():
                return outcome

        if move.pp_steal > 0 and target is not actor:
            self._resolve_pp_steal(actor, target, move, context, outcome)

        base_shield = move.shield_boost or (catalog_entry.shield_boost if catalog_entry else 0)
        if base_shield > 0:
            band, result = roll_value(
                base_shield, actor.level, move.level, move.mastery_level, context.rng, RollKind.SHIELD
            )
            outcome.shield_boost = actor.boost_shield(result.value)
            outcome.log_lines.append(
                f"🛡️ {actor.name} used {name} and gained {outcome.shield_boost} shield ({format_range(band)})!"
            )

        base_healing = move.healing or (catalog_entry.healing if catalog_entry else 0)
        if base_healing > 0:
            band, result = roll_value(
                base_healing, actor.level, move.level, move.mastery_level, context.rng, RollKind.HEALING
            )
            outcome.healing = actor.heal(result.value)
            outcome.log_lines.append(
                f"💚 {actor.name} used {name} and restored {outcome.healing} {actor.pool_label} ({format_range(band)})!"
            )

        specs = move.status_effects or (catalog_entry.status_effects if catalog_entry else [])
        for spec in specs:
            if context.rng.randrange(100) < spec.success_chance:
                self.ledger.apply_status_effect(target, spec.to_active(actor.id))
                outcome.effects_applied.append(spec.type)
                outcome.log_lines.append(f"✨ {target.name} is afflicted with {spec.type.value}!")
            else:
                outcome.effects_resisted.append(spec.type)
                outcome.log_lines.append(f"{target.name} resisted {spec.type.value}!")

        if move.stance is not None:
            actor.stances.append(move.stance.to_stance())
            outcome.log_lines.append(f"🛡️ {actor.name} takes a {move.stance.name} stance!")

        if not outcome.log_lines:
            outcome.log_lines.append(f"{actor.name} used {name}!")

        return outcome

    def _resolve_damage(
        self,
        actor: Combatant,
        target: Combatant,
        move: Move,
        name: str,
        base_damage: int,
        context: BattleContext,
        outcome: MoveOutcome,
    ) -> None:
        """Roll damage, reduce it by stances, split it shield-first, then fire counters."""
        band, result = roll_value(base_damage, actor.level, move.level, move.mastery_level, context.rng)
        damage = result.value
        for stance in target.stances:
            damage = stance.reduce(damage)

        shield_before = target.shield
        split = target.take_hit(damage)

        outcome.damage = damage
        outcome.shield_damage = split.shield_damage
        outcome.health_damage = split.health_damage
        outcome.is_max_roll = result.is_max_roll

        line = f"⚔️ {actor.name} used {name} on {target.name} for {damage} damage"
        if split.shield_damage and split.health_damage:
            line += f" ({split.shield_damage} to shields, {split.health_damage} to {target.pool_label})"
        elif split.shield_damage:
            line += " (absorbed by shields)"
        line += f" ({format_range(band)})!"
        if result.is_max_roll:
            line += " MAX DAMAGE!"
        outcome.log_lines.append(line)

        if target is actor:
            return

        for stance in list(target.stances):
            counter = stance.counter
            if counter is None:
                continue
            if not self._counter_fires(counter.condition, counter.threshold, result, split, shield_before, target):
                continue
            counter_split = actor.take_hit(counter.damage)
            outcome.counter_damage += counter_split.incoming
            outcome.log_lines.append(
                f"↩️ {target.name}'s {stance.name} countered {actor.name} for {counter_split.incoming} damage!"
            )
            if self.combat_logger:
                self.combat_logger.log_counter_fired(
                    context.current_turn, target.id, actor.id, stance.name, counter_split.incoming
                )
            if not actor.is_alive():
                break

    @staticmethod
    def _counter_fires(
        condition: CounterCondition,
        threshold: int,
        result: RollResult,
        split: DamageSplit,
        shield_before: int,
        target: Combatant,
    ) -> bool:
        """Evaluate a counter condition against the post-reduction hit."""
        match condition:
            case CounterCondition.ALWAYS:
                return split.incoming > 0
            case CounterCondition.MAX_ROLL:
                return result.is_max_roll
            case CounterCondition.SHIELD_BROKEN:
                return shield_before > 0 and target.shield == 0
            case CounterCondition.HEALTH_DAMAGED:
                return split.health_damage > 0
            case CounterCondition.DAMAGE_AT_LEAST:
                return split.incoming >= threshold
        return False

    def _resolve_pp_steal(
        self,
        actor: Combatant,
        target: Combatant,
        move: Move,
        context: BattleContext,
        outcome: MoveOutcome,
    ) -> None:
        """Steal a share of an independent damage roll, bypassing shields."""
        band, result = roll_value(move.pp_steal, actor.level, move.level, move.mastery_level, context.rng)
        stolen = target.lose_pp(int(result.value * self.pp_steal_ratio))
        outcome.pp_stolen = stolen
        outcome.log_lines.append(f"💰 {actor.name} stole {stolen} PP from {target.name} ({format_range(band)})!")
        logger.debug("PP steal %s -> %s: rolled %d, stole %d", target.id, actor.id, result.value, stolen)
