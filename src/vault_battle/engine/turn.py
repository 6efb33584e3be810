"""Turn resolver - runs one participant's turn against live state."""

import logging
from typing import TYPE_CHECKING

from .actions import MoveExecutor
from .effects import EffectLedger
from .stores import CatalogEntry
from .types import BattleContext, Combatant, Move, Selection, TurnResult

if TYPE_CHECKING:
    from .logging import CombatLogger

logger = logging.getLogger(__name__)


class TurnResolver:
    """Resolves a single participant's turn."""

    def __init__(
        self,
        executor: MoveExecutor | None = None,
        combat_logger: "CombatLogger | None" = None,
    ) -> None:
        self.combat_logger = combat_logger
        self.executor = executor or MoveExecutor(combat_logger=combat_logger)
        self.ledger: EffectLedger = self.executor.ledger

    def resolve(
        self,
        context: BattleContext,
        actor_id: str,
        selection: Selection,
        catalog_entry: CatalogEntry | None = None,
    ) -> TurnResult:
        """Resolve one turn.

        Turn flow:
        1. Validate the move and target (nothing is mutated if invalid)
        2. Tick the actor's status effects
        3. If not skipped, execute the move (at the actor itself when confused)
        4. Check for a winner
        5. Decrement stances and cooldowns

        Args:
            context: Battle context with all combatants
            actor_id: Who is acting
            selection: Selected move and target
            catalog_entry: Catalog definition of the selected move, if any

        Returns:
            TurnResult with log lines and the winning team if the battle ended
        """
        turn = context.current_turn
        result = TurnResult(turn_number=turn, actor_id=actor_id)

        actor = context.get(actor_id)
        if actor is None or not actor.is_alive():
            result.aborted = True
            logger.info("Turn %d: actor %s is missing or defeated", turn, actor_id)
            return result

        move = actor.get_move(selection.move_id)
        target = context.get(selection.target_id)
        if move is None or not move.is_available():
            result.aborted = True
            logger.info("Turn %d: %s cannot use move %s", turn, actor_id, selection.move_id)
            return result
        if target is None or not target.is_alive():
            result.aborted = True
            logger.info("Turn %d: invalid target %s for %s", turn, selection.target_id, actor_id)
            return result

        if self.combat_logger:
            self.combat_logger.log_turn_start(turn, actor_id, context.combatants)

        tick = self.ledger.apply_turn_start_effects(actor, context)
        result.log_lines.extend(tick.log_lines)

        if self._check_winner(context, result) or not actor.is_alive():
            self._end_turn(actor, used=None)
            return self._finish(context, result)

        if tick.skip_turn:
            result.skipped = True
            self._end_turn(actor, used=None)
            return self._finish(context, result)

        if tick.confused and target is not actor:
            result.log_lines.append(f"😵 {actor.name} hurt themselves in confusion!")
            target = actor

        state_before = self.combat_logger.snapshot_state(target) if self.combat_logger else None
        outcome = self.executor.execute(actor, target, move, context, catalog_entry)
        result.outcome = outcome
        result.log_lines.extend(outcome.log_lines)

        if self.combat_logger and state_before is not None:
            self.combat_logger.log_move_resolved(
                turn, actor_id, target.id, outcome.move_name, outcome.damage, state_before, target
            )

        self._check_winner(context, result)
        self._end_turn(actor, used=move)
        return self._finish(context, result)

    def _finish(self, context: BattleContext, result: TurnResult) -> TurnResult:
        if self.combat_logger:
            self.combat_logger.log_turn_end(context.current_turn, result.actor_id, context.combatants)
        return result

    @staticmethod
    def _end_turn(actor: Combatant, used: Move | None) -> None:
        """Decrement the actor's stances and cooldowns once its turn has resolved."""
        kept = []
        for stance in actor.stances:
            if stance.fresh:
                stance.fresh = False
                kept.append(stance)
                continue
            stance.remaining_turns -= 1
            if stance.remaining_turns > 0:
                kept.append(stance)
        actor.stances = kept

        for move in actor.moves:
            if move is used:
                move.current_cooldown = move.cooldown
            elif move.current_cooldown > 0:
                move.current_cooldown -= 1

    def _check_winner(self, context: BattleContext, result: TurnResult) -> bool:
        """Mark the battle over once at most one team is left standing."""
        teams = context.living_teams()
        if len(teams) > 1:
            return False

        result.is_battle_over = True
        result.winning_team = next(iter(teams), None)
        if self.combat_logger:
            self.combat_logger.log_winner(context.current_turn, result.winning_team or "none")
        return True
