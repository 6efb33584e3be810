"""CPU move selection."""

import random

from .types import BattleContext, Combatant, Selection


def choose_selection(actor: Combatant, context: BattleContext, rng: random.Random) -> Selection | None:
    """Pick a move uniformly among the actor's available moves and a living opponent.

    Returns None when the actor has nothing to use or nobody to target.
    """
    moves = actor.available_moves()
    targets = context.opponents_of(actor.id)
    if not moves or not targets:
        return None
    move = rng.choice(moves)
    target = rng.choice(targets)
    return Selection(move_id=move.id, target_id=target.id)
