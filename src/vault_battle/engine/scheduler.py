"""Turn order scheduler for multiplayer rounds."""

import random
from collections.abc import Iterable

from ..db.models.enums import MoveKind
from .types import DEFAULT_PLAYER_SPEED, Combatant, Move, TurnOrderEntry

PRIORITY_WEIGHT = 1_000_000  # Larger than any speed, so priority always dominates

KIND_PRIORITY: dict[MoveKind, int] = {
    MoveKind.MOBILITY: 1,
    MoveKind.STEALTH: 1,
    MoveKind.CONTROL: -1,
}


def default_speed(level: int, is_cpu: bool) -> int:
    """Speed for a combatant with no explicit value."""
    if is_cpu:
        return 40 + 2 * level
    return DEFAULT_PLAYER_SPEED


def move_priority(move: Move | None) -> int:
    """Priority of a selected move; falls back to its kind."""
    if move is None:
        return 0
    if move.priority is not None:
        return move.priority
    return KIND_PRIORITY.get(move.kind, 0)


def compute_order(
    participants: Iterable[tuple[Combatant, Move | None]],
    rng: random.Random,
) -> list[TurnOrderEntry]:
    """Order a round by priority, then speed, then a fresh random tie-break.

    Args:
        participants: (combatant, selected move) pairs
        rng: Shared random source; one draw per participant

    Returns:
        Entries sorted so the first acts first
    """
    entries: list[TurnOrderEntry] = []
    for combatant, move in participants:
        priority = move_priority(move)
        tie_break = rng.random()
        entries.append(
            TurnOrderEntry(
                participant_id=combatant.id,
                speed=combatant.speed,
                priority=priority,
                random=tie_break,
                order_score=priority * PRIORITY_WEIGHT + combatant.speed + tie_break,
            )
        )

    entries.sort(key=lambda e: (e.priority, e.speed, e.random), reverse=True)
    return entries
