"""Outbound battle events for the host UI and story layer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..db.models.enums import BattleOutcome


class BattleEventType(str, Enum):
    """Kinds of events a battle session emits."""

    LOG_UPDATED = "log_updated"  # New battle log lines
    OPPONENT_UPDATED = "opponent_updated"  # Opponent pool snapshot
    BATTLE_ENDED = "battle_ended"
    BOSS_AWAKENED = "boss_awakened"  # One-shot per battle


@dataclass
class BattleEndResult:
    """How a battle ended and who won."""

    outcome: BattleOutcome
    winner_id: str | None = None
    loser_id: str | None = None
    pp_awarded: int = 0


@dataclass
class BattleEvent:
    """A single event emitted by a session."""

    type: BattleEventType
    battle_id: str
    payload: dict[str, Any] = field(default_factory=dict)
