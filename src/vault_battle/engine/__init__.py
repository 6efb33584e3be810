"""Battle engine module - handles rolls, status effects, turn order, turn resolution and PvP sync."""

from .actions import MoveExecutor
from .ai import choose_selection
from .battle import ActionResult, BattleSession, cpu_from_template, player_from_vault
from .effects import EffectLedger, EffectOutcome, TickResult
from .events import BattleEndResult, BattleEvent, BattleEventType
from .logging import BattleLog, CombatLog, CombatLogger, LogEntry, LogEventType, StateSnapshot
from .rolls import RollRange, RollResult, calculate_range, format_range, roll, roll_value
from .scheduler import compute_order, default_speed, move_priority
from .stores import (
    CatalogEntry,
    InMemoryMoveCatalog,
    InMemoryMoveLogStore,
    InMemoryVaultStore,
    MoveCatalog,
    MoveLogStore,
    StoreError,
    VaultSnapshot,
    VaultStore,
)
from .sync import MoveRecordPayload, PvPSynchronizer
from .turn import TurnResolver
from .types import (
    ActiveEffect,
    BattleContext,
    BattleState,
    Combatant,
    CounterAttack,
    DefensiveStance,
    Move,
    MoveOutcome,
    OpponentTemplate,
    Selection,
    StanceSpec,
    StatusEffectSpec,
    TurnOrderEntry,
    TurnResult,
)

__all__ = [
    "calculate_range",
    "roll",
    "roll_value",
    "format_range",
    "RollRange",
    "RollResult",
    "EffectLedger",
    "EffectOutcome",
    "TickResult",
    "MoveExecutor",
    "TurnResolver",
    "compute_order",
    "default_speed",
    "move_priority",
    "choose_selection",
    "BattleSession",
    "ActionResult",
    "player_from_vault",
    "cpu_from_template",
    "PvPSynchronizer",
    "MoveRecordPayload",
    "BattleEvent",
    "BattleEventType",
    "BattleEndResult",
    "BattleLog",
    "CombatLogger",
    "CombatLog",
    "LogEntry",
    "LogEventType",
    "StateSnapshot",
    "VaultStore",
    "MoveLogStore",
    "MoveCatalog",
    "VaultSnapshot",
    "CatalogEntry",
    "StoreError",
    "InMemoryVaultStore",
    "InMemoryMoveLogStore",
    "InMemoryMoveCatalog",
    "Combatant",
    "Move",
    "StatusEffectSpec",
    "ActiveEffect",
    "StanceSpec",
    "DefensiveStance",
    "CounterAttack",
    "OpponentTemplate",
    "Selection",
    "TurnOrderEntry",
    "BattleContext",
    "BattleState",
    "MoveOutcome",
    "TurnResult",
]
