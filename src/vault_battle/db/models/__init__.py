"""Database models."""

from .base import Base, TimestampMixin
from .enums import (
    BattleMode,
    BattleOutcome,
    BattlePhase,
    CounterCondition,
    MoveKind,
    PoolKind,
    RollKind,
    StatusEffectType,
)
from .move_log import MoveLogRecord
from .moves import MoveOverride
from .vaults import Vault

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Enums
    "BattleMode",
    "BattleOutcome",
    "BattlePhase",
    "CounterCondition",
    "MoveKind",
    "PoolKind",
    "RollKind",
    "StatusEffectType",
    # Vaults
    "Vault",
    # Move log
    "MoveLogRecord",
    # Move catalog
    "MoveOverride",
]
