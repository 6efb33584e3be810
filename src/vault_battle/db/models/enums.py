"""Enums for battle models."""

from enum import Enum


class PoolKind(str, Enum):
    """Which pool decides defeat for a combatant."""

    HEALTH = "health"  # CPU opponents - health doubles as their PP
    VAULT_HEALTH = "vault_health"  # Players and PvP opponents - vault health


class MoveKind(str, Enum):
    """Move categories."""

    ATTACK = "attack"
    DEFENSE = "defense"
    UTILITY = "utility"
    SUPPORT = "support"
    CONTROL = "control"  # Slower - acts after equal-speed moves
    MOBILITY = "mobility"  # Faster
    STEALTH = "stealth"  # Faster
    REVEAL = "reveal"
    CLEANSE = "cleanse"


class StatusEffectType(str, Enum):
    """Timed status effects a move can attach to a combatant."""

    BURN = "burn"  # Damage per turn, shield-first
    STUN = "stun"  # Skip turn
    BLEED = "bleed"  # Health loss per turn, bypasses shields
    POISON = "poison"  # Damage per turn, stacks
    CONFUSE = "confuse"  # Chance to hit yourself
    DRAIN = "drain"  # Steals from the target, heals the source
    CLEANSE = "cleanse"  # Clears every active effect
    FREEZE = "freeze"  # Skip turn


class RollKind(str, Enum):
    """Roll profiles - each has its own tuning curve."""

    DAMAGE = "damage"
    SHIELD = "shield"
    HEALING = "healing"


class CounterCondition(str, Enum):
    """When a defensive stance's counter-attack fires."""

    ALWAYS = "always"  # Any damaging hit
    MAX_ROLL = "max_roll"  # The attack was a max roll
    SHIELD_BROKEN = "shield_broken"  # The hit emptied the shield
    HEALTH_DAMAGED = "health_damaged"  # Damage got through to health
    DAMAGE_AT_LEAST = "damage_at_least"  # Post-reduction damage >= threshold


class BattlePhase(str, Enum):
    """Phases of the turn resolution state machine."""

    SELECTION = "selection"  # Waiting for move and target
    EXECUTION = "execution"  # Player move in flight
    OPPONENT_TURN = "opponent_turn"  # CPU acting / waiting for PvP opponent
    VICTORY = "victory"
    DEFEAT = "defeat"
    ESCAPED = "escaped"

    @property
    def is_terminal(self) -> bool:
        return self in (BattlePhase.VICTORY, BattlePhase.DEFEAT, BattlePhase.ESCAPED)


class BattleMode(str, Enum):
    """Kind of battle a session runs."""

    CPU = "cpu"  # Single CPU opponent
    PVP = "pvp"  # Remote human opponent over the move log
    MULTIPLAYER = "multiplayer"  # Allies and opponents, speed-ordered rounds


class BattleOutcome(str, Enum):
    """How a battle ended."""

    VICTORY = "victory"
    DEFEAT = "defeat"
    ESCAPE = "escape"
