"""Type definitions for the battle engine."""

import random
from dataclasses import dataclass, field
from typing import Any

from ..db.models.enums import BattlePhase, CounterCondition, MoveKind, PoolKind, StatusEffectType
from .logging import BattleLog

DEFAULT_PLAYER_SPEED = 50


@dataclass
class StatusEffectSpec:
    """Status effect descriptor carried by a move."""

    type: StatusEffectType
    duration: int = 1
    damage_per_turn: int = 0
    pp_loss_per_turn: int = 0
    pp_steal_per_turn: int = 0
    heal_per_turn: int = 0
    chance: int | None = None  # Trigger chance per tick (confuse)
    success_chance: int = 100  # Chance to land when the move resolves

    def to_active(self, source_id: str) -> "ActiveEffect":
        """Create the timed effect this descriptor attaches."""
        return ActiveEffect(
            type=self.type,
            duration=self.duration,
            damage_per_turn=self.damage_per_turn,
            pp_loss_per_turn=self.pp_loss_per_turn,
            pp_steal_per_turn=self.pp_steal_per_turn,
            heal_per_turn=self.heal_per_turn,
            chance=self.chance,
            source_id=source_id,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatusEffectSpec":
        """Build from a catalog descriptor, accepting the legacy `intensity` key."""
        return cls(
            type=StatusEffectType(data["type"]),
            duration=int(data.get("duration", 1)),
            damage_per_turn=int(data.get("damagePerTurn", data.get("intensity", 0)) or 0),
            pp_loss_per_turn=int(data.get("ppLossPerTurn", 0) or 0),
            pp_steal_per_turn=int(data.get("ppStealPerTurn", 0) or 0),
            heal_per_turn=int(data.get("healPerTurn", 0) or 0),
            chance=data.get("chance"),
            success_chance=int(data.get("successChance", 100)),
        )


@dataclass
class ActiveEffect:
    """A timed modifier attached to one combatant."""

    type: StatusEffectType
    duration: int
    damage_per_turn: int = 0
    pp_loss_per_turn: int = 0
    pp_steal_per_turn: int = 0
    heal_per_turn: int = 0
    chance: int | None = None
    source_id: str | None = None


@dataclass
class CounterAttack:
    """Counter fired by a defensive stance when its condition matches."""

    condition: CounterCondition
    damage: int
    threshold: int = 0  # Only used by DAMAGE_AT_LEAST


@dataclass
class StanceSpec:
    """Defensive stance descriptor carried by a defense move."""

    name: str
    duration: int = 1
    flat_reduction: int = 0
    percent_reduction: int = 0
    counter: CounterAttack | None = None

    def to_stance(self) -> "DefensiveStance":
        return DefensiveStance(
            name=self.name,
            remaining_turns=self.duration,
            flat_reduction=self.flat_reduction,
            percent_reduction=self.percent_reduction,
            counter=self.counter,
        )


@dataclass
class DefensiveStance:
    """Temporary damage reduction and counter granted by a defense move."""

    name: str
    remaining_turns: int
    flat_reduction: int = 0
    percent_reduction: int = 0
    counter: CounterAttack | None = None

    # Created this turn (not decremented until the owner's next turn resolves)
    fresh: bool = True

    def reduce(self, damage: int) -> int:
        """Apply flat, then percentage reduction to an incoming damage figure."""
        reduced = max(0, damage - self.flat_reduction)
        if self.percent_reduction:
            reduced -= reduced * min(self.percent_reduction, 100) // 100
        return max(0, reduced)


@dataclass
class Move:
    """Definition of an action a combatant can take."""

    id: str
    name: str
    kind: MoveKind = MoveKind.ATTACK
    damage: int = 0
    pp_steal: int = 0
    shield_boost: int = 0
    healing: int = 0
    level: int = 1
    mastery_level: int = 1
    priority: int | None = None
    status_effects: list[StatusEffectSpec] = field(default_factory=list)
    stance: StanceSpec | None = None
    cooldown: int = 0
    current_cooldown: int = 0
    unlocked: bool = True

    def is_available(self) -> bool:
        """Check if the move can be used this turn."""
        return self.unlocked and self.current_cooldown == 0


@dataclass
class DamageSplit:
    """How an incoming hit divided between shield and health."""

    incoming: int
    shield_damage: int
    health_damage: int

    @classmethod
    def compute(cls, incoming: int, shield: int) -> "DamageSplit":
        """Shield absorbs first; the remainder goes to health."""
        incoming = max(0, incoming)
        shield_damage = min(incoming, max(0, shield))
        return cls(incoming=incoming, shield_damage=shield_damage, health_damage=incoming - shield_damage)


@dataclass
class Combatant:
    """In-memory view of a battle participant.

    Built from a vault snapshot or an opponent template when the battle
    starts, mutated every turn, and discarded when the battle ends.
    """

    id: str
    name: str
    level: int
    pool_kind: PoolKind
    health: int
    max_health: int
    shield: int = 0
    max_shield: int = 0
    resource: int = 0  # PP held - paid to the winner on defeat
    speed: int = DEFAULT_PLAYER_SPEED
    team: str = "allies"
    is_player: bool = False
    awakens: bool = False
    moves: list[Move] = field(default_factory=list)
    effects: list[ActiveEffect] = field(default_factory=list)
    stances: list[DefensiveStance] = field(default_factory=list)

    @property
    def is_cpu(self) -> bool:
        return self.pool_kind == PoolKind.HEALTH

    @property
    def pool_label(self) -> str:
        """Name of the defeat pool for log lines."""
        return "PP" if self.is_cpu else "vault health"

    def is_alive(self) -> bool:
        """Check if the combatant is still standing."""
        return self.health > 0

    def health_ratio(self) -> float:
        if self.max_health <= 0:
            return 0.0
        return self.health / self.max_health

    def take_hit(self, amount: int) -> DamageSplit:
        """Apply damage shield-first. Returns the split."""
        split = DamageSplit.compute(amount, self.shield)
        self.shield -= split.shield_damage
        self.health -= min(self.health, split.health_damage)
        return split

    def lose_health(self, amount: int) -> int:
        """Remove health directly, bypassing shields. Returns actual lost."""
        actual = min(self.health, max(0, amount))
        self.health -= actual
        return actual

    def lose_pp(self, amount: int) -> int:
        """Remove PP, bypassing shields. CPU opponents hold their PP as health."""
        if self.is_cpu:
            return self.lose_health(amount)
        actual = min(self.resource, max(0, amount))
        self.resource -= actual
        return actual

    def heal(self, amount: int) -> int:
        """Restore health up to max. Returns actual restored."""
        actual = max(0, min(self.max_health - self.health, amount))
        self.health += actual
        return actual

    def boost_shield(self, amount: int) -> int:
        """Add shield up to max. Returns actual added."""
        actual = max(0, min(self.max_shield - self.shield, amount))
        self.shield += actual
        return actual

    def get_move(self, move_id: str) -> Move | None:
        for move in self.moves:
            if move.id == move_id:
                return move
        return None

    def available_moves(self) -> list[Move]:
        return [m for m in self.moves if m.is_available()]

    def set_stats(self, shield: int | None = None, health: int | None = None, pp: int | None = None) -> None:
        """Overwrite pools from a reported snapshot, clamped to their bounds.

        PP only applies to vault-backed combatants; a CPU's PP is its health.
        """
        if shield is not None:
            self.shield = min(max(0, shield), self.max_shield)
        if health is not None:
            self.health = min(max(0, health), self.max_health)
        if pp is not None and self.pool_kind == PoolKind.VAULT_HEALTH:
            self.resource = max(0, pp)

    def stats(self) -> dict[str, int]:
        return {"shield": self.shield, "health": self.health, "pp": self.resource}


@dataclass
class Selection:
    """A participant's submitted move and target for the current round."""

    move_id: str
    target_id: str


@dataclass
class TurnOrderEntry:
    """One participant's slot in a multiplayer round."""

    participant_id: str
    speed: int
    priority: int
    random: float
    order_score: float


@dataclass
class BattleContext:
    """Combatants and randomness shared across all processors."""

    battle_id: str
    current_turn: int
    combatants: dict[str, Combatant]
    rng: random.Random

    def get(self, combatant_id: str) -> Combatant | None:
        return self.combatants.get(combatant_id)

    def opponents_of(self, combatant_id: str) -> list[Combatant]:
        """Living combatants on any other team."""
        owner = self.combatants[combatant_id]
        return [c for c in self.combatants.values() if c.team != owner.team and c.is_alive()]

    def living_teams(self) -> set[str]:
        return {c.team for c in self.combatants.values() if c.is_alive()}


@dataclass
class MoveOutcome:
    """Everything one resolved move changed."""

    actor_id: str
    target_id: str
    move_id: str
    move_name: str
    damage: int = 0  # After stance reduction
    shield_damage: int = 0
    health_damage: int = 0
    pp_stolen: int = 0
    shield_boost: int = 0
    healing: int = 0
    counter_damage: int = 0
    is_max_roll: bool = False
    effects_applied: list[StatusEffectType] = field(default_factory=list)
    effects_resisted: list[StatusEffectType] = field(default_factory=list)
    log_lines: list[str] = field(default_factory=list)


@dataclass
class TurnResult:
    """Result of resolving one participant's turn."""

    turn_number: int
    actor_id: str
    skipped: bool = False
    aborted: bool = False
    outcome: MoveOutcome | None = None
    log_lines: list[str] = field(default_factory=list)
    winning_team: str | None = None
    is_battle_over: bool = False


@dataclass
class BattleState:
    """Top-level mutable session state."""

    phase: BattlePhase = BattlePhase.SELECTION
    log: BattleLog = field(default_factory=BattleLog)
    selected_move: Move | None = None
    selected_target: str | None = None
    turn_count: int = 1
    is_player_turn: bool = True
    banked_pp: int = 0  # PP stolen this battle, paid out on victory

    # Multiplayer only
    turn_order: list[TurnOrderEntry] = field(default_factory=list)
    turn_index: int = 0
    selections: dict[str, Selection] = field(default_factory=dict)


@dataclass
class OpponentTemplate:
    """Static definition of a CPU opponent."""

    name: str
    level: int
    max_health: int
    max_shield: int = 0
    shield: int | None = None  # Defaults to max_shield
    pp_reward: int = 0  # Paid to the player on victory
    speed: int | None = None
    moves: list[Move] = field(default_factory=list)
