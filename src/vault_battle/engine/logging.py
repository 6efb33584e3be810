"""Battle logging.

Two logs are kept per battle:
- BattleLog: the ordered, user-visible list of lines. Appending is
  idempotent by exact string match, so merging lines reported by a remote
  client never duplicates what is already shown.
- CombatLogger: structured events with state snapshots, for verifying what
  the engine did turn by turn.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BattleLog:
    """Append-only list of battle log lines."""

    def __init__(self, lines: Iterable[str] | None = None) -> None:
        self._lines: list[str] = []
        self._seen: set[str] = set()
        if lines:
            self.extend(lines)

    def append(self, line: str) -> bool:
        """Append a line unless it is already present. Returns True if added."""
        if line in self._seen:
            return False
        self._lines.append(line)
        self._seen.add(line)
        return True

    def extend(self, lines: Iterable[str]) -> list[str]:
        """Append several lines, skipping duplicates. Returns the lines added."""
        return [line for line in lines if self.append(line)]

    def __contains__(self, line: object) -> bool:
        return line in self._seen

    def __iter__(self) -> Iterator[str]:
        return iter(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def since(self, index: int) -> list[str]:
        """Lines appended after position `index`."""
        return self._lines[index:]

    def to_list(self) -> list[str]:
        return list(self._lines)


class LogEventType(str, Enum):
    """Types of log events."""

    # Turn lifecycle
    TURN_START = "turn_start"
    TURN_END = "turn_end"

    # Effect ledger
    EFFECT_TICKED = "effect_ticked"
    EFFECT_EXPIRED = "effect_expired"
    TURN_SKIPPED = "turn_skipped"

    # Move resolution
    MOVE_RESOLVED = "move_resolved"
    COUNTER_FIRED = "counter_fired"

    # Multiplayer ordering
    TURN_ORDER = "turn_order"

    # PvP replication
    RECORD_APPLIED = "record_applied"

    # Win condition
    WINNER_DETERMINED = "winner_determined"


@dataclass
class StateSnapshot:
    """Snapshot of a combatant's pools at a point in time."""

    combatant_id: str
    health: int
    max_health: int
    shield: int
    max_shield: int
    effects: list[str]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "combatant_id": self.combatant_id,
            "health": self.health,
            "max_health": self.max_health,
            "shield": self.shield,
            "max_shield": self.max_shield,
            "effects": list(self.effects),
        }


@dataclass
class LogEntry:
    """A single structured combat event."""

    event_type: LogEventType
    turn_number: int
    timestamp_order: int = 0  # Order within the battle for deterministic sorting

    combatant_id: str | None = None
    target_id: str | None = None
    name: str | None = None  # Effect, move, or stance name
    value: int | None = None
    description: str | None = None

    state_before: StateSnapshot | None = None
    state_after: StateSnapshot | None = None
    all_states: dict[str, StateSnapshot] | None = None

    order: list[str] | None = None
    winner: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {
            "event_type": self.event_type.value,
            "turn_number": self.turn_number,
            "timestamp_order": self.timestamp_order,
        }

        if self.combatant_id is not None:
            result["combatant_id"] = self.combatant_id
        if self.target_id is not None:
            result["target_id"] = self.target_id
        if self.name is not None:
            result["name"] = self.name
        if self.value is not None:
            result["value"] = self.value
        if self.description is not None:
            result["description"] = self.description
        if self.state_before is not None:
            result["state_before"] = self.state_before.to_dict()
        if self.state_after is not None:
            result["state_after"] = self.state_after.to_dict()
        if self.all_states is not None:
            result["all_states"] = {cid: state.to_dict() for cid, state in self.all_states.items()}
        if self.order is not None:
            result["order"] = list(self.order)
        if self.winner is not None:
            result["winner"] = self.winner

        return result


@dataclass
class CombatLog:
    """Complete structured log of one battle."""

    battle_id: str
    entries: list[LogEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "battle_id": self.battle_id,
            "entries": [entry.to_dict() for entry in self.entries],
        }

    def get_entries_by_type(self, event_type: LogEventType) -> list[LogEntry]:
        """Get all entries of a specific type."""
        return [e for e in self.entries if e.event_type == event_type]

    def get_entries_for_turn(self, turn_number: int) -> list[LogEntry]:
        """Get all entries for a specific turn."""
        return [e for e in self.entries if e.turn_number == turn_number]

    def format_readable(self) -> str:
        """Format the log in a human-readable format."""
        lines: list[str] = [f"=== Combat Log (Battle {self.battle_id}) ===\n"]

        current_turn = -1
        for entry in self.entries:
            if entry.turn_number != current_turn:
                current_turn = entry.turn_number
                lines.append(f"\n--- Turn {current_turn} ---\n")
            lines.append(self._format_entry(entry))

        return "\n".join(lines)

    def _format_entry(self, entry: LogEntry) -> str:
        """Format a single log entry."""
        match entry.event_type:
            case LogEventType.TURN_START:
                return f"  {entry.combatant_id} acts"

            case LogEventType.TURN_END:
                return f"  {entry.combatant_id} done"

            case LogEventType.EFFECT_TICKED:
                return f"    ~ {entry.name} on {entry.combatant_id} = {entry.value} ({entry.description})"

            case LogEventType.EFFECT_EXPIRED:
                return f"    ~ {entry.name} on {entry.combatant_id} wore off"

            case LogEventType.TURN_SKIPPED:
                return f"    ✗ {entry.combatant_id} skipped ({entry.description})"

            case LogEventType.MOVE_RESOLVED:
                hp_change = ""
                if entry.state_before and entry.state_after:
                    before, after = entry.state_before, entry.state_after
                    if (before.health, before.shield) != (after.health, after.shield):
                        hp_change = (
                            f" [HP: {before.health} → {after.health}, SH: {before.shield} → {after.shield}]"
                        )
                return f"    → {entry.combatant_id} used {entry.name} on {entry.target_id} = {entry.value}{hp_change}"

            case LogEventType.COUNTER_FIRED:
                return f"    ↩ {entry.name} countered {entry.target_id} for {entry.value}"

            case LogEventType.TURN_ORDER:
                return f"  Order: {', '.join(entry.order or [])}"

            case LogEventType.RECORD_APPLIED:
                return f"    ⇄ applied remote move from {entry.combatant_id} ({entry.description})"

            case LogEventType.WINNER_DETERMINED:
                return f"  *** WINNER: {entry.winner} ***"

            case _:
                return f"    {entry.event_type.value}: {entry.description or ''}"


class CombatLogger:
    """Logger for tracking structured combat events.

    Usage:
        logger = CombatLogger(battle_id="room-1")
        logger.log_turn_start(turn_number=1, combatant_id="p1", states=...)
        # ... log events ...
        print(logger.get_log().format_readable())
    """

    def __init__(self, battle_id: str) -> None:
        self.battle_id = battle_id
        self._log = CombatLog(battle_id=battle_id)
        self._order_counter = 0

    def _next_order(self) -> int:
        self._order_counter += 1
        return self._order_counter

    def _add(self, entry: LogEntry) -> None:
        entry.timestamp_order = self._next_order()
        self._log.entries.append(entry)

    def get_log(self) -> CombatLog:
        """Get the complete combat log."""
        return self._log

    def clear(self) -> None:
        """Clear all log entries."""
        self._log.entries.clear()
        self._order_counter = 0

    @staticmethod
    def snapshot_state(combatant: Any) -> StateSnapshot:
        """Create a snapshot from a Combatant."""
        return StateSnapshot(
            combatant_id=combatant.id,
            health=combatant.health,
            max_health=combatant.max_health,
            shield=combatant.shield,
            max_shield=combatant.max_shield,
            effects=[effect.type.value for effect in combatant.effects],
        )

    def log_turn_start(self, turn_number: int, combatant_id: str, states: dict[str, Any]) -> None:
        """Log the start of a participant's turn with a snapshot of everyone."""
        self._add(
            LogEntry(
                event_type=LogEventType.TURN_START,
                turn_number=turn_number,
                combatant_id=combatant_id,
                all_states={cid: self.snapshot_state(c) for cid, c in states.items()},
            )
        )

    def log_turn_end(self, turn_number: int, combatant_id: str, states: dict[str, Any]) -> None:
        """Log the end of a participant's turn with a snapshot of everyone."""
        self._add(
            LogEntry(
                event_type=LogEventType.TURN_END,
                turn_number=turn_number,
                combatant_id=combatant_id,
                all_states={cid: self.snapshot_state(c) for cid, c in states.items()},
            )
        )

    def log_effect_ticked(
        self, turn_number: int, combatant_id: str, effect_name: str, value: int, description: str
    ) -> None:
        self._add(
            LogEntry(
                event_type=LogEventType.EFFECT_TICKED,
                turn_number=turn_number,
                combatant_id=combatant_id,
                name=effect_name,
                value=value,
                description=description,
            )
        )

    def log_effect_expired(self, turn_number: int, combatant_id: str, effect_name: str) -> None:
        self._add(
            LogEntry(
                event_type=LogEventType.EFFECT_EXPIRED,
                turn_number=turn_number,
                combatant_id=combatant_id,
                name=effect_name,
            )
        )

    def log_turn_skipped(self, turn_number: int, combatant_id: str, reason: str) -> None:
        self._add(
            LogEntry(
                event_type=LogEventType.TURN_SKIPPED,
                turn_number=turn_number,
                combatant_id=combatant_id,
                description=reason,
            )
        )

    def log_move_resolved(
        self,
        turn_number: int,
        combatant_id: str,
        target_id: str,
        move_name: str,
        value: int,
        state_before: StateSnapshot,
        state_after: Any,
    ) -> None:
        """Log a resolved move with the target's before/after pools."""
        self._add(
            LogEntry(
                event_type=LogEventType.MOVE_RESOLVED,
                turn_number=turn_number,
                combatant_id=combatant_id,
                target_id=target_id,
                name=move_name,
                value=value,
                state_before=state_before,
                state_after=self.snapshot_state(state_after),
            )
        )

    def log_counter_fired(self, turn_number: int, combatant_id: str, target_id: str, stance_name: str, value: int) -> None:
        self._add(
            LogEntry(
                event_type=LogEventType.COUNTER_FIRED,
                turn_number=turn_number,
                combatant_id=combatant_id,
                target_id=target_id,
                name=stance_name,
                value=value,
            )
        )

    def log_turn_order(self, turn_number: int, order: list[str]) -> None:
        self._add(LogEntry(event_type=LogEventType.TURN_ORDER, turn_number=turn_number, order=order))

    def log_record_applied(self, turn_number: int, actor_id: str, description: str) -> None:
        self._add(
            LogEntry(
                event_type=LogEventType.RECORD_APPLIED,
                turn_number=turn_number,
                combatant_id=actor_id,
                description=description,
            )
        )

    def log_winner(self, turn_number: int, winner: str) -> None:
        """Log the winner determination."""
        self._add(LogEntry(event_type=LogEventType.WINNER_DETERMINED, turn_number=turn_number, winner=winner))
