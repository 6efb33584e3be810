"""PvP move synchronisation over a shared append-only move log.

Each client publishes its own resolved moves to the log and polls for the
other side's. A polled record is applied from the pools it reports (nothing is
re-rolled), its log lines are merged with exact-string dedupe, and the client
adds itself to the record's processed_by set so it is never applied twice.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .battle import BattleSession
from .stores import MoveLogStore, StoreError
from .types import TurnResult

logger = logging.getLogger(__name__)


class PoolStats(BaseModel):
    """Reported pools of one side after a move."""

    shield: int = Field(ge=0)
    health: int = Field(ge=0)
    pp: int | None = Field(default=None, ge=0)


class MoveDeltas(BaseModel):
    """What a move changed, as computed by the acting client."""

    damage: int = 0
    shield_damage: int = 0
    health_damage: int = 0
    pp_stolen: int = 0
    shield_boost: int = 0
    healing: int = 0


class MoveRecordPayload(BaseModel):
    """A move record as stored in the move log."""

    id: str
    room_id: str
    actor_id: str
    target_id: str | None = None
    move_id: str | None = None
    move_name: str
    deltas: MoveDeltas = Field(default_factory=MoveDeltas)
    attacker_stats: PoolStats | None = None
    defender_stats: PoolStats | None = None
    log_lines: list[str] = Field(default_factory=list)
    turn_number: int = Field(ge=0)
    timestamp: datetime | None = None
    processed_by: list[str] = Field(default_factory=list)


def _timestamp_key(record: dict[str, Any]) -> float:
    value = record.get("timestamp")
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, int | float):
        return float(value)
    return float("-inf")


class PvPSynchronizer:
    """Publishes local moves and applies the remote side's moves to a session."""

    def __init__(
        self,
        session: BattleSession,
        move_log: MoveLogStore,
        room_id: str,
        self_id: str,
        poll_interval: float | None = None,
    ) -> None:
        self.session = session
        self.move_log = move_log
        self.room_id = room_id
        self.self_id = self_id
        self.poll_interval = session.settings.pvp_poll_interval if poll_interval is None else poll_interval
        self._applied: set[str] = set()
        self._stopped = False
        self._task: asyncio.Task[None] | None = None
        session.synchronizer = self

    # -------------------------------------------------------------- publish

    async def publish(self, result: TurnResult) -> str | None:
        """Append a locally resolved turn to the move log. Returns the record id."""
        actor = self.session.context.get(result.actor_id)
        outcome = result.outcome
        target = self.session.context.get(outcome.target_id) if outcome else None

        record: dict[str, Any] = {
            "room_id": self.room_id,
            "actor_id": result.actor_id,
            "target_id": target.id if target else None,
            "move_id": outcome.move_id if outcome else None,
            "move_name": outcome.move_name if outcome else "skip",
            "deltas": MoveDeltas(
                damage=outcome.damage if outcome else 0,
                shield_damage=outcome.shield_damage if outcome else 0,
                health_damage=outcome.health_damage if outcome else 0,
                pp_stolen=outcome.pp_stolen if outcome else 0,
                shield_boost=outcome.shield_boost if outcome else 0,
                healing=outcome.healing if outcome else 0,
            ).model_dump(),
            "attacker_stats": actor.stats() if actor else None,
            "defender_stats": target.stats() if target else None,
            "log_lines": list(result.log_lines),
            "turn_number": result.turn_number,
            "processed_by": [self.self_id],
        }
        try:
            return await self.move_log.append(self.room_id, record)
        except StoreError as e:
            logger.error("Failed to publish move in room %s: %s", self.room_id, e)
            return None

    # ----------------------------------------------------------------- poll

    async def poll_once(self) -> int:
        """Apply every unprocessed remote record once, oldest first.

        Returns:
            Number of records applied by this poll
        """
        if self.session.is_over:
            return 0

        try:
            records = await self.move_log.query_unprocessed(self.room_id, self.self_id, self.self_id)
        except StoreError as e:
            logger.warning("Move log poll failed in room %s: %s", self.room_id, e)
            return 0

        applied = 0
        for record in sorted(records, key=_timestamp_key):
            record_id = str(record.get("id"))
            if record_id not in self._applied:
                await self._apply(record)
                self._applied.add(record_id)
                applied += 1
            await self._mark_processed(record_id)
            if self.session.is_over:
                break
        return applied

    async def _apply(self, record: dict[str, Any]) -> None:
        try:
            payload = MoveRecordPayload.model_validate(record)
        except ValidationError as e:
            logger.warning("Malformed move record %s in room %s: %s", record.get("id"), self.room_id, e)
            await self._apply_malformed(record)
            return

        await self.session.apply_remote_turn(
            actor_id=payload.actor_id,
            target_id=payload.target_id,
            attacker_stats=payload.attacker_stats.model_dump() if payload.attacker_stats else None,
            defender_stats=payload.defender_stats.model_dump() if payload.defender_stats else None,
            log_lines=payload.log_lines or [f"{self._actor_name(payload.actor_id)} used {payload.move_name}!"],
        )
        if self.session.combat_logger:
            self.session.combat_logger.log_record_applied(payload.turn_number, payload.actor_id, payload.move_name)

    async def _apply_malformed(self, record: dict[str, Any]) -> None:
        actor_id = record.get("actor_id")
        actor_id = actor_id if isinstance(actor_id, str) else ""
        await self.session.apply_remote_turn(
            actor_id=actor_id,
            target_id=None,
            attacker_stats=None,
            defender_stats=None,
            log_lines=[f"{self._actor_name(actor_id)} attacked for 0 damage!"],
        )

    def _actor_name(self, actor_id: str) -> str:
        actor = self.session.context.get(actor_id)
        return actor.name if actor else "Opponent"

    async def _mark_processed(self, record_id: str) -> None:
        try:
            await self.move_log.mark_processed(self.room_id, record_id, self.self_id)
        except StoreError as e:
            logger.warning("Failed to mark record %s processed: %s", record_id, e)

    # ------------------------------------------------------------------ run

    async def run(self) -> None:
        """Poll until the battle ends or `stop()` is called."""
        while not self._stopped and not self.session.is_over:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)

    def start(self) -> asyncio.Task[None]:
        """Run the poller as a background task."""
        if self._task is None or self._task.done():
            self._stopped = False
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Stop polling and wait for the background task to finish."""
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
