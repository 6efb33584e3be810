"""Battle session - the turn resolution state machine.

A session owns the BattleState and every Combatant for one battle. The host
drives it through async methods; each returns an ActionResult instead of
raising, and everything the host should show is emitted as BattleEvents.

Phases:
    selection -> execution -> opponent_turn -> selection ...
    victory / defeat / escaped are terminal.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from ..config import Settings, get_settings
from ..db.models.enums import BattleMode, BattleOutcome, BattlePhase, PoolKind
from .actions import MoveExecutor
from .ai import choose_selection
from .events import BattleEndResult, BattleEvent, BattleEventType
from .scheduler import compute_order, default_speed
from .stores import CatalogEntry, MoveCatalog, StoreError, VaultSnapshot, VaultStore
from .turn import TurnResolver
from .types import (
    BattleContext,
    BattleState,
    Combatant,
    Move,
    OpponentTemplate,
    Selection,
    TurnResult,
)

if TYPE_CHECKING:
    from .logging import CombatLogger
    from .sync import PvPSynchronizer

logger = logging.getLogger(__name__)

PLAYER_TEAM = "allies"
OPPONENT_TEAM = "opponents"

QUOTA_DENIED_MESSAGE = "No offline moves remaining!"

QuotaCheck = Callable[[str, Move], Awaitable[bool]]
EventHandler = Callable[[BattleEvent], None]


@dataclass
class ActionResult:
    """Result of a session operation."""

    success: bool
    message: str
    turn_results: list[TurnResult] = field(default_factory=list)
    end_result: BattleEndResult | None = None


def player_from_vault(
    snapshot: VaultSnapshot,
    name: str,
    level: int,
    moves: list[Move],
    speed: int | None = None,
    is_player: bool = True,
) -> Combatant:
    """Build a vault-backed combatant (the local player or a PvP opponent)."""
    return Combatant(
        id=snapshot.player_id,
        name=name,
        level=level,
        pool_kind=PoolKind.VAULT_HEALTH,
        health=snapshot.vault_health,
        max_health=snapshot.max_vault_health,
        shield=min(snapshot.shield_strength, snapshot.max_shield_strength),
        max_shield=snapshot.max_shield_strength,
        resource=snapshot.current_pp,
        speed=speed if speed is not None else default_speed(level, is_cpu=False),
        is_player=is_player,
        moves=moves,
    )


def cpu_from_template(
    combatant_id: str,
    template: OpponentTemplate,
    settings: Settings | None = None,
) -> Combatant:
    """Build a CPU combatant whose health doubles as its PP."""
    settings = settings or get_settings()
    shield = template.max_shield if template.shield is None else template.shield
    return Combatant(
        id=combatant_id,
        name=template.name,
        level=template.level,
        pool_kind=PoolKind.HEALTH,
        health=template.max_health,
        max_health=template.max_health,
        shield=min(shield, template.max_shield),
        max_shield=template.max_shield,
        resource=template.pp_reward,
        speed=template.speed if template.speed is not None else default_speed(template.level, is_cpu=True),
        awakens=template.name in settings.get_awakening_opponents(),
        moves=[replace(m) for m in template.moves],
    )


class BattleSession:
    """One battle from mount to end."""

    def __init__(
        self,
        battle_id: str,
        player: Combatant,
        opponents: list[Combatant],
        *,
        allies: list[Combatant] | None = None,
        mode: BattleMode = BattleMode.CPU,
        vault_store: VaultStore | None = None,
        move_catalog: MoveCatalog | None = None,
        quota_check: QuotaCheck | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        combat_logger: "CombatLogger | None" = None,
        auto_select_cpus: bool = True,
    ) -> None:
        self.battle_id = battle_id
        self.mode = mode
        self.settings = settings or get_settings()
        self.rng = rng or self.settings.make_rng()
        self.vault_store = vault_store
        self.move_catalog = move_catalog
        self.quota_check = quota_check
        self.combat_logger = combat_logger
        self.auto_select_cpus = auto_select_cpus

        self.player = player
        self.allies = list(allies or [])
        self.opponents = list(opponents)
        for combatant in [player, *self.allies]:
            combatant.team = PLAYER_TEAM
        for combatant in self.opponents:
            combatant.team = OPPONENT_TEAM

        self.context = BattleContext(
            battle_id=battle_id,
            current_turn=1,
            combatants={c.id: c for c in [player, *self.allies, *self.opponents]},
            rng=self.rng,
        )
        self.state = BattleState()
        self.resolver = TurnResolver(
            executor=MoveExecutor(pp_steal_ratio=self.settings.pp_steal_ratio, combat_logger=combat_logger),
            combat_logger=combat_logger,
        )

        self.events: list[BattleEvent] = []
        self.end_result: BattleEndResult | None = None
        self.synchronizer: "PvPSynchronizer | None" = None
        self._handlers: list[EventHandler] = []
        self._lock = asyncio.Lock()
        self._boss_awakened = False

    @classmethod
    async def from_vault(
        cls,
        battle_id: str,
        vault_store: VaultStore,
        player_id: str,
        player_name: str,
        player_level: int,
        moves: list[Move],
        opponents: list[Combatant],
        **kwargs: Any,
    ) -> "BattleSession":
        """Create a session whose player is read from the vault store.

        A failed read falls back to a default vault so the battle can still start.
        """
        try:
            snapshot = await vault_store.read(player_id)
        except StoreError as e:
            logger.warning("Vault read failed for %s, using defaults: %s", player_id, e)
            snapshot = VaultSnapshot(player_id=player_id)
        player = player_from_vault(snapshot, player_name, player_level, moves)
        return cls(battle_id, player, opponents, vault_store=vault_store, **kwargs)

    # ---------------------------------------------------------------- events

    def subscribe(self, handler: EventHandler) -> None:
        """Call `handler` for every event emitted from now on."""
        self._handlers.append(handler)

    def drain_events(self) -> list[BattleEvent]:
        """Return and clear all events emitted since the last drain."""
        events, self.events = self.events, []
        return events

    def _emit(self, event_type: BattleEventType, payload: dict[str, Any] | None = None) -> None:
        event = BattleEvent(type=event_type, battle_id=self.battle_id, payload=payload or {})
        self.events.append(event)
        for handler in self._handlers:
            handler(event)

    def _log(self, lines: list[str]) -> list[str]:
        added = self.state.log.extend(lines)
        if added:
            self._emit(BattleEventType.LOG_UPDATED, {"lines": added})
        return added

    def _emit_opponents(self) -> None:
        self._emit(
            BattleEventType.OPPONENT_UPDATED,
            {"opponents": [self.snapshot(c) for c in self.opponents]},
        )

    @staticmethod
    def snapshot(combatant: Combatant) -> dict[str, Any]:
        """Pool snapshot of a combatant for the host."""
        return {
            "id": combatant.id,
            "name": combatant.name,
            "pool_kind": combatant.pool_kind.value,
            "health": combatant.health,
            "max_health": combatant.max_health,
            "shield": combatant.shield,
            "max_shield": combatant.max_shield,
            "effects": [e.type.value for e in combatant.effects],
        }

    # ------------------------------------------------------------- selection

    @property
    def phase(self) -> BattlePhase:
        return self.state.phase

    @property
    def is_over(self) -> bool:
        return self.state.phase.is_terminal

    def _over_result(self, turn_results: list[TurnResult] | None = None) -> ActionResult:
        return ActionResult(
            success=False,
            message=f"Battle is over ({self.state.phase.value})",
            turn_results=list(turn_results or []),
            end_result=self.end_result,
        )

    def _check_can_select(self) -> ActionResult | None:
        if self.is_over:
            return self._over_result()
        if self._lock.locked() or self.state.phase != BattlePhase.SELECTION:
            return ActionResult(success=False, message="A turn is already in progress")
        return None

    async def select_move(self, move_id: str) -> ActionResult:
        """Select the player's move. Executes once a target is also selected."""
        rejected = self._check_can_select()
        if rejected:
            return rejected
        if self.mode == BattleMode.MULTIPLAYER:
            return ActionResult(success=False, message="Use submit_selection in multiplayer battles")

        move = self.player.get_move(move_id)
        if move is None:
            return ActionResult(success=False, message="Unknown move")
        if not move.is_available():
            return ActionResult(success=False, message=f"{move.name} is not available")

        self.state.selected_move = move
        if self.state.selected_target is None:
            return ActionResult(success=True, message="Move selected")
        return await self.execute()

    async def select_target(self, target_id: str) -> ActionResult:
        """Select the player's target. Executes once a move is also selected."""
        rejected = self._check_can_select()
        if rejected:
            return rejected
        if self.mode == BattleMode.MULTIPLAYER:
            return ActionResult(success=False, message="Use submit_selection in multiplayer battles")

        self.state.selected_target = target_id
        if self.state.selected_move is None:
            return ActionResult(success=True, message="Target selected")
        return await self.execute()

    def _clear_selection(self) -> None:
        self.state.selected_move = None
        self.state.selected_target = None

    # ------------------------------------------------------------- execution

    async def execute(self) -> ActionResult:
        """Resolve the player's selected move, then the opponent's turn."""
        rejected = self._check_can_select()
        if rejected:
            return rejected
        move, target_id = self.state.selected_move, self.state.selected_target
        if move is None or target_id is None:
            return ActionResult(success=False, message="Select a move and a target first")

        async with self._lock:
            self._clear_selection()
            self.state.phase = BattlePhase.EXECUTION

            if not await self._check_quota(self.player, move):
                if not self.is_over:
                    self.state.phase = BattlePhase.SELECTION
                return ActionResult(success=False, message=QUOTA_DENIED_MESSAGE)

            result = await self._resolve(self.player, Selection(move_id=move.id, target_id=target_id))
            if self.is_over:
                return self._over_result()
            if result.aborted:
                self.state.phase = BattlePhase.SELECTION
                return ActionResult(success=False, message="Invalid move or target", turn_results=[result])

            await self._persist_turn(result)
            if self.synchronizer is not None:
                await self.synchronizer.publish(result)
            if self.is_over:
                return self._over_result([result])

            if result.is_battle_over:
                end = await self._end(result.winning_team)
                return ActionResult(success=True, message="Battle over", turn_results=[result], end_result=end)

            self.state.phase = BattlePhase.OPPONENT_TURN
            self.state.is_player_turn = False

            if self.mode == BattleMode.PVP:
                return ActionResult(success=True, message="Waiting for opponent", turn_results=[result])

            turn_results = [result, *await self._run_opponent_turn()]
            return ActionResult(
                success=True,
                message="Turn complete",
                turn_results=turn_results,
                end_result=self.end_result,
            )

    async def _check_quota(self, combatant: Combatant, move: Move) -> bool:
        if self.quota_check is None or not combatant.is_player:
            return True
        if await self.quota_check(combatant.id, move):
            return True
        self._log([QUOTA_DENIED_MESSAGE])
        return False

    async def _lookup(self, move: Move) -> CatalogEntry | None:
        if self.move_catalog is None:
            return None
        try:
            return await self.move_catalog.lookup(move.name)
        except StoreError as e:
            logger.warning("Move catalog lookup failed for %s: %s", move.name, e)
            return None

    async def _resolve(self, actor: Combatant, selection: Selection) -> TurnResult:
        """Resolve one turn and publish its log lines and snapshots."""
        move = actor.get_move(selection.move_id)
        entry = await self._lookup(move) if move is not None else None
        self.context.current_turn = self.state.turn_count

        if self.is_over:
            return TurnResult(turn_number=self.state.turn_count, actor_id=actor.id, aborted=True)

        result = self.resolver.resolve(self.context, actor.id, selection, entry)
        if result.aborted:
            logger.info("Battle %s: turn aborted for %s (%s)", self.battle_id, actor.id, selection)
            return result

        if result.outcome is not None and actor is self.player:
            self.state.banked_pp += result.outcome.pp_stolen

        self._log(result.log_lines)
        self._check_awakening()
        self._emit_opponents()
        return result

    async def _run_opponent_turn(self) -> list[TurnResult]:
        """Let every living CPU opponent act, then return to selection."""
        results: list[TurnResult] = []
        for opponent in self.opponents:
            if not opponent.is_alive():
                continue

            await asyncio.sleep(self.settings.opponent_turn_delay)
            if self.is_over:
                return results

            selection = choose_selection(opponent, self.context, self.rng)
            if selection is None:
                self._log([f"{opponent.name} has no moves available!"])
                continue

            result = await self._resolve(opponent, selection)
            if result.aborted:
                continue
            results.append(result)
            await self._persist_turn(result)
            if self.is_over:
                return results
            if result.is_battle_over:
                await self._end(result.winning_team)
                return results

        if self.is_over:
            return results
        self._next_turn()
        return results

    def _next_turn(self) -> None:
        if self.is_over:
            return
        self.state.turn_count += 1
        self.context.current_turn = self.state.turn_count
        self.state.is_player_turn = True
        self.state.phase = BattlePhase.SELECTION

    # ----------------------------------------------------------- multiplayer

    async def submit_selection(self, participant_id: str, move_id: str, target_id: str) -> ActionResult:
        """Record a participant's move and target; resolve the round once everyone has chosen."""
        rejected = self._check_can_select()
        if rejected:
            return rejected

        participant = self.context.get(participant_id)
        if participant is None or not participant.is_alive():
            return ActionResult(success=False, message="Participant not in this battle")
        move = participant.get_move(move_id)
        if move is None or not move.is_available():
            return ActionResult(success=False, message="Move not available")
        if self.context.get(target_id) is None:
            return ActionResult(success=False, message="Invalid target")

        self.state.selections[participant_id] = Selection(move_id=move_id, target_id=target_id)
        if self.auto_select_cpus:
            self._auto_select_cpus()

        waiting = [c.id for c in self._living() if c.id not in self.state.selections]
        if waiting:
            return ActionResult(success=True, message=f"Selection recorded, waiting for {len(waiting)}")

        return await self._run_round()

    def _living(self) -> list[Combatant]:
        return [c for c in self.context.combatants.values() if c.is_alive()]

    def _auto_select_cpus(self) -> None:
        for combatant in self._living():
            if combatant.is_player or combatant.id in self.state.selections:
                continue
            selection = choose_selection(combatant, self.context, self.rng)
            if selection is not None:
                self.state.selections[combatant.id] = selection

    async def _run_round(self) -> ActionResult:
        """Resolve every selection in scheduler order against live state."""
        async with self._lock:
            self.state.phase = BattlePhase.EXECUTION
            participants = [
                (self.context.combatants[pid], self.context.combatants[pid].get_move(sel.move_id))
                for pid, sel in self.state.selections.items()
            ]
            self.state.turn_order = compute_order(participants, self.rng)
            if self.combat_logger:
                self.combat_logger.log_turn_order(
                    self.state.turn_count, [e.participant_id for e in self.state.turn_order]
                )

            results: list[TurnResult] = []
            for index, entry in enumerate(self.state.turn_order):
                self.state.turn_index = index
                actor = self.context.combatants[entry.participant_id]
                if not actor.is_alive():
                    continue

                selection = self._retarget(actor, self.state.selections[actor.id])
                move = actor.get_move(selection.move_id)
                if move is not None and not await self._check_quota(actor, move):
                    continue

                result = await self._resolve(actor, selection)
                if self.is_over:
                    return self._over_result(results)
                if result.aborted:
                    continue
                results.append(result)
                await self._persist_turn(result)
                if self.is_over:
                    return self._over_result(results)
                if result.is_battle_over:
                    self.state.selections.clear()
                    end = await self._end(result.winning_team)
                    return ActionResult(success=True, message="Battle over", turn_results=results, end_result=end)

            self.state.selections.clear()
            self.state.turn_order = []
            self.state.turn_index = 0
            self._next_turn()
            return ActionResult(success=True, message="Round complete", turn_results=results)

    def _retarget(self, actor: Combatant, selection: Selection) -> Selection:
        """Redirect a selection whose opposing target fell earlier in the round."""
        target = self.context.get(selection.target_id)
        if target is None or target.is_alive() or target.team == actor.team:
            return selection
        candidates = self.context.opponents_of(actor.id)
        if not candidates:
            return selection
        return Selection(move_id=selection.move_id, target_id=candidates[0].id)

    # ------------------------------------------------------------------ PvP

    async def apply_remote_turn(
        self,
        actor_id: str,
        target_id: str | None,
        attacker_stats: dict[str, int | None] | None,
        defender_stats: dict[str, int | None] | None,
        log_lines: list[str],
    ) -> bool:
        """Apply a move resolved by the remote client using its reported pools.

        Returns False if the battle is already over.
        """
        async with self._lock:
            if self.is_over:
                return False

            actor = self.context.get(actor_id)
            target = self.context.get(target_id) if target_id else None
            for combatant, stats in ((actor, attacker_stats), (target, defender_stats)):
                if combatant is not None and stats:
                    combatant.set_stats(shield=stats.get("shield"), health=stats.get("health"), pp=stats.get("pp"))

            self._log(log_lines)
            self._check_awakening()
            self._emit_opponents()
            await self._write_vault(self.player)

            teams = self.context.living_teams()
            if len(teams) <= 1:
                await self._end(next(iter(teams), None))
                return True

            remote_side = actor is None or actor.team != self.player.team
            if remote_side and self.state.phase == BattlePhase.OPPONENT_TURN:
                self._next_turn()
            return True

    # ------------------------------------------------------------ awakening

    def _check_awakening(self) -> None:
        if self._boss_awakened:
            return
        for combatant in self.context.combatants.values():
            if not combatant.awakens:
                continue
            if combatant.health_ratio() <= self.settings.awakening_threshold:
                self._boss_awakened = True
                self._log([f"⚡ {combatant.name} has awakened!"])
                self._emit(BattleEventType.BOSS_AWAKENED, {"combatant_id": combatant.id, "name": combatant.name})
                return

    # --------------------------------------------------------------- ending

    async def escape(self) -> ActionResult:
        """End the battle immediately from any non-terminal phase."""
        if self.is_over:
            return self._over_result()

        self.state.phase = BattlePhase.ESCAPED
        self._clear_selection()
        self.state.selections.clear()
        self._log([f"{self.player.name} escaped from battle!"])
        self.end_result = BattleEndResult(outcome=BattleOutcome.ESCAPE, loser_id=self.player.id)
        await self._write_vault(self.player)
        self._emit_end()
        return ActionResult(success=True, message="Escaped", end_result=self.end_result)

    async def _end(self, winning_team: str | None) -> BattleEndResult:
        """Move to victory or defeat and settle the vaults. Runs at most once."""
        if self.end_result is not None:
            return self.end_result

        defeated = [c for c in self.opponents if not c.is_alive()]
        if winning_team == self.player.team:
            self.state.phase = BattlePhase.VICTORY
            payout = self.state.banked_pp + sum(c.resource for c in defeated)
            before = self.player.resource
            self.player.resource = min(self.settings.vault_pp_cap, self.player.resource + payout)
            awarded = self.player.resource - before
            self._log([f"🏆 Victory! You gained {awarded} PP!"])
            self.end_result = BattleEndResult(
                outcome=BattleOutcome.VICTORY,
                winner_id=self.player.id,
                loser_id=defeated[0].id if defeated else None,
                pp_awarded=awarded,
            )
            for loser in defeated:
                if loser.pool_kind == PoolKind.VAULT_HEALTH:
                    loser.resource = 0
                    await self._write_vault(loser)
        else:
            self.state.phase = BattlePhase.DEFEAT
            winner = next((c for c in self.opponents if c.is_alive()), None)
            self._log([f"💀 Defeat! {self.player.name}'s vault has fallen."])
            self.end_result = BattleEndResult(
                outcome=BattleOutcome.DEFEAT,
                winner_id=winner.id if winner else None,
                loser_id=self.player.id,
            )

        await self._write_vault(self.player)
        self._emit_end()
        return self.end_result

    def _emit_end(self) -> None:
        assert self.end_result is not None
        self._emit(
            BattleEventType.BATTLE_ENDED,
            {
                "outcome": self.end_result.outcome.value,
                "winner_id": self.end_result.winner_id,
                "loser_id": self.end_result.loser_id,
                "pp_awarded": self.end_result.pp_awarded,
            },
        )

    # ----------------------------------------------------------- persistence

    async def _persist_turn(self, result: TurnResult) -> None:
        """Write back vault-backed combatants touched by a turn."""
        touched = {result.actor_id}
        if result.outcome is not None:
            touched.add(result.outcome.target_id)
        for combatant_id in touched:
            combatant = self.context.get(combatant_id)
            if combatant is not None:
                await self._write_vault(combatant)

    async def _write_vault(self, combatant: Combatant) -> None:
        """Write a vault-backed combatant's pools. Failures are logged, never raised."""
        if self.vault_store is None or combatant.pool_kind != PoolKind.VAULT_HEALTH:
            return
        values = {
            "current_pp": combatant.resource,
            "shield_strength": combatant.shield,
            "vault_health": combatant.health,
        }
        try:
            await self.vault_store.write(combatant.id, values)
        except StoreError as e:
            logger.error("Vault write failed for %s in battle %s: %s", combatant.id, self.battle_id, e)
