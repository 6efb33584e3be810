"""Tests for move execution and turn resolution."""

import random

from conftest import MaxRandom, make_combatant, make_context

from vault_battle.db.models.enums import CounterCondition, MoveKind, PoolKind, StatusEffectType
from vault_battle.engine.actions import MoveExecutor
from vault_battle.engine.logging import CombatLogger, LogEventType
from vault_battle.engine.stores import CatalogEntry
from vault_battle.engine.turn import TurnResolver
from vault_battle.engine.types import (
    ActiveEffect,
    CounterAttack,
    DefensiveStance,
    Move,
    Selection,
    StanceSpec,
    StatusEffectSpec,
)


class NoRandom(random.Random):
    """Percentile draws always return 99: no max rolls, every chance fails."""

    def randrange(self, *args, **kwargs):
        return 99


class TestDamage:
    """Tests for the damage step."""

    def test_shield_first_scenario(self, strike):
        """20 damage into 15 shield and 100 health: 15 to shield, 5 to health."""
        attacker = make_combatant("a")
        defender = make_combatant("d", health=100, shield=15)
        context = make_context(attacker, defender, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, defender, strike, context)

        assert outcome.damage == 20
        assert outcome.shield_damage == 15
        assert outcome.health_damage == 5
        assert defender.shield == 0
        assert defender.health == 95
        assert outcome.is_max_roll
        assert "MAX DAMAGE!" in outcome.log_lines[0]
        assert "(16-20)" in outcome.log_lines[0]

    def test_absorbed_by_shield(self, strike):
        attacker = make_combatant("a")
        defender = make_combatant("d", shield=50)
        context = make_context(attacker, defender, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, defender, strike, context)

        assert defender.shield == 30
        assert defender.health == 100
        assert "absorbed by shields" in outcome.log_lines[0]

    def test_stance_reduction(self, strike):
        """Flat 5 then 50%: 20 becomes 8."""
        attacker = make_combatant("a")
        defender = make_combatant("d")
        defender.stances.append(DefensiveStance(name="Brace", remaining_turns=1, flat_reduction=5, percent_reduction=50))
        context = make_context(attacker, defender, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, defender, strike, context)

        assert outcome.damage == 8
        assert defender.health == 92

    def test_stances_apply_in_sequence(self, strike):
        attacker = make_combatant("a")
        defender = make_combatant("d")
        defender.stances.append(DefensiveStance(name="One", remaining_turns=1, flat_reduction=4))
        defender.stances.append(DefensiveStance(name="Two", remaining_turns=1, percent_reduction=25))
        context = make_context(attacker, defender, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, defender, strike, context)

        assert outcome.damage == 12

    def test_damage_never_below_zero(self, strike):
        attacker = make_combatant("a")
        defender = make_combatant("d", health=10)
        defender.stances.append(DefensiveStance(name="Wall", remaining_turns=1, flat_reduction=50))
        context = make_context(attacker, defender, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, defender, strike, context)

        assert outcome.damage == 0
        assert defender.health == 10

    def test_stops_when_target_defeated(self):
        """Later steps do not run once the hit is lethal."""
        move = Move(
            id="finisher",
            name="Finisher",
            damage=20,
            healing=10,
            status_effects=[StatusEffectSpec(type=StatusEffectType.BURN, damage_per_turn=3)],
        )
        attacker = make_combatant("a", health=50)
        defender = make_combatant("d", health=5)
        context = make_context(attacker, defender, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, defender, move, context)

        assert defender.health == 0
        assert outcome.healing == 0
        assert attacker.health == 50
        assert defender.effects == []


class TestCounters:
    """Tests for stance counter-attacks."""

    def make_guarded(self, condition: CounterCondition, threshold: int = 0, shield: int = 0):
        defender = make_combatant("d", shield=shield)
        defender.stances.append(
            DefensiveStance(
                name="Spikes",
                remaining_turns=1,
                counter=CounterAttack(condition=condition, damage=7, threshold=threshold),
            )
        )
        return defender

    def test_always_fires_on_hit(self, strike):
        attacker = make_combatant("a")
        defender = self.make_guarded(CounterCondition.ALWAYS)
        context = make_context(attacker, defender, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, defender, strike, context)

        assert outcome.counter_damage == 7
        assert attacker.health == 93
        assert any("countered" in line for line in outcome.log_lines)

    def test_health_damaged_needs_health_loss(self, strike):
        attacker = make_combatant("a")
        defender = self.make_guarded(CounterCondition.HEALTH_DAMAGED, shield=50)
        context = make_context(attacker, defender, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, defender, strike, context)

        assert outcome.counter_damage == 0
        assert attacker.health == 100

    def test_shield_broken(self, strike):
        attacker = make_combatant("a")
        defender = self.make_guarded(CounterCondition.SHIELD_BROKEN, shield=10)
        context = make_context(attacker, defender, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, defender, strike, context)

        assert outcome.counter_damage == 7

    def test_max_roll_condition(self, strike):
        attacker = make_combatant("a")
        defender = self.make_guarded(CounterCondition.MAX_ROLL)

        missed = MoveExecutor().execute(attacker, defender, strike, make_context(attacker, defender, rng=NoRandom(1)))
        assert missed.counter_damage == 0

        hit = MoveExecutor().execute(attacker, defender, strike, make_context(attacker, defender, rng=MaxRandom(1)))
        assert hit.counter_damage == 7

    def test_damage_threshold(self, strike):
        attacker = make_combatant("a")
        low = self.make_guarded(CounterCondition.DAMAGE_AT_LEAST, threshold=25)
        high = self.make_guarded(CounterCondition.DAMAGE_AT_LEAST, threshold=20)

        assert MoveExecutor().execute(attacker, low, strike, make_context(attacker, low, rng=MaxRandom(1))).counter_damage == 0
        assert MoveExecutor().execute(attacker, high, strike, make_context(attacker, high, rng=MaxRandom(1))).counter_damage == 7

    def test_counter_logged(self, strike):
        attacker = make_combatant("a")
        defender = self.make_guarded(CounterCondition.ALWAYS)
        combat_logger = CombatLogger(battle_id="t")

        MoveExecutor(combat_logger=combat_logger).execute(
            attacker, defender, strike, make_context(attacker, defender, rng=MaxRandom(1))
        )

        entries = combat_logger.get_log().get_entries_by_type(LogEventType.COUNTER_FIRED)
        assert len(entries) == 1
        assert entries[0].target_id == "a"


class TestSecondarySteps:
    """Tests for PP steal, shield boost, healing, effects and stances."""

    def test_pp_steal(self):
        """A 10 steal rolls 10 at max and takes 60% of it."""
        move = Move(id="siphon", name="Siphon", pp_steal=10)
        attacker = make_combatant("a")
        defender = make_combatant("d", resource=40, shield=50)
        context = make_context(attacker, defender, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, defender, move, context)

        assert outcome.pp_stolen == 6
        assert defender.resource == 34
        assert defender.shield == 50

    def test_pp_steal_from_cpu_takes_health(self):
        move = Move(id="siphon", name="Siphon", pp_steal=10)
        attacker = make_combatant("a")
        cpu = make_combatant("cpu", pool_kind=PoolKind.HEALTH, health=30)
        context = make_context(attacker, cpu, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(attacker, cpu, move, context)

        assert outcome.pp_stolen == 6
        assert cpu.health == 24

    def test_pp_steal_skipped_on_self(self):
        move = Move(id="siphon", name="Siphon", pp_steal=10)
        actor = make_combatant("a", resource=40)
        context = make_context(actor, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(actor, actor, move, context)

        assert outcome.pp_stolen == 0
        assert actor.resource == 40

    def test_shield_boost_capped(self):
        move = Move(id="guard", name="Guard", kind=MoveKind.DEFENSE, shield_boost=20)
        actor = make_combatant("a", shield=90, max_shield=100)
        context = make_context(actor, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(actor, actor, move, context)

        assert outcome.shield_boost == 10
        assert actor.shield == 100

    def test_healing_capped(self):
        move = Move(id="mend", name="Mend", healing=30)
        actor = make_combatant("a", health=90, max_health=100)
        context = make_context(actor, rng=MaxRandom(1))

        outcome = MoveExecutor().execute(actor, actor, move, context)

        assert outcome.healing == 10
        assert actor.health == 100

    def test_status_effect_lands(self):
        move = Move(
            id="ignite",
            name="Ignite",
            status_effects=[StatusEffectSpec(type=StatusEffectType.BURN, duration=3, damage_per_turn=4, success_chance=50)],
        )
        attacker = make_combatant("a")
        defender = make_combatant("d")

        outcome = MoveExecutor().execute(attacker, defender, move, make_context(attacker, defender, rng=MaxRandom(1)))

        assert outcome.effects_applied == [StatusEffectType.BURN]
        assert defender.effects[0].duration == 3
        assert defender.effects[0].source_id == "a"

    def test_status_effect_resisted(self):
        move = Move(
            id="ignite",
            name="Ignite",
            status_effects=[StatusEffectSpec(type=StatusEffectType.BURN, success_chance=50)],
        )
        attacker = make_combatant("a")
        defender = make_combatant("d")

        outcome = MoveExecutor().execute(attacker, defender, move, make_context(attacker, defender, rng=NoRandom(1)))

        assert outcome.effects_resisted == [StatusEffectType.BURN]
        assert defender.effects == []
        assert "d resisted burn!" in outcome.log_lines

    def test_stance_attached(self):
        move = Move(id="brace", name="Brace", kind=MoveKind.DEFENSE, stance=StanceSpec(name="Brace", duration=2, flat_reduction=3))
        actor = make_combatant("a")

        MoveExecutor().execute(actor, actor, move, make_context(actor, rng=MaxRandom(1)))

        assert len(actor.stances) == 1
        assert actor.stances[0].fresh
        assert actor.stances[0].remaining_turns == 2

    def test_empty_move_still_logs(self):
        actor = make_combatant("a")
        outcome = MoveExecutor().execute(actor, actor, Move(id="wait", name="Wait"), make_context(actor))
        assert outcome.log_lines == ["a used Wait!"]

    def test_catalog_fallback(self):
        """Fields the move leaves at zero come from the catalog entry."""
        move = Move(id="quake", name="quake")
        entry = CatalogEntry(move_name="quake", display_name="Earthquake", damage=20)
        attacker = make_combatant("a")
        defender = make_combatant("d")

        outcome = MoveExecutor().execute(
            attacker, defender, move, make_context(attacker, defender, rng=MaxRandom(1)), catalog_entry=entry
        )

        assert outcome.move_name == "Earthquake"
        assert outcome.damage == 20
        assert "Earthquake" in outcome.log_lines[0]

    def test_move_value_wins_over_catalog(self, strike):
        entry = CatalogEntry(move_name="strike", display_name="Strike", damage=90)
        attacker = make_combatant("a")
        defender = make_combatant("d")

        outcome = MoveExecutor().execute(
            attacker, defender, strike, make_context(attacker, defender, rng=MaxRandom(1)), catalog_entry=entry
        )

        assert outcome.damage == 20


class TestTurnResolver:
    """Tests for one full turn."""

    def test_invalid_target_mutates_nothing(self, strike):
        actor = make_combatant("a", moves=[strike])
        actor.effects.append(ActiveEffect(type=StatusEffectType.BURN, duration=2, damage_per_turn=5))
        context = make_context(actor)

        result = TurnResolver().resolve(context, "a", Selection(move_id="strike", target_id="ghost"))

        assert result.aborted
        assert actor.health == 100
        assert actor.effects[0].duration == 2

    def test_unavailable_move_aborts(self, strike):
        strike.current_cooldown = 1
        actor = make_combatant("a", moves=[strike])
        target = make_combatant("d", team="opponents")

        result = TurnResolver().resolve(make_context(actor, target), "a", Selection("strike", "d"))

        assert result.aborted

    def test_stunned_actor_skips(self, strike):
        actor = make_combatant("a", moves=[strike])
        actor.effects.append(ActiveEffect(type=StatusEffectType.STUN, duration=1))
        target = make_combatant("d", team="opponents")

        result = TurnResolver().resolve(make_context(actor, target), "a", Selection("strike", "d"))

        assert result.skipped
        assert result.outcome is None
        assert target.health == 100
        assert any("stunned" in line for line in result.log_lines)

    def test_confused_actor_hits_self(self, strike):
        actor = make_combatant("a", moves=[strike])
        actor.effects.append(ActiveEffect(type=StatusEffectType.CONFUSE, duration=2, chance=100))
        target = make_combatant("d", team="opponents")

        result = TurnResolver().resolve(make_context(actor, target, rng=MaxRandom(1)), "a", Selection("strike", "d"))

        assert result.outcome.target_id == "a"
        assert actor.health == 80
        assert target.health == 100
        assert "😵 a hurt themselves in confusion!" in result.log_lines

    def test_winner_detected(self, strike):
        actor = make_combatant("a", moves=[strike])
        target = make_combatant("d", team="opponents", health=10)

        result = TurnResolver().resolve(make_context(actor, target, rng=MaxRandom(1)), "a", Selection("strike", "d"))

        assert result.is_battle_over
        assert result.winning_team == "allies"

    def test_effect_tick_can_end_battle(self, strike):
        actor = make_combatant("a", moves=[strike], health=5)
        actor.effects.append(ActiveEffect(type=StatusEffectType.BURN, duration=2, damage_per_turn=10))
        target = make_combatant("d", team="opponents")

        result = TurnResolver().resolve(make_context(actor, target), "a", Selection("strike", "d"))

        assert result.is_battle_over
        assert result.winning_team == "opponents"
        assert result.outcome is None

    def test_cooldowns_and_stances_tick(self):
        guard = Move(
            id="guard",
            name="Guard",
            kind=MoveKind.DEFENSE,
            cooldown=2,
            stance=StanceSpec(name="Guard", duration=1, flat_reduction=5),
        )
        poke = Move(id="poke", name="Poke", damage=1)
        actor = make_combatant("a", moves=[guard, poke])
        target = make_combatant("d", team="opponents")
        context = make_context(actor, target, rng=MaxRandom(1))
        resolver = TurnResolver()

        resolver.resolve(context, "a", Selection("guard", "a"))
        assert guard.current_cooldown == 2
        assert len(actor.stances) == 1
        assert not actor.stances[0].fresh

        resolver.resolve(context, "a", Selection("poke", "d"))
        assert guard.current_cooldown == 1
        assert actor.stances == []

    def test_combat_logger_records_turn(self, strike):
        actor = make_combatant("a", moves=[strike])
        target = make_combatant("d", team="opponents")
        combat_logger = CombatLogger(battle_id="t")

        TurnResolver(combat_logger=combat_logger).resolve(
            make_context(actor, target, rng=MaxRandom(1)), "a", Selection("strike", "d")
        )

        log = combat_logger.get_log()
        assert [e.event_type for e in log.entries] == [
            LogEventType.TURN_START,
            LogEventType.MOVE_RESOLVED,
            LogEventType.TURN_END,
        ]
        resolved = log.get_entries_by_type(LogEventType.MOVE_RESOLVED)[0]
        assert resolved.state_before.health == 100
        assert resolved.state_after.health == 80
