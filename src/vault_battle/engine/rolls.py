"""Damage, shield-boost and healing rolls.

Every numeric move effect goes through the same two steps:

1. `calculate_range` turns a base value plus move level and mastery into a
   [min, max] band. Move level raises the floor and the ceiling; mastery only
   raises the ceiling, so higher mastery widens the spread.
2. `roll` picks a value in that band. The actor's level, the move level and
   the mastery level raise the chance of landing exactly on max; below that
   threshold the value interpolates linearly between min and max.
"""

import random
from dataclasses import dataclass

from ..db.models.enums import RollKind


@dataclass(frozen=True)
class RollProfile:
    """Tuning constants for one kind of roll."""

    floor_ratio: float  # min as a share of base
    level_bonus: float  # per move level above 1, added to min and max
    mastery_bonus: float  # per mastery level above 1, added to max only
    base_max_chance: int  # percent
    move_level_chance: int  # percent per move level above 1
    mastery_chance: int  # percent per mastery level above 1


PROFILES: dict[RollKind, RollProfile] = {
    RollKind.DAMAGE: RollProfile(0.8, 0.10, 0.05, 20, 5, 8),
    RollKind.SHIELD: RollProfile(0.85, 0.08, 0.04, 30, 6, 10),
    RollKind.HEALING: RollProfile(0.8, 0.10, 0.05, 25, 5, 8),
}

ACTOR_LEVEL_CHANCE = 2  # percent per actor level
ACTOR_LEVEL_CHANCE_CAP = 50
MAX_ROLL_CHANCE_CAP = 95


@dataclass(frozen=True)
class RollRange:
    """Inclusive integer band a roll lands in."""

    min: int
    max: int
    average: int


@dataclass(frozen=True)
class RollResult:
    """Outcome of a single roll."""

    value: int
    is_max_roll: bool
    roll: int  # 0-99, for debugging
    probability: int  # percent chance of landing on max


def calculate_range(
    base: int,
    move_level: int,
    mastery_level: int,
    kind: RollKind = RollKind.DAMAGE,
) -> RollRange:
    """Calculate the roll band for a base value."""
    profile = PROFILES[kind]
    base = max(0, base)
    move_level = max(1, move_level)
    mastery_level = max(1, mastery_level)

    level_bonus = int(base * profile.level_bonus * (move_level - 1))
    mastery_bonus = int(base * profile.mastery_bonus * (mastery_level - 1))

    low = int(base * profile.floor_ratio) + level_bonus
    high = base + level_bonus + mastery_bonus
    return RollRange(min=low, max=high, average=(low + high) // 2)


def max_roll_probability(
    actor_level: int,
    move_level: int,
    mastery_level: int,
    kind: RollKind = RollKind.DAMAGE,
) -> int:
    """Percent chance that a roll lands on the range maximum."""
    profile = PROFILES[kind]
    chance = profile.base_max_chance
    chance += min(max(0, actor_level) * ACTOR_LEVEL_CHANCE, ACTOR_LEVEL_CHANCE_CAP)
    chance += (max(1, move_level) - 1) * profile.move_level_chance
    chance += (max(1, mastery_level) - 1) * profile.mastery_chance
    return min(chance, MAX_ROLL_CHANCE_CAP)


def roll(
    band: RollRange,
    actor_level: int,
    move_level: int,
    mastery_level: int,
    rng: random.Random,
    kind: RollKind = RollKind.DAMAGE,
) -> RollResult:
    """Roll a value inside `band`.

    The value is always an integer in [band.min, band.max], and
    `is_max_roll` is true exactly when it equals band.max.
    """
    probability = max_roll_probability(actor_level, move_level, mastery_level, kind)
    draw = rng.randrange(100)

    if draw < probability:
        value = band.max
    else:
        ratio = (draw - probability) / (100 - probability)
        value = int(band.min + (band.max - band.min) * ratio)

    value = min(max(value, band.min), band.max)
    return RollResult(
        value=value,
        is_max_roll=value == band.max,
        roll=draw,
        probability=probability,
    )


def roll_value(
    base: int,
    actor_level: int,
    move_level: int,
    mastery_level: int,
    rng: random.Random,
    kind: RollKind = RollKind.DAMAGE,
) -> tuple[RollRange, RollResult]:
    """Calculate the band for `base` and roll it in one step."""
    band = calculate_range(base, move_level, mastery_level, kind)
    return band, roll(band, actor_level, move_level, mastery_level, rng, kind)


def format_range(band: RollRange, with_average: bool = False) -> str:
    """Format a band for log lines, e.g. "12-15" or "12-15 (avg: 13)"."""
    text = f"{band.min}-{band.max}"
    if with_average:
        text += f" (avg: {band.average})"
    return text
