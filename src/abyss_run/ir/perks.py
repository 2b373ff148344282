"""Perk definitions -- stackable modifiers acquired during a run."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PerkCategory(str, Enum):
    """Broad grouping used for display and filtering."""

    SURVIVAL = "SURVIVAL"
    PHYSICS = "PHYSICS"
    TARGETING = "TARGETING"
    SPECIAL = "SPECIAL"


class PerkRarity(str, Enum):
    """Controls how often a perk is offered."""

    COMMON = "COMMON"
    RARE = "RARE"
    LEGENDARY = "LEGENDARY"


class CombineRule(str, Enum):
    """How the contributions of several perk stacks fold into one value."""

    ADD = "ADD"
    """Flat bonuses and counters: ``sum(value * stacks)``."""

    MULTIPLY = "MULTIPLY"
    """Rate modifiers: ``product(value ** stacks)``."""

    ANY = "ANY"
    """Abilities: enabled if any held perk enables it."""


class PerkEffect(BaseModel):
    """Closed set of effect fields a perk can carry.

    Every field defaults to its neutral value (0 for additive fields, 1.0
    for multipliers, ``False`` for abilities), so an empty ``PerkEffect`` is
    also the combined effect of holding no perks.  The combination rule of
    each field is fixed in ``EFFECT_RULES``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Survival
    extra_lives: int = 0
    max_hp_bonus: int = 0
    heal_on_clear: int = 0
    shield_amount: int = 0
    damage_reduction: float = 1.0
    """Damage taken multiplier (0.8 = 20% less damage)."""

    # Physics
    gravity_multiplier: float = 1.0
    swing_speed_multiplier: float = 1.0

    # Targeting
    wormhole_size_multiplier: float = 1.0
    magnet_strength: float = 0.0
    trajectory_always_visible: bool = False

    # Special
    has_air_control: bool = False
    has_bounce: bool = False
    has_double_jump: bool = False
    slow_mo_duration: float = 0.0
    """Seconds of slow motion on release."""
    rewind_uses: int = 0
    phase_uses: int = 0

    # Score
    score_multiplier: float = 1.0
    speed_bonus_per_second: float = 0.0
    perfect_bonus_multiplier: float = 1.0


EFFECT_RULES: dict[str, CombineRule] = {
    "extra_lives": CombineRule.ADD,
    "max_hp_bonus": CombineRule.ADD,
    "heal_on_clear": CombineRule.ADD,
    "shield_amount": CombineRule.ADD,
    "damage_reduction": CombineRule.MULTIPLY,
    "gravity_multiplier": CombineRule.MULTIPLY,
    "swing_speed_multiplier": CombineRule.MULTIPLY,
    "wormhole_size_multiplier": CombineRule.MULTIPLY,
    "magnet_strength": CombineRule.ADD,
    "trajectory_always_visible": CombineRule.ANY,
    "has_air_control": CombineRule.ANY,
    "has_bounce": CombineRule.ANY,
    "has_double_jump": CombineRule.ANY,
    "slow_mo_duration": CombineRule.ADD,
    "rewind_uses": CombineRule.ADD,
    "phase_uses": CombineRule.ADD,
    "score_multiplier": CombineRule.MULTIPLY,
    "speed_bonus_per_second": CombineRule.ADD,
    "perfect_bonus_multiplier": CombineRule.MULTIPLY,
}


class PerkDefinition(BaseModel):
    """Complete definition of a single perk in the catalog."""

    model_config = ConfigDict(frozen=True)

    id: str
    """Unique identifier (e.g. 'vital_boost')."""

    name: str
    description: str
    category: PerkCategory
    rarity: PerkRarity

    max_stacks: int = Field(default=1, ge=1)
    """How many times this perk can be acquired in one run."""

    effect: PerkEffect
    """Effect of a single stack."""


class PerkInstance(BaseModel):
    """A perk held by the active run."""

    perk_id: str
    stacks: int = Field(default=1, ge=1)
    acquired_at_depth: int = Field(default=0, ge=0)
