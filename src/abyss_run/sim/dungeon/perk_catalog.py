"""Perk catalog -- the fixed registry of perks, seeded reward offers, and
the reducer that folds held perks into one effect snapshot.

Offer weights by rarity: common 60, rare 30, legendary 10.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

from abyss_run.ir.perks import (
    EFFECT_RULES,
    CombineRule,
    PerkCategory,
    PerkDefinition,
    PerkEffect,
    PerkInstance,
    PerkRarity,
)
from abyss_run.sim.core.rng import GameRNG

logger = logging.getLogger(__name__)

RARITY_WEIGHTS: dict[PerkRarity, int] = {
    PerkRarity.COMMON: 60,
    PerkRarity.RARE: 30,
    PerkRarity.LEGENDARY: 10,
}


def _perk(
    perk_id: str,
    name: str,
    description: str,
    category: PerkCategory,
    rarity: PerkRarity,
    max_stacks: int,
    **effect: float | int | bool,
) -> PerkDefinition:
    return PerkDefinition(
        id=perk_id,
        name=name,
        description=description,
        category=category,
        rarity=rarity,
        max_stacks=max_stacks,
        effect=PerkEffect(**effect),
    )


DEFAULT_PERKS: tuple[PerkDefinition, ...] = (
    # Survival
    _perk("extra_heart", "Extra Heart", "+1 Life",
          PerkCategory.SURVIVAL, PerkRarity.COMMON, 3, extra_lives=1),
    _perk("thick_skin", "Thick Skin", "-20% Damage taken",
          PerkCategory.SURVIVAL, PerkRarity.COMMON, 3, damage_reduction=0.8),
    _perk("vital_boost", "Vital Boost", "+25 Max HP",
          PerkCategory.SURVIVAL, PerkRarity.COMMON, 5, max_hp_bonus=25),
    _perk("regeneration", "Regeneration", "Heal 10 HP on stage clear",
          PerkCategory.SURVIVAL, PerkRarity.COMMON, 3, heal_on_clear=10),
    _perk("barrier", "Barrier", "+15 Shield (refills each stage)",
          PerkCategory.SURVIVAL, PerkRarity.RARE, 3, shield_amount=15),
    # Physics
    _perk("featherfall", "Featherfall", "-25% Gravity",
          PerkCategory.PHYSICS, PerkRarity.COMMON, 2, gravity_multiplier=0.75),
    _perk("momentum", "Momentum", "+15% Swing Speed",
          PerkCategory.PHYSICS, PerkRarity.COMMON, 3, swing_speed_multiplier=1.15),
    # Targeting
    _perk("big_target", "Big Target", "+25% Wormhole Size",
          PerkCategory.TARGETING, PerkRarity.COMMON, 3, wormhole_size_multiplier=1.25),
    _perk("eagle_eye", "Eagle Eye", "Always show trajectory",
          PerkCategory.TARGETING, PerkRarity.RARE, 1, trajectory_always_visible=True),
    # Special
    _perk("bounce_back", "Bounce Back", "Bounce off walls",
          PerkCategory.SPECIAL, PerkRarity.RARE, 1, has_bounce=True),
    _perk("double_jump", "Double Jump", "Jump once in mid-air",
          PerkCategory.SPECIAL, PerkRarity.LEGENDARY, 2, has_double_jump=True),
    _perk("slow_motion", "Slow Motion", "0.5s slow-mo on release",
          PerkCategory.SPECIAL, PerkRarity.LEGENDARY, 2, slow_mo_duration=0.5),
    _perk("rewind", "Rewind", "Undo death once per run",
          PerkCategory.SPECIAL, PerkRarity.LEGENDARY, 2, rewind_uses=1),
)


class PerkCatalog:
    """Read-only registry of perk definitions.

    Usage::

        catalog = PerkCatalog()
        options = catalog.select_options(run.perks, seed=1234)
        effects = catalog.combined_effects(run.perks)
    """

    def __init__(self, definitions: Iterable[PerkDefinition] = DEFAULT_PERKS) -> None:
        self._perks: dict[str, PerkDefinition] = {}
        for definition in definitions:
            if definition.id in self._perks:
                raise ValueError(f"Duplicate perk id {definition.id!r}")
            self._perks[definition.id] = definition

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, perk_id: str) -> PerkDefinition | None:
        return self._perks.get(perk_id)

    def all(self) -> list[PerkDefinition]:
        """Every definition, in catalog order."""
        return list(self._perks.values())

    def __contains__(self, perk_id: object) -> bool:
        return perk_id in self._perks

    def __len__(self) -> int:
        return len(self._perks)

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------

    def select_options(
        self,
        current_perks: Sequence[PerkInstance],
        seed: int,
        count: int = 3,
    ) -> list[PerkDefinition]:
        """Pick up to *count* distinct perks for a reward screen.

        Perks already held at ``max_stacks`` are never offered.  When fewer
        than *count* perks are eligible, all of them are returned (in draw
        order).  Deterministic for a given ``(current_perks, seed, count)``.
        """
        held = {p.perk_id: p.stacks for p in current_perks}
        eligible = [
            d for d in self._perks.values()
            if held.get(d.id, 0) < d.max_stacks
        ]

        rng = GameRNG(seed)
        selected: list[PerkDefinition] = []
        while eligible and len(selected) < count:
            pick = rng.weighted_choice(
                [(d, RARITY_WEIGHTS[d.rarity]) for d in eligible]
            )
            selected.append(pick)
            eligible.remove(pick)
        return selected

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    def combined_effects(self, instances: Iterable[PerkInstance]) -> PerkEffect:
        """Fold held perks into a single effect record.

        Each field is reduced by its rule in ``EFFECT_RULES``.  Per-field
        contributions are sorted before reduction, so the result is the
        same for every ordering of *instances*.
        """
        contributions: dict[str, list] = {name: [] for name in EFFECT_RULES}
        for instance in instances:
            definition = self._perks.get(instance.perk_id)
            if definition is None:
                logger.warning("Unknown perk %r ignored when combining", instance.perk_id)
                continue
            effect = definition.effect
            for name in effect.model_fields_set:
                value = getattr(effect, name)
                rule = EFFECT_RULES[name]
                if rule == CombineRule.ADD:
                    contributions[name].append(value * instance.stacks)
                elif rule == CombineRule.MULTIPLY:
                    contributions[name].append(value ** instance.stacks)
                else:
                    contributions[name].append(bool(value))

        combined: dict[str, float | int | bool] = {}
        for name, values in contributions.items():
            if not values:
                continue
            rule = EFFECT_RULES[name]
            if rule == CombineRule.ADD:
                combined[name] = sum(sorted(values))
            elif rule == CombineRule.MULTIPLY:
                combined[name] = math.prod(sorted(values))
            else:
                combined[name] = any(values)
        return PerkEffect(**combined)

    def stack_delta(self, perk_id: str) -> PerkEffect:
        """Effect of acquiring one more stack of *perk_id*."""
        definition = self._perks.get(perk_id)
        if definition is None:
            raise KeyError(perk_id)
        return definition.effect
