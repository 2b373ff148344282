"""Tests for the perk catalog: offers and effect combination."""

from itertools import permutations

import pytest

from abyss_run.ir.perks import (
    PerkCategory,
    PerkDefinition,
    PerkEffect,
    PerkInstance,
    PerkRarity,
)
from abyss_run.sim.dungeon.perk_catalog import DEFAULT_PERKS, PerkCatalog


@pytest.fixture
def catalog() -> PerkCatalog:
    return PerkCatalog()


def _maxed_except(catalog: PerkCatalog, keep: set[str]) -> list[PerkInstance]:
    return [
        PerkInstance(perk_id=d.id, stacks=d.max_stacks)
        for d in catalog.all()
        if d.id not in keep
    ]


class TestCatalog:
    def test_default_ids_unique(self):
        ids = [d.id for d in DEFAULT_PERKS]
        assert len(ids) == len(set(ids))

    def test_lookup(self, catalog):
        assert catalog.get("vital_boost").effect.max_hp_bonus == 25
        assert catalog.get("nope") is None
        assert "rewind" in catalog
        assert len(catalog) == len(DEFAULT_PERKS)

    def test_default_perks(self):
        assert [d.id for d in DEFAULT_PERKS] == [
            "extra_heart", "thick_skin", "vital_boost", "regeneration", "barrier",
            "featherfall", "momentum", "big_target", "eagle_eye",
            "bounce_back", "double_jump", "slow_motion", "rewind",
        ]
        assert all(d.effect.magnet_strength == 0.0 for d in DEFAULT_PERKS)

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            PerkCatalog([DEFAULT_PERKS[0], DEFAULT_PERKS[0]])


class TestSelectOptions:
    def test_returns_requested_count(self, catalog):
        options = catalog.select_options([], seed=1, count=3)
        assert len(options) == 3
        assert len({o.id for o in options}) == 3

    def test_deterministic(self, catalog):
        a = catalog.select_options([], seed=77, count=3)
        b = catalog.select_options([], seed=77, count=3)
        assert [o.id for o in a] == [o.id for o in b]

    def test_seed_changes_offers(self, catalog):
        offers = {
            tuple(o.id for o in catalog.select_options([], seed=s, count=3))
            for s in range(30)
        }
        assert len(offers) > 5

    def test_excludes_maxed_perks(self, catalog):
        current = [PerkInstance(perk_id="eagle_eye", stacks=1)]
        for seed in range(200):
            ids = {o.id for o in catalog.select_options(current, seed=seed, count=5)}
            assert "eagle_eye" not in ids

    def test_partially_stacked_perk_still_offered(self, catalog):
        current = _maxed_except(catalog, {"vital_boost"})
        current.append(PerkInstance(perk_id="vital_boost", stacks=2))
        options = catalog.select_options(current, seed=3, count=3)
        assert [o.id for o in options] == ["vital_boost"]

    def test_exhaustion_returns_what_is_left(self, catalog):
        current = _maxed_except(catalog, {"rewind", "momentum"})
        options = catalog.select_options(current, seed=5, count=3)
        assert {o.id for o in options} == {"rewind", "momentum"}

    def test_everything_maxed_returns_empty(self, catalog):
        assert catalog.select_options(_maxed_except(catalog, set()), seed=5) == []

    def test_zero_count(self, catalog):
        assert catalog.select_options([], seed=5, count=0) == []

    def test_count_larger_than_catalog(self, catalog):
        options = catalog.select_options([], seed=5, count=100)
        assert len(options) == len(catalog)

    def test_common_offered_more_than_legendary(self, catalog):
        firsts = [catalog.select_options([], seed=s, count=1)[0] for s in range(500)]
        commons = sum(1 for d in firsts if d.rarity == PerkRarity.COMMON)
        legendaries = sum(1 for d in firsts if d.rarity == PerkRarity.LEGENDARY)
        assert commons > legendaries


class TestCombinedEffects:
    def test_no_perks_is_neutral(self, catalog):
        assert catalog.combined_effects([]) == PerkEffect()

    def test_additive_fields_scale_with_stacks(self, catalog):
        effects = catalog.combined_effects([
            PerkInstance(perk_id="vital_boost", stacks=2),
            PerkInstance(perk_id="extra_heart", stacks=3),
            PerkInstance(perk_id="rewind", stacks=2),
        ])
        assert effects.max_hp_bonus == 50
        assert effects.extra_lives == 3
        assert effects.rewind_uses == 2

    def test_multiplicative_fields_compound(self, catalog):
        effects = catalog.combined_effects([
            PerkInstance(perk_id="thick_skin", stacks=2),
            PerkInstance(perk_id="featherfall", stacks=1),
        ])
        assert effects.damage_reduction == pytest.approx(0.64)
        assert effects.gravity_multiplier == pytest.approx(0.75)
        assert effects.score_multiplier == 1.0

    def test_boolean_fields(self, catalog):
        effects = catalog.combined_effects([PerkInstance(perk_id="bounce_back")])
        assert effects.has_bounce is True
        assert effects.has_double_jump is False

    def test_unknown_perk_skipped(self, catalog):
        effects = catalog.combined_effects([
            PerkInstance(perk_id="ghost"),
            PerkInstance(perk_id="vital_boost"),
        ])
        assert effects.max_hp_bonus == 25

    def test_order_independent(self):
        custom = PerkCatalog([
            *DEFAULT_PERKS,
            PerkDefinition(
                id="lucky",
                name="Lucky",
                description="+10% score",
                category=PerkCategory.SPECIAL,
                rarity=PerkRarity.RARE,
                max_stacks=3,
                effect=PerkEffect(score_multiplier=1.1, slow_mo_duration=0.1),
            ),
        ])
        instances = [
            PerkInstance(perk_id="lucky", stacks=3),
            PerkInstance(perk_id="slow_motion", stacks=1),
            PerkInstance(perk_id="thick_skin", stacks=3),
            PerkInstance(perk_id="momentum", stacks=2),
            PerkInstance(perk_id="big_target", stacks=1),
        ]
        baseline = custom.combined_effects(instances)
        for perm in permutations(instances):
            assert custom.combined_effects(list(perm)) == baseline

    def test_recomputing_is_stable(self, catalog):
        instances = [PerkInstance(perk_id="momentum", stacks=3)]
        assert catalog.combined_effects(instances) == catalog.combined_effects(instances)


class TestStackDelta:
    def test_single_stack_effect(self, catalog):
        assert catalog.stack_delta("vital_boost").max_hp_bonus == 25

    def test_unknown_raises(self, catalog):
        with pytest.raises(KeyError):
            catalog.stack_delta("ghost")
