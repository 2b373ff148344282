"""Random agent -- makes every run decision uniformly at random.

The ``RandomAgent`` is the baseline for batch simulation: it exercises the
whole run loop end-to-end and gives a rough feel for how long runs of each
length survive.

Behaviour:
    - Picks a random available node.
    - Stage outcomes: rank uniform over S-D, score 50-150 scaled by rank,
      HP loss 0-``max_stage_damage`` (doubled on elites, tripled on bosses).
    - Rest: heals when below half HP, otherwise a random choice.
    - Events: one of a small table of outcomes.
    - Perks: always takes a random offered perk.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from abyss_run.ir.run_map import NodeType, RunRank
from abyss_run.ir.run_state import EventEffects, RestChoice, StageResult
from abyss_run.sim.core.rng import GameRNG
from abyss_run.sim.play_agents.base import PlayAgent

if TYPE_CHECKING:
    from abyss_run.ir.perks import PerkDefinition
    from abyss_run.ir.run_map import MapNode
    from abyss_run.ir.run_state import ActiveRun

_RANK_SCORE_FACTOR = {
    RunRank.S: 1.5,
    RunRank.A: 1.2,
    RunRank.B: 1.0,
    RunRank.C: 0.8,
    RunRank.D: 0.5,
}

_DAMAGE_FACTOR = {
    NodeType.ELITE: 2,
    NodeType.BOSS: 3,
}

_EVENT_TABLE: list[EventEffects] = [
    EventEffects(hp_change_percent=0.2),
    EventEffects(hp_change_percent=-0.1, score_change=200),
    EventEffects(score_multiplier=2.0, score_multiplier_duration=2),
    EventEffects(reveal_map=True),
]


class RandomAgent(PlayAgent):
    """Agent that plays runs at random.

    Parameters
    ----------
    rng:
        Seeded RNG for deterministic randomness.  If ``None``, a default
        ``GameRNG(seed=0)`` is created.
    max_stage_damage:
        Upper bound on HP lost in a normal stage.
    """

    def __init__(
        self,
        rng: GameRNG | None = None,
        max_stage_damage: int = 12,
    ) -> None:
        self._rng = rng or GameRNG(seed=0)
        self._max_stage_damage = max_stage_damage

    # ------------------------------------------------------------------
    # PlayAgent interface
    # ------------------------------------------------------------------

    def choose_node(self, run: ActiveRun, available: list[MapNode]) -> MapNode:
        return self._rng.random_choice(available)

    def play_stage(self, run: ActiveRun, node: MapNode) -> StageResult:
        rank = self._rng.random_choice(list(RunRank))
        score = self._rng.random_int(50, 150) * _RANK_SCORE_FACTOR[rank]
        damage = self._rng.random_int(0, self._max_stage_damage)
        damage *= _DAMAGE_FACTOR.get(node.node_type, 1)
        return StageResult(rank=rank, stage_score=score, hp_lost=damage)

    def choose_rest(self, run: ActiveRun) -> RestChoice:
        if run.current_hp * 2 < run.max_hp:
            return RestChoice.HEAL
        return self._rng.random_choice(list(RestChoice))

    def resolve_event(self, run: ActiveRun, node: MapNode) -> EventEffects:
        return self._rng.random_choice(_EVENT_TABLE)

    def choose_perk(
        self,
        run: ActiveRun,
        options: list[PerkDefinition],
    ) -> PerkDefinition | None:
        if not options:
            return None
        return self._rng.random_choice(options)
