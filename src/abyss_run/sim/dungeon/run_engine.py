"""Run engine -- the state machine for a single active run plus the
cross-run progression ledger.

States of the engine's run are derived, never stored::

    NOT_STARTED --start_new_run--> IN_PROGRESS --complete_node--> VICTORY
                                               +--(HP reaches 0)--> DEFEAT

``abandon_run`` returns to NOT_STARTED from anywhere, and ``start_new_run``
replaces whatever run exists.  :meth:`RunEngine.is_run_complete` is the
single transition guard; every operation that needs to know whether the run
is over goes through it.

Requests that are not currently legal (selecting an unconnected node,
acquiring a maxed perk, starting a locked run length, operating without a
run, ...) return ``False`` and leave all state untouched.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from pydantic import BaseModel, Field

from abyss_run.ir.perks import PerkDefinition, PerkEffect, PerkInstance
from abyss_run.ir.run_map import (
    RUN_LENGTHS,
    MapNode,
    NodeType,
    RunRank,
    get_next_run_length,
)
from abyss_run.ir.run_state import (
    ActiveRun,
    EventEffects,
    ProgressionLedger,
    RestChoice,
    RunStatus,
)
from abyss_run.sim.core.rng import derive_seed, generate_seed
from abyss_run.sim.dungeon.map_gen import InvalidRunLength, MapGenerator
from abyss_run.sim.dungeon.perk_catalog import PerkCatalog

logger = logging.getLogger(__name__)


class RunConfig(BaseModel):
    """Tunable numbers for runs."""

    starting_hp: int = Field(default=100, ge=1)
    heal_percent: float = 0.30
    """Fraction of max HP restored by a HEAL rest."""

    strengthen_percent: float = 0.10
    """Fraction of max HP added by a STRENGTHEN rest."""

    focus_multiplier: float = 1.5
    focus_duration: int = Field(default=1, ge=1)
    """Node completions a FOCUS multiplier lasts for."""

    perk_option_count: int = Field(default=3, ge=1)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# Products like 100 * -0.1 land a hair past the integer; trim before rounding.
def _floor(value: float) -> int:
    return math.floor(round(value, 9))


def _ceil(value: float) -> int:
    return math.ceil(round(value, 9))


class RunEngine:
    """Drives runs: map generation, node traversal, HP/score, perks, unlocks.

    Parameters
    ----------
    catalog:
        Perk catalog used for offers and effects.
    config:
        Run tuning values.
    ledger:
        Progression carried over from earlier sessions.
    active_run:
        A previously saved run to resume.
    multiplier_source:
        Returns the external HP multiplier, read once per ``start_new_run``.
    seed_source:
        Returns a fresh run seed.
    """

    def __init__(
        self,
        catalog: PerkCatalog | None = None,
        config: RunConfig | None = None,
        ledger: ProgressionLedger | None = None,
        active_run: ActiveRun | None = None,
        multiplier_source: Callable[[], float] | None = None,
        seed_source: Callable[[], int] = generate_seed,
    ) -> None:
        self.catalog = catalog or PerkCatalog()
        self.config = config or RunConfig()
        self.ledger = ledger or ProgressionLedger()
        self.active_run = active_run
        self.multiplier_source = multiplier_source or (lambda: 1.0)
        self.seed_source = seed_source
        self.map_generator = MapGenerator()

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def start_new_run(self, length: int | None = None, seed: int | None = None) -> bool:
        """Begin a new run, replacing any active one.

        *length* defaults to the longest unlocked length.  Returns ``False``
        if that length is still locked.  *seed* replays a specific map;
        by default a fresh seed is drawn.

        Raises
        ------
        InvalidRunLength
            If *length* is not one of ``RUN_LENGTHS``.
        """
        run_length = length if length is not None else self.ledger.max_unlocked_run_length
        if run_length not in RUN_LENGTHS:
            raise InvalidRunLength(run_length)
        if not self.is_run_length_unlocked(run_length):
            logger.warning("Run length %d not unlocked yet", run_length)
            return False

        run_seed = seed if seed is not None else self.seed_source()
        run_map = self.map_generator.generate(run_seed, run_length)

        multiplier = max(0.0, self.multiplier_source())
        max_hp = max(1, round_half_up(round(self.config.starting_hp * multiplier, 9)))

        self.active_run = ActiveRun(
            run_seed=run_seed,
            map=run_map,
            current_hp=max_hp,
            max_hp=max_hp,
            started_at=time.time(),
        )
        logger.info("Started run seed=%d length=%d hp=%d", run_seed, run_length, max_hp)
        return True

    def abandon_run(self) -> None:
        """Drop the active run without touching progression."""
        if self.active_run is not None:
            logger.info("Abandoned run seed=%d", self.active_run.run_seed)
        self.active_run = None

    def reset_progress(self) -> None:
        """Forget all progression and the active run."""
        self.ledger = ProgressionLedger()
        self.active_run = None

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def select_node(self, node_id: str) -> bool:
        """Move to *node_id* if it is reachable from the current position."""
        run = self.active_run
        if run is None:
            return False
        if self.is_run_complete():
            logger.warning("Run is over; cannot select %s", node_id)
            return False
        if node_id not in run.map.nodes:
            logger.warning("Node %s not found", node_id)
            return False

        if run.current_node_id is None:
            if node_id not in run.map.start_node_ids:
                logger.warning("Node %s is not a valid start node", node_id)
                return False
        else:
            current = run.map.nodes[run.current_node_id]
            if node_id not in current.connections:
                logger.warning("Node %s is not connected from %s", node_id, current.id)
                return False

        if node_id in run.completed_node_ids:
            logger.warning("Node %s already completed", node_id)
            return False

        run.current_node_id = node_id
        run.node_path.append(node_id)
        return True

    def complete_node(
        self,
        rank: RunRank | None,
        stage_score: float,
        hp_lost: float,
    ) -> bool:
        """Record the result of the current node's stage.

        Applies, in order: mark the node visited, add the multiplied score,
        subtract HP, append to the completed list, tick the score multiplier.
        If that ends the run with the player alive, progression advances.
        """
        run = self.active_run
        if run is None or run.current_node_id is None:
            return False
        if run.current_node_id in run.completed_node_ids:
            logger.warning("Node %s already completed", run.current_node_id)
            return False
        if self.is_run_complete():
            return False

        node_id = run.current_node_id
        node = run.map.nodes[node_id]

        run.map = run.map.with_node_completed(node_id, rank)
        run.score += _floor(max(0.0, stage_score) * run.score_multiplier)
        run.current_hp = max(0, run.current_hp - _ceil(max(0.0, hp_lost)))
        run.completed_node_ids.append(node_id)

        if run.score_multiplier_duration > 0:
            run.score_multiplier_duration -= 1
            if run.score_multiplier_duration == 0:
                run.score_multiplier = 1.0

        if node.node_type == NodeType.ELITE and self.is_player_alive():
            run.elites_defeated += 1

        if self.is_run_complete():
            self._on_run_complete()
        return True

    def _on_run_complete(self) -> None:
        run = self.active_run
        assert run is not None
        if not self.is_player_alive():
            logger.info("Run seed=%d ended in defeat, score=%d", run.run_seed, run.score)
            return

        self.ledger.completed_runs += 1
        if run.run_length == self.ledger.max_unlocked_run_length:
            next_length = get_next_run_length(run.run_length)
            if next_length is not None:
                self.ledger.max_unlocked_run_length = next_length
                logger.info("Unlocked run length %d", next_length)
        logger.info("Run seed=%d won, score=%d", run.run_seed, run.score)

    # ------------------------------------------------------------------
    # Rest sites, events, HP
    # ------------------------------------------------------------------

    def apply_rest_choice(self, choice: RestChoice) -> bool:
        run = self.active_run
        if run is None:
            return False

        if choice == RestChoice.HEAL:
            heal_amount = _floor(run.max_hp * self.config.heal_percent)
            run.current_hp = min(run.max_hp, run.current_hp + heal_amount)
        elif choice == RestChoice.STRENGTHEN:
            run.max_hp += _floor(run.max_hp * self.config.strengthen_percent)
        elif choice == RestChoice.FOCUS:
            run.score_multiplier = self.config.focus_multiplier
            run.score_multiplier_duration = self.config.focus_duration
        else:
            logger.warning("Unknown rest choice %r", choice)
            return False
        return True

    def apply_event_effects(self, effects: EventEffects) -> bool:
        """Apply each present field of *effects* independently."""
        run = self.active_run
        if run is None:
            return False

        if effects.hp_change_percent is not None:
            change = _floor(run.max_hp * effects.hp_change_percent)
            run.current_hp = max(0, min(run.max_hp, run.current_hp + change))

        if effects.score_change is not None:
            run.score = max(0, run.score + effects.score_change)

        if effects.score_multiplier is not None:
            run.score_multiplier = effects.score_multiplier
            run.score_multiplier_duration = max(0, effects.score_multiplier_duration or 0)

        if effects.reveal_map or effects.skip_stage:
            logger.debug(
                "Event flags for presentation: reveal_map=%s skip_stage=%s",
                effects.reveal_map, effects.skip_stage,
            )

        run.events_triggered += 1
        return True

    def heal_hp(self, amount: float) -> bool:
        """Heal *amount* HP, capped at max HP."""
        run = self.active_run
        if run is None or amount < 0:
            return False
        run.current_hp = min(run.max_hp, run.current_hp + _floor(amount))
        return True

    def damage_hp(self, amount: float) -> bool:
        """Lose *amount* HP, floored at 0."""
        run = self.active_run
        if run is None or amount < 0:
            return False
        run.current_hp = max(0, run.current_hp - _ceil(amount))
        return True

    # ------------------------------------------------------------------
    # Perks
    # ------------------------------------------------------------------

    def get_perk_options(self, count: int | None = None) -> list[PerkDefinition]:
        """Perks offered at the current reward step.

        Seeded from the run seed and the number of completed nodes, so the
        same step always offers the same perks.
        """
        run = self.active_run
        if run is None:
            return []
        seed = derive_seed(run.run_seed, f"perks:{len(run.completed_node_ids)}")
        return self.catalog.select_options(
            run.perks, seed, count if count is not None else self.config.perk_option_count,
        )

    def select_perk(self, perk_id: str) -> bool:
        """Acquire one stack of *perk_id* and apply its one-shot bonuses."""
        run = self.active_run
        if run is None:
            return False
        definition = self.catalog.get(perk_id)
        if definition is None:
            logger.warning("Unknown perk %s", perk_id)
            return False

        instance = next((p for p in run.perks if p.perk_id == perk_id), None)
        if instance is not None and instance.stacks >= definition.max_stacks:
            logger.warning("Perk %s already at max stacks", perk_id)
            return False

        if instance is None:
            depth = 0
            if run.current_node_id is not None:
                depth = run.map.nodes[run.current_node_id].depth
            run.perks.append(PerkInstance(perk_id=perk_id, acquired_at_depth=depth))
        else:
            instance.stacks += 1

        # Only the new stack's bonuses; earlier stacks are already applied.
        delta = self.catalog.stack_delta(perk_id)
        if delta.max_hp_bonus:
            run.max_hp = max(0, run.max_hp + delta.max_hp_bonus)
            run.current_hp = max(0, min(run.max_hp, run.current_hp + delta.max_hp_bonus))
        run.extra_lives += delta.extra_lives
        run.rewind_uses_remaining += delta.rewind_uses
        return True

    def use_rewind(self) -> bool:
        """Spend one rewind charge.  The undo itself is up to the caller."""
        run = self.active_run
        if run is None or run.rewind_uses_remaining <= 0:
            return False
        run.rewind_uses_remaining -= 1
        return True

    def get_perk_effects(self) -> PerkEffect:
        if self.active_run is None:
            return PerkEffect()
        return self.catalog.combined_effects(self.active_run.perks)

    def get_perks(self) -> list[PerkInstance]:
        if self.active_run is None:
            return []
        return [p.model_copy() for p in self.active_run.perks]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current_node(self) -> MapNode | None:
        run = self.active_run
        if run is None or run.current_node_id is None:
            return None
        return run.map.nodes[run.current_node_id]

    def get_available_nodes(self) -> list[MapNode]:
        """Nodes the player may select next."""
        run = self.active_run
        if run is None or self.is_run_complete():
            return []
        if run.current_node_id is None:
            candidates = run.map.start_node_ids
        else:
            candidates = run.map.nodes[run.current_node_id].connections
        completed = set(run.completed_node_ids)
        return [run.map.nodes[n] for n in candidates if n not in completed]

    def is_run_complete(self) -> bool:
        """True once the player is dead or a boss-depth node is completed."""
        run = self.active_run
        if run is None:
            return False
        if run.current_hp <= 0:
            return True
        max_depth = run.map.max_depth
        return any(run.map.nodes[n].depth == max_depth for n in run.completed_node_ids)

    def is_player_alive(self) -> bool:
        return self.active_run is not None and self.active_run.current_hp > 0

    def is_run_length_unlocked(self, length: int) -> bool:
        return length <= self.ledger.max_unlocked_run_length

    def run_status(self) -> RunStatus:
        if self.active_run is None:
            return RunStatus.NOT_STARTED
        if not self.is_run_complete():
            return RunStatus.IN_PROGRESS
        return RunStatus.VICTORY if self.is_player_alive() else RunStatus.DEFEAT
