"""Run state models -- the active run, cross-run progression, and the
records exchanged with the stage and event collaborators.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from .perks import PerkInstance
from .run_map import RUN_LENGTHS, RunMap, RunRank


class RunStatus(str, Enum):
    """Lifecycle state of the engine's run, derived from HP and depth."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    VICTORY = "VICTORY"
    DEFEAT = "DEFEAT"


class RestChoice(str, Enum):
    """Options offered at a rest node."""

    HEAL = "HEAL"
    """Restore a fraction of max HP."""

    STRENGTHEN = "STRENGTHEN"
    """Permanently raise max HP by a fraction (no heal)."""

    FOCUS = "FOCUS"
    """Boost the score multiplier for the next completions."""


class StageResult(BaseModel):
    """Outcome of one stage, as reported by the stage collaborator."""

    rank: RunRank
    stage_score: float = Field(ge=0)
    hp_lost: float = Field(ge=0)


class EventEffects(BaseModel):
    """Sparse patch applied by an event node.  Absent fields are untouched."""

    hp_change_percent: float | None = None
    """Fraction of max HP to gain (positive) or lose (negative)."""

    score_change: int | None = None
    score_multiplier: float | None = None
    score_multiplier_duration: int | None = None

    reveal_map: bool | None = None
    """Presentation flag; carries no engine semantics."""

    skip_stage: bool | None = None
    """Presentation flag; carries no engine semantics."""


class ProgressionLedger(BaseModel):
    """Cross-run progress: the longest unlocked run length and run count."""

    max_unlocked_run_length: int = RUN_LENGTHS[0]
    completed_runs: int = Field(default=0, ge=0)

    @field_validator("max_unlocked_run_length")
    @classmethod
    def _validate_run_length(cls, v: int) -> int:
        if v not in RUN_LENGTHS:
            raise ValueError(f"{v} is not a supported run length")
        return v


class ActiveRun(BaseModel):
    """Mutable state of the run in progress.

    Only :class:`~abyss_run.sim.dungeon.run_engine.RunEngine` mutates an
    ``ActiveRun``; the validator below re-checks the run invariants whenever
    one is constructed (in particular when loading a saved run).
    """

    run_seed: int
    map: RunMap
    current_node_id: str | None = None
    completed_node_ids: list[str] = Field(default_factory=list)
    """Completed nodes in completion order (append-only)."""

    node_path: list[str] = Field(default_factory=list)
    """Every node the run has moved to, in order.  Ends at ``current_node_id``."""

    current_hp: int
    max_hp: int = Field(ge=0)
    score: int = Field(default=0, ge=0)
    score_multiplier: float = 1.0
    score_multiplier_duration: int = Field(default=0, ge=0)
    """Node completions the current ``score_multiplier`` still applies to."""

    elites_defeated: int = Field(default=0, ge=0)
    events_triggered: int = Field(default=0, ge=0)
    perks: list[PerkInstance] = Field(default_factory=list)
    rewind_uses_remaining: int = Field(default=0, ge=0)
    extra_lives: int = Field(default=0, ge=0)
    started_at: float = 0.0
    """Unix timestamp of when the run began (informational)."""

    @property
    def run_length(self) -> int:
        return self.map.max_depth

    @model_validator(mode="after")
    def _validate_run(self) -> ActiveRun:
        if self.run_seed != self.map.run_seed:
            raise ValueError("run_seed does not match the map's seed")
        if not 0 <= self.current_hp <= self.max_hp:
            raise ValueError(
                f"current_hp {self.current_hp} outside [0, {self.max_hp}]"
            )
        if len(set(self.completed_node_ids)) != len(self.completed_node_ids):
            raise ValueError("completed_node_ids contains duplicates")
        for node_id in self.completed_node_ids:
            if node_id not in self.map.nodes:
                raise ValueError(f"Completed node {node_id!r} is not in the map")
        if self.current_node_id is not None and self.current_node_id not in self.map.nodes:
            raise ValueError(f"Current node {self.current_node_id!r} is not in the map")
        if self.current_node_id is None:
            if self.node_path or self.completed_node_ids:
                raise ValueError("Run has visited nodes but no current node")
        elif not self.node_path or self.node_path[-1] != self.current_node_id:
            raise ValueError("Current node is not the end of node_path")

        # The path starts at a start node and only follows map edges.
        for node_id in self.node_path:
            if node_id not in self.map.nodes:
                raise ValueError(f"Path node {node_id!r} is not in the map")
        if self.node_path and self.node_path[0] not in self.map.start_node_ids:
            raise ValueError(f"Path starts at {self.node_path[0]!r}, not a start node")
        for prev_id, next_id in zip(self.node_path, self.node_path[1:]):
            if next_id not in self.map.nodes[prev_id].connections:
                raise ValueError(f"Path step {prev_id!r} -> {next_id!r} is not an edge")

        # Nodes are completed in the order they were reached.
        remaining = iter(self.node_path)
        if not all(node_id in remaining for node_id in self.completed_node_ids):
            raise ValueError("completed_node_ids does not follow node_path")

        seen_perks: set[str] = set()
        for instance in self.perks:
            if instance.perk_id in seen_perks:
                raise ValueError(f"Perk {instance.perk_id!r} is listed twice")
            seen_perks.add(instance.perk_id)
        return self
