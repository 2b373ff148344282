"""Base class for agents that play through runs.

The run simulator calls these methods at each decision point: which node
to enter, how a stage plays out, what to do at rest sites and events, and
which perk to take.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from abyss_run.ir.perks import PerkDefinition
    from abyss_run.ir.run_map import MapNode
    from abyss_run.ir.run_state import ActiveRun, EventEffects, RestChoice, StageResult


class PlayAgent(ABC):
    """Base class for agents that drive a run."""

    @abstractmethod
    def choose_node(self, run: ActiveRun, available: list[MapNode]) -> MapNode:
        """Pick the next node from a non-empty list of selectable nodes."""

    @abstractmethod
    def play_stage(self, run: ActiveRun, node: MapNode) -> StageResult:
        """Stand in for the stage collaborator and report the stage outcome.

        Called for combat, elite, and boss nodes.
        """

    @abstractmethod
    def choose_rest(self, run: ActiveRun) -> RestChoice:
        """Choose what to do at a rest node."""

    @abstractmethod
    def resolve_event(self, run: ActiveRun, node: MapNode) -> EventEffects:
        """Produce the effects of an event node."""

    @abstractmethod
    def choose_perk(
        self,
        run: ActiveRun,
        options: list[PerkDefinition],
    ) -> PerkDefinition | None:
        """Choose a perk from the reward screen (or ``None`` to skip)."""
