"""Telemetry data models for per-run statistics.

``RunTelemetry`` captures what a batch analysis needs about a finished run
without keeping the whole run state: seed, outcome, score, the HP curve,
and which nodes and perks the run went through.

A plain ``dataclass`` (not a Pydantic model) to keep collection cheap
during batch runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RunTelemetry:
    """Stats from one simulated run.

    Attributes
    ----------
    seed:
        The run seed (reproduces the map).
    run_length:
        Depth of the boss node.
    final_result:
        ``"win"`` if the boss depth was cleared alive, ``"loss"`` otherwise.
    depth_reached:
        Depth of the last completed node (-1 if none).
    score:
        Final run score.
    hp_at_each_depth:
        Player HP after each completed node.
    node_types_visited:
        Node type names in visit order.
    perks_acquired:
        Perk ids in acquisition order.
    """

    seed: int
    run_length: int
    final_result: str = "loss"  # "win" or "loss"
    depth_reached: int = -1
    score: int = 0
    hp_at_each_depth: list[int] = field(default_factory=list)
    node_types_visited: list[str] = field(default_factory=list)
    perks_acquired: list[str] = field(default_factory=list)
    elites_defeated: int = 0
    events_triggered: int = 0
