"""Data model for the run engine.

Maps, perks, and run state are Pydantic models that serialise cleanly to
and from JSON, so a saved run can be reloaded without regenerating its map.
"""

from .perks import (
    EFFECT_RULES,
    CombineRule,
    PerkCategory,
    PerkDefinition,
    PerkEffect,
    PerkInstance,
    PerkRarity,
)
from .run_map import (
    RUN_LENGTHS,
    MapNode,
    NodeType,
    RunMap,
    RunRank,
    get_next_run_length,
    make_node_id,
    parse_node_id,
)
from .run_state import (
    ActiveRun,
    EventEffects,
    ProgressionLedger,
    RestChoice,
    RunStatus,
    StageResult,
)

__all__ = [
    # perks
    "EFFECT_RULES",
    "CombineRule",
    "PerkCategory",
    "PerkDefinition",
    "PerkEffect",
    "PerkInstance",
    "PerkRarity",
    # run_map
    "RUN_LENGTHS",
    "MapNode",
    "NodeType",
    "RunMap",
    "RunRank",
    "get_next_run_length",
    "make_node_id",
    "parse_node_id",
    # run_state
    "ActiveRun",
    "EventEffects",
    "ProgressionLedger",
    "RestChoice",
    "RunStatus",
    "StageResult",
]
