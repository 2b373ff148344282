"""Dungeon module -- map generation, perks, the run engine, and persistence."""

from abyss_run.sim.dungeon.map_gen import InvalidRunLength, MapGenerator
from abyss_run.sim.dungeon.perk_catalog import DEFAULT_PERKS, RARITY_WEIGHTS, PerkCatalog
from abyss_run.sim.dungeon.persistence import (
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    load_engine,
    save_engine,
)
from abyss_run.sim.dungeon.run_engine import RunConfig, RunEngine

__all__ = [
    "DEFAULT_PERKS",
    "InvalidRunLength",
    "JsonFileStore",
    "KeyValueStore",
    "MapGenerator",
    "MemoryStore",
    "PerkCatalog",
    "RARITY_WEIGHTS",
    "RunConfig",
    "RunEngine",
    "load_engine",
    "save_engine",
]
