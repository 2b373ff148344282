"""Shared fixtures and helpers for simulation tests."""

from __future__ import annotations

import pytest

from abyss_run.ir.run_map import RUN_LENGTHS, RunRank
from abyss_run.sim.dungeon.run_engine import RunEngine


@pytest.fixture
def engine() -> RunEngine:
    """Fresh engine whose runs always use seed 42."""
    return RunEngine(seed_source=lambda: 42)


@pytest.fixture
def unlocked_engine() -> RunEngine:
    """Engine with every run length unlocked."""
    eng = RunEngine(seed_source=lambda: 42)
    eng.ledger.max_unlocked_run_length = RUN_LENGTHS[-1]
    return eng


def advance(engine: RunEngine, stage_score: float = 100, hp_lost: float = 0) -> str:
    """Select the first available node and complete it.  Returns its id."""
    node = engine.get_available_nodes()[0]
    assert engine.select_node(node.id)
    assert engine.complete_node(RunRank.A, stage_score, hp_lost)
    return node.id


def walk_to_boss(engine: RunEngine, hp_lost: float = 0) -> None:
    """Play the active run until it is complete."""
    while not engine.is_run_complete():
        advance(engine, hp_lost=hp_lost)
