"""Core simulation primitives for the run engine."""

from abyss_run.sim.core.rng import GameRNG, derive_seed, generate_seed

__all__ = [
    "GameRNG",
    "derive_seed",
    "generate_seed",
]
