"""Seeded random number generator for deterministic run generation.

Wraps Python's random.Random to provide reproducible randomness.  Each
sub-system (map layout, node types, perk offers, ...) should use a
*forked* RNG so that consuming random values in one system does not
perturb another.

Only ``random()`` of the underlying Mersenne Twister is ever consumed:
its output for an integer seed is stable across interpreter versions and
platforms, whereas helpers such as ``randint`` or ``shuffle`` are not.
Every derived draw below is therefore built on :meth:`GameRNG.random_float`.
"""

from __future__ import annotations

import hashlib
import random
from typing import Sequence, TypeVar

T = TypeVar("T")


def generate_seed() -> int:
    """Return a fresh 32-bit seed drawn from system entropy."""
    return random.SystemRandom().getrandbits(32)


def derive_seed(seed: int, name: str) -> int:
    """Derive a stable 32-bit child seed from ``(seed, name)``."""
    digest = hashlib.sha256(f"{seed}:{name}".encode()).digest()
    return int.from_bytes(digest[:4], "big")


class GameRNG:
    """Deterministic RNG that can be forked into independent sub-streams.

    Parameters
    ----------
    seed:
        Integer seed for the underlying Mersenne Twister.
    """

    def __init__(self, seed: int) -> None:
        self._seed = seed
        self._rng = random.Random(seed)

    # -- public properties ---------------------------------------------------

    @property
    def seed(self) -> int:
        """Return the seed this RNG was initialised with."""
        return self._seed

    # -- core random methods -------------------------------------------------

    def random_float(self) -> float:
        """Return a random float in the half-open interval ``[0.0, 1.0)``."""
        return self._rng.random()

    def random_int(self, low: int, high: int) -> int:
        """Return a random integer *N* such that ``low <= N <= high``."""
        if high < low:
            raise ValueError(f"random_int range is empty: [{low}, {high}]")
        return low + int(self.random_float() * (high - low + 1))

    def random_choice(self, seq: Sequence[T]) -> T:
        """Return a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[int(self.random_float() * len(seq))]

    def weighted_choice(self, items: Sequence[tuple[T, float]]) -> T:
        """Return an item from ``(item, weight)`` pairs, proportional to weight."""
        if not items:
            raise IndexError("Cannot choose from an empty sequence")
        total = sum(weight for _, weight in items)
        roll = self.random_float() * total
        cumulative = 0.0
        for item, weight in items:
            cumulative += weight
            if roll < cumulative:
                return item
        # Rounding can leave roll == total
        return items[-1][0]

    def chance(self, probability: float) -> bool:
        """Return ``True`` with the given *probability*."""
        return self.random_float() < probability

    def shuffle(self, lst: list[T]) -> None:
        """Shuffle *lst* in-place (Fisher-Yates)."""
        for i in range(len(lst) - 1, 0, -1):
            j = int(self.random_float() * (i + 1))
            lst[i], lst[j] = lst[j], lst[i]

    def sample(self, seq: Sequence[T], k: int) -> list[T]:
        """Return *k* distinct elements of *seq* (all of them if *k* is larger)."""
        pool = list(seq)
        picked: list[T] = []
        for _ in range(min(k, len(pool))):
            picked.append(pool.pop(int(self.random_float() * len(pool))))
        return picked

    # -- forking -------------------------------------------------------------

    def fork(self, name: str) -> GameRNG:
        """Create a child RNG whose seed is derived from this RNG's seed and
        *name*.

        The derivation is deterministic: forking with the same *name*
        always produces the same child seed, regardless of how many values
        the parent has already produced.  This lets sub-systems (e.g.
        ``"layout"``, ``"types"``, ``"perks"``) each have their own
        independent random stream.
        """
        return GameRNG(derive_seed(self._seed, name))

    # -- dunder helpers ------------------------------------------------------

    def __repr__(self) -> str:
        return f"GameRNG(seed={self._seed})"
