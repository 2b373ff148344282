"""Simulate many runs with the random agent and print a summary.

Usage:
    uv run python scripts/simulate_runs.py [--runs 1000] [--length 10] [--seed 42]
"""

from __future__ import annotations

import argparse
import time
from collections import Counter

from abyss_run.ir.run_map import RUN_LENGTHS
from abyss_run.sim.runner import BatchRunner


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate random-agent runs")
    parser.add_argument("--runs", type=int, default=1000, help="Number of runs")
    parser.add_argument("--length", type=int, default=10, choices=RUN_LENGTHS, help="Run length")
    parser.add_argument("--seed", type=int, default=42, help="Base seed")
    parser.add_argument("--parallel", action="store_true", help="Use a process pool")
    args = parser.parse_args()

    print(f"Running {args.runs:,} runs of length {args.length}...")
    t0 = time.perf_counter()
    results = BatchRunner().run_batch(
        args.runs, length=args.length, base_seed=args.seed, parallel=args.parallel,
    )
    elapsed = time.perf_counter() - t0
    print(f"Done in {elapsed:.1f}s")

    wins = sum(1 for r in results if r.final_result == "win")
    avg_score = sum(r.score for r in results) / len(results)
    avg_depth = sum(r.depth_reached for r in results) / len(results)
    perk_counts = Counter(p for r in results for p in r.perks_acquired)

    print()
    print(f"Win rate:        {wins / len(results) * 100:.1f}%")
    print(f"Average score:   {avg_score:.0f}")
    print(f"Average depth:   {avg_depth:.1f} / {args.length}")
    print("Most taken perks:")
    for perk_id, count in perk_counts.most_common(5):
        print(f"  {perk_id:<14} {count}")


if __name__ == "__main__":
    main()
