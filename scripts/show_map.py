"""Print the map a seed generates, depth by depth.

Usage:
    uv run python scripts/show_map.py --seed 42 [--length 10]
"""

from __future__ import annotations

import argparse

from abyss_run.ir.run_map import RUN_LENGTHS
from abyss_run.sim.dungeon.map_gen import MapGenerator


def main() -> None:
    parser = argparse.ArgumentParser(description="Show a generated run map")
    parser.add_argument("--seed", type=int, required=True, help="Run seed")
    parser.add_argument("--length", type=int, default=10, choices=RUN_LENGTHS, help="Run length")
    args = parser.parse_args()

    run_map = MapGenerator().generate(args.seed, args.length)
    print(f"Map seed={run_map.run_seed} length={run_map.max_depth}")
    for depth in range(run_map.max_depth + 1):
        cells = []
        for node in run_map.nodes_at_depth(depth):
            targets = ",".join(node.connections) or "-"
            cells.append(f"{node.id}:{node.node_type.value.lower()}->{targets}")
        print(f"{depth:>3}  " + "  ".join(cells))


if __name__ == "__main__":
    main()
