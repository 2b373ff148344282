"""Map generator for runs.

Generates a layered directed acyclic graph from a seed and a run length:
- Depth 0: one start node (combat or event)
- Depth 1: two nodes
- Depths 2 .. max-1: 2-3 nodes each
- Depth max-1: rest sites only (campfire before the boss)
- Depth max: a single boss node

Node types for free depths are drawn from a weighted pool
(combat 50%, event 22%, elite 14%, rest 14%).

Constraints:
- No elites before depth 2, no rests at depth 0
- No two consecutive depths containing an elite, or containing a rest
- Every node connects to 1-3 nodes one depth deeper, and every node below
  depth 0 has at least one incoming connection
"""

from __future__ import annotations

import logging

from abyss_run.ir.run_map import (
    RUN_LENGTHS,
    MapNode,
    NodeType,
    RunMap,
    make_node_id,
)
from abyss_run.sim.core.rng import GameRNG, derive_seed

logger = logging.getLogger(__name__)

MAX_WIDTH = 3
MAX_CONNECTIONS = 3
ELITE_MIN_DEPTH = 2

# Weighted pool for free depths (weights sum to 100)
_RANDOM_WEIGHTS: list[tuple[NodeType, int]] = [
    (NodeType.COMBAT, 50),
    (NodeType.EVENT, 22),
    (NodeType.ELITE, 14),
    (NodeType.REST, 14),
]

# Node types that cannot appear on consecutive depths
_NO_CONSECUTIVE = {NodeType.ELITE, NodeType.REST}


class InvalidRunLength(ValueError):
    """Raised when a map is requested for an unsupported run length."""

    def __init__(self, length: int) -> None:
        super().__init__(
            f"Unsupported run length {length}; expected one of {RUN_LENGTHS}"
        )
        self.length = length


class MapGenerator:
    """Generates the layered run map for a seed and run length."""

    def generate(self, seed: int, length: int) -> RunMap:
        """Generate the map for a run of *length* depths.

        The result is a pure function of ``(seed, length)``: calling this
        twice with the same arguments yields identical maps.
        """
        if length not in RUN_LENGTHS:
            raise InvalidRunLength(length)

        rng = GameRNG(seed)
        layout_rng = rng.fork("layout")
        type_rng = rng.fork("types")

        widths = self._width_schedule(layout_rng, length)
        types = self._assign_types(type_rng, widths)
        connections = self._connect(layout_rng, widths)

        nodes: dict[str, MapNode] = {}
        for depth, width in enumerate(widths):
            for index in range(width):
                node_id = make_node_id(depth, index)
                nodes[node_id] = MapNode(
                    id=node_id,
                    depth=depth,
                    index=index,
                    node_type=types[depth][index],
                    connections=tuple(
                        make_node_id(depth + 1, j)
                        for j in sorted(connections[depth][index])
                    ),
                    stage_seed=derive_seed(seed, f"stage:{node_id}"),
                )

        run_map = RunMap(
            run_seed=seed,
            max_depth=length,
            nodes=nodes,
            start_node_ids=tuple(n.id for n in nodes.values() if n.depth == 0),
        )
        logger.debug(
            "Generated map seed=%d length=%d nodes=%d", seed, length, len(nodes),
        )
        return run_map

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _width_schedule(self, rng: GameRNG, length: int) -> list[int]:
        """Number of nodes at each depth ``0..length``."""
        widths = [1, 2]
        for _ in range(2, length):
            widths.append(rng.random_int(2, MAX_WIDTH))
        widths.append(1)
        return widths

    def _connect(self, rng: GameRNG, widths: list[int]) -> list[list[set[int]]]:
        """Wire every depth to the next.

        ``result[d][i]`` is the set of indices at depth ``d + 1`` that node
        ``(d, i)`` connects to.  The boss depth gets empty sets.
        """
        result: list[list[set[int]]] = []
        for depth, width in enumerate(widths):
            if depth == len(widths) - 1:
                result.append([set() for _ in range(width)])
                break

            next_width = widths[depth + 1]
            edges: list[set[int]] = []
            for index in range(width):
                window = self._window(index, width, next_width)
                k = rng.random_int(1, min(MAX_CONNECTIONS, len(window)))
                edges.append(set(rng.sample(window, k)))

            # Repair pass: every deeper node needs an incoming edge
            for target in range(next_width):
                if not any(target in targets for targets in edges):
                    source = rng.random_int(0, width - 1)
                    edges[source].add(target)

            result.append(edges)
        return result

    @staticmethod
    def _window(index: int, width: int, next_width: int) -> list[int]:
        """Indices at the next depth close to this node's relative position."""
        if width > 1:
            position = index * (next_width - 1) / (width - 1)
        else:
            position = (next_width - 1) / 2
        return [j for j in range(next_width) if abs(j - position) <= 1]

    # ------------------------------------------------------------------
    # Node types
    # ------------------------------------------------------------------

    def _assign_types(
        self, rng: GameRNG, widths: list[int],
    ) -> list[list[NodeType]]:
        max_depth = len(widths) - 1
        campfire_depth = max_depth - 1
        types: list[list[NodeType]] = []

        for depth, width in enumerate(widths):
            if depth == max_depth:
                types.append([NodeType.BOSS])
                continue
            if depth == campfire_depth:
                types.append([NodeType.REST] * width)
                continue

            prev_types = set(types[-1]) if types else set()
            next_fixed = NodeType.REST if depth + 1 == campfire_depth else None
            types.append([
                self._roll_node_type(rng, depth, prev_types, next_fixed)
                for _ in range(width)
            ])
        return types

    def _roll_node_type(
        self,
        rng: GameRNG,
        depth: int,
        prev_types: set[NodeType],
        next_fixed: NodeType | None = None,
    ) -> NodeType:
        """Roll a weighted random node type with constraints."""
        available: list[tuple[NodeType, int]] = []
        for node_type, weight in _RANDOM_WEIGHTS:
            if depth == 0 and node_type == NodeType.REST:
                continue
            if depth < ELITE_MIN_DEPTH and node_type == NodeType.ELITE:
                continue
            # No consecutive elite/rest depths (check previous)
            if node_type in _NO_CONSECUTIVE and node_type in prev_types:
                continue
            # No consecutive with next fixed depth
            if node_type == next_fixed and next_fixed in _NO_CONSECUTIVE:
                continue
            available.append((node_type, weight))

        return rng.weighted_choice(available)
