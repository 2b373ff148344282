"""Run map definitions -- the layered encounter graph of a single run."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

RUN_LENGTHS: tuple[int, ...] = (10, 20, 30, 40, 50)
"""Supported run lengths, ascending.  Longer runs unlock progressively."""


def get_next_run_length(current: int) -> int | None:
    """Return the run length after *current*, or ``None`` at the ceiling."""
    if current not in RUN_LENGTHS:
        return None
    index = RUN_LENGTHS.index(current)
    if index == len(RUN_LENGTHS) - 1:
        return None
    return RUN_LENGTHS[index + 1]


class NodeType(str, Enum):
    """What kind of encounter a map node holds."""

    COMBAT = "COMBAT"
    ELITE = "ELITE"
    REST = "REST"
    EVENT = "EVENT"
    BOSS = "BOSS"


class RunRank(str, Enum):
    """Grade awarded by the stage collaborator when a node is completed."""

    S = "S"
    A = "A"
    B = "B"
    C = "C"
    D = "D"


def make_node_id(depth: int, index: int) -> str:
    return f"{depth}-{index}"


def parse_node_id(node_id: str) -> tuple[int, int]:
    """Split a node id into ``(depth, index)``.

    Raises ``ValueError`` for ids that do not follow the ``"<depth>-<index>"``
    format.
    """
    depth_str, sep, index_str = node_id.partition("-")
    if not sep or not depth_str.isdigit() or not index_str.isdigit():
        raise ValueError(f"Malformed node id {node_id!r}")
    return int(depth_str), int(index_str)


class MapNode(BaseModel):
    """A single encounter slot in the run map."""

    model_config = ConfigDict(frozen=True)

    id: str
    depth: int = Field(ge=0)
    index: int = Field(ge=0)
    node_type: NodeType
    connections: tuple[str, ...] = ()
    """Ids of the nodes one depth deeper reachable from here (sorted)."""

    visited: bool = False
    rank: RunRank | None = None
    stage_seed: int = 0
    """Seed handed to the stage collaborator for this node's encounter."""


class RunMap(BaseModel):
    """The generated graph for one run.

    Frozen: the only change a map ever sees after generation is a node being
    marked visited, which goes through :meth:`with_node_completed` and yields
    a new map.
    """

    model_config = ConfigDict(frozen=True)

    run_seed: int
    max_depth: int
    nodes: dict[str, MapNode]
    start_node_ids: tuple[str, ...]

    @model_validator(mode="after")
    def _validate_graph(self) -> RunMap:
        if self.max_depth not in RUN_LENGTHS:
            raise ValueError(f"max_depth {self.max_depth} is not a supported run length")

        incoming: dict[str, int] = {node_id: 0 for node_id in self.nodes}
        bosses = 0
        for key, node in self.nodes.items():
            if key != node.id:
                raise ValueError(f"Node stored under {key!r} has id {node.id!r}")
            if parse_node_id(node.id) != (node.depth, node.index):
                raise ValueError(f"Node id {node.id!r} does not match its depth/index")
            if node.depth > self.max_depth:
                raise ValueError(f"Node {node.id!r} is deeper than max_depth")

            if node.node_type == NodeType.BOSS:
                bosses += 1
                if node.depth != self.max_depth:
                    raise ValueError(f"Boss node {node.id!r} is not at max_depth")
                if node.connections:
                    raise ValueError(f"Boss node {node.id!r} has outgoing connections")
            elif not node.connections:
                raise ValueError(f"Node {node.id!r} is a dead end")

            for target_id in node.connections:
                target = self.nodes.get(target_id)
                if target is None:
                    raise ValueError(f"Node {node.id!r} connects to unknown node {target_id!r}")
                if target.depth != node.depth + 1:
                    raise ValueError(
                        f"Connection {node.id!r} -> {target_id!r} does not advance one depth"
                    )
                incoming[target_id] += 1

        if bosses != 1:
            raise ValueError(f"Expected exactly one boss node, found {bosses}")

        for node_id, count in incoming.items():
            if count == 0 and self.nodes[node_id].depth > 0:
                raise ValueError(f"Node {node_id!r} is unreachable")

        if not self.start_node_ids:
            raise ValueError("Map has no start nodes")
        for node_id in self.start_node_ids:
            node = self.nodes.get(node_id)
            if node is None or node.depth != 0:
                raise ValueError(f"Start node {node_id!r} is not a depth-0 node")
        return self

    # -- queries -------------------------------------------------------------

    def nodes_at_depth(self, depth: int) -> list[MapNode]:
        """Return the nodes at *depth*, ordered by index."""
        return sorted(
            (n for n in self.nodes.values() if n.depth == depth),
            key=lambda n: n.index,
        )

    def in_degree(self) -> dict[str, int]:
        """Map every node id to its number of incoming connections."""
        counts = {node_id: 0 for node_id in self.nodes}
        for node in self.nodes.values():
            for target_id in node.connections:
                counts[target_id] += 1
        return counts

    @property
    def boss_node(self) -> MapNode:
        return next(n for n in self.nodes.values() if n.node_type == NodeType.BOSS)

    # -- updates -------------------------------------------------------------

    def with_node_completed(self, node_id: str, rank: RunRank | None) -> RunMap:
        """Return a copy of this map with *node_id* marked visited."""
        nodes = dict(self.nodes)
        nodes[node_id] = nodes[node_id].model_copy(update={"visited": True, "rank": rank})
        return self.model_copy(update={"nodes": nodes})
