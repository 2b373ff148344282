"""Run simulation -- drives the run engine with a play agent.

Provides two classes:

- **RunSimulator**: plays a single run to completion through the public
  :class:`RunEngine` operations.
- **BatchRunner**: orchestrates many simulated runs (optionally in parallel).
"""

from __future__ import annotations

import inspect
import logging
import multiprocessing

from abyss_run.ir.run_map import RUN_LENGTHS, NodeType
from abyss_run.ir.run_state import RunStatus
from abyss_run.sim.core.rng import GameRNG
from abyss_run.sim.dungeon.run_engine import RunConfig, RunEngine
from abyss_run.sim.play_agents.base import PlayAgent
from abyss_run.sim.play_agents.random_agent import RandomAgent
from abyss_run.sim.telemetry import RunTelemetry

logger = logging.getLogger(__name__)

_REWARD_NODES = {NodeType.COMBAT, NodeType.ELITE}


class RunSimulator:
    """Plays one run through a :class:`RunEngine`.

    Parameters
    ----------
    engine:
        The engine to drive.  Its ledger is updated as runs complete.
    agent:
        The agent making decisions.
    """

    def __init__(self, engine: RunEngine, agent: PlayAgent) -> None:
        self.engine = engine
        self.agent = agent

    def run(self, length: int, seed: int) -> RunTelemetry:
        """Play a run of *length* from *seed* and return its telemetry.

        The run length must already be unlocked on the engine's ledger.
        """
        engine = self.engine
        if not engine.start_new_run(length, seed=seed):
            raise ValueError(f"Run length {length} is locked")

        telemetry = RunTelemetry(seed=seed, run_length=length)
        while not engine.is_run_complete():
            run = engine.active_run
            available = engine.get_available_nodes()
            if not available:
                # Unreachable for a valid map: every non-boss node has an exit
                logger.warning("Run seed=%d stuck with no available nodes", seed)
                break

            node = self.agent.choose_node(run, available)
            engine.select_node(node.id)
            telemetry.node_types_visited.append(node.node_type.value)

            if node.node_type == NodeType.REST:
                engine.apply_rest_choice(self.agent.choose_rest(run))
                engine.complete_node(None, 0, 0)
            elif node.node_type == NodeType.EVENT:
                engine.apply_event_effects(self.agent.resolve_event(run, node))
                engine.complete_node(None, 0, 0)
            else:
                result = self.agent.play_stage(run, node)
                engine.complete_node(result.rank, result.stage_score, result.hp_lost)
                if node.node_type in _REWARD_NODES and engine.is_player_alive():
                    self._reward(telemetry)

            telemetry.hp_at_each_depth.append(run.current_hp)
            telemetry.depth_reached = node.depth

        run = engine.active_run
        telemetry.final_result = "win" if engine.run_status() == RunStatus.VICTORY else "loss"
        telemetry.score = run.score
        telemetry.elites_defeated = run.elites_defeated
        telemetry.events_triggered = run.events_triggered
        return telemetry

    def _reward(self, telemetry: RunTelemetry) -> None:
        run = self.engine.active_run
        options = self.engine.get_perk_options()
        chosen = self.agent.choose_perk(run, options)
        if chosen is not None and self.engine.select_perk(chosen.id):
            telemetry.perks_acquired.append(chosen.id)


def _make_agent(agent_class: type[PlayAgent], seed: int) -> PlayAgent:
    """Build an agent, seeding it when its constructor takes ``rng``."""
    agent_rng = GameRNG(seed).fork("agent")
    if "rng" in inspect.signature(agent_class.__init__).parameters:
        return agent_class(rng=agent_rng)  # type: ignore[call-arg]
    return agent_class()


def _run_single(
    agent_class: type[PlayAgent],
    length: int,
    seed: int,
    config: RunConfig | None = None,
) -> RunTelemetry:
    """Play one run on a fresh engine with every length unlocked."""
    engine = RunEngine(config=config)
    engine.ledger.max_unlocked_run_length = RUN_LENGTHS[-1]
    simulator = RunSimulator(engine, _make_agent(agent_class, seed))
    return simulator.run(length, seed)


def _worker_run_single(args: tuple[type[PlayAgent], int, int, RunConfig | None]) -> RunTelemetry:
    """Top-level wrapper so ``multiprocessing`` can pickle the call."""
    return _run_single(*args)


class BatchRunner:
    """Runs many simulated runs, optionally in parallel."""

    def __init__(
        self,
        agent_class: type[PlayAgent] = RandomAgent,
        config: RunConfig | None = None,
    ) -> None:
        self.agent_class = agent_class
        self.config = config

    def run_batch(
        self,
        n_runs: int,
        length: int = RUN_LENGTHS[0],
        base_seed: int = 42,
        parallel: bool = False,
    ) -> list[RunTelemetry]:
        """Run *n_runs* runs of *length* with seeds ``base_seed + i``."""
        seeds = [base_seed + i for i in range(n_runs)]

        if parallel and n_runs > 1:
            return self._run_parallel(seeds, length)
        return [
            _run_single(self.agent_class, length, seed, self.config)
            for seed in seeds
        ]

    def _run_parallel(self, seeds: list[int], length: int) -> list[RunTelemetry]:
        work_items = [(self.agent_class, length, seed, self.config) for seed in seeds]
        n_workers = min(len(seeds), multiprocessing.cpu_count() or 1)

        with multiprocessing.Pool(processes=n_workers) as pool:
            results = pool.map(_worker_run_single, work_items)

        return results
