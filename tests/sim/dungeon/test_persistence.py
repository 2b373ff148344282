"""Tests for saving and restoring engine state."""

import json

from abyss_run.ir.perks import PerkInstance
from abyss_run.ir.run_map import RunRank
from abyss_run.ir.run_state import ProgressionLedger
from abyss_run.sim.dungeon.persistence import (
    ACTIVE_RUN_KEY,
    LEDGER_KEY,
    JsonFileStore,
    MemoryStore,
    load_active_run,
    load_engine,
    load_ledger,
    save_engine,
)
from abyss_run.sim.dungeon.run_engine import RunEngine

from tests.sim.conftest import advance, walk_to_boss


def _played_engine() -> RunEngine:
    eng = RunEngine(seed_source=lambda: 42)
    eng.start_new_run(10)
    walk_to_boss(eng)
    eng.start_new_run(20, seed=9)
    advance(eng, stage_score=120, hp_lost=15)
    advance(eng)
    eng.select_perk("vital_boost")
    eng.select_perk("rewind")
    return eng


def _corrupt(store: MemoryStore, **changes) -> None:
    data = json.loads(store.data[ACTIVE_RUN_KEY])
    data.update(changes)
    store.data[ACTIVE_RUN_KEY] = json.dumps(data)


class TestRoundTrip:
    def test_memory_store(self):
        eng = _played_engine()
        store = MemoryStore()
        save_engine(eng, store)

        restored = load_engine(store)
        assert restored.ledger == eng.ledger
        assert restored.active_run == eng.active_run
        assert restored.run_status() == eng.run_status()
        assert [n.id for n in restored.get_available_nodes()] == [
            n.id for n in eng.get_available_nodes()
        ]

    def test_json_file_store(self, tmp_path):
        eng = _played_engine()
        path = tmp_path / "save" / "abyss.json"
        save_engine(eng, JsonFileStore(path))

        assert path.exists()
        restored = load_engine(JsonFileStore(path))
        assert restored.active_run == eng.active_run
        assert restored.ledger.max_unlocked_run_length == 20

    def test_restored_run_keeps_playing(self):
        eng = _played_engine()
        store = MemoryStore()
        save_engine(eng, store)

        restored = load_engine(store)
        walk_to_boss(restored)
        assert restored.ledger.completed_runs == 2
        assert restored.ledger.max_unlocked_run_length == 30

    def test_visited_marks_survive(self):
        eng = _played_engine()
        store = MemoryStore()
        save_engine(eng, store)

        run = load_engine(store).active_run
        for node_id in run.completed_node_ids:
            assert run.map.nodes[node_id].visited
        assert run.map.nodes[run.completed_node_ids[0]].rank == RunRank.A

    def test_run_moved_past_uncompleted_node(self):
        eng = RunEngine(seed_source=lambda: 42)
        eng.start_new_run(10)
        eng.select_node("0-0")
        eng.select_node(eng.get_current_node().connections[0])
        store = MemoryStore()
        save_engine(eng, store)

        restored = load_engine(store)
        assert restored.active_run == eng.active_run
        assert restored.active_run.completed_node_ids == []

    def test_no_active_run_deletes_key(self):
        eng = _played_engine()
        store = MemoryStore()
        save_engine(eng, store)
        eng.abandon_run()
        save_engine(eng, store)

        assert ACTIVE_RUN_KEY not in store.data
        assert load_engine(store).active_run is None

    def test_engine_kwargs_passed_through(self):
        store = MemoryStore()
        save_engine(_played_engine(), store)
        restored = load_engine(store, seed_source=lambda: 77)
        restored.start_new_run(10)
        assert restored.active_run.run_seed == 77


class TestEmptyStore:
    def test_defaults(self):
        store = MemoryStore()
        assert load_ledger(store) == ProgressionLedger()
        assert load_active_run(store) is None

    def test_missing_file(self, tmp_path):
        eng = load_engine(JsonFileStore(tmp_path / "nothing.json"))
        assert eng.ledger == ProgressionLedger()
        assert eng.active_run is None


class TestCorruptState:
    def test_hp_above_max(self):
        store = MemoryStore()
        save_engine(_played_engine(), store)
        _corrupt(store, current_hp=999)

        eng = load_engine(store)
        assert eng.active_run is None
        assert eng.ledger.max_unlocked_run_length == 20

    def test_current_node_not_reached_from_start(self):
        store = MemoryStore()
        save_engine(_played_engine(), store)
        _corrupt(store, current_node_id="5-0", completed_node_ids=[], node_path=["5-0"])
        assert load_active_run(store) is None

    def test_current_node_moved_without_path(self):
        store = MemoryStore()
        save_engine(_played_engine(), store)
        _corrupt(store, current_node_id="5-0", completed_node_ids=[])
        assert load_active_run(store) is None

    def test_path_skips_depths(self):
        store = MemoryStore()
        save_engine(_played_engine(), store)
        skipping = ["0-0", "2-0", "4-0"]
        _corrupt(
            store,
            current_node_id="4-0",
            completed_node_ids=skipping,
            node_path=skipping,
        )
        assert load_active_run(store) is None

    def test_path_step_without_edge(self):
        eng = _played_engine()
        run_map = eng.active_run.map
        prev_id, next_id = next(
            (node.id, target.id)
            for node in run_map.nodes.values()
            for target in run_map.nodes_at_depth(node.depth + 1)
            if target.id not in node.connections
        )
        path = [prev_id]
        while run_map.nodes[path[0]].depth > 0:
            path.insert(0, next(n.id for n in run_map.nodes.values() if path[0] in n.connections))
        path.append(next_id)

        store = MemoryStore()
        save_engine(eng, store)
        _corrupt(store, current_node_id=next_id, completed_node_ids=path[:-1], node_path=path)
        assert load_active_run(store) is None

    def test_unknown_current_node(self):
        store = MemoryStore()
        save_engine(_played_engine(), store)
        _corrupt(store, current_node_id="99-9")
        assert load_active_run(store) is None

    def test_unknown_completed_node(self):
        store = MemoryStore()
        save_engine(_played_engine(), store)
        data = json.loads(store.data[ACTIVE_RUN_KEY])
        _corrupt(store, completed_node_ids=data["completed_node_ids"] + ["42-0"])
        assert load_active_run(store) is None

    def test_broken_map(self):
        store = MemoryStore()
        save_engine(_played_engine(), store)
        data = json.loads(store.data[ACTIVE_RUN_KEY])
        data["map"]["nodes"]["0-0"]["connections"] = []
        store.data[ACTIVE_RUN_KEY] = json.dumps(data)
        assert load_active_run(store) is None

    def test_not_json(self):
        store = MemoryStore()
        store.set(ACTIVE_RUN_KEY, "{not json")
        store.set(LEDGER_KEY, "[]")
        eng = load_engine(store)
        assert eng.active_run is None
        assert eng.ledger == ProgressionLedger()

    def test_bad_ledger_length(self):
        store = MemoryStore()
        store.set(LEDGER_KEY, json.dumps({"max_unlocked_run_length": 15, "completed_runs": 3}))
        assert load_ledger(store) == ProgressionLedger()

    def test_unknown_perk(self):
        eng = _played_engine()
        eng.active_run.perks.append(PerkInstance(perk_id="ghost", acquired_at_depth=1))
        store = MemoryStore()
        save_engine(eng, store)
        assert load_engine(store).active_run is None

    def test_too_many_stacks(self):
        eng = _played_engine()
        eng.active_run.perks[0].stacks = 99
        store = MemoryStore()
        save_engine(eng, store)
        assert load_engine(store).active_run is None

    def test_corrupt_file_store(self, tmp_path):
        path = tmp_path / "abyss.json"
        path.write_text("this is not json")
        eng = load_engine(JsonFileStore(path))
        assert eng.active_run is None

        save_engine(_played_engine(), JsonFileStore(path))
        assert load_engine(JsonFileStore(path)).active_run is not None
