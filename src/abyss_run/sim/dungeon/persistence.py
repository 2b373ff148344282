"""Persistence boundary for the run engine.

The engine never touches storage itself.  Callers hand a
:class:`KeyValueStore` to :func:`save_engine` / :func:`load_engine`, which
serialise the two independently persisted records:

- the progression ledger (``LEDGER_KEY``)
- the nullable active run (``ACTIVE_RUN_KEY``), including its full map so a
  reloaded run resumes without regenerating anything

Loading is defensive: a record that fails validation (unknown node ids, HP
outside ``[0, max_hp]``, a broken graph, ...) is discarded with a warning
and replaced by its default (a fresh ledger / no active run).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from abyss_run.ir.run_state import ActiveRun, ProgressionLedger
from abyss_run.sim.dungeon.run_engine import RunEngine

logger = logging.getLogger(__name__)

LEDGER_KEY = "abyss-run/ledger"
ACTIVE_RUN_KEY = "abyss-run/active-run"


class KeyValueStore(Protocol):
    """Minimal durable string store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store, mostly for tests."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """Store backed by a single JSON document on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError:
            logger.warning("Store file %s is not valid JSON; starting empty", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Store file %s is not a JSON object; starting empty", self.path)
            return {}
        return data

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))

    def get(self, key: str) -> str | None:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

def dump_ledger(ledger: ProgressionLedger) -> str:
    return ledger.model_dump_json()


def dump_active_run(run: ActiveRun) -> str:
    return run.model_dump_json()


def load_ledger(store: KeyValueStore) -> ProgressionLedger:
    """Load the ledger, falling back to a fresh one if missing or corrupt."""
    raw = store.get(LEDGER_KEY)
    if raw is None:
        return ProgressionLedger()
    try:
        return ProgressionLedger.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Discarding corrupt progression ledger: %s", exc)
        return ProgressionLedger()


def load_active_run(store: KeyValueStore) -> ActiveRun | None:
    """Load the saved run, or ``None`` if there is none or it is corrupt."""
    raw = store.get(ACTIVE_RUN_KEY)
    if raw is None:
        return None
    try:
        return ActiveRun.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Discarding corrupt active run: %s", exc)
        return None


def save_engine(engine: RunEngine, store: KeyValueStore) -> None:
    """Persist the engine's ledger and active run."""
    store.set(LEDGER_KEY, dump_ledger(engine.ledger))
    if engine.active_run is None:
        store.delete(ACTIVE_RUN_KEY)
    else:
        store.set(ACTIVE_RUN_KEY, dump_active_run(engine.active_run))


def load_engine(store: KeyValueStore, **engine_kwargs: Any) -> RunEngine:
    """Build a :class:`RunEngine` from stored state.

    Extra keyword arguments (``catalog``, ``config``, ``multiplier_source``,
    ...) are passed through to the engine.  A saved run holding perks the
    catalog does not know, or more stacks than allowed, is discarded.
    """
    engine = RunEngine(
        ledger=load_ledger(store),
        active_run=load_active_run(store),
        **engine_kwargs,
    )
    run = engine.active_run
    if run is not None:
        for instance in run.perks:
            definition = engine.catalog.get(instance.perk_id)
            if definition is None or instance.stacks > definition.max_stacks:
                logger.warning("Discarding active run holding invalid perk %r", instance.perk_id)
                engine.active_run = None
                break
    return engine
