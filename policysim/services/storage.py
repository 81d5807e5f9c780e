"""Simulation storage.

This module defines the storage interface the orchestrator and read
endpoints depend on, and an in-process implementation. Writes made inside
a transaction are staged and only become visible to readers when the
transaction commits; a rolled-back transaction leaves nothing behind.
"""

import itertools
import json
import logging
import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Protocol

from ..api.v1.schemas.catalog import SELF_SUBREGION
from ..api.v1.schemas.simulation import (
    ModelInput,
    ModelRun,
    RunStatus,
    Simulation,
    SimulationSummary,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class User:
    """The requesting user."""

    id: int
    login: str


@dataclass(frozen=True)
class CaseData:
    """Calibration counts for a region. Every field is None when no data exists."""

    end_date: date | None
    confirmed: int | None
    deaths: int | None


@dataclass(frozen=True)
class NewSimulation:
    """Fields of a simulation record at creation time."""

    region_id: str
    region_name: str | None
    subregion_id: str
    subregion_name: str | None
    status: RunStatus
    user: User
    label: str
    configuration: ModelInput
    model_runs: tuple[ModelRun, ...] = ()


class StoreTransaction(Protocol):
    def create_simulation(self, new: NewSimulation) -> int: ...

    def update_simulation(
        self,
        simulation_id: int,
        status: RunStatus,
        model_slug: str,
        results_data: str | None = None,
        export_location: str | None = None,
    ) -> None: ...


class SimulationStore(Protocol):
    """Storage operations the application relies on."""

    def transaction(self) -> AbstractContextManager[StoreTransaction]: ...

    def get_region_case_data(
        self, region_id: str, subregion_id: str, on_date: date | None = None
    ) -> CaseData: ...

    def list_simulation_summaries(self, user_id: int) -> list[SimulationSummary]: ...

    def get_simulation(self, user: User, simulation_id: int) -> Simulation | None: ...

    def get_simulation_by_id(self, simulation_id: int) -> Simulation | None: ...

    def update_simulation(
        self,
        simulation_id: int,
        status: RunStatus,
        model_slug: str,
        results_data: str | None = None,
        export_location: str | None = None,
    ) -> None: ...


def aggregate_status(runs: list[ModelRun]) -> RunStatus:
    """Derive a simulation's status from its model runs.

    Unsupported runs are ignored. Any run still waiting or running keeps the
    simulation pending or in progress; once every run has finished the
    simulation is complete if at least one run completed, failed otherwise.
    """
    statuses = [run.status for run in runs if run.status != RunStatus.UNSUPPORTED]
    if not statuses:
        return RunStatus.UNSUPPORTED if runs else RunStatus.PENDING
    if RunStatus.PENDING in statuses or RunStatus.IN_PROGRESS in statuses:
        started = any(s != RunStatus.PENDING for s in statuses)
        return RunStatus.IN_PROGRESS if started else RunStatus.PENDING
    if RunStatus.COMPLETE in statuses:
        return RunStatus.COMPLETE
    return RunStatus.FAILED


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _InMemoryTransaction:
    def __init__(self, store: "InMemorySimulationStore"):
        self._store = store
        self.created: dict[int, Simulation] = {}
        self.updates: list[tuple[int, ModelRun]] = []

    def create_simulation(self, new: NewSimulation) -> int:
        simulation_id = self._store._next_id()
        now = _now()
        self.created[simulation_id] = Simulation(
            id=simulation_id,
            label=new.label,
            region_id=new.region_id,
            region_name=new.region_name,
            subregion_id=new.subregion_id,
            subregion_name=new.subregion_name,
            status=new.status,
            created_at=now,
            updated_at=now,
            user_id=new.user.id,
            user_login=new.user.login,
            configuration=new.configuration,
            model_runs=list(new.model_runs),
        )
        return simulation_id

    def update_simulation(
        self,
        simulation_id: int,
        status: RunStatus,
        model_slug: str,
        results_data: str | None = None,
        export_location: str | None = None,
    ) -> None:
        if simulation_id not in self.created and not self._store._exists(simulation_id):
            raise KeyError(f"Simulation {simulation_id} does not exist")
        run = ModelRun(
            model_slug=model_slug,
            status=status,
            results_data=results_data or None,
            export_location=export_location or None,
        )
        self.updates.append((simulation_id, run))


class InMemorySimulationStore:
    """In-process simulation store.

    Notes
    -----
    Identifiers are never reused, including those handed out by
    transactions that were rolled back.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._simulations: dict[int, Simulation] = {}
        self._case_data: dict[tuple[str, str], dict[date, tuple[int, int]]] = {}

    def _next_id(self) -> int:
        with self._lock:
            return next(self._ids)

    def _exists(self, simulation_id: int) -> bool:
        with self._lock:
            return simulation_id in self._simulations

    @contextmanager
    def transaction(self) -> Iterator[_InMemoryTransaction]:
        """Open a transaction.

        Commits when the block exits normally and rolls back when it raises.
        """
        tx = _InMemoryTransaction(self)
        try:
            yield tx
        except BaseException:
            logger.info(
                f"Rolling back transaction ({len(tx.created)} simulations, "
                f"{len(tx.updates)} run updates discarded)"
            )
            raise
        self._commit(tx)

    def _commit(self, tx: _InMemoryTransaction) -> None:
        with self._lock:
            staged = {**self._simulations, **tx.created}
            touched: set[int] = set(tx.created)
            for simulation_id, run in tx.updates:
                simulation = staged[simulation_id]
                runs = [run if r.model_slug == run.model_slug else r for r in simulation.model_runs]
                if all(r.model_slug != run.model_slug for r in simulation.model_runs):
                    runs.append(run)
                staged[simulation_id] = simulation.model_copy(update={"model_runs": runs})
                touched.add(simulation_id)
            now = _now()
            for simulation_id in touched:
                simulation = staged[simulation_id]
                update = {"status": aggregate_status(simulation.model_runs)}
                if simulation_id not in tx.created:
                    update["updated_at"] = now
                staged[simulation_id] = simulation.model_copy(update=update)
            self._simulations = staged

    def update_simulation(
        self,
        simulation_id: int,
        status: RunStatus,
        model_slug: str,
        results_data: str | None = None,
        export_location: str | None = None,
    ) -> None:
        """Update one model run in its own transaction."""
        with self.transaction() as tx:
            tx.update_simulation(simulation_id, status, model_slug, results_data, export_location)

    def add_case_data(
        self, region_id: str, subregion_id: str, on_date: date, confirmed: int, deaths: int
    ) -> None:
        with self._lock:
            self._case_data.setdefault((region_id, subregion_id), {})[on_date] = (confirmed, deaths)

    def get_region_case_data(
        self, region_id: str, subregion_id: str, on_date: date | None = None
    ) -> CaseData:
        """Look up calibration counts.

        Parameters
        ----------
        region_id : str
            Region code.
        subregion_id : str
            Subregion code or '_self'.
        on_date : date or None
            Exact date to look up. When None, the most recent date is used.

        Returns
        -------
        CaseData
            Counts for the date, or all-None when there is no data.
        """
        with self._lock:
            series = self._case_data.get((region_id, subregion_id or SELF_SUBREGION), {})
            if on_date is None:
                on_date = max(series, default=None)
            counts = series.get(on_date) if on_date is not None else None
        if counts is None:
            return CaseData(end_date=None, confirmed=None, deaths=None)
        confirmed, deaths = counts
        return CaseData(end_date=on_date, confirmed=confirmed, deaths=deaths)

    def list_simulation_summaries(self, user_id: int) -> list[SimulationSummary]:
        """List a user's simulations, newest first."""
        with self._lock:
            simulations = [s for s in self._simulations.values() if s.user_id == user_id]
        simulations.sort(key=lambda s: s.id, reverse=True)
        return [SimulationSummary.model_validate(s.model_dump()) for s in simulations]

    def get_simulation(self, user: User, simulation_id: int) -> Simulation | None:
        """Return a simulation owned by ``user``, or None."""
        with self._lock:
            simulation = self._simulations.get(simulation_id)
        if simulation is None or simulation.user_id != user.id:
            return None
        return simulation

    def get_simulation_by_id(self, simulation_id: int) -> Simulation | None:
        """Return a simulation regardless of owner (runner callbacks)."""
        with self._lock:
            return self._simulations.get(simulation_id)


def seed_case_data(store: InMemorySimulationStore, path: Path) -> int:
    """Load calibration case data from a JSON file into the store.

    Parameters
    ----------
    store : InMemorySimulationStore
        Store to fill.
    path : Path
        JSON list of ``{regionID, subregionID, date, confirmed, deaths}`` records.

    Returns
    -------
    int
        Number of records loaded.
    """
    with path.open(encoding="utf-8") as f:
        records = json.load(f)
    for record in records:
        store.add_case_data(
            record["regionID"],
            record.get("subregionID") or SELF_SUBREGION,
            date.fromisoformat(record["date"]),
            int(record["confirmed"]),
            int(record["deaths"]),
        )
    return len(records)
