"""Model run status lifecycle.

The execution pipeline reports each model's progress through the runner
callback. A run moves from pending to in progress and then to complete or
failed; unsupported, complete and failed runs never change again.
"""

import logging

from ..api.v1.schemas.simulation import RunStatus, RunStatusUpdate
from .storage import SimulationStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.IN_PROGRESS, RunStatus.COMPLETE, RunStatus.FAILED}),
    RunStatus.IN_PROGRESS: frozenset({RunStatus.COMPLETE, RunStatus.FAILED}),
    RunStatus.COMPLETE: frozenset(),
    RunStatus.FAILED: frozenset(),
    RunStatus.UNSUPPORTED: frozenset(),
}


class RunNotFoundError(LookupError):
    """Raised when the simulation or its run for a model does not exist."""


class RunTransitionError(ValueError):
    """Raised when a status report would move a run backwards or out of a terminal state."""

    def __init__(self, model_slug: str, current: RunStatus, requested: RunStatus):
        self.model_slug = model_slug
        self.current = current
        self.requested = requested
        super().__init__(
            f"Run '{model_slug}' cannot move from {current.value} to {requested.value}"
        )


def can_transition(current: RunStatus, requested: RunStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


def record_run_status(
    store: SimulationStore,
    simulation_id: int,
    model_slug: str,
    update: RunStatusUpdate,
) -> None:
    """Apply a status report from the execution pipeline.

    Parameters
    ----------
    store : SimulationStore
        Simulation store.
    simulation_id : int
        Simulation the run belongs to.
    model_slug : str
        Model whose run is reported.
    update : RunStatusUpdate
        Reported status and result locations.

    Raises
    ------
    RunNotFoundError
        If the simulation or run does not exist.
    RunTransitionError
        If the transition is not allowed.
    ValueError
        If a complete run is reported without a results location.
    """
    simulation = store.get_simulation_by_id(simulation_id)
    run = simulation.run_for(model_slug) if simulation else None
    if run is None:
        raise RunNotFoundError(f"Simulation {simulation_id} has no run for '{model_slug}'")

    if not can_transition(run.status, update.status):
        raise RunTransitionError(model_slug, run.status, update.status)
    if update.status == RunStatus.COMPLETE and not update.results_data:
        raise ValueError("A complete run must report where its results are stored")

    store.update_simulation(
        simulation_id,
        update.status,
        model_slug,
        update.results_data,
        update.export_location,
    )
    logger.info(f"Simulation {simulation_id} run '{model_slug}': {run.status.value} -> {update.status.value}")

