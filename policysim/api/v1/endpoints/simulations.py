"""Simulation API endpoints.

This module provides the endpoints for queueing simulations, listing and
reading them, reading a model run's results, and the callback the
execution pipeline reports run status through.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from ....config import Settings
from ....services.catalog_service import Catalog
from ....services.dispatch import Dispatcher, ErrorReporter
from ....services.results_processing import (
    ResultsUnavailableError,
    load_model_output,
    summarize_model_output,
)
from ....services.run_status import RunNotFoundError, RunTransitionError, record_run_status
from ....services.storage import SimulationStore, User
from ....services.submission_service import (
    SubmissionError,
    UserError,
    create_and_dispatch_simulation,
)
from ...deps import (
    get_app_catalog,
    get_current_user,
    get_dispatcher,
    get_error_reporter,
    get_settings,
    get_store,
    verify_runner_token,
)
from ..schemas.common import ErrorResponse, FieldErrorDetail, UserErrorDetail, UserErrorResponse
from ..schemas.simulation import (
    ModelRun,
    ModelRunResults,
    RunStatus,
    RunStatusUpdate,
    Simulation,
    SimulationCreatedResponse,
    SimulationSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=list[SimulationSummary],
    summary="List simulations",
    description="List the current user's simulations, newest first.",
)
async def list_simulations(
    user: User = Depends(get_current_user),
    store: SimulationStore = Depends(get_store),
) -> list[SimulationSummary]:
    return store.list_simulation_summaries(user.id)


@router.post(
    "",
    response_model=SimulationCreatedResponse,
    summary="Queue a simulation",
    description="Validate a simulation configuration, persist it and dispatch its models.",
    responses={422: {"model": UserErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_simulation(
    payload: Any = Body(..., description="NewSimulationConfig body"),
    user: User = Depends(get_current_user),
    store: SimulationStore = Depends(get_store),
    dispatcher: Dispatcher | None = Depends(get_dispatcher),
    catalog: Catalog = Depends(get_app_catalog),
    reporter: ErrorReporter = Depends(get_error_reporter),
    app_settings: Settings = Depends(get_settings),
) -> SimulationCreatedResponse:
    """Queue a new simulation.

    Parameters
    ----------
    payload : Any
        ``NewSimulationConfig`` body.

    Returns
    -------
    SimulationCreatedResponse
        Identifier of the new simulation.

    Raises
    ------
    HTTPException
        422 with field errors if the configuration is invalid or calibration
        data is unavailable, 500 if the simulation could not be queued.
    """
    try:
        simulation_id = await create_and_dispatch_simulation(
            payload,
            user,
            store=store,
            dispatcher=dispatcher,
            catalog=catalog,
            settings=app_settings,
            reporter=reporter,
        )
    except UserError as e:
        detail = UserErrorDetail(
            message=e.message,
            errors=[FieldErrorDetail(path=err.path, message=err.message) for err in e.errors],
        )
        raise HTTPException(status_code=422, detail=detail.model_dump())
    except SubmissionError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return SimulationCreatedResponse(id=simulation_id)


@router.get(
    "/{simulation_id}",
    response_model=Simulation,
    summary="Get a simulation",
    responses={404: {"model": ErrorResponse}},
)
async def get_simulation(
    simulation_id: int,
    user: User = Depends(get_current_user),
    store: SimulationStore = Depends(get_store),
) -> Simulation:
    simulation = store.get_simulation(user, simulation_id)
    if simulation is None:
        raise HTTPException(status_code=404, detail=f"Simulation {simulation_id} not found")
    return simulation


@router.get(
    "/{simulation_id}/model-runs/{model_slug}",
    response_model=ModelRunResults,
    summary="Get a model run's results",
    description="Status of one model's run and, once complete, a summary of its output.",
    responses={404: {"model": ErrorResponse}},
)
async def get_model_run_results(
    simulation_id: int,
    model_slug: str,
    user: User = Depends(get_current_user),
    store: SimulationStore = Depends(get_store),
) -> ModelRunResults:
    """Read one model run of a simulation.

    Returns
    -------
    ModelRunResults
        Run status, and the output summary when the run is complete and
        its output could be read.

    Raises
    ------
    HTTPException
        404 if the simulation or run does not exist for this user.
    """
    simulation = store.get_simulation(user, simulation_id)
    run = simulation.run_for(model_slug) if simulation else None
    if run is None:
        raise HTTPException(
            status_code=404,
            detail=f"Simulation {simulation_id} has no run for model '{model_slug}'",
        )

    summary = None
    if run.status == RunStatus.COMPLETE and run.results_data:
        try:
            summary = summarize_model_output(await load_model_output(run.results_data))
        except ResultsUnavailableError as e:
            logger.warning(f"Simulation {simulation_id} run '{model_slug}': {e}")

    return ModelRunResults(
        simulation_id=simulation_id,
        model_slug=model_slug,
        status=run.status,
        export_location=run.export_location,
        summary=summary,
    )


@router.post(
    "/{simulation_id}/model-runs/{model_slug}/status",
    response_model=ModelRun,
    summary="Report a model run's status",
    description="Callback used by the execution pipeline.",
    dependencies=[Depends(verify_runner_token)],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def report_run_status(
    simulation_id: int,
    model_slug: str,
    update: RunStatusUpdate,
    store: SimulationStore = Depends(get_store),
) -> ModelRun:
    try:
        record_run_status(store, simulation_id, model_slug, update)
    except RunNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RunTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return store.get_simulation_by_id(simulation_id).run_for(model_slug)
