"""Simulation submission orchestration.

This module turns a submitted ``NewSimulationConfig`` body into a persisted
simulation with one run record per cataloged model, and hands the
supported models to the execution pipeline. Everything happens in a single
store transaction, so a failure at any step leaves no simulation behind.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date
from pathlib import Path
from typing import Any

from ..api.v1.schemas.catalog import ModelSpec
from ..api.v1.schemas.simulation import (
    ModelInput,
    ModelParameters,
    ModelRun,
    NewSimulationConfig,
    RunStatus,
)
from ..config import Settings
from .catalog_service import Catalog, model_supports
from .dispatch import DispatchJob, DispatchModel, Dispatcher, ErrorReporter
from .storage import CaseData, NewSimulation, SimulationStore, User
from .validation import ConfigValidationError, FieldError, parse_config

logger = logging.getLogger(__name__)

QUEUE_ERROR_MESSAGE = "Error queueing simulation run"


class UserError(Exception):
    """A problem with the request that the user can correct.

    Attributes
    ----------
    message : str
        Human-readable explanation.
    errors : list of FieldError
        Field errors, when the problem is tied to specific fields.
    """

    def __init__(self, message: str, errors: list[FieldError] | None = None):
        self.message = message
        self.errors = errors or []
        super().__init__(message)


class SubmissionError(Exception):
    """A system failure while queueing a simulation.

    The message is safe to show to users; the cause is chained.
    """


@dataclass(frozen=True)
class RunOutcome:
    """Initial run record for one cataloged model."""

    model: ModelSpec
    status: RunStatus
    results_data: str | None = None

    def as_run(self) -> ModelRun:
        return ModelRun(
            model_slug=self.model.slug, status=self.status, results_data=self.results_data
        )


def plan_model_runs(
    models: tuple[ModelSpec, ...] | list[ModelSpec], region_id: str, subregion_id: str
) -> list[RunOutcome]:
    """Decide the initial status of every cataloged model.

    Supported models start pending; the others are marked unsupported and
    never change again.
    """
    return [
        RunOutcome(
            model=spec,
            status=(
                RunStatus.PENDING
                if model_supports(spec, region_id, subregion_id)
                else RunStatus.UNSUPPORTED
            ),
        )
        for spec in models
    ]


def complete_with_fixtures(outcomes: list[RunOutcome], fixtures_dir: Path) -> list[RunOutcome]:
    """Mark pending runs complete against the bundled stub outputs (local mode)."""
    return [
        replace(
            outcome,
            status=RunStatus.COMPLETE,
            results_data=(Path(fixtures_dir) / f"{outcome.model.slug}-stub.json").as_uri(),
        )
        if outcome.status == RunStatus.PENDING
        else outcome
        for outcome in outcomes
    ]


def build_model_input(
    config: NewSimulationConfig, case_data: CaseData, today: date | None = None
) -> ModelInput:
    """Build the model input shared by every run.

    Missing counts default to 0 and a missing calibration date to today.
    """
    return ModelInput(
        region=config.region_id,
        subregion=config.subregion_id,
        parameters=ModelParameters(
            r0=config.r0,
            calibration_case_count=case_data.confirmed or 0,
            calibration_death_count=case_data.deaths or 0,
            calibration_date=case_data.end_date or today or date.today(),
            intervention_periods=config.intervention_periods,
        ),
    )


async def create_and_dispatch_simulation(
    payload: Any,
    user: User,
    *,
    store: SimulationStore,
    dispatcher: Dispatcher | None,
    catalog: Catalog,
    settings: Settings,
    reporter: ErrorReporter,
) -> int:
    """Validate, persist and dispatch a new simulation.

    Parameters
    ----------
    payload : Any
        Decoded ``NewSimulationConfig`` body.
    user : User
        Requesting user, recorded as the owner.
    store : SimulationStore
        Storage collaborator.
    dispatcher : Dispatcher or None
        Execution pipeline trigger. Not called, and may be None, in local mode.
    catalog : Catalog
        Regions and models.
    settings : Settings
        Application settings (local mode, fixtures, callback URL).
    reporter : ErrorReporter
        Receives system errors.

    Returns
    -------
    int
        Identifier of the new simulation.

    Raises
    ------
    UserError
        If the body is invalid or calibration data is missing for the
        requested date. Nothing is persisted.
    SubmissionError
        If storage or dispatch fails. The transaction is rolled back.
    """
    try:
        config = parse_config(payload)
    except ConfigValidationError as e:
        raise UserError(e.message, e.errors) from e

    try:
        with store.transaction() as tx:
            case_data = store.get_region_case_data(
                config.region_id, config.subregion_id, config.custom_calibration_date
            )
            if config.custom_calibration_date is not None and (
                case_data.end_date is None or case_data.confirmed is None or case_data.deaths is None
            ):
                raise UserError(
                    f"Calibration data is not available for "
                    f"{config.custom_calibration_date.isoformat()}. Please choose a different date."
                )

            model_input = build_model_input(config, case_data)

            outcomes = plan_model_runs(catalog.models, config.region_id, config.subregion_id)
            if settings.local_mode:
                outcomes = complete_with_fixtures(outcomes, settings.fixtures_dir)

            simulation_id = tx.create_simulation(
                NewSimulation(
                    region_id=config.region_id,
                    region_name=catalog.region_name(config.region_id),
                    subregion_id=config.subregion_id,
                    subregion_name=catalog.subregion_name(config.region_id, config.subregion_id),
                    status=RunStatus.PENDING,
                    user=user,
                    label=config.label,
                    configuration=model_input,
                    model_runs=tuple(outcome.as_run() for outcome in outcomes),
                )
            )

            supported = [o.model for o in outcomes if o.status == RunStatus.PENDING]
            if not settings.local_mode:
                await dispatcher.dispatch(
                    DispatchJob(
                        id=simulation_id,
                        models=tuple(DispatchModel(m.slug, m.image_url) for m in supported),
                        configuration=model_input,
                        callback_url=settings.runner_callback_url,
                    )
                )
    except UserError:
        raise
    except Exception as e:
        reporter.capture_exception(e)
        raise SubmissionError(QUEUE_ERROR_MESSAGE) from e

    logger.info(
        f"Queued simulation {simulation_id} for {config.region_id}/{config.subregion_id} "
        f"by {user.login}"
    )
    return simulation_id
