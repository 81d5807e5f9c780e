"""Simulation-related schema definitions.

This module defines Pydantic models for simulation requests and responses:
the ``NewSimulationConfig`` submission body and the rules it is validated
against, the model input handed to the execution pipeline, and the
persisted simulation and model run records.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
)
from pydantic_core import PydanticCustomError

from .catalog import SELF_SUBREGION

LABEL_MAX_LENGTH = 100
R0_MAX = 10


class RunStatus(str, Enum):
    """Status of a simulation or of one model run."""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"
    FAILED = "failed"
    UNSUPPORTED = "unsupported"


class InterventionPeriodInput(BaseModel):
    """An intervention period as submitted.

    Only the fields the models consume are kept; editing-only fields
    such as ``isAutoGenerated`` are ignored.

    Attributes
    ----------
    start_date : date
        Date the period starts. The last period has no end date.
    reduction_population_contact : float
        Percentage reduction in contact rate (0-100).
    """

    model_config = ConfigDict(populate_by_name=True)

    start_date: date = Field(..., alias="startDate", description="Period start date (YYYY-MM-DD)")
    reduction_population_contact: float = Field(
        ...,
        ge=0,
        le=100,
        allow_inf_nan=False,
        alias="reductionPopulationContact",
        description="Percentage reduction in population contact (0-100)",
    )


class NewSimulationConfig(BaseModel):
    """Request body for creating a simulation.

    Attributes
    ----------
    region_id : str
        Two-letter region code.
    subregion_id : str
        Subregion code prefixed by the region (e.g., 'US-CA'), or '_self'.
    label : str
        Simulation name.
    r0 : float or None
        Basic reproduction number override. None lets each model decide.
    custom_calibration_date : date or None
        Calibration date override. None uses the latest date with case data.
    intervention_periods : list of InterventionPeriodInput
        Periods ordered by strictly increasing start date.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "regionID": "US",
                    "subregionID": "US-CA",
                    "label": "Lockdown until summer",
                    "r0": None,
                    "customCalibrationDate": None,
                    "interventionPeriods": [
                        {"startDate": "2020-03-01", "reductionPopulationContact": 50}
                    ],
                }
            ]
        },
    )

    region_id: str = Field(..., alias="regionID", pattern=r"^[A-Z]{2}$")
    subregion_id: str = Field(
        ..., alias="subregionID", pattern=r"^(_self|[A-Z]{2}-[A-Z0-9]{1,3})$"
    )
    label: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=1, max_length=LABEL_MAX_LENGTH)
    ]
    r0: float | None = Field(default=None, ge=0, le=R0_MAX, allow_inf_nan=False)
    custom_calibration_date: date | None = Field(default=None, alias="customCalibrationDate")
    intervention_periods: list[InterventionPeriodInput] = Field(
        ..., alias="interventionPeriods", min_length=1
    )

    @field_validator("subregion_id")
    @classmethod
    def subregion_belongs_to_region(cls, v: str, info: ValidationInfo) -> str:
        """Check a subdivision code is prefixed by the region code."""
        region_id = info.data.get("region_id")
        if v != SELF_SUBREGION and region_id and not v.startswith(f"{region_id}-"):
            raise PydanticCustomError(
                "subregion_mismatch",
                "Subregion {subregion} is not part of region {region}",
                {"subregion": v, "region": region_id},
            )
        return v

    @field_validator("custom_calibration_date")
    @classmethod
    def calibration_date_not_in_future(cls, v: date | None) -> date | None:
        if v is not None and v > date.today():
            raise PydanticCustomError(
                "date_in_future",
                "Calibration date {date} is in the future",
                {"date": v.isoformat()},
            )
        return v

    @field_validator("intervention_periods")
    @classmethod
    def periods_strictly_increasing(
        cls, v: list[InterventionPeriodInput]
    ) -> list[InterventionPeriodInput]:
        """Reject the first period that does not start after its predecessor.

        The offending index is carried in the error context so the error can
        be addressed to that period's start date.
        """
        for index in range(1, len(v)):
            previous = v[index - 1].start_date
            if v[index].start_date <= previous:
                raise PydanticCustomError(
                    "period_order",
                    "Intervention period {index} must start after {previous}",
                    {"index": index, "previous": previous.isoformat()},
                )
        return v


class ModelParameters(BaseModel):
    """Parameters handed to every model.

    Attributes
    ----------
    r0 : float or None
        R0 override, or None.
    calibration_case_count : int
        Confirmed cases on the calibration date (0 when unknown).
    calibration_death_count : int
        Deaths on the calibration date (0 when unknown).
    calibration_date : date
        Calibration date actually used.
    intervention_periods : list of InterventionPeriodInput
        Validated intervention periods.
    """

    model_config = ConfigDict(populate_by_name=True)

    r0: float | None = None
    calibration_case_count: int = Field(0, alias="calibrationCaseCount")
    calibration_death_count: int = Field(0, alias="calibrationDeathCount")
    calibration_date: date = Field(..., alias="calibrationDate")
    intervention_periods: list[InterventionPeriodInput] = Field(..., alias="interventionPeriods")


class ModelInput(BaseModel):
    """Canonical model input shared by every model run of a simulation."""

    region: str
    subregion: str
    parameters: ModelParameters


class ModelRun(BaseModel):
    """One model's run of a simulation.

    Attributes
    ----------
    model_slug : str
        Model identifier.
    status : RunStatus
        Run status.
    results_data : str or None
        Location of the model output once complete.
    export_location : str or None
        Location of the model's raw export, if any.
    """

    model_slug: str
    status: RunStatus
    results_data: str | None = None
    export_location: str | None = None


class SimulationSummary(BaseModel):
    """Summary of a simulation for list views."""

    id: int
    label: str
    region_id: str
    region_name: str | None = None
    subregion_id: str
    subregion_name: str | None = None
    status: RunStatus
    created_at: datetime
    updated_at: datetime


class Simulation(SimulationSummary):
    """A persisted simulation with its configuration and model runs.

    Attributes
    ----------
    user_id : int
        Owner identifier.
    user_login : str
        Owner login.
    configuration : ModelInput
        Model input the runs were dispatched with.
    model_runs : list of ModelRun
        One entry per cataloged model.
    """

    user_id: int
    user_login: str
    configuration: ModelInput
    model_runs: list[ModelRun] = Field(default_factory=list)

    def run_for(self, model_slug: str) -> ModelRun | None:
        return next((run for run in self.model_runs if run.model_slug == model_slug), None)


class SimulationCreatedResponse(BaseModel):
    """Response after a simulation has been queued."""

    id: int


class RunStatusUpdate(BaseModel):
    """Status report sent by the execution pipeline for one model run.

    Attributes
    ----------
    status : RunStatus
        New status of the run.
    results_data : str or None
        Location of the model output (required for 'complete').
    export_location : str or None
        Location of the model's raw export.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: RunStatus
    results_data: str | None = Field(default=None, alias="resultsData")
    export_location: str | None = Field(default=None, alias="exportLocation")


class MetricSummary(BaseModel):
    """Peak and final value of one output metric.

    Attributes
    ----------
    peak : float
        Highest value reached.
    peak_date : str
        Date of the peak (YYYY-MM-DD).
    final : float
        Value on the last output date.
    """

    peak: float
    peak_date: str
    final: float


class ModelOutputSummary(BaseModel):
    """Summary of a completed model run's output."""

    dates: list[str] = Field(..., description="Output dates (YYYY-MM-DD)")
    metrics: dict[str, MetricSummary] = Field(
        ..., description="Per-metric summary: {metric: {peak, peak_date, final}}"
    )


class ModelRunResults(BaseModel):
    """Results view of one model run.

    ``summary`` is only set for complete runs whose output could be read.
    """

    simulation_id: int
    model_slug: str
    status: RunStatus
    export_location: str | None = None
    summary: ModelOutputSummary | None = None
