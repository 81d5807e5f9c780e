"""Draft schema definitions.

This module defines Pydantic models for the in-progress new-simulation
form: intervention periods, the draft itself, and the actions that move a
draft from one state to the next. All of them are immutable; a transition
always produces a new draft.
"""

import math
from datetime import date
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .common import FieldErrorDetail


def _empty_as_unset(v: Any) -> Any:
    # form inputs send "" while a value is still being typed
    if isinstance(v, str) and not v.strip():
        return None
    return v


class InterventionPeriod(BaseModel):
    """A time-boxed policy period being edited.

    Attributes
    ----------
    start_date : date
        Date the period starts.
    reduction_population_contact : float or None
        Percentage reduction in contact rate (0-100). None while the user
        has not entered a value yet.
    is_auto_generated : bool
        Whether the period was derived from the region's historical policies
        rather than created by the user.
    interventions : dict of {str: str}
        Strategy key to chosen level.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    start_date: date = Field(..., alias="startDate")
    reduction_population_contact: float | None = Field(
        default=None, alias="reductionPopulationContact"
    )
    is_auto_generated: bool = Field(default=False, alias="isAutoGenerated")
    interventions: dict[str, str] = Field(default_factory=dict)

    @field_validator("reduction_population_contact", mode="before")
    @classmethod
    def blank_reduction_is_unset(cls, v: Any) -> Any:
        return _empty_as_unset(v)


class SimulationDraft(BaseModel):
    """Full state of the new-simulation form.

    Attributes
    ----------
    region_id : str
        Selected top-level region.
    subregion_id : str
        Selected subregion of ``region_id`` ('_self' for the whole region).
    label : str
        Simulation name.
    r0 : float or None
        R0 override.
    custom_calibration_date : date or None
        Calibration date override.
    baseline_date : date
        Fixed start date of the first intervention period.
    intervention_periods : tuple of InterventionPeriod
        Non-empty, ordered by strictly increasing start date.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    region_id: str = Field(..., alias="regionID")
    subregion_id: str = Field(..., alias="subregionID")
    label: str = ""
    r0: float | None = None
    custom_calibration_date: date | None = Field(default=None, alias="customCalibrationDate")
    baseline_date: date = Field(..., alias="baselineDate")
    intervention_periods: tuple[InterventionPeriod, ...] = Field(
        ..., alias="interventionPeriods", min_length=1
    )

    @model_validator(mode="after")
    def periods_are_consistent(self) -> "SimulationDraft":
        """Reject drafts whose periods could not have been built by transitions.

        The first period starts on the baseline date, start dates strictly
        increase and every entered contact reduction lies in [0, 100].
        """
        periods = self.intervention_periods
        if periods[0].start_date != self.baseline_date:
            raise ValueError(
                f"First intervention period must start on {self.baseline_date.isoformat()}"
            )
        for index in range(1, len(periods)):
            if periods[index].start_date <= periods[index - 1].start_date:
                raise ValueError(f"Intervention period {index} must start after period {index - 1}")
        for index, period in enumerate(periods):
            reduction = period.reduction_population_contact
            if reduction is not None and (not math.isfinite(reduction) or not 0 <= reduction <= 100):
                raise ValueError(
                    f"Intervention period {index} contact reduction must be between 0 and 100"
                )
        return self


class _Action(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class SetRegion(_Action):
    type: Literal["SET_REGION"] = "SET_REGION"
    region_id: str = Field(..., alias="regionID")


class SetSubregion(_Action):
    type: Literal["SET_SUBREGION"] = "SET_SUBREGION"
    subregion_id: str = Field(..., alias="subregionID")


class SetLabel(_Action):
    type: Literal["SET_LABEL"] = "SET_LABEL"
    label: str


class SetR0(_Action):
    type: Literal["SET_R0"] = "SET_R0"
    r0: float | None = None

    @field_validator("r0", mode="before")
    @classmethod
    def blank_r0_is_unset(cls, v: Any) -> Any:
        return _empty_as_unset(v)


class SetCustomCalibrationDate(_Action):
    type: Literal["SET_CUSTOM_CALIBRATION_DATE"] = "SET_CUSTOM_CALIBRATION_DATE"
    custom_calibration_date: date | None = Field(default=None, alias="customCalibrationDate")

    @field_validator("custom_calibration_date", mode="before")
    @classmethod
    def blank_date_is_unset(cls, v: Any) -> Any:
        return _empty_as_unset(v)


class AddPeriod(_Action):
    type: Literal["ADD_PERIOD"] = "ADD_PERIOD"
    period: InterventionPeriod


class UpdatePeriod(_Action):
    """Patch the period at ``index``.

    Only the fields that were explicitly given are applied, so sending
    ``reductionPopulationContact: null`` clears the value while omitting it
    leaves it untouched.
    """

    type: Literal["UPDATE_PERIOD"] = "UPDATE_PERIOD"
    index: int
    start_date: date | None = Field(default=None, alias="startDate")
    reduction_population_contact: float | None = Field(
        default=None, alias="reductionPopulationContact"
    )

    @field_validator("reduction_population_contact", mode="before")
    @classmethod
    def blank_reduction_is_unset(cls, v: Any) -> Any:
        return _empty_as_unset(v)

    def patch(self) -> dict[str, Any]:
        fields = self.model_fields_set & {"start_date", "reduction_population_contact"}
        return {name: getattr(self, name) for name in fields}


class UpdatePeriodInterventions(_Action):
    """Set strategy levels on the period at ``index``; a None level removes the strategy."""

    type: Literal["UPDATE_PERIOD_INTERVENTIONS"] = "UPDATE_PERIOD_INTERVENTIONS"
    index: int
    update: dict[str, str | None]


class RemovePeriod(_Action):
    type: Literal["REMOVE_PERIOD"] = "REMOVE_PERIOD"
    index: int


DraftAction = Annotated[
    Union[
        SetRegion,
        SetSubregion,
        SetLabel,
        SetR0,
        SetCustomCalibrationDate,
        AddPeriod,
        UpdatePeriod,
        UpdatePeriodInterventions,
        RemovePeriod,
    ],
    Field(discriminator="type"),
]


class DraftTransitionRequest(BaseModel):
    """Request body for applying one action to a draft."""

    draft: SimulationDraft
    action: DraftAction


class DraftRequest(BaseModel):
    """Request body carrying a draft."""

    draft: SimulationDraft


class DraftConfigResponse(BaseModel):
    """Submission body built from a draft, with its validation result.

    Attributes
    ----------
    body : dict
        ``NewSimulationConfig`` wire body.
    valid : bool
        Whether ``body`` passes validation.
    errors : list of FieldErrorDetail
        Field errors when ``valid`` is False.
    """

    body: dict[str, Any]
    valid: bool
    errors: list[FieldErrorDetail] = Field(default_factory=list)
