"""State machine behind the new-simulation form.

A ``SimulationDraft`` only ever changes through :func:`apply`, which maps
the current draft and one action to the next draft. ``apply`` is pure: it
reads the catalog, never writes anything, and returns the draft unchanged
when an action would leave it inconsistent (unknown region, misordered or
missing periods, values outside their range, strategies the region does
not offer).
"""

import logging
import math
from datetime import date
from typing import Any

from ..api.v1.schemas.catalog import InterventionCatalog, StrategySpec
from ..api.v1.schemas.draft import (
    AddPeriod,
    DraftAction,
    InterventionPeriod,
    RemovePeriod,
    SetCustomCalibrationDate,
    SetLabel,
    SetR0,
    SetRegion,
    SetSubregion,
    SimulationDraft,
    UpdatePeriod,
    UpdatePeriodInterventions,
)
from ..api.v1.schemas.simulation import LABEL_MAX_LENGTH, R0_MAX
from ..config import settings
from .catalog_service import Catalog
from .intervention_periods import (
    PeriodError,
    Periods,
    insert_period,
    interventions_end_date,
    next_period_start,
    remove_period,
    update_period,
)

logger = logging.getLogger(__name__)


class TransitionRejected(ValueError):
    """Raised internally when an action would break a draft invariant."""


def _applicable(
    interventions: InterventionCatalog, region_id: str, subregion_id: str
) -> dict[str, StrategySpec]:
    return interventions.applicable_strategies(region_id, subregion_id)


def _filter_strategies(chosen: dict[str, str], applicable: dict[str, StrategySpec]) -> dict[str, str]:
    return {
        key: level
        for key, level in chosen.items()
        if key in applicable and level in applicable[key].levels
    }


def derive_periods(
    interventions: InterventionCatalog, region_id: str, subregion_id: str
) -> Periods:
    """Build the auto-generated periods for a subregion.

    Historical policies become one period each, ordered by start date; when
    two policies share a date the later entry wins. A subregion without any
    policy gets a single zero-reduction period on the catalog's default
    start date.

    Parameters
    ----------
    interventions : InterventionCatalog
        Intervention catalog.
    region_id : str
        Top-level region code.
    subregion_id : str
        Subregion code.

    Returns
    -------
    tuple of InterventionPeriod
        Non-empty, strictly increasing periods, all auto-generated.
    """
    applicable = _applicable(interventions, region_id, subregion_id)
    periods: list[InterventionPeriod] = []
    policies = interventions.for_region(region_id, subregion_id).policies
    for policy in sorted(policies, key=lambda p: p.start_date):
        period = InterventionPeriod(
            start_date=policy.start_date,
            reduction_population_contact=policy.reduction_population_contact,
            is_auto_generated=True,
            interventions=_filter_strategies(policy.interventions, applicable),
        )
        if periods and periods[-1].start_date == period.start_date:
            periods[-1] = period
        else:
            periods.append(period)

    if not periods:
        periods.append(
            InterventionPeriod(
                start_date=interventions.default_start_date,
                reduction_population_contact=0,
                is_auto_generated=True,
            )
        )
    return tuple(periods)


def _rederive(
    state: SimulationDraft, catalog: Catalog, region_id: str, subregion_id: str
) -> SimulationDraft:
    derived = derive_periods(catalog.interventions, region_id, subregion_id)
    applicable = _applicable(catalog.interventions, region_id, subregion_id)
    # user-created periods survive if they still fit after the derived ones
    carried = tuple(
        period.model_copy(
            update={"interventions": _filter_strategies(period.interventions, applicable)}
        )
        for period in state.intervention_periods
        if not period.is_auto_generated and period.start_date > derived[-1].start_date
    )
    return state.model_copy(
        update={
            "region_id": region_id,
            "subregion_id": subregion_id,
            "baseline_date": derived[0].start_date,
            "intervention_periods": derived + carried,
        }
    )


def initialize_draft(catalog: Catalog, region_id: str | None = None) -> SimulationDraft:
    """Create the draft a new-simulation form starts from.

    Parameters
    ----------
    catalog : Catalog
        Application catalog.
    region_id : str or None
        Region to start from; defaults to the configured default region.

    Returns
    -------
    SimulationDraft
        Draft for the region's first subregion with periods derived from
        the intervention catalog and every optional field unset.

    Raises
    ------
    KeyError
        If the region is not in the catalog.
    """
    region_id = region_id or settings.default_region
    region = catalog.regions.get(region_id)
    if region is None:
        raise KeyError(f"Unknown region '{region_id}'")

    subregion_id = next(iter(region.regions))
    periods = derive_periods(catalog.interventions, region_id, subregion_id)
    return SimulationDraft(
        region_id=region_id,
        subregion_id=subregion_id,
        baseline_date=periods[0].start_date,
        intervention_periods=periods,
    )


def _check_strategies(
    update: dict[str, Any], applicable: dict[str, StrategySpec]
) -> None:
    for key, level in update.items():
        if key not in applicable:
            raise TransitionRejected(f"Strategy '{key}' is not available in this region")
        if level is not None and level not in applicable[key].levels:
            raise TransitionRejected(f"'{level}' is not a level of strategy '{key}'")


def _transition(state: SimulationDraft, action: DraftAction, catalog: Catalog) -> SimulationDraft:
    if isinstance(action, SetRegion):
        region = catalog.regions.get(action.region_id)
        if region is None:
            raise TransitionRejected(f"Unknown region '{action.region_id}'")
        return _rederive(state, catalog, region.id, next(iter(region.regions)))

    if isinstance(action, SetSubregion):
        region = catalog.regions.get(state.region_id)
        if region is None or action.subregion_id not in region.regions:
            raise TransitionRejected(
                f"'{action.subregion_id}' is not a subregion of '{state.region_id}'"
            )
        if action.subregion_id == state.subregion_id:
            return state
        return _rederive(state, catalog, state.region_id, action.subregion_id)

    if isinstance(action, SetLabel):
        if len(action.label) > LABEL_MAX_LENGTH:
            raise TransitionRejected(f"Label is longer than {LABEL_MAX_LENGTH} characters")
        return state.model_copy(update={"label": action.label})

    if isinstance(action, SetR0):
        r0 = action.r0
        if r0 is not None and (not math.isfinite(r0) or not 0 <= r0 <= R0_MAX):
            raise TransitionRejected(f"R0 must be between 0 and {R0_MAX}, got {r0}")
        return state.model_copy(update={"r0": r0})

    if isinstance(action, SetCustomCalibrationDate):
        calibration_date = action.custom_calibration_date
        if calibration_date is not None and calibration_date > date.today():
            raise TransitionRejected(f"Calibration date {calibration_date} is in the future")
        return state.model_copy(update={"custom_calibration_date": calibration_date})

    if isinstance(action, AddPeriod):
        _check_strategies(
            action.period.interventions,
            _applicable(catalog.interventions, state.region_id, state.subregion_id),
        )
        periods = insert_period(state.intervention_periods, action.period)
        return state.model_copy(update={"intervention_periods": periods})

    if isinstance(action, UpdatePeriod):
        periods = update_period(
            state.intervention_periods, action.index, action.patch(), state.baseline_date
        )
        return state.model_copy(update={"intervention_periods": periods})

    if isinstance(action, UpdatePeriodInterventions):
        if not 0 <= action.index < len(state.intervention_periods):
            raise TransitionRejected(f"No intervention period at index {action.index}")
        _check_strategies(
            action.update,
            _applicable(catalog.interventions, state.region_id, state.subregion_id),
        )
        chosen = dict(state.intervention_periods[action.index].interventions)
        for key, level in action.update.items():
            if level is None:
                chosen.pop(key, None)
            else:
                chosen[key] = level
        periods = update_period(
            state.intervention_periods,
            action.index,
            {"interventions": chosen},
            state.baseline_date,
        )
        return state.model_copy(update={"intervention_periods": periods})

    if isinstance(action, RemovePeriod):
        periods = remove_period(state.intervention_periods, action.index, state.baseline_date)
        return state.model_copy(update={"intervention_periods": periods})

    raise TypeError(f"Unhandled draft action: {type(action).__name__}")


def apply(state: SimulationDraft, action: DraftAction, catalog: Catalog) -> SimulationDraft:
    """Apply one action to a draft.

    Parameters
    ----------
    state : SimulationDraft
        Current draft.
    action : DraftAction
        Action to apply.
    catalog : Catalog
        Regions and interventions the draft is checked against.

    Returns
    -------
    SimulationDraft
        The next draft, or ``state`` itself when the action is rejected.
    """
    try:
        return _transition(state, action, catalog)
    except (TransitionRejected, PeriodError) as e:
        logger.debug(f"Rejected {action.type}: {e}")
        return state


def new_policy_period(state: SimulationDraft) -> InterventionPeriod:
    """Period added by "add policy changes".

    It starts the day after the last period, keeps the last period's
    strategies and waits for a contact reduction to be entered.
    """
    last = state.intervention_periods[-1]
    return InterventionPeriod(
        start_date=next_period_start(state.intervention_periods),
        reduction_population_contact=None,
        interventions=dict(last.interventions),
    )


def new_end_period(state: SimulationDraft, today: date | None = None) -> InterventionPeriod:
    """Period added by "add interventions end date": no strategies, no reduction."""
    return InterventionPeriod(
        start_date=interventions_end_date(state.intervention_periods, today),
        reduction_population_contact=0,
    )


def create_form_body(state: SimulationDraft) -> dict[str, Any]:
    """Build the ``NewSimulationConfig`` wire body from a draft.

    Only the start date and contact reduction of each period are sent.
    """
    return {
        "regionID": state.region_id,
        "subregionID": state.subregion_id,
        "label": state.label,
        "r0": state.r0,
        "customCalibrationDate": (
            state.custom_calibration_date.isoformat() if state.custom_calibration_date else None
        ),
        "interventionPeriods": [
            {
                "startDate": period.start_date.isoformat(),
                "reductionPopulationContact": period.reduction_population_contact,
            }
            for period in state.intervention_periods
        ],
    }
