"""Operations on ordered sequences of intervention periods.

A draft's periods are kept as a tuple ordered by strictly increasing start
date, with at least one period whose start date is the draft's fixed
baseline. Every operation here returns a new tuple and raises
``PeriodError`` instead of producing a sequence that breaks those rules.
"""

import math
from datetime import date, timedelta
from typing import Any

from ..api.v1.schemas.draft import InterventionPeriod

PERIOD_GRANULARITY = timedelta(days=1)

Periods = tuple[InterventionPeriod, ...]


class PeriodError(ValueError):
    """Raised when an operation would break the period sequence rules."""


def _check_reduction(value: float | None) -> None:
    if value is None:
        return
    if not math.isfinite(value) or not 0 <= value <= 100:
        raise PeriodError(f"Contact reduction must be between 0 and 100, got {value}")


def _check_index(periods: Periods, index: int) -> None:
    if not 0 <= index < len(periods):
        raise PeriodError(f"No intervention period at index {index}")


def next_period_start(periods: Periods) -> date:
    """Return the default start date of a period appended after ``periods``.

    Parameters
    ----------
    periods : tuple of InterventionPeriod
        Non-empty ordered periods.

    Returns
    -------
    date
        The day after the last period's start date.
    """
    return periods[-1].start_date + PERIOD_GRANULARITY


def interventions_end_date(periods: Periods, today: date | None = None) -> date:
    """Return the start date of a terminal "no further interventions" period.

    This is the later of :func:`next_period_start` and ``today``, so an end
    period added to a historical sequence lands on the current date.

    Parameters
    ----------
    periods : tuple of InterventionPeriod
        Non-empty ordered periods.
    today : date or None
        Reference date; defaults to ``date.today()``.

    Returns
    -------
    date
        Start date for the terminal period.
    """
    if today is None:
        today = date.today()
    return max(next_period_start(periods), today)


def insert_period(periods: Periods, new: InterventionPeriod) -> Periods:
    """Append ``new`` after the last period.

    Raises
    ------
    PeriodError
        If ``new`` does not start after the last period or its contact
        reduction is out of range.
    """
    _check_reduction(new.reduction_population_contact)
    if periods and new.start_date <= periods[-1].start_date:
        raise PeriodError(
            f"New period must start after {periods[-1].start_date.isoformat()}, "
            f"got {new.start_date.isoformat()}"
        )
    return (*periods, new)


def update_period(
    periods: Periods, index: int, patch: dict[str, Any], baseline: date
) -> Periods:
    """Replace fields of the period at ``index``.

    Parameters
    ----------
    periods : tuple of InterventionPeriod
        Ordered periods.
    index : int
        Position of the period to update.
    patch : dict
        Field names (``start_date``, ``reduction_population_contact``,
        ``interventions``) to new values.
    baseline : date
        Fixed start date of the first period.

    Returns
    -------
    tuple of InterventionPeriod
        Periods with the target replaced. The edited period is no longer
        considered auto-generated.

    Raises
    ------
    PeriodError
        If the index is unknown, the first period's start date would move,
        ordering would break, or the contact reduction is out of range.
    """
    _check_index(periods, index)
    if "reduction_population_contact" in patch:
        _check_reduction(patch["reduction_population_contact"])

    start = patch.get("start_date", periods[index].start_date)
    if start is None:
        raise PeriodError("Start date cannot be cleared")
    if index == 0 and start != baseline:
        raise PeriodError(f"The first period always starts on {baseline.isoformat()}")
    if index > 0 and start <= periods[index - 1].start_date:
        raise PeriodError(f"Period {index} must start after period {index - 1}")
    if index < len(periods) - 1 and start >= periods[index + 1].start_date:
        raise PeriodError(f"Period {index} must start before period {index + 1}")

    updated = periods[index].model_copy(update={**patch, "is_auto_generated": False})
    return (*periods[:index], updated, *periods[index + 1 :])


def remove_period(periods: Periods, index: int, baseline: date) -> Periods:
    """Remove the period at ``index``.

    When the first period is removed, the period that takes its place is
    moved to the baseline start date.

    Raises
    ------
    PeriodError
        If the index is unknown or it is the only remaining period.
    """
    _check_index(periods, index)
    if len(periods) == 1:
        raise PeriodError("A simulation needs at least one intervention period")

    remaining = (*periods[:index], *periods[index + 1 :])
    if index == 0:
        first = remaining[0].model_copy(update={"start_date": baseline})
        remaining = (first, *remaining[1:])
    return remaining
