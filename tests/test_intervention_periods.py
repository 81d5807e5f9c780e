from datetime import date

import pytest

from policysim.api.v1.schemas.draft import InterventionPeriod
from policysim.services.intervention_periods import (
    PeriodError,
    insert_period,
    interventions_end_date,
    next_period_start,
    remove_period,
    update_period,
)

BASELINE = date(2020, 3, 1)


def make_periods(*days: int) -> tuple[InterventionPeriod, ...]:
    return tuple(
        InterventionPeriod(start_date=date(2020, 3, day), reduction_population_contact=10 * i)
        for i, day in enumerate(days)
    )


def test_next_period_start_is_day_after_last():
    """Test the next period starts the day after the last one."""
    periods = make_periods(1, 16)
    assert next_period_start(periods) == date(2020, 3, 17)


def test_next_period_start_crosses_month_end():
    """Test the next period start rolls over the month end."""
    periods = (InterventionPeriod(start_date=date(2020, 2, 29)),)
    assert next_period_start(periods) == date(2020, 3, 1)


def test_interventions_end_date_uses_today_when_later():
    """Test the end date is today when periods lie in the past."""
    periods = make_periods(1, 16)
    assert interventions_end_date(periods, today=date(2020, 6, 1)) == date(2020, 6, 1)


def test_interventions_end_date_follows_future_periods():
    """Test the end date follows periods that start after today."""
    periods = make_periods(1, 16)
    assert interventions_end_date(periods, today=date(2020, 3, 2)) == date(2020, 3, 17)


def test_insert_period_appends():
    """Test inserting a period after the last one."""
    periods = make_periods(1)
    new = InterventionPeriod(start_date=date(2020, 3, 20), reduction_population_contact=40)
    result = insert_period(periods, new)
    assert result == (*periods, new)
    assert len(periods) == 1


@pytest.mark.parametrize("day", [1, 10])
def test_insert_period_rejects_start_not_after_last(day):
    """Test inserting a period that does not start after the last is rejected."""
    periods = make_periods(1, 10)
    with pytest.raises(PeriodError):
        insert_period(periods, InterventionPeriod(start_date=date(2020, 3, day)))


@pytest.mark.parametrize("reduction", [-1, 100.5, float("nan"), float("inf")])
def test_insert_period_rejects_out_of_range_reduction(reduction):
    """Test inserting a period with an out-of-range reduction is rejected."""
    with pytest.raises(PeriodError):
        insert_period(
            make_periods(1),
            InterventionPeriod(start_date=date(2020, 4, 1), reduction_population_contact=reduction),
        )


def test_insert_period_accepts_unset_reduction():
    """Test inserting a period without a reduction."""
    new = InterventionPeriod(start_date=date(2020, 4, 1))
    assert insert_period(make_periods(1), new)[-1].reduction_population_contact is None


def test_update_period_replaces_only_target():
    """Test updating a period leaves the others untouched."""
    periods = make_periods(1, 10, 20)
    result = update_period(periods, 1, {"reduction_population_contact": 75}, BASELINE)
    assert result[1].reduction_population_contact == 75
    assert result[0] == periods[0]
    assert result[2] == periods[2]


def test_update_period_marks_period_user_owned():
    """Test an updated period is no longer auto-generated."""
    periods = (
        InterventionPeriod(start_date=BASELINE, reduction_population_contact=0, is_auto_generated=True),
    )
    result = update_period(periods, 0, {"reduction_population_contact": 5}, BASELINE)
    assert result[0].is_auto_generated is False


def test_update_period_moves_start_within_neighbours():
    """Test moving a start date between its neighbours."""
    periods = make_periods(1, 10, 20)
    result = update_period(periods, 1, {"start_date": date(2020, 3, 15)}, BASELINE)
    assert result[1].start_date == date(2020, 3, 15)


@pytest.mark.parametrize(
    "index, start",
    [
        (1, date(2020, 3, 1)),
        (1, date(2020, 3, 20)),
        (2, date(2020, 3, 5)),
        (0, date(2020, 3, 2)),
    ],
)
def test_update_period_rejects_misordered_or_moved_first(index, start):
    """Test misordering periods or moving the first is rejected."""
    with pytest.raises(PeriodError):
        update_period(make_periods(1, 10, 20), index, {"start_date": start}, BASELINE)


def test_update_period_rejects_unknown_index():
    """Test updating an unknown index is rejected."""
    with pytest.raises(PeriodError):
        update_period(make_periods(1), 3, {"reduction_population_contact": 1}, BASELINE)


def test_remove_only_period_is_rejected():
    """Test removing the only period is rejected."""
    with pytest.raises(PeriodError):
        remove_period(make_periods(1), 0, BASELINE)


def test_remove_middle_period():
    """Test removing a middle period."""
    periods = make_periods(1, 10, 20)
    result = remove_period(periods, 1, BASELINE)
    assert [p.start_date.day for p in result] == [1, 20]


def test_remove_first_period_moves_next_to_baseline():
    """Test removing the first period moves the next one to the baseline."""
    periods = make_periods(1, 10, 20)
    result = remove_period(periods, 0, BASELINE)
    assert result[0].start_date == BASELINE
    assert result[0].reduction_population_contact == periods[1].reduction_population_contact
    assert result[1] == periods[2]
