from datetime import date, timedelta

import pytest

from policysim.services.validation import (
    ConfigValidationError,
    format_path,
    parse_config,
    validate_config,
)


def with_changes(config, **changes):
    return {**config, **changes}


def test_valid_config_parses(valid_config):
    """Test parsing a valid config."""
    config = parse_config(valid_config)
    assert config.region_id == "US"
    assert config.subregion_id == "US-CA"
    assert config.intervention_periods[0].start_date == date(2020, 3, 1)
    assert validate_config(valid_config) is None


def test_editing_fields_are_ignored(valid_config):
    """Test form-only period fields are ignored."""
    periods = [
        {"startDate": "2020-03-01", "reductionPopulationContact": 0, "isAutoGenerated": True},
    ]
    assert validate_config(with_changes(valid_config, interventionPeriods=periods)) is None


def test_label_is_trimmed(valid_config):
    """Test the label is trimmed."""
    assert parse_config(with_changes(valid_config, label="  Spring  ")).label == "Spring"


@pytest.mark.parametrize("label", ["", "   ", "x" * 101])
def test_invalid_label(valid_config, label):
    """Test invalid labels are rejected."""
    error = validate_config(with_changes(valid_config, label=label))
    assert error.paths == ["label"]


@pytest.mark.parametrize("r0", [-1, 10.01, "abc"])
def test_invalid_r0(valid_config, r0):
    """Test invalid R0 values are rejected."""
    error = validate_config(with_changes(valid_config, r0=r0))
    assert error.paths == ["r0"]


@pytest.mark.parametrize("r0", [0, 2.5, 10])
def test_r0_bounds_are_inclusive(valid_config, r0):
    """Test R0 bounds are inclusive."""
    assert validate_config(with_changes(valid_config, r0=r0)) is None


def test_future_calibration_date(valid_config):
    """Test a future calibration date is rejected."""
    future = date.today() + timedelta(days=30)
    error = validate_config(with_changes(valid_config, customCalibrationDate=future.isoformat()))
    assert error.paths == ["customCalibrationDate"]
    assert future.isoformat() in error.errors[0].message


@pytest.mark.parametrize(
    "region, subregion",
    [("US", "GB-ENG"), ("usa", "_self"), ("US", "california")],
)
def test_invalid_region_codes(valid_config, region, subregion):
    """Test unknown region codes are rejected."""
    error = validate_config(with_changes(valid_config, regionID=region, subregionID=subregion))
    assert error is not None
    assert set(error.paths) <= {"regionID", "subregionID"}


def test_self_subregion_is_accepted(valid_config):
    """Test the whole-region subregion is accepted."""
    assert validate_config(with_changes(valid_config, subregionID="_self")) is None


def test_empty_periods(valid_config):
    """Test a config without periods is rejected."""
    error = validate_config(with_changes(valid_config, interventionPeriods=[]))
    assert error.paths == ["interventionPeriods"]


def test_duplicate_start_date_addresses_second_period(valid_config):
    """Test a duplicate start date is reported on the second period."""
    periods = [
        {"startDate": "2020-03-01", "reductionPopulationContact": 0},
        {"startDate": "2020-03-01", "reductionPopulationContact": 10},
    ]
    error = validate_config(with_changes(valid_config, interventionPeriods=periods))
    assert error.paths == ["interventionPeriods[1].startDate"]


def test_out_of_order_period(valid_config):
    """Test an out-of-order period is rejected."""
    periods = [
        {"startDate": "2020-03-01", "reductionPopulationContact": 0},
        {"startDate": "2020-03-10", "reductionPopulationContact": 10},
        {"startDate": "2020-03-05", "reductionPopulationContact": 20},
    ]
    error = validate_config(with_changes(valid_config, interventionPeriods=periods))
    assert error.paths == ["interventionPeriods[2].startDate"]


@pytest.mark.parametrize("reduction", [None, -5, 101, "lots"])
def test_invalid_reduction(valid_config, reduction):
    """Test invalid reductions are rejected."""
    periods = [
        {"startDate": "2020-03-01", "reductionPopulationContact": 0},
        {"startDate": "2020-03-10", "reductionPopulationContact": reduction},
    ]
    error = validate_config(with_changes(valid_config, interventionPeriods=periods))
    assert error.paths == ["interventionPeriods[1].reductionPopulationContact"]


def test_missing_fields_are_all_reported():
    """Test every missing field is reported."""
    error = validate_config({"label": "Only a label"})
    assert {"regionID", "subregionID", "interventionPeriods"} <= set(error.paths)


def test_parse_config_raises_with_message(valid_config):
    """Test parse_config raises with a readable message."""
    with pytest.raises(ConfigValidationError) as exc_info:
        parse_config(with_changes(valid_config, label=""))
    assert exc_info.value.message
    assert exc_info.value.for_path("label")
    assert exc_info.value.for_path("r0") == []


def test_format_path():
    """Test formatting error locations as paths."""
    assert format_path(("interventionPeriods", 2, "reductionPopulationContact")) == (
        "interventionPeriods[2].reductionPopulationContact"
    )
    assert format_path(("label",)) == "label"
    assert format_path(()) == ""
