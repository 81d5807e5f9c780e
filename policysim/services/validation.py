"""Validation of simulation submission bodies.

The rules live on the ``NewSimulationConfig`` schema; this module runs a
body through it and turns pydantic's errors into field-addressable errors
whose paths match the wire names, e.g.
``interventionPeriods[2].reductionPopulationContact``.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ..api.v1.schemas.simulation import NewSimulationConfig

VALIDATION_MESSAGE = "Please correct the errors in the simulation configuration."


@dataclass(frozen=True)
class FieldError:
    """One violated rule, addressed by path."""

    path: str
    message: str


class ConfigValidationError(ValueError):
    """A submission body that does not satisfy the schema.

    Attributes
    ----------
    errors : list of FieldError
        Violated rules in the order they were found.
    message : str
        Summary message.
    """

    def __init__(self, errors: list[FieldError], message: str = VALIDATION_MESSAGE):
        self.errors = errors
        self.message = message
        super().__init__("; ".join(f"{e.path or 'body'}: {e.message}" for e in errors) or message)

    @property
    def paths(self) -> list[str]:
        return [e.path for e in self.errors]

    def for_path(self, path: str) -> list[FieldError]:
        """Return the errors reported for ``path``."""
        return [e for e in self.errors if e.path == path]


def format_path(loc: Sequence[str | int]) -> str:
    """Render a pydantic error location as a field path.

    Examples
    --------
    >>> format_path(("interventionPeriods", 2, "reductionPopulationContact"))
    'interventionPeriods[2].reductionPopulationContact'
    >>> format_path(("label",))
    'label'
    """
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def _field_error(error: dict[str, Any]) -> FieldError:
    loc = tuple(error["loc"])
    # ordering errors are raised on the whole list; address the offending period
    if error["type"] == "period_order":
        loc = (*loc, error["ctx"]["index"], "startDate")
    return FieldError(path=format_path(loc), message=error["msg"])


def parse_config(body: Any) -> NewSimulationConfig:
    """Validate a submission body and build the immutable config.

    Parameters
    ----------
    body : Any
        Decoded JSON body.

    Returns
    -------
    NewSimulationConfig
        The validated configuration.

    Raises
    ------
    ConfigValidationError
        If any rule is violated.
    """
    try:
        return NewSimulationConfig.model_validate(body)
    except ValidationError as e:
        raise ConfigValidationError([_field_error(err) for err in e.errors()]) from e


def validate_config(body: Any) -> ConfigValidationError | None:
    """Return the validation error for ``body``, or None if it is valid."""
    try:
        parse_config(body)
    except ConfigValidationError as e:
        return e
    return None
