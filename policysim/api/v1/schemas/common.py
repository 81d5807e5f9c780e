"""Common schema definitions used across the API.

This module defines shared response schemas used by multiple endpoints.
"""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema.

    Attributes
    ----------
    detail : str
        Human-readable error message.
    """

    detail: str


class FieldErrorDetail(BaseModel):
    """A single field-addressable validation error.

    Attributes
    ----------
    path : str
        Location of the offending value, e.g.
        ``interventionPeriods[2].reductionPopulationContact``.
    message : str
        Human-readable explanation.
    """

    path: str
    message: str


class UserErrorDetail(BaseModel):
    """Body of a user error (HTTP 422).

    Attributes
    ----------
    message : str
        Summary of what went wrong.
    errors : list of FieldErrorDetail
        Per-field errors; empty when the error is not tied to a field.
    """

    message: str
    errors: list[FieldErrorDetail] = []


class UserErrorResponse(BaseModel):
    """Wrapper matching FastAPI's ``{"detail": ...}`` error envelope."""

    detail: UserErrorDetail


class HealthResponse(BaseModel):
    """Health check response schema.

    Attributes
    ----------
    status : str
        Health status (e.g., 'healthy').
    version : str
        API version string.
    local_mode : bool
        Whether runs are completed against fixture data instead of dispatched.
    """

    status: str
    version: str
    local_mode: bool = False
