"""Draft API endpoints.

This module exposes the new-simulation form's state machine: the initial
draft for a region, applying one action to a draft, the periods added by
the form's "add" buttons, and the submission body a draft turns into.
"""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query

from ....services import draft_state
from ....services.catalog_service import Catalog
from ....services.validation import validate_config
from ...deps import get_app_catalog
from ..schemas.common import ErrorResponse, FieldErrorDetail
from ..schemas.draft import (
    DraftConfigResponse,
    DraftRequest,
    DraftTransitionRequest,
    InterventionPeriod,
    SimulationDraft,
)

router = APIRouter()


@router.get(
    "/initial",
    response_model=SimulationDraft,
    summary="Initial draft",
    description="Draft a new-simulation form starts from.",
    responses={404: {"model": ErrorResponse}},
)
async def get_initial_draft(
    region_id: str | None = Query(
        default=None, alias="regionID", description="Region to start from (default: US)"
    ),
    catalog: Catalog = Depends(get_app_catalog),
) -> SimulationDraft:
    try:
        return draft_state.initialize_draft(catalog, region_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Region '{region_id}' not found")


@router.post(
    "/transition",
    response_model=SimulationDraft,
    summary="Apply an action",
    description=(
        "Apply one action to a draft. Actions that would leave the draft "
        "inconsistent return the draft unchanged."
    ),
)
async def transition_draft(
    request: DraftTransitionRequest,
    catalog: Catalog = Depends(get_app_catalog),
) -> SimulationDraft:
    return draft_state.apply(request.draft, request.action, catalog)


@router.post(
    "/new-period",
    response_model=InterventionPeriod,
    summary="Period to add",
    description=(
        "Period proposed by 'add policy changes' (kind=policy) or "
        "'add interventions end date' (kind=end)."
    ),
)
async def propose_period(
    request: DraftRequest,
    kind: Literal["policy", "end"] = Query(default="policy"),
) -> InterventionPeriod:
    if kind == "end":
        return draft_state.new_end_period(request.draft)
    return draft_state.new_policy_period(request.draft)


@router.post(
    "/config",
    response_model=DraftConfigResponse,
    summary="Submission body",
    description="Build the submission body for a draft and validate it.",
)
async def build_draft_config(request: DraftRequest) -> DraftConfigResponse:
    body = draft_state.create_form_body(request.draft)
    error = validate_config(body)
    if error is None:
        return DraftConfigResponse(body=body, valid=True)
    return DraftConfigResponse(
        body=body,
        valid=False,
        errors=[FieldErrorDetail(path=e.path, message=e.message) for e in error.errors],
    )
