"""Catalog API endpoints.

This module provides the read-only catalogs the new-simulation form is
built from: regions, intervention strategies and models.
"""

from fastapi import APIRouter, Depends

from ....services.catalog_service import Catalog
from ...deps import get_app_catalog
from ..schemas.catalog import InterventionCatalog, ModelsListResponse, TopLevelRegion

router = APIRouter()


@router.get(
    "/regions",
    response_model=dict[str, TopLevelRegion],
    summary="List regions",
    description="Top-level regions with their subregions.",
)
async def get_regions(catalog: Catalog = Depends(get_app_catalog)) -> dict[str, TopLevelRegion]:
    return catalog.regions


@router.get(
    "/interventions",
    response_model=InterventionCatalog,
    summary="List intervention strategies",
    description="Intervention strategies and the historical policies known per region.",
)
async def get_interventions(catalog: Catalog = Depends(get_app_catalog)) -> InterventionCatalog:
    return catalog.interventions


@router.get(
    "/models",
    response_model=ModelsListResponse,
    summary="List models",
    description="Models simulations are run with, and the regions they support.",
)
async def get_models(catalog: Catalog = Depends(get_app_catalog)) -> ModelsListResponse:
    """List cataloged models.

    Returns
    -------
    ModelsListResponse
        Every model, including the regions it supports.
    """
    return ModelsListResponse(models=list(catalog.models))
