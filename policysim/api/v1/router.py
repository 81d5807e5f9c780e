"""API v1 router configuration.

This module aggregates all API v1 endpoint routers into a single router
that is mounted at the /api/v1 prefix.
"""

from fastapi import APIRouter

from .endpoints import catalog, drafts, simulations

router = APIRouter()

router.include_router(
    simulations.router,
    prefix="/simulations",
    tags=["Simulations"],
)

router.include_router(
    drafts.router,
    prefix="/drafts",
    tags=["Drafts"],
)

router.include_router(
    catalog.router,
    tags=["Catalog"],
)
