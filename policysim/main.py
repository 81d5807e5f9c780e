"""FastAPI application entry point for the policy simulation WebAPI.

This module configures and creates the FastAPI application instance,
sets up CORS middleware, and defines the root and health check endpoints.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.router import router as api_v1_router
from .api.v1.schemas.common import HealthResponse
from .config import settings
from .services.catalog_service import get_catalog
from .services.storage import InMemorySimulationStore, seed_case_data

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup: load the catalog and open the store
    get_catalog()
    app.state.store = InMemorySimulationStore()
    if settings.seed_case_data:
        count = seed_case_data(app.state.store, settings.data_dir / "case_data.json")
        logger.info(f"Loaded {count} case data records")
    if settings.local_mode:
        logger.info("Local mode: supported runs complete against fixture data")
    yield
    # Shutdown: nothing to clean up


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="REST API for requesting and viewing epidemiological policy simulations",
    docs_url=f"{settings.api_v1_prefix}/docs",
    redoc_url=f"{settings.api_v1_prefix}/redoc",
    openapi_url=f"{settings.api_v1_prefix}/openapi.json",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_v1_router, prefix=settings.api_v1_prefix)


@app.get(f"{settings.api_v1_prefix}/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Check API health status.

    Returns
    -------
    HealthResponse
        Health status including API version and execution mode.
    """
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        local_mode=settings.local_mode,
    )


@app.get("/", include_in_schema=False)
async def root():
    """Root endpoint providing API information.

    Returns
    -------
    dict
        Dictionary with API name and links to documentation and health check.
    """
    return {
        "message": "Policy Simulation WebAPI",
        "docs": f"{settings.api_v1_prefix}/docs",
        "health": f"{settings.api_v1_prefix}/health",
    }
