"""Catalog service for regions, intervention strategies and models.

This module loads the bundled region and intervention catalogs, declares
the model catalog, and decides which models support a given region.
"""

import functools
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from ..api.v1.schemas.catalog import (
    SELF_SUBREGION,
    InterventionCatalog,
    ModelSpec,
    TopLevelRegion,
)
from ..config import settings

logger = logging.getLogger(__name__)


# Models simulations are run with
MODELS = [
    ModelSpec(
        slug="mrc-ide-covid-sim",
        name="CovidSim",
        description="Individual-based spatial simulation of transmission in "
        "households, schools, workplaces and the wider community.",
        image_url="ghcr.io/covid-policy-modelling/covid-sim/covid-sim-connector:latest",
        supported_parameters=["r0"],
    ),
    ModelSpec(
        slug="basel",
        name="CovidSIM Basel",
        description="Age-structured SEIR compartmental model with hospitalisation "
        "and intensive care compartments.",
        image_url="ghcr.io/covid-policy-modelling/covid19-scenarios/covid19-scenarios-connector:latest",
        supported_regions={
            "US": ["US-CA", "US-NY", "US-WA"],
            "GB": [],
        },
        supported_parameters=["r0"],
    ),
    ModelSpec(
        slug="wss",
        name="Washington State Simulation",
        description="Metapopulation model calibrated to Washington State case data.",
        image_url="ghcr.io/covid-policy-modelling/wss/wss-connector:latest",
        supported_regions={"US": ["US-WA"]},
    ),
]


@dataclass(frozen=True)
class Catalog:
    """Read-only catalogs the draft state machine and orchestrator work against."""

    regions: dict[str, TopLevelRegion]
    interventions: InterventionCatalog
    models: tuple[ModelSpec, ...]

    def subregion_name(self, region_id: str, subregion_id: str) -> str | None:
        if subregion_id == SELF_SUBREGION:
            return None
        region = self.regions.get(region_id)
        subregion = region.regions.get(subregion_id) if region else None
        return subregion.name if subregion else None

    def region_name(self, region_id: str) -> str | None:
        region = self.regions.get(region_id)
        return region.name if region else None


def _read_json(path: Path):
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def load_regions(data_dir: Path) -> dict[str, TopLevelRegion]:
    """Load the region catalog from ``regions.json``.

    Parameters
    ----------
    data_dir : Path
        Directory containing the bundled catalog files.

    Returns
    -------
    dict of {str: TopLevelRegion}
        Top-level regions keyed by region code, in file order.
    """
    raw = _read_json(data_dir / "regions.json")
    return {region_id: TopLevelRegion.model_validate(region) for region_id, region in raw.items()}


def load_interventions(data_dir: Path) -> InterventionCatalog:
    """Load the intervention catalog from ``interventions.json``."""
    return InterventionCatalog.model_validate(_read_json(data_dir / "interventions.json"))


@functools.lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    """Get the application catalog.

    Results are cached so the bundled files are read once per process.

    Returns
    -------
    Catalog
        Regions, interventions and models.
    """
    regions = load_regions(settings.data_dir)
    interventions = load_interventions(settings.data_dir)
    logger.info(
        f"Loaded catalog: {len(regions)} regions, "
        f"{len(interventions.strategies)} strategies, {len(MODELS)} models"
    )
    return Catalog(regions=regions, interventions=interventions, models=tuple(MODELS))


def model_supports(spec: ModelSpec, region_id: str, subregion_id: str | None) -> bool:
    """Decide whether a model can run a simulation for a region.

    Parameters
    ----------
    spec : ModelSpec
        Model to check.
    region_id : str
        Top-level region code.
    subregion_id : str or None
        Subregion code, '_self' or None for the region as a whole.

    Returns
    -------
    bool
        True if the model declares no region restriction, or the region is
        declared and either the whole region or the subregion is requested.
    """
    # Undocumented support means any region
    if spec.supported_regions is None:
        return True
    if region_id not in spec.supported_regions:
        return False
    if subregion_id is None or subregion_id == SELF_SUBREGION:
        return True
    return subregion_id in spec.supported_regions[region_id]
