"""Catalog schema definitions.

This module defines Pydantic models for the read-only catalogs the
new-simulation form works against: regions and their subregions,
intervention strategies with their per-region applicability, and the
models a simulation is run with.
"""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field

SELF_SUBREGION = "_self"


class Region(BaseModel):
    """A selectable subregion.

    Attributes
    ----------
    id : str
        Subregion identifier (e.g., 'US-CA'), or '_self' for the region as a whole.
    name : str
        Human-readable name.
    """

    id: str
    name: str


class TopLevelRegion(BaseModel):
    """A top-level region with its subregions.

    Attributes
    ----------
    id : str
        Two-letter region code (e.g., 'US').
    name : str
        Human-readable name.
    regions : dict of {str: Region}
        Subregions keyed by identifier, in display order. Regions without
        subdivisions hold a single '_self' entry.
    """

    id: str
    name: str
    regions: dict[str, Region] = Field(..., min_length=1)


class StrategySpec(BaseModel):
    """A named intervention strategy and the levels it can be set to."""

    name: str
    levels: list[str] = Field(..., min_length=1)


class PolicyPeriod(BaseModel):
    """A historical policy period enacted in a region.

    Attributes
    ----------
    start_date : date
        Date the policy came into force.
    reduction_population_contact : float
        Estimated percentage reduction in contact rate.
    interventions : dict of {str: str}
        Strategy key to level.
    """

    model_config = ConfigDict(populate_by_name=True)

    start_date: date = Field(..., alias="startDate")
    reduction_population_contact: float = Field(
        ..., ge=0, le=100, alias="reductionPopulationContact"
    )
    interventions: dict[str, str] = Field(default_factory=dict)


class RegionInterventions(BaseModel):
    """Interventions known for one region/subregion.

    Attributes
    ----------
    strategies : list of str or None
        Strategy keys applicable here. None means every cataloged strategy.
    policies : list of PolicyPeriod
        Historical policy periods, used to seed the draft.
    """

    strategies: list[str] | None = None
    policies: list[PolicyPeriod] = Field(default_factory=list)


class InterventionCatalog(BaseModel):
    """Intervention strategies and where they apply.

    Attributes
    ----------
    default_start_date : date
        First period start date for regions without historical policies.
    strategies : dict of {str: StrategySpec}
        All known strategies keyed by strategy key.
    regions : dict
        ``{region_id: {subregion_id: RegionInterventions}}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    default_start_date: date = Field(..., alias="defaultStartDate")
    strategies: dict[str, StrategySpec]
    regions: dict[str, dict[str, RegionInterventions]] = Field(default_factory=dict)

    def for_region(self, region_id: str, subregion_id: str) -> RegionInterventions:
        """Return the interventions for a subregion, or an empty entry."""
        return self.regions.get(region_id, {}).get(subregion_id, RegionInterventions())

    def applicable_strategies(self, region_id: str, subregion_id: str) -> dict[str, StrategySpec]:
        """Return the strategies that may be chosen in a subregion."""
        keys = self.for_region(region_id, subregion_id).strategies
        if keys is None:
            return dict(self.strategies)
        return {key: spec for key, spec in self.strategies.items() if key in keys}


class ModelSpec(BaseModel):
    """A model that simulations are run with.

    Attributes
    ----------
    slug : str
        Model identifier.
    name : str
        Display name.
    description : str
        Short description of the model.
    image_url : str
        Container image the execution pipeline runs.
    supported_regions : dict of {str: list of str} or None
        Region to supported subregions. None means any region is supported;
        an empty list means only the region as a whole.
    supported_parameters : list of str
        Optional simulation parameters the model honours (e.g., 'r0').
    """

    slug: str
    name: str
    description: str = ""
    image_url: str
    supported_regions: dict[str, list[str]] | None = None
    supported_parameters: list[str] = Field(default_factory=list)


class ModelsListResponse(BaseModel):
    """Response for listing cataloged models."""

    models: list[ModelSpec]
