"""
Species routes: protein listing and species-wide statistics
"""
import json
from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from typing import Any, List, Optional

from arcpp.api.deps import get_listing, get_species_stats
from arcpp.core.species import resolve_species
from arcpp.schemas import ProteinListing
from arcpp.services.listing import ListingOrchestrator
from arcpp.services.species_stats import SpeciesStatsService

router = APIRouter()

def parse_json_list(raw: Optional[str], name: str) -> List[Any]:
    """Query parameters such as ``datasets=["PXD1"]`` arrive as JSON arrays"""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{name} must be a JSON array")
    if not isinstance(value, list):
        raise HTTPException(status_code=400, detail=f"{name} must be a JSON array")
    return value

@router.get("/species/coverage-stats")
async def get_coverage_stats(stats: SpeciesStatsService = Depends(get_species_stats)):
    """Proteome coverage per species"""
    return await stats.coverage_stats()

@router.get("/species/{species_id}/proteins-summary", response_model=ProteinListing, response_model_by_alias=True)
async def get_proteins_summary(
    species_id: str,
    limit: int = Query(25),
    offset: int = Query(0),
    search: str = Query(""),
    datasets: Optional[str] = Query(None),
    overlaps: Optional[str] = Query(None),
    listing: ListingOrchestrator = Depends(get_listing)
):
    """Paginated protein table"""
    selected_datasets = [str(d) for d in parse_json_list(datasets, "datasets")]
    try:
        selected_overlaps = [int(o) for o in parse_json_list(overlaps, "overlaps")]
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="overlaps must contain integers")

    try:
        return await listing.list_proteins(
            species_id,
            offset=offset,
            limit=limit,
            search=search,
            datasets=selected_datasets,
            overlaps=selected_overlaps,
        )
    except Exception as e:
        logger.error(f"Protein listing for {species_id} failed: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Protein listing failed: {str(e)}"
        )

@router.get("/species/{species_id}/dataset-stats")
async def get_dataset_stats(species_id: str, stats: SpeciesStatsService = Depends(get_species_stats)):
    """Number of proteins in each dataset"""
    return await stats.dataset_stats(resolve_species(species_id))

@router.get("/species/{species_id}/dataset-overlap")
async def get_dataset_overlap(species_id: str, stats: SpeciesStatsService = Depends(get_species_stats)):
    """Number of proteins by how many datasets they appear in"""
    return await stats.dataset_overlap(resolve_species(species_id))

@router.get("/species/{species_id}/modification-stats")
async def get_modification_stats(species_id: str, stats: SpeciesStatsService = Depends(get_species_stats)):
    species = resolve_species(species_id)
    if species is None:
        raise HTTPException(status_code=400, detail="Invalid species")
    return await stats.modification_stats(species)

@router.get("/datasets/ids", response_model=List[str])
async def get_dataset_ids(stats: SpeciesStatsService = Depends(get_species_stats)):
    """Normalized dataset accessions"""
    return await stats.dataset_ids()
