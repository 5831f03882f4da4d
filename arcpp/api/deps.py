"""
Request dependencies: services are built once in the app lifespan
"""
from fastapi import Request

from arcpp.services.cache import TieredSummaryCache
from arcpp.services.listing import ListingOrchestrator
from arcpp.services.proteins import ProteinService
from arcpp.services.species_stats import SpeciesStatsService


def get_protein_service(request: Request) -> ProteinService:
    return request.app.state.protein_service


def get_listing(request: Request) -> ListingOrchestrator:
    return request.app.state.listing


def get_species_stats(request: Request) -> SpeciesStatsService:
    return request.app.state.species_stats


def get_summary_cache(request: Request) -> TieredSummaryCache:
    return request.app.state.summary_cache
