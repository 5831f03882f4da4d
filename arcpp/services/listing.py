"""
Paginated, searchable, filterable protein listings.

Unfiltered listings are answered from the summary cache; dataset and overlap
filters, a cold cache or a cache outage route the request to the database,
where page rows are enriched on the fly.
"""
import time
from typing import List, Optional, Sequence

from loguru import logger

from arcpp.analysis.summary import ProteinSummaryBuilder
from arcpp.core.config import settings
from arcpp.core.exceptions import CacheUnavailableError
from arcpp.core.species import SpeciesDescriptor, resolve_species
from arcpp.schemas import ProteinListing, ProteinRecord
from arcpp.services.cache import TieredSummaryCache

SOURCE_CACHE = "cache"
SOURCE_AUTHORITATIVE = "authoritative"


def clamp_page(offset: Optional[int], limit: Optional[int]):
    limit = settings.DEFAULT_PAGE_SIZE if limit is None else limit
    limit = max(1, min(settings.MAX_PAGE_SIZE, int(limit)))
    offset = max(0, int(offset or 0))
    return offset, limit


def protein_matches(protein: ProteinRecord, query: str) -> bool:
    query = query.lower()
    fields = [protein.protein_id, protein.uniprot_id, protein.description]
    fields.extend(protein.dataset_ids or [])
    return any(query in (f or "").lower() for f in fields)


def filter_proteins(
    proteins: List[ProteinRecord],
    datasets: Sequence[str] = (),
    overlaps: Sequence[int] = (),
) -> List[ProteinRecord]:
    """Dataset membership (any of) first, then dataset-count membership"""
    selected = proteins
    if datasets:
        wanted = set(datasets)
        selected = [p for p in selected if wanted.intersection(p.dataset_ids or [])]
    if overlaps:
        counts = set(overlaps)
        selected = [p for p in selected if p.dataset_count in counts]
    return selected


class ListingOrchestrator:
    def __init__(self, repository, cache: TieredSummaryCache, builder: ProteinSummaryBuilder):
        self.repository = repository
        self.cache = cache
        self.builder = builder

    async def list_proteins(
        self,
        species_id: str,
        offset: int = 0,
        limit: Optional[int] = None,
        search: str = "",
        datasets: Optional[List[str]] = None,
        overlaps: Optional[List[int]] = None,
    ) -> ProteinListing:
        start_time = time.perf_counter()
        offset, limit = clamp_page(offset, limit)
        search = (search or "").strip()
        datasets = [d for d in (datasets or []) if d]
        overlaps = list(overlaps or [])

        logger.info(f"Protein summary request: species={species_id}, search='{search}', limit={limit}, offset={offset}")

        species = resolve_species(species_id)
        if species is None:
            logger.warning(f"Unknown species '{species_id}', returning empty listing")
            return ProteinListing(species_id=species_id, total=0, offset=offset, limit=limit, rows=[], source=SOURCE_AUTHORITATIVE)

        if not datasets and not overlaps:
            listing = await self._from_cache(species_id, species, offset, limit, search)
            if listing is not None:
                elapsed = (time.perf_counter() - start_time) * 1000
                logger.info(f"Cache response in {elapsed:.0f}ms ({listing.total} proteins)")
                return listing
            logger.info("Cache miss, falling back to database")
        else:
            logger.info("Filters applied, using database aggregation")

        listing = await self._from_database(species_id, species, offset, limit, search, datasets, overlaps)
        elapsed = (time.perf_counter() - start_time) * 1000
        logger.info(f"Database response in {elapsed:.0f}ms ({listing.total} proteins)")
        return listing

    async def _from_cache(
        self,
        species_id: str,
        species: SpeciesDescriptor,
        offset: int,
        limit: int,
        search: str,
    ) -> Optional[ProteinListing]:
        """Cache answer, or ``None`` when the database must answer instead"""
        try:
            # single summaries cached on read do not make a complete listing
            if not await self.cache.is_seeded():
                logger.info("Summary cache not seeded")
                return None
            if search:
                matches = await self.cache.search_summaries(search, species.id_prefix)
                total = len(matches)
                rows = matches[offset:offset + limit]
            else:
                page = await self.cache.page(species.id_prefix, offset, limit)
                if page.total == 0:
                    return None
                total, rows = page.total, page.rows
        except CacheUnavailableError as e:
            logger.warning(f"Cache unavailable, falling back to database: {e}")
            return None

        return ProteinListing(species_id=species_id, total=total, offset=offset, limit=limit, rows=rows, source=SOURCE_CACHE)

    async def _from_database(
        self,
        species_id: str,
        species: SpeciesDescriptor,
        offset: int,
        limit: int,
        search: str,
        datasets: List[str],
        overlaps: List[int],
    ) -> ProteinListing:
        proteins = await self.repository.list_species_proteins(species.id_prefix)
        proteins = filter_proteins(proteins, datasets, overlaps)

        if search:
            modified = await self.repository.find_protein_ids_with_modification(species.id_prefix, search)
            proteins = [p for p in proteins if protein_matches(p, search) or p.protein_id in modified]

        proteins = sorted(proteins, key=lambda p: p.protein_id)
        total = len(proteins)
        page = proteins[offset:offset + limit]
        rows = await self.builder.build_many(page)

        return ProteinListing(species_id=species_id, total=total, offset=offset, limit=limit, rows=rows, source=SOURCE_AUTHORITATIVE)
