"""
Single-protein views: coverage, annotated sequence, PSM counts and summaries
"""
from typing import Any, Dict, List, Optional

from loguru import logger

from arcpp.analysis.coverage import compute_coverage, peptide_intervals
from arcpp.analysis.modifications import ModificationLayout, build_layout, map_annotations
from arcpp.analysis.summary import ProteinSummaryBuilder, count_unique_sequences, psms_by_dataset
from arcpp.core.config import settings
from arcpp.core.constants import HVO_RE, UNIPROT_RE
from arcpp.core.exceptions import CacheUnavailableError, ProteinNotFoundError
from arcpp.core.species import all_species
from arcpp.schemas import CoverageResult, DatasetPsmCount, ProteinRecord, ProteinSummary
from arcpp.services.cache import TieredSummaryCache


def clean_identifiers(values: List[str], pattern) -> List[str]:
    cleaned = {str(v).upper().strip() for v in values if v}
    return sorted(v for v in cleaned if pattern.match(v))


class ProteinService:
    def __init__(self, repository, cache: TieredSummaryCache, builder: ProteinSummaryBuilder):
        self.repository = repository
        self.cache = cache
        self.builder = builder

    async def get_protein(self, protein_id: str, require_sequence: bool = False) -> ProteinRecord:
        protein = await self.repository.find_protein_by_id(protein_id)
        if protein is None:
            raise ProteinNotFoundError(protein_id)
        if require_sequence and not protein.sequence:
            raise ProteinNotFoundError(protein_id, "has no sequence")
        return protein

    async def coverage(self, protein_id: str) -> CoverageResult:
        protein = await self.get_protein(protein_id, require_sequence=True)
        peptides = await self.repository.find_peptides_by_protein(protein_id, max_q_value=settings.Q_VALUE_THRESHOLD)
        return compute_coverage(protein_id, protein.sequence, peptide_intervals(peptides))

    async def sequence_view(self, protein_id: str) -> Dict[str, Any]:
        protein = await self.get_protein(protein_id, require_sequence=True)
        peptides = await self.repository.find_peptides_by_protein(protein_id, max_q_value=settings.Q_VALUE_THRESHOLD)
        annotations = map_annotations(protein.sequence_length, peptides)
        logger.info(f"Sequence for {protein_id}: {protein.sequence_length} AA, {len(annotations)} annotations")
        return {
            "protein_id": protein_id,
            "sequence": protein.sequence,
            "length": protein.sequence_length,
            "modifications": [a.model_dump(by_alias=True) for a in annotations],
        }

    async def plot_layout(self, protein_id: str) -> ModificationLayout:
        protein = await self.get_protein(protein_id, require_sequence=True)
        peptides = await self.repository.find_peptides_by_protein(protein_id)
        return build_layout(protein_id, protein.sequence, peptides)

    async def psm_count(self, protein_id: str) -> int:
        await self.get_protein(protein_id)
        peptides = await self.repository.find_peptides_by_protein(protein_id)
        return count_unique_sequences(peptides)

    async def summary(self, protein_id: str) -> ProteinSummary:
        """Cached summary, built and stored on a miss"""
        try:
            cached = await self.cache.get(protein_id)
            if cached is not None:
                return cached
        except CacheUnavailableError as e:
            logger.warning(f"Cache unavailable for summary of {protein_id}: {e}")
            return await self.builder.build_for_id(protein_id)

        summary = await self.builder.build_for_id(protein_id)
        try:
            await self.cache.set(protein_id, summary)
        except CacheUnavailableError as e:
            logger.warning(f"Could not cache summary of {protein_id}: {e}")
        return summary

    async def psms_by_dataset(self, protein_id: str) -> Dict[str, Any]:
        """Per-dataset PSM counts; ``source`` tells where they came from"""
        try:
            cached = await self.cache.get_psms_by_dataset(protein_id)
            if cached:
                return {"data": cached, "source": "cache"}
        except CacheUnavailableError as e:
            logger.warning(f"Cache unavailable for PSMs of {protein_id}: {e}")

        protein = await self.get_protein(protein_id)
        peptides = await self.repository.find_peptides_by_protein(protein.protein_id)
        rows: List[DatasetPsmCount] = psms_by_dataset(peptides)
        if rows:
            try:
                await self.cache.set_psms_by_dataset(protein_id, rows)
            except CacheUnavailableError as e:
                logger.warning(f"Could not cache PSMs of {protein_id}: {e}")
        return {"data": rows, "source": "authoritative"}

    async def details(self, protein_id: str) -> Dict[str, Any]:
        protein = await self.get_protein(protein_id)
        return {
            "protein_id": protein.protein_id,
            "uniProtein_id": protein.uniprot_id,
            "description": protein.description,
            "hydrophobicity": protein.hydrophobicity,
            "pI": protein.isoelectric_point,
            "molecular_weight": protein.molecular_weight,
            "datasets": protein.dataset_ids,
        }

    async def identifiers(self) -> Dict[str, List[str]]:
        protein_ids, uniprot_ids = await self.repository.list_identifiers()
        return {
            "hvo": clean_identifiers(protein_ids, HVO_RE),
            "uniprot": clean_identifiers(uniprot_ids, UNIPROT_RE),
        }

    async def resolve(self, query: str) -> Optional[Dict[str, Any]]:
        """Find a protein by accession or UniProt id, case-insensitively"""
        q = query.strip()
        protein = None
        match_type = None

        if any(species.matches(q) for species in all_species()):
            protein = await self.repository.find_protein_by_id(q.upper())
            match_type = "protein_id"
        if protein is None and UNIPROT_RE.match(q):
            protein = await self.repository.find_protein_by_uniprot_id(q)
            match_type = "uniProt"
        if protein is None:
            return None

        return {
            "matchType": match_type,
            "protein_id": protein.protein_id,
            "uniProtein_id": protein.uniprot_id,
            "description": protein.description,
        }
