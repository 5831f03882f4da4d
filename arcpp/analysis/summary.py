"""
Per-protein summary rows for the protein table
"""
import asyncio
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from arcpp.analysis.coverage import compute_coverage, peptide_intervals
from arcpp.analysis.modifications import modification_types
from arcpp.core.config import settings
from arcpp.core.exceptions import ProteinNotFoundError
from arcpp.schemas import DatasetPsmCount, PeptideRecord, ProteinRecord, ProteinSummary


def count_unique_sequences(peptides: Iterable[PeptideRecord]) -> int:
    """PSM proxy: number of distinct peptide sequences"""
    return len({p.sequence for p in peptides if p.sequence})


def collect_modification_types(peptides: Iterable[PeptideRecord]) -> List[str]:
    found = set()
    for pep in peptides:
        found.update(modification_types(pep.modification))
    return sorted(found)


def psms_by_dataset(peptides: Iterable[PeptideRecord]) -> List[DatasetPsmCount]:
    sequences_by_dataset = {}
    for pep in peptides:
        if not pep.dataset_id or not pep.sequence:
            continue
        sequences_by_dataset.setdefault(pep.dataset_id, set()).add(pep.sequence)
    return [
        DatasetPsmCount(dataset=dataset, psm_count=len(sequences))
        for dataset, sequences in sorted(sequences_by_dataset.items())
    ]


def summarize(protein: ProteinRecord, peptides: List[PeptideRecord], q_value_threshold: float) -> ProteinSummary:
    """Compose one summary row; a failing field falls back to its empty value"""
    pid = protein.protein_id

    psm_count = 0
    try:
        psm_count = count_unique_sequences(peptides)
    except Exception as e:
        logger.error(f"PSM count error for {pid}: {e}")

    coverage_percent = 0.0
    try:
        coverage = compute_coverage(pid, protein.sequence, peptide_intervals(peptides, q_value_threshold))
        coverage_percent = round(coverage.coverage_percent, 1)
    except Exception as e:
        logger.error(f"Coverage error for {pid}: {e}")

    modifications = []
    try:
        modifications = collect_modification_types(peptides)
    except Exception as e:
        logger.error(f"Modifications error for {pid}: {e}")

    return ProteinSummary(
        hvo_id=pid,
        uniprot_id=protein.uniprot_id or "",
        description=protein.description or "",
        psm_count=psm_count,
        coverage_percent=coverage_percent,
        datasets=[d for d in (protein.dataset_ids or []) if d],
        modifications=modifications,
    )


class ProteinSummaryBuilder:
    """Builds summary rows from the authoritative store"""

    def __init__(self, repository, q_value_threshold: Optional[float] = None, concurrency: Optional[int] = None):
        self.repository = repository
        self.q_value_threshold = settings.Q_VALUE_THRESHOLD if q_value_threshold is None else q_value_threshold
        self.concurrency = concurrency or settings.LISTING_CONCURRENCY

    async def _peptides(self, protein: ProteinRecord) -> List[PeptideRecord]:
        try:
            return await self.repository.find_peptides_by_protein(protein.protein_id)
        except Exception as e:
            logger.error(f"Peptide lookup failed for {protein.protein_id}: {e}")
            return []

    async def build(self, protein: ProteinRecord) -> ProteinSummary:
        peptides = await self._peptides(protein)
        return summarize(protein, peptides, self.q_value_threshold)

    async def build_for_id(self, protein_id: str) -> ProteinSummary:
        protein = await self.repository.find_protein_by_id(protein_id)
        if protein is None:
            raise ProteinNotFoundError(protein_id)
        return await self.build(protein)

    async def build_many(self, proteins: List[ProteinRecord]) -> List[ProteinSummary]:
        """Build rows with at most ``concurrency`` in flight, preserving order"""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(protein: ProteinRecord) -> ProteinSummary:
            async with semaphore:
                return await self.build(protein)

        return list(await asyncio.gather(*(bounded(p) for p in proteins)))

    async def build_psms_by_dataset(self, protein: ProteinRecord) -> List[DatasetPsmCount]:
        peptides = await self._peptides(protein)
        return psms_by_dataset(peptides)

    async def build_cache_entries(self, proteins: List[ProteinRecord]) -> List[Tuple[ProteinSummary, List[DatasetPsmCount]]]:
        """Summary and per-dataset PSM counts for each protein, one peptide query each"""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded(protein: ProteinRecord):
            async with semaphore:
                peptides = await self._peptides(protein)
                return summarize(protein, peptides, self.q_value_threshold), psms_by_dataset(peptides)

        return list(await asyncio.gather(*(bounded(p) for p in proteins)))
