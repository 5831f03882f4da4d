"""
Species-wide statistics: proteome coverage, dataset membership and
modification counts
"""
import time
from collections import Counter
from typing import Any, Dict, List, Optional

from loguru import logger

from arcpp.analysis.coverage import covered_length, peptide_intervals
from arcpp.analysis.modifications import modification_types
from arcpp.core.config import settings
from arcpp.core.constants import DATASET_RE, DATASET_TOKEN_RE, MOD_COLORS
from arcpp.core.species import SpeciesDescriptor, all_species


def normalize_dataset_ids(raw_values: List[str]) -> List[str]:
    """Unique, sorted dataset accessions; one raw value may hold several"""
    ids = []
    for raw in raw_values or []:
        text = str(raw or "").strip().upper()
        if not text:
            continue
        tokens = DATASET_TOKEN_RE.findall(text)
        if tokens:
            ids.extend(tokens)
            continue
        for token in text.replace(",", " ").replace(";", " ").replace("|", " ").replace("/", " ").split():
            if DATASET_RE.match(token):
                ids.append(token)
    return sorted(set(ids))


class SpeciesStatsService:
    """Aggregate statistics; proteome coverage is memoized for a fixed interval.

    Concurrent refreshes recompute the same value and overwrite the memo.
    """

    def __init__(self, repository, ttl_seconds: Optional[int] = None):
        self.repository = repository
        self.ttl_seconds = settings.COVERAGE_STATS_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._coverage_memo: Optional[List[Dict[str, Any]]] = None
        self._coverage_timestamp: Optional[float] = None

    async def coverage_stats(self) -> List[Dict[str, Any]]:
        now = time.monotonic()
        if self._coverage_memo is not None and self._coverage_timestamp is not None \
                and now - self._coverage_timestamp < self.ttl_seconds:
            logger.debug("Returning memoized coverage stats")
            return self._coverage_memo

        logger.info("Calculating species coverage stats")
        results = []
        for species in all_species():
            try:
                results.append(await self._species_coverage(species))
            except Exception as e:
                logger.error(f"Coverage calc failed for {species.display_name}: {e}")
                results.append({
                    "species": species.display_name,
                    "coveragePercent": 0,
                    "totalProteins": 0,
                    "observedProteins": 0,
                    "error": str(e),
                })

        self._coverage_memo = results
        self._coverage_timestamp = time.monotonic()
        return results

    async def _species_coverage(self, species: SpeciesDescriptor) -> Dict[str, Any]:
        proteins = await self.repository.list_species_proteins(species.id_prefix)
        lengths = {p.protein_id: p.sequence_length for p in proteins if p.sequence}
        peptides = await self.repository.find_peptides_by_prefix(species.id_prefix, max_q_value=settings.Q_VALUE_THRESHOLD)

        total_length = sum(lengths.values())
        covered_total = 0
        for protein_id, length in lengths.items():
            covered_total += covered_length(length, peptide_intervals(peptides.get(protein_id, [])))

        percent = covered_total * 100.0 / total_length if total_length > 0 else 0
        return {
            "species": species.display_name,
            "coveragePercent": round(percent, 2),
            "totalProteins": len(lengths),
            "observedProteins": sum(1 for pid, peps in peptides.items() if peps),
            "totalLength": total_length,
            "coveredLength": covered_total,
        }

    async def dataset_stats(self, species: Optional[SpeciesDescriptor]) -> List[Dict[str, Any]]:
        """Protein count per dataset, largest first"""
        if species is None:
            return []
        proteins = await self.repository.list_species_proteins(species.id_prefix)
        counts = Counter(d for p in proteins for d in p.dataset_ids)
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [{"dataset": dataset, "proteinCount": count} for dataset, count in ordered]

    async def dataset_overlap(self, species: Optional[SpeciesDescriptor]) -> List[Dict[str, Any]]:
        """Protein count per number of datasets a protein appears in"""
        if species is None:
            return []
        proteins = await self.repository.list_species_proteins(species.id_prefix)
        counts = Counter(p.dataset_count for p in proteins)
        return [{"overlapCount": n, "proteinCount": counts[n]} for n in sorted(counts)]

    async def modification_stats(self, species: SpeciesDescriptor) -> Dict[str, Any]:
        """Occurrences and distinct proteins per allow-listed modification type"""
        peptides = await self.repository.find_peptides_by_prefix(species.id_prefix)

        occurrences: Counter = Counter()
        proteins_by_mod: Dict[str, set] = {}
        for protein_id, protein_peptides in peptides.items():
            for pep in protein_peptides:
                for mod_type in modification_types(pep.modification):
                    if mod_type not in MOD_COLORS:
                        continue
                    occurrences[mod_type] += 1
                    proteins_by_mod.setdefault(mod_type, set()).add(protein_id)

        modifications = [
            {"modification": mod_type, "count": count, "uniqueProteins": len(proteins_by_mod[mod_type])}
            for mod_type, count in sorted(occurrences.items(), key=lambda item: (-item[1], item[0]))
        ]
        all_proteins = set()
        for ids in proteins_by_mod.values():
            all_proteins.update(ids)

        return {
            "modifications": modifications,
            "totalOccurrences": sum(occurrences.values()),
            "totalUniqueProteins": len(all_proteins),
        }

    async def dataset_ids(self) -> List[str]:
        return normalize_dataset_ids(await self.repository.list_dataset_names())
