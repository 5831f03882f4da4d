"""
Unit tests for species registry and species-wide statistics
"""

import asyncio

import pytest

from arcpp.core.species import resolve_species
from arcpp.services.species_stats import SpeciesStatsService, normalize_dataset_ids


@pytest.fixture
def stats(repository):
    return SpeciesStatsService(repository, ttl_seconds=300)


@pytest.fixture
def volcanii():
    return resolve_species("haloferax_volcanii")


class TestSpeciesRegistry:
    """Test species resolution"""

    @pytest.mark.parametrize("raw", ["haloferax_volcanii", "Haloferax volcanii", "HALOFERAX-VOLCANII"])
    def test_resolve(self, raw):
        species = resolve_species(raw)
        assert species is not None
        assert species.id_prefix == "HVO_"

    @pytest.mark.parametrize("raw", [None, "", "escherichia_coli"])
    def test_unknown(self, raw):
        assert resolve_species(raw) is None

    def test_matches(self, volcanii):
        assert volcanii.matches("HVO_0001")
        assert volcanii.matches("hvo_0001")
        assert not volcanii.matches("HVO_01")


class TestNormalizeDatasetIds:
    """Test dataset accession cleanup"""

    def test_mixed_values(self):
        raw = ["PXD000001", "pxd000002 ; PXD000003", "not-a-dataset", "", None, "PXD000001"]
        assert normalize_dataset_ids(raw) == ["PXD000001", "PXD000002", "PXD000003"]

    def test_reprocessed_prefixes(self):
        assert normalize_dataset_ids(["RPXD000010,PRXD000011"]) == ["PRXD000011", "RPXD000010"]


class TestCoverageStats:
    """Test proteome coverage per species"""

    def test_coverage(self, stats):
        result = asyncio.run(stats.coverage_stats())
        assert len(result) == 1
        entry = result[0]
        assert entry["species"] == "Haloferax volcanii"
        assert entry["totalProteins"] == 3
        assert entry["totalLength"] == 230
        assert entry["coveredLength"] == 52
        assert entry["coveragePercent"] == 22.61
        assert entry["observedProteins"] == 3

    def test_memoized(self, stats, repository):
        first = asyncio.run(stats.coverage_stats())
        calls = repository.peptide_calls
        second = asyncio.run(stats.coverage_stats())
        assert second is first
        assert repository.peptide_calls == calls

    def test_expired_memo_recomputed(self, repository):
        stats = SpeciesStatsService(repository, ttl_seconds=0)
        asyncio.run(stats.coverage_stats())
        calls = repository.peptide_calls
        asyncio.run(stats.coverage_stats())
        assert repository.peptide_calls > calls

    def test_failure_reported_per_species(self, stats, repository, monkeypatch):
        async def broken(_prefix, max_q_value=None):
            raise RuntimeError("database gone")

        monkeypatch.setattr(repository, "find_peptides_by_prefix", broken)
        entry = asyncio.run(stats.coverage_stats())[0]
        assert entry["coveragePercent"] == 0
        assert entry["error"] == "database gone"

    def test_empty_species(self, empty_repository):
        entry = asyncio.run(SpeciesStatsService(empty_repository).coverage_stats())[0]
        assert entry["coveragePercent"] == 0
        assert entry["totalProteins"] == 0


class TestDatasetStats:
    """Test dataset membership statistics"""

    def test_dataset_counts(self, stats, volcanii):
        result = asyncio.run(stats.dataset_stats(volcanii))
        assert result == [
            {"dataset": "PXD000001", "proteinCount": 3},
            {"dataset": "PXD000002", "proteinCount": 2},
            {"dataset": "PXD000003", "proteinCount": 1},
        ]

    def test_overlap_histogram(self, stats, volcanii):
        result = asyncio.run(stats.dataset_overlap(volcanii))
        assert result == [
            {"overlapCount": 0, "proteinCount": 1},
            {"overlapCount": 1, "proteinCount": 1},
            {"overlapCount": 2, "proteinCount": 1},
            {"overlapCount": 3, "proteinCount": 1},
        ]

    def test_unknown_species_is_empty(self, stats):
        assert asyncio.run(stats.dataset_stats(None)) == []
        assert asyncio.run(stats.dataset_overlap(None)) == []

    def test_dataset_ids(self, stats):
        assert asyncio.run(stats.dataset_ids()) == ["PXD000001", "PXD000002", "PXD000003"]


class TestModificationStats:
    """Test allow-listed modification counts"""

    def test_counts(self, stats, volcanii):
        result = asyncio.run(stats.modification_stats(volcanii))
        assert result["modifications"] == [
            {"modification": "Acetyl", "count": 3, "uniqueProteins": 2},
            {"modification": "Oxidation", "count": 2, "uniqueProteins": 2},
        ]
        assert result["totalOccurrences"] == 5
        assert result["totalUniqueProteins"] == 2
