"""
Unit tests for protein summary rows
"""

import asyncio

import pytest

from arcpp.analysis import summary as summary_module
from arcpp.analysis.summary import (
    ProteinSummaryBuilder,
    collect_modification_types,
    count_unique_sequences,
    psms_by_dataset,
    summarize,
)
from arcpp.core.exceptions import ProteinNotFoundError
from arcpp.schemas import PeptideRecord, ProteinRecord


class TestSummaryHelpers:
    """Test the per-field helpers"""

    def test_unique_sequences(self):
        peptides = [
            PeptideRecord(sequence="AAA"),
            PeptideRecord(sequence="AAA"),
            PeptideRecord(sequence="CCC"),
            PeptideRecord(sequence=None),
        ]
        assert count_unique_sequences(peptides) == 2

    def test_modification_types_sorted_and_deduplicated(self):
        peptides = [
            PeptideRecord(modification="Oxidation:5;Acetyl:5"),
            PeptideRecord(modification="Acetyl:2"),
            PeptideRecord(modification="Unmodified"),
        ]
        assert collect_modification_types(peptides) == ["Acetyl", "Oxidation"]

    def test_psms_by_dataset(self):
        peptides = [
            PeptideRecord(sequence="AAA", dataset_id="PXD000002"),
            PeptideRecord(sequence="AAA", dataset_id="PXD000001"),
            PeptideRecord(sequence="AAA", dataset_id="PXD000001"),
            PeptideRecord(sequence="CCC", dataset_id="PXD000001"),
            PeptideRecord(sequence="GGG", dataset_id=None),
        ]
        rows = psms_by_dataset(peptides)
        assert [(r.dataset, r.psm_count) for r in rows] == [("PXD000001", 2), ("PXD000002", 1)]


class TestSummarize:
    """Test summary composition"""

    def test_sample_protein(self, repository):
        protein = repository.proteins["HVO_0001"]
        peptides = repository.peptides["HVO_0001"]
        row = summarize(protein, peptides, 0.005)
        assert row.hvo_id == "HVO_0001"
        assert row.uniprot_id == "D4GSX0"
        assert row.psm_count == 4
        assert row.coverage_percent == 31.0
        assert row.datasets == ["PXD000001", "PXD000002"]
        assert row.modifications == ["Acetyl", "Label", "Oxidation"]

    def test_missing_sequence_defaults_coverage(self, repository):
        protein = repository.proteins["HVO_0004"]
        row = summarize(protein, repository.peptides["HVO_0004"], 0.005)
        assert row.coverage_percent == 0.0
        assert row.psm_count == 1

    def test_partial_failure_keeps_other_fields(self, repository, monkeypatch):
        def broken(_peptides):
            raise RuntimeError("boom")

        monkeypatch.setattr(summary_module, "collect_modification_types", broken)
        row = summarize(repository.proteins["HVO_0002"], repository.peptides["HVO_0002"], 0.005)
        assert row.modifications == []
        assert row.psm_count == 1
        assert row.coverage_percent == 42.0

    def test_coverage_rounded(self):
        protein = ProteinRecord(protein_id="HVO_0009", sequence="A" * 3)
        row = summarize(protein, [PeptideRecord(sequence="A", start_index=1, end_index=1, q_value=0.0)], 0.005)
        assert row.coverage_percent == 33.3

    def test_wire_format(self, repository):
        row = summarize(repository.proteins["HVO_0003"], [], 0.005)
        dumped = row.model_dump(by_alias=True)
        assert dumped == {
            "hvoId": "HVO_0003",
            "uniProtId": "",
            "description": "Hypothetical protein",
            "psmCount": 0,
            "coveragePercent": 0.0,
            "datasets": ["PXD000001", "PXD000002", "PXD000003"],
            "modifications": [],
        }


class TestProteinSummaryBuilder:
    """Test building rows from a repository"""

    def test_build_for_id(self, builder):
        row = asyncio.run(builder.build_for_id("HVO_0002"))
        assert row.coverage_percent == 42.0
        assert row.modifications == ["Acetyl", "Oxidation"]

    def test_build_for_unknown_id(self, builder):
        with pytest.raises(ProteinNotFoundError):
            asyncio.run(builder.build_for_id("HVO_9999"))

    def test_build_many_preserves_order(self, builder, repository):
        proteins = [repository.proteins[pid] for pid in ("HVO_0003", "HVO_0001", "HVO_0002")]
        rows = asyncio.run(builder.build_many(proteins))
        assert [r.hvo_id for r in rows] == ["HVO_0003", "HVO_0001", "HVO_0002"]

    def test_build_many_bounds_concurrency(self, builder, repository, monkeypatch):
        in_flight = 0
        peak = 0
        lookup = repository.find_peptides_by_protein

        async def slow_lookup(protein_id, max_q_value=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0.01)
                return await lookup(protein_id, max_q_value)
            finally:
                in_flight -= 1

        monkeypatch.setattr(repository, "find_peptides_by_protein", slow_lookup)
        proteins = [ProteinRecord(protein_id=f"HVO_{i:04d}", sequence="A" * 10) for i in range(100, 115)]
        rows = asyncio.run(builder.build_many(proteins))

        assert builder.concurrency == 2
        assert 1 < peak <= 2
        assert [r.hvo_id for r in rows] == [p.protein_id for p in proteins]
        assert repository.peptide_calls == 15

    def test_peptide_failure_yields_empty_row(self, builder, repository):
        repository.fail_peptides_for.add("HVO_0001")
        row = asyncio.run(builder.build(repository.proteins["HVO_0001"]))
        assert row.psm_count == 0
        assert row.coverage_percent == 0.0
        assert row.modifications == []
        assert row.description == "Oxidoreductase"

    def test_cache_entries(self, builder, repository):
        entries = asyncio.run(builder.build_cache_entries([repository.proteins["HVO_0001"]]))
        summary, psm_rows = entries[0]
        assert summary.hvo_id == "HVO_0001"
        assert [(r.dataset, r.psm_count) for r in psm_rows] == [("PXD000001", 3), ("PXD000002", 2)]
        assert repository.peptide_calls == 1

    def test_default_threshold(self, repository):
        builder = ProteinSummaryBuilder(repository)
        assert builder.q_value_threshold == 0.005
