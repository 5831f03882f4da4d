"""Pytest configuration for the browser backend tests.

Provides an in-memory protein repository and a small Haloferax volcanii
data set, so the analysis, cache and listing layers can be exercised
without a database or Redis.
"""

from typing import Dict, List, Optional, Set, Tuple

import pytest

from arcpp.analysis.modifications import modification_types
from arcpp.analysis.summary import ProteinSummaryBuilder
from arcpp.db.repository import ProteinRepository
from arcpp.schemas import PeptideRecord, ProteinRecord
from arcpp.services.cache import MemoryKeyValueStore, TieredSummaryCache

AMINO_ACIDS = "ACDEFGHIKLMNPQRSTVWY"


def make_sequence(length: int) -> str:
    return (AMINO_ACIDS * (length // len(AMINO_ACIDS) + 1))[:length]


class InMemoryProteinRepository(ProteinRepository):
    """Repository over plain lists, mirroring the SQL implementation"""

    def __init__(self, proteins: List[ProteinRecord], peptides: Dict[str, List[PeptideRecord]], datasets: Optional[List[str]] = None):
        self.proteins = {p.protein_id: p for p in proteins}
        self.peptides = peptides
        self.datasets = datasets or []
        self.peptide_calls = 0
        self.fail_peptides_for: Set[str] = set()

    async def find_protein_by_id(self, protein_id):
        return self.proteins.get(protein_id)

    async def find_protein_by_uniprot_id(self, uniprot_id):
        for protein in self.proteins.values():
            if protein.uniprot_id and protein.uniprot_id.upper() == uniprot_id.upper():
                return protein
        return None

    async def find_peptides_by_protein(self, protein_id, max_q_value=None):
        self.peptide_calls += 1
        if protein_id in self.fail_peptides_for:
            raise RuntimeError(f"peptide query failed for {protein_id}")
        peptides = self.peptides.get(protein_id, [])
        if max_q_value is not None:
            peptides = [p for p in peptides if p.q_value is not None and p.q_value <= max_q_value]
        return list(peptides)

    async def list_species_proteins(self, id_prefix):
        return sorted(
            (p for p in self.proteins.values() if p.protein_id.startswith(id_prefix)),
            key=lambda p: p.protein_id,
        )

    async def find_protein_ids_with_modification(self, id_prefix, term):
        term = term.strip().lower()
        found = set()
        for protein_id, peptides in self.peptides.items():
            if not protein_id.startswith(id_prefix):
                continue
            for pep in peptides:
                if any(term in t.lower() for t in modification_types(pep.modification)):
                    found.add(protein_id)
        return found

    async def find_peptides_by_prefix(self, id_prefix, max_q_value=None):
        grouped = {}
        for protein_id in self.proteins:
            if not protein_id.startswith(id_prefix):
                continue
            peptides = await self.find_peptides_by_protein(protein_id, max_q_value)
            if peptides:
                grouped[protein_id] = peptides
        return grouped

    async def list_dataset_names(self):
        return list(self.datasets)

    async def list_identifiers(self) -> Tuple[List[str], List[str]]:
        proteins = list(self.proteins.values())
        return [p.protein_id for p in proteins], [p.uniprot_id for p in proteins if p.uniprot_id]

    async def ping(self):
        return True


def sample_proteins() -> List[ProteinRecord]:
    return [
        ProteinRecord(
            protein_id="HVO_0001",
            uniprot_id="D4GSX0",
            sequence=make_sequence(100),
            description="Oxidoreductase",
            hydrophobicity=-0.2,
            isoelectric_point=4.5,
            molecular_weight=11000.0,
            dataset_ids=["PXD000001", "PXD000002"],
        ),
        ProteinRecord(
            protein_id="HVO_0002",
            uniprot_id="D4GSX1",
            sequence=make_sequence(50),
            description="Ribosomal protein L2",
            dataset_ids=["PXD000001"],
        ),
        ProteinRecord(
            protein_id="HVO_0003",
            sequence=make_sequence(80),
            description="Hypothetical protein",
            dataset_ids=["PXD000001", "PXD000002", "PXD000003"],
        ),
        ProteinRecord(
            protein_id="HVO_0004",
            sequence="",
            description="Withdrawn entry",
            dataset_ids=[],
        ),
        ProteinRecord(
            protein_id="XYZ_0001",
            sequence=make_sequence(60),
            description="Other species protein",
            dataset_ids=["PXD000001"],
        ),
    ]


def sample_peptides() -> Dict[str, List[PeptideRecord]]:
    return {
        "HVO_0001": [
            PeptideRecord(sequence="ACDEFGHIKL", start_index=1, end_index=10, q_value=0.001,
                          modification="Oxidation:5;Acetyl:5", dataset_id="PXD000001"),
            PeptideRecord(sequence="FGHIKLMNPQRSTVWY", start_index=5, end_index=20, q_value=0.002,
                          modification="Unmodified", dataset_id="PXD000002"),
            PeptideRecord(sequence="ACDEFGHIKL", start_index=1, end_index=10, q_value=0.004,
                          modification=None, dataset_id="PXD000002"),
            PeptideRecord(sequence="LMNPQRSTVW", start_index=90, end_index=150, q_value=0.001,
                          modification="Label:13C(6):2", dataset_id="PXD000001"),
            PeptideRecord(sequence="QRSTVWYACDE", start_index=30, end_index=40, q_value=0.5,
                          modification="Acetyl:2", dataset_id="PXD000001"),
        ],
        "HVO_0002": [
            PeptideRecord(sequence="LMNPQRSTVWYACDEFGHIKL", start_index=10, end_index=30, q_value=0.001,
                          modification="Oxidation:5;Acetyl:5", dataset_id="PXD000001"),
        ],
        "HVO_0004": [
            PeptideRecord(sequence="ACD", start_index=1, end_index=3, q_value=0.001, dataset_id="PXD000001"),
        ],
        "XYZ_0001": [
            PeptideRecord(sequence="ACDEF", start_index=1, end_index=5, q_value=0.001,
                          modification="Oxidation:1", dataset_id="PXD000001"),
        ],
    }


@pytest.fixture
def sample_data():
    return sample_proteins(), sample_peptides()


@pytest.fixture
def repository():
    return InMemoryProteinRepository(
        sample_proteins(),
        sample_peptides(),
        datasets=["PXD000001", "pxd000002 ; PXD000003", "not-a-dataset", ""],
    )


@pytest.fixture
def empty_repository():
    return InMemoryProteinRepository([], {})


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def cache(store):
    return TieredSummaryCache(store, write_batch_size=2, seed_version="1.0")


@pytest.fixture
def builder(repository):
    return ProteinSummaryBuilder(repository, q_value_threshold=0.005, concurrency=2)
