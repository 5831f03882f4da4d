"""
Unit tests for single-protein lookups
"""

import asyncio

import pytest

from arcpp.core import species as species_registry
from arcpp.core.species import SpeciesDescriptor
from arcpp.services.proteins import ProteinService


@pytest.fixture
def service(repository, cache, builder):
    return ProteinService(repository, cache, builder)


class TestResolve:
    """Test accession and UniProt resolution"""

    def test_accession_case_insensitive(self, service):
        match = asyncio.run(service.resolve(" hvo_0002 "))
        assert match["matchType"] == "protein_id"
        assert match["protein_id"] == "HVO_0002"

    def test_uniprot(self, service):
        match = asyncio.run(service.resolve("d4gsx0"))
        assert match["matchType"] == "uniProt"
        assert match["protein_id"] == "HVO_0001"

    def test_malformed_accession_not_looked_up(self, service):
        assert asyncio.run(service.resolve("HVO_01")) is None

    def test_unknown_accession(self, service):
        assert asyncio.run(service.resolve("HVO_9999")) is None

    def test_accession_patterns_come_from_registry(self, service, monkeypatch):
        assert asyncio.run(service.resolve("xyz_0001")) is None

        monkeypatch.setitem(
            species_registry.SPECIES,
            "xyz_species",
            SpeciesDescriptor(key="xyz_species", display_name="XYZ species", id_prefix="XYZ_", id_pattern=r"^XYZ_\d{4}$"),
        )
        match = asyncio.run(service.resolve("xyz_0001"))
        assert match["matchType"] == "protein_id"
        assert match["protein_id"] == "XYZ_0001"
