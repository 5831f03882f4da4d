"""
Plain data records passed between the repository, analysis and cache layers
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PeptideRecord(BaseModel):
    sequence: Optional[str] = None
    start_index: Optional[int] = None
    end_index: Optional[int] = None
    q_value: Optional[float] = None
    modification: Optional[str] = None
    dataset_id: Optional[str] = None


class ProteinRecord(BaseModel):
    id: Optional[int] = None  # database primary key
    protein_id: str
    uniprot_id: Optional[str] = None
    sequence: Optional[str] = None
    description: Optional[str] = None
    hydrophobicity: Optional[float] = None
    isoelectric_point: Optional[float] = None
    molecular_weight: Optional[float] = None
    dataset_ids: List[str] = Field(default_factory=list)

    @property
    def sequence_length(self) -> int:
        return len(self.sequence or "")

    @property
    def dataset_count(self) -> int:
        return len(self.dataset_ids or [])


class CoverageResult(BaseModel):
    protein_id: str
    total_length: int
    covered_length: int
    coverage_percent: float


class ModificationAnnotation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    position: Optional[int] = None
    type: str
    relative_position: Optional[int] = Field(default=None, alias="relativePosition")
    peptide_start: Optional[int] = Field(default=None, alias="peptideStart")
    peptide_end: Optional[int] = Field(default=None, alias="peptideEnd")
    peptide_sequence: Optional[str] = Field(default=None, alias="peptideSequence")
    color: Optional[str] = None


class ProteinSummary(BaseModel):
    """Denormalized row of the protein table, stored whole in the cache"""
    model_config = ConfigDict(populate_by_name=True)

    hvo_id: str = Field(alias="hvoId")
    uniprot_id: str = Field(default="", alias="uniProtId")
    description: str = ""
    psm_count: int = Field(default=0, alias="psmCount")
    coverage_percent: float = Field(default=0.0, alias="coveragePercent")
    datasets: List[str] = Field(default_factory=list)
    modifications: List[str] = Field(default_factory=list)


class DatasetPsmCount(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dataset: str
    psm_count: int = Field(alias="psmCount")


class SummaryPage(BaseModel):
    total: int
    rows: List[ProteinSummary] = Field(default_factory=list)


class ProteinListing(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    species_id: str = Field(alias="speciesId")
    total: int
    offset: int
    limit: int
    rows: List[ProteinSummary] = Field(default_factory=list)
    source: str
