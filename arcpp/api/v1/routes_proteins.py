"""
Single-protein routes: coverage, sequence annotations, PSM counts, summaries
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel
from typing import List, Optional

from arcpp.analysis.modifications import ModificationLayout
from arcpp.api.deps import get_protein_service
from arcpp.core.exceptions import ProteinNotFoundError
from arcpp.schemas import CoverageResult, ModificationAnnotation, ProteinSummary
from arcpp.services.proteins import ProteinService

router = APIRouter()

class SequenceResponse(BaseModel):
    protein_id: str
    sequence: str
    length: int
    modifications: List[ModificationAnnotation]

class PsmCountResponse(BaseModel):
    protein_id: str
    psmCount: int

class ProteinDetailsResponse(BaseModel):
    protein_id: str
    uniProtein_id: Optional[str] = None
    description: Optional[str] = None
    hydrophobicity: Optional[float] = None
    pI: Optional[float] = None
    molecular_weight: Optional[float] = None
    datasets: List[str] = []

class ProteinIdsResponse(BaseModel):
    hvo: List[str]
    uniprot: List[str]

class ResolveResponse(BaseModel):
    matchType: str
    protein_id: str
    uniProtein_id: Optional[str] = None
    description: Optional[str] = None

def not_found(e: ProteinNotFoundError) -> HTTPException:
    logger.info(f"{e}")
    return HTTPException(status_code=404, detail=str(e))

@router.get("/coverage/{protein_id}", response_model=CoverageResult)
async def get_coverage(protein_id: str, service: ProteinService = Depends(get_protein_service)):
    """Covered residues of a protein (qValue-filtered peptides)"""
    try:
        return await service.coverage(protein_id)
    except ProteinNotFoundError as e:
        raise not_found(e)

@router.get("/proteins/ids", response_model=ProteinIdsResponse)
async def get_protein_ids(service: ProteinService = Depends(get_protein_service)):
    """All well-formed accessions and UniProt ids"""
    return await service.identifiers()

@router.get("/proteins/resolve", response_model=ResolveResponse)
async def resolve_protein(
    q: str = Query("", description="Accession or UniProt id"),
    service: ProteinService = Depends(get_protein_service)
):
    """Case-insensitive protein lookup"""
    if not q.strip():
        raise HTTPException(status_code=400, detail="Missing q")
    resolved = await service.resolve(q)
    if resolved is None:
        raise HTTPException(status_code=404, detail="Protein not found")
    return resolved

@router.get("/proteins/{protein_id}/sequence", response_model=SequenceResponse, response_model_by_alias=True)
async def get_sequence(protein_id: str, service: ProteinService = Depends(get_protein_service)):
    """Sequence with modification annotations for the sequence viewer"""
    try:
        return await service.sequence_view(protein_id)
    except ProteinNotFoundError as e:
        raise not_found(e)

@router.get("/proteins/{protein_id}/details", response_model=ProteinDetailsResponse)
async def get_details(protein_id: str, service: ProteinService = Depends(get_protein_service)):
    try:
        return await service.details(protein_id)
    except ProteinNotFoundError as e:
        raise not_found(e)

@router.get("/proteins/{protein_id}/psm-count", response_model=PsmCountResponse)
async def get_psm_count(protein_id: str, service: ProteinService = Depends(get_protein_service)):
    """Unique peptide-sequence count (PSM proxy)"""
    try:
        count = await service.psm_count(protein_id)
    except ProteinNotFoundError as e:
        raise not_found(e)
    return PsmCountResponse(protein_id=protein_id, psmCount=count)

@router.get("/proteins/{protein_id}/summary", response_model=ProteinSummary)
async def get_summary(protein_id: str, service: ProteinService = Depends(get_protein_service)):
    """Protein table row, served from the cache when present"""
    try:
        return await service.summary(protein_id)
    except ProteinNotFoundError as e:
        raise not_found(e)

@router.get("/proteins/{protein_id}/psms-by-dataset")
async def get_psms_by_dataset(protein_id: str, service: ProteinService = Depends(get_protein_service)):
    """PSM counts per dataset"""
    try:
        result = await service.psms_by_dataset(protein_id)
    except ProteinNotFoundError as e:
        raise not_found(e)

    if not result["data"]:
        raise HTTPException(status_code=404, detail=f"No PSM data found for protein {protein_id}")

    return {
        "success": True,
        "proteinId": protein_id,
        "data": [row.model_dump(by_alias=True) for row in result["data"]],
        "source": result["source"],
    }

@router.get("/plot/peptide-coverage/{protein_id}", response_model=ModificationLayout)
async def get_peptide_coverage_plot(protein_id: str, service: ProteinService = Depends(get_protein_service)):
    """Peptide, modification and enzyme-site tracks for the coverage plot"""
    try:
        return await service.plot_layout(protein_id)
    except ProteinNotFoundError as e:
        raise not_found(e)
