"""
Read access to the authoritative protein/peptide store.

The analysis and listing code only talks to :class:`ProteinRepository` and
receives plain records, never ORM objects.
"""
from collections import defaultdict
from typing import Dict, List, Optional, Set, Tuple

from sqlalchemy import func, select, text

from arcpp.analysis.modifications import modification_types
from arcpp.db.models.dataset import Dataset
from arcpp.db.models.peptide import Peptide
from arcpp.db.models.protein import Protein
from arcpp.schemas import PeptideRecord, ProteinRecord


class ProteinRepository:
    """Narrow read interface over proteins, peptides and datasets"""

    async def find_protein_by_id(self, protein_id: str) -> Optional[ProteinRecord]:
        raise NotImplementedError()

    async def find_protein_by_uniprot_id(self, uniprot_id: str) -> Optional[ProteinRecord]:
        raise NotImplementedError()

    async def find_peptides_by_protein(self, protein_id: str, max_q_value: Optional[float] = None) -> List[PeptideRecord]:
        raise NotImplementedError()

    async def list_species_proteins(self, id_prefix: str) -> List[ProteinRecord]:
        """Proteins whose accession starts with ``id_prefix``, ordered by accession"""
        raise NotImplementedError()

    async def find_protein_ids_with_modification(self, id_prefix: str, term: str) -> Set[str]:
        """Accessions with a peptide carrying a modification type that contains ``term``"""
        raise NotImplementedError()

    async def find_peptides_by_prefix(self, id_prefix: str, max_q_value: Optional[float] = None) -> Dict[str, List[PeptideRecord]]:
        """Peptides of all proteins of a species, keyed by accession"""
        raise NotImplementedError()

    async def list_dataset_names(self) -> List[str]:
        raise NotImplementedError()

    async def list_identifiers(self) -> Tuple[List[str], List[str]]:
        """All protein accessions and UniProt ids"""
        raise NotImplementedError()

    async def ping(self) -> bool:
        raise NotImplementedError()


def _protein_record(row: Protein) -> ProteinRecord:
    return ProteinRecord(
        id=row.id,
        protein_id=row.protein_id,
        uniprot_id=row.uniprot_id,
        sequence=row.sequence,
        description=row.description,
        hydrophobicity=row.hydrophobicity,
        isoelectric_point=row.isoelectric_point,
        molecular_weight=row.molecular_weight,
        dataset_ids=[d for d in (row.dataset_ids or []) if d],
    )


def _peptide_record(row: Peptide) -> PeptideRecord:
    return PeptideRecord(
        sequence=row.sequence,
        start_index=row.start_index,
        end_index=row.end_index,
        q_value=row.q_value,
        modification=row.modification,
        dataset_id=row.dataset_id,
    )


class SqlAlchemyProteinRepository(ProteinRepository):
    """Repository backed by an async SQLAlchemy session factory.

    Every call opens its own session so calls can run concurrently.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def find_protein_by_id(self, protein_id: str) -> Optional[ProteinRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Protein).where(Protein.protein_id == protein_id)
            )
            row = result.scalars().first()
            return _protein_record(row) if row else None

    async def find_protein_by_uniprot_id(self, uniprot_id: str) -> Optional[ProteinRecord]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Protein).where(func.upper(Protein.uniprot_id) == uniprot_id.upper())
            )
            row = result.scalars().first()
            return _protein_record(row) if row else None

    async def find_peptides_by_protein(self, protein_id: str, max_q_value: Optional[float] = None) -> List[PeptideRecord]:
        query = (
            select(Peptide)
            .join(Protein, Peptide.protein_pk == Protein.id)
            .where(Protein.protein_id == protein_id)
            .order_by(Peptide.id)
        )
        if max_q_value is not None:
            query = query.where(Peptide.q_value <= max_q_value)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return [_peptide_record(p) for p in result.scalars().all()]

    async def list_species_proteins(self, id_prefix: str) -> List[ProteinRecord]:
        query = (
            select(Protein)
            .where(Protein.protein_id.startswith(id_prefix, autoescape=True))
            .order_by(Protein.protein_id)
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [_protein_record(p) for p in result.scalars().all()]

    async def find_protein_ids_with_modification(self, id_prefix: str, term: str) -> Set[str]:
        term = term.strip().lower()
        if not term:
            return set()

        query = (
            select(Protein.protein_id, Peptide.modification)
            .select_from(Peptide)
            .join(Protein, Peptide.protein_pk == Protein.id)
            .where(Protein.protein_id.startswith(id_prefix, autoescape=True))
            .where(Peptide.modification.icontains(term, autoescape=True))
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            rows = result.all()

        # the SQL match is on the raw string; keep only hits on a type token
        return {
            protein_id
            for protein_id, modification in rows
            if any(term in t.lower() for t in modification_types(modification))
        }

    async def find_peptides_by_prefix(self, id_prefix: str, max_q_value: Optional[float] = None) -> Dict[str, List[PeptideRecord]]:
        query = (
            select(Protein.protein_id, Peptide)
            .select_from(Peptide)
            .join(Protein, Peptide.protein_pk == Protein.id)
            .where(Protein.protein_id.startswith(id_prefix, autoescape=True))
            .order_by(Peptide.id)
        )
        if max_q_value is not None:
            query = query.where(Peptide.q_value <= max_q_value)

        grouped = defaultdict(list)
        async with self.session_factory() as session:
            result = await session.execute(query)
            for protein_id, peptide in result.all():
                grouped[protein_id].append(_peptide_record(peptide))
        return dict(grouped)

    async def list_dataset_names(self) -> List[str]:
        async with self.session_factory() as session:
            result = await session.execute(select(Dataset.name).distinct())
            return [name for name in result.scalars().all() if name]

    async def list_identifiers(self) -> Tuple[List[str], List[str]]:
        async with self.session_factory() as session:
            result = await session.execute(select(Protein.protein_id, Protein.uniprot_id))
            rows = result.all()
        return [r[0] for r in rows if r[0]], [r[1] for r in rows if r[1]]

    async def ping(self) -> bool:
        async with self.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True
