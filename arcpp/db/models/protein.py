from sqlalchemy import Column, Integer, String, Text, JSON, Float
from sqlalchemy.orm import relationship
from arcpp.db.base import Base

class Protein(Base):
    __tablename__ = "proteins"
    
    id = Column(Integer, primary_key=True, index=True)
    protein_id = Column(String, unique=True, index=True, nullable=False)  # e.g. HVO_0001
    uniprot_id = Column(String, index=True)
    sequence = Column(Text)
    description = Column(Text)
    
    # Physicochemical properties
    hydrophobicity = Column(Float)
    isoelectric_point = Column(Float)
    molecular_weight = Column(Float)
    
    dataset_ids = Column(JSON, default=list)  # dataset accessions the protein was observed in
    
    peptides = relationship("Peptide", back_populates="protein")
