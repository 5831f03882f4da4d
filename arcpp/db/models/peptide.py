from sqlalchemy import Column, Integer, String, Text, Float, ForeignKey
from sqlalchemy.orm import relationship
from arcpp.db.base import Base

class Peptide(Base):
    __tablename__ = "peptides"
    
    id = Column(Integer, primary_key=True, index=True)
    protein_pk = Column(Integer, ForeignKey("proteins.id"), index=True, nullable=False)
    
    sequence = Column(String, index=True)
    start_index = Column(Integer)  # 1-based, inclusive
    end_index = Column(Integer)
    q_value = Column(Float, index=True)
    modification = Column(Text)  # "Type1:relPos1;Type2:relPos2"
    dataset_id = Column(String, index=True)
    
    protein = relationship("Protein", back_populates="peptides")
