from sqlalchemy import Column, Integer, String
from arcpp.db.base import Base

class Dataset(Base):
    __tablename__ = "datasets"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)  # e.g. PXD021874
