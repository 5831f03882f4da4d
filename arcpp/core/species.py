"""
Registry of species served by the browser.

Each species is identified by a fixed accession prefix. Lookups that do not
resolve return ``None`` and callers must treat that as "match nothing".
"""
import re
from typing import Dict, List, Optional

from pydantic import BaseModel


class SpeciesDescriptor(BaseModel):
    key: str
    display_name: str
    id_prefix: str
    id_pattern: str

    def matches(self, protein_id: str) -> bool:
        """True when ``protein_id`` is a well-formed accession of this species"""
        return bool(re.match(self.id_pattern, protein_id or "", re.IGNORECASE))


SPECIES: Dict[str, SpeciesDescriptor] = {
    "haloferax_volcanii": SpeciesDescriptor(
        key="haloferax_volcanii",
        display_name="Haloferax volcanii",
        id_prefix="HVO_",
        id_pattern=r"^HVO_\d{4}$",
    ),
}


def normalize_species_key(raw: str) -> str:
    return re.sub(r"[\s\-]+", "_", str(raw).strip().lower())


def resolve_species(raw: Optional[str]) -> Optional[SpeciesDescriptor]:
    """Map a species id or display name to its descriptor"""
    if not raw:
        return None
    return SPECIES.get(normalize_species_key(raw))


def all_species() -> List[SpeciesDescriptor]:
    return list(SPECIES.values())
