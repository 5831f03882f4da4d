"""
Error taxonomy shared by the analysis, cache and listing layers
"""


class ArcppError(Exception):
    """Base class for errors raised by the browser backend"""


class ProteinNotFoundError(ArcppError):
    """Protein is absent, or has no usable sequence (surfaced as 404)"""

    def __init__(self, protein_id: str, reason: str = "not found"):
        self.protein_id = protein_id
        self.reason = reason
        super().__init__(f"Protein {protein_id} {reason}")


class CacheUnavailableError(ArcppError):
    """Key-value cache cannot answer; callers fall back to the database"""
