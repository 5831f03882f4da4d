import re

# Modification types shown by the browser, bound to their display colors
MOD_COLORS = {
    "Acetyl": "#3B82F6",
    "Oxidation": "#EF4444",
    "SO3Hex(1)Hex(2)dHex(1)": "#8B5CF6",
    "Hex(1)HexA(2)MeHexA(1)": "#F59E0B",
    "Hex(1)HexA(2)MeHexA(1)Hex(1)": "#92400E",
}

# Placeholder annotation values meaning "no modification"
EMPTY_MODIFICATION_VALUES = {"", "N/A", "Unmodified"}

COVERED_TYPE = "Covered"

HVO_RE = re.compile(r"^HVO_\d{4}$", re.IGNORECASE)
UNIPROT_RE = re.compile(r"^(?:[A-Z][0-9][A-Z0-9]{3}[0-9]|[A-Z0-9]{10})(?:-\d+)?$", re.IGNORECASE)
DATASET_RE = re.compile(r"^(?:PXD|RPXD|PRXD)\d{6}$", re.IGNORECASE)
DATASET_TOKEN_RE = re.compile(r"\b(?:PXD|RPXD|PRXD)\d{6}\b")

# Cache key namespaces
SUMMARY_KEY_PREFIX = "summary:"
PSMS_KEY_PREFIX = "psms:"
SEED_VERSION_KEY = "seed:version"
