"""
Modification annotations on protein sequences.

Peptides carry annotation strings such as ``Oxidation:5;Acetyl:12`` where
each position is 1-based and relative to the peptide start. This module turns
them into absolute sequence positions for the sequence viewer, and into a
plot layout in which modifications sharing a residue are spread around it
instead of drawn on top of each other.
"""
import math
import re
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, Field

from arcpp.core.constants import COVERED_TYPE, EMPTY_MODIFICATION_VALUES, MOD_COLORS
from arcpp.schemas import ModificationAnnotation, PeptideRecord

MODIFICATION_SEGMENT_RE = re.compile(r"^(.+):(\d+)$")

# Plot tracks (y coordinates)
PEPTIDE_TRACK = 4
MODIFICATION_TRACK = 3
GLUC_TRACK = 2
TRYPSIN_TRACK = 1

PAIR_OFFSET = 0.15
TRIANGLE_OFFSETS = [(0.0, 0.15), (-0.15, -0.1), (0.15, -0.1)]
CIRCLE_RADIUS = 0.2

TRYPSIN_RESIDUES = {"K", "R"}
GLUC_RESIDUES = {"D", "E"}


class ModificationPoint(BaseModel):
    type: str
    color: str
    position: int
    x: float
    y: float
    offset_x: float = 0.0
    offset_y: float = 0.0
    text: str


class LegendEntry(BaseModel):
    type: str
    color: str
    count: int = 0
    visible: bool = False


class PeptideTrack(BaseModel):
    start: int
    end: int
    sequence: Optional[str] = None


class ModificationLayout(BaseModel):
    protein_id: str
    sequence_length: int
    tracks: Dict[str, int] = Field(default_factory=dict)
    peptides: List[PeptideTrack] = Field(default_factory=list)
    modifications: List[ModificationPoint] = Field(default_factory=list)
    legend: List[LegendEntry] = Field(default_factory=list)
    multi_mod_positions: Dict[int, List[Dict[str, str]]] = Field(default_factory=dict)
    trypsin_sites: List[int] = Field(default_factory=list)
    gluc_sites: List[int] = Field(default_factory=list)


def parse_modification_string(text: Optional[str]) -> List[Tuple[str, int]]:
    """Split an annotation string into ``(type, relative_position)`` pairs.

    Segments that do not look like ``<type>:<integer>`` are skipped; the rest
    of the string is still parsed.
    """
    if not text:
        return []

    parsed = []
    for segment in str(text).split(";"):
        segment = segment.strip()
        if not segment:
            continue
        match = MODIFICATION_SEGMENT_RE.match(segment)
        if not match:
            logger.debug(f"Skipping malformed modification segment '{segment}'")
            continue
        mod_type = match.group(1).strip()
        if not mod_type:
            continue
        parsed.append((mod_type, int(match.group(2))))
    return parsed


def modification_types(text: Optional[str]) -> List[str]:
    """Type tokens of an annotation string, in order, without positions"""
    if text is None or text.strip() in EMPTY_MODIFICATION_VALUES:
        return []
    types = []
    for segment in text.split(";"):
        mod_type = segment.split(":")[0].strip()
        if mod_type and mod_type not in EMPTY_MODIFICATION_VALUES:
            types.append(mod_type)
    return types


def absolute_position(peptide_start: int, relative_position: int) -> int:
    return peptide_start + relative_position - 1


def _recognized_modifications(peptide: PeptideRecord, sequence_length: int) -> List[Tuple[str, int, int]]:
    """``(type, relative, absolute)`` for allow-listed mods that land on the sequence"""
    if peptide.start_index is None:
        return []

    found = []
    for mod_type, relative in parse_modification_string(peptide.modification):
        if mod_type not in MOD_COLORS:
            continue
        position = absolute_position(peptide.start_index, relative)
        if position < 1 or position > sequence_length:
            continue
        found.append((mod_type, relative, position))
    return found


def map_annotations(sequence_length: int, peptides: Iterable[PeptideRecord]) -> List[ModificationAnnotation]:
    """Flat annotation list for the sequence viewer.

    A peptide without any recognized modification is reported once as a
    ``Covered`` annotation with its range and no position.
    """
    annotations = []
    for peptide in peptides:
        recognized = _recognized_modifications(peptide, sequence_length)

        for mod_type, relative, position in recognized:
            annotations.append(ModificationAnnotation(
                position=position,
                type=mod_type,
                relative_position=relative,
                peptide_start=peptide.start_index,
                peptide_end=peptide.end_index,
                peptide_sequence=peptide.sequence,
                color=MOD_COLORS[mod_type],
            ))

        if not recognized:
            annotations.append(ModificationAnnotation(
                position=None,
                type=COVERED_TYPE,
                relative_position=None,
                peptide_start=peptide.start_index,
                peptide_end=peptide.end_index,
                peptide_sequence=peptide.sequence,
                color=None,
            ))
    return annotations


def collision_offsets(count: int) -> List[Tuple[float, float]]:
    """Offsets for ``count`` markers sharing one residue, pairwise distinct"""
    if count <= 0:
        return []
    if count == 1:
        return [(0.0, 0.0)]
    if count == 2:
        return [(-PAIR_OFFSET, 0.0), (PAIR_OFFSET, 0.0)]
    if count == 3:
        return list(TRIANGLE_OFFSETS)

    step = 2 * math.pi / count
    return [
        (CIRCLE_RADIUS * math.cos(i * step), CIRCLE_RADIUS * math.sin(i * step))
        for i in range(count)
    ]


def group_by_position(sequence_length: int, peptides: Iterable[PeptideRecord]) -> "OrderedDict[int, List[str]]":
    """Modification types per absolute position, in order of first appearance"""
    grouped: "OrderedDict[int, List[str]]" = OrderedDict()
    for peptide in peptides:
        for mod_type, _relative, position in _recognized_modifications(peptide, sequence_length):
            grouped.setdefault(position, []).append(mod_type)
    return grouped


def cleavage_sites(sequence: str, residues) -> List[int]:
    return [i + 1 for i, aa in enumerate(sequence) if aa in residues]


def build_layout(protein_id: str, sequence: str, peptides: List[PeptideRecord]) -> ModificationLayout:
    """2-D plot layout of peptides, modifications and enzyme sites"""
    length = len(sequence)
    grouped = group_by_position(length, peptides)

    points = []
    multi = {}
    for position in sorted(grouped):
        mods = grouped[position]
        offsets = collision_offsets(len(mods))
        for idx, mod_type in enumerate(mods):
            dx, dy = offsets[idx]
            if len(mods) == 1:
                text = f"Modification: {mod_type}<br>Position: {position}"
            else:
                others = ", ".join(m for m in mods if m != mod_type)
                text = f"{mod_type} at position {position}<br>(with {others})"
            points.append(ModificationPoint(
                type=mod_type,
                color=MOD_COLORS[mod_type],
                position=position,
                x=position + dx,
                y=MODIFICATION_TRACK + dy,
                offset_x=dx,
                offset_y=dy,
                text=text,
            ))
        if len(mods) > 1:
            multi[position] = [{"type": m, "color": MOD_COLORS[m]} for m in mods]

    counts: Dict[str, int] = {}
    for point in points:
        counts[point.type] = counts.get(point.type, 0) + 1
    legend = [
        LegendEntry(type=mod_type, color=color, count=counts.get(mod_type, 0), visible=mod_type in counts)
        for mod_type, color in MOD_COLORS.items()
    ]

    tracks = []
    for peptide in peptides:
        if peptide.start_index is None or peptide.end_index is None:
            continue
        start = max(1, min(peptide.start_index, peptide.end_index))
        end = min(length, max(peptide.start_index, peptide.end_index))
        if start > end:
            continue
        tracks.append(PeptideTrack(start=start, end=end, sequence=peptide.sequence))

    return ModificationLayout(
        protein_id=protein_id,
        sequence_length=length,
        tracks={
            "Peptides": PEPTIDE_TRACK,
            "Modifications": MODIFICATION_TRACK,
            "GluC": GLUC_TRACK,
            "Trypsin": TRYPSIN_TRACK,
        },
        peptides=tracks,
        modifications=points,
        legend=legend,
        multi_mod_positions=multi,
        trypsin_sites=cleavage_sites(sequence, TRYPSIN_RESIDUES),
        gluc_sites=cleavage_sites(sequence, GLUC_RESIDUES),
    )
