"""
Sequence coverage from peptide intervals.

Positions are 1-based and inclusive. Overlapping or duplicated peptide
evidence never counts a residue twice.
"""
from typing import Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from arcpp.core.exceptions import ProteinNotFoundError
from arcpp.schemas import CoverageResult, PeptideRecord

Interval = Tuple[int, int]


def normalize_intervals(
    intervals: Iterable[Tuple[Optional[int], Optional[int]]],
    sequence_length: int,
) -> List[Interval]:
    """Drop incomplete intervals, swap inverted ones and clip to the sequence"""
    cleaned = []
    for start, end in intervals:
        if start is None or end is None:
            logger.warning(f"Skipping interval with missing bound: ({start}, {end})")
            continue
        if end < start:
            logger.warning(f"Inverted peptide interval ({start}, {end}), swapping bounds")
            start, end = end, start
        start = max(1, start)
        end = min(sequence_length, end)
        if start > end:
            continue
        cleaned.append((start, end))
    return cleaned


def merge_intervals(intervals: Sequence[Interval]) -> int:
    """Number of distinct positions covered by ``intervals``"""
    if not intervals:
        return 0

    ordered = sorted(intervals)
    total = 0
    current_start, current_end = ordered[0]

    for start, end in ordered[1:]:
        if start <= current_end + 1:
            current_end = max(current_end, end)
        else:
            total += current_end - current_start + 1
            current_start, current_end = start, end

    total += current_end - current_start + 1
    return total


def covered_length(sequence_length: int, intervals: Iterable[Tuple[Optional[int], Optional[int]]]) -> int:
    if sequence_length <= 0:
        raise ValueError("sequence length must be positive")
    covered = merge_intervals(normalize_intervals(intervals, sequence_length))
    return min(covered, sequence_length)


def peptide_intervals(peptides: Iterable[PeptideRecord], max_q_value: Optional[float] = None) -> List[Tuple[Optional[int], Optional[int]]]:
    """Peptide ranges, optionally restricted to ``q_value <= max_q_value``"""
    intervals = []
    for pep in peptides:
        if max_q_value is not None and (pep.q_value is None or pep.q_value > max_q_value):
            continue
        intervals.append((pep.start_index, pep.end_index))
    return intervals


def compute_coverage(protein_id: str, sequence: Optional[str], intervals: Iterable[Tuple[Optional[int], Optional[int]]]) -> CoverageResult:
    """Coverage of one protein; a missing or empty sequence is an error"""
    if not sequence:
        raise ProteinNotFoundError(protein_id, "has no sequence")

    total_length = len(sequence)
    covered = covered_length(total_length, intervals)

    return CoverageResult(
        protein_id=protein_id,
        total_length=total_length,
        covered_length=covered,
        coverage_percent=covered / total_length * 100,
    )
