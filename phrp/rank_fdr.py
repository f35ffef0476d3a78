"""
Per-scan ranking and decoy-based FDR estimation for synopsis results.

Results are plain mutable mappings (one per PSM), addressed by index. Ranks,
FDRs and Q-values are written into the mappings in place.
"""

import logging
import sys
from typing import Any, Iterable, List, MutableMapping, Sequence

import numpy as np

from phrp.utils import is_reversed_protein

logger = logging.getLogger(__name__)

Result = MutableMapping[str, Any]


def assign_rank_by_score(
    results: Sequence[Result],
    start: int,
    end: int,
    score_key: str,
    ascending: bool,
    rank_key: str = "rank",
):
    """
    Rank the results in ``results[start:end + 1]`` by score.

    Ranks start at 1 for the best score. Results with scores that differ by no
    more than machine epsilon share a rank.

    Parameters
    ----------
    results
        Results, one mapping per PSM.
    start, end
        Inclusive index range of the results to rank; typically one scan.
    score_key
        Key of the score to rank on.
    ascending
        True if lower scores are better (e.g. p-values).
    rank_key
        Key in which to store the rank.

    """
    if start == end:
        results[start][rank_key] = 1
        return

    indices = sorted(
        range(start, end + 1), key=lambda i: results[i][score_key], reverse=not ascending
    )

    last_value = None
    current_rank = 0
    for index in indices:
        score = results[index][score_key]
        if last_value is None or abs(score - last_value) > sys.float_info.epsilon:
            last_value = score
            current_rank += 1
        results[index][rank_key] = current_rank


def assign_ranks_per_scan(
    results: Sequence[Result],
    score_key: str,
    ascending: bool,
    rank_key: str = "rank",
    scan_key: str = "scan",
):
    """Rank results per scan, across charge states. `results` must be sorted by scan."""
    start = 0
    while start < len(results):
        end = start
        while end + 1 < len(results) and results[end + 1][scan_key] == results[start][scan_key]:
            end += 1
        assign_rank_by_score(results, start, end, score_key, ascending, rank_key=rank_key)
        start = end + 1


def filter_by_threshold(
    results: Iterable[Result], score_key: str, threshold: float, ascending: bool
) -> List[Result]:
    """Keep results that pass the score threshold (``<=`` if ascending, else ``>=``)."""
    if ascending:
        return [result for result in results if result[score_key] <= threshold]
    return [result for result in results if result[score_key] >= threshold]


def compute_fdr(
    results: Sequence[Result],
    scan_key: str = "scan",
    charge_key: str = "charge",
    peptide_key: str = "peptide",
    protein_key: str = "protein",
    fdr_key: str = "fdr",
):
    """
    Compute the decoy-based FDR of results sorted from best to worst score.

    Consecutive results with the same scan, charge and peptide are one PSM
    reported for several proteins. Such a group counts as a decoy only if all of
    its proteins are reversed proteins; the forward and reverse counters are
    incremented once per group.
    """
    forward_count = 0
    reverse_count = 0

    start = 0
    while start < len(results):
        key = (
            results[start][scan_key],
            results[start][charge_key],
            results[start][peptide_key],
        )
        end = start
        while end + 1 < len(results) and (
            results[end + 1][scan_key],
            results[end + 1][charge_key],
            results[end + 1][peptide_key],
        ) == key:
            end += 1

        if all(is_reversed_protein(results[i][protein_key]) for i in range(start, end + 1)):
            reverse_count += 1
        else:
            forward_count += 1

        fdr = reverse_count / forward_count if forward_count > 0 else 1.0
        for index in range(start, end + 1):
            results[index][fdr_key] = fdr

        start = end + 1


def compute_q_values(
    results: Sequence[Result], fdr_key: str = "fdr", q_value_key: str = "q_value"
):
    """
    Convert FDRs to Q-values, stepping from the worst to the best result.

    The Q-value of a result is the lowest FDR at its score or any worse score,
    capped at 1.
    """
    if not results:
        return

    fdr = np.array([result[fdr_key] for result in results], dtype=float)
    q_values = np.minimum.accumulate(np.minimum(fdr[::-1], 1.0))[::-1]
    for result, q_value in zip(results, q_values):
        result[q_value_key] = float(q_value)
