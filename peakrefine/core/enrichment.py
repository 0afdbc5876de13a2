"""
GC-corrected enrichment score.

For every position of a region, forward reads counted upstream (block 1)
and reverse reads counted downstream (block 2) form the binding signal;
reverse reads upstream and forward reads downstream are the background,
each discounted by the GC bias at its own location:

    score = 2 * sqrt(fwd[b1] * rev[b2]) * bias[b2]
            - rev[b1] * bias[b1] - fwd[b2] * bias[b3]

Blocks b1, b2, b3 start at offsets 0, H + F and 2H + 2F of the region.
"""

from dataclasses import dataclass

import numpy as np

from .coverage import window_sums
from .exceptions import AnalysisError
from .windows import WindowParams


@dataclass
class ScoringRegion:
    """Dense inputs of one region: raw coverage of both strands and its bias track."""

    chrom: str
    fwd: np.ndarray
    rev: np.ndarray
    bias: np.ndarray
    score_length: int


def score_track(
    fwd_sums: np.ndarray,
    rev_sums: np.ndarray,
    bias: np.ndarray,
    params: WindowParams,
    length: int,
    decimals: int = 3,
) -> np.ndarray:
    """Enrichment score at each of ``length`` positions, rounded to ``decimals``."""
    offset = params.block_offset
    b1 = slice(0, length)
    b2 = slice(offset, offset + length)
    b3 = slice(2 * offset, 2 * offset + length)

    if len(fwd_sums) < offset + length or len(rev_sums) < offset + length:
        raise AnalysisError(
            f"Read counts too short for scoring: {len(fwd_sums)} < {offset + length}"
        )
    if len(bias) < 2 * offset + length:
        raise AnalysisError(f"Bias track too short for scoring: {len(bias)} < {2 * offset + length}")

    fwd_up = fwd_sums[b1].astype(float)
    fwd_down = fwd_sums[b2].astype(float)
    rev_up = rev_sums[b1].astype(float)
    rev_down = rev_sums[b2].astype(float)

    score = (
        2 * np.sqrt(fwd_up * rev_down) * bias[b2]
        - rev_up * bias[b1]
        - fwd_down * bias[b3]
    )
    return np.round(score, decimals)


class EnrichmentScorer:
    """Score tracks and peak scores for regions sharing one set of widths."""

    def __init__(self, params: WindowParams, decimals: int = 3):
        self.params = params
        self.decimals = decimals

    def track(self, fwd_sums, rev_sums, bias, length: int) -> np.ndarray:
        return score_track(fwd_sums, rev_sums, bias, self.params, length, self.decimals)

    def score_region(self, region: ScoringRegion, fwd: np.ndarray = None, rev: np.ndarray = None) -> np.ndarray:
        """Score track of ``region``; ``fwd``/``rev`` replace its coverage (e.g. shuffled copies)."""
        fwd = region.fwd if fwd is None else fwd
        rev = region.rev if rev is None else rev
        width = self.params.peak_half_width
        return self.track(window_sums(fwd, width), window_sums(rev, width), region.bias, region.score_length)

    @staticmethod
    def peak_score(track: np.ndarray) -> float:
        """Reported score of a peak: the maximum of its track."""
        if track.size == 0:
            raise AnalysisError("Cannot score an empty track")
        return float(track.max())
