"""
Permutation null distribution of enrichment scores.

Each permutation round shuffles the observed coverage of every region,
re-scores it with the region's real GC-bias track and tallies the rounded
scores into a histogram. Histograms are merged by adding counts per key,
so per-region and per-round results can be reduced in any order. The
empirical survival function of the merged histogram converts raw peak
scores into p-values.
"""

import logging
from collections import Counter
from functools import reduce
from typing import Dict, List, Optional, Tuple

import numpy as np

from .enrichment import EnrichmentScorer, ScoringRegion
from .exceptions import AnalysisError, InvalidParameterError
from .genomic_utils import sort_chromosomes
from .parallel import parallel_map

logger = logging.getLogger(__name__)

SHUFFLE_SCOPES = ("region", "chromosome")


class NullHistogram:
    """Counts of null scores at fixed decimal precision.

    Keys are stored as integers (score x 10**decimals) so that equal rounded
    scores always collide.
    """

    def __init__(self, counts: Optional[Dict[int, int]] = None, decimals: int = 3):
        self.decimals = decimals
        self._scale = 10 ** decimals
        self._counts: Counter = Counter(counts or {})

    def _keys_of(self, scores) -> np.ndarray:
        return np.rint(np.asarray(scores, dtype=float) * self._scale).astype(np.int64)

    def add_scores(self, scores) -> "NullHistogram":
        keys, counts = np.unique(self._keys_of(scores), return_counts=True)
        self._counts.update(dict(zip(keys.tolist(), counts.tolist())))
        return self

    def update(self, other: "NullHistogram") -> "NullHistogram":
        """Add the counts of ``other`` in place."""
        if other.decimals != self.decimals:
            raise InvalidParameterError("decimals", other.decimals, str(self.decimals))
        self._counts.update(other._counts)
        return self

    def __add__(self, other: "NullHistogram") -> "NullHistogram":
        return NullHistogram(self._counts, self.decimals).update(other)

    def __len__(self):
        return len(self._counts)

    def __eq__(self, other):
        if not isinstance(other, NullHistogram):
            return NotImplemented
        return self.decimals == other.decimals and self._counts == other._counts

    @property
    def total(self) -> int:
        return int(sum(self._counts.values()))

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """(sorted integer keys, counts)."""
        keys = np.array(sorted(self._counts), dtype=np.int64)
        counts = np.array([self._counts[k] for k in keys.tolist()], dtype=np.int64)
        return keys, counts

    def scores(self) -> np.ndarray:
        return self.as_arrays()[0] / self._scale

    def survival(self) -> Tuple[np.ndarray, np.ndarray]:
        """Scores ascending and ``1 - cumulative(<= score) / total`` for each."""
        keys, counts = self.as_arrays()
        total = counts.sum()
        pvalues = (total - np.cumsum(counts)) / total if total else np.zeros(0)
        return keys / self._scale, pvalues

    @property
    def min_pvalue(self) -> float:
        if not self._counts:
            raise AnalysisError("Null histogram is empty")
        return 1.0 / self.total

    def pvalues(self, scores) -> np.ndarray:
        """Map raw scores onto the empirical survival function.

        A score maps to the p-value of the largest null score not above it.
        Scores at or below the smallest null score get 1, p-values of 0 are
        raised to ``1 / total``. With an empty histogram every score gets 1.
        """
        scores = np.atleast_1d(np.asarray(scores, dtype=float))
        if not self._counts:
            return np.ones(scores.shape)

        keys, counts = self.as_arrays()
        total = counts.sum()
        survival = (total - np.cumsum(counts)) / total

        pos = np.searchsorted(keys, self._keys_of(scores), side="right") - 1
        result = survival[np.clip(pos, 0, None)]
        result[result == 0] = 1.0 / total
        result[self._keys_of(scores) <= keys[0]] = 1.0
        return result

    def pvalue(self, score: float) -> float:
        return float(self.pvalues([score])[0])


class NullDistributionEstimator:
    """Runs the permutation rounds and accumulates the null histogram."""

    def __init__(
        self,
        scorer: EnrichmentScorer,
        permute: int = 5,
        shuffle_scope: str = "region",
        seed: Optional[int] = None,
        max_workers: int = 1,
    ):
        if permute < 0:
            raise InvalidParameterError("permute", permute, ">= 0")
        if shuffle_scope not in SHUFFLE_SCOPES:
            raise InvalidParameterError("shuffle_scope", shuffle_scope, f"one of {list(SHUFFLE_SCOPES)}")
        self.scorer = scorer
        self.permute = permute
        self.shuffle_scope = shuffle_scope
        self.seed = seed
        self.max_workers = max_workers
        self.rounds_completed = 0

    def _empty(self) -> NullHistogram:
        return NullHistogram(decimals=self.scorer.decimals)

    def _region_histogram(self, task) -> NullHistogram:
        region, seed_seq = task
        rng = np.random.default_rng(seed_seq)
        fwd = rng.permutation(region.fwd)
        rev = rng.permutation(region.rev)
        return self._empty().add_scores(self.scorer.score_region(region, fwd, rev))

    def _chromosome_histogram(self, task) -> NullHistogram:
        regions, seed_seq = task
        rng = np.random.default_rng(seed_seq)
        bounds = np.cumsum([len(r.fwd) for r in regions])[:-1]
        fwd = np.split(rng.permutation(np.concatenate([r.fwd for r in regions])), bounds)
        rev = np.split(rng.permutation(np.concatenate([r.rev for r in regions])), bounds)
        hist = self._empty()
        for region, f, r in zip(regions, fwd, rev):
            hist.add_scores(self.scorer.score_region(region, f, r))
        return hist

    def permutation_round(self, regions: List[ScoringRegion], seed_seq: np.random.SeedSequence) -> NullHistogram:
        """One round: shuffle, re-score and tally every region."""
        if self.shuffle_scope == "region":
            units = regions
            worker = self._region_histogram
        else:
            by_chrom: Dict[str, List[ScoringRegion]] = {}
            for region in regions:
                by_chrom.setdefault(region.chrom, []).append(region)
            units = [by_chrom[c] for c in sort_chromosomes(list(by_chrom))]
            worker = self._chromosome_histogram

        tasks = list(zip(units, seed_seq.spawn(len(units))))
        partials = parallel_map(worker, tasks, self.max_workers)
        return reduce(lambda acc, h: acc.update(h), partials, self._empty())

    def run(self, regions: List[ScoringRegion]) -> NullHistogram:
        """Run all rounds and return the merged histogram."""
        histogram = self._empty()
        self.rounds_completed = 0
        if not regions:
            return histogram

        for p, round_seq in enumerate(np.random.SeedSequence(self.seed).spawn(self.permute), start=1):
            histogram.update(self.permutation_round(regions, round_seq))
            self.rounds_completed = p
            logger.info(f"...... permutation {p} of {self.permute}")

        logger.info(
            f"Null distribution: {histogram.total} scores, {len(histogram)} distinct values"
        )
        return histogram
