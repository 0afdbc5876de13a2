"""
Peak refinement with GC effects.

Re-ranks peaks obtained from another peak caller (e.g. MACS or SPP) by a
GC-bias-corrected enrichment score and a p-value from a permutation null
distribution.

Workflow:
1. Resolve binding width / flank / peak half-width and build the kernel
2. Build nested windows, drop peaks too close to chromosome ends
3. Effective GC content and bias multipliers per region
4. Strand-specific read counts and enrichment score per peak
5. Permutation null distribution
6. Map scores to p-values and append ``newScore`` / ``newPValue``

A flexible peak set (significant and non-significant calls) is preferred
as input; the width, flank and GC type must match those used to estimate
the bias curve.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..config import settings
from .coverage import CoverageAggregator, StrandedCoverage
from .enrichment import EnrichmentScorer, ScoringRegion
from .exceptions import (
    AnalysisError,
    ConfigurationError,
    InvalidParameterError,
    validate_dataframe,
    validate_numeric_param,
)
from .gc_content import BiasCurve, GCProfiler
from .kernels import GC_TYPES, make_kernel
from .null_distribution import SHUFFLE_SCOPES, NullDistributionEstimator, NullHistogram
from .parallel import parallel_map
from .sequence import SequenceProvider, resolve_sequence_provider
from .windows import PeakWindows, WindowParams, build_windows, contract_core, resolve_widths

logger = logging.getLogger(__name__)


@dataclass
class RefineConfig:
    """Configuration for peak refinement."""

    flank: Optional[int] = None  # overrides the peak half-width when given
    permute: int = field(default_factory=lambda: settings.default_permute)
    gc_type: str = field(default_factory=lambda: settings.default_gc_type)  # ladder or tricube

    # Permutation
    shuffle_scope: str = field(default_factory=lambda: settings.shuffle_scope)
    seed: Optional[int] = field(default_factory=lambda: settings.random_seed)

    # Numerics
    bias_resolution: int = field(default_factory=lambda: settings.bias_resolution)
    decimals: int = field(default_factory=lambda: settings.score_decimals)
    max_workers: int = field(default_factory=lambda: settings.max_workers)

    # Peak table columns
    chrom_col: str = "chr"
    start_col: str = "start"
    end_col: str = "end"
    score_col: str = "newScore"
    pvalue_col: str = "newPValue"

    def validate(self):
        """Raise on settings that would make the run meaningless."""
        if self.gc_type not in GC_TYPES:
            raise ConfigurationError(f"Unknown gc_type '{self.gc_type}'. Expected one of {list(GC_TYPES)}")
        if self.shuffle_scope not in SHUFFLE_SCOPES:
            raise InvalidParameterError("shuffle_scope", self.shuffle_scope, f"one of {list(SHUFFLE_SCOPES)}")
        validate_numeric_param(self.permute, "permute", min_val=0)
        validate_numeric_param(self.max_workers, "max_workers", min_val=1)
        validate_numeric_param(self.bias_resolution, "bias_resolution", min_val=1)
        if self.flank is not None:
            validate_numeric_param(self.flank, "flank", min_val=0)


@dataclass
class RefineResult:
    """Results from peak refinement."""

    peaks: pd.DataFrame
    histogram: NullHistogram
    dropped: int
    params: WindowParams

    def to_dict(self):
        return {
            "refined_peaks": len(self.peaks),
            "dropped_peaks": self.dropped,
            "null_scores": self.histogram.total,
            "bind_width": self.params.bind_width,
            "flank": self.params.flank,
            "peak_half_width": self.params.peak_half_width,
        }


class PeakRefiner:
    """
    Refine peak significance by GC-corrected enrichment and permutation.

    Args:
        coverage: Forward/reverse 5'-end coverage per chromosome
        bias_curve: GC bias multipliers (``BiasCurve`` or array of
            ``bias_resolution + 1`` values)
        bind_width: (binding width, peak half-width) pair
        genome: Sequence provider, FASTA path or genome identifier
        config: Run configuration
    """

    def __init__(
        self,
        coverage: StrandedCoverage,
        bias_curve: Union[BiasCurve, Sequence[float], np.ndarray],
        bind_width: Sequence[int],
        genome="hg19",
        config: Optional[RefineConfig] = None,
    ):
        self.config = config or RefineConfig()
        self.config.validate()

        if len(bind_width) != 2:
            raise InvalidParameterError("bind_width", bind_width, "(binding width, peak half-width)")
        self.params = resolve_widths(int(bind_width[0]), int(bind_width[1]), self.config.flank)

        if isinstance(bias_curve, BiasCurve):
            if bias_curve.resolution != self.config.bias_resolution:
                raise ConfigurationError(
                    f"Bias curve resolution 1/{bias_curve.resolution} does not match "
                    f"GC quantization 1/{self.config.bias_resolution}"
                )
            self.bias_curve = bias_curve
        else:
            self.bias_curve = BiasCurve(bias_curve, resolution=self.config.bias_resolution)

        self.kernel = make_kernel(self.config.gc_type, self.params)
        if self.config.gc_type == "tricube" and self.params.peak_half_width >= 3 * self.params.bind_width:
            logger.warning(
                f"tricube GC kernel used with peak half-width {self.params.peak_half_width} "
                f">= 3x binding width {self.params.bind_width}"
            )

        self.coverage = coverage
        # FASTA handles opened here are closed by close()
        self._owns_genome = not isinstance(genome, SequenceProvider)
        self.genome = resolve_sequence_provider(genome)
        self.profiler = GCProfiler(self.genome, self.kernel, decimals=self.config.decimals)
        self.aggregator = CoverageAggregator(coverage, self.params.peak_half_width)
        self.scorer = EnrichmentScorer(self.params, decimals=self.config.decimals)

    def _chrom_length(self, chrom: str) -> Optional[int]:
        if chrom not in self.coverage:
            return None
        return self.genome.chrom_length(chrom)

    def _scoring_region(self, windows: PeakWindows) -> ScoringRegion:
        bias = self.profiler.bias_track(windows, self.bias_curve)
        fwd, rev = self.aggregator.region_values(windows)
        return ScoringRegion(
            chrom=windows.chrom, fwd=fwd, rev=rev, bias=bias, score_length=windows.score_length
        )

    def _peak_score(self, region: ScoringRegion) -> float:
        return self.scorer.peak_score(self.scorer.score_region(region))

    def _restore_coordinates(self, out: pd.DataFrame, windows: List[PeakWindows]) -> pd.DataFrame:
        cfg = self.config
        restored = [contract_core(w.core, self.params) for w in windows]
        if any(r != w.peak for r, w in zip(restored, windows)):
            raise AnalysisError("Peak coordinates changed while refining")
        out[cfg.start_col] = np.array([r[0] for r in restored]).astype(out[cfg.start_col].dtype)
        out[cfg.end_col] = np.array([r[1] for r in restored]).astype(out[cfg.end_col].dtype)
        return out

    def run(self, peaks: pd.DataFrame) -> RefineResult:
        """
        Refine a peak table.

        Args:
            peaks: DataFrame with chromosome, start, end (0-based, half-open)
                and any number of annotation columns

        Returns:
            RefineResult; its ``peaks`` holds the kept rows in input order with
            score and p-value columns written
        """
        cfg = self.config
        validate_dataframe(peaks, "peaks", required_columns=[cfg.chrom_col, cfg.start_col, cfg.end_col])

        logger.info("Starting to refine peaks")
        windows, dropped = build_windows(
            peaks.reset_index(drop=True), self.params, self._chrom_length,
            chrom_col=cfg.chrom_col, start_col=cfg.start_col, end_col=cfg.end_col,
        )
        if dropped > 0:
            logger.info(f"remove {dropped} peaks located at chromosome ends")

        logger.info("...... extending peaks")
        logger.info("...... calculating GC content and GC effect weights")
        regions = parallel_map(self._scoring_region, windows, cfg.max_workers)

        logger.info("...... estimating enrichment score")
        scores = np.array(parallel_map(self._peak_score, regions, cfg.max_workers), dtype=float)

        logger.info("...... permutation analysis")
        estimator = NullDistributionEstimator(
            self.scorer,
            permute=cfg.permute,
            shuffle_scope=cfg.shuffle_scope,
            seed=cfg.seed,
            max_workers=cfg.max_workers,
        )
        histogram = estimator.run(regions)

        logger.info("...... reporting new p-value")
        pvalues = histogram.pvalues(scores) if len(scores) else np.zeros(0)

        out = peaks.iloc[[w.peak_index for w in windows]].copy()
        out = self._restore_coordinates(out, windows)
        out[cfg.score_col] = scores
        out[cfg.pvalue_col] = pvalues

        logger.info(f"Refined {len(out)} peaks ({dropped} removed)")
        return RefineResult(peaks=out, histogram=histogram, dropped=dropped, params=self.params)

    def refine(self, peaks: pd.DataFrame) -> pd.DataFrame:
        return self.run(peaks).peaks

    def close(self):
        """Release the sequence provider if this refiner opened it."""
        if self._owns_genome and hasattr(self.genome, "close"):
            self.genome.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def refine_peaks(
    coverage: StrandedCoverage,
    gcbias,
    bdwidth: Sequence[int],
    peaks: pd.DataFrame,
    flank: Optional[int] = None,
    permute: Optional[int] = None,
    genome="hg19",
    gctype: Optional[str] = None,
    **kwargs,
) -> pd.DataFrame:
    """
    Refine peaks with GC effects in one call.

    Args:
        coverage: Forward/reverse 5'-end coverage
        gcbias: Bias curve (``BiasCurve`` or array)
        bdwidth: (binding width, peak half-width)
        peaks: Peak table to refine
        flank: Flank width; when given, the peak half-width is recomputed
        permute: Number of permutation rounds (default from settings)
        genome: Sequence provider, FASTA path or genome identifier
        gctype: ``ladder`` (default) or ``tricube``
        **kwargs: Further ``RefineConfig`` fields (seed, max_workers, ...)

    Returns:
        Peaks with ``newScore`` and ``newPValue`` columns
    """
    config = RefineConfig(flank=flank, **kwargs)
    if permute is not None:
        config.permute = permute
    if gctype is not None:
        config.gc_type = gctype
    with PeakRefiner(coverage, gcbias, bdwidth, genome=genome, config=config) as refiner:
        return refiner.refine(peaks)
