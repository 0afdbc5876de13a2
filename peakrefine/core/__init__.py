"""
Core refinement modules for peakrefine.

Includes:
- Nested peak windows and GC convolution kernels
- Effective GC content and bias-curve lookup
- Strand-specific coverage and enrichment scoring
- Permutation null distribution
- Peak refinement pipeline
"""

# Windows and kernels
from .windows import WindowParams, PeakWindows, resolve_widths, build_windows
from .kernels import make_kernel, ladder_kernel, tricube_kernel

# GC content and bias correction
from .gc_content import BiasCurve, GCProfiler, gc_indicator, gc_profile

# Coverage and scoring
from .coverage import RunLengthTrack, StrandedCoverage, CoverageAggregator, window_sums
from .enrichment import EnrichmentScorer, ScoringRegion, score_track

# Permutation test
from .null_distribution import NullHistogram, NullDistributionEstimator

# Sequence providers
from .sequence import SequenceProvider, InMemoryGenome, FastaGenome, resolve_sequence_provider

# Pipeline
from .refine import PeakRefiner, RefineConfig, RefineResult, refine_peaks

# Peak file utilities
from .genomic_utils import load_peak_file, write_peak_file, standardize_peak_columns, sort_chromosomes

__all__ = [
    # Windows and kernels
    "WindowParams",
    "PeakWindows",
    "resolve_widths",
    "build_windows",
    "make_kernel",
    "ladder_kernel",
    "tricube_kernel",

    # GC content
    "BiasCurve",
    "GCProfiler",
    "gc_indicator",
    "gc_profile",

    # Coverage and scoring
    "RunLengthTrack",
    "StrandedCoverage",
    "CoverageAggregator",
    "window_sums",
    "EnrichmentScorer",
    "ScoringRegion",
    "score_track",

    # Permutation test
    "NullHistogram",
    "NullDistributionEstimator",

    # Sequence providers
    "SequenceProvider",
    "InMemoryGenome",
    "FastaGenome",
    "resolve_sequence_provider",

    # Pipeline
    "PeakRefiner",
    "RefineConfig",
    "RefineResult",
    "refine_peaks",

    # Peak files
    "load_peak_file",
    "write_peak_file",
    "standardize_peak_columns",
    "sort_chromosomes",
]
