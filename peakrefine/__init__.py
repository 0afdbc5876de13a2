"""
peakrefine - GC-effect-aware refinement of ChIP-seq peaks

Re-scores peaks from an external peak caller with a GC-bias-corrected
enrichment statistic and recalibrates their p-values against a
permutation null distribution.
"""

__version__ = "0.1.0"
__author__ = "peakrefine developers"
