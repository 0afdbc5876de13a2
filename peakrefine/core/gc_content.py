"""
Effective GC content and GC-bias correction.

GC content around each base is estimated by convolving a binary G/C
indicator with the read-origin kernel, then mapped to a multiplicative
correction through a precomputed bias curve indexed by GC fraction at
1/1000 resolution.
"""

import logging
from typing import Optional

import numpy as np

from .exceptions import AnalysisError, BiasLookupError, ConfigurationError
from .sequence import SequenceProvider
from .windows import PeakWindows

logger = logging.getLogger(__name__)

_GC_BASES = np.zeros(256, dtype=np.int8)
for _base in b"GCgc":
    _GC_BASES[_base] = 1


def gc_indicator(sequence: str) -> np.ndarray:
    """1 where the base is G or C (any case), 0 otherwise."""
    codes = np.frombuffer(sequence.encode("ascii"), dtype=np.uint8)
    return _GC_BASES[codes]


def gc_profile(
    indicator: np.ndarray,
    kernel: np.ndarray,
    length: Optional[int] = None,
    decimals: int = 3,
) -> np.ndarray:
    """Sliding weighted sum of ``indicator`` with ``kernel``.

    Only full windows are kept (``len(indicator) - len(kernel) + 1`` values);
    ``length`` truncates the result to the first ``length`` of them.
    """
    values = np.convolve(indicator.astype(float), kernel[::-1], mode="valid")
    if length is not None:
        if len(values) < length:
            raise AnalysisError(
                f"GC profile has {len(values)} values, {length} required"
            )
        values = values[:length]
    return np.round(values, decimals)


class BiasCurve:
    """GC fraction -> bias-correction multiplier, ``resolution + 1`` entries."""

    def __init__(self, values, resolution: int = 1000):
        values = np.asarray(values, dtype=float)
        if values.ndim != 1 or len(values) != resolution + 1:
            raise ConfigurationError(
                f"Bias curve has {values.size} entries; "
                f"{resolution + 1} required for GC resolution 1/{resolution}"
            )
        if not np.all(np.isfinite(values)) or np.any(values <= 0):
            raise ConfigurationError("Bias curve multipliers must be finite and positive")
        self.values = values
        self.resolution = resolution

    def __len__(self):
        return len(self.values)

    @classmethod
    def from_gc_effects(cls, mu0, mu0med1, resolution: int = 1000, decimals: int = 3) -> "BiasCurve":
        """Curve from the fitted background GC effects: ``round(mu0med1 / mu0, 3)``."""
        mu0 = np.asarray(mu0, dtype=float)
        mu0med1 = np.asarray(mu0med1, dtype=float)
        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = mu0med1 / mu0
        return cls(np.round(ratio, decimals), resolution=resolution)

    @classmethod
    def uniform(cls, value: float = 1.0, resolution: int = 1000) -> "BiasCurve":
        """Flat curve, i.e. no GC correction."""
        return cls(np.full(resolution + 1, value, dtype=float), resolution=resolution)

    def lookup(self, gc) -> np.ndarray:
        """Multiplier for every GC fraction in ``gc``."""
        idx = np.rint(np.asarray(gc, dtype=float) * self.resolution).astype(np.int64)
        if idx.size:
            lo, hi = idx.min(), idx.max()
            if lo < 0:
                raise BiasLookupError(int(lo), len(self.values))
            if hi >= len(self.values):
                raise BiasLookupError(int(hi), len(self.values))
        return self.values[idx]


class GCProfiler:
    """Per-peak GC profile and bias track over the region window."""

    def __init__(self, genome: SequenceProvider, kernel: np.ndarray, decimals: int = 3):
        self.genome = genome
        self.kernel = kernel
        self.decimals = decimals

    def profile(self, windows: PeakWindows) -> np.ndarray:
        """Smoothed GC fraction for each base of the region window."""
        seq = self.genome.fetch(windows.chrom, *windows.fetch)
        expected = windows.fetch[1] - windows.fetch[0]
        if len(seq) != expected:
            raise AnalysisError(
                f"Sequence provider returned {len(seq)} bases for a {expected} bp window"
            )
        return gc_profile(gc_indicator(seq), self.kernel, length=windows.region_width, decimals=self.decimals)

    def bias_track(self, windows: PeakWindows, curve: BiasCurve) -> np.ndarray:
        return curve.lookup(self.profile(windows))
