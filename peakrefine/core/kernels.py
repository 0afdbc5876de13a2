"""
Convolution kernels for effective GC content.

The kernel models the probability that a read starting at a given offset
originates from the binding site: ``ladder`` assumes uniformly distributed
fragments, ``tricube`` a smoother decay. Tricube should not be used when
the peak half-width is 3x the binding width or more.
"""

import numpy as np

from .exceptions import ConfigurationError
from .windows import WindowParams

GC_TYPES = ("ladder", "tricube")


def _normalize(weight: np.ndarray) -> np.ndarray:
    total = weight.sum()
    if not np.isfinite(total) or total <= 0:
        raise ConfigurationError("Kernel weights sum to zero; cannot normalize")
    return weight / total


def ladder_kernel(bind_width: int, flank: int) -> np.ndarray:
    """Rising ramp 1..F, plateau of F+1 over the binding width, falling ramp F..1."""
    ramp = np.arange(1, flank + 1, dtype=float)
    plateau = np.full(bind_width, flank + 1, dtype=float)
    return _normalize(np.concatenate([ramp, plateau, ramp[::-1]]))


def tricube_kernel(bind_width: int, flank: int) -> np.ndarray:
    """Tricube weights ``(1 - |t/w|^3)^3`` over t in [-w, w], w = F + B//2."""
    w = flank + bind_width // 2
    if w == 0:
        return np.ones(1)
    t = np.arange(-w, w + 1, dtype=float)
    return _normalize((1 - np.abs(t / w) ** 3) ** 3)


def make_kernel(gc_type: str, params: WindowParams) -> np.ndarray:
    """Build the normalized kernel for ``gc_type``."""
    if gc_type == "ladder":
        return ladder_kernel(params.bind_width, params.flank)
    if gc_type == "tricube":
        return tricube_kernel(params.bind_width, params.flank)
    raise ConfigurationError(f"Unknown gc_type '{gc_type}'. Expected one of {list(GC_TYPES)}")
