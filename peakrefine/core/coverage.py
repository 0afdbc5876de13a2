"""
Strand-specific 5'-end coverage and sliding-window read counts.

Coverage is stored per chromosome as run-length encoded integer tracks
(one mapping for each strand). Read counts around a position are sums of
coverage over a window of ``peak_half_width`` bases.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Tuple

import numpy as np

from .exceptions import InvalidParameterError, ValidationError
from .windows import PeakWindows

logger = logging.getLogger(__name__)


class RunLengthTrack:
    """Per-base non-negative integer signal stored as runs of constant value."""

    def __init__(self, values: Iterable[int], lengths: Iterable[int]):
        values = np.asarray(values, dtype=np.int64)
        lengths = np.asarray(lengths, dtype=np.int64)
        if values.shape != lengths.shape or values.ndim != 1:
            raise ValidationError("Run values and run lengths must be 1-D arrays of equal size")
        if np.any(values < 0):
            raise ValidationError("Coverage values must be non-negative")
        if np.any(lengths <= 0):
            raise ValidationError("Run lengths must be positive")
        self.values = values
        self.lengths = lengths
        self._ends = np.cumsum(lengths)
        self._starts = self._ends - lengths

    @classmethod
    def from_dense(cls, array) -> "RunLengthTrack":
        array = np.asarray(array, dtype=np.int64)
        if array.size == 0:
            return cls([], [])
        breaks = np.flatnonzero(np.diff(array)) + 1
        starts = np.concatenate(([0], breaks))
        lengths = np.diff(np.concatenate((starts, [array.size])))
        return cls(array[starts], lengths)

    def __len__(self):
        return int(self._ends[-1]) if self._ends.size else 0

    @property
    def n_runs(self) -> int:
        return int(self.values.size)

    def to_dense(self) -> np.ndarray:
        return np.repeat(self.values, self.lengths)

    def slice(self, start: int, end: int) -> np.ndarray:
        """Dense values over ``[start, end)``; bases past the track end read as 0."""
        if start < 0 or end < start:
            raise InvalidParameterError("window", f"{start}-{end}", "0 <= start <= end")
        out = np.zeros(end - start, dtype=np.int64)
        stop = min(end, len(self))
        if start >= stop:
            return out
        i0 = np.searchsorted(self._ends, start, side="right")
        i1 = np.searchsorted(self._starts, stop, side="left")
        lens = np.minimum(self._ends[i0:i1], stop) - np.maximum(self._starts[i0:i1], start)
        out[: stop - start] = np.repeat(self.values[i0:i1], lens)
        return out


@dataclass
class StrandedCoverage:
    """Forward and reverse 5'-end coverage keyed by chromosome name."""

    fwd: Dict[str, RunLengthTrack] = field(default_factory=dict)
    rev: Dict[str, RunLengthTrack] = field(default_factory=dict)

    @classmethod
    def from_dense(cls, fwd: Dict[str, np.ndarray], rev: Dict[str, np.ndarray]) -> "StrandedCoverage":
        return cls(
            fwd={chrom: RunLengthTrack.from_dense(v) for chrom, v in fwd.items()},
            rev={chrom: RunLengthTrack.from_dense(v) for chrom, v in rev.items()},
        )

    def __contains__(self, chrom: str) -> bool:
        return chrom in self.fwd and chrom in self.rev

    @property
    def chromosomes(self):
        return [c for c in self.fwd if c in self.rev]

    def region(self, chrom: str, start: int, end: int) -> Tuple[np.ndarray, np.ndarray]:
        """Dense (forward, reverse) coverage over a window."""
        return self.fwd[chrom].slice(start, end), self.rev[chrom].slice(start, end)


def window_sums(values: np.ndarray, width: int) -> np.ndarray:
    """Running sums of ``width`` consecutive values (``len(values) - width + 1`` of them)."""
    if width < 1:
        raise InvalidParameterError("width", width, ">= 1")
    values = np.asarray(values, dtype=np.int64)
    if values.size < width:
        return np.zeros(0, dtype=np.int64)
    csum = np.concatenate(([0], np.cumsum(values)))
    return csum[width:] - csum[:-width]


class CoverageAggregator:
    """Sliding read counts of both strands over a peak's region window."""

    def __init__(self, coverage: StrandedCoverage, width: int):
        self.coverage = coverage
        self.width = width

    def region_values(self, windows: PeakWindows) -> Tuple[np.ndarray, np.ndarray]:
        return self.coverage.region(windows.chrom, *windows.region)

    def sums(self, fwd: np.ndarray, rev: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return window_sums(fwd, self.width), window_sums(rev, self.width)

    def aggregate(self, windows: PeakWindows) -> Tuple[np.ndarray, np.ndarray]:
        return self.sums(*self.region_values(windows))
