"""
Nested genomic windows around each peak.

All coordinates are 0-based, half-open (BED convention). For a peak
``[s, e)`` with binding width B, H = B // 2 and flank F:

- core window:      ``[s - H, e + B - H)``
- region window:    core extended by 2H + F on the left, 2H + F + 1 on the right
- GC window:        region extended by H on both sides
- fetch window:     GC window extended by F on both sides

The fetch window is also the context window used for the chromosome
boundary check, so every derived window of a kept peak is in bounds.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from .exceptions import InvalidParameterError, validate_dataframe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowParams:
    """Binding width, flank and peak half-width resolved for one run."""

    bind_width: int
    flank: int
    peak_half_width: int

    @property
    def half_bind_width(self) -> int:
        return self.bind_width // 2

    @property
    def block_offset(self) -> int:
        """Shift between consecutive scoring blocks (H + F)."""
        return self.half_bind_width + self.flank


def resolve_widths(
    bind_width: int,
    peak_half_width: Optional[int] = None,
    flank: Optional[int] = None,
) -> WindowParams:
    """Derive the missing one of flank / peak half-width.

    If ``flank`` is given it wins and the half-width is recomputed as
    ``F + B - B//2``; otherwise ``F = P - B + B//2``.
    """
    if bind_width is None or bind_width < 1:
        raise InvalidParameterError("bind_width", bind_width, ">= 1")
    half = bind_width // 2

    if flank is None:
        if peak_half_width is None:
            raise InvalidParameterError("peak_half_width", None, "required when flank is not given")
        flank = peak_half_width - bind_width + half
    else:
        peak_half_width = flank + bind_width - half

    if flank < 0:
        raise InvalidParameterError(
            "flank", flank, f">= 0 (peak_half_width must be >= {bind_width - half})"
        )
    return WindowParams(bind_width=int(bind_width), flank=int(flank), peak_half_width=int(peak_half_width))


@dataclass(frozen=True)
class PeakWindows:
    """All windows derived from one peak, as plain coordinate pairs."""

    peak_index: object
    chrom: str
    peak: Tuple[int, int]
    core: Tuple[int, int]
    region: Tuple[int, int]
    gc: Tuple[int, int]
    fetch: Tuple[int, int]
    score_length: int

    @property
    def region_width(self) -> int:
        return self.region[1] - self.region[0]

    @property
    def context(self) -> Tuple[int, int]:
        return self.fetch


def peak_windows(
    chrom: str, start: int, end: int, params: WindowParams, peak_index=None
) -> PeakWindows:
    """Compute the nested windows of a single peak."""
    b = params.bind_width
    h = params.half_bind_width
    f = params.flank

    core = (start - h, end + b - h)
    region = (core[0] - 2 * h - f, core[1] + 2 * h + f + 1)
    gc = (region[0] - h, region[1] + h)
    fetch = (gc[0] - f, gc[1] + f)
    score_length = (region[1] - region[0]) - 2 * h - 2 * f

    return PeakWindows(
        peak_index=peak_index,
        chrom=chrom,
        peak=(start, end),
        core=core,
        region=region,
        gc=gc,
        fetch=fetch,
        score_length=score_length,
    )


def contract_core(core: Tuple[int, int], params: WindowParams) -> Tuple[int, int]:
    """Inverse of the +B resize / -H shift that produced the core window."""
    h = params.half_bind_width
    return (core[0] + h, core[1] - params.bind_width + h)


def build_windows(
    peaks: pd.DataFrame,
    params: WindowParams,
    chrom_length: Callable[[str], Optional[int]],
    chrom_col: str = "chr",
    start_col: str = "start",
    end_col: str = "end",
) -> Tuple[List[PeakWindows], int]:
    """Build windows for every peak and drop those outside chromosome bounds.

    Parameters
    ----------
    peaks : pd.DataFrame
        Peaks with chromosome, start and end columns.
    params : WindowParams
        Resolved widths.
    chrom_length : callable
        Returns the length of a chromosome, or None when the chromosome
        is unknown (such peaks are dropped as well).

    Returns
    -------
    tuple
        (kept windows in input order, number of dropped peaks)
    """
    validate_dataframe(peaks, "peaks", required_columns=[chrom_col, start_col, end_col])

    kept: List[PeakWindows] = []
    dropped = 0
    lengths: Dict[str, Optional[int]] = {}

    for idx, chrom, start, end in zip(
        peaks.index, peaks[chrom_col].astype(str), peaks[start_col], peaks[end_col]
    ):
        start, end = int(start), int(end)
        if end <= start:
            raise InvalidParameterError("peak", f"{chrom}:{start}-{end}", "end > start")

        if chrom not in lengths:
            lengths[chrom] = chrom_length(chrom)
        length = lengths[chrom]

        windows = peak_windows(chrom, start, end, params, peak_index=idx)
        ctx_start, ctx_end = windows.context
        if length is None or ctx_start < 0 or ctx_end > length:
            dropped += 1
            continue
        kept.append(windows)

    return kept, dropped
