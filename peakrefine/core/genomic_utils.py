"""
Shared genomic utilities for peakrefine.

Helpers for reading and writing peak tables from other peak callers
(BED, narrowPeak, broadPeak, headered TSV/CSV), column name detection and
natural chromosome ordering.
"""

import io
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import pandas as pd

from .exceptions import EmptyDataError, validate_dataframe

logger = logging.getLogger(__name__)

# ============================================================================
# Peak file parsing utilities
# ============================================================================

# Standard column name mappings
CHROM_COLS = ["chr", "chrom", "chromosome", "seqnames", "#chr"]
START_COLS = ["start", "chromStart", "peak_start"]
END_COLS = ["end", "chromEnd", "peak_end"]

BED_COLUMNS = ["chr", "start", "end", "name", "score", "strand",
               "signalValue", "pValue", "qValue", "peak"]


def detect_column(df: pd.DataFrame, candidates: List[str], required: bool = False) -> Optional[str]:
    """Find the first matching column name from a list of candidates.

    Parameters
    ----------
    df : pd.DataFrame
    candidates : list of str
        Column names to search for (case-insensitive).
    required : bool
        If True, raise ValueError when not found.

    Returns
    -------
    str or None
    """
    cols_lower = {c.lower(): c for c in df.columns}
    for cand in candidates:
        if cand.lower() in cols_lower:
            return cols_lower[cand.lower()]
    if required:
        raise ValueError(
            f"Could not find any of {candidates} in columns: {list(df.columns)}"
        )
    return None


def standardize_peak_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename common coordinate column variants to ``chr``, ``start``, ``end``."""
    mapping = {}
    for std_name, candidates in [
        ("chr", CHROM_COLS),
        ("start", START_COLS),
        ("end", END_COLS),
    ]:
        col = detect_column(df, candidates)
        if col and col != std_name:
            mapping[col] = std_name
    return df.rename(columns=mapping)


_PREAMBLE_PREFIXES = ("track", "browser")


def _is_hash_header(line: str, sep: str) -> bool:
    """A `#chrom`-style column header rather than a comment."""
    first = line.lstrip("#").split(sep)[0].strip().lower()
    return first in {c.lstrip("#").lower() for c in CHROM_COLS}


def _strip_preamble(content: str, sep: str) -> str:
    """Drop leading blank, UCSC `track`/`browser` and `#` comment lines."""
    lines = content.splitlines()
    for i, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or stripped.startswith(_PREAMBLE_PREFIXES):
            continue
        if stripped.startswith("#") and not _is_hash_header(stripped, sep):
            continue
        return "\n".join(lines[i:])
    return ""


def load_peak_file(filepath_or_buffer, sep: str = "\t") -> pd.DataFrame:
    """Load a BED/narrowPeak/broadPeak/CSV file into a standardized DataFrame.

    Handles:
    - BED (3-6+ columns, no header)
    - narrowPeak / broadPeak (ENCODE format)
    - CSV/TSV with headers

    Returns a DataFrame with at least: chr, start, end. All other columns are
    kept and passed through refinement untouched.
    """
    if hasattr(filepath_or_buffer, "read"):
        content = filepath_or_buffer.read()
        if isinstance(content, bytes):
            content = content.decode("utf-8")
    else:
        content = Path(filepath_or_buffer).read_text()

    content = _strip_preamble(content, sep)
    if not content.strip():
        raise EmptyDataError("peak file")

    # Header present when the second field of the first line is not a number
    first_line = content.splitlines()[0]
    fields = first_line.split(sep)
    first_val = fields[1] if len(fields) > 1 else ""
    has_header = not first_val.replace(".", "").replace("-", "").isdigit()

    if has_header:
        df = pd.read_csv(io.StringIO(content), sep=sep, header=0)
        df.columns = [str(c).lstrip("#") if str(c).startswith("#chr") else c for c in df.columns]
    else:
        df = pd.read_csv(io.StringIO(content), sep=sep, header=None, comment="#")
        df.columns = BED_COLUMNS[: len(df.columns)] + [
            f"col{i}" for i in range(len(BED_COLUMNS), len(df.columns))
        ]

    df = standardize_peak_columns(df)
    validate_dataframe(df, "peak file", required_columns=["chr", "start", "end"], min_rows=1)
    df["chr"] = df["chr"].astype(str)
    df["start"] = df["start"].astype(int)
    df["end"] = df["end"].astype(int)
    logger.info(f"Loaded {len(df)} peaks")
    return df


def write_peak_file(df: pd.DataFrame, path: Union[str, Path], sep: str = "\t") -> Path:
    """Write a (refined) peak table with a header line."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, sep=sep, index=False)
    logger.info(f"Wrote {len(df)} peaks to {path}")
    return path


# ============================================================================
# Chromosome utilities
# ============================================================================

_CHROM_ORDER = {f"chr{i}": i for i in range(1, 23)}
_CHROM_ORDER.update({"chrX": 23, "chrY": 24, "chrM": 25, "chrMT": 25})


def sort_chromosomes(chroms: List[str]) -> List[str]:
    """Sort chromosome names in natural order (1,2,...,22,X,Y,M)."""
    def _sort_key(c: str) -> Tuple[int, str]:
        c_stripped = c.replace("chr", "") if c.startswith("chr") else c
        if c in _CHROM_ORDER:
            return (_CHROM_ORDER[c], c)
        try:
            return (int(c_stripped), c)
        except ValueError:
            return (100, c)
    return sorted(chroms, key=_sort_key)
