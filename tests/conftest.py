"""
Shared test fixtures for the peakrefine test suite.
"""

import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from peakrefine.core.coverage import StrandedCoverage
from peakrefine.core.gc_content import BiasCurve
from peakrefine.core.sequence import InMemoryGenome

CHROM_LENGTH = 10000

# ============================================================================
# Genomes
# ============================================================================


@pytest.fixture
def uniform_genome():
    """Single 10 kb chromosome with 50% GC everywhere."""
    return InMemoryGenome({"chr1": "ACGT" * (CHROM_LENGTH // 4)})


@pytest.fixture
def random_genome():
    """Two random chromosomes of 10 kb."""
    rng = np.random.default_rng(42)
    return InMemoryGenome({
        chrom: "".join(rng.choice(list("ACGT"), CHROM_LENGTH))
        for chrom in ["chr1", "chr2"]
    })


# ============================================================================
# Coverage and bias
# ============================================================================


@pytest.fixture
def uniform_coverage():
    """Coverage of 1 on both strands at every base of chr1."""
    ones = np.ones(CHROM_LENGTH, dtype=np.int64)
    return StrandedCoverage.from_dense({"chr1": ones}, {"chr1": ones.copy()})


@pytest.fixture
def random_coverage():
    """Poisson(1) background coverage on chr1 and chr2."""
    rng = np.random.default_rng(7)
    fwd = {c: rng.poisson(1.0, CHROM_LENGTH) for c in ["chr1", "chr2"]}
    rev = {c: rng.poisson(1.0, CHROM_LENGTH) for c in ["chr1", "chr2"]}
    return StrandedCoverage.from_dense(fwd, rev)


@pytest.fixture
def flat_bias():
    """Bias curve of 1.0 at every GC fraction (no correction)."""
    return BiasCurve.uniform(1.0)


@pytest.fixture
def sloped_bias():
    """Bias curve that grows with GC content."""
    return BiasCurve(np.round(np.linspace(0.5, 1.5, 1001), 3))


# ============================================================================
# Peak DataFrames
# ============================================================================


@pytest.fixture
def single_peak():
    """One 40 bp peak in the middle of chr1."""
    return pd.DataFrame({
        "chr": ["chr1"],
        "start": [5000],
        "end": [5040],
        "name": ["peak_0"],
    })


@pytest.fixture
def sample_peaks():
    """A small set of peaks on two chromosomes with annotation columns."""
    return pd.DataFrame({
        "chr": ["chr2", "chr1", "chr1", "chr2", "chr1"],
        "start": [3000, 5000, 1200, 7000, 8000],
        "end": [3050, 5040, 1300, 7020, 8100],
        "name": [f"peak_{i}" for i in range(5)],
        "score": [100, 200, 150, 300, 250],
    })


# ============================================================================
# Temporary files
# ============================================================================


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that gets cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_bed_file(temp_dir):
    """Create a temporary BED file for testing."""
    bed_path = temp_dir / "test_peaks.bed"
    bed_content = """chr1\t1000\t2000\tpeak_0\t100\t.
chr1\t5000\t6000\tpeak_1\t200\t.
chr2\t2000\t3000\tpeak_2\t150\t."""
    bed_path.write_text(bed_content)
    return bed_path


@pytest.fixture
def sample_narrowpeak_file(temp_dir):
    """Create a temporary narrowPeak file for testing."""
    np_path = temp_dir / "test.narrowPeak"
    np_content = """chr1\t1000\t2000\tpeak_0\t100\t.\t5.5\t3.2\t2.1\t500
chr1\t5000\t6000\tpeak_1\t200\t.\t8.1\t5.4\t4.3\t400
chr2\t2000\t3000\tpeak_2\t150\t.\t6.2\t4.1\t3.0\t450"""
    np_path.write_text(np_content)
    return np_path


@pytest.fixture
def sample_fasta_file(temp_dir):
    """Two-record FASTA file."""
    fasta_path = temp_dir / "genome.fa"
    fasta_path.write_text(">chrA\nGGGGCCCCAAAATTTT\n>chrB\nACGTACGTAC\n")
    return fasta_path
