"""
Tests for the peak refinement pipeline.

Covers configuration validation, boundary filtering, coordinate
round-trips, the uniform-coverage scenario and re-running on refined output.
"""

import logging

import numpy as np
import pandas as pd
import pytest

from peakrefine.core.coverage import StrandedCoverage
from peakrefine.core.exceptions import (
    ConfigurationError,
    InvalidParameterError,
    MissingColumnError,
    SequenceFetchError,
)
from peakrefine.core.gc_content import BiasCurve
from peakrefine.core.refine import PeakRefiner, RefineConfig, RefineResult, refine_peaks

BDWIDTH = (20, 40)


class TestRefineConfig:
    """Tests for RefineConfig dataclass."""

    def test_config_defaults(self):
        config = RefineConfig()
        assert config.flank is None
        assert config.permute == 5
        assert config.gc_type == "ladder"
        assert config.shuffle_scope == "region"
        assert config.bias_resolution == 1000
        assert config.decimals == 3
        assert config.score_col == "newScore"
        assert config.pvalue_col == "newPValue"

    def test_invalid_gc_type(self):
        with pytest.raises(ConfigurationError):
            RefineConfig(gc_type="gaussian").validate()

    def test_invalid_permute(self):
        with pytest.raises(InvalidParameterError):
            RefineConfig(permute=-2).validate()

    def test_invalid_scope(self):
        with pytest.raises(InvalidParameterError):
            RefineConfig(shuffle_scope="genome").validate()


class TestPeakRefinerSetup:
    """Configuration errors are raised before any computation."""

    def test_curve_resolution_mismatch(self, uniform_coverage, uniform_genome):
        with pytest.raises(ConfigurationError):
            PeakRefiner(uniform_coverage, np.ones(500), BDWIDTH, genome=uniform_genome)

    def test_curve_object_resolution_mismatch(self, uniform_coverage, uniform_genome):
        curve = BiasCurve(np.ones(101), resolution=100)
        with pytest.raises(ConfigurationError):
            PeakRefiner(uniform_coverage, curve, BDWIDTH, genome=uniform_genome)

    def test_flank_overrides_half_width(self, uniform_coverage, uniform_genome, flat_bias):
        refiner = PeakRefiner(
            uniform_coverage, flat_bias, (20, 999), genome=uniform_genome,
            config=RefineConfig(flank=30),
        )
        assert refiner.params.peak_half_width == 40

    def test_bad_bind_width_pair(self, uniform_coverage, uniform_genome, flat_bias):
        with pytest.raises(InvalidParameterError):
            PeakRefiner(uniform_coverage, flat_bias, (20,), genome=uniform_genome)

    def test_tricube_precondition_warning(self, uniform_coverage, uniform_genome, flat_bias, caplog):
        with caplog.at_level(logging.WARNING, logger="peakrefine.core.refine"):
            PeakRefiner(
                uniform_coverage, flat_bias, (20, 60), genome=uniform_genome,
                config=RefineConfig(gc_type="tricube"),
            )
        assert "tricube" in caplog.text

    def test_unknown_genome(self, uniform_coverage, flat_bias):
        with pytest.raises(SequenceFetchError):
            PeakRefiner(uniform_coverage, flat_bias, BDWIDTH, genome="no_such_genome_build")

    def test_missing_columns(self, uniform_coverage, uniform_genome, flat_bias):
        refiner = PeakRefiner(uniform_coverage, flat_bias, BDWIDTH, genome=uniform_genome)
        with pytest.raises(MissingColumnError):
            refiner.refine(pd.DataFrame({"chrom": ["chr1"], "start": [1], "end": [2]}))


class TestUniformScenario:
    """Bias-neutral, coverage-uniform peak is not significant."""

    def test_single_key_and_pvalue_one(self, uniform_coverage, uniform_genome, flat_bias, single_peak):
        refiner = PeakRefiner(
            uniform_coverage, flat_bias, BDWIDTH, genome=uniform_genome,
            config=RefineConfig(permute=5, seed=1),
        )
        assert refiner.params.flank == 30

        result = refiner.run(single_peak)

        assert isinstance(result, RefineResult)
        assert result.dropped == 0
        assert len(result.histogram) == 1
        assert result.histogram.total == 5 * 81
        assert result.peaks["newScore"].iloc[0] == 0.0
        assert result.peaks["newPValue"].iloc[0] == 1.0

    def test_coordinates_and_columns_untouched(self, uniform_coverage, uniform_genome, flat_bias, single_peak):
        out = refine_peaks(uniform_coverage, flat_bias, BDWIDTH, single_peak, genome=uniform_genome, seed=1)
        pd.testing.assert_frame_equal(out[single_peak.columns], single_peak)
        assert list(out.columns) == list(single_peak.columns) + ["newScore", "newPValue"]


class TestPeakRefiner:
    """Refinement over several peaks with random coverage."""

    @pytest.fixture
    def refiner(self, random_coverage, random_genome, sloped_bias):
        return PeakRefiner(
            random_coverage, sloped_bias, BDWIDTH, genome=random_genome,
            config=RefineConfig(permute=3, seed=42, max_workers=2),
        )

    def test_order_and_coordinates_preserved(self, refiner, sample_peaks):
        out = refiner.refine(sample_peaks)
        assert len(out) == len(sample_peaks)
        pd.testing.assert_frame_equal(out[sample_peaks.columns], sample_peaks)
        assert out["newPValue"].between(0, 1, inclusive="right").all()

    def test_histogram_total(self, refiner, sample_peaks):
        result = refiner.run(sample_peaks)
        widths = (sample_peaks["end"] - sample_peaks["start"]).to_numpy()
        # score track length per peak: W + B + 2H + 1
        assert result.histogram.total == 3 * int(np.sum(widths + 20 + 20 + 1))

    def test_min_pvalue_is_one_over_total(self, refiner, sample_peaks):
        result = refiner.run(sample_peaks)
        assert result.peaks["newPValue"].min() >= 1.0 / result.histogram.total
        assert result.histogram.min_pvalue == 1.0 / result.histogram.total

    def test_boundary_peaks_dropped(self, refiner):
        peaks = pd.DataFrame({
            "chr": ["chr1", "chr1", "chr2", "chr2", "chr3"],
            "start": [50, 100, 5000, 9800, 5000],
            "end": [90, 140, 5040, 9900, 5040],
            "name": ["left_edge", "left_ok", "middle", "right_edge", "no_coverage"],
        })
        result = refiner.run(peaks)
        assert result.dropped == 3
        assert result.peaks["name"].tolist() == ["left_ok", "middle"]
        assert result.to_dict()["dropped_peaks"] == 3

    def test_all_peaks_dropped(self, refiner):
        peaks = pd.DataFrame({"chr": ["chr1"], "start": [0], "end": [10]})
        result = refiner.run(peaks)
        assert result.dropped == 1
        assert result.peaks.empty
        assert "newScore" in result.peaks.columns
        assert result.histogram.total == 0

    def test_idempotent_rerun(self, refiner, sample_peaks):
        first = refiner.refine(sample_peaks)
        second = refiner.refine(first)
        pd.testing.assert_frame_equal(first, second)
        assert list(second.columns).count("newScore") == 1

    def test_rerun_overwrites_stale_values(self, refiner, sample_peaks):
        stale = sample_peaks.assign(newScore=-1.0, newPValue=0.5)
        out = refiner.refine(stale)
        expected = refiner.refine(sample_peaks)
        np.testing.assert_allclose(out["newScore"], expected["newScore"])
        np.testing.assert_allclose(out["newPValue"], expected["newPValue"])

    def test_non_default_index(self, refiner, sample_peaks):
        indexed = sample_peaks.set_index(pd.Index([10, 10, 3, 7, 1]))
        out = refiner.refine(indexed)
        assert out.index.tolist() == [10, 10, 3, 7, 1]
        assert out["name"].tolist() == sample_peaks["name"].tolist()

    def test_chromosome_scope(self, random_coverage, random_genome, sloped_bias, sample_peaks):
        out = refine_peaks(
            random_coverage, sloped_bias, BDWIDTH, sample_peaks, genome=random_genome,
            permute=2, shuffle_scope="chromosome", seed=3,
        )
        assert len(out) == len(sample_peaks)

    def test_tricube(self, random_coverage, random_genome, sloped_bias, sample_peaks):
        out = refine_peaks(
            random_coverage, sloped_bias, BDWIDTH, sample_peaks, genome=random_genome,
            permute=2, gctype="tricube", seed=3,
        )
        assert out["newScore"].notna().all()


class TestSignificance:
    """A strand-shifted read pile-up stands out against its permutations."""

    def test_enriched_peak_gets_minimum_pvalue(self, random_genome, flat_bias):
        rng = np.random.default_rng(0)
        fwd = rng.poisson(1.0, 10000)
        rev = rng.poisson(1.0, 10000)
        # forward reads upstream of the site, reverse reads downstream
        fwd[4960:5000] += 20
        rev[5000:5040] += 20
        coverage = StrandedCoverage.from_dense(
            {"chr1": fwd, "chr2": rng.poisson(1.0, 10000)},
            {"chr1": rev, "chr2": rng.poisson(1.0, 10000)},
        )
        peaks = pd.DataFrame({
            "chr": ["chr1", "chr2"],
            "start": [5000, 5000],
            "end": [5040, 5040],
            "name": ["bound", "background"],
        })

        result = PeakRefiner(
            coverage, flat_bias, BDWIDTH, genome=random_genome,
            config=RefineConfig(permute=5, seed=9),
        ).run(peaks)

        bound = result.peaks.set_index("name").loc["bound"]
        background = result.peaks.set_index("name").loc["background"]
        assert bound["newScore"] > background["newScore"]
        assert bound["newPValue"] == pytest.approx(result.histogram.min_pvalue)
        assert background["newPValue"] > bound["newPValue"]


class TestFastaBackedRefinement:
    """Indexed FASTA genomes give the same result as in-memory sequences."""

    @pytest.fixture
    def fasta_path(self, temp_dir, random_genome):
        pysam = pytest.importorskip("pysam")
        path = temp_dir / "random.fa"
        with open(path, "w") as handle:
            for chrom, seq in random_genome.sequences.items():
                handle.write(f">{chrom}\n")
                for i in range(0, len(seq), 60):
                    handle.write(seq[i:i + 60] + "\n")
        pysam.faidx(str(path))
        return path

    @pytest.fixture
    def many_peaks(self):
        rng = np.random.default_rng(5)
        n = 400
        starts = rng.integers(200, 9700, n)
        return pd.DataFrame({
            "chr": rng.choice(["chr1", "chr2"], n),
            "start": starts,
            "end": starts + rng.integers(30, 80, n),
        })

    def test_threaded_fasta_matches_serial_in_memory(
        self, fasta_path, random_genome, random_coverage, sloped_bias, many_peaks
    ):
        expected = refine_peaks(
            random_coverage, sloped_bias, BDWIDTH, many_peaks, genome=random_genome,
            permute=0, max_workers=1,
        )
        for _ in range(3):
            threaded = refine_peaks(
                random_coverage, sloped_bias, BDWIDTH, many_peaks, genome=str(fasta_path),
                permute=0, max_workers=8,
            )
            np.testing.assert_array_equal(threaded["newScore"], expected["newScore"])

    def test_refiner_closes_fasta_it_opened(self, fasta_path, random_coverage, sloped_bias, single_peak):
        with PeakRefiner(random_coverage, sloped_bias, BDWIDTH, genome=str(fasta_path)) as refiner:
            refiner.refine(single_peak)
            assert not refiner.genome.closed
        assert refiner.genome.closed

    def test_refiner_leaves_given_provider_open(self, fasta_path, random_coverage, sloped_bias, single_peak):
        from peakrefine.core.sequence import FastaGenome

        with FastaGenome(fasta_path) as genome:
            with PeakRefiner(random_coverage, sloped_bias, BDWIDTH, genome=genome) as refiner:
                refiner.refine(single_peak)
            assert not genome.closed
        assert genome.closed
