"""Unit tests for count matrix assembly, normalization and VST."""

import pytest
import numpy as np

from rnaseq_engine.matrix import build_count_matrix
from rnaseq_engine.models import GeneExpressionRecord, Sample
from rnaseq_engine.normalization import (
    MIN_SIZE_FACTOR,
    estimate_size_factors,
    geometric_means,
    median,
    normalize_counts,
)
from rnaseq_engine.transform import variance_stabilize


@pytest.fixture
def samples():
    """Create three samples."""
    return [Sample(id=f"s{i}", name=f"S{i}") for i in range(1, 4)]


@pytest.fixture
def records():
    """Create records with one sparse count map."""
    return [
        GeneExpressionRecord(gene_id="g1", gene_name="A", counts={"S1": 5, "S2": 7, "S3": 9}),
        GeneExpressionRecord(gene_id="g2", gene_name="B", counts={"S2": 3}),
        GeneExpressionRecord(gene_id="g3", gene_name="C", counts={"S1": 1, "S3": 0, "Other": 4}),
    ]


class TestCountMatrix:
    """Tests for count matrix assembly."""

    def test_round_trip(self, samples, records):
        """Test that every cell equals the record count or 0 when absent."""
        matrix = build_count_matrix(samples, records)

        assert matrix.shape == (3, 3)
        for g, record in enumerate(records):
            for s, name in enumerate(matrix.sample_names):
                assert matrix.values[g, s] == record.counts.get(name, 0)

    def test_order_follows_inputs(self, samples, records):
        """Test that rows follow records and columns follow samples."""
        matrix = build_count_matrix(list(reversed(samples)), records)

        assert matrix.sample_names == ("S3", "S2", "S1")
        assert matrix.gene_names == ("A", "B", "C")
        assert list(matrix.values[0]) == [9, 7, 5]

    def test_read_only(self, samples, records):
        """Test that the matrix cannot be modified in place."""
        matrix = build_count_matrix(samples, records)

        with pytest.raises(ValueError):
            matrix.values[0, 0] = 100

    def test_to_frame(self, samples, records):
        """Test DataFrame export."""
        frame = build_count_matrix(samples, records).to_frame()

        assert list(frame.columns) == ["gene_name", "S1", "S2", "S3"]
        assert list(frame.index) == ["g1", "g2", "g3"]
        assert frame.loc["g2", "S1"] == 0

    def test_negative_counts_rejected(self):
        """Test that negative counts cannot be ingested."""
        with pytest.raises(ValueError):
            GeneExpressionRecord(gene_id="g", gene_name="G", counts={"S1": -1})

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_counts_rejected(self, value):
        """Test that infinite or NaN counts cannot be ingested."""
        with pytest.raises(ValueError):
            GeneExpressionRecord(gene_id="g", gene_name="G", counts={"S1": value, "S2": 1})


class TestMedian:
    """Tests for the median helper."""

    def test_even_length(self):
        assert median([1, 2, 3, 4]) == 2.5

    def test_odd_length(self):
        assert median([1, 3, 5]) == 3

    def test_unsorted(self):
        assert median([5, 1, 3]) == 3

    def test_empty(self):
        with pytest.raises(ValueError):
            median([])


class TestSizeFactors:
    """Tests for median-of-ratios normalization."""

    def test_geometric_means_skip_zeros(self):
        """Test geometric means over positive counts only."""
        counts = np.array([[0, 0, 0], [2, 8, 0], [1, 1, 1]], dtype=float)

        means = geometric_means(counts)

        assert means[0] == 0
        assert means[1] == pytest.approx(4.0)
        assert means[2] == pytest.approx(1.0)

    def test_proportional_samples(self):
        """Test that a doubled library gets double the size factor."""
        counts = np.array([[10, 20], [100, 200]], dtype=float)

        factors = estimate_size_factors(counts)
        normalized = normalize_counts(counts, factors)

        assert factors[0] == pytest.approx(np.sqrt(0.5))
        assert factors[1] == pytest.approx(np.sqrt(2.0))
        assert normalized[0, 0] == pytest.approx(normalized[0, 1])
        assert normalized[1, 0] == pytest.approx(normalized[1, 1])

    def test_even_number_of_ratios(self):
        """Test that two usable genes average their ratios."""
        counts = np.array([[1, 4], [4, 1]], dtype=float)

        factors = estimate_size_factors(counts)

        # ratios per sample are 0.5 and 2.0
        assert factors == pytest.approx([1.25, 1.25])

    def test_positive_and_finite(self):
        """Test size factors on random data with one gene positive everywhere."""
        rng = np.random.RandomState(0)
        counts = rng.poisson(3, (200, 8)).astype(float)
        counts[rng.rand(200, 8) < 0.3] = 0
        counts[0] = 50

        factors = estimate_size_factors(counts)

        assert np.all(np.isfinite(factors))
        assert np.all(factors > 0)

    def test_sample_without_usable_genes(self):
        """Test that an all-zero sample keeps a size factor of 1."""
        counts = np.array([[5, 0], [3, 0]], dtype=float)

        factors = estimate_size_factors(counts)

        assert factors[1] == 1.0
        assert factors[0] == pytest.approx(1.0)

    def test_all_zero_gene_normalizes_to_zero(self):
        """Test that genes without counts stay at zero."""
        counts = np.array([[0, 0, 0], [10, 20, 30]], dtype=float)

        normalized = normalize_counts(counts, estimate_size_factors(counts))

        assert np.all(normalized[0] == 0)

    def test_floor(self):
        assert MIN_SIZE_FACTOR > 0

    def test_size_factor_length_mismatch(self):
        with pytest.raises(ValueError):
            normalize_counts(np.ones((2, 3)), np.ones(2))


class TestVarianceStabilize:
    """Tests for the variance-stabilizing transform."""

    def test_below_threshold_is_zero(self):
        vst = variance_stabilize(np.array([[0.0, 0.1, 0.49]]))

        assert np.all(vst == 0)

    def test_known_values(self):
        vst = variance_stabilize(np.array([[0.5, 1.5, 7.5]]))

        assert vst[0] == pytest.approx([0.0, 1.0, 3.0])

    def test_non_decreasing(self):
        """Test monotonicity for counts >= 0.5."""
        values = np.linspace(0.5, 10000, 5000).reshape(1, -1)

        vst = variance_stabilize(values)

        assert np.all(np.diff(vst[0]) >= 0)
        assert np.all(vst >= 0)

    def test_shape_preserved(self):
        values = np.arange(12, dtype=float).reshape(3, 4)

        assert variance_stabilize(values).shape == (3, 4)
