"""Unit tests for validation module."""

import pytest
import pandas as pd
import numpy as np

from rnaseq_engine import records_from_frame, samples_from_frame, validate_analysis_inputs
from rnaseq_engine.models import GeneExpressionRecord, Sample
from rnaseq_engine.validation import (
    summarize_traits,
    validate_gene_records,
    validate_samples,
)


@pytest.fixture
def valid_counts():
    """Create valid count matrix."""
    np.random.seed(42)
    return pd.DataFrame(
        np.random.poisson(100, (50, 6)),
        index=[f"Gene_{i}" for i in range(50)],
        columns=[f"Sample_{i}" for i in range(6)]
    )


@pytest.fixture
def valid_metadata():
    """Create valid metadata."""
    return pd.DataFrame({
        'condition': ['control'] * 3 + ['treatment'] * 3,
        'batch': [1, 2, 1, 2, 1, 2],
        'mapping_rate': [91.0, 92.5, 90.0, 93.0, 94.0, 89.5]
    }, index=[f"Sample_{i}" for i in range(6)])


@pytest.fixture
def samples(valid_metadata):
    return samples_from_frame(valid_metadata)


@pytest.fixture
def records(valid_counts):
    return records_from_frame(valid_counts)


class TestFrameAdapters:
    """Tests for DataFrame to record conversion."""

    def test_samples_from_frame(self, samples):
        assert [s.name for s in samples] == [f"Sample_{i}" for i in range(6)]
        assert samples[0].traits == {'condition': 'control', 'batch': 1}
        assert samples[1].mapping_rate == 92.5

    def test_records_from_frame(self, records, valid_counts):
        assert len(records) == 50
        assert records[0].gene_id == "Gene_0"
        assert records[0].count("Sample_3") == valid_counts.loc["Gene_0", "Sample_3"]

    def test_gene_name_column(self):
        counts = pd.DataFrame(
            {'symbol': ['TP53', 'MYC'], 'S1': [1, 2], 'S2': [3, np.nan]},
            index=['ENSG1', 'ENSG2']
        )

        records = records_from_frame(counts, gene_name_col='symbol')

        assert records[1].gene_name == 'MYC'
        assert records[1].counts == {'S1': 2.0}
        assert records[1].count('S2') == 0.0

    def test_infinite_count_rejected(self):
        counts = pd.DataFrame({'S1': [1.0, np.inf]}, index=['g1', 'g2'])

        with pytest.raises(ValueError):
            records_from_frame(counts)


class TestSampleValidation:
    """Tests for sample table validation."""

    def test_valid_samples(self, samples):
        result = validate_samples(samples)

        assert result.valid
        assert result.summary['n_samples'] == 6
        assert result.summary['traits'] == ['batch', 'condition']

    def test_duplicate_names(self):
        samples = [Sample(id="a", name="S1"), Sample(id="b", name="S1")]

        result = validate_samples(samples)

        assert not result.valid
        assert any('duplicate' in err.lower() for err in result.errors)

    def test_empty(self):
        assert not validate_samples([]).valid

    def test_single_sample_warning(self):
        result = validate_samples([Sample(id="a", name="S1")])

        assert result.valid
        assert len(result.warnings) == 1


class TestGeneRecordValidation:
    """Tests for gene record validation."""

    def test_valid_records(self, records, samples):
        result = validate_gene_records(records, [s.name for s in samples])

        assert result.valid
        assert len(result.warnings) == 0
        assert result.summary['n_genes'] == 50

    def test_missing_counts_are_warnings(self):
        records = [GeneExpressionRecord(gene_id="g", gene_name="G", counts={"S1": 1})]

        result = validate_gene_records(records, ["S1", "S2"])

        assert result.valid
        assert any('read as 0' in w.message for w in result.warnings)

    def test_extra_samples(self):
        records = [GeneExpressionRecord(gene_id="g", gene_name="G", counts={"S1": 1, "S9": 2})]

        result = validate_gene_records(records, ["S1"])

        assert result.valid
        assert any(w.severity == 'info' and 'S9' in w.message for w in result.warnings)

    def test_duplicate_gene_ids(self):
        records = [GeneExpressionRecord(gene_id="g", gene_name="G")] * 2

        result = validate_gene_records(records)

        assert not result.valid
        assert any('duplicate' in err.lower() for err in result.errors)

    def test_empty(self):
        assert not validate_gene_records([]).valid


class TestAnalysisInputValidation:
    """Tests for complete analysis input validation."""

    def test_valid_complete_inputs(self, samples, records):
        result = validate_analysis_inputs(samples, records)

        assert result.valid
        assert 'samples' in result.summary
        assert 'genes' in result.summary

    def test_combined_errors(self, records):
        samples = [Sample(id="a", name="S1"), Sample(id="b", name="S1")]
        records = records + records[:1]

        result = validate_analysis_inputs(samples, records)

        assert not result.valid
        assert len(result.errors) >= 2


class TestTraitSummary:
    """Tests for trait summaries."""

    def test_categorical_traits(self, samples):
        traits = {t.name: t for t in summarize_traits(samples)}

        assert traits['condition'].type == 'categorical'
        assert traits['condition'].values == ['control', 'treatment']
        assert traits['batch'].type == 'categorical'
        assert traits['batch'].values == ['1', '2']

    def test_numerical_trait(self):
        samples = [Sample(id=str(i), name=str(i), traits={'age': 20 + i}) for i in range(8)]

        traits = summarize_traits(samples)

        assert traits[0].type == 'numerical'
        assert traits[0].unique_count == 8

    def test_uninformative_traits_skipped(self):
        samples = [Sample(id=str(i), name=str(i), traits={'species': 'human', 'id': str(i)}) for i in range(25)]

        assert summarize_traits(samples) == []
