"""Two-group differential expression on normalized counts."""

import logging
import time
from typing import Callable, Iterator, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .models import Contrast, DifferentialExpressionResult, GeneExpressionRecord, Sample


logger = logging.getLogger(__name__)

# Abramowitz & Stegun 7.1.26, absolute error below 1.5e-7
ERF_A1 = 0.254829592
ERF_A2 = -0.284496736
ERF_A3 = 1.421413741
ERF_A4 = -1.453152027
ERF_A5 = 1.061405429
ERF_P = 0.3275911

ProgressCallback = Callable[[int, int], None]
GroupingRule = Callable[[Sample], str]


class ContrastError(ValueError):
    """Raised when a requested comparison has an empty group."""

    def __init__(self, contrast: str, n_group1: int, n_group2: int):
        self.contrast = contrast
        self.n_group1 = n_group1
        self.n_group2 = n_group2
        super().__init__(
            f"Both groups must have at least one sample for '{contrast}' "
            f"(group1: {n_group1} samples, group2: {n_group2} samples)"
        )


def erf(x):
    """Rational approximation of the Gauss error function; accepts scalars or arrays."""
    x = np.asarray(x, dtype=float)
    sign = np.sign(x)
    ax = np.abs(x)

    t = 1.0 / (1.0 + ERF_P * ax)
    poly = ((((ERF_A5 * t + ERF_A4) * t + ERF_A3) * t + ERF_A2) * t + ERF_A1) * t
    y = sign * (1.0 - poly * np.exp(-ax * ax))

    return float(y) if y.ndim == 0 else y


def normal_cdf(x):
    """Standard normal CDF built on :func:`erf`."""
    return 0.5 * (1.0 + erf(np.asarray(x, dtype=float) / np.sqrt(2.0)))


def welch_p_value(
    group1: Sequence[float],
    group2: Sequence[float],
    min_p_value: float = 0.001
) -> float:
    """
    Normal-approximation p-value for a difference of two group means.

    Uses population variances and the unpooled standard error. A zero
    standard error yields 1.0.
    """
    g1 = np.asarray(group1, dtype=float)
    g2 = np.asarray(group2, dtype=float)

    se = np.sqrt(g1.var() / g1.size + g2.var() / g2.size)
    if se == 0:
        return 1.0

    t_stat = abs(g1.mean() - g2.mean()) / se
    return max(min_p_value, 2.0 * (1.0 - normal_cdf(t_stat)))


def inflate_p_values(p_values, factor: float = 1.1) -> np.ndarray:
    """
    Fixed linear inflation ``min(1, p * factor)``.

    This is not a multiple-testing correction: it ignores ranks and the
    rest of the p-value distribution. It is the default adjustment so that
    results stay comparable with earlier runs; see :func:`benjamini_hochberg`.
    """
    return np.minimum(1.0, np.asarray(p_values, dtype=float) * factor)


def benjamini_hochberg(p_values) -> np.ndarray:
    """Benjamini-Hochberg adjusted p-values."""
    p_values = np.asarray(p_values, dtype=float)
    if p_values.size == 0:
        return p_values
    return stats.false_discovery_control(p_values, method="bh")


class DifferentialExpressionEngine:
    """Batched two-group comparison over a normalized count matrix."""

    def __init__(
        self,
        normalized: np.ndarray,
        samples: Sequence[Sample],
        records: Sequence[GeneExpressionRecord],
        batch_size: int = 50,
        mean_floor: float = 0.1,
        min_p_value: float = 0.001,
        p_value_inflation: float = 1.1,
        p_value_adjustment: str = "inflate",
        progress_log_interval: int = 10
    ):
        """
        Args:
            normalized: Normalized counts (genes x samples), in record/sample order
            samples: Samples matching the matrix columns
            records: Gene records matching the matrix rows
            batch_size: Genes processed per batch
            mean_floor: Group means are floored at this value before log2
            min_p_value: Lower bound of reported p-values
            p_value_inflation: Factor used by the default ``inflate`` adjustment
            p_value_adjustment: ``inflate`` or ``benjamini_hochberg``
            progress_log_interval: Log progress every N batches
        """
        self.normalized = np.asarray(normalized, dtype=float)
        self.samples = list(samples)
        self.records = list(records)

        if self.normalized.shape != (len(self.records), len(self.samples)):
            raise ValueError(
                f"Normalized matrix shape {self.normalized.shape} does not match "
                f"{len(self.records)} genes x {len(self.samples)} samples"
            )
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if p_value_adjustment not in ("inflate", "benjamini_hochberg"):
            raise ValueError(f"Unknown p-value adjustment: {p_value_adjustment}")

        self.batch_size = batch_size
        self.mean_floor = mean_floor
        self.min_p_value = min_p_value
        self.p_value_inflation = p_value_inflation
        self.p_value_adjustment = p_value_adjustment
        self.progress_log_interval = progress_log_interval

    def partition(self, group_of: GroupingRule, group1: str, group2: str):
        """Column indices of the two groups, raising ContrastError if one is empty."""
        keys = [group_of(sample) for sample in self.samples]
        idx1 = np.array([i for i, key in enumerate(keys) if key == group1], dtype=int)
        idx2 = np.array([i for i, key in enumerate(keys) if key == group2], dtype=int)

        if idx1.size == 0 or idx2.size == 0:
            raise ContrastError(f"{group2} vs {group1}", idx1.size, idx2.size)

        return idx1, idx2

    def iter_batches(
        self,
        group_of: GroupingRule,
        group1: str,
        group2: str
    ) -> Iterator[List[DifferentialExpressionResult]]:
        """
        Yield results batch by batch, in gene order.

        The groups are validated before the first batch is produced. Each
        yield is a point where the caller may do other work or stop
        iterating. Adjusted p-values here always use the fixed inflation,
        since Benjamini-Hochberg needs every p-value; :meth:`run` applies it.
        """
        idx1, idx2 = self.partition(group_of, group1, group2)
        n1, n2 = idx1.size, idx2.size
        total = len(self.records)

        logger.info(f"Comparing {n1} vs {n2} samples across {total} genes")

        for batch_number, start in enumerate(range(0, total, self.batch_size)):
            stop = min(start + self.batch_size, total)
            yield self._compute_batch(start, stop, idx1, idx2)

            if batch_number % self.progress_log_interval == 0:
                logger.debug(f"DE analysis progress: {stop / total * 100:.1f}%")

    def _compute_batch(self, start, stop, idx1, idx2) -> List[DifferentialExpressionResult]:
        block = self.normalized[start:stop]
        g1 = block[:, idx1]
        g2 = block[:, idx2]

        mean1 = g1.mean(axis=1)
        mean2 = g2.mean(axis=1)
        base_mean = block.mean(axis=1)

        log2_fc = np.log2(np.maximum(mean2, self.mean_floor) / np.maximum(mean1, self.mean_floor))

        se = np.sqrt(g1.var(axis=1) / idx1.size + g2.var(axis=1) / idx2.size)
        with np.errstate(divide="ignore", invalid="ignore"):
            t_stat = np.abs(mean1 - mean2) / se
        tested = np.maximum(self.min_p_value, 2.0 * (1.0 - normal_cdf(np.where(se == 0, 0.0, t_stat))))
        p_values = np.where(se == 0, 1.0, tested)
        adjusted = inflate_p_values(p_values, self.p_value_inflation)

        results = []
        for offset, record in enumerate(self.records[start:stop]):
            results.append(DifferentialExpressionResult(
                gene_id=record.gene_id,
                gene_name=record.gene_name,
                base_mean=float(base_mean[offset]),
                mean1=float(mean1[offset]),
                mean2=float(mean2[offset]),
                log2_fold_change=float(log2_fc[offset]),
                p_value=float(p_values[offset]),
                adjusted_p_value=float(adjusted[offset]),
            ))
        return results

    def run(
        self,
        group_of: GroupingRule,
        group1: str,
        group2: str,
        progress: Optional[ProgressCallback] = None
    ) -> List[DifferentialExpressionResult]:
        """
        Compare ``group2`` against ``group1`` for every gene.

        Args:
            group_of: Maps a sample to its group key
            group1: Key of the reference group
            group2: Key of the group whose fold change is reported
            progress: Called as ``progress(done, total)`` after each batch

        Returns:
            One result per gene, in input gene order

        Raises:
            ContrastError: If either group matches no sample
        """
        start_time = time.perf_counter()
        total = len(self.records)
        results: List[DifferentialExpressionResult] = []

        for batch in self.iter_batches(group_of, group1, group2):
            results.extend(batch)
            if progress is not None:
                progress(len(results), total)

        if self.p_value_adjustment == "benjamini_hochberg" and results:
            adjusted = benjamini_hochberg([r.p_value for r in results])
            results = [
                r.model_copy(update={"adjusted_p_value": float(min(1.0, padj))})
                for r, padj in zip(results, adjusted)
            ]

        logger.info(
            f"Differential expression analysis completed in "
            f"{(time.perf_counter() - start_time) * 1000:.2f}ms"
        )
        return results

    def run_contrast(
        self,
        contrast: Contrast,
        progress: Optional[ProgressCallback] = None
    ) -> List[DifferentialExpressionResult]:
        """Run a comparison described by a :class:`Contrast`."""
        return self.run(contrast.group_key, contrast.group1, contrast.group2, progress=progress)


def annotate_records(
    records: Sequence[GeneExpressionRecord],
    results: Sequence[DifferentialExpressionResult]
) -> List[GeneExpressionRecord]:
    """Copies of ``records`` with their DE fields filled from ``results``."""
    if len(records) != len(results):
        raise ValueError(f"Got {len(results)} results for {len(records)} records")
    return [
        record.model_copy(update={
            "log2_fold_change": result.log2_fold_change,
            "p_value": result.p_value,
            "adjusted_p_value": result.adjusted_p_value,
        })
        for record, result in zip(records, results)
    ]


def results_to_frame(
    results: Sequence[DifferentialExpressionResult],
    fdr_threshold: float = 0.05,
    lfc_threshold: float = 1.0
) -> pd.DataFrame:
    """
    Results as a DataFrame with significance flags.

    Columns: gene_id, gene, baseMean, log2FoldChange, pvalue, padj,
    significant, direction. Rows keep the input gene order.
    """
    res_df = pd.DataFrame({
        'gene_id': [r.gene_id for r in results],
        'gene': [r.gene_name for r in results],
        'baseMean': [r.base_mean for r in results],
        'log2FoldChange': [r.log2_fold_change for r in results],
        'pvalue': [r.p_value for r in results],
        'padj': [r.adjusted_p_value for r in results],
    })

    res_df['significant'] = (
        (res_df['padj'] < fdr_threshold) &
        (res_df['log2FoldChange'].abs() >= lfc_threshold)
    )

    res_df['direction'] = 'not_sig'
    res_df.loc[res_df['significant'] & (res_df['log2FoldChange'] > 0), 'direction'] = 'up'
    res_df.loc[res_df['significant'] & (res_df['log2FoldChange'] < 0), 'direction'] = 'down'

    return res_df
