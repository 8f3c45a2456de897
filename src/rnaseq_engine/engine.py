"""RNA-seq analyzer tying normalization, PCA and differential expression together."""

import logging
from functools import cached_property
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .config import Config, get_config
from .differential import (
    DifferentialExpressionEngine,
    ProgressCallback,
    annotate_records,
    results_to_frame,
)
from .matrix import CountMatrix, build_count_matrix
from .models import (
    Contrast,
    DifferentialExpressionResult,
    GeneExpressionRecord,
    PCAResult,
    PlotPoint,
    QCMetrics,
    Sample,
)
from .normalization import estimate_size_factors, geometric_means, normalize_counts
from .pca import run_pca
from .plot_data import ma_points, pca_points, volcano_points
from .qc import calculate_qc_metrics
from .transform import variance_stabilize


logger = logging.getLogger(__name__)

_CACHED = ("size_factors", "normalized_counts", "vst_counts")


class RNASeqAnalyzer:
    """
    Analysis of one fixed dataset.

    Gene and sample order is fixed at construction. Normalized and VST
    matrices are computed on first access and kept until
    :meth:`clear_caches`; differential expression is recomputed on every
    call. An analyzer must not be used by concurrent callers. To analyze
    different data, create a new analyzer.
    """

    def __init__(
        self,
        samples: Sequence[Sample],
        records: Sequence[GeneExpressionRecord],
        config: Optional[Config] = None
    ):
        self.samples = tuple(samples)
        self.records = tuple(records)
        self.config = config or get_config()

        logger.info(
            f"RNASeqAnalyzer created with {len(self.samples)} samples and {len(self.records)} genes"
        )
        self.count_matrix: CountMatrix = build_count_matrix(self.samples, self.records)

    def clear_caches(self):
        """Drop the cached size factors, normalized and VST matrices."""
        for name in _CACHED:
            self.__dict__.pop(name, None)

    @cached_property
    def size_factors(self) -> np.ndarray:
        counts = self.count_matrix.values
        factors = estimate_size_factors(counts, geometric_means(counts))
        factors.setflags(write=False)
        return factors

    @cached_property
    def normalized_counts(self) -> np.ndarray:
        """DESeq2-style normalized counts (genes x samples)."""
        normalized = normalize_counts(self.count_matrix.values, self.size_factors)
        normalized.setflags(write=False)
        return normalized

    @cached_property
    def vst_counts(self) -> np.ndarray:
        """Variance-stabilized normalized counts (genes x samples)."""
        defaults = self.config.defaults
        vst = variance_stabilize(
            self.normalized_counts,
            threshold=defaults.vst_threshold,
            pseudocount=defaults.vst_pseudocount,
        )
        vst.setflags(write=False)
        return vst

    @property
    def base_means(self) -> np.ndarray:
        """Mean normalized count of each gene over all samples."""
        if not self.samples:
            return np.zeros(len(self.records))
        return self.normalized_counts.mean(axis=1)

    def qc_metrics(self) -> QCMetrics:
        return calculate_qc_metrics(self.samples, self.records)

    def pca(self) -> PCAResult:
        """PCA of the VST matrix on the top-variance genes."""
        defaults = self.config.defaults
        return run_pca(
            self.vst_counts,
            gene_names=self.count_matrix.gene_names,
            sample_names=self.count_matrix.sample_names,
            max_genes=defaults.max_pca_genes,
            max_variance_components=defaults.max_variance_components,
        )

    def pca_points(self, trait: Optional[str] = None) -> List[PlotPoint]:
        return pca_points(self.samples, self.pca(), trait=trait, plots=self.config.plots)

    def _de_engine(self) -> DifferentialExpressionEngine:
        defaults = self.config.defaults
        performance = self.config.performance
        return DifferentialExpressionEngine(
            self.normalized_counts,
            self.samples,
            self.records,
            batch_size=performance.batch_size,
            mean_floor=defaults.mean_floor,
            min_p_value=defaults.min_p_value,
            p_value_inflation=defaults.p_value_inflation,
            p_value_adjustment=defaults.p_value_adjustment,
            progress_log_interval=performance.progress_log_interval,
        )

    def differential_expression(
        self,
        contrast: Contrast,
        progress: Optional[ProgressCallback] = None
    ) -> List[DifferentialExpressionResult]:
        """
        Compare ``contrast.group2`` against ``contrast.group1``.

        Args:
            contrast: Trait and the two trait values defining the groups
            progress: Called as ``progress(done, total)`` after each batch

        Returns:
            One result per gene, in gene order

        Raises:
            ContrastError: If either group has no sample
        """
        logger.info(f"Starting differential expression analysis: {contrast.name} ({contrast.trait})")
        return self._de_engine().run_contrast(contrast, progress=progress)

    def annotated_records(
        self,
        contrast: Contrast,
        progress: Optional[ProgressCallback] = None
    ) -> List[GeneExpressionRecord]:
        """Copies of the gene records with their DE fields populated."""
        return annotate_records(self.records, self.differential_expression(contrast, progress))

    def results_frame(self, contrast: Contrast) -> pd.DataFrame:
        defaults = self.config.defaults
        return results_to_frame(
            self.differential_expression(contrast),
            fdr_threshold=defaults.fdr_threshold,
            lfc_threshold=defaults.log2fc_threshold,
        )

    def volcano_points(self, contrast: Contrast) -> List[PlotPoint]:
        defaults = self.config.defaults
        return volcano_points(
            self.annotated_records(contrast),
            lfc_threshold=defaults.log2fc_threshold,
            fdr_threshold=defaults.fdr_threshold,
            p_floor=defaults.volcano_p_floor,
            plots=self.config.plots,
        )

    def ma_points(self, contrast: Contrast) -> List[PlotPoint]:
        defaults = self.config.defaults
        return ma_points(
            self.annotated_records(contrast),
            self.base_means,
            lfc_threshold=defaults.log2fc_threshold,
            fdr_threshold=defaults.fdr_threshold,
            plots=self.config.plots,
        )


if __name__ == "__main__":
    # Example usage
    from .config import configure_logging
    from .example_data import generate_example_dataset

    configure_logging()
    samples, records = generate_example_dataset(n_genes=500)
    analyzer = RNASeqAnalyzer(samples, records)

    pca = analyzer.pca()
    print(f"Variance explained: {[round(v, 3) for v in pca.variance_explained]}")

    contrast = Contrast(trait="condition", group1="control", group2="treatment")
    frame = analyzer.results_frame(contrast)
    print(frame.sort_values("pvalue").head(10)[["gene", "log2FoldChange", "padj", "direction"]])
