"""Principal component analysis of variance-stabilized counts."""

import logging
import time
from typing import Sequence

import numpy as np
from sklearn.decomposition import PCA

from .models import PCAResult


logger = logging.getLogger(__name__)


def population_variance(matrix: np.ndarray) -> np.ndarray:
    """Per-row variance dividing by the number of columns."""
    return np.var(np.asarray(matrix, dtype=float), axis=1, ddof=0)


def select_variable_genes(vst: np.ndarray, max_genes: int = 1000) -> np.ndarray:
    """
    Indices of the most variable genes, highest variance first.

    Zero-variance genes are dropped. Ties keep their input order.
    """
    variances = population_variance(vst)
    candidates = np.flatnonzero(variances > 0)
    order = np.argsort(-variances[candidates], kind="stable")
    return candidates[order][:max_genes]


def run_pca(
    vst: np.ndarray,
    gene_names: Sequence[str],
    sample_names: Sequence[str],
    max_genes: int = 1000,
    max_variance_components: int = 10
) -> PCAResult:
    """
    Run PCA on the top-variance genes of a VST matrix.

    Samples become rows, columns are centered but not scaled.

    Args:
        vst: Variance-stabilized counts (genes x samples)
        gene_names: Gene labels matching the rows of ``vst``
        sample_names: Sample labels matching the columns of ``vst``
        max_genes: Maximum number of top-variance genes to use
        max_variance_components: Length limit of the explained-variance sequence

    Returns:
        PCAResult with one coordinate row per sample in input order
    """
    start = time.perf_counter()
    vst = np.asarray(vst, dtype=float)
    n_samples = vst.shape[1]

    logger.info(f"Calculating variance for {vst.shape[0]} genes...")
    selected = select_variable_genes(vst, max_genes=max_genes)
    logger.info(f"Using top {selected.size} variable genes for PCA")

    if selected.size == 0 or n_samples < 2:
        logger.warning(
            f"PCA skipped: {selected.size} variable genes across {n_samples} samples"
        )
        return PCAResult(
            sample_names=list(sample_names),
            coordinates=[[0.0, 0.0] for _ in range(n_samples)],
            variance_explained=[],
            loadings=[],
            genes=[],
        )

    # samples x genes
    data = vst[selected].T

    pca = PCA(n_components=min(data.shape), svd_solver="full")
    scores = pca.fit_transform(data)
    ratios = np.sort(pca.explained_variance_ratio_)[::-1]

    if scores.shape[1] == 1:
        scores = np.hstack([scores, np.zeros((n_samples, 1))])

    logger.info(f"PCA analysis completed in {(time.perf_counter() - start) * 1000:.2f}ms")

    return PCAResult(
        sample_names=list(sample_names),
        coordinates=scores.tolist(),
        variance_explained=ratios[:max_variance_components].tolist(),
        loadings=pca.components_.T.tolist(),
        genes=[gene_names[i] for i in selected],
    )
