"""Median-of-ratios (DESeq2-style) size factor normalization."""

import logging
from typing import Optional, Sequence

import numpy as np


logger = logging.getLogger(__name__)

# Size factors never drop below this so that division stays finite.
MIN_SIZE_FACTOR = 1e-8


def median(values: Sequence[float]) -> float:
    """
    Median of a sequence; even-length input averages the two middle values.

    Raises:
        ValueError: If ``values`` is empty
    """
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        raise ValueError("median() of an empty sequence")
    return float(np.median(arr))


def geometric_means(counts: np.ndarray) -> np.ndarray:
    """
    Per-gene geometric mean over strictly positive counts.

    Genes with no positive count get a geometric mean of 0.

    Args:
        counts: Count matrix (genes x samples)

    Returns:
        Array with one geometric mean per gene
    """
    counts = np.asarray(counts, dtype=float)
    positive = counts > 0
    n_positive = positive.sum(axis=1)

    log_counts = np.log(np.where(positive, counts, 1.0))
    log_sums = np.where(positive, log_counts, 0.0).sum(axis=1)

    means = np.zeros(counts.shape[0], dtype=float)
    has_positive = n_positive > 0
    means[has_positive] = np.exp(log_sums[has_positive] / n_positive[has_positive])
    return means


def estimate_size_factors(
    counts: np.ndarray,
    geo_means: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Estimate one size factor per sample by the median-of-ratios method.

    For each sample the ratio ``count / geometric mean`` is taken over genes
    where both are positive, and the median of those ratios is the size
    factor. A sample without any usable ratio keeps a size factor of 1.0.

    Args:
        counts: Count matrix (genes x samples)
        geo_means: Precomputed per-gene geometric means

    Returns:
        Array of strictly positive, finite size factors
    """
    counts = np.asarray(counts, dtype=float)
    if geo_means is None:
        geo_means = geometric_means(counts)

    n_samples = counts.shape[1]
    factors = np.ones(n_samples, dtype=float)
    usable_gene = geo_means > 0

    for j in range(n_samples):
        valid = usable_gene & (counts[:, j] > 0)
        if not valid.any():
            logger.warning(f"Sample {j} has no gene usable for size factor estimation; using 1.0")
            continue
        factors[j] = median(counts[valid, j] / geo_means[valid])

    return np.maximum(factors, MIN_SIZE_FACTOR)


def normalize_counts(counts: np.ndarray, size_factors: np.ndarray) -> np.ndarray:
    """Divide each sample's counts by its size factor."""
    counts = np.asarray(counts, dtype=float)
    size_factors = np.asarray(size_factors, dtype=float)
    if size_factors.shape != (counts.shape[1],):
        raise ValueError(
            f"Expected {counts.shape[1]} size factors, got {size_factors.shape[0]}"
        )
    return counts / size_factors[np.newaxis, :]
