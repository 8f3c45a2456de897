"""Variance-stabilizing transform of normalized counts."""

import numpy as np


def variance_stabilize(
    normalized: np.ndarray,
    threshold: float = 0.5,
    pseudocount: float = 0.5
) -> np.ndarray:
    """
    Simplified VST: ``log2(x + pseudocount)``, with values below ``threshold`` set to 0.

    Args:
        normalized: Normalized count matrix (genes x samples)
        threshold: Counts below this map to 0
        pseudocount: Added before taking log2

    Returns:
        Array of the same shape with non-negative values
    """
    normalized = np.asarray(normalized, dtype=float)
    below = normalized < threshold
    logged = np.log2(np.where(below, 1.0, normalized + pseudocount))
    return np.where(below, 0.0, logged)
