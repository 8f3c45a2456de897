"""Map engine outputs to plot points for PCA, volcano and MA plots."""

import math
import zlib
from typing import List, Optional, Sequence

import numpy as np

from .config import PlotConfig
from .models import (
    GeneExpressionRecord,
    PCAResult,
    PlotPoint,
    Sample,
    TraitValue,
    format_trait_value,
)


UP = "up"
DOWN = "down"
NOT_SIGNIFICANT = "not_sig"


def trait_color(value: Optional[TraitValue], palette: Sequence[str], missing_color: str) -> str:
    """
    Deterministic palette color for a trait value.

    Numbers pick ``palette[floor(value) % len(palette)]``; other values are
    hashed with CRC32. Missing values get ``missing_color``.
    """
    if value is None:
        return missing_color
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value):
            return missing_color
        return palette[int(math.floor(value)) % len(palette)]
    text = str(value)
    if text == "":
        return missing_color
    return palette[zlib.crc32(text.encode("utf-8")) % len(palette)]


def classify_significance(
    log2_fold_change: float,
    adjusted_p_value: float,
    lfc_threshold: float = 1.0,
    fdr_threshold: float = 0.05
) -> str:
    """Return ``up``, ``down`` or ``not_sig``."""
    if abs(log2_fold_change) >= lfc_threshold and adjusted_p_value < fdr_threshold:
        return UP if log2_fold_change > 0 else DOWN
    return NOT_SIGNIFICANT


def significance_color(category: str, plots: PlotConfig) -> str:
    color_map = {
        UP: plots.up_color,
        DOWN: plots.down_color,
        NOT_SIGNIFICANT: plots.neutral_color,
    }
    return color_map[category]


def pca_points(
    samples: Sequence[Sample],
    pca: PCAResult,
    trait: Optional[str] = None,
    plots: Optional[PlotConfig] = None
) -> List[PlotPoint]:
    """
    One point per sample at (PC1, PC2), colored by ``trait``.

    Args:
        samples: Samples in the order used for the PCA
        pca: Result of the PCA
        trait: Trait used for coloring; None colors every point neutral
        plots: Plot settings (palette, colors, sizes)

    Returns:
        List of PlotPoint referencing their Sample
    """
    plots = plots or PlotConfig()
    if len(samples) != len(pca.coordinates):
        raise ValueError(f"Got {len(pca.coordinates)} PCA rows for {len(samples)} samples")

    points = []
    for sample, coords in zip(samples, pca.coordinates):
        value = sample.trait(trait) if trait else None
        points.append(PlotPoint(
            x=coords[0],
            y=coords[1] if len(coords) > 1 else 0.0,
            label=sample.name,
            color=trait_color(value, plots.palette, plots.neutral_color),
            size=plots.sample_point_size,
            category=format_trait_value(value),
            sample=sample,
        ))
    return points


def _de_fields(record: GeneExpressionRecord):
    lfc = record.log2_fold_change if record.log2_fold_change is not None else 0.0
    p_value = record.p_value if record.p_value is not None else 1.0
    padj = record.adjusted_p_value if record.adjusted_p_value is not None else 1.0
    return lfc, p_value, padj


def volcano_points(
    records: Sequence[GeneExpressionRecord],
    lfc_threshold: float = 1.0,
    fdr_threshold: float = 0.05,
    p_floor: float = 1e-10,
    plots: Optional[PlotConfig] = None
) -> List[PlotPoint]:
    """
    Volcano plot points: log2 fold change against ``-log10(p)``.

    Records without DE fields are placed at (0, 0) and colored neutral.
    """
    plots = plots or PlotConfig()
    points = []
    for record in records:
        lfc, p_value, padj = _de_fields(record)
        category = classify_significance(lfc, padj, lfc_threshold, fdr_threshold)
        points.append(PlotPoint(
            x=lfc,
            y=-math.log10(max(p_value, p_floor)),
            label=record.gene_name,
            color=significance_color(category, plots),
            size=plots.gene_point_size,
            category=category,
            gene=record,
        ))
    return points


def ma_points(
    records: Sequence[GeneExpressionRecord],
    base_means: Sequence[float],
    lfc_threshold: float = 1.0,
    fdr_threshold: float = 0.05,
    plots: Optional[PlotConfig] = None
) -> List[PlotPoint]:
    """
    MA plot points: ``log2(mean normalized count + 1)`` against log2 fold change.

    Args:
        records: Records carrying DE fields
        base_means: Mean normalized count of each record's gene over all samples
        lfc_threshold: |log2 fold change| cutoff for significance
        fdr_threshold: Adjusted p-value cutoff for significance
        plots: Plot settings

    Returns:
        List of PlotPoint referencing their GeneExpressionRecord
    """
    plots = plots or PlotConfig()
    if len(records) != len(base_means):
        raise ValueError(f"Got {len(base_means)} base means for {len(records)} records")

    x_values = np.log2(np.asarray(base_means, dtype=float) + 1.0)
    points = []
    for record, x in zip(records, x_values):
        lfc, _, padj = _de_fields(record)
        category = classify_significance(lfc, padj, lfc_threshold, fdr_threshold)
        points.append(PlotPoint(
            x=float(x),
            y=lfc,
            label=record.gene_name,
            color=significance_color(category, plots),
            size=plots.gene_point_size,
            category=category,
            gene=record,
        ))
    return points
