"""Quality control metrics for samples and the whole dataset."""

import logging
from typing import Sequence

from .models import GeneExpressionRecord, QCMetrics, Sample, SampleQCMetrics


logger = logging.getLogger(__name__)


def calculate_qc_metrics(
    samples: Sequence[Sample],
    records: Sequence[GeneExpressionRecord]
) -> QCMetrics:
    """
    Gene detection statistics per sample and across the dataset.

    A gene counts as expressed when any value in its count map is positive.
    Per-sample totals read missing samples as zero counts. Rates are 0.0
    when there are no genes.

    Args:
        samples: Samples to report on
        records: Gene expression records

    Returns:
        QCMetrics with one SampleQCMetrics entry per sample, in sample order
    """
    total_genes = len(records)
    expressed_genes = sum(
        1 for record in records if any(count > 0 for count in record.counts.values())
    )

    def rate(n: int) -> float:
        return n / total_genes if total_genes else 0.0

    sample_metrics = []
    for sample in samples:
        counts = [record.count(sample.name) for record in records]
        detected = sum(1 for count in counts if count > 0)
        sample_metrics.append(SampleQCMetrics(
            sample_name=sample.name,
            total_counts=float(sum(counts)),
            detected_genes=detected,
            detection_rate=rate(detected),
            library_size=sample.library_size,
            mapping_rate=sample.mapping_rate,
            rna_integrity=sample.rna_integrity,
        ))

    logger.info(f"QC: {expressed_genes}/{total_genes} genes expressed across {len(samples)} samples")

    return QCMetrics(
        total_genes=total_genes,
        expressed_genes=expressed_genes,
        expression_rate=rate(expressed_genes),
        sample_metrics=sample_metrics,
    )
