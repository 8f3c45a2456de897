"""Assemble gene-by-sample count matrices from per-gene count maps."""

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from .models import GeneExpressionRecord, Sample


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CountMatrix:
    """Read-only genes x samples count matrix with its row and column labels."""

    values: np.ndarray
    gene_ids: Tuple[str, ...]
    gene_names: Tuple[str, ...]
    sample_names: Tuple[str, ...]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.values.shape

    @property
    def n_genes(self) -> int:
        return self.values.shape[0]

    @property
    def n_samples(self) -> int:
        return self.values.shape[1]

    def to_frame(self) -> pd.DataFrame:
        """Count matrix as a DataFrame indexed by gene id."""
        frame = pd.DataFrame(
            self.values,
            index=pd.Index(self.gene_ids, name="gene_id"),
            columns=list(self.sample_names),
        )
        frame.insert(0, "gene_name", list(self.gene_names))
        return frame


def build_count_matrix(
    samples: Sequence[Sample],
    records: Sequence[GeneExpressionRecord]
) -> CountMatrix:
    """
    Build the count matrix used by every downstream stage.

    Rows follow the order of ``records`` and columns the order of
    ``samples``. A sample name missing from a record's count map is read
    as a zero count; this lenience is intentional and nothing is reported.

    Args:
        samples: Samples defining the column order
        records: Gene records defining the row order

    Returns:
        CountMatrix with a read-only float array
    """
    sample_names = tuple(sample.name for sample in samples)

    values = np.zeros((len(records), len(sample_names)), dtype=float)
    for row, record in enumerate(records):
        for col, name in enumerate(sample_names):
            values[row, col] = record.count(name)
    values.setflags(write=False)

    logger.info(f"Built count matrix with {values.shape[0]} genes and {values.shape[1]} samples")

    return CountMatrix(
        values=values,
        gene_ids=tuple(record.gene_id for record in records),
        gene_names=tuple(record.gene_name for record in records),
        sample_names=sample_names,
    )
