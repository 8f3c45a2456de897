"""Typed records exchanged between the engine and its collaborators."""

import math
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


TraitValue = Union[bool, str, int, float]

# Counts must be finite and non-negative
Count = Annotated[float, Field(ge=0, allow_inf_nan=False)]

UNKNOWN_GROUP = "unknown"


def format_trait_value(value: Optional[TraitValue]) -> Optional[str]:
    """Render a trait value as a group key, or None when it is missing."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value)
    return text if text != "" else None


class Sample(BaseModel):
    """A sequenced sample with its traits and fixed QC attributes."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    traits: Dict[str, TraitValue] = Field(default_factory=dict)
    library_size: float = Field(default=45_000_000, ge=0)
    mapping_rate: float = Field(default=92.0, ge=0)
    rna_integrity: float = Field(default=8.0, ge=0)
    sequencing_depth: float = Field(default=50_000_000, ge=0)

    def trait(self, name: str) -> Optional[TraitValue]:
        return self.traits.get(name)


class GeneExpressionRecord(BaseModel):
    """Counts for one gene keyed by sample name, plus optional DE fields."""

    model_config = ConfigDict(frozen=True)

    gene_id: str
    gene_name: str
    counts: Dict[str, Count] = Field(default_factory=dict)
    log2_fold_change: Optional[float] = None
    p_value: Optional[float] = None
    adjusted_p_value: Optional[float] = None

    def count(self, sample_name: str) -> float:
        """Count for a sample; samples absent from the map count as zero."""
        return self.counts.get(sample_name, 0.0)


class Contrast(BaseModel):
    """Two-group comparison described by a trait and the two values to compare."""

    model_config = ConfigDict(frozen=True)

    trait: str
    group1: str
    group2: str

    @property
    def name(self) -> str:
        return f"{self.group2} vs {self.group1}"

    def group_key(self, sample: Sample) -> str:
        key = format_trait_value(sample.trait(self.trait))
        return key if key is not None else UNKNOWN_GROUP


class DifferentialExpressionResult(BaseModel):
    """Per-gene outcome of a two-group comparison."""

    gene_id: str
    gene_name: str
    base_mean: float
    mean1: float
    mean2: float
    log2_fold_change: float
    p_value: float = Field(ge=0.0, le=1.0)
    adjusted_p_value: float = Field(ge=0.0, le=1.0)


class PCAResult(BaseModel):
    """Sample scores, explained variance and loadings from a PCA run."""

    sample_names: List[str]
    coordinates: List[List[float]]
    variance_explained: List[float]
    loadings: List[List[float]]
    genes: List[str]

    @property
    def n_components(self) -> int:
        return len(self.coordinates[0]) if self.coordinates else 0


class PlotPoint(BaseModel):
    """A single point for a scatter plot consumer."""

    x: float
    y: float
    label: str
    color: str
    size: Optional[float] = None
    category: Optional[str] = None
    sample: Optional[Sample] = None
    gene: Optional[GeneExpressionRecord] = None


class SampleQCMetrics(BaseModel):
    """Detection statistics for one sample."""

    sample_name: str
    total_counts: float
    detected_genes: int
    detection_rate: float
    library_size: float
    mapping_rate: float
    rna_integrity: float


class QCMetrics(BaseModel):
    """Dataset-wide detection statistics."""

    total_genes: int
    expressed_genes: int
    expression_rate: float
    sample_metrics: List[SampleQCMetrics] = Field(default_factory=list)


class TraitInfo(BaseModel):
    """Summary of one sample trait."""

    name: str
    type: Literal["categorical", "numerical"]
    values: List[str]
    unique_count: int
