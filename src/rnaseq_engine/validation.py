"""Contract checks and DataFrame adapters for engine inputs."""

from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from pydantic import BaseModel, Field

from .models import GeneExpressionRecord, Sample, TraitInfo, format_trait_value


class ValidationWarning(BaseModel):
    """Warning message from validation."""
    message: str
    severity: str = Field(default="warning")  # warning, info


class ValidationResult(BaseModel):
    """Result of data validation."""
    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    summary: Dict[str, Any] = Field(default_factory=dict)


# Standard sample attributes that are not traits
QC_ATTRIBUTES = {"library_size", "mapping_rate", "rna_integrity", "sequencing_depth"}


def validate_samples(samples: Sequence[Sample]) -> ValidationResult:
    """
    Validate the sample table.

    Args:
        samples: Samples in analysis order

    Returns:
        ValidationResult; duplicate names are errors
    """
    errors = []
    warnings = []

    if not samples:
        errors.append("Sample table is empty")
        return ValidationResult(valid=False, errors=errors)

    names = [sample.name for sample in samples]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        errors.append(f"Duplicate sample names found: {', '.join(duplicates)}")

    if len(samples) < 2:
        warnings.append(ValidationWarning(
            message="Only one sample provided. PCA and differential expression need at least two.",
            severity="warning"
        ))

    summary = {
        "n_samples": len(samples),
        "traits": sorted({trait for sample in samples for trait in sample.traits}),
    }

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        summary=summary
    )


def validate_gene_records(
    records: Sequence[GeneExpressionRecord],
    sample_names: Optional[Sequence[str]] = None
) -> ValidationResult:
    """
    Validate gene expression records against the sample table.

    Sample names missing from a record's count map are reported as a
    warning only: the engine reads them as zero counts.

    Args:
        records: Gene expression records
        sample_names: Names from the sample table (for matching check)

    Returns:
        ValidationResult
    """
    errors = []
    warnings = []

    if not records:
        errors.append("Expression matrix is empty")
        return ValidationResult(valid=False, errors=errors)

    gene_ids = [record.gene_id for record in records]
    n_duplicates = len(gene_ids) - len(set(gene_ids))
    if n_duplicates:
        errors.append(f"Expression matrix contains {n_duplicates} duplicate gene IDs")

    if sample_names is not None:
        expected = set(sample_names)
        seen = set()
        n_incomplete = 0
        for record in records:
            keys = set(record.counts)
            seen |= keys
            if expected - keys:
                n_incomplete += 1

        if n_incomplete:
            warnings.append(ValidationWarning(
                message=f"{n_incomplete} genes lack counts for some samples; missing counts are read as 0",
                severity="warning"
            ))

        extra = seen - expected
        if extra:
            warnings.append(ValidationWarning(
                message=f"Expression matrix contains extra samples not in sample info: {', '.join(sorted(extra))}",
                severity="info"
            ))

    summary = {
        "n_genes": len(records),
        "total_counts": float(sum(sum(record.counts.values()) for record in records)),
    }

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
        summary=summary
    )


def validate_analysis_inputs(
    samples: Sequence[Sample],
    records: Sequence[GeneExpressionRecord]
) -> ValidationResult:
    """
    Validate complete analysis inputs.

    Returns:
        ValidationResult with combined validation from both inputs
    """
    sample_result = validate_samples(samples)
    record_result = validate_gene_records(records, [sample.name for sample in samples])

    return ValidationResult(
        valid=sample_result.valid and record_result.valid,
        errors=sample_result.errors + record_result.errors,
        warnings=sample_result.warnings + record_result.warnings,
        summary={
            "samples": sample_result.summary,
            "genes": record_result.summary
        }
    )


def summarize_traits(
    samples: Sequence[Sample],
    min_unique: int = 2,
    max_unique: int = 19,
    min_numerical_unique: int = 6
) -> List[TraitInfo]:
    """
    Describe the traits usable for grouping or coloring.

    A trait whose values are all numeric and take at least
    ``min_numerical_unique`` distinct values is numerical, otherwise
    categorical. Traits with fewer than ``min_unique`` or more than
    ``max_unique`` distinct values are left out.
    """
    names = []
    for sample in samples:
        for name in sample.traits:
            if name not in names:
                names.append(name)

    traits = []
    for name in names:
        values = []
        for sample in samples:
            key = format_trait_value(sample.trait(name))
            if key is not None and key not in values:
                values.append(key)

        if not (min_unique <= len(values) <= max_unique):
            continue

        numerical = all(_is_number(v) for v in values) and len(values) >= min_numerical_unique
        traits.append(TraitInfo(
            name=name,
            type="numerical" if numerical else "categorical",
            values=values,
            unique_count=len(values),
        ))
    return traits


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


def samples_from_frame(metadata: pd.DataFrame) -> List[Sample]:
    """
    Build samples from a metadata DataFrame indexed by sample name.

    Columns named like the fixed QC attributes fill those attributes; every
    other column becomes a trait. Empty cells are left out of the traits.
    """
    samples = []
    for name, row in metadata.iterrows():
        traits = {}
        qc = {}
        for column, value in row.items():
            if pd.isna(value):
                continue
            column = str(column).strip()
            if column in QC_ATTRIBUTES:
                qc[column] = float(value)
            else:
                traits[column] = value.item() if hasattr(value, "item") else value
        samples.append(Sample(id=str(name), name=str(name), traits=traits, **qc))
    return samples


def records_from_frame(
    counts: pd.DataFrame,
    gene_name_col: Optional[str] = None
) -> List[GeneExpressionRecord]:
    """
    Build gene records from a count DataFrame (genes x samples).

    Args:
        counts: Count matrix indexed by gene id
        gene_name_col: Column holding gene names; the index is used when None

    Returns:
        One record per row, in row order. Missing cells are left out of the
        count map, so they read as zero.
    """
    sample_cols = [c for c in counts.columns if c != gene_name_col]

    records = []
    for gene_id, row in counts.iterrows():
        gene_name = row[gene_name_col] if gene_name_col else gene_id
        sample_counts = {
            str(col): float(row[col]) for col in sample_cols if not pd.isna(row[col])
        }
        records.append(GeneExpressionRecord(
            gene_id=str(gene_id),
            gene_name=str(gene_name),
            counts=sample_counts,
        ))
    return records
