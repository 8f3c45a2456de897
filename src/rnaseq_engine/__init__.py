"""RNA-seq Engine - normalization, PCA and differential expression for count data."""

__version__ = "0.1.0"

from .config import get_config, Config
from .models import Contrast, GeneExpressionRecord, Sample
from .differential import ContrastError
from .engine import RNASeqAnalyzer
from .qc import calculate_qc_metrics
from .validation import validate_analysis_inputs, samples_from_frame, records_from_frame
from .example_data import generate_example_dataset

__all__ = [
    'get_config',
    'Config',
    'Contrast',
    'GeneExpressionRecord',
    'Sample',
    'ContrastError',
    'RNASeqAnalyzer',
    'calculate_qc_metrics',
    'validate_analysis_inputs',
    'samples_from_frame',
    'records_from_frame',
    'generate_example_dataset'
]
