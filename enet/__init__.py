"""
eNet

Builds enhancer networks from single-cell multi-omics data and classifies
genes into Complex, Multiple and Simple regulatory modes:
peaks -> peak-gene correlation -> enhancer clusters -> co-accessibility
-> enhancer networks -> network complexity -> regulatory mode.
"""

__version__ = "1.0.0"

from pathlib import Path

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

# Submodule imports
from . import utils
from . import enhancer_gene_linking
from . import coaccessibility
from . import enhancer_network
from .annotation import AnnotationRegistry, GenomeAnnotation
from .exceptions import (
    EnetError,
    InputContractViolation,
    InvalidConfiguration,
    WorkerFailure,
)
from .matrices import LabeledMatrix
from .pipeline import EnhancerNetworkPipeline, PipelineResult, run_pipeline

__all__ = [
    "utils",
    "enhancer_gene_linking",
    "coaccessibility",
    "enhancer_network",
    "AnnotationRegistry",
    "GenomeAnnotation",
    "EnetError",
    "InputContractViolation",
    "InvalidConfiguration",
    "WorkerFailure",
    "LabeledMatrix",
    "EnhancerNetworkPipeline",
    "PipelineResult",
    "run_pipeline",
    "PROJECT_ROOT",
    "CONFIG_DIR",
]
