"""
Utility functions for the enhancer network pipeline.
"""

from .config import PipelineConfig, load_config, get_config, SUPPORTED_GENOMES
from .io import read_tss_table, read_chrom_sizes, read_matrix_dir, read_cell_table, write_table
from .genomics import Peak, IntervalIndex, parse_peaks
from .logging import setup_logger, get_logger
from .parallel import parallel_map

__all__ = [
    "PipelineConfig",
    "load_config",
    "get_config",
    "SUPPORTED_GENOMES",
    "read_tss_table",
    "read_chrom_sizes",
    "read_matrix_dir",
    "read_cell_table",
    "write_table",
    "Peak",
    "IntervalIndex",
    "parse_peaks",
    "setup_logger",
    "get_logger",
    "parallel_map",
]
