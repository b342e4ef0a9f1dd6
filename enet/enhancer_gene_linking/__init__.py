"""
Enhancer-Gene Linking Module

Links chromatin-accessibility peaks to target genes:
- correlation: peak-gene correlation across cells within a TSS window
- nodes: significant, distal, one-to-one enhancer clusters per gene
"""

from .correlation import (
    CORRELATION_TESTS,
    correlate_gene,
    correlate_peaks_to_genes,
    gene_peak_overlaps,
)
from .nodes import enhancer_clusters, keep_max_per_peak, select_nodes

__all__ = [
    "CORRELATION_TESTS",
    "correlate_gene",
    "correlate_peaks_to_genes",
    "gene_peak_overlaps",
    "enhancer_clusters",
    "keep_max_per_peak",
    "select_nodes",
]
