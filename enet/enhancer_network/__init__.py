"""
Enhancer Network Module

Per-gene enhancer networks and their regulatory complexity:
- graph: networks of co-accessible enhancers assigned to the same gene
- metrics: network size, connectivity and Complex/Multiple/Simple modes
"""

from .graph import build_gene_network, build_networks, filter_edges, network_edges
from .metrics import (
    MODES,
    classify_mode,
    classify_modes,
    mode_summary,
    network_complexity,
    network_complexity_from_tables,
    network_connectivity,
)

__all__ = [
    "build_gene_network",
    "build_networks",
    "filter_edges",
    "network_edges",
    "MODES",
    "classify_mode",
    "classify_modes",
    "mode_summary",
    "network_complexity",
    "network_complexity_from_tables",
    "network_connectivity",
]
