"""
Enhancer Network Construction

Builds one undirected graph per gene: nodes are the gene's assigned
enhancer peaks, edges are co-accessibility scores at or above a cutoff
between two of those peaks.
"""

from typing import Dict, List, Optional

import networkx as nx
import pandas as pd

from ..exceptions import InputContractViolation
from ..utils.logging import get_logger
from ..utils.parallel import parallel_map


logger = get_logger("enhancer_network")


def filter_edges(conns: pd.DataFrame, cutoff: float = 0.1) -> pd.DataFrame:
    """
    Keep co-accessibility edges with ``coaccess >= cutoff``.

    Peak columns are coerced to strings; self-pairs are dropped.
    """
    missing = [c for c in ("Peak1", "Peak2", "coaccess") if c not in conns.columns]
    if missing:
        raise InputContractViolation(f"Co-accessibility table is missing columns: {missing}")

    conns = conns[conns["coaccess"] >= cutoff].copy()
    conns["Peak1"] = conns["Peak1"].astype(str)
    conns["Peak2"] = conns["Peak2"].astype(str)
    return conns[conns["Peak1"] != conns["Peak2"]].reset_index(drop=True)


def build_gene_network(
    gene: str,
    peaks: List[str],
    conns: pd.DataFrame,
) -> Optional[nx.Graph]:
    """
    Enhancer network of one gene.

    Parameters
    ----------
    gene : str
        Gene name, stored as the graph's ``gene`` attribute.
    peaks : list of str
        Peaks assigned to the gene.
    conns : pd.DataFrame
        Already cutoff-filtered co-accessibility edges.

    Returns
    -------
    nx.Graph or None
        None when there are no nodes, or a single node with no edges.
    """
    nodes = sorted(set(peaks))
    if not nodes:
        return None

    node_set = set(nodes)
    inside = conns[conns["Peak1"].isin(node_set) & conns["Peak2"].isin(node_set)]

    if inside.empty and len(nodes) < 2:
        return None

    graph = nx.Graph(gene=gene)
    graph.add_nodes_from(nodes)
    for peak1, peak2, coaccess in inside[["Peak1", "Peak2", "coaccess"]].itertuples(index=False):
        # Both orientations are present; keep the stronger score
        if graph.has_edge(peak1, peak2):
            coaccess = max(coaccess, graph[peak1][peak2]["coaccess"])
        graph.add_edge(peak1, peak2, coaccess=float(coaccess))

    return graph


def build_networks(
    conns: pd.DataFrame,
    assignments: pd.DataFrame,
    cutoff: float = 0.1,
    n_workers: int = 1,
    show_progress: bool = False,
) -> Dict[str, nx.Graph]:
    """
    Build the enhancer network of every gene.

    Parameters
    ----------
    conns : pd.DataFrame
        Peak1, Peak2, coaccess table.
    assignments : pd.DataFrame
        Enhancer assignments with Peak and Gene columns.
    cutoff : float
        Co-accessibility cutoff; a value around the 90-95% quantile of the
        scores is a reasonable choice.
    n_workers : int
        Worker pool size.
    show_progress : bool
        Show a progress bar.

    Returns
    -------
    dict
        ``{gene: nx.Graph}`` in sorted gene order. Genes without a valid
        network are absent.
    """
    filtered = filter_edges(conns, cutoff)

    peaks_by_gene = {
        str(gene): group["Peak"].astype(str).tolist()
        for gene, group in assignments.groupby("Gene", sort=True)
    }

    networks = parallel_map(
        lambda gene: build_gene_network(gene, peaks_by_gene[gene], filtered),
        peaks_by_gene,
        n_workers=n_workers,
        desc="Enhancer networks",
        show_progress=show_progress,
    )

    dropped = [gene for gene, net in networks.items() if net is None]
    if dropped:
        logger.debug(f"No valid network for {len(dropped)} genes: {dropped[:10]}")

    networks = {gene: net for gene, net in networks.items() if net is not None}
    logger.info(
        f"Built {len(networks)} enhancer networks from {len(peaks_by_gene)} genes "
        f"({len(filtered)} edges with coaccess >= {cutoff})"
    )
    return networks


def network_edges(networks: Dict[str, nx.Graph]) -> pd.DataFrame:
    """Flatten networks into a Gene, Peak1, Peak2, coaccess table."""
    rows = []
    for gene, graph in networks.items():
        for peak1, peak2, data in graph.edges(data=True):
            peak1, peak2 = sorted((peak1, peak2))
            rows.append((gene, peak1, peak2, data.get("coaccess")))
    df = pd.DataFrame(rows, columns=["Gene", "Peak1", "Peak2", "coaccess"])
    return df.sort_values(["Gene", "Peak1", "Peak2"], kind="mergesort").reset_index(drop=True)
