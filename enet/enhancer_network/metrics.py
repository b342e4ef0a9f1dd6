"""
Network Complexity and Regulatory Mode

Network size is the number of enhancer nodes. Network connectivity is the
number of co-accessibility edges per node (|E| / |V|): 0 for an edgeless
network and strictly increasing with every added edge at a fixed size.

Modes, with defaults SizeCutoff = 5 and ConnectivityCutoff = 1:

    size >  SizeCutoff and connectivity >= ConnectivityCutoff  ->  Complex
    size >  SizeCutoff and connectivity <  ConnectivityCutoff  ->  Multiple
    size <= SizeCutoff                                         ->  Simple
"""

from typing import Dict

import networkx as nx
import numpy as np
import pandas as pd

from ..utils.config import check_mode_cutoffs
from ..utils.logging import get_logger
from ..utils.parallel import parallel_map
from .graph import build_networks


logger = get_logger("network_mode")


MODES = ["Complex", "Multiple", "Simple"]

METRIC_COLUMNS = ["Gene", "NetworkSize", "NetworkConnectivity"]


def network_size(graph: nx.Graph) -> int:
    return graph.number_of_nodes()


def network_connectivity(graph: nx.Graph) -> float:
    """Edges per node."""
    n_nodes = graph.number_of_nodes()
    if n_nodes == 0:
        return 0.0
    return graph.number_of_edges() / n_nodes


def network_complexity(
    networks: Dict[str, nx.Graph],
    n_workers: int = 1,
    show_progress: bool = False,
) -> pd.DataFrame:
    """
    Size and connectivity of every enhancer network.

    Parameters
    ----------
    networks : dict
        ``{gene: nx.Graph}`` from ``build_networks``. None values are skipped.
    n_workers : int
        Worker pool size.
    show_progress : bool
        Show a progress bar.

    Returns
    -------
    pd.DataFrame
        Gene, NetworkSize, NetworkConnectivity sorted by Gene.
    """
    genes = [gene for gene, graph in networks.items() if graph is not None]

    metrics = parallel_map(
        lambda gene: (network_size(networks[gene]), network_connectivity(networks[gene])),
        genes,
        n_workers=n_workers,
        desc="Network complexity",
        show_progress=show_progress,
    )

    df = pd.DataFrame(
        [(gene, size, conn) for gene, (size, conn) in metrics.items()],
        columns=METRIC_COLUMNS,
    )
    df["NetworkSize"] = df["NetworkSize"].astype(int)
    df["NetworkConnectivity"] = df["NetworkConnectivity"].astype(float)
    return df


def network_complexity_from_tables(
    conns: pd.DataFrame,
    assignments: pd.DataFrame,
    cutoff: float = 0.2,
    n_workers: int = 1,
    show_progress: bool = False,
) -> pd.DataFrame:
    """
    Build networks at ``cutoff`` and measure their complexity in one step.
    """
    networks = build_networks(conns, assignments, cutoff=cutoff, n_workers=n_workers,
                              show_progress=show_progress)
    return network_complexity(networks, n_workers=n_workers, show_progress=show_progress)


def classify_mode(
    size: float,
    connectivity: float,
    size_cutoff: float = 5,
    connectivity_cutoff: float = 1,
) -> str:
    """Regulatory mode of a single network."""
    check_mode_cutoffs(size_cutoff, connectivity_cutoff, 0)
    if np.log2(size) > np.log2(size_cutoff):
        return "Complex" if connectivity >= connectivity_cutoff else "Multiple"
    return "Simple"


def classify_modes(
    metrics: pd.DataFrame,
    size_cutoff: float = 5,
    connectivity_cutoff: float = 1,
    n_labels: int = 20,
) -> pd.DataFrame:
    """
    Classify enhancer networks into Complex, Multiple and Simple modes.

    Parameters
    ----------
    metrics : pd.DataFrame
        Gene, NetworkSize, NetworkConnectivity (``network_complexity``).
    size_cutoff : float
        Network size threshold separating Simple from Complex/Multiple.
    connectivity_cutoff : float
        Connectivity threshold separating Complex from Multiple.
    n_labels : int
        Number of top-connectivity genes given a display label.

    Returns
    -------
    pd.DataFrame
        Gene, NetworkSize, NetworkConnectivity, Mode, label; sorted by
        descending connectivity (ties by Gene). ``label`` is the gene name
        for the first ``n_labels`` rows and missing elsewhere.

    Raises
    ------
    InvalidConfiguration
        size_cutoff below 1, negative connectivity_cutoff or n_labels.
    """
    check_mode_cutoffs(size_cutoff, connectivity_cutoff, n_labels)

    df = metrics[METRIC_COLUMNS].copy()

    mode = [
        classify_mode(size, conn, size_cutoff, connectivity_cutoff)
        for size, conn in zip(df["NetworkSize"].astype(float), df["NetworkConnectivity"])
    ]
    df["Mode"] = pd.Categorical(mode, categories=MODES, ordered=True)

    df = df.sort_values(
        ["NetworkConnectivity", "Gene"], ascending=[False, True], kind="mergesort"
    ).reset_index(drop=True)

    df["NetworkSize"] = df["NetworkSize"].astype(int)
    df["label"] = df["Gene"].astype(object).where(df.index < n_labels, None)

    counts = df["Mode"].value_counts()
    logger.info(
        "Network modes: " + ", ".join(f"{m}={int(counts.get(m, 0))}" for m in MODES)
    )
    return df


def mode_summary(modes: pd.DataFrame) -> pd.DataFrame:
    """Number and fraction of genes per mode."""
    counts = modes["Mode"].value_counts().reindex(MODES, fill_value=0)
    total = int(counts.sum())
    return pd.DataFrame({
        "Mode": MODES,
        "n_genes": counts.to_numpy(dtype=int),
        "fraction": counts.to_numpy(dtype=float) / total if total else np.zeros(len(MODES)),
    })
