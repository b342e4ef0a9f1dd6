"""
Metacell Aggregation

Single cells are too sparse to estimate peak covariance directly. Cells are
therefore pooled into overlapping k-nearest-neighbour groups in a
low-dimensional embedding (UMAP / tSNE coordinates), and the summed counts of
each group form one pseudo-bulk "metacell" profile.

Groups are accepted greedily in a seeded random order; a candidate group is
rejected when it shares more than ``max_overlap`` of its cells with any group
already accepted.
"""

from collections import defaultdict
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import scipy.sparse as sp
from sklearn.neighbors import NearestNeighbors

from ..exceptions import InputContractViolation
from ..utils.logging import get_logger


logger = get_logger("metacells")


def sample_metacells(
    coords: np.ndarray,
    k: int = 50,
    max_overlap: float = 0.9,
    max_metacells: Optional[int] = None,
    seed: int = 2017,
) -> List[np.ndarray]:
    """
    Choose k-cell neighbourhoods with bounded pairwise overlap.

    Parameters
    ----------
    coords : np.ndarray
        (n_cells, n_dims) embedding coordinates.
    k : int
        Cells per metacell (the anchor cell included).
    max_overlap : float
        Maximum fraction of cells two metacells may share.
    max_metacells : int, optional
        Stop after this many metacells.
    seed : int
        Random seed for the visiting order.

    Returns
    -------
    list of np.ndarray
        Sorted cell indices of each metacell.
    """
    n_cells = coords.shape[0]
    if k > n_cells:
        raise InputContractViolation(
            f"Cannot aggregate {k} cells per metacell from only {n_cells} cells"
        )

    nn = NearestNeighbors(n_neighbors=k).fit(coords)
    _, neighbours = nn.kneighbors(coords)

    rng = np.random.default_rng(seed)
    max_shared = int(np.floor(max_overlap * k))

    accepted: List[np.ndarray] = []
    membership: Dict[int, List[int]] = defaultdict(list)

    for anchor in rng.permutation(n_cells):
        group = np.sort(neighbours[anchor])

        shared: Dict[int, int] = defaultdict(int)
        for cell in group:
            for metacell in membership[cell]:
                shared[metacell] += 1

        if any(n > max_shared for n in shared.values()):
            continue

        metacell_id = len(accepted)
        accepted.append(group)
        for cell in group:
            membership[cell].append(metacell_id)

        if max_metacells is not None and len(accepted) >= max_metacells:
            break

    logger.info(f"Built {len(accepted)} metacells of {k} cells from {n_cells} cells")
    return accepted


def aggregate_metacells(
    values: sp.spmatrix,
    groups: List[np.ndarray],
) -> np.ndarray:
    """
    Sum feature x cell values within each metacell.

    Returns
    -------
    np.ndarray
        (n_features, n_metacells) summed counts.
    """
    n_cells = values.shape[1]
    rows = np.concatenate(groups)
    cols = np.concatenate([np.full(len(g), i) for i, g in enumerate(groups)])
    indicator = sp.csr_matrix(
        (np.ones(len(rows)), (rows, cols)), shape=(n_cells, len(groups))
    )
    return np.asarray((values @ indicator).todense())


def normalize_metacells(counts: np.ndarray) -> np.ndarray:
    """
    Size-factor normalise metacell profiles and log-transform.

    Size factors are metacell totals divided by their geometric mean.
    """
    totals = counts.sum(axis=0).astype(float)
    positive = totals > 0
    size_factors = np.ones_like(totals)
    if positive.any():
        geo_mean = np.exp(np.mean(np.log(totals[positive])))
        size_factors[positive] = totals[positive] / geo_mean
    return np.log1p(counts / size_factors)


def metacell_profiles(
    binary: sp.spmatrix,
    embedding: pd.DataFrame,
    k: int = 50,
    max_overlap: float = 0.9,
    seed: int = 2017,
) -> np.ndarray:
    """
    Normalised metacell profiles of a binarised peak x cell matrix.

    ``embedding`` rows must be in the matrix's cell order.
    """
    groups = sample_metacells(embedding.to_numpy(dtype=float), k, max_overlap, seed=seed)
    return normalize_metacells(aggregate_metacells(binary, groups))
