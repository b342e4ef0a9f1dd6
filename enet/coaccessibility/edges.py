"""
Co-accessibility Edges

Scores co-accessibility between every pair of nearby peaks that survived
node selection. These scores become the edges of the enhancer networks.

Recipe:
1. Restrict the peak x cell matrix to the union of assigned peaks and
   binarise it.
2. Drop peaks with no reads in any cell (their covariance is undefined).
3. Aggregate cells into metacells along the embedding.
4. Slide half-overlapping windows along each chromosome and score each
   window with the estimator; keep pairs within ``distance_constraint``.
5. A pair scored in several windows gets the mean score, or 0 when the
   windows disagree in sign.
"""

from typing import Iterable, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from ..exceptions import InputContractViolation
from ..matrices import LabeledMatrix
from ..utils.genomics import parse_peaks
from ..utils.logging import get_logger
from ..utils.parallel import parallel_map
from .estimator import CoaccessEstimator, GraphicalLassoEstimator
from .metacells import metacell_profiles


logger = get_logger("coaccessibility")


EDGE_COLUMNS = ["Peak1", "Peak2", "coaccess"]


def assigned_peaks(peaks: Union[pd.DataFrame, Iterable[str]]) -> List[str]:
    """Deduplicated, sorted peak union of an assignment table or peak list."""
    if isinstance(peaks, pd.DataFrame):
        peaks = peaks["Peak"]
    return sorted(set(map(str, peaks)))


def drop_zero_coverage(binary: LabeledMatrix) -> LabeledMatrix:
    """Remove peaks with no reads across all cells."""
    coverage = binary.row_sums()
    empty = [p for p, c in zip(binary.features, coverage) if c == 0]
    if empty:
        logger.warning(
            f"Dropping {len(empty)} zero-coverage peaks before co-accessibility "
            f"(e.g. {empty[:3]})"
        )
        keep = [p for p, c in zip(binary.features, coverage) if c > 0]
        binary = binary.subset_features(keep)
    return binary


def align_embedding(embedding: pd.DataFrame, cells: Tuple[str, ...]) -> pd.DataFrame:
    """
    Reorder embedding rows to the matrix cell order.

    Raises
    ------
    InputContractViolation
        Cells missing from the embedding, or not 2-3 dimensions.
    """
    if embedding.shape[1] not in (2, 3):
        raise InputContractViolation(
            f"Cell embedding must have 2 or 3 dimensions, got {embedding.shape[1]}"
        )

    index = embedding.index.astype(str)
    if index.has_duplicates:
        raise InputContractViolation("Cell embedding has duplicated cell names")
    missing = sorted(set(cells) - set(index))
    if missing:
        raise InputContractViolation(
            f"{len(missing)} cells of the peak matrix have no embedding "
            f"coordinates (e.g. {missing[:3]})"
        )

    embedding = embedding.copy()
    embedding.index = index
    return embedding.loc[list(cells)]


def genomic_windows(
    peaks: pd.DataFrame,
    window: int = 500000,
    chrom_sizes: Optional[pd.Series] = None,
) -> dict:
    """
    Group peaks into half-overlapping windows along each chromosome.

    Parameters
    ----------
    peaks : pd.DataFrame
        Output of ``parse_peaks``.
    window : int
        Window width; windows start every ``window // 2`` bases.
    chrom_sizes : pd.Series, optional
        Chromosome lengths. Defaults to the furthest peak end.

    Returns
    -------
    dict
        ``{(chrom, window_start): [row positions]}`` for windows holding at
        least two peaks.
    """
    step = max(1, window // 2)
    midpoints = ((peaks["Start"] + peaks["End"]) // 2).to_numpy()
    windows = {}

    for chrom, group in peaks.groupby("Chromosome", sort=True):
        positions = group.index.to_numpy()
        mids = midpoints[positions]
        length = int(group["End"].max())
        if chrom_sizes is not None and chrom in chrom_sizes.index:
            length = max(length, int(chrom_sizes[chrom]))

        for start in range(0, length + 1, step):
            inside = positions[(mids >= start) & (mids < start + window)]
            if len(inside) >= 2:
                windows[(str(chrom), start)] = sorted(inside.tolist())

    return windows


def score_window(
    rows: List[int],
    peaks: pd.DataFrame,
    profiles: np.ndarray,
    estimator: CoaccessEstimator,
    distance_constraint: int,
) -> pd.DataFrame:
    """Score one window; returns Peak1 < Peak2 pairs within distance."""
    scores = estimator(profiles[rows])
    names = peaks["Peak"].to_numpy(dtype=str)[rows]
    mids = ((peaks["Start"] + peaks["End"]) // 2).to_numpy()[rows]

    i, j = np.triu_indices(len(rows), k=1)
    close = np.abs(mids[i] - mids[j]) <= distance_constraint
    i, j = i[close], j[close]

    first = np.where(names[i] < names[j], names[i], names[j])
    second = np.where(names[i] < names[j], names[j], names[i])
    return pd.DataFrame({"Peak1": first, "Peak2": second, "coaccess": scores[i, j]})


def reconcile_windows(pairs: pd.DataFrame) -> pd.DataFrame:
    """
    Merge pairs scored in more than one window.

    Mean score, or 0 when the windows disagree in sign.
    """
    if pairs.empty:
        return pd.DataFrame(columns=EDGE_COLUMNS)

    grouped = pairs.groupby(["Peak1", "Peak2"], sort=True)["coaccess"]
    merged = grouped.agg(["mean", "min", "max"]).reset_index()
    conflict = (merged["min"] < 0) & (merged["max"] > 0)
    merged["coaccess"] = merged["mean"].where(~conflict, 0.0)
    return merged[EDGE_COLUMNS]


def symmetrize(edges: pd.DataFrame) -> pd.DataFrame:
    """Emit both orientations of every pair, sorted."""
    flipped = edges.rename(columns={"Peak1": "Peak2", "Peak2": "Peak1"})[EDGE_COLUMNS]
    both = pd.concat([edges[EDGE_COLUMNS], flipped], ignore_index=True)
    return both.sort_values(["Peak1", "Peak2"], kind="mergesort").reset_index(drop=True)


def score_coaccessibility(
    atac: LabeledMatrix,
    peaks: Union[pd.DataFrame, Iterable[str]],
    embedding: pd.DataFrame,
    k: int = 50,
    chrom_sizes: Optional[pd.Series] = None,
    window: int = 500000,
    distance_constraint: int = 250000,
    estimator: Optional[CoaccessEstimator] = None,
    max_overlap: float = 0.9,
    seed: int = 2017,
    n_workers: int = 1,
    show_progress: bool = False,
) -> pd.DataFrame:
    """
    Find co-accessible enhancer pairs, the edges of enhancer networks.

    Parameters
    ----------
    atac : LabeledMatrix
        Peak x cell accessibility counts.
    peaks : pd.DataFrame or iterable of str
        Enhancer assignments (Peak column) or peak identifiers.
    embedding : pd.DataFrame
        Cell x 2-3 reduced-dimension coordinates, indexed by cell.
    k : int
        Cells aggregated per metacell.
    chrom_sizes : pd.Series, optional
        Chromosome lengths.
    window : int
        Width of jointly scored genomic windows.
    distance_constraint : int
        Maximum distance between scored peak midpoints.
    estimator : CoaccessEstimator, optional
        Defaults to ``GraphicalLassoEstimator()``.
    max_overlap : float
        Maximum shared-cell fraction between metacells.
    seed : int
        Metacell sampling seed.
    n_workers : int
        Worker pool size (windows are scored in parallel).
    show_progress : bool
        Show a progress bar.

    Returns
    -------
    pd.DataFrame
        Peak1, Peak2, coaccess with both orientations of every pair.

    An empty table is returned when fewer than two covered peaks remain;
    such genes cannot form a network.

    Raises
    ------
    InputContractViolation
        Mismatched embedding.
    """
    estimator = estimator or GraphicalLassoEstimator()

    embedding = align_embedding(embedding, atac.cells)

    names = assigned_peaks(peaks)
    binary = drop_zero_coverage(atac.subset_features(names).binarize())
    if len(binary.features) < 2:
        logger.warning(
            f"Co-accessibility needs at least two covered peaks, got {len(binary.features)}; "
            f"no edges scored"
        )
        return pd.DataFrame({
            "Peak1": pd.Series(dtype=object),
            "Peak2": pd.Series(dtype=object),
            "coaccess": pd.Series(dtype=float),
        })

    profiles = metacell_profiles(binary.values, embedding, k=k, max_overlap=max_overlap, seed=seed)

    peak_table = parse_peaks(binary.features)
    windows = genomic_windows(peak_table, window=window, chrom_sizes=chrom_sizes)
    logger.info(
        f"Scoring co-accessibility of {len(peak_table)} peaks in {len(windows)} windows "
        f"({profiles.shape[1]} metacells)"
    )

    per_window = parallel_map(
        lambda key: score_window(windows[key], peak_table, profiles, estimator, distance_constraint),
        windows,
        n_workers=n_workers,
        desc="Co-accessibility",
        show_progress=show_progress,
    )

    frames = [df for df in per_window.values() if not df.empty]
    pairs = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=EDGE_COLUMNS)
    edges = symmetrize(reconcile_windows(pairs))
    edges["coaccess"] = edges["coaccess"].astype(float)

    logger.info(f"Scored {len(edges) // 2} co-accessible peak pairs")
    return edges
