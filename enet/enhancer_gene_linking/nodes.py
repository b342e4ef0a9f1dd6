"""
Enhancer Cluster (Node) Selection

Turns the full peak-gene correlation table into enhancer clusters: the set
of distal peaks that putatively regulate each gene.

Steps, in order:
1. Keep significant positive links: class == "corr", estimate > floor,
   FDR < ceiling.
2. Drop every peak whose summit falls inside the promoter window of ANY
   annotated gene, not only the gene it was tested against.
3. Keep, for each peak, the link(s) with the maximum estimate. Ties are
   all kept.
"""

from typing import Dict, List

import pandas as pd

from ..annotation import GenomeAnnotation
from ..exceptions import InputContractViolation
from ..utils.genomics import summit_intervals
from ..utils.logging import get_logger


logger = get_logger("node_selection")


REQUIRED_COLUMNS = ["Peak", "Gene", "estimate", "FDR", "class"]


def filter_significant(
    records: pd.DataFrame,
    estimate_floor: float = 0.0,
    fdr_ceiling: float = 0.05,
) -> pd.DataFrame:
    """
    Keep significantly, positively correlated peak-gene pairs.

    Both thresholds are strict; rows with missing estimate or FDR never pass.
    """
    keep = (
        records["estimate"].notna()
        & records["FDR"].notna()
        & (records["class"] == "corr")
        & (records["estimate"] > estimate_floor)
        & (records["FDR"] < fdr_ceiling)
    )
    return records[keep].copy()


def exclude_promoter_peaks(
    records: pd.DataFrame,
    annotation: GenomeAnnotation,
    promoter_pad_size: int = 2000,
) -> pd.DataFrame:
    """
    Add a Summit column and drop records whose summit hits any promoter.

    Parameters
    ----------
    records : pd.DataFrame
        Peak-gene records with a Peak column.
    annotation : GenomeAnnotation
        Genome-wide TSS annotation.
    promoter_pad_size : int
        Base pairs padded on either side of every TSS.

    Returns
    -------
    pd.DataFrame
        Records whose peak summit overlaps no promoter.
    """
    records = records.copy()
    if records.empty:
        records["Summit"] = pd.Series(dtype=str)
        return records

    summits = summit_intervals(records["Peak"].unique())
    records["Summit"] = records["Peak"].map(dict(zip(summits["Peak"], summits["Summit"])))

    promoters = annotation.promoter_index(promoter_pad_size)
    promoter_peaks = promoters.overlapping_ids(summits, query_id="Peak")

    if promoter_peaks:
        logger.info(f"Removing {len(promoter_peaks)} promoter-proximal peaks")
        records = records[~records["Peak"].isin(promoter_peaks)]

    return records


def keep_max_per_peak(records: pd.DataFrame) -> pd.DataFrame:
    """
    Force a one-to-one peak-to-gene mapping.

    Each peak keeps the record(s) with its maximum estimate. A unique maximum
    leaves exactly one gene per peak; tied maxima keep every tied gene.
    """
    if records.empty:
        return records.copy()

    best = records.groupby("Peak")["estimate"].transform("max")
    return records[records["estimate"] == best].copy()


def select_nodes(
    records: pd.DataFrame,
    annotation: GenomeAnnotation,
    estimate_floor: float = 0.0,
    fdr_ceiling: float = 0.05,
    promoter_pad_size: int = 2000,
) -> pd.DataFrame:
    """
    Identify putative enhancer clusters regulating the same target gene.

    Parameters
    ----------
    records : pd.DataFrame
        Output of ``correlate_peaks_to_genes``.
    annotation : GenomeAnnotation
        TSS annotation of the selected genome build.
    estimate_floor : float
        Correlation must be strictly greater than this.
    fdr_ceiling : float
        FDR must be strictly smaller than this.
    promoter_pad_size : int
        Base pairs padded on either side of every TSS for promoters.

    Returns
    -------
    pd.DataFrame
        Enhancer assignments: the input columns plus Summit, sorted by Gene
        then Peak.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in records.columns]
    if missing:
        raise InputContractViolation(f"Correlation table is missing columns: {missing}")

    n_input = len(records)
    selected = filter_significant(records, estimate_floor, fdr_ceiling)
    n_significant = len(selected)

    selected = exclude_promoter_peaks(selected, annotation, promoter_pad_size)
    n_distal = len(selected)

    logger.info("Keeping max correlation for multi-mapping peaks")
    selected = keep_max_per_peak(selected)

    logger.info(
        f"Node selection: {n_input} pairs -> {n_significant} significant -> "
        f"{n_distal} distal -> {len(selected)} assignments "
        f"({selected['Peak'].nunique()} peaks, {selected['Gene'].nunique()} genes)"
    )

    return selected.sort_values(["Gene", "Peak"], kind="mergesort").reset_index(drop=True)


def enhancer_clusters(assignments: pd.DataFrame) -> Dict[str, List[str]]:
    """
    Enhancer cluster per gene.

    Returns
    -------
    dict
        ``{gene: [peak, ...]}`` with genes and peaks sorted.
    """
    return {
        gene: sorted(group["Peak"].unique())
        for gene, group in assignments.groupby("Gene", sort=True)
    }
