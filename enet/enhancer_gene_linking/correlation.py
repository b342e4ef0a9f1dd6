"""
Peak-Gene Correlation

Tests, for every gene, the correlation between its expression across cells
and the accessibility of every peak inside a window around its TSS.

One record is emitted per overlapping (peak, gene) pair:

    Peak, Gene, estimate, pvalue, FDR, class

``class`` is "corr" for positive estimates, "anticorr" otherwise, and
"undetermined" when either vector is constant across cells (no statistic).
FDR is Benjamini-Hochberg adjusted across all tested pairs.
"""

from typing import Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.multitest import multipletests

from ..annotation import GenomeAnnotation
from ..exceptions import InputContractViolation, InvalidConfiguration
from ..matrices import LabeledMatrix, align_cells
from ..preprocessing import log_normalize, scale_by_depth
from ..utils.genomics import IntervalIndex, parse_peaks
from ..utils.logging import get_logger
from ..utils.parallel import parallel_map


logger = get_logger("correlation")


RECORD_COLUMNS = ["Peak", "Gene", "estimate", "pvalue", "FDR", "class"]

CorrelationTest = Callable[[np.ndarray, np.ndarray], Tuple[float, float]]


def pearson_test(x: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
    """Pearson correlation and two-sided p-value."""
    r, p = stats.pearsonr(x, y)
    return float(r), float(p)


def spearman_test(x: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
    """Spearman rank correlation and two-sided p-value."""
    rho, p = stats.spearmanr(x, y)
    return float(rho), float(p)


CORRELATION_TESTS: Dict[str, CorrelationTest] = {
    "pearson": pearson_test,
    "spearman": spearman_test,
}


def classify_estimate(estimate: float) -> str:
    if np.isnan(estimate):
        return "undetermined"
    return "corr" if estimate > 0 else "anticorr"


def gene_peak_overlaps(
    peaks: Iterable[str],
    annotation: GenomeAnnotation,
    window_pad_size: int = 100000,
    genes: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """
    Find every peak inside each gene's TSS window.

    Parameters
    ----------
    peaks : iterable of str
        Peak identifiers.
    annotation : GenomeAnnotation
        TSS annotation.
    window_pad_size : int
        Base pairs padded on either side of each TSS.
    genes : iterable of str, optional
        Restrict to these genes.

    Returns
    -------
    pd.DataFrame
        Columns Peak, Gene; sorted by Gene then Peak.
    """
    windows = annotation.gene_windows(window_pad_size)
    if genes is not None:
        windows = windows[windows["Gene"].isin(set(genes))]

    index = IntervalIndex(windows, id_column="Gene")
    pairs = index.overlaps(parse_peaks(peaks), query_id="Peak")

    return pairs.sort_values(["Gene", "Peak"], kind="mergesort").reset_index(drop=True)


def correlate_gene(
    gene: str,
    peaks: List[str],
    atac: LabeledMatrix,
    rna: LabeledMatrix,
    test: CorrelationTest = pearson_test,
) -> pd.DataFrame:
    """
    Correlate one gene against its candidate peaks.

    Both matrices must share the same cell order.

    Returns
    -------
    pd.DataFrame
        Peak, Gene, estimate, pvalue (FDR is filled in across genes later).
    """
    expression = rna.row(gene)
    accessibility = atac.rows(peaks)

    gene_constant = np.ptp(expression) == 0
    estimates = np.full(len(peaks), np.nan)
    pvalues = np.full(len(peaks), np.nan)

    for i, x in enumerate(accessibility):
        if gene_constant or np.ptp(x) == 0:
            continue
        estimate, pvalue = test(x, expression)
        estimates[i] = np.clip(estimate, -1.0, 1.0)
        pvalues[i] = pvalue

    return pd.DataFrame({
        "Peak": peaks,
        "Gene": gene,
        "estimate": estimates,
        "pvalue": pvalues,
    })


def adjust_fdr(pvalues: pd.Series) -> pd.Series:
    """
    Benjamini-Hochberg adjustment over the defined p-values.

    Undefined (NaN) p-values stay NaN and are not counted as tests.
    """
    fdr = pd.Series(np.nan, index=pvalues.index, dtype=float)
    defined = pvalues.notna()
    if defined.any():
        fdr[defined] = multipletests(pvalues[defined].to_numpy(), method="fdr_bh")[1]
    return fdr


def correlate_peaks_to_genes(
    atac: LabeledMatrix,
    rna: LabeledMatrix,
    annotation: GenomeAnnotation,
    window_pad_size: int = 100000,
    method: str = "pearson",
    normalize_atac: bool = True,
    normalize_rna: bool = True,
    n_workers: int = 1,
    show_progress: bool = False,
) -> pd.DataFrame:
    """
    Correlate every gene with the peaks around its TSS.

    Parameters
    ----------
    atac : LabeledMatrix
        Peak x cell accessibility counts.
    rna : LabeledMatrix
        Gene x cell expression (or gene activity).
    annotation : GenomeAnnotation
        TSS annotation of the selected genome build.
    window_pad_size : int
        Base pairs padded on either side of each TSS.
    method : str
        "pearson" or "spearman".
    normalize_atac : bool
        Scale ATAC counts by cell depth first.
    normalize_rna : bool
        Log-normalize RNA counts first.
    n_workers : int
        Worker pool size.
    show_progress : bool
        Show a progress bar.

    Returns
    -------
    pd.DataFrame
        One row per (peak, gene) pair with RECORD_COLUMNS, sorted by Gene
        then Peak.

    Raises
    ------
    InputContractViolation
        Cell axes differ, or no annotated gene has a peak in its window.
    """
    if method not in CORRELATION_TESTS:
        raise InvalidConfiguration(
            f"Unknown correlation method {method!r}; choose from {sorted(CORRELATION_TESTS)}"
        )
    test = CORRELATION_TESTS[method]

    rna = align_cells(atac, rna)

    testable = sorted(set(rna.features) & set(annotation.tss["Gene"]))
    n_unannotated = len(set(rna.features)) - len(testable)
    if n_unannotated:
        logger.info(f"{n_unannotated} genes in the expression matrix have no TSS annotation")
    if not testable:
        raise InputContractViolation(
            f"No gene in the expression matrix is annotated in {annotation.genome}"
        )

    overlaps = gene_peak_overlaps(atac.features, annotation, window_pad_size, genes=testable)
    if overlaps.empty:
        raise InputContractViolation(
            f"No peak lies within {window_pad_size} bp of any annotated gene TSS"
        )

    if normalize_atac:
        atac = scale_by_depth(atac)
    if normalize_rna:
        rna = log_normalize(rna)

    peaks_by_gene = {
        gene: group["Peak"].tolist() for gene, group in overlaps.groupby("Gene", sort=True)
    }
    logger.info(
        f"Testing {len(overlaps)} peak-gene pairs across {len(peaks_by_gene)} genes "
        f"({method}, window ±{window_pad_size} bp)"
    )

    per_gene = parallel_map(
        lambda gene: correlate_gene(gene, peaks_by_gene[gene], atac, rna, test),
        peaks_by_gene,
        n_workers=n_workers,
        desc="Peak-gene correlation",
        show_progress=show_progress,
    )

    records = pd.concat(per_gene.values(), ignore_index=True)
    records = records.sort_values(["Gene", "Peak"], kind="mergesort").reset_index(drop=True)
    records["FDR"] = adjust_fdr(records["pvalue"])
    records["class"] = records["estimate"].map(classify_estimate)

    logger.info(
        f"Computed {records['estimate'].notna().sum()} correlations "
        f"({(records['class'] == 'undetermined').sum()} undetermined)"
    )
    return records[RECORD_COLUMNS]
