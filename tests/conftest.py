"""
Shared fixtures: a small hg38 annotation and a synthetic multiome dataset.

The synthetic cells fall into three groups along the first embedding axis.
GENE_A and its distal enhancers are active in group 0, GENE_B and its
enhancers in group 1, GENE_C and its single enhancer in group 2.
"""

import logging

import numpy as np
import pandas as pd
import pytest

from enet.annotation import GenomeAnnotation
from enet.matrices import LabeledMatrix


ENHANCERS = {
    "GENE_A": [
        "chr1-950000-950500",
        "chr1-970000-970500",
        "chr1-1030000-1030500",
        "chr1-1050000-1050500",
    ],
    "GENE_B": [
        "chr1-1450000-1450500",
        "chr1-1470000-1470500",
        "chr1-1530000-1530500",
    ],
    "GENE_C": [
        "chr2-520000-520500",
    ],
}

# Summit inside the GENE_A promoter
PROMOTER_PEAK = "chr1-1000000-1000500"

GROUP_OF_GENE = {"GENE_A": 0, "GENE_B": 1, "GENE_C": 2}


@pytest.fixture(autouse=True)
def reset_enet_logger():
    """Drop handlers added by CLI runs so they do not outlive the test."""
    yield
    logging.getLogger("enet").handlers = []


@pytest.fixture
def tss_table():
    """Three annotated genes on two chromosomes."""
    return pd.DataFrame({
        "Gene": ["GENE_A", "GENE_B", "GENE_C"],
        "Chromosome": ["chr1", "chr1", "chr2"],
        "TSS": [1000000, 1500000, 500000],
    })


@pytest.fixture
def annotation(tss_table):
    return GenomeAnnotation("hg38", tss_table)


@pytest.fixture
def multiome():
    """
    Synthetic ATAC counts, RNA counts and a 2-D embedding for 300 cells.

    Returns
    -------
    dict
        atac, rna (LabeledMatrix) and embedding (pd.DataFrame).
    """
    rng = np.random.default_rng(7)
    n_cells = 300
    cells = [f"cell_{i:03d}" for i in range(n_cells)]
    group = np.repeat([0, 1, 2], n_cells // 3)

    embedding = pd.DataFrame({
        "UMAP_1": group * 10.0 + rng.normal(0, 1, n_cells),
        "UMAP_2": rng.normal(0, 1, n_cells),
    }, index=cells)

    peaks, atac_rows = [], []
    for gene, gene_peaks in ENHANCERS.items():
        active = group == GROUP_OF_GENE[gene]
        for peak in gene_peaks:
            p_open = np.where(active, 0.8, 0.05)
            atac_rows.append(rng.binomial(2, p_open))
            peaks.append(peak)

    peaks.append(PROMOTER_PEAK)
    atac_rows.append(rng.binomial(2, np.where(group == 0, 0.8, 0.05)))

    rna_rows = []
    for gene in ENHANCERS:
        active = group == GROUP_OF_GENE[gene]
        rna_rows.append(rng.poisson(np.where(active, 20.0, 1.0)))
    # Unannotated housekeeping gene
    rna_rows.append(rng.poisson(50.0, n_cells))

    atac = LabeledMatrix(np.vstack(atac_rows), tuple(peaks), tuple(cells))
    rna = LabeledMatrix(
        np.vstack(rna_rows), tuple(list(ENHANCERS) + ["GENE_H"]), tuple(cells)
    )
    return {"atac": atac, "rna": rna, "embedding": embedding}
