"""
Input/Output utilities for annotation tables, matrices and result tables.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import scipy.io
import scipy.sparse as sp

from ..matrices import LabeledMatrix


# Accepted spellings for TSS table columns
TSS_COLUMN_ALIASES = {
    "Gene": ["Gene", "gene", "gene_name", "symbol", "name"],
    "Chromosome": ["Chromosome", "chrom", "chr", "seqnames"],
    "TSS": ["TSS", "tss", "start", "position"],
    "Strand": ["Strand", "strand"],
}


def read_tss_table(
    filepath: str | Path,
    sep: str = "\t",
) -> pd.DataFrame:
    """
    Read a reference TSS annotation table.

    Parameters
    ----------
    filepath : str or Path
        Tab-separated file with a header. Gene, chromosome and TSS columns
        are recognised under the aliases in TSS_COLUMN_ALIASES.
    sep : str
        Column separator.

    Returns
    -------
    pd.DataFrame
        Columns Gene, Chromosome, TSS (and Strand if present).
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    df = pd.read_csv(filepath, sep=sep, compression="infer", comment="#")

    rename: Dict[str, str] = {}
    for target, aliases in TSS_COLUMN_ALIASES.items():
        found = next((a for a in aliases if a in df.columns), None)
        if found is not None:
            rename[found] = target

    df = df.rename(columns=rename)
    missing = [c for c in ("Gene", "Chromosome", "TSS") if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns in {filepath}: {missing}")

    columns = ["Gene", "Chromosome", "TSS"] + (["Strand"] if "Strand" in df.columns else [])
    df = df[columns].copy()
    df["Gene"] = df["Gene"].astype(str)
    df["Chromosome"] = df["Chromosome"].astype(str)
    df["TSS"] = df["TSS"].astype("int64")
    return df


def read_chrom_sizes(filepath: str | Path) -> pd.Series:
    """
    Read a two-column chromosome size table (UCSC ``.chrom.sizes``).

    Returns
    -------
    pd.Series
        Chromosome length indexed by chromosome name.
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    df = pd.read_csv(
        filepath,
        sep="\t",
        header=None,
        names=["Chromosome", "Length"],
        usecols=[0, 1],
        dtype={"Chromosome": str, "Length": "int64"},
        comment="#",
    )
    return df.set_index("Chromosome")["Length"]


def read_matrix_dir(
    directory: str | Path,
) -> LabeledMatrix:
    """
    Read a 10x-style matrix directory.

    The directory holds ``matrix.mtx`` (features x cells, optionally
    gzipped), ``features.tsv`` (or ``peaks.tsv`` / ``genes.tsv``) whose first
    column is the feature name, and ``barcodes.tsv``.

    Parameters
    ----------
    directory : str or Path
        Matrix directory.

    Returns
    -------
    LabeledMatrix
        Feature x cell matrix.
    """
    directory = Path(directory)

    matrix_path = _first_existing(directory, ["matrix.mtx", "matrix.mtx.gz"])
    features_path = _first_existing(directory, [
        "features.tsv", "features.tsv.gz", "peaks.tsv", "peaks.tsv.gz",
        "genes.tsv", "genes.tsv.gz",
    ])
    barcodes_path = _first_existing(directory, ["barcodes.tsv", "barcodes.tsv.gz"])

    values = sp.csr_matrix(scipy.io.mmread(str(matrix_path)))
    features = pd.read_csv(features_path, sep="\t", header=None, compression="infer")[0]
    barcodes = pd.read_csv(barcodes_path, sep="\t", header=None, compression="infer")[0]

    return LabeledMatrix(values, tuple(features.astype(str)), tuple(barcodes.astype(str)))


def read_cell_table(filepath: str | Path, sep: str = "\t") -> pd.DataFrame:
    """
    Read a per-cell table such as an embedding or cell metadata
    (first column = cell).
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    df = pd.read_csv(filepath, sep=sep, index_col=0, compression="infer")
    df.index = df.index.astype(str)
    return df


def write_table(
    df: pd.DataFrame,
    filepath: str | Path,
    sep: str = "\t",
    compress: bool = False,
    index: bool = False,
) -> Path:
    """
    Write a result table.

    Parameters
    ----------
    df : pd.DataFrame
        Table to write.
    filepath : str or Path
        Output file path.
    sep : str
        Column separator.
    compress : bool
        Whether to gzip compress the output.
    index : bool
        Whether to write row index.

    Returns
    -------
    Path
        Path actually written.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if compress and not str(filepath).endswith('.gz'):
        filepath = Path(str(filepath) + '.gz')

    compression = 'gzip' if compress else None

    df.to_csv(
        filepath,
        sep=sep,
        compression=compression,
        index=index,
    )
    return filepath


def _first_existing(directory: Path, names: List[str]) -> Path:
    for name in names:
        path = directory / name
        if path.exists():
            return path
    raise FileNotFoundError(f"None of {names} found in {directory}")


def read_table(filepath: str | Path, sep: str = "\t", index_col: Optional[int] = None) -> pd.DataFrame:
    """Read a table written by ``write_table``."""
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    return pd.read_csv(filepath, sep=sep, index_col=index_col, compression="infer")
