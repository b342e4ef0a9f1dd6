"""
Labelled sparse matrices.

ATAC (peak x cell) and RNA (gene x cell) inputs are held as CSR matrices
together with their row and column names. Cells are the shared sample axis.
"""

from dataclasses import dataclass
from functools import cached_property
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd
import scipy.sparse as sp

from .exceptions import InputContractViolation


@dataclass(frozen=True)
class LabeledMatrix:
    """
    A feature-by-cell matrix with named axes.

    Attributes
    ----------
    values : sp.csr_matrix
        Feature x cell values.
    features : tuple
        Row names (peaks or genes).
    cells : tuple
        Column names (cell barcodes).
    """

    values: sp.csr_matrix
    features: tuple
    cells: tuple

    def __post_init__(self):
        values = self.values
        if not sp.issparse(values):
            values = np.asarray(values)
        values = sp.csr_matrix(values, dtype=float)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "features", tuple(str(f) for f in self.features))
        object.__setattr__(self, "cells", tuple(str(c) for c in self.cells))

        if values.shape != (len(self.features), len(self.cells)):
            raise InputContractViolation(
                f"Matrix shape {values.shape} does not match "
                f"{len(self.features)} features x {len(self.cells)} cells"
            )
        if len(set(self.features)) != len(self.features):
            raise InputContractViolation("Feature names must be unique")
        if len(set(self.cells)) != len(self.cells):
            raise InputContractViolation("Cell names must be unique")

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "LabeledMatrix":
        """Build from a feature x cell DataFrame."""
        return cls(sp.csr_matrix(df.to_numpy(dtype=float)), tuple(df.index), tuple(df.columns))

    def to_dataframe(self) -> pd.DataFrame:
        """Dense feature x cell DataFrame."""
        return pd.DataFrame(self.values.toarray(), index=list(self.features), columns=list(self.cells))

    @property
    def shape(self):
        return self.values.shape

    @cached_property
    def feature_index(self) -> Dict[str, int]:
        return {f: i for i, f in enumerate(self.features)}

    def row(self, feature: str) -> np.ndarray:
        """Dense vector of one feature across cells."""
        return self.values[self.feature_index[feature]].toarray().ravel()

    def rows(self, features: Sequence[str]) -> np.ndarray:
        """Dense (n_features, n_cells) block."""
        index = self.feature_index
        return self.values[[index[f] for f in features]].toarray()

    def subset_features(self, features: Sequence[str]) -> "LabeledMatrix":
        """Restrict to ``features`` in the given order."""
        index = self.feature_index
        missing = [f for f in features if f not in index]
        if missing:
            raise InputContractViolation(f"{len(missing)} features not in matrix, e.g. {missing[:3]}")
        rows = np.array([index[f] for f in features], dtype=np.intp)
        return LabeledMatrix(self.values[rows], tuple(features), self.cells)

    def reorder_cells(self, cells: Sequence[str]) -> "LabeledMatrix":
        """Reorder (and possibly subset) columns to ``cells``."""
        position = {c: i for i, c in enumerate(self.cells)}
        return LabeledMatrix(
            self.values[:, [position[c] for c in cells]], self.features, tuple(cells)
        )

    def binarize(self) -> "LabeledMatrix":
        """Any non-zero value becomes 1."""
        values = self.values.copy()
        values.data = (values.data != 0).astype(values.dtype)
        values.eliminate_zeros()
        return LabeledMatrix(values, self.features, self.cells)

    def row_sums(self) -> np.ndarray:
        return np.asarray(self.values.sum(axis=1)).ravel()


def align_cells(reference: LabeledMatrix, other: LabeledMatrix, names=("ATAC", "RNA")) -> LabeledMatrix:
    """
    Reorder ``other`` to ``reference``'s cell order.

    Both matrices must hold exactly the same cells.

    Raises
    ------
    InputContractViolation
        If the cell sets differ.
    """
    ref_cells = set(reference.cells)
    other_cells = set(other.cells)
    if ref_cells != other_cells:
        only_ref: List[str] = sorted(ref_cells - other_cells)
        only_other: List[str] = sorted(other_cells - ref_cells)
        raise InputContractViolation(
            f"Cell axes differ between {names[0]} and {names[1]} matrices: "
            f"{len(only_ref)} cells only in {names[0]} (e.g. {only_ref[:3]}), "
            f"{len(only_other)} cells only in {names[1]} (e.g. {only_other[:3]})"
        )
    if reference.cells == other.cells:
        return other
    return other.reorder_cells(reference.cells)


def align_cell_metadata(metadata: pd.DataFrame, cells: Sequence[str]) -> pd.DataFrame:
    """
    Reorder a cell metadata table (indexed by cell) to ``cells``.

    Rows for cells outside ``cells`` are dropped.

    Raises
    ------
    InputContractViolation
        Duplicated cell names, or cells without a metadata row.
    """
    index = metadata.index.astype(str)
    if index.has_duplicates:
        raise InputContractViolation("Cell metadata has duplicated cell names")
    missing = sorted(set(cells) - set(index))
    if missing:
        raise InputContractViolation(
            f"{len(missing)} cells of the peak matrix have no metadata row (e.g. {missing[:3]})"
        )

    metadata = metadata.copy()
    metadata.index = index
    return metadata.loc[list(cells)]
