"""
Matrix normalisation applied before peak-gene correlation.
"""

import numpy as np
import scipy.sparse as sp

from .matrices import LabeledMatrix


def _cell_depth(matrix: LabeledMatrix) -> np.ndarray:
    depth = np.asarray(matrix.values.sum(axis=0)).ravel()
    # Empty cells stay empty instead of dividing by zero
    depth[depth == 0] = 1.0
    return depth


def scale_by_depth(matrix: LabeledMatrix) -> LabeledMatrix:
    """
    Divide every cell by its total counts.

    This is the depth correction of chromVAR's ``centerCounts``; the
    per-peak centering step is skipped since correlation is shift invariant
    and skipping it keeps the matrix sparse.
    """
    scaled = matrix.values @ sp.diags(1.0 / _cell_depth(matrix))
    return LabeledMatrix(sp.csr_matrix(scaled), matrix.features, matrix.cells)


def log_normalize(matrix: LabeledMatrix, scale_factor: float = 10000.0) -> LabeledMatrix:
    """
    Seurat-style LogNormalize: ``log1p(count / cell_total * scale_factor)``.
    """
    scaled = sp.csr_matrix(matrix.values @ sp.diags(scale_factor / _cell_depth(matrix)))
    scaled.data = np.log1p(scaled.data)
    return LabeledMatrix(scaled, matrix.features, matrix.cells)
