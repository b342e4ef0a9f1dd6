"""
Tests for labelled matrices and normalisation

Tests cover:
- LabeledMatrix construction checks
- Cell alignment between ATAC and RNA, and of cell metadata
- Depth scaling and log normalisation
"""

import numpy as np
import pandas as pd
import pytest

from enet.exceptions import InputContractViolation
from enet.matrices import LabeledMatrix, align_cell_metadata, align_cells
from enet.preprocessing import log_normalize, scale_by_depth


@pytest.fixture
def counts():
    return LabeledMatrix(
        np.array([[1, 0, 3], [0, 0, 1]]),
        ("p1", "p2"),
        ("c1", "c2", "c3"),
    )


class TestLabeledMatrix:
    """Tests for LabeledMatrix."""

    def test_shape_mismatch(self):
        with pytest.raises(InputContractViolation):
            LabeledMatrix(np.zeros((2, 3)), ("p1",), ("c1", "c2", "c3"))

    def test_duplicate_names(self):
        with pytest.raises(InputContractViolation):
            LabeledMatrix(np.zeros((2, 1)), ("p1", "p1"), ("c1",))
        with pytest.raises(InputContractViolation):
            LabeledMatrix(np.zeros((1, 2)), ("p1",), ("c1", "c1"))

    def test_rows(self, counts):
        np.testing.assert_array_equal(counts.row("p1"), [1, 0, 3])
        np.testing.assert_array_equal(counts.rows(["p2", "p1"]), [[0, 0, 1], [1, 0, 3]])

    def test_subset_features(self, counts):
        subset = counts.subset_features(["p2"])

        assert subset.features == ("p2",)
        assert subset.shape == (1, 3)
        with pytest.raises(InputContractViolation):
            counts.subset_features(["p3"])

    def test_subset_no_features(self, counts):
        assert counts.subset_features([]).shape == (0, 3)

    def test_binarize(self, counts):
        binary = counts.binarize()

        np.testing.assert_array_equal(binary.values.toarray(), [[1, 0, 1], [0, 0, 1]])
        np.testing.assert_array_equal(binary.row_sums(), [2, 1])

    def test_dataframe_round_trip(self, counts):
        df = counts.to_dataframe()

        assert list(df.index) == ["p1", "p2"]
        assert list(df.columns) == ["c1", "c2", "c3"]
        rebuilt = LabeledMatrix.from_dataframe(df)
        np.testing.assert_array_equal(rebuilt.values.toarray(), counts.values.toarray())


class TestAlignCells:
    """Tests for cell alignment."""

    def test_reorders(self, counts):
        """The second matrix is reordered to the reference cell order."""
        rna = LabeledMatrix(np.array([[30, 10, 20]]), ("g1",), ("c3", "c1", "c2"))

        aligned = align_cells(counts, rna)

        assert aligned.cells == counts.cells
        np.testing.assert_array_equal(aligned.row("g1"), [10, 20, 30])

    def test_mismatch(self, counts):
        rna = LabeledMatrix(np.array([[1, 2, 3]]), ("g1",), ("c1", "c2", "c4"))

        with pytest.raises(InputContractViolation, match="c4"):
            align_cells(counts, rna)


class TestAlignCellMetadata:
    """Tests for cell metadata alignment."""

    def test_reorders_and_drops_extra(self, counts):
        metadata = pd.DataFrame(
            {"celltype": ["T", "B", "NK", "T"]},
            index=["c3", "c1", "c9", "c2"],
        )

        aligned = align_cell_metadata(metadata, counts.cells)

        assert list(aligned.index) == ["c1", "c2", "c3"]
        assert aligned["celltype"].tolist() == ["B", "T", "T"]

    def test_missing_cells(self, counts):
        metadata = pd.DataFrame({"celltype": ["B", "T"]}, index=["c1", "c2"])

        with pytest.raises(InputContractViolation, match="c3"):
            align_cell_metadata(metadata, counts.cells)

    def test_duplicated_cells(self, counts):
        metadata = pd.DataFrame({"celltype": ["B", "T", "T", "NK"]}, index=["c1", "c2", "c3", "c3"])

        with pytest.raises(InputContractViolation, match="duplicated"):
            align_cell_metadata(metadata, counts.cells)


class TestNormalisation:
    """Tests for matrix normalisation."""

    def test_scale_by_depth(self, counts):
        """Every non-empty cell sums to one; empty cells stay empty."""
        scaled = scale_by_depth(counts)
        totals = np.asarray(scaled.values.sum(axis=0)).ravel()

        np.testing.assert_allclose(totals, [1.0, 0.0, 1.0])

    def test_log_normalize(self, counts):
        normalized = log_normalize(counts, scale_factor=100)

        expected = np.log1p(np.array([[100, 0, 75], [0, 0, 25]]))
        np.testing.assert_allclose(normalized.values.toarray(), expected)
        assert normalized.features == counts.features
