"""
Tests for the bounded parallel map

Tests cover:
- Deterministic, key-sorted output regardless of completion order
- Fail-fast error propagation as WorkerFailure
- Worker count validation
"""

import pickle
import time

import pytest

from enet.exceptions import InvalidConfiguration, WorkerFailure
from enet.utils.parallel import parallel_map


def slow_square(key):
    # Larger keys finish first
    time.sleep(0.01 * (10 - key))
    return key * key


class TestParallelMap:
    """Tests for parallel_map."""

    @pytest.mark.parametrize("n_workers", [1, 4, 8])
    def test_sorted_output(self, n_workers):
        """Results come back in sorted key order."""
        result = parallel_map(slow_square, [3, 1, 9, 5, 7], n_workers=n_workers)

        assert list(result) == [1, 3, 5, 7, 9]
        assert result[9] == 81

    def test_worker_count_invariance(self):
        keys = list(range(10))

        assert parallel_map(slow_square, keys, n_workers=1) == parallel_map(
            slow_square, keys, n_workers=8
        )

    def test_duplicate_keys(self):
        """Duplicate keys are computed once."""
        result = parallel_map(lambda k: k, ["b", "a", "b"], n_workers=2)

        assert list(result) == ["a", "b"]

    def test_empty(self):
        assert parallel_map(slow_square, [], n_workers=4) == {}

    @pytest.mark.parametrize("n_workers", [0, 65, 2.5])
    def test_invalid_workers(self, n_workers):
        with pytest.raises(InvalidConfiguration):
            parallel_map(slow_square, [1], n_workers=n_workers)


class TestFailFast:
    """Tests for error propagation."""

    @staticmethod
    def fail_on_gene_c(gene):
        if gene == "GENE_C":
            raise ValueError("bad gene")
        return gene.lower()

    @pytest.mark.parametrize("n_workers", [1, 4])
    def test_worker_failure(self, n_workers):
        """A failing item surfaces as WorkerFailure naming the item."""
        genes = ["GENE_A", "GENE_B", "GENE_C", "GENE_D"]

        with pytest.raises(WorkerFailure) as excinfo:
            parallel_map(self.fail_on_gene_c, genes, n_workers=n_workers)

        assert excinfo.value.key == "GENE_C"
        assert isinstance(excinfo.value.__cause__, ValueError)
        assert "bad gene" in str(excinfo.value)

    def test_sequential_stops_at_failure(self):
        """No item after the failing one is started."""
        seen = []

        def record(key):
            seen.append(key)
            if key == 2:
                raise RuntimeError("stop")
            return key

        with pytest.raises(WorkerFailure):
            parallel_map(record, range(6), n_workers=1)

        assert seen == [0, 1, 2]

    def test_pickle(self):
        error = WorkerFailure("GENE_A", ValueError("boom"))

        restored = pickle.loads(pickle.dumps(error))

        assert restored.key == "GENE_A"
        assert str(restored) == str(error)
