"""
Tests for the end-to-end pipeline and CLI

Tests cover:
- A full in-memory run on synthetic multiome data
- Early rejection of unsupported or mismatched genome builds
- A file-based run through run_pipeline and the CLI
"""

import pandas as pd
import pytest
import scipy.io
import yaml

from enet.cli import main
from enet.exceptions import InputContractViolation, InvalidConfiguration
from enet.annotation import GenomeAnnotation
from enet.pipeline import EnhancerNetworkPipeline, run_pipeline
from enet.utils.config import PipelineConfig

from conftest import ENHANCERS, PROMOTER_PEAK


OUTPUT_TABLES = [
    "peak_gene_correlations",
    "enhancer_assignments",
    "coaccessibility",
    "network_edges",
    "network_complexity",
    "network_modes",
]


def write_matrix(matrix, directory, feature_file):
    directory.mkdir(parents=True)
    scipy.io.mmwrite(str(directory / "matrix.mtx"), matrix.values)
    (directory / feature_file).write_text("\n".join(matrix.features) + "\n")
    (directory / "barcodes.tsv").write_text("\n".join(matrix.cells) + "\n")


@pytest.fixture
def config():
    return PipelineConfig(genome="hg38", k=20, n_workers=2)


@pytest.fixture
def input_files(tmp_path, multiome, tss_table):
    """The synthetic dataset written in the on-disk input formats."""
    write_matrix(multiome["atac"], tmp_path / "atac", "peaks.tsv")
    write_matrix(multiome["rna"], tmp_path / "rna", "features.tsv")
    multiome["embedding"].rename_axis("cell").to_csv(tmp_path / "umap.tsv", sep="\t")
    pd.DataFrame(
        {"sample": "s1"}, index=pd.Index(multiome["atac"].cells, name="cell")
    ).to_csv(tmp_path / "cells.tsv", sep="\t")
    tss_table.to_csv(tmp_path / "hg38_tss.tsv", sep="\t", index=False)
    (tmp_path / "config.yaml").write_text(
        yaml.safe_dump({"pipeline": {"genome": "hg38", "k": 20, "n_workers": 2}})
    )
    return {
        "config": tmp_path / "config.yaml",
        "atac": tmp_path / "atac",
        "rna": tmp_path / "rna",
        "embedding": tmp_path / "umap.tsv",
        "metadata": tmp_path / "cells.tsv",
        "tss": tmp_path / "hg38_tss.tsv",
        "output": tmp_path / "results",
    }


class TestEnhancerNetworkPipeline:
    """Tests for an in-memory pipeline run."""

    @pytest.fixture
    def result(self, config, annotation, multiome):
        pipeline = EnhancerNetworkPipeline(config, annotation)
        return pipeline.run(multiome["atac"], multiome["rna"], multiome["embedding"])

    def test_assignments(self, result):
        """Each gene keeps its distal enhancers; the promoter peak is gone."""
        assignments = result.assignments

        assert PROMOTER_PEAK not in set(assignments["Peak"])
        for gene, peaks in ENHANCERS.items():
            assert set(assignments.loc[assignments["Gene"] == gene, "Peak"]) == set(peaks)
        assert not assignments["Peak"].duplicated().any()

    def test_networks(self, result):
        """Single-enhancer genes have no network."""
        assert set(result.networks) == {"GENE_A", "GENE_B"}
        for gene, graph in result.networks.items():
            assert set(graph.nodes) == set(ENHANCERS[gene])

    def test_modes(self, result):
        modes = result.modes.set_index("Gene")

        assert modes.loc["GENE_A", "NetworkSize"] == 4
        assert modes.loc["GENE_B", "NetworkSize"] == 3
        assert modes.loc["GENE_A", "NetworkConnectivity"] > 0
        assert set(modes["Mode"]) == {"Simple"}
        assert set(modes["label"]) == {"GENE_A", "GENE_B"}

    def test_worker_count_invariance(self, annotation, multiome, result):
        serial = EnhancerNetworkPipeline(
            PipelineConfig(genome="hg38", k=20, n_workers=1), annotation
        ).run(multiome["atac"], multiome["rna"], multiome["embedding"])

        pd.testing.assert_frame_equal(serial.correlations, result.correlations)
        pd.testing.assert_frame_equal(serial.conns, result.conns)
        pd.testing.assert_frame_equal(serial.modes, result.modes)

    def test_save(self, result, tmp_path):
        written = result.save(tmp_path / "out")

        assert sorted(written) == sorted(OUTPUT_TABLES)
        assert all(path.exists() for path in written.values())

    def test_cell_metadata(self, config, annotation, multiome, tmp_path):
        """Cell metadata is returned in peak matrix cell order and saved."""
        cells = list(multiome["atac"].cells)
        metadata = pd.DataFrame(
            {"group": [int(c[-3:]) // 100 for c in cells]}, index=cells
        ).iloc[::-1]

        result = EnhancerNetworkPipeline(config, annotation).run(
            multiome["atac"], multiome["rna"], multiome["embedding"], cell_metadata=metadata
        )

        assert list(result.cell_metadata.index) == cells
        written = result.save(tmp_path / "out")
        saved = pd.read_csv(written["cell_metadata"], sep="\t")
        assert saved["cell"].tolist() == cells

    def test_cell_metadata_missing_cells(self, config, annotation, multiome):
        metadata = pd.DataFrame({"group": 0}, index=list(multiome["atac"].cells)[1:])

        with pytest.raises(InputContractViolation, match="metadata"):
            EnhancerNetworkPipeline(config, annotation).run(
                multiome["atac"], multiome["rna"], multiome["embedding"], cell_metadata=metadata
            )

    def test_single_enhancer_gene(self, config, annotation, multiome, tmp_path):
        """A gene with one enhancer finishes with no networks instead of failing."""
        rna = multiome["rna"].subset_features(["GENE_C"])

        result = EnhancerNetworkPipeline(config, annotation).run(
            multiome["atac"], rna, multiome["embedding"]
        )

        assert set(result.assignments["Peak"]) == set(ENHANCERS["GENE_C"])
        assert result.conns.empty
        assert result.networks == {}
        assert result.complexity.empty
        assert result.modes.empty
        assert sorted(result.save(tmp_path / "out")) == sorted(OUTPUT_TABLES)


class TestGenomeChecks:
    """Tests for early genome rejection."""

    def test_unsupported_genome(self, annotation):
        with pytest.raises(InvalidConfiguration):
            EnhancerNetworkPipeline(PipelineConfig(genome="hg20"), annotation)

    def test_annotation_mismatch(self, tss_table):
        annotation = GenomeAnnotation("mm10", tss_table)

        with pytest.raises(InvalidConfiguration):
            EnhancerNetworkPipeline(PipelineConfig(genome="hg38"), annotation)

    def test_rejected_before_reading(self, tmp_path):
        """No input file is touched when the genome is unsupported."""
        missing = tmp_path / "missing"

        with pytest.raises(InvalidConfiguration):
            run_pipeline(None, missing, missing, missing, missing, tmp_path, genome="hg20")


class TestFileRun:
    """Tests for file-based runs."""

    def test_run_pipeline(self, input_files):
        result = run_pipeline(
            input_files["config"],
            input_files["atac"],
            input_files["rna"],
            input_files["embedding"],
            input_files["tss"],
            input_files["output"],
        )

        assert set(result.networks) == {"GENE_A", "GENE_B"}
        for name in OUTPUT_TABLES:
            assert (input_files["output"] / f"{name}.tsv").exists()

    def test_cli_run_and_mode(self, input_files, capsys):
        main([
            "run",
            "--config", str(input_files["config"]),
            "--atac", str(input_files["atac"]),
            "--rna", str(input_files["rna"]),
            "--embedding", str(input_files["embedding"]),
            "--metadata", str(input_files["metadata"]),
            "--tss", str(input_files["tss"]),
            "--output", str(input_files["output"]),
        ])
        assert (input_files["output"] / "cell_metadata.tsv").exists()
        complexity = input_files["output"] / "network_complexity.tsv"
        modes_path = input_files["output"] / "modes_cutoff2.tsv"

        main([
            "mode",
            "--metrics", str(complexity),
            "--size-cutoff", "2",
            "--output", str(modes_path),
        ])

        modes = pd.read_csv(modes_path, sep="\t")
        assert set(modes["Gene"]) == {"GENE_A", "GENE_B"}
        assert set(modes["Mode"]) <= {"Complex", "Multiple"}
        assert "Simple" in capsys.readouterr().out

    def test_cli_invalid_genome(self, input_files):
        with pytest.raises(SystemExit) as excinfo:
            main([
                "run",
                "--atac", str(input_files["atac"]),
                "--rna", str(input_files["rna"]),
                "--embedding", str(input_files["embedding"]),
                "--tss", str(input_files["tss"]),
                "--output", str(input_files["output"]),
                "--genome", "hg20",
            ])

        assert excinfo.value.code == 1

    def test_cli_mode_invalid_cutoff(self, tmp_path):
        metrics = tmp_path / "network_complexity.tsv"
        pd.DataFrame({
            "Gene": ["GENE_A", "GENE_B"],
            "NetworkSize": [10, 4],
            "NetworkConnectivity": [2.0, 0.5],
        }).to_csv(metrics, sep="\t", index=False)

        with pytest.raises(SystemExit) as excinfo:
            main([
                "mode",
                "--metrics", str(metrics),
                "--size-cutoff", "-1",
                "--output", str(tmp_path / "modes.tsv"),
            ])

        assert excinfo.value.code == 1
        assert not (tmp_path / "modes.tsv").exists()

    def test_cli_help(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([])

        assert excinfo.value.code == 0
        assert "run" in capsys.readouterr().out
