"""
End-to-end enhancer network pipeline.

    1. correlate_peaks_to_genes   peak-gene correlation
    2. select_nodes               enhancer clusters
    3. score_coaccessibility      enhancer-enhancer edges
    4. build_networks             per-gene enhancer networks
    5. network_complexity         size and connectivity
    6. classify_modes             Complex / Multiple / Simple
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import networkx as nx
import pandas as pd

from .annotation import GenomeAnnotation
from .coaccessibility import GraphicalLassoEstimator, score_coaccessibility
from .coaccessibility.estimator import CoaccessEstimator
from .enhancer_gene_linking import correlate_peaks_to_genes, select_nodes
from .enhancer_network import (
    build_networks,
    classify_modes,
    network_complexity_from_tables,
    network_edges,
)
from .exceptions import InvalidConfiguration
from .matrices import LabeledMatrix, align_cell_metadata
from .utils.config import PipelineConfig, get_config
from .utils.io import read_cell_table, read_matrix_dir, write_table
from .utils.logging import get_logger


logger = get_logger("pipeline")


@dataclass
class PipelineResult:
    """
    Every table produced by the pipeline.

    Attributes
    ----------
    correlations : pd.DataFrame
        Peak-gene correlation records.
    assignments : pd.DataFrame
        Enhancer assignments after node selection.
    conns : pd.DataFrame
        Co-accessibility edges.
    networks : dict
        ``{gene: nx.Graph}`` enhancer networks.
    complexity : pd.DataFrame
        Network size and connectivity per gene.
    modes : pd.DataFrame
        Complexity with regulatory mode and display label.
    cell_metadata : pd.DataFrame, optional
        Cell metadata aligned to the peak matrix cell order.
    """

    correlations: pd.DataFrame
    assignments: pd.DataFrame
    conns: pd.DataFrame
    networks: Dict[str, nx.Graph] = field(default_factory=dict)
    complexity: Optional[pd.DataFrame] = None
    modes: Optional[pd.DataFrame] = None
    cell_metadata: Optional[pd.DataFrame] = None

    def save(self, output_dir: str | Path, compress: bool = False) -> Dict[str, Path]:
        """Write every table as TSV into ``output_dir``."""
        output_dir = Path(output_dir)
        tables = {
            "peak_gene_correlations": self.correlations,
            "enhancer_assignments": self.assignments,
            "coaccessibility": self.conns,
            "network_edges": network_edges(self.networks),
            "network_complexity": self.complexity,
            "network_modes": self.modes,
        }
        if self.cell_metadata is not None:
            tables["cell_metadata"] = self.cell_metadata.rename_axis("cell").reset_index()

        written = {}
        for name, df in tables.items():
            if df is None:
                continue
            written[name] = write_table(df, output_dir / f"{name}.tsv", compress=compress)

        logger.info(f"Wrote {len(written)} tables to {output_dir}")
        return written


class EnhancerNetworkPipeline:
    """
    Runs the enhancer network recipe with one configuration.

    Example
    -------
    >>> config = PipelineConfig(genome="hg38", n_workers=4)
    >>> annotation = GenomeAnnotation.load("hg38", "data/hg38_tss.tsv")
    >>> result = EnhancerNetworkPipeline(config, annotation).run(atac, rna, umap)
    >>> result.modes.head()
    """

    def __init__(
        self,
        config: PipelineConfig,
        annotation: GenomeAnnotation,
        estimator: Optional[CoaccessEstimator] = None,
        show_progress: bool = False,
    ):
        """
        Parameters
        ----------
        config : PipelineConfig
            Pipeline parameters; validated here.
        annotation : GenomeAnnotation
            Annotation of ``config.genome``.
        estimator : CoaccessEstimator, optional
            Co-accessibility estimator. Defaults to a graphical lasso with
            ``config.glasso_alpha``.
        show_progress : bool
            Show progress bars for per-gene stages.
        """
        self.config = config.validate()
        if annotation.genome != config.genome:
            raise InvalidConfiguration(
                f"Annotation is for {annotation.genome} but the pipeline is "
                f"configured for {config.genome}"
            )
        self.annotation = annotation
        self.estimator = estimator or GraphicalLassoEstimator(alpha=config.glasso_alpha)
        self.show_progress = show_progress

    def correlate(self, atac: LabeledMatrix, rna: LabeledMatrix) -> pd.DataFrame:
        c = self.config
        return correlate_peaks_to_genes(
            atac,
            rna,
            self.annotation,
            window_pad_size=c.window_pad_size,
            method=c.correlation_method,
            normalize_atac=c.normalize_atac,
            normalize_rna=c.normalize_rna,
            n_workers=c.n_workers,
            show_progress=self.show_progress,
        )

    def select(self, correlations: pd.DataFrame) -> pd.DataFrame:
        c = self.config
        return select_nodes(
            correlations,
            self.annotation,
            estimate_floor=c.estimate_floor,
            fdr_ceiling=c.fdr_ceiling,
            promoter_pad_size=c.promoter_pad_size,
        )

    def score_edges(
        self,
        atac: LabeledMatrix,
        assignments: pd.DataFrame,
        embedding: pd.DataFrame,
    ) -> pd.DataFrame:
        c = self.config
        return score_coaccessibility(
            atac,
            assignments,
            embedding,
            k=c.k,
            chrom_sizes=self.annotation.chrom_sizes,
            window=c.coaccess_window,
            distance_constraint=c.distance_constraint,
            estimator=self.estimator,
            max_overlap=c.max_overlap,
            seed=c.seed,
            n_workers=c.n_workers,
            show_progress=self.show_progress,
        )

    def networks(self, conns: pd.DataFrame, assignments: pd.DataFrame) -> Dict[str, nx.Graph]:
        return build_networks(
            conns,
            assignments,
            cutoff=self.config.coaccess_cutoff,
            n_workers=self.config.n_workers,
            show_progress=self.show_progress,
        )

    def complexity(self, conns: pd.DataFrame, assignments: pd.DataFrame) -> pd.DataFrame:
        """Network complexity at ``complexity_cutoff``."""
        return network_complexity_from_tables(
            conns,
            assignments,
            cutoff=self.config.complexity_cutoff,
            n_workers=self.config.n_workers,
        )

    def modes(self, complexity: pd.DataFrame) -> pd.DataFrame:
        c = self.config
        return classify_modes(
            complexity,
            size_cutoff=c.size_cutoff,
            connectivity_cutoff=c.connectivity_cutoff,
            n_labels=c.n_labels,
        )

    def run(
        self,
        atac: LabeledMatrix,
        rna: LabeledMatrix,
        embedding: pd.DataFrame,
        cell_metadata: Optional[pd.DataFrame] = None,
    ) -> PipelineResult:
        """
        Run all stages.

        Parameters
        ----------
        atac : LabeledMatrix
            Peak x cell accessibility counts.
        rna : LabeledMatrix
            Gene x cell expression or gene activity.
        embedding : pd.DataFrame
            Cell x 2-3 embedding coordinates.
        cell_metadata : pd.DataFrame, optional
            Per-cell attributes indexed by cell. Must cover every cell;
            returned in the result in peak matrix cell order.

        Returns
        -------
        PipelineResult
            All intermediate and final tables.
        """
        logger.info(
            f"Running enhancer network pipeline on {atac.shape[0]} peaks, "
            f"{rna.shape[0]} genes, {atac.shape[1]} cells ({self.config.genome})"
        )
        if cell_metadata is not None:
            cell_metadata = align_cell_metadata(cell_metadata, atac.cells)

        correlations = self.correlate(atac, rna)
        assignments = self.select(correlations)
        conns = self.score_edges(atac, assignments, embedding)
        networks = self.networks(conns, assignments)
        complexity = self.complexity(conns, assignments)
        modes = self.modes(complexity)

        return PipelineResult(
            correlations=correlations,
            assignments=assignments,
            conns=conns,
            networks=networks,
            complexity=complexity,
            modes=modes,
            cell_metadata=cell_metadata,
        )


def run_pipeline(
    config_path: Optional[str | Path],
    atac_dir: str | Path,
    rna_dir: str | Path,
    embedding_path: str | Path,
    tss_path: str | Path,
    output_dir: str | Path,
    chrom_sizes_path: Optional[str | Path] = None,
    n_workers: Optional[int] = None,
    genome: Optional[str] = None,
    cell_metadata_path: Optional[str | Path] = None,
) -> PipelineResult:
    """
    Load inputs from disk, run the pipeline and write every table.

    The configuration (and therefore the genome build) is validated before
    any input file is read.
    """
    config = get_config(config_path)
    overrides = {}
    if n_workers is not None:
        overrides["n_workers"] = n_workers
    if genome is not None:
        overrides["genome"] = genome
    if overrides:
        config = PipelineConfig.from_dict({**config.to_dict(), **overrides})

    annotation = GenomeAnnotation.load(config.genome, tss_path, chrom_sizes_path)
    pipeline = EnhancerNetworkPipeline(config, annotation, show_progress=True)

    result = pipeline.run(
        read_matrix_dir(atac_dir),
        read_matrix_dir(rna_dir),
        read_cell_table(embedding_path),
        cell_metadata=read_cell_table(cell_metadata_path) if cell_metadata_path else None,
    )
    result.save(output_dir)
    return result
