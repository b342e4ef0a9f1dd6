"""
Genome Annotation Registry

Holds the reference TSS table (and optionally chromosome sizes) for one
genome build. An annotation is loaded once per run and passed explicitly to
every stage that needs gene windows or promoter windows.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from .exceptions import InputContractViolation
from .utils.config import SUPPORTED_GENOMES, check_genome
from .utils.genomics import IntervalIndex, center_positions, pad_positions
from .utils.io import read_chrom_sizes, read_tss_table
from .utils.logging import get_logger


logger = get_logger("annotation")


@dataclass(frozen=True)
class GenomeAnnotation:
    """
    TSS annotation for one supported genome build.

    Attributes
    ----------
    genome : str
        Genome build (hg19, hg38, mm10 or macFas5).
    tss : pd.DataFrame
        Columns Gene, Chromosome, TSS. A gene may have several TSS rows.
    chrom_sizes : pd.Series, optional
        Chromosome lengths indexed by chromosome.
    """

    genome: str
    tss: pd.DataFrame
    chrom_sizes: Optional[pd.Series] = field(default=None, compare=False)

    def __post_init__(self):
        check_genome(self.genome)
        missing = [c for c in ("Gene", "Chromosome", "TSS") if c not in self.tss.columns]
        if missing:
            raise InputContractViolation(f"TSS annotation is missing columns: {missing}")
        tss = self.tss.copy()
        tss["Gene"] = tss["Gene"].astype(str)
        tss["Chromosome"] = tss["Chromosome"].astype(str)
        tss["TSS"] = tss["TSS"].astype("int64")
        object.__setattr__(self, "tss", tss.reset_index(drop=True))

    @classmethod
    def load(
        cls,
        genome: str,
        tss_path: str | Path,
        chrom_sizes_path: Optional[str | Path] = None,
    ) -> "GenomeAnnotation":
        """
        Load an annotation from files.

        The genome is checked before any file is read.
        """
        check_genome(genome)
        tss = read_tss_table(tss_path)
        chrom_sizes = read_chrom_sizes(chrom_sizes_path) if chrom_sizes_path else None

        logger.info(f"Loaded {tss['Gene'].nunique()} genes ({len(tss)} TSSs) for {genome}")
        return cls(genome=genome, tss=tss, chrom_sizes=chrom_sizes)

    @property
    def genes(self) -> list:
        return sorted(self.tss["Gene"].unique())

    def gene_windows(self, pad: int) -> pd.DataFrame:
        """TSS ± ``pad`` windows with a Gene column."""
        windows = pad_positions(self.tss["Chromosome"], self.tss["TSS"], pad)
        windows["Gene"] = self.tss["Gene"].values
        return windows

    def promoter_windows(self, pad: int) -> pd.DataFrame:
        """``2 * pad`` bp promoter windows centered on every annotated TSS."""
        windows = center_positions(self.tss["Chromosome"], self.tss["TSS"], 2 * pad)
        windows["Gene"] = self.tss["Gene"].values
        return windows

    def window_index(self, pad: int) -> IntervalIndex:
        return IntervalIndex(self.gene_windows(pad), id_column="Gene")

    def promoter_index(self, pad: int) -> IntervalIndex:
        return IntervalIndex(self.promoter_windows(pad), id_column="Gene")


class AnnotationRegistry:
    """
    Annotations keyed by genome build, loaded once at startup.

    Example
    -------
    >>> registry = AnnotationRegistry.from_directory("data/")
    >>> hg38 = registry.get("hg38")
    """

    TSS_TEMPLATE = "{genome}_tss.tsv"
    CHROM_SIZES_TEMPLATE = "{genome}.chrom.sizes"

    def __init__(self):
        self._annotations: Dict[str, GenomeAnnotation] = {}

    def register(self, annotation: GenomeAnnotation) -> None:
        self._annotations[annotation.genome] = annotation

    def get(self, genome: str) -> GenomeAnnotation:
        """
        Get the annotation for ``genome``.

        Raises
        ------
        InvalidConfiguration
            Unsupported genome build.
        KeyError
            Supported but not loaded.
        """
        check_genome(genome)
        if genome not in self._annotations:
            raise KeyError(f"No annotation loaded for {genome}")
        return self._annotations[genome]

    def __contains__(self, genome: str) -> bool:
        return genome in self._annotations

    @property
    def genomes(self) -> list:
        return sorted(self._annotations)

    @classmethod
    def from_directory(cls, data_dir: str | Path) -> "AnnotationRegistry":
        """
        Load every supported genome found in ``data_dir``.

        Files follow ``{genome}_tss.tsv`` and ``{genome}.chrom.sizes``.
        """
        data_dir = Path(data_dir)
        registry = cls()

        for genome in SUPPORTED_GENOMES:
            tss_path = data_dir / cls.TSS_TEMPLATE.format(genome=genome)
            if not tss_path.exists():
                continue
            sizes_path = data_dir / cls.CHROM_SIZES_TEMPLATE.format(genome=genome)
            registry.register(GenomeAnnotation.load(
                genome,
                tss_path,
                sizes_path if sizes_path.exists() else None,
            ))

        return registry
