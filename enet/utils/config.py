"""
Configuration management utilities.
"""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..exceptions import InvalidConfiguration


# Genome builds with bundled TSS / chromosome-size conventions
SUPPORTED_GENOMES = ("hg19", "hg38", "mm10", "macFas5")

CORRELATION_METHODS = ("pearson", "spearman")

MAX_WORKERS = 64


def check_genome(genome: str) -> str:
    """
    Reject unsupported genome builds.

    Parameters
    ----------
    genome : str
        Genome build name.

    Returns
    -------
    str
        The genome, unchanged.
    """
    if genome not in SUPPORTED_GENOMES:
        raise InvalidConfiguration(
            f"Unsupported genome build {genome!r}. You must specify one of "
            f"{', '.join(SUPPORTED_GENOMES)} as a genome build for currently "
            f"supported TSS annotations."
        )
    return genome


def check_mode_cutoffs(
    size_cutoff: float,
    connectivity_cutoff: float,
    n_labels: int,
) -> None:
    """Validate the regulatory-mode thresholds."""
    if not size_cutoff >= 1:
        raise InvalidConfiguration(f"size_cutoff must be at least 1, got {size_cutoff}")
    if not connectivity_cutoff >= 0:
        raise InvalidConfiguration(
            f"connectivity_cutoff must be non-negative, got {connectivity_cutoff}"
        )
    if isinstance(n_labels, bool) or not isinstance(n_labels, int) or n_labels < 0:
        raise InvalidConfiguration(f"n_labels must be a non-negative integer, got {n_labels!r}")


def check_workers(n_workers: int) -> int:
    """Validate a worker count against the bounded pool size."""
    if isinstance(n_workers, bool) or not isinstance(n_workers, int):
        raise InvalidConfiguration(f"n_workers must be an integer, got {n_workers!r}")
    if not 1 <= n_workers <= MAX_WORKERS:
        raise InvalidConfiguration(
            f"n_workers must be between 1 and {MAX_WORKERS}, got {n_workers}"
        )
    return n_workers


@dataclass
class PipelineConfig:
    """
    Parameters of the enhancer-network recipe.

    Attributes
    ----------
    genome : str
        Reference genome build, one of SUPPORTED_GENOMES.
    window_pad_size : int
        Base pairs padded on either side of each TSS when searching peaks.
    promoter_pad_size : int
        Base pairs padded on either side of each TSS to define promoters.
    estimate_floor : float
        Peak-gene correlation must be strictly greater than this.
    fdr_ceiling : float
        Peak-gene FDR must be strictly smaller than this.
    correlation_method : str
        "pearson" or "spearman".
    normalize_atac : bool
        Center ATAC counts by cell depth before correlation.
    normalize_rna : bool
        Log-normalize the RNA matrix before correlation.
    k : int
        Cells aggregated per metacell for co-accessibility.
    max_overlap : float
        Maximum shared-cell fraction between two metacells.
    coaccess_window : int
        Genomic window size scored jointly by the estimator.
    distance_constraint : int
        Maximum distance between two co-accessible peaks.
    glasso_alpha : float
        Graphical lasso regularisation.
    seed : int
        Random seed for metacell sampling.
    coaccess_cutoff : float
        Co-accessibility cutoff for network edges.
    complexity_cutoff : float
        Co-accessibility cutoff used when computing network complexity.
    size_cutoff : int
        Networks larger than this are Complex or Multiple.
    connectivity_cutoff : float
        Connectivity at or above this makes a large network Complex.
    n_labels : int
        Number of top-connectivity genes labelled in the mode table.
    n_workers : int
        Size of the per-gene worker pool.
    """

    genome: str = "hg38"
    window_pad_size: int = 100000
    promoter_pad_size: int = 2000
    estimate_floor: float = 0.0
    fdr_ceiling: float = 0.05
    correlation_method: str = "pearson"
    normalize_atac: bool = True
    normalize_rna: bool = True
    k: int = 50
    max_overlap: float = 0.9
    coaccess_window: int = 500000
    distance_constraint: int = 250000
    glasso_alpha: float = 0.1
    seed: int = 2017
    coaccess_cutoff: float = 0.1
    complexity_cutoff: float = 0.2
    size_cutoff: int = 5
    connectivity_cutoff: float = 1.0
    n_labels: int = 20
    n_workers: int = 8

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> "PipelineConfig":
        """
        Build a validated config from a (possibly nested) dictionary.

        Keys may sit at the top level or under a ``pipeline`` section.
        """
        config = dict(config or {})
        if "pipeline" in config and isinstance(config["pipeline"], dict):
            config = dict(config["pipeline"])

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise InvalidConfiguration(f"Unknown configuration keys: {unknown}")

        pipeline_config = cls(**config)
        pipeline_config.validate()
        return pipeline_config

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "PipelineConfig":
        """Load and validate a YAML configuration file."""
        return cls.from_dict(load_config(config_path))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def validate(self) -> "PipelineConfig":
        """
        Validate every knob.

        Returns
        -------
        PipelineConfig
            self, if valid. Raises InvalidConfiguration otherwise.
        """
        check_genome(self.genome)
        check_workers(self.n_workers)

        for name in ("window_pad_size", "promoter_pad_size", "coaccess_window",
                     "distance_constraint"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise InvalidConfiguration(f"{name} must be a positive integer, got {value!r}")

        if not 0 < self.fdr_ceiling <= 1:
            raise InvalidConfiguration(f"fdr_ceiling must be in (0, 1], got {self.fdr_ceiling}")
        if not -1 <= self.estimate_floor < 1:
            raise InvalidConfiguration(f"estimate_floor must be in [-1, 1), got {self.estimate_floor}")
        for name in ("coaccess_cutoff", "complexity_cutoff"):
            value = getattr(self, name)
            if not -1 <= value <= 1:
                raise InvalidConfiguration(f"{name} must be in [-1, 1], got {value}")
        if self.correlation_method not in CORRELATION_METHODS:
            raise InvalidConfiguration(
                f"correlation_method must be one of {CORRELATION_METHODS}, "
                f"got {self.correlation_method!r}"
            )
        if self.k < 2:
            raise InvalidConfiguration(f"k must be at least 2, got {self.k}")
        if not 0 < self.max_overlap <= 1:
            raise InvalidConfiguration(f"max_overlap must be in (0, 1], got {self.max_overlap}")
        if self.glasso_alpha <= 0:
            raise InvalidConfiguration(f"glasso_alpha must be positive, got {self.glasso_alpha}")
        check_mode_cutoffs(self.size_cutoff, self.connectivity_cutoff, self.n_labels)

        return self


def load_config(config_path: str | Path) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Parameters
    ----------
    config_path : str or Path
        Path to the YAML configuration file.

    Returns
    -------
    dict
        Configuration dictionary; empty for an empty file.

    Raises
    ------
    InvalidConfiguration
        The file holds YAML whose top level is not a mapping.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise InvalidConfiguration(
            f"{config_path} must hold a YAML mapping, got {type(config).__name__}"
        )
    return config


def get_config(config_path: Optional[str | Path] = None) -> PipelineConfig:
    """
    Get a validated pipeline configuration.

    Parameters
    ----------
    config_path : str or Path, optional
        YAML file. Defaults to the bundled ``config/config.yaml``, and to the
        dataclass defaults if that file is missing.

    Returns
    -------
    PipelineConfig
        Validated configuration.
    """
    if config_path is None:
        from .. import CONFIG_DIR

        config_path = CONFIG_DIR / "config.yaml"
        if not config_path.exists():
            return PipelineConfig().validate()

    return PipelineConfig.from_yaml(config_path)
