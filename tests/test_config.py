"""
Tests for Configuration

Tests cover:
- Defaults and the bundled config file
- Genome build validation
- Range checks on thresholds and worker counts
- YAML loading with a nested ``pipeline`` section
"""

import pytest
import yaml

from enet.exceptions import EnetError, InvalidConfiguration
from enet.utils.config import (
    SUPPORTED_GENOMES,
    PipelineConfig,
    check_genome,
    get_config,
    load_config,
)


class TestGenome:
    """Tests for genome build validation."""

    @pytest.mark.parametrize("genome", SUPPORTED_GENOMES)
    def test_supported(self, genome):
        assert check_genome(genome) == genome

    def test_unsupported(self):
        """Unsupported builds fail with a message naming the supported ones."""
        with pytest.raises(InvalidConfiguration, match="hg38"):
            check_genome("hg20")

    def test_error_hierarchy(self):
        """Configuration errors are also ValueErrors."""
        with pytest.raises(ValueError):
            check_genome("hg20")
        with pytest.raises(EnetError):
            check_genome("hg20")


class TestPipelineConfig:
    """Tests for PipelineConfig."""

    def test_defaults(self):
        """Defaults follow the published recipe."""
        config = PipelineConfig().validate()

        assert config.genome == "hg38"
        assert config.window_pad_size == 100000
        assert config.promoter_pad_size == 2000
        assert config.estimate_floor == 0.0
        assert config.fdr_ceiling == 0.05
        assert config.k == 50
        assert config.coaccess_cutoff == 0.1
        assert config.size_cutoff == 5
        assert config.connectivity_cutoff == 1.0
        assert config.n_labels == 20

    @pytest.mark.parametrize("key,value", [
        ("genome", "hg20"),
        ("n_workers", 0),
        ("n_workers", 65),
        ("fdr_ceiling", 0.0),
        ("estimate_floor", 1.0),
        ("window_pad_size", -1),
        ("correlation_method", "kendall"),
        ("k", 1),
        ("max_overlap", 0.0),
        ("glasso_alpha", 0.0),
        ("coaccess_cutoff", 1.5),
        ("size_cutoff", 0),
        ("connectivity_cutoff", -0.5),
        ("n_labels", -1),
    ])
    def test_invalid_values(self, key, value):
        with pytest.raises(InvalidConfiguration):
            PipelineConfig(**{key: value}).validate()

    def test_max_workers(self):
        assert PipelineConfig(n_workers=64).validate().n_workers == 64

    def test_from_dict_nested(self):
        """Keys may sit under a pipeline section."""
        config = PipelineConfig.from_dict({"pipeline": {"genome": "mm10", "k": 30}})

        assert config.genome == "mm10"
        assert config.k == 30

    def test_from_dict_unknown_key(self):
        with pytest.raises(InvalidConfiguration, match="window_size"):
            PipelineConfig.from_dict({"window_size": 10})

    def test_round_trip_dict(self):
        config = PipelineConfig(genome="hg19", n_workers=2)

        assert PipelineConfig.from_dict(config.to_dict()) == config


class TestConfigFiles:
    """Tests for YAML configuration files."""

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"pipeline": {"genome": "macFas5", "n_workers": 2}}))

        config = PipelineConfig.from_yaml(path)

        assert config.genome == "macFas5"
        assert config.n_workers == 2

    def test_invalid_yaml_genome(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"pipeline": {"genome": "hg20"}}))

        with pytest.raises(InvalidConfiguration):
            get_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path) == {}
        assert get_config(path) == PipelineConfig()

    def test_non_mapping_file(self, tmp_path):
        """A YAML list is rejected instead of failing later on key lookup."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(["genome", "hg38"]))

        with pytest.raises(InvalidConfiguration, match="mapping"):
            load_config(path)

    def test_bundled_config(self):
        """The bundled config validates and matches the defaults."""
        assert get_config() == PipelineConfig()
