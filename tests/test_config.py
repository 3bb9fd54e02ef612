"""Tests for configuration system."""

from pathlib import Path
from typing import Any

import pytest
import yaml

from tabflow.config import (
    DataConfig,
    LoggingConfig,
    ModelSpecConfig,
    PipelineConfig,
    ResamplingMethod,
    SplitConfig,
    TuningConfig,
    load_config,
)


def _write(path: Path, data: dict[str, Any]) -> Path:
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(data, f)
    return path


class TestDataConfig:
    """Tests for DataConfig."""

    def test_remote_source(self) -> None:
        """Test that http(s) sources are detected as remote."""
        config = DataConfig(source="https://example.org/data.csv", target="price")
        assert config.is_remote

    def test_local_source(self) -> None:
        """Test that file paths are not remote."""
        config = DataConfig(source="data/diamonds.csv", target="price")
        assert not config.is_remote


class TestSplitConfig:
    """Tests for SplitConfig."""

    def test_defaults(self) -> None:
        """Test default split settings."""
        config = SplitConfig()
        assert config.prop == 0.75
        assert config.strata is None
        assert config.breaks == 4

    @pytest.mark.parametrize("prop", [0.0, 1.0, 1.5, -0.1])
    def test_invalid_prop(self, prop: float) -> None:
        """Test that prop outside (0, 1) is rejected."""
        with pytest.raises(ValueError):
            SplitConfig(prop=prop)


class TestModelSpecConfig:
    """Tests for ModelSpecConfig."""

    def test_type_alias(self) -> None:
        """Test that 'type' populates model_type."""
        config = ModelSpecConfig.model_validate({"type": "rand_forest", "args": {"trees": 10}})
        assert config.model_type == "rand_forest"
        assert config.args == {"trees": 10}
        assert config.mode == "regression"


class TestTuningConfig:
    """Tests for TuningConfig."""

    def test_enabled_requires_grid(self) -> None:
        """Test that enabling tuning without a grid fails."""
        with pytest.raises(ValueError, match="non-empty tuning.grid"):
            TuningConfig(enabled=True)

    def test_enabled_with_grid(self) -> None:
        """Test a valid tuning config."""
        config = TuningConfig(enabled=True, grid={"min_n": [2, 5]})
        assert config.grid["min_n"] == [2, 5]


class TestLoggingConfig:
    """Tests for LoggingConfig."""

    def test_level_uppercased(self) -> None:
        """Test that log levels are normalized."""
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_level(self) -> None:
        """Test that unknown levels are rejected."""
        with pytest.raises(ValueError, match="Log level"):
            LoggingConfig(level="LOUD")


class TestPipelineConfig:
    """Tests for PipelineConfig derived properties."""

    def test_derived_paths(self, config_dict: dict[str, Any]) -> None:
        """Test output paths and defaults derived from the project name."""
        config = PipelineConfig.model_validate(config_dict)
        assert config.formula == "y ~ ."
        assert config.experiment_name == "test-project"
        assert config.models_dir == config.project_dir / "models"
        assert config.cache_dir == config.project_dir / "cache"
        assert config.resampling.method == ResamplingMethod.VFOLD

    def test_explicit_formula(self, config_dict: dict[str, Any]) -> None:
        """Test that an explicit recipe formula wins."""
        config_dict["recipe"]["formula"] = "y ~ x1 + x2"
        config = PipelineConfig.model_validate(config_dict)
        assert config.formula == "y ~ x1 + x2"

    def test_empty_metrics_rejected(self, config_dict: dict[str, Any]) -> None:
        """Test that at least one metric is required."""
        config_dict["metrics"] = []
        with pytest.raises(ValueError, match="At least one metric"):
            PipelineConfig.model_validate(config_dict)

    def test_frozen(self, config_dict: dict[str, Any]) -> None:
        """Test that configs are immutable."""
        config = PipelineConfig.model_validate(config_dict)
        with pytest.raises(ValueError):
            config.project = "other"  # type: ignore[misc]


class TestLoadConfig:
    """Tests for config loading."""

    def test_load_minimal_config(self, tmp_path: Path) -> None:
        """Test loading a minimal config file."""
        path = _write(
            tmp_path / "minimal.yaml",
            {
                "project": "diamonds-lm",
                "data": {"source": "diamonds.csv", "target": "price"},
                "model": {"type": "linear_reg"},
            },
        )
        config = load_config(path)
        assert config.project == "diamonds-lm"
        assert config.data.target == "price"
        assert config.model.model_type == "linear_reg"
        assert config.metrics == ["rmse", "rsq"]

    def test_base_inheritance(self, tmp_path: Path) -> None:
        """Test that base.yaml next to the config is merged underneath it."""
        _write(
            tmp_path / "base.yaml",
            {"seed": 7, "resampling": {"v": 5, "repeats": 2}, "metrics": ["mae"]},
        )
        path = _write(
            tmp_path / "project.yaml",
            {
                "project": "p",
                "data": {"source": "d.csv", "target": "y"},
                "model": {"type": "linear_reg"},
                "resampling": {"v": 3},
            },
        )
        config = load_config(path)
        assert config.seed == 7
        assert config.resampling.v == 3
        assert config.resampling.repeats == 2
        assert config.metrics == ["mae"]

    def test_env_interpolation(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test ${VAR} and ${VAR:default} interpolation."""
        monkeypatch.setenv("TABFLOW_TEST_SOURCE", "from_env.csv")
        monkeypatch.delenv("TABFLOW_TEST_MISSING", raising=False)
        path = _write(
            tmp_path / "env.yaml",
            {
                "project": "${TABFLOW_TEST_MISSING:fallback}",
                "data": {"source": "${TABFLOW_TEST_SOURCE}", "target": "y"},
                "model": {"type": "linear_reg"},
            },
        )
        config = load_config(path)
        assert config.project == "fallback"
        assert config.data.source == "from_env.csv"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing config raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    @pytest.mark.parametrize(
        ("data", "match"),
        [
            ({"data": {"source": "d.csv", "target": "y"}, "model": {"type": "x"}}, "project"),
            ({"project": "p", "data": {"target": "y"}, "model": {"type": "x"}}, "data.source"),
            ({"project": "p", "data": {"source": "d.csv"}, "model": {"type": "x"}}, "data.target"),
            ({"project": "p", "data": {"source": "d.csv", "target": "y"}}, "model.type"),
        ],
    )
    def test_missing_required_keys(
        self, tmp_path: Path, data: dict[str, Any], match: str
    ) -> None:
        """Test that required keys are enforced with clear messages."""
        path = _write(tmp_path / "bad.yaml", data)
        with pytest.raises(ValueError, match=match):
            load_config(path)

    def test_shipped_example_configs(self, project_root: Path) -> None:
        """Test that the example configs in configs/ validate."""
        for name in ("diamonds-lm.yaml", "diamonds-rf-tune.yaml"):
            config = load_config(project_root / "configs" / name)
            assert config.data.target == "price"
            assert config.data.is_remote
