"""Pytest configuration and shared fixtures."""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
import pytest
import structlog
import yaml


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def regression_data() -> pd.DataFrame:
    """
    Synthetic regression data with a known linear signal.

    y = 3 * x1 - 2 * x2 + level effect + small noise, plus a nominal
    predictor with three levels and a constant column.
    """
    rng = np.random.default_rng(42)
    n = 200
    x1 = rng.normal(0.0, 1.0, n)
    x2 = rng.uniform(-1.0, 1.0, n)
    color = rng.choice(["red", "green", "blue"], size=n)
    effect = pd.Series(color).map({"red": 0.0, "green": 1.5, "blue": -1.0}).to_numpy()
    y = 3.0 * x1 - 2.0 * x2 + effect + rng.normal(0.0, 0.1, n)
    return pd.DataFrame(
        {
            "x1": x1,
            "x2": x2,
            "color": pd.Categorical(color),
            "const": 1.0,
            "y": y,
        }
    )


@pytest.fixture
def positive_data(regression_data: pd.DataFrame) -> pd.DataFrame:
    """Regression data with a strictly positive outcome (for log transforms)."""
    df = regression_data.copy()
    df["y"] = np.exp(df["y"] / 5.0) * 100.0
    return df


@pytest.fixture
def csv_path(tmp_path: Path, regression_data: pd.DataFrame) -> Path:
    """Regression data written to CSV (string levels, no categoricals)."""
    path = tmp_path / "data.csv"
    regression_data.to_csv(path, index=False)
    return path


@pytest.fixture
def config_dict(csv_path: Path, tmp_path: Path) -> dict[str, Any]:
    """A minimal, fast pipeline configuration pointing at the CSV fixture."""
    return {
        "project": "test-project",
        "seed": 123,
        "data": {"source": str(csv_path), "target": "y"},
        "split": {"prop": 0.75},
        "resampling": {"method": "vfold", "v": 3},
        "recipe": {
            "steps": [
                {"step": "dummy", "selectors": ["all_nominal_predictors"]},
                {"step": "zv", "selectors": ["all_predictors"]},
                {"step": "normalize", "selectors": ["all_numeric_predictors"]},
            ]
        },
        "model": {"type": "linear_reg"},
        "metrics": ["rmse", "rsq"],
        "output": {"output_root": str(tmp_path / "output")},
    }


@pytest.fixture
def config_file(tmp_path: Path, config_dict: dict[str, Any]) -> Path:
    """The minimal configuration written to YAML."""
    path = tmp_path / "config.yaml"
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(config_dict, f)
    return path


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Undo logging configuration done by CLI tests (it binds the runner's streams)."""
    yield
    structlog.reset_defaults()
