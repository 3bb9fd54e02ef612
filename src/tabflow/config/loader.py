"""
Configuration loading utilities.

Supports environment variable interpolation and config inheritance.
Minimal configs only need: project, data.source, data.target, model.type
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from tabflow.config.settings import PipelineConfig


def _interpolate_env_vars(value: str) -> str:
    """
    Interpolate environment variables in string values.

    Supports ${VAR} and ${VAR:default} syntax.
    """
    pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        default = match.group(2)
        return os.environ.get(var_name, default if default is not None else "")

    return re.sub(pattern, replacer, value)


def _process_config_values(obj: Any) -> Any:
    """Recursively process config values for env var interpolation."""
    if isinstance(obj, str):
        return _interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _process_config_values(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_process_config_values(item) for item in obj]
    return obj


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and process environment variables."""
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return _process_config_values(data) if data else {}


def load_config(
    config_path: Path,
    base_path: Path | None = None,
) -> PipelineConfig:
    """
    Load workflow configuration from YAML file(s).

    Minimal config requires only:
        - project: str
        - data.source: URL or path
        - data.target: outcome column
        - model.type: model type (e.g. linear_reg)

    Args:
        config_path: Path to the main configuration file.
        base_path: Optional path to base configuration for inheritance.
            Defaults to a ``base.yaml`` next to the main file, if present.

    Returns:
        Fully validated PipelineConfig instance.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If a required key is missing or a value is invalid.
    """
    if not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise FileNotFoundError(msg)

    if base_path is not None:
        base_data = load_yaml(base_path)
    else:
        potential_base = config_path.parent / "base.yaml"
        is_self = potential_base.resolve() == config_path.resolve()
        base_data = (
            load_yaml(potential_base)
            if potential_base.exists() and not is_self
            else {}
        )

    main_data = load_yaml(config_path)
    merged = _deep_merge(base_data, main_data)

    if not merged.get("project"):
        msg = "Config must specify 'project' name"
        raise ValueError(msg)

    data_data = merged.get("data") or {}
    if not data_data.get("source"):
        msg = "Config must specify 'data.source' (CSV URL or path)"
        raise ValueError(msg)
    if not data_data.get("target"):
        msg = "Config must specify 'data.target' (outcome column)"
        raise ValueError(msg)

    model_data = merged.get("model") or {}
    if not model_data.get("type"):
        msg = "Config must specify 'model.type' (e.g. linear_reg)"
        raise ValueError(msg)

    return PipelineConfig.model_validate(merged)
