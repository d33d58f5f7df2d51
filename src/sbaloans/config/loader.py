"""
Configuration loading utilities.

Supports environment variable interpolation and config inheritance:
generation mappings usually live in a shared base.yaml, while each
deployment config only lists its project, data root and sources.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from sbaloans.config.settings import PipelineConfig


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


def config_from_dict(data: dict[str, Any]) -> PipelineConfig:
    """
    Build a validated config from an already merged dictionary.

    Args:
        data: Raw configuration mapping.

    Returns:
        Fully validated PipelineConfig instance.

    Raises:
        ValueError: If the project name is missing.
        pydantic.ValidationError: If any section is invalid.
    """
    if not data.get("project"):
        msg = "Config must specify 'project' name"
        raise ValueError(msg)

    generations = {
        name: {"field_map": gen.get("field_map", gen) if isinstance(gen, dict) else gen}
        for name, gen in (data.get("generations") or {}).items()
    }

    return PipelineConfig.model_validate({**data, "generations": generations})


def load_config(
    config_path: Path,
    base_path: Path | None = None,
) -> PipelineConfig:
    """
    Load pipeline configuration from YAML file(s).

    A minimal config requires:
        - project: str
        - sources: list of {name, path, generation}
        - generations: {name: {field_map: {raw: logical}}} (may come from base.yaml)

    Args:
        config_path: Path to the main configuration file.
        base_path: Optional path to base configuration for inheritance.

    Returns:
        Fully validated PipelineConfig instance.
    """
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

    return config_from_dict(merged)
