"""
Configuration management with typed Pydantic models.

Extracts, generation mappings and output locations are explicit
configuration loaded from YAML.
"""

from sbaloans.config.loader import config_from_dict, load_config
from sbaloans.config.settings import (
    ExecutionConfig,
    GenerationConfig,
    IdentityConfig,
    LimitsConfig,
    LoggingConfig,
    OutputConfig,
    PipelineConfig,
    SourceConfig,
)

__all__ = [
    "ExecutionConfig",
    "GenerationConfig",
    "IdentityConfig",
    "LimitsConfig",
    "LoggingConfig",
    "OutputConfig",
    "PipelineConfig",
    "SourceConfig",
    "config_from_dict",
    "load_config",
]
