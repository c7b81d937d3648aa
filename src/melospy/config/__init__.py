"""Workspace configuration."""

from melospy.config.loader import CONFIG_FILE, find_config, load_config
from melospy.config.schema import (
    BootstrapCommandConfig,
    CommandConfig,
    ExecOptions,
    MelosConfig,
    PackageFilters,
    ScriptConfig,
)

__all__ = [
    "CONFIG_FILE",
    "BootstrapCommandConfig",
    "CommandConfig",
    "ExecOptions",
    "MelosConfig",
    "PackageFilters",
    "ScriptConfig",
    "find_config",
    "load_config",
]
