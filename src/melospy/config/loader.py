"""Locate and load melos.yaml."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from melospy.config.schema import MelosConfig
from melospy.errors import ConfigurationError, WorkspaceNotFoundError

CONFIG_FILE = "melos.yaml"


def find_config(start: Path | None = None) -> Path:
    """Find melos.yaml in ``start`` or the nearest parent directory.

    Args:
        start: Directory to start from (defaults to the current directory).

    Returns:
        Path to the config file.

    Raises:
        WorkspaceNotFoundError: If no config exists up to the filesystem root.
    """
    start = (start or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        candidate = directory / CONFIG_FILE
        if candidate.is_file():
            return candidate
    raise WorkspaceNotFoundError(str(start))


def load_config(path: Path) -> MelosConfig:
    """Parse and validate a melos.yaml file.

    Args:
        path: Path to melos.yaml.

    Returns:
        Validated configuration.

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Failed to read: {e}", str(path)) from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML: {e}", str(path)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError("Expected a mapping at the top level", str(path))

    try:
        return MelosConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(str(e), str(path)) from e
