"""Workspace package model and pubspec discovery."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from melospy.errors import ConfigurationError

logger = logging.getLogger(__name__)

PUBSPEC_FILE = "pubspec.yaml"

# Tool and build output directories that never hold workspace packages.
EXCLUDED_PACKAGE_DIRS = frozenset(
    {
        ".dart_tool",
        ".symlinks",
        ".plugin_symlinks",
        ".pub-cache",
        ".pub",
        ".fvm",
        "build",
        ".idea",
        ".vscode",
    }
)


@dataclass(frozen=True)
class Package:
    """A Dart or Flutter package in the workspace.

    Packages are immutable snapshots built once when the workspace loads.

    Attributes:
        name: Package name from pubspec.yaml (unique within a workspace).
        path: Absolute path to the package directory.
        version: Package version, if declared.
        is_flutter: Whether the package depends on the Flutter SDK.
        dependencies: Names of regular dependencies.
        dev_dependencies: Names of dev dependencies.
        dependency_versions: Version constraints keyed by dependency name.
        publish_to: Value of ``publish_to`` in pubspec.yaml.
    """

    name: str
    path: Path
    version: str | None = None
    is_flutter: bool = False
    dependencies: tuple[str, ...] = ()
    dev_dependencies: tuple[str, ...] = ()
    dependency_versions: dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    publish_to: str | None = None

    @classmethod
    def from_path(cls, path: Path) -> Package:
        """Load a package from a directory containing pubspec.yaml.

        Args:
            path: Package directory.

        Returns:
            Parsed package.

        Raises:
            ConfigurationError: If the pubspec is missing or malformed.
        """
        pubspec_path = path / PUBSPEC_FILE
        try:
            data = yaml.safe_load(pubspec_path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigurationError(f"Failed to read: {e}", str(pubspec_path)) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", str(pubspec_path)) from e

        if not isinstance(data, dict) or not data.get("name"):
            raise ConfigurationError("Missing package name", str(pubspec_path))

        deps = data.get("dependencies") or {}
        dev_deps = data.get("dev_dependencies") or {}
        for key, section in (("dependencies", deps), ("dev_dependencies", dev_deps)):
            if not isinstance(section, dict):
                raise ConfigurationError(f"'{key}' must be a mapping", str(pubspec_path))

        versions: dict[str, str] = {}
        for section in (deps, dev_deps):
            for dep_name, value in section.items():
                constraint = _version_constraint(value)
                if constraint:
                    versions[dep_name] = constraint

        version = data.get("version")
        publish_to = data.get("publish_to")
        return cls(
            name=str(data["name"]),
            path=path,
            version=str(version) if version is not None else None,
            is_flutter="flutter" in data or "flutter" in deps,
            dependencies=tuple(deps),
            dev_dependencies=tuple(dev_deps),
            dependency_versions=versions,
            publish_to=str(publish_to) if publish_to is not None else None,
        )

    @property
    def is_private(self) -> bool:
        """True if the package is never published (``publish_to: none``)."""
        return self.publish_to is not None and self.publish_to.lower() == "none"

    def has_dependency(self, name: str) -> bool:
        return name in self.dependencies or name in self.dev_dependencies

    def file_exists(self, relative_path: str) -> bool:
        return (self.path / relative_path).is_file()

    def dir_exists(self, relative_path: str) -> bool:
        return (self.path / relative_path).is_dir()


def _version_constraint(value: Any) -> str | None:
    """Extract a version constraint from a dependency spec."""
    if isinstance(value, dict):
        value = value.get("version")
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value == "any":
        return None
    return value


def _is_excluded(path: Path, root: Path) -> bool:
    try:
        relative = path.relative_to(root)
    except ValueError:
        relative = path
    return any(part in EXCLUDED_PACKAGE_DIRS for part in relative.parts)


def discover_packages(root: Path, patterns: Iterable[str]) -> list[Package]:
    """Find packages matching glob patterns under the workspace root.

    Directories that fail to parse are skipped with a warning.

    Args:
        root: Workspace root directory.
        patterns: Glob patterns relative to the root (e.g. ``packages/**``).

    Returns:
        Packages sorted by name.
    """
    seen: set[Path] = set()
    packages: list[Package] = []

    for pattern in patterns:
        for candidate in sorted(root.glob(pattern)):
            if candidate in seen or _is_excluded(candidate, root):
                continue
            if not candidate.is_dir() or not (candidate / PUBSPEC_FILE).is_file():
                continue
            seen.add(candidate)
            try:
                packages.append(Package.from_path(candidate))
            except ConfigurationError as e:
                logger.warning("Skipping package at %s: %s", candidate, e.message)

    packages.sort(key=lambda p: p.name)
    return packages
