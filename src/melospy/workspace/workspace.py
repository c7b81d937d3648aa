"""Workspace: configuration plus discovered packages."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from melospy.config import MelosConfig, find_config, load_config
from melospy.workspace.package import Package, discover_packages


@dataclass
class Workspace:
    """A loaded melos workspace.

    Attributes:
        root: Absolute path of the directory holding melos.yaml.
        config: Parsed configuration.
        packages: Packages discovered in the workspace, keyed by name.
    """

    root: Path
    config: MelosConfig
    packages: dict[str, Package] = field(default_factory=dict)

    @classmethod
    def discover(cls, path: Path | None = None) -> Workspace:
        """Find melos.yaml from ``path`` upwards and load the workspace.

        Args:
            path: Starting directory (defaults to the current directory).

        Returns:
            Loaded workspace.
        """
        config_path = find_config(path)
        return cls.load(config_path)

    @classmethod
    def load(cls, config_path: Path) -> Workspace:
        config = load_config(config_path)
        root = config_path.parent.resolve()
        packages = discover_packages(root, config.packages)
        return cls(root=root, config=config, packages={p.name: p for p in packages})

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def package_list(self) -> list[Package]:
        return list(self.packages.values())

    def get_package(self, name: str) -> Package | None:
        return self.packages.get(name)

    def env_vars(self) -> dict[str, str]:
        """Workspace-level variables passed to every command.

        ``MELOS_ROOT_PATH`` is always set. When an SDK path is configured,
        ``MELOS_SDK_PATH`` is set and its ``bin`` directory is prepended to
        ``PATH``.
        """
        env = {"MELOS_ROOT_PATH": str(self.root)}
        sdk_path = self.config.sdk_path
        if sdk_path:
            env["MELOS_SDK_PATH"] = sdk_path
            sdk_bin = str(Path(sdk_path) / "bin")
            current = os.environ.get("PATH")
            env["PATH"] = f"{sdk_bin}{os.pathsep}{current}" if current else sdk_bin
        return env
