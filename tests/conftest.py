"""Shared test fixtures for melospy tests."""

from __future__ import annotations

import json
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from dotenv import load_dotenv

from melospy.workspace.package import Package

# Load .env from project root (doesn't override existing env vars)
load_dotenv(Path(__file__).parent.parent / ".env")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def sample_melos_yaml() -> str:
    """Sample melos.yaml content."""
    return """\
name: test_workspace
packages:
  - packages/*

scripts:
  hello: echo hello
  fail:
    run: exit 3
    description: Always fails
  analyze:
    exec: echo analyzing
    packageFilters:
      scope: "pkg_*"
  ci:
    steps:
      - hello
      - echo done
  internal:
    run: echo secret
    private: true
    groups:
      - maintenance
"""


def write_pubspec(
    root: Path,
    name: str,
    *,
    version: str | None = "1.0.0",
    dependencies: dict[str, str] | None = None,
    dev_dependencies: dict[str, str] | None = None,
    flutter: bool = False,
    publish_to: str | None = None,
) -> Path:
    """Create a package directory with a pubspec.yaml."""
    root.mkdir(parents=True, exist_ok=True)
    lines = [f"name: {name}"]
    if version is not None:
        lines.append(f"version: {version}")
    if publish_to is not None:
        lines.append(f"publish_to: {publish_to}")

    deps = dict(dependencies or {})
    if flutter:
        lines.append("dependencies:")
        lines.append("  flutter:")
        lines.append("    sdk: flutter")
        for dep, constraint in deps.items():
            lines.append(f"  {dep}: {json.dumps(constraint)}")
    elif deps:
        lines.append("dependencies:")
        for dep, constraint in deps.items():
            lines.append(f"  {dep}: {json.dumps(constraint)}")

    if dev_dependencies:
        lines.append("dev_dependencies:")
        for dep, constraint in dev_dependencies.items():
            lines.append(f"  {dep}: {json.dumps(constraint)}")

    (root / "pubspec.yaml").write_text("\n".join(lines) + "\n")
    return root


@pytest.fixture
def workspace_dir(temp_dir: Path, sample_melos_yaml: str) -> Path:
    """Create a sample workspace directory structure.

    Packages:
        pkg_a: no dependencies
        pkg_b: depends on pkg_a
        pkg_c: depends on pkg_b, dev-depends on test
        app: Flutter app depending on pkg_c, never published
    """
    (temp_dir / "melos.yaml").write_text(sample_melos_yaml)

    packages_dir = temp_dir / "packages"
    write_pubspec(packages_dir / "pkg_a", "pkg_a", version="1.0.0")
    write_pubspec(
        packages_dir / "pkg_b",
        "pkg_b",
        version="2.0.0",
        dependencies={"pkg_a": "^1.0.0"},
    )
    write_pubspec(
        packages_dir / "pkg_c",
        "pkg_c",
        version="0.1.0",
        dependencies={"pkg_b": "any"},
        dev_dependencies={"test": "^1.24.0"},
    )
    write_pubspec(
        packages_dir / "app",
        "app",
        version=None,
        dependencies={"pkg_c": "any"},
        flutter=True,
        publish_to="none",
    )
    (packages_dir / "app" / "lib").mkdir()

    return temp_dir


def make_package(
    name: str,
    path: Path | str | None = None,
    *,
    version: str | None = None,
    dependencies: tuple[str, ...] = (),
    dev_dependencies: tuple[str, ...] = (),
) -> Package:
    """Build an in-memory package for graph and runner tests."""
    return Package(
        name=name,
        path=Path(path) if path is not None else Path("/ws/packages") / name,
        version=version,
        dependencies=dependencies,
        dev_dependencies=dev_dependencies,
    )


@pytest.fixture
def package_factory():
    """Factory for in-memory packages."""
    return make_package


@pytest.fixture
def pubspec_writer():
    """Factory writing package directories with a pubspec.yaml."""
    return write_pubspec
