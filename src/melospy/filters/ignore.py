"""Ignore-based package filtering."""

from __future__ import annotations

import fnmatch

from melospy.filters.scope import match_name
from melospy.workspace.package import Package


def should_ignore(package: Package, patterns: list[str]) -> bool:
    """Check if a package matches any ignore pattern.

    Patterns match the package name (see ``match_name``) or its path.

    Args:
        package: Package to check.
        patterns: List of ignore patterns.

    Returns:
        True if package should be ignored.
    """
    if not patterns:
        return False

    path_str = str(package.path)
    return any(
        match_name(package.name, pattern) or fnmatch.fnmatch(path_str, pattern)
        for pattern in patterns
    )


def filter_by_ignore(
    packages: list[Package],
    ignore: list[str] | None,
) -> list[Package]:
    """Filter out packages matching ignore patterns."""
    if not ignore:
        return packages

    return [p for p in packages if not should_ignore(p, ignore)]
