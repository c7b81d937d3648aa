"""Scope-based package filtering."""

from __future__ import annotations

import fnmatch

from melospy.workspace.package import Package


def parse_scope(scope: str) -> list[str]:
    """Parse a scope string into individual patterns.

    Scope can be comma-separated names or glob patterns:
    - "core,api" -> ["core", "api"]
    - "*_widgets" -> ["*_widgets"]
    - "core,*_widgets" -> ["core", "*_widgets"]

    Args:
        scope: Comma-separated scope string.

    Returns:
        List of individual patterns.
    """
    if not scope:
        return []

    patterns = [p.strip() for p in scope.split(",")]
    return [p for p in patterns if p]


def match_name(name: str, pattern: str) -> bool:
    """Check a package name against a name or glob pattern.

    Matching is case-insensitive for exact names and treats ``-`` and ``_``
    as equivalent.
    """
    if name == pattern or name.lower() == pattern.lower():
        return True

    if fnmatch.fnmatch(name, pattern):
        return True

    normalized_name = name.replace("-", "_")
    normalized_pattern = pattern.replace("-", "_")
    return fnmatch.fnmatch(normalized_name, normalized_pattern)


def match_scope(package: Package, patterns: list[str]) -> bool:
    """Check if a package matches any of the scope patterns.

    Args:
        package: Package to check.
        patterns: List of name or glob patterns.

    Returns:
        True if package matches any pattern.
    """
    if not patterns:
        return True  # No filter means match all

    return any(match_name(package.name, pattern) for pattern in patterns)


def filter_by_scope(
    packages: list[Package],
    scope: list[str] | None,
) -> list[Package]:
    """Filter packages by scope patterns."""
    if not scope:
        return packages

    return [p for p in packages if match_scope(p, scope)]
