"""Filter chain composition."""

from __future__ import annotations

from collections.abc import Sequence

from melospy.config.schema import PackageFilters
from melospy.filters.ignore import filter_by_ignore
from melospy.filters.scope import filter_by_scope
from melospy.workspace.package import Package


def _matches_attributes(package: Package, filters: PackageFilters) -> bool:
    if filters.flutter is not None and package.is_flutter != filters.flutter:
        return False
    if filters.dir_exists and not package.dir_exists(filters.dir_exists):
        return False
    if filters.file_exists and not package.file_exists(filters.file_exists):
        return False
    if filters.depends_on and not all(package.has_dependency(d) for d in filters.depends_on):
        return False
    if filters.no_depends_on and any(package.has_dependency(d) for d in filters.no_depends_on):
        return False
    if filters.no_private and package.is_private:
        return False
    if filters.published is not None and package.is_private == filters.published:
        return False
    return True


def _closure(
    matched: list[Package],
    universe: Sequence[Package],
    *,
    dependencies: bool,
    dependents: bool,
) -> list[Package]:
    """Extend ``matched`` with transitive dependencies and/or dependents."""
    by_name = {p.name: p for p in universe}
    selected = {p.name for p in matched}
    frontier = list(selected)

    while frontier:
        name = frontier.pop()
        pkg = by_name[name]
        neighbours: list[str] = []
        if dependencies:
            neighbours.extend(d for d in (*pkg.dependencies, *pkg.dev_dependencies) if d in by_name)
        if dependents:
            neighbours.extend(p.name for p in universe if p.has_dependency(name))
        for neighbour in neighbours:
            if neighbour not in selected:
                selected.add(neighbour)
                frontier.append(neighbour)

    # Preserve the universe's ordering.
    return [p for p in universe if p.name in selected]


def apply_filters(
    packages: Sequence[Package],
    filters: PackageFilters | None,
) -> list[Package]:
    """Apply one set of package filters.

    Filters are applied in order:
    1. Scope pattern matching
    2. Ignore pattern exclusion
    3. Package attributes (flutter, files, dependencies, privacy)
    4. Transitive dependency/dependent expansion within ``packages``

    Args:
        packages: Packages to filter.
        filters: Filter criteria (None matches everything).

    Returns:
        Matching packages in their original order.
    """
    result = list(packages)
    if filters is None or filters.is_empty():
        return result

    result = filter_by_scope(result, filters.scope)
    result = filter_by_ignore(result, filters.ignore)
    result = [p for p in result if _matches_attributes(p, filters)]

    if filters.include_dependencies or filters.include_dependents:
        result = _closure(
            result,
            packages,
            dependencies=filters.include_dependencies,
            dependents=filters.include_dependents,
        )

    return result


def select_packages(
    packages: Sequence[Package],
    *filter_sets: PackageFilters | None,
) -> list[Package]:
    """Apply several filter sets in turn, each narrowing the previous result.

    Used to combine a script's own ``packageFilters`` (applied first) with
    filters supplied by the caller.

    Args:
        packages: All workspace packages.
        *filter_sets: Filter sets in application order; None entries are skipped.

    Returns:
        Selected packages, deduplicated by name, in their original order.
    """
    seen: set[str] = set()
    result: list[Package] = []
    for pkg in packages:
        if pkg.name not in seen:
            seen.add(pkg.name)
            result.append(pkg)

    for filters in filter_sets:
        result = apply_filters(result, filters)
    return result
