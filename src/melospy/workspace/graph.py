"""Dependency graph ordering and cycle detection.

Both functions work on the package set they are given: edges are only drawn
between packages present in that set, anything else is treated as an
external, already satisfied dependency.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field

from melospy.workspace.package import Package


@dataclass
class CycleResult:
    """Result of dependency cycle detection.

    Attributes:
        cycle_packages: ``(name, cycle_dependencies)`` for every package that
            participates in a cycle, sorted by name.
        total: Number of packages analyzed.
    """

    cycle_packages: list[tuple[str, list[str]]] = field(default_factory=list)
    total: int = 0

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycle_packages)


def _in_set_dependencies(package: Package, known: set[str]) -> list[str]:
    deps: list[str] = []
    for dep in (*package.dependencies, *package.dev_dependencies):
        if dep in known and dep != package.name and dep not in deps:
            deps.append(dep)
    return deps


def topological_sort(packages: Sequence[Package]) -> list[Package]:
    """Order packages so that dependencies come before their dependents.

    Uses Kahn's algorithm with a FIFO queue seeded in input order, so
    packages without an ordering constraint keep their relative order.
    Packages stuck in a cycle are appended in their original order instead
    of raising.

    Args:
        packages: Packages to order (already filtered).

    Returns:
        Packages in dependency order.
    """
    known = {p.name for p in packages}
    index = {p.name: i for i, p in enumerate(packages)}

    # Edges point from a dependency to the packages waiting on it.
    dependents: dict[str, list[str]] = {p.name: [] for p in packages}
    in_degree: dict[str, int] = {}
    for pkg in packages:
        deps = _in_set_dependencies(pkg, known)
        in_degree[pkg.name] = len(deps)
        for dep in deps:
            dependents[dep].append(pkg.name)

    queue = deque(p.name for p in packages if in_degree[p.name] == 0)
    ordered: list[Package] = []
    placed: set[str] = set()

    while queue:
        name = queue.popleft()
        ordered.append(packages[index[name]])
        placed.add(name)
        for dependent in dependents[name]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    ordered.extend(p for p in packages if p.name not in placed)
    return ordered


def _kahn_residual(names: Sequence[str], edges: dict[str, list[str]]) -> set[str]:
    """Nodes Kahn's algorithm never frees when following ``edges``."""
    in_degree = dict.fromkeys(names, 0)
    for name in names:
        for target in edges[name]:
            in_degree[target] += 1

    queue = deque(name for name in names if in_degree[name] == 0)
    while queue:
        name = queue.popleft()
        for target in edges[name]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                queue.append(target)

    return {name for name, degree in in_degree.items() if degree > 0}


def detect_cycles(packages: Sequence[Package]) -> CycleResult:
    """Detect circular dependencies among packages.

    Kahn's algorithm is run over the dependency edges and again over the
    reversed edges. A package left over by both passes sits on a cycle;
    packages that merely depend on a cycle, or that a cycle depends on, are
    freed by one of the two passes.

    Args:
        packages: Packages to analyze (already filtered).

    Returns:
        Cycle detection result.
    """
    known = {p.name for p in packages}
    names = list(dict.fromkeys(p.name for p in packages))

    adjacency: dict[str, list[str]] = {name: [] for name in names}
    reverse: dict[str, list[str]] = {name: [] for name in names}
    for pkg in packages:
        for dep in _in_set_dependencies(pkg, known):
            if dep not in adjacency[pkg.name]:
                adjacency[pkg.name].append(dep)
                reverse[dep].append(pkg.name)

    total = len(names)
    in_cycle = _kahn_residual(names, adjacency) & _kahn_residual(names, reverse)
    if not in_cycle:
        return CycleResult(total=total)

    cycle_packages = [
        (name, [dep for dep in adjacency[name] if dep in in_cycle]) for name in sorted(in_cycle)
    ]
    return CycleResult(cycle_packages=cycle_packages, total=total)
