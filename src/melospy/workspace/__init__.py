"""Workspace model: packages, dependency graph and discovery."""

from melospy.workspace.graph import CycleResult, detect_cycles, topological_sort
from melospy.workspace.package import Package, discover_packages
from melospy.workspace.workspace import Workspace

__all__ = [
    "CycleResult",
    "Package",
    "Workspace",
    "detect_cycles",
    "discover_packages",
    "topological_sort",
]
