"""List command implementation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from melospy.commands.base import CommandContext, SyncCommand, filter_workspace_packages
from melospy.config.schema import PackageFilters
from melospy.workspace.graph import CycleResult, detect_cycles, topological_sort

if TYPE_CHECKING:
    from melospy.workspace.workspace import Workspace


class ListFormat(Enum):
    """Output format for list command."""

    TABLE = "table"
    JSON = "json"


@dataclass
class PackageInfo:
    """Information about a package for display."""

    name: str
    version: str | None
    path: str
    flutter: bool
    private: bool
    dependencies: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version or "unknown",
            "path": self.path,
            "flutter": self.flutter,
            "private": self.private,
            "dependencies": self.dependencies,
        }


@dataclass
class ListResult:
    """Result of list command."""

    packages: list[PackageInfo] = field(default_factory=list)


@dataclass
class ListOptions:
    """Options for list command."""

    filters: PackageFilters | None = None
    format: ListFormat = ListFormat.TABLE
    topological: bool = False


class ListCommand(SyncCommand[ListResult]):
    """List packages in the workspace.

    Packages are sorted by name, or in dependency order with
    ``topological``.
    """

    def __init__(self, context: CommandContext, options: ListOptions | None = None) -> None:
        super().__init__(context)
        self.options = options or ListOptions()

    def execute(self) -> ListResult:
        """Execute the list command."""
        packages = filter_workspace_packages(self.workspace, self.options.filters)
        if self.options.topological:
            packages = topological_sort(packages)

        infos = [
            PackageInfo(
                name=pkg.name,
                version=pkg.version,
                path=_display_path(pkg.path, self.workspace.root),
                flutter=pkg.is_flutter,
                private=pkg.is_private,
                dependencies=list(pkg.dependencies),
            )
            for pkg in packages
        ]
        return ListResult(packages=infos)


class CyclesCommand(SyncCommand[CycleResult]):
    """Detect dependency cycles among the selected packages."""

    def __init__(self, context: CommandContext, filters: PackageFilters | None = None) -> None:
        super().__init__(context)
        self.filters = filters

    def execute(self) -> CycleResult:
        return detect_cycles(filter_workspace_packages(self.workspace, self.filters))


def _display_path(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def list_packages(
    workspace: Workspace,
    *,
    filters: PackageFilters | None = None,
    format: ListFormat = ListFormat.TABLE,
    topological: bool = False,
) -> ListResult:
    """Convenience function to list packages.

    Args:
        workspace: Workspace to list.
        filters: Package filters.
        format: Output format.
        topological: Order by dependencies instead of by name.

    Returns:
        List result with package info.
    """
    context = CommandContext(workspace=workspace)
    options = ListOptions(filters=filters, format=format, topological=topological)
    return ListCommand(context, options).execute()


def find_cycles(workspace: Workspace, *, filters: PackageFilters | None = None) -> CycleResult:
    context = CommandContext(workspace=workspace)
    return CyclesCommand(context, filters).execute()


def handle_list_command(
    workspace: Workspace,
    *,
    console: Console,
    filters: PackageFilters | None = None,
    json_output: bool = False,
    cycles: bool = False,
    topological: bool = False,
) -> None:
    if cycles:
        result = find_cycles(workspace, filters=filters)
        if not result.has_cycles:
            console.print(
                f"\n  [green]OK[/green] No dependency cycles detected ({result.total} packages).\n"
            )
            return
        console.print(
            f"\n  [bold yellow]WARNING[/bold yellow] Dependency cycle(s) detected involving "
            f"{len(result.cycle_packages)} package(s):\n"
        )
        for name, deps in result.cycle_packages:
            console.print(f"    [bold]{escape(name)}[/bold] -> {escape(', '.join(deps))}")
        console.print()
        return

    fmt = ListFormat.JSON if json_output else ListFormat.TABLE
    listing = list_packages(workspace, filters=filters, format=fmt, topological=topological)

    if fmt is ListFormat.JSON:
        console.print_json(json.dumps([p.to_dict() for p in listing.packages]))
        return

    table = Table(title="Packages")
    table.add_column("Name", style="bold")
    table.add_column("Version")
    table.add_column("Path")
    table.add_column("Type")
    table.add_column("Dependencies")

    for pkg in listing.packages:
        kind = "flutter" if pkg.flutter else "dart"
        if pkg.private:
            kind += " (private)"
        deps = ", ".join(pkg.dependencies) if pkg.dependencies else "-"
        table.add_row(pkg.name, pkg.version or "-", pkg.path, kind, deps)

    console.print(table)
