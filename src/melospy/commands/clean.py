"""Clean command implementation."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape

from melospy.commands.base import Command, CommandContext, filter_workspace_packages
from melospy.config.schema import PackageFilters
from melospy.execution import BatchResult, EventChannel, ProcessRunner

if TYPE_CHECKING:
    from pathlib import Path

    from melospy.workspace import Package
    from melospy.workspace.workspace import Workspace

logger = logging.getLogger(__name__)

# Build output removed from pure Dart packages.
DART_CLEAN_DIRS = ("build", ".dart_tool")

# Removed from every package by a deep clean.
DEEP_CLEAN_DIRS = (".dart_tool", "build")
DEEP_CLEAN_FILES = ("pubspec.lock",)

FLUTTER_CLEAN_COMMAND = "flutter clean"


@dataclass
class CleanOptions:
    """Options for clean command."""

    filters: PackageFilters | None = None
    deep: bool = False


@dataclass
class CleanResult:
    """Result of clean command.

    Attributes:
        packages: Selected packages.
        flutter_results: ``flutter clean`` results for Flutter packages.
        removed: Paths deleted from disk.
        errors: Paths that could not be deleted, with the reason.
    """

    packages: list[Package]
    flutter_results: BatchResult = field(default_factory=BatchResult)
    removed: list[Path] = field(default_factory=list)
    errors: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.flutter_results.all_success and not self.errors


class CleanCommand(Command[CleanResult]):
    """Clean build artifacts from packages.

    Flutter packages run ``flutter clean`` one at a time. Pure Dart packages
    have their ``build`` and ``.dart_tool`` directories removed. A deep clean
    also removes those directories and ``pubspec.lock`` from every package.
    """

    def __init__(self, context: CommandContext, options: CleanOptions | None = None) -> None:
        super().__init__(context)
        self.options = options or CleanOptions()

    def get_packages(self) -> list[Package]:
        return filter_workspace_packages(self.workspace, self.options.filters)

    def _remove(self, path: Path, result: CleanResult) -> None:
        try:
            if path.is_dir():
                shutil.rmtree(path)
            elif path.is_file():
                path.unlink()
            else:
                return
        except OSError as e:
            logger.warning("Failed to remove %s: %s", path, e)
            result.errors.append((path, str(e)))
        else:
            result.removed.append(path)

    async def execute(self) -> CleanResult:
        """Execute the clean command."""
        packages = self.get_packages()
        result = CleanResult(packages=packages)
        if not packages or self.context.dry_run:
            return result

        flutter_packages = [p for p in packages if p.is_flutter]
        if flutter_packages:
            env = self.workspace.env_vars()
            env.update(self.context.env)
            runner = ProcessRunner(concurrency=1, fail_fast=False)
            result.flutter_results = await runner.run_in_packages(
                flutter_packages,
                FLUTTER_CLEAN_COMMAND,
                env,
                events=self.context.events,
                all_packages=self.workspace.package_list,
            )

        for pkg in packages:
            if not pkg.is_flutter:
                for name in DART_CLEAN_DIRS:
                    self._remove(pkg.path / name, result)

        if self.options.deep:
            for pkg in packages:
                for name in (*DEEP_CLEAN_DIRS, *DEEP_CLEAN_FILES):
                    self._remove(pkg.path / name, result)

        return result


async def clean(
    workspace: Workspace,
    *,
    filters: PackageFilters | None = None,
    deep: bool = False,
    dry_run: bool = False,
    events: EventChannel | None = None,
) -> CleanResult:
    """Convenience function to clean packages.

    Args:
        workspace: Workspace to clean.
        filters: Package filters.
        deep: Also remove ``.dart_tool``, ``build`` and ``pubspec.lock`` everywhere.
        dry_run: Only resolve the packages that would be cleaned.
        events: Event channel for ``flutter clean`` output.

    Returns:
        Clean result.
    """
    context = CommandContext(workspace=workspace, dry_run=dry_run, events=events)
    options = CleanOptions(filters=filters, deep=deep)
    cmd = CleanCommand(context, options)
    return await cmd.execute()


async def handle_clean_command(
    workspace: Workspace,
    *,
    console: Console,
    error_console: Console,
    filters: PackageFilters | None = None,
    deep: bool = False,
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    from melospy.cli.render import rendering

    async with rendering(console, error_console, verbose=verbose) as events:
        result = await clean(workspace, filters=filters, deep=deep, dry_run=dry_run, events=events)

    if not result.packages:
        console.print("[yellow]No packages matched the filters.[/yellow]")
        return

    if dry_run:
        for pkg in result.packages:
            kind = "flutter" if pkg.is_flutter else "dart"
            console.print(f"  -> {escape(pkg.name)} [dim]({kind})[/dim]")
        if deep:
            also = ", ".join((*DEEP_CLEAN_DIRS, *DEEP_CLEAN_FILES))
            console.print(f"Deep clean would also remove: {also}")
        console.print("[yellow]Dry run - no packages were cleaned[/yellow]")
        return

    for path, reason in result.errors:
        error_console.print(f"[yellow]Failed to remove {escape(str(path))}:[/yellow] {reason}")

    if result.success:
        console.print(
            f"\n[green]Cleaned {len(result.packages)} package(s), "
            f"removed {len(result.removed)} path(s)[/green]"
        )
        return

    failed = ", ".join(escape(name) for name in sorted(result.flutter_results.failed_packages))
    if failed:
        error_console.print(f"\n[red]flutter clean failed in:[/red] {failed}")
    raise typer.Exit(1)
