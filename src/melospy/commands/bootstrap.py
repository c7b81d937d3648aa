"""Bootstrap command implementation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape

from melospy.commands.base import Command, CommandContext, filter_workspace_packages
from melospy.config.schema import DEFAULT_EXEC_CONCURRENCY, PackageFilters
from melospy.execution import BatchResult, EventChannel, ProcessRunner
from melospy.execution.events import Info, emit
from melospy.workspace.graph import topological_sort

if TYPE_CHECKING:
    from melospy.workspace import Package
    from melospy.workspace.workspace import Workspace


def build_pub_get_command(
    sdk: str,
    *,
    enforce_lockfile: bool = False,
    no_example: bool = False,
    offline: bool = False,
) -> str:
    """Build ``<sdk> pub get`` with its optional flags."""
    parts = [sdk, "pub", "get"]
    if enforce_lockfile:
        parts.append("--enforce-lockfile")
    if no_example:
        parts.append("--no-example")
    if offline:
        parts.append("--offline")
    return " ".join(parts)


@dataclass
class BootstrapOptions:
    """Options for bootstrap command.

    ``enforce_lockfile`` and ``offline`` are combined with the matching
    ``command.bootstrap`` settings from melos.yaml; either source enables them.
    """

    filters: PackageFilters | None = None
    concurrency: int = DEFAULT_EXEC_CONCURRENCY
    enforce_lockfile: bool = False
    no_example: bool = False
    offline: bool = False


@dataclass
class BootstrapResult:
    """Result of bootstrap command.

    Attributes:
        packages: Selected packages in dependency order.
        results: ``pub get`` results. Packages never launched after a failure
            have no entry.
    """

    packages: list[Package]
    results: BatchResult = field(default_factory=BatchResult)

    @property
    def success(self) -> bool:
        return self.results.all_success


class BootstrapCommand(Command[BootstrapResult]):
    """Run ``pub get`` in every selected package.

    Packages are launched in dependency order; dependency cycles do not stop
    a bootstrap. Flutter packages use ``flutter pub get`` and go first, then
    pure Dart packages use ``dart pub get``. Each group runs fail-fast and a
    failing Flutter group skips the Dart group.
    """

    def __init__(self, context: CommandContext, options: BootstrapOptions | None = None) -> None:
        super().__init__(context)
        self.options = options or BootstrapOptions()

    def get_packages(self) -> list[Package]:
        return topological_sort(filter_workspace_packages(self.workspace, self.options.filters))

    def get_concurrency(self) -> int:
        if not self.workspace.config.command.bootstrap.run_pub_get_in_parallel:
            return 1
        return self.options.concurrency

    def pub_get_command(self, sdk: str) -> str:
        config = self.workspace.config.command.bootstrap
        return build_pub_get_command(
            sdk,
            enforce_lockfile=self.options.enforce_lockfile or config.enforce_lockfile,
            no_example=self.options.no_example,
            offline=self.options.offline or config.run_pub_get_offline,
        )

    async def execute(self) -> BootstrapResult:
        """Execute bootstrap."""
        packages = self.get_packages()
        result = BootstrapResult(packages=packages)
        if not packages or self.context.dry_run:
            return result

        env = self.workspace.env_vars()
        env.update(self.context.env)
        runner = ProcessRunner(concurrency=self.get_concurrency(), fail_fast=True)

        groups = [
            ("flutter", [p for p in packages if p.is_flutter]),
            ("dart", [p for p in packages if not p.is_flutter]),
        ]
        for sdk, group in groups:
            if not group:
                continue
            command = self.pub_get_command(sdk)
            emit(self.context.events, Info(f"{command} in {len(group)} package(s)"))
            batch = await runner.run_in_packages(
                group,
                command,
                env,
                events=self.context.events,
                all_packages=self.workspace.package_list,
            )
            result.results.results.extend(batch.results)
            if not batch.all_success:
                break

        return result


async def bootstrap(
    workspace: Workspace,
    *,
    filters: PackageFilters | None = None,
    concurrency: int = DEFAULT_EXEC_CONCURRENCY,
    enforce_lockfile: bool = False,
    no_example: bool = False,
    offline: bool = False,
    dry_run: bool = False,
    events: EventChannel | None = None,
) -> BootstrapResult:
    """Convenience function to bootstrap a workspace.

    Args:
        workspace: Workspace to bootstrap.
        filters: Package filters.
        concurrency: Parallel ``pub get`` jobs.
        enforce_lockfile: Pass ``--enforce-lockfile``.
        no_example: Pass ``--no-example``.
        offline: Pass ``--offline``.
        dry_run: Only resolve the package order.
        events: Event channel for output.

    Returns:
        Bootstrap result.
    """
    context = CommandContext(workspace=workspace, dry_run=dry_run, events=events)
    options = BootstrapOptions(
        filters=filters,
        concurrency=concurrency,
        enforce_lockfile=enforce_lockfile,
        no_example=no_example,
        offline=offline,
    )
    cmd = BootstrapCommand(context, options)
    return await cmd.execute()


async def handle_bootstrap_command(
    workspace: Workspace,
    *,
    console: Console,
    error_console: Console,
    filters: PackageFilters | None = None,
    concurrency: int = DEFAULT_EXEC_CONCURRENCY,
    enforce_lockfile: bool = False,
    no_example: bool = False,
    offline: bool = False,
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    from melospy.cli.render import rendering

    async with rendering(console, error_console, verbose=verbose) as events:
        result = await bootstrap(
            workspace,
            filters=filters,
            concurrency=concurrency,
            enforce_lockfile=enforce_lockfile,
            no_example=no_example,
            offline=offline,
            dry_run=dry_run,
            events=events,
        )

    if not result.packages:
        console.print("[yellow]No packages matched the filters.[/yellow]")
        return

    if dry_run:
        for pkg in result.packages:
            kind = "flutter" if pkg.is_flutter else "dart"
            console.print(f"  -> {escape(pkg.name)} [dim]({kind})[/dim]")
        console.print("[yellow]Dry run - no packages were bootstrapped[/yellow]")
        return

    if result.success:
        console.print(f"\n[green]All {len(result.packages)} package(s) bootstrapped[/green]")
        return

    failed = ", ".join(escape(name) for name in sorted(result.results.failed_packages))
    error_console.print(f"\n[red]pub get failed in:[/red] {failed}")
    raise typer.Exit(1)
