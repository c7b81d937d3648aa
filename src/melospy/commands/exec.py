"""Exec command implementation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape

from melospy.commands.base import Command, CommandContext, filter_workspace_packages
from melospy.config.schema import DEFAULT_EXEC_CONCURRENCY, PackageFilters
from melospy.execution import BatchResult, EventChannel, ProcessRunner
from melospy.workspace.graph import topological_sort

if TYPE_CHECKING:
    from melospy.workspace import Package
    from melospy.workspace.workspace import Workspace


@dataclass
class ExecOptions:
    """Options for exec command."""

    command: str
    filters: PackageFilters | None = None
    concurrency: int = DEFAULT_EXEC_CONCURRENCY
    fail_fast: bool = False
    order_dependents: bool = False
    timeout: float | None = None


class ExecCommand(Command[BatchResult]):
    """Execute an arbitrary command across packages.

    Unlike 'run', exec takes a direct command string rather
    than a script name from configuration.
    """

    def __init__(self, context: CommandContext, options: ExecOptions) -> None:
        super().__init__(context)
        self.options = options

    def get_packages(self) -> list[Package]:
        """Get packages to execute command in, dependency-ordered if requested."""
        packages = filter_workspace_packages(self.workspace, self.options.filters)
        if self.options.order_dependents:
            packages = topological_sort(packages)
        return packages

    async def execute(self) -> BatchResult:
        """Execute the command."""
        packages = self.get_packages()
        if not packages:
            return BatchResult(results=[])

        env = self.workspace.env_vars()
        env.update(self.context.env)

        runner = ProcessRunner(
            concurrency=self.options.concurrency,
            fail_fast=self.options.fail_fast,
        )
        return await runner.run_in_packages(
            packages,
            self.options.command,
            env,
            timeout=self.options.timeout,
            events=self.context.events,
            all_packages=self.workspace.package_list,
        )


async def exec_command(
    workspace: Workspace,
    command: str,
    *,
    filters: PackageFilters | None = None,
    concurrency: int = DEFAULT_EXEC_CONCURRENCY,
    fail_fast: bool = False,
    order_dependents: bool = False,
    timeout: float | None = None,
    events: EventChannel | None = None,
) -> BatchResult:
    """Convenience function to execute a command.

    Args:
        workspace: Workspace to run in.
        command: Command to execute.
        filters: Package filters.
        concurrency: Parallel jobs.
        fail_fast: Stop launching after the first failure.
        order_dependents: Run dependencies before their dependents.
        timeout: Per-package timeout in seconds.
        events: Event channel for output.

    Returns:
        Batch result.
    """
    context = CommandContext(workspace=workspace, events=events)
    options = ExecOptions(
        command=command,
        filters=filters,
        concurrency=concurrency,
        fail_fast=fail_fast,
        order_dependents=order_dependents,
        timeout=timeout,
    )
    cmd = ExecCommand(context, options)
    return await cmd.execute()


async def handle_exec_command(
    workspace: Workspace,
    command: str,
    *,
    console: Console,
    error_console: Console,
    filters: PackageFilters | None = None,
    concurrency: int = DEFAULT_EXEC_CONCURRENCY,
    fail_fast: bool = False,
    order_dependents: bool = False,
    timeout: float | None = None,
    verbose: bool = False,
) -> None:
    from melospy.cli.render import rendering

    async with rendering(console, error_console, verbose=verbose) as events:
        result = await exec_command(
            workspace,
            command,
            filters=filters,
            concurrency=concurrency,
            fail_fast=fail_fast,
            order_dependents=order_dependents,
            timeout=timeout,
            events=events,
        )

    if not len(result):
        console.print("[yellow]No packages matched the filters.[/yellow]")
        return

    if result.all_success:
        console.print(f"\n[green]All {len(result)} packages passed[/green]")
        return

    failed = ", ".join(escape(name) for name in sorted(result.failed_packages))
    error_console.print(f"\n[red]{result.failed} failed, {result.passed} passed:[/red] {failed}")
    raise typer.Exit(1)
