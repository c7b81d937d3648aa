"""Run command implementation."""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console
from rich.markup import escape

from melospy.channel import Channel
from melospy.commands.base import Command, CommandContext, SyncCommand
from melospy.config.schema import PackageFilters
from melospy.errors import MelosError
from melospy.scripts import ScriptEngine
from melospy.watcher import PackageChangeEvent, watch_packages

if TYPE_CHECKING:
    from melospy.execution import EventChannel
    from melospy.workspace.workspace import Workspace


@dataclass
class RunOptions:
    """Options for run command."""

    script_name: str
    filters: PackageFilters | None = None


class RunCommand(Command[None]):
    """Run a named script from melos.yaml.

    Resolution, nesting and per-package execution are handled by
    :class:`ScriptEngine`; failures surface as exceptions.
    """

    def __init__(self, context: CommandContext, options: RunOptions) -> None:
        super().__init__(context)
        self.options = options

    def validate(self) -> list[str]:
        """Validate the command."""
        errors = super().validate()

        script = self.workspace.config.get_script(self.options.script_name)
        if not script:
            errors.append(
                f"Script '{self.options.script_name}' not found. "
                f"Available: {', '.join(self.workspace.config.script_names)}"
            )

        return errors

    def engine(self) -> ScriptEngine:
        return ScriptEngine(self.workspace, events=self.context.events)

    async def execute(self) -> None:
        """Execute the script."""
        await self.engine().run(self.options.script_name, self.options.filters)


async def run_script(
    workspace: Workspace,
    script_name: str,
    *,
    filters: PackageFilters | None = None,
    events: EventChannel | None = None,
) -> None:
    """Convenience function to run a script.

    Args:
        workspace: Workspace to run in.
        script_name: Script to run.
        filters: Package filters narrowing per-package steps.
        events: Event channel for output.

    Raises:
        MelosError: If the script is missing, misconfigured or fails.
    """
    context = CommandContext(workspace=workspace, events=events)
    cmd = RunCommand(context, RunOptions(script_name=script_name, filters=filters))
    await cmd.execute()


@dataclass
class ScriptInfo:
    """A script as shown by ``run --list``."""

    name: str
    description: str | None
    mode: str
    private: bool
    groups: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.description:
            data["description"] = self.description
        if self.private:
            data["private"] = True
        if self.mode != "run":
            data[self.mode] = True
        if self.groups:
            data["groups"] = self.groups
        return data


@dataclass
class ListScriptsOptions:
    """Options for listing scripts."""

    include_private: bool = False
    groups: list[str] = field(default_factory=list)


class ListScriptsCommand(SyncCommand[list[ScriptInfo]]):
    """List scripts defined in melos.yaml, sorted by name."""

    def __init__(self, context: CommandContext, options: ListScriptsOptions | None = None) -> None:
        super().__init__(context)
        self.options = options or ListScriptsOptions()

    def execute(self) -> list[ScriptInfo]:
        infos: list[ScriptInfo] = []
        for name in self.workspace.config.script_names:
            script = self.workspace.config.scripts[name]
            if script.private and not self.options.include_private:
                continue
            if self.options.groups and not any(script.in_group(g) for g in self.options.groups):
                continue

            if script.steps is not None:
                mode = "steps"
            elif script.exec_command is not None:
                mode = "exec"
            else:
                mode = "run"

            infos.append(
                ScriptInfo(
                    name=name,
                    description=script.description.strip() if script.description else None,
                    mode=mode,
                    private=script.private,
                    groups=list(script.groups),
                )
            )
        return infos


def list_scripts(
    workspace: Workspace,
    *,
    include_private: bool = False,
    groups: Sequence[str] = (),
) -> list[ScriptInfo]:
    context = CommandContext(workspace=workspace)
    options = ListScriptsOptions(include_private=include_private, groups=list(groups))
    return ListScriptsCommand(context, options).execute()


def handle_list_scripts(
    workspace: Workspace,
    *,
    console: Console,
    json_output: bool = False,
    include_private: bool = False,
    groups: Sequence[str] = (),
) -> None:
    scripts = list_scripts(workspace, include_private=include_private, groups=groups)

    if json_output:
        console.print_json(json.dumps([s.to_dict() for s in scripts]))
        return

    if not scripts:
        console.print("No scripts available.")
        return

    console.print("\n[bold]Available scripts:[/bold]\n")
    for info in scripts:
        desc = f" - [dim]{escape(info.description)}[/dim]" if info.description else ""
        mode = f" [dim]({info.mode})[/dim]" if info.mode != "run" else ""
        private = " [dim]\\[private][/dim]" if info.private else ""
        console.print(f"  [cyan]->[/cyan] [bold]{escape(info.name)}[/bold]{desc}{mode}{private}")
    console.print()


async def _watch_script(
    workspace: Workspace,
    script_name: str,
    *,
    console: Console,
    events: EventChannel,
    filters: PackageFilters | None,
) -> None:
    engine = ScriptEngine(workspace, events=events)
    targets = engine.watch_targets(script_name, filters)
    if not targets:
        console.print("[yellow]No packages to watch.[/yellow]")
        return

    console.print(
        f"\n[blue]i[/blue] Watching {len(targets)} package(s) for changes... "
        "Press [bold]Ctrl+C[/bold] to stop."
    )

    changes: Channel[PackageChangeEvent] = Channel()
    shutdown = asyncio.Event()

    loop = asyncio.get_running_loop()
    # Not available on Windows; Ctrl+C raises KeyboardInterrupt there.
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, shutdown.set)

    watcher = asyncio.create_task(watch_packages(targets, changes, shutdown))
    try:
        await engine.watch(script_name, changes, shutdown, filters=filters)
    finally:
        shutdown.set()
        await watcher
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.remove_signal_handler(signal.SIGINT)

    console.print("\n[yellow]![/yellow] Stopped watching.")


async def handle_run_script(
    workspace: Workspace,
    script_name: str,
    *,
    console: Console,
    error_console: Console,
    filters: PackageFilters | None = None,
    watch: bool = False,
    verbose: bool = False,
) -> None:
    from melospy.cli.render import rendering

    try:
        async with rendering(console, error_console, verbose=verbose) as events:
            if watch:
                await _watch_script(
                    workspace,
                    script_name,
                    console=console,
                    events=events,
                    filters=filters,
                )
            else:
                await run_script(workspace, script_name, filters=filters, events=events)
    except MelosError as e:
        error_console.print(f"[red]Error:[/red] {escape(e.message)}")
        raise typer.Exit(1) from e

    if not watch:
        console.print(f"\n[green]Script '{escape(script_name)}' succeeded[/green]")
