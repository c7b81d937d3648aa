"""Plain line renderer for the execution event stream."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from rich.console import Console
from rich.markup import escape

from melospy.channel import Channel
from melospy.execution.events import (
    CommandFinished,
    CommandStarted,
    Event,
    EventChannel,
    Info,
    PackageFinished,
    PackageOutput,
    PackageStarted,
    Progress,
)
from melospy.execution.events import Warning as WarningEvent


class EventRenderer:
    """Print events as prefixed lines.

    Package output is printed as ``[pkg] line``; stderr lines go to the
    error console. ``PackageStarted`` and ``Progress`` are only shown when
    ``verbose`` is set.
    """

    def __init__(self, console: Console, error_console: Console, verbose: bool = False) -> None:
        self.console = console
        self.error_console = error_console
        self.verbose = verbose

    def handle(self, event: Event) -> None:
        if isinstance(event, PackageOutput):
            prefix = escape(f"[{event.name}] ")
            if event.is_stderr:
                self.error_console.print(f"[red]{prefix}[/red]{escape(event.line)}")
            else:
                self.console.print(f"[dim]{prefix}[/dim]{escape(event.line)}")
        elif isinstance(event, PackageFinished):
            name = escape(f"[{event.name}]")
            if event.success:
                self.console.print(f"[green]✓[/green] {name} ({event.duration:.2f}s)")
            else:
                self.error_console.print(f"[red]✗[/red] {name} ({event.duration:.2f}s)")
        elif isinstance(event, CommandStarted):
            self.console.print(
                f"\nRunning [bold]{escape(event.command)}[/bold] "
                f"in [cyan]{event.package_count}[/cyan] package(s)\n"
            )
        elif isinstance(event, CommandFinished):
            self.console.print(f"\n[dim]Finished in {event.duration:.2f}s[/dim]")
        elif isinstance(event, WarningEvent):
            self.error_console.print(f"[yellow]![/yellow] {escape(event.message)}")
        elif isinstance(event, Info):
            self.console.print(f"[blue]i[/blue] {escape(event.message)}")
        elif self.verbose and isinstance(event, PackageStarted):
            self.console.print(f"[dim]Starting {escape(event.name)}[/dim]")
        elif self.verbose and isinstance(event, Progress):
            self.console.print(
                f"[dim]{event.completed}/{event.total} {escape(event.message)}[/dim]"
            )

    async def consume(self, events: EventChannel) -> None:
        async for event in events:
            self.handle(event)


@asynccontextmanager
async def rendering(
    console: Console,
    error_console: Console,
    verbose: bool = False,
) -> AsyncIterator[EventChannel]:
    """Yield an event channel whose events are printed until the block exits.

    The channel is closed on exit and every event sent before that is
    rendered before the context manager returns.
    """
    events: EventChannel = Channel()
    renderer = EventRenderer(console, error_console, verbose=verbose)
    task = asyncio.create_task(renderer.consume(events))
    try:
        yield events
    finally:
        events.close()
        await task
