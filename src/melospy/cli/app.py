"""melospy CLI application."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from melospy.config.schema import DEFAULT_EXEC_CONCURRENCY, PackageFilters
from melospy.errors import MelosError
from melospy.workspace import Workspace

console = Console()
error_console = Console(stderr=True)

_state = {"verbose": False}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from melospy import __version__

        print(f"melospy {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Send melospy log records to stderr through rich."""
    logger = logging.getLogger("melospy")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=error_console,
        rich_tracebacks=True,
        show_time=verbose,
        show_path=False,
    )
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


app = typer.Typer(
    name="melospy",
    help="Monorepo manager for Dart and Flutter workspaces",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def _app_callback(
    version: Annotated[  # noqa: ARG001
        bool,
        typer.Option("--version", "-V", help="Show version and exit", callback=version_callback),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging and per-package progress"),
    ] = False,
) -> None:
    """Monorepo manager for Dart and Flutter workspaces."""
    _state["verbose"] = verbose
    configure_logging(verbose)


def parse_comma_list(values: list[str] | None) -> list[str] | None:
    """Flatten repeated and comma-separated option values."""
    if not values:
        return None
    items = [item.strip() for value in values for item in value.split(",") if item.strip()]
    return items or None


def build_filters(
    *,
    scope: list[str] | None = None,
    ignore: list[str] | None = None,
    flutter: bool | None = None,
    dir_exists: str | None = None,
    file_exists: str | None = None,
    depends_on: list[str] | None = None,
    no_depends_on: list[str] | None = None,
    no_private: bool = False,
    published: bool | None = None,
    include_dependencies: bool = False,
    include_dependents: bool = False,
) -> PackageFilters | None:
    """Build package filters from CLI options, or None when nothing is set."""
    filters = PackageFilters(
        scope=parse_comma_list(scope),
        ignore=parse_comma_list(ignore),
        flutter=flutter,
        dir_exists=dir_exists,
        file_exists=file_exists,
        depends_on=parse_comma_list(depends_on),
        no_depends_on=parse_comma_list(no_depends_on),
        no_private=no_private,
        published=published,
        include_dependencies=include_dependencies,
        include_dependents=include_dependents,
    )
    return None if filters.is_empty() else filters


def get_workspace(path: Path | None = None) -> Workspace:
    """Load workspace from current directory or specified path."""
    try:
        return Workspace.discover(path)
    except MelosError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e


ScopeOption = Annotated[
    list[str] | None,
    typer.Option("--scope", "-s", help="Include only packages matching these names or globs"),
]
IgnoreOption = Annotated[
    list[str] | None,
    typer.Option("--ignore", "-i", help="Exclude packages matching these names or globs"),
]
FlutterOption = Annotated[
    bool | None,
    typer.Option("--flutter/--no-flutter", help="Only Flutter (or only Dart) packages"),
]
DirExistsOption = Annotated[
    str | None,
    typer.Option("--dir-exists", help="Only packages containing this directory"),
]
FileExistsOption = Annotated[
    str | None,
    typer.Option("--file-exists", help="Only packages containing this file"),
]
DependsOnOption = Annotated[
    list[str] | None,
    typer.Option("--depends-on", help="Only packages depending on these packages"),
]
NoDependsOnOption = Annotated[
    list[str] | None,
    typer.Option("--no-depends-on", help="Exclude packages depending on these packages"),
]
NoPrivateOption = Annotated[
    bool,
    typer.Option("--no-private", help="Exclude private packages"),
]
PublishedOption = Annotated[
    bool | None,
    typer.Option("--published/--no-published", help="Only published (or only private) packages"),
]
IncludeDependenciesOption = Annotated[
    bool,
    typer.Option("--include-dependencies", help="Also select transitive dependencies"),
]
IncludeDependentsOption = Annotated[
    bool,
    typer.Option("--include-dependents", help="Also select transitive dependents"),
]


@app.command("run")
def run_cmd(
    script: Annotated[
        str | None,
        typer.Argument(help="Script name to run"),
    ] = None,
    list_: Annotated[
        bool,
        typer.Option("--list", "-l", help="List available scripts"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the script list as JSON"),
    ] = False,
    include_private: Annotated[
        bool,
        typer.Option("--include-private", help="Include private scripts in the list"),
    ] = False,
    group: Annotated[
        list[str] | None,
        typer.Option("--group", "-g", help="Only list scripts in this group"),
    ] = None,
    watch: Annotated[
        bool,
        typer.Option("--watch", "-w", help="Re-run the script when package files change"),
    ] = False,
    scope: ScopeOption = None,
    ignore: IgnoreOption = None,
    flutter: FlutterOption = None,
    dir_exists: DirExistsOption = None,
    file_exists: FileExistsOption = None,
    depends_on: DependsOnOption = None,
    no_depends_on: NoDependsOnOption = None,
    no_private: NoPrivateOption = False,
    published: PublishedOption = None,
    include_dependencies: IncludeDependenciesOption = False,
    include_dependents: IncludeDependentsOption = False,
) -> None:
    """Run a script defined in melos.yaml."""
    from melospy.commands import handle_list_scripts, handle_run_script

    workspace = get_workspace()

    if list_:
        handle_list_scripts(
            workspace,
            console=console,
            json_output=json_output,
            include_private=include_private,
            groups=parse_comma_list(group) or [],
        )
        return

    if not script:
        error_console.print("[red]Error:[/red] Missing script name (use --list to see scripts)")
        raise typer.Exit(1)

    filters = build_filters(
        scope=scope,
        ignore=ignore,
        flutter=flutter,
        dir_exists=dir_exists,
        file_exists=file_exists,
        depends_on=depends_on,
        no_depends_on=no_depends_on,
        no_private=no_private,
        published=published,
        include_dependencies=include_dependencies,
        include_dependents=include_dependents,
    )

    asyncio.run(
        handle_run_script(
            workspace,
            script,
            console=console,
            error_console=error_console,
            filters=filters,
            watch=watch,
            verbose=_state["verbose"],
        )
    )


@app.command("exec")
def exec_cmd(
    command: Annotated[str, typer.Argument(help="Command to execute in each package")],
    concurrency: Annotated[
        int,
        typer.Option("--concurrency", "-c", min=1, help="Parallel jobs"),
    ] = DEFAULT_EXEC_CONCURRENCY,
    fail_fast: Annotated[
        bool,
        typer.Option("--fail-fast", help="Stop launching packages after the first failure"),
    ] = False,
    order_dependents: Annotated[
        bool,
        typer.Option("--order-dependents", help="Run dependencies before their dependents"),
    ] = False,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", min=0, help="Per-package timeout in seconds"),
    ] = None,
    scope: ScopeOption = None,
    ignore: IgnoreOption = None,
    flutter: FlutterOption = None,
    dir_exists: DirExistsOption = None,
    file_exists: FileExistsOption = None,
    depends_on: DependsOnOption = None,
    no_depends_on: NoDependsOnOption = None,
    no_private: NoPrivateOption = False,
    published: PublishedOption = None,
    include_dependencies: IncludeDependenciesOption = False,
    include_dependents: IncludeDependentsOption = False,
) -> None:
    """Execute an arbitrary command in each package."""
    from melospy.commands import handle_exec_command

    workspace = get_workspace()
    filters = build_filters(
        scope=scope,
        ignore=ignore,
        flutter=flutter,
        dir_exists=dir_exists,
        file_exists=file_exists,
        depends_on=depends_on,
        no_depends_on=no_depends_on,
        no_private=no_private,
        published=published,
        include_dependencies=include_dependencies,
        include_dependents=include_dependents,
    )

    asyncio.run(
        handle_exec_command(
            workspace,
            command,
            console=console,
            error_console=error_console,
            filters=filters,
            concurrency=concurrency,
            fail_fast=fail_fast,
            order_dependents=order_dependents,
            timeout=timeout or None,
            verbose=_state["verbose"],
        )
    )


@app.command("list")
def list_cmd(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    cycles: Annotated[
        bool,
        typer.Option("--cycles", help="Report dependency cycles"),
    ] = False,
    topological: Annotated[
        bool,
        typer.Option("--topological", help="Order packages by dependencies"),
    ] = False,
    scope: ScopeOption = None,
    ignore: IgnoreOption = None,
    flutter: FlutterOption = None,
    dir_exists: DirExistsOption = None,
    file_exists: FileExistsOption = None,
    depends_on: DependsOnOption = None,
    no_depends_on: NoDependsOnOption = None,
    no_private: NoPrivateOption = False,
    published: PublishedOption = None,
    include_dependencies: IncludeDependenciesOption = False,
    include_dependents: IncludeDependentsOption = False,
) -> None:
    """List workspace packages."""
    from melospy.commands import handle_list_command

    workspace = get_workspace()
    filters = build_filters(
        scope=scope,
        ignore=ignore,
        flutter=flutter,
        dir_exists=dir_exists,
        file_exists=file_exists,
        depends_on=depends_on,
        no_depends_on=no_depends_on,
        no_private=no_private,
        published=published,
        include_dependencies=include_dependencies,
        include_dependents=include_dependents,
    )

    handle_list_command(
        workspace,
        console=console,
        filters=filters,
        json_output=json_output,
        cycles=cycles,
        topological=topological,
    )


@app.command("bootstrap")
def bootstrap_cmd(
    concurrency: Annotated[
        int,
        typer.Option("--concurrency", "-c", min=1, help="Parallel pub get jobs"),
    ] = DEFAULT_EXEC_CONCURRENCY,
    enforce_lockfile: Annotated[
        bool,
        typer.Option("--enforce-lockfile", help="Fail if pubspec.lock would change"),
    ] = False,
    no_example: Annotated[
        bool,
        typer.Option("--no-example", help="Skip resolving example packages"),
    ] = False,
    offline: Annotated[
        bool,
        typer.Option("--offline", help="Resolve from the pub cache only"),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show the packages and their order only"),
    ] = False,
    scope: ScopeOption = None,
    ignore: IgnoreOption = None,
    flutter: FlutterOption = None,
    dir_exists: DirExistsOption = None,
    file_exists: FileExistsOption = None,
    depends_on: DependsOnOption = None,
    no_depends_on: NoDependsOnOption = None,
    no_private: NoPrivateOption = False,
    published: PublishedOption = None,
    include_dependencies: IncludeDependenciesOption = False,
    include_dependents: IncludeDependentsOption = False,
) -> None:
    """Run pub get in each package, dependencies first."""
    from melospy.commands import handle_bootstrap_command

    workspace = get_workspace()
    filters = build_filters(
        scope=scope,
        ignore=ignore,
        flutter=flutter,
        dir_exists=dir_exists,
        file_exists=file_exists,
        depends_on=depends_on,
        no_depends_on=no_depends_on,
        no_private=no_private,
        published=published,
        include_dependencies=include_dependencies,
        include_dependents=include_dependents,
    )

    asyncio.run(
        handle_bootstrap_command(
            workspace,
            console=console,
            error_console=error_console,
            filters=filters,
            concurrency=concurrency,
            enforce_lockfile=enforce_lockfile,
            no_example=no_example,
            offline=offline,
            dry_run=dry_run,
            verbose=_state["verbose"],
        )
    )


@app.command("clean")
def clean_cmd(
    deep: Annotated[
        bool,
        typer.Option("--deep", help="Also remove .dart_tool, build and pubspec.lock"),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show the packages that would be cleaned"),
    ] = False,
    scope: ScopeOption = None,
    ignore: IgnoreOption = None,
    flutter: FlutterOption = None,
    dir_exists: DirExistsOption = None,
    file_exists: FileExistsOption = None,
    depends_on: DependsOnOption = None,
    no_depends_on: NoDependsOnOption = None,
    no_private: NoPrivateOption = False,
    published: PublishedOption = None,
    include_dependencies: IncludeDependenciesOption = False,
    include_dependents: IncludeDependentsOption = False,
) -> None:
    """Remove build artifacts from packages."""
    from melospy.commands import handle_clean_command

    workspace = get_workspace()
    filters = build_filters(
        scope=scope,
        ignore=ignore,
        flutter=flutter,
        dir_exists=dir_exists,
        file_exists=file_exists,
        depends_on=depends_on,
        no_depends_on=no_depends_on,
        no_private=no_private,
        published=published,
        include_dependencies=include_dependencies,
        include_dependents=include_dependents,
    )

    asyncio.run(
        handle_clean_command(
            workspace,
            console=console,
            error_console=error_console,
            filters=filters,
            deep=deep,
            dry_run=dry_run,
            verbose=_state["verbose"],
        )
    )


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
