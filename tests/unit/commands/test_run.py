"""Tests for run command."""

from __future__ import annotations

import asyncio
import io
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
import typer
from rich.console import Console

from melospy.channel import Channel
from melospy.commands.base import CommandContext
from melospy.commands.run import (
    ListScriptsCommand,
    ListScriptsOptions,
    RunCommand,
    RunOptions,
    ScriptInfo,
    handle_list_scripts,
    handle_run_script,
    list_scripts,
    run_script,
)
from melospy.config.schema import PackageFilters
from melospy.errors import ScriptNotFoundError
from melospy.execution.events import PackageOutput
from melospy.workspace.workspace import Workspace

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell syntax")


def make_console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None)


def output_of(console: Console) -> str:
    return console.file.getvalue()


class TestRunCommand:
    """Tests for RunCommand."""

    def test_validate_unknown_script(self, workspace_dir: Path) -> None:
        """Should report a missing script with the available names."""
        workspace = Workspace.discover(workspace_dir)
        cmd = RunCommand(CommandContext(workspace=workspace), RunOptions(script_name="nope"))

        [error] = cmd.validate()

        assert "Script 'nope' not found" in error
        assert "analyze, ci, fail, hello, internal" in error

    def test_validate_known_script(self, workspace_dir: Path) -> None:
        workspace = Workspace.discover(workspace_dir)
        cmd = RunCommand(CommandContext(workspace=workspace), RunOptions(script_name="hello"))

        assert cmd.validate() == []

    async def test_missing_script_raises(self, workspace_dir: Path) -> None:
        """Should raise for a script that is not defined."""
        workspace = Workspace.discover(workspace_dir)

        with pytest.raises(ScriptNotFoundError):
            await run_script(workspace, "nonexistent")

    @posix_only
    async def test_runs_script(self, workspace_dir: Path) -> None:
        """Should stream the script output as events."""
        workspace = Workspace.discover(workspace_dir)
        events: Channel = Channel()

        await run_script(workspace, "hello", events=events)

        events.close()
        lines = [e.line async for e in events if isinstance(e, PackageOutput)]
        assert lines == ["hello"]

    @posix_only
    async def test_filters_reach_exec_scripts(self, workspace_dir: Path) -> None:
        """Should narrow per-package scripts with caller filters."""
        workspace = Workspace.discover(workspace_dir)
        events: Channel = Channel()

        await run_script(
            workspace, "analyze", filters=PackageFilters(scope=["pkg_b"]), events=events
        )

        events.close()
        names = {e.name async for e in events if isinstance(e, PackageOutput)}
        assert names == {"pkg_b"}


class TestListScripts:
    """Tests for script listing."""

    def test_public_scripts_sorted(self, workspace_dir: Path) -> None:
        """Should hide private scripts by default."""
        workspace = Workspace.discover(workspace_dir)

        names = [s.name for s in list_scripts(workspace)]

        assert names == ["analyze", "ci", "fail", "hello"]

    def test_include_private(self, workspace_dir: Path) -> None:
        workspace = Workspace.discover(workspace_dir)

        names = [s.name for s in list_scripts(workspace, include_private=True)]

        assert "internal" in names

    def test_group_filter(self, workspace_dir: Path) -> None:
        """Should keep scripts in any requested group."""
        workspace = Workspace.discover(workspace_dir)
        context = CommandContext(workspace=workspace)
        options = ListScriptsOptions(include_private=True, groups=["other", "maintenance"])

        scripts = ListScriptsCommand(context, options).execute()

        assert [s.name for s in scripts] == ["internal"]

    def test_modes(self, workspace_dir: Path) -> None:
        workspace = Workspace.discover(workspace_dir)

        modes = {s.name: s.mode for s in list_scripts(workspace)}

        assert modes == {"analyze": "exec", "ci": "steps", "fail": "run", "hello": "run"}

    def test_to_dict(self) -> None:
        info = ScriptInfo(
            name="ci", description="Checks", mode="steps", private=True, groups=["ci"]
        )

        assert info.to_dict() == {
            "name": "ci",
            "description": "Checks",
            "private": True,
            "steps": True,
            "groups": ["ci"],
        }

    def test_to_dict_minimal(self) -> None:
        info = ScriptInfo(name="hello", description=None, mode="run", private=False)

        assert info.to_dict() == {"name": "hello"}

    def test_handle_text(self, workspace_dir: Path) -> None:
        console = make_console()

        handle_list_scripts(Workspace.discover(workspace_dir), console=console)

        out = output_of(console)
        assert "Available scripts:" in out
        assert "-> fail - Always fails" in out
        assert "-> ci (steps)" in out
        assert "internal" not in out

    def test_handle_json(self, workspace_dir: Path) -> None:
        console = make_console()

        handle_list_scripts(
            Workspace.discover(workspace_dir), console=console, json_output=True
        )

        data = json.loads(output_of(console))
        assert [s["name"] for s in data] == ["analyze", "ci", "fail", "hello"]
        assert data[0] == {"name": "analyze", "exec": True}

    def test_handle_empty(self, workspace_dir: Path) -> None:
        console = make_console()

        handle_list_scripts(
            Workspace.discover(workspace_dir), console=console, groups=["nothing"]
        )

        assert "No scripts available." in output_of(console)


class TestHandleRunScript:
    """Tests for the run output handler."""

    @posix_only
    async def test_success(self, workspace_dir: Path) -> None:
        console, error_console = make_console(), make_console()

        await handle_run_script(
            Workspace.discover(workspace_dir),
            "ci",
            console=console,
            error_console=error_console,
        )

        out = output_of(console)
        assert "Step 1/2: hello" in out
        assert "done" in out
        assert "Script 'ci' succeeded" in out

    @posix_only
    async def test_failure_exits_non_zero(self, workspace_dir: Path) -> None:
        console, error_console = make_console(), make_console()

        with pytest.raises(typer.Exit) as exc_info:
            await handle_run_script(
                Workspace.discover(workspace_dir),
                "fail",
                console=console,
                error_console=error_console,
            )

        assert exc_info.value.exit_code == 1
        assert "Error: Script 'fail' failed running 'exit 3' (exit code 3)" in output_of(
            error_console
        )
        assert "succeeded" not in output_of(console)

    async def test_unknown_script(self, workspace_dir: Path) -> None:
        console, error_console = make_console(), make_console()

        with pytest.raises(typer.Exit):
            await handle_run_script(
                Workspace.discover(workspace_dir),
                "missing",
                console=console,
                error_console=error_console,
            )

        assert "Script 'missing' not found" in output_of(error_console)

    async def test_watch_without_targets(self, workspace_dir: Path) -> None:
        console, error_console = make_console(), make_console()

        await handle_run_script(
            Workspace.discover(workspace_dir),
            "hello",
            console=console,
            error_console=error_console,
            filters=PackageFilters(scope=["nothing"]),
            watch=True,
        )

        assert "No packages to watch." in output_of(console)

    async def test_watch_stops_when_engine_returns(self, workspace_dir: Path) -> None:
        """Should stop the file watcher once the watch loop ends."""
        console, error_console = make_console(), make_console()
        watched: list[str] = []

        async def fake_watch_packages(targets, changes, shutdown, interval=0.5):
            watched.extend(p.name for p in targets)
            await shutdown.wait()
            changes.close()

        with patch("melospy.commands.run.watch_packages", fake_watch_packages), patch(
            "melospy.commands.run.ScriptEngine.watch", AsyncMock()
        ) as engine_watch:
            await asyncio.wait_for(
                handle_run_script(
                    Workspace.discover(workspace_dir),
                    "analyze",
                    console=console,
                    error_console=error_console,
                    watch=True,
                ),
                timeout=5,
            )

        engine_watch.assert_awaited_once()
        assert sorted(watched) == ["pkg_a", "pkg_b", "pkg_c"]
        out = output_of(console)
        assert "Watching 3 package(s) for changes..." in out
        assert "Stopped watching." in out
