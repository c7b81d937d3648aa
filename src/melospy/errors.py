"""Exception hierarchy for melospy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from melospy.execution.results import ExecutionResult


class MelosError(Exception):
    """Base class for all melospy errors.

    Attributes:
        message: Human readable description of the failure.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(MelosError):
    """Invalid or unreadable workspace configuration."""

    def __init__(self, message: str, path: str | None = None) -> None:
        if path:
            message = f"{path}: {message}"
        super().__init__(message)
        self.path = path


class WorkspaceNotFoundError(MelosError):
    """No melos.yaml found in the directory or any parent."""

    def __init__(self, start: str) -> None:
        super().__init__(f"No melos.yaml found in {start} or any parent directory")
        self.start = start


class ScriptNotFoundError(MelosError):
    """Requested script is not defined in the config."""

    def __init__(self, script_name: str, available: list[str]) -> None:
        listing = ", ".join(sorted(available)) if available else "none"
        super().__init__(f"Script '{script_name}' not found. Available: {listing}")
        self.script_name = script_name
        self.available = available


class ScriptRecursionError(MelosError):
    """Nested script references went deeper than the allowed maximum."""

    def __init__(self, max_depth: int, script_name: str) -> None:
        super().__init__(
            f"Script recursion depth exceeded ({max_depth} levels) at '{script_name}'. "
            "Check for deeply nested 'melos run' references."
        )
        self.max_depth = max_depth
        self.script_name = script_name


class CircularScriptError(MelosError):
    """A script references itself through a chain of other scripts."""

    def __init__(self, chain: list[str]) -> None:
        super().__init__(f"Circular script reference detected: {' -> '.join(chain)}")
        self.chain = chain


class ScriptFailedError(MelosError):
    """A root-level command or step of a script exited unsuccessfully."""

    def __init__(self, script_name: str, command: str, exit_code: int | None) -> None:
        detail = _exit_detail(exit_code)
        super().__init__(f"Script '{script_name}' failed running '{command}' ({detail})")
        self.script_name = script_name
        self.command = command
        self.exit_code = exit_code


class PackagesFailedError(MelosError):
    """One or more packages failed during a per-package script.

    Attributes:
        script_name: Script that ran the per-package command.
        results: Failed results, each carrying its exit code (None when the
            package timed out, could not be spawned or was skipped).
        packages: Names of the failed packages.
    """

    def __init__(self, script_name: str, results: list[ExecutionResult]) -> None:
        details = ", ".join(
            f"{r.package_name} ({_exit_detail(r.exit_code)})" for r in results
        )
        super().__init__(f"Script '{script_name}' failed in {len(results)} package(s): {details}")
        self.script_name = script_name
        self.results = results
        self.packages = [r.package_name for r in results]


def _exit_detail(exit_code: int | None) -> str:
    return f"exit code {exit_code}" if exit_code is not None else "no exit code"
