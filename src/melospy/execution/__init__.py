"""Command execution: process runner, events and results."""

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
    Warning,
    emit,
)
from melospy.execution.parallel import ProcessRunner, execute_parallel
from melospy.execution.results import BatchResult, ExecutionResult
from melospy.execution.runner import (
    build_package_env,
    find_parent_package,
    run_in_package,
    run_in_root,
    shell_command,
)

__all__ = [
    "BatchResult",
    "CommandFinished",
    "CommandStarted",
    "Event",
    "EventChannel",
    "ExecutionResult",
    "Info",
    "PackageFinished",
    "PackageOutput",
    "PackageStarted",
    "ProcessRunner",
    "Progress",
    "Warning",
    "build_package_env",
    "emit",
    "execute_parallel",
    "find_parent_package",
    "run_in_package",
    "run_in_root",
    "shell_command",
]
