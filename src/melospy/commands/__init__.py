"""melospy commands."""

from melospy.commands.base import (
    Command,
    CommandContext,
    SyncCommand,
    filter_workspace_packages,
)
from melospy.commands.bootstrap import (
    BootstrapCommand,
    BootstrapOptions,
    BootstrapResult,
    bootstrap,
    build_pub_get_command,
    handle_bootstrap_command,
)
from melospy.commands.clean import (
    CleanCommand,
    CleanOptions,
    CleanResult,
    clean,
    handle_clean_command,
)
from melospy.commands.exec import ExecCommand, ExecOptions, exec_command, handle_exec_command
from melospy.commands.list import (
    CyclesCommand,
    ListCommand,
    ListFormat,
    ListOptions,
    ListResult,
    PackageInfo,
    find_cycles,
    handle_list_command,
    list_packages,
)
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

__all__ = [
    # Base
    "Command",
    "SyncCommand",
    "CommandContext",
    "filter_workspace_packages",
    # Run
    "RunCommand",
    "RunOptions",
    "run_script",
    "handle_run_script",
    "ListScriptsCommand",
    "ListScriptsOptions",
    "ScriptInfo",
    "list_scripts",
    "handle_list_scripts",
    # Bootstrap
    "BootstrapCommand",
    "BootstrapOptions",
    "BootstrapResult",
    "bootstrap",
    "build_pub_get_command",
    "handle_bootstrap_command",
    # Clean
    "CleanCommand",
    "CleanOptions",
    "CleanResult",
    "clean",
    "handle_clean_command",
    # Exec
    "ExecCommand",
    "ExecOptions",
    "exec_command",
    "handle_exec_command",
    # List
    "ListCommand",
    "ListOptions",
    "ListResult",
    "ListFormat",
    "PackageInfo",
    "list_packages",
    "CyclesCommand",
    "find_cycles",
    "handle_list_command",
]
