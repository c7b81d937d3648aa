"""melospy - monorepo manager for Dart and Flutter workspaces.

A Melos-compatible orchestration tool, providing:
- Workspace discovery from melos.yaml and pubspec.yaml files
- Bounded parallel command execution with dependency ordering
- Named scripts that compose steps, per-package commands and other scripts
- Watch mode re-running scripts on package changes
- pub get bootstrapping and build output cleanup
"""

from melospy.config import MelosConfig, PackageFilters, ScriptConfig, load_config
from melospy.errors import (
    CircularScriptError,
    ConfigurationError,
    MelosError,
    PackagesFailedError,
    ScriptFailedError,
    ScriptNotFoundError,
    ScriptRecursionError,
    WorkspaceNotFoundError,
)
from melospy.execution import (
    BatchResult,
    ExecutionResult,
    ProcessRunner,
)
from melospy.scripts import ScriptEngine
from melospy.workspace import (
    CycleResult,
    Package,
    Workspace,
    detect_cycles,
    topological_sort,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Core
    "Workspace",
    "Package",
    "MelosConfig",
    "ScriptConfig",
    "PackageFilters",
    "load_config",
    # Graph
    "CycleResult",
    "detect_cycles",
    "topological_sort",
    # Execution
    "ExecutionResult",
    "BatchResult",
    "ProcessRunner",
    "ScriptEngine",
    # Errors
    "MelosError",
    "ConfigurationError",
    "WorkspaceNotFoundError",
    "ScriptNotFoundError",
    "ScriptRecursionError",
    "CircularScriptError",
    "ScriptFailedError",
    "PackagesFailedError",
]
