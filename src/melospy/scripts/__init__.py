"""Named script resolution and command-string helpers."""

from melospy.scripts.engine import ScriptEngine
from melospy.scripts.parsing import (
    MAX_SCRIPT_DEPTH,
    ExecFlags,
    expand_command,
    extract_exec_command,
    extract_run_script_name,
    is_exec_command,
    normalize_line_continuations,
    parse_exec_flags,
    strip_outer_quotes,
    substitute_env_vars,
)

__all__ = [
    "MAX_SCRIPT_DEPTH",
    "ExecFlags",
    "ScriptEngine",
    "expand_command",
    "extract_exec_command",
    "extract_run_script_name",
    "is_exec_command",
    "normalize_line_continuations",
    "parse_exec_flags",
    "strip_outer_quotes",
    "substitute_env_vars",
]
