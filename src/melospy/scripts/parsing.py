"""Command-string helpers for named scripts.

Everything here is pure string processing on the ``run``/``exec``/``steps``
values found in melos.yaml, so it can be tested without a workspace.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from melospy.config.schema import DEFAULT_EXEC_CONCURRENCY

MAX_SCRIPT_DEPTH = 16

CLI_NAME = "melospy"

_EXEC_PREFIXES = (f"{CLI_NAME} exec", "melos exec")
_RUN_PREFIXES = (f"{CLI_NAME} run ", "melos run ")

_VALUE_FLAGS = frozenset({"-c", "--concurrency", "--timeout", "--file-exists"})
_SWITCH_FLAGS = frozenset({"--fail-fast", "--order-dependents", "--dry-run"})

# A bare ``melos`` word, not part of ``melos-rs`` or a file name like ``melos.yaml``.
_MELOS_WORD = re.compile(r"\bmelos\b(?![-.])")


@dataclass
class ExecFlags:
    """Flags parsed from a ``melos exec [flags] -- <command>`` string."""

    concurrency: int = DEFAULT_EXEC_CONCURRENCY
    fail_fast: bool = False
    order_dependents: bool = False
    timeout: float | None = None
    dry_run: bool = False
    file_exists: str | None = None


def parse_exec_flags(command: str) -> ExecFlags:
    """Parse exec flags up to the ``--`` separator.

    Recognizes ``-c N`` / ``--concurrency N``, ``--fail-fast``,
    ``--order-dependents``, ``--timeout N`` (positive whole seconds),
    ``--dry-run`` and ``--file-exists[=]PATH``. Unknown tokens and
    unparseable values are ignored.
    """
    flags = ExecFlags()
    parts = command.split()

    i = 0
    while i < len(parts):
        part = parts[i]
        if part == "--":
            break
        if part in ("-c", "--concurrency"):
            if i + 1 < len(parts):
                if parts[i + 1].isdigit():
                    flags.concurrency = int(parts[i + 1])
                i += 1
        elif part == "--fail-fast":
            flags.fail_fast = True
        elif part == "--order-dependents":
            flags.order_dependents = True
        elif part == "--dry-run":
            flags.dry_run = True
        elif part == "--timeout":
            if i + 1 < len(parts):
                if parts[i + 1].isdigit() and int(parts[i + 1]) > 0:
                    flags.timeout = float(parts[i + 1])
                i += 1
        elif part == "--file-exists":
            if i + 1 < len(parts):
                flags.file_exists = strip_outer_quotes(parts[i + 1])
                i += 1
        elif part.startswith("--file-exists="):
            flags.file_exists = strip_outer_quotes(part[len("--file-exists=") :])
        i += 1

    return flags


def is_exec_command(command: str) -> bool:
    """True if the command runs through ``melos exec`` / ``melospy exec``."""
    return any(prefix in command for prefix in _EXEC_PREFIXES)


def extract_exec_command(command: str) -> str:
    """Extract the per-package command from an exec string.

    The command is everything after a standalone ``--`` token. Without a
    separator, the exec prefix and every known flag are stripped instead.
    Matching outer quotes are removed in both cases.
    """
    parts = command.split()
    if "--" in parts:
        return strip_outer_quotes(" ".join(parts[parts.index("--") + 1 :]))

    stripped = command
    for prefix in _EXEC_PREFIXES:
        stripped = stripped.replace(prefix, "")

    kept: list[str] = []
    skip_next = False
    for part in stripped.split():
        if skip_next:
            skip_next = False
            continue
        if part in _VALUE_FLAGS:
            skip_next = True
            continue
        if part in _SWITCH_FLAGS or part.startswith("--file-exists="):
            continue
        kept.append(part)

    return strip_outer_quotes(" ".join(kept))


def strip_outer_quotes(value: str) -> str:
    """Remove one pair of matching outer single or double quotes."""
    trimmed = value.strip()
    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in ("'", '"'):
        return trimmed[1:-1]
    return trimmed


def extract_run_script_name(command: str) -> str | None:
    """Return ``X`` for a plain ``melos run X`` / ``melospy run X`` command.

    Returns None when the command has any other shape, including extra
    arguments after the script name.
    """
    trimmed = command.strip()
    for prefix in _RUN_PREFIXES:
        if trimmed.startswith(prefix):
            rest = trimmed[len(prefix) :].strip()
            if not rest or any(c.isspace() for c in rest):
                return None
            return rest
    return None


def normalize_line_continuations(command: str) -> str:
    """Collapse ``backslash + newline + indentation`` into a single space."""
    return re.sub(r"\\\n[ \t]*", " ", command)


def substitute_env_vars(command: str, env: Mapping[str, str]) -> str:
    """Replace ``${NAME}`` and ``$NAME`` references with values from ``env``.

    Longer names are substituted first, and the bare form only matches when
    the name is not followed by another word character, so ``$MELOS_ROOT``
    never clobbers ``$MELOS_ROOT_PATH``. Unknown variables are left for the
    shell.
    """
    result = command
    for key in sorted(env, key=len, reverse=True):
        value = env[key]
        result = result.replace(f"${{{key}}}", value)
        pattern = re.compile(rf"\${re.escape(key)}(?![A-Za-z0-9_])")
        result = pattern.sub(lambda _match, v=value: v, result)
    return result


def expand_command(command: str) -> list[str]:
    """Split a command on ``&&`` and point bare ``melos`` calls at melospy.

    >>> expand_command("melos run a && melos run b")
    ['melospy run a', 'melospy run b']
    """
    return [_MELOS_WORD.sub(CLI_NAME, part.strip()) for part in command.strip().split("&&")]
