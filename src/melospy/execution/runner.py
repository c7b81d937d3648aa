"""Single-process execution with streaming output."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

from melospy.execution.events import (
    EventChannel,
    PackageFinished,
    PackageOutput,
    PackageStarted,
    emit,
)
from melospy.execution.results import ExecutionResult
from melospy.workspace.package import Package

logger = logging.getLogger(__name__)

# Longest output line emitted as one event; longer lines are split into pieces.
STREAM_LIMIT = 1024 * 1024

READ_CHUNK_SIZE = 64 * 1024

# Time allowed for output readers to drain after a timed-out process is killed.
KILL_GRACE_SECONDS = 1.0


def shell_command() -> tuple[str, str]:
    """Return the platform shell and its command flag."""
    if sys.platform == "win32":
        return "cmd", "/C"
    return "sh", "-c"


def find_parent_package(package: Package, all_packages: Sequence[Package]) -> Package | None:
    """Find the package an ``example`` package belongs to.

    A package is a child when its name ends with ``example`` and its path
    lies under another package's path. The deepest such parent wins.

    Args:
        package: Candidate child package.
        all_packages: All workspace packages.

    Returns:
        The parent package, or None.
    """
    if not package.name.endswith("example"):
        return None

    best: Package | None = None
    for candidate in all_packages:
        if candidate.name == package.name:
            continue
        if not package.path.is_relative_to(candidate.path):
            continue
        if best is None or len(str(candidate.path)) > len(str(best.path)):
            best = candidate
    return best


def build_package_env(
    env: Mapping[str, str],
    package: Package,
    all_packages: Sequence[Package] = (),
) -> dict[str, str]:
    """Build the environment for one package's process.

    Adds ``MELOS_PACKAGE_NAME``, ``MELOS_PACKAGE_PATH`` and
    ``MELOS_PACKAGE_VERSION`` (when the package has a version), plus
    ``MELOS_PARENT_PACKAGE_*`` for example packages nested in another package.

    Args:
        env: Workspace and script variables.
        package: Package the process runs in.
        all_packages: All workspace packages, for parent detection.

    Returns:
        A new dict; ``env`` is not modified.
    """
    run_env = dict(env)
    run_env["MELOS_PACKAGE_NAME"] = package.name
    run_env["MELOS_PACKAGE_PATH"] = str(package.path)
    if package.version is not None:
        run_env["MELOS_PACKAGE_VERSION"] = package.version

    parent = find_parent_package(package, all_packages)
    if parent is not None:
        run_env["MELOS_PARENT_PACKAGE_NAME"] = parent.name
        run_env["MELOS_PARENT_PACKAGE_PATH"] = str(parent.path)
        if parent.version is not None:
            run_env["MELOS_PARENT_PACKAGE_VERSION"] = parent.version

    return run_env


async def spawn_shell(
    command: str,
    cwd: Path,
    env: Mapping[str, str],
) -> asyncio.subprocess.Process:
    """Start ``command`` through the platform shell.

    stdin is closed and stdout/stderr are piped. On POSIX the process gets
    its own session so a timeout can kill the whole process group.
    """
    shell, flag = shell_command()
    run_env = os.environ.copy()
    run_env.update(env)

    kwargs = {"start_new_session": True} if os.name == "posix" else {}
    return await asyncio.create_subprocess_exec(
        shell,
        flag,
        command,
        cwd=str(cwd),
        env=run_env,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        limit=STREAM_LIMIT,
        **kwargs,
    )


def _kill(process: asyncio.subprocess.Process) -> None:
    if os.name == "posix":
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(process.pid, signal.SIGKILL)
    else:
        with contextlib.suppress(ProcessLookupError):
            process.kill()


async def _read_stream(
    stream: asyncio.StreamReader,
    name: str,
    is_stderr: bool,
    events: EventChannel | None,
) -> None:
    """Read from stream until EOF, emitting each line as it arrives.

    Lines longer than ``STREAM_LIMIT`` bytes are emitted in pieces so the
    pipe keeps draining whatever the child writes.
    """

    def send(raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").rstrip("\r")
        emit(events, PackageOutput(name=name, line=line, is_stderr=is_stderr))

    pending = b""
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        *lines, pending = (pending + chunk).split(b"\n")
        for line in lines:
            send(line)
        while len(pending) >= STREAM_LIMIT:
            logger.debug("Splitting output line from %s at %d bytes", name, STREAM_LIMIT)
            send(pending[:STREAM_LIMIT])
            pending = pending[STREAM_LIMIT:]

    if pending:
        send(pending)


async def _finish_readers(readers: list[asyncio.Task[None]], grace: float | None) -> None:
    _, pending = await asyncio.wait(readers, timeout=grace)
    for task in pending:
        task.cancel()
    await asyncio.gather(*readers, return_exceptions=True)


async def run_in_package(
    package: Package,
    command: str,
    *,
    env: Mapping[str, str],
    timeout: float | None = None,
    events: EventChannel | None = None,
) -> ExecutionResult:
    """Run a command in a package directory.

    Emits ``PackageStarted``, one ``PackageOutput`` per line and
    ``PackageFinished``. Spawn errors and timeouts produce a synthetic
    ``ERROR:`` / ``TIMEOUT:`` stderr line and a failed result.

    Args:
        package: Package to run command in (its path is the cwd).
        command: Shell command to execute.
        env: Complete environment overlay for the process.
        timeout: Timeout in seconds.
        events: Event channel.

    Returns:
        Execution result.
    """
    name = package.name
    emit(events, PackageStarted(name=name))
    start_time = time.monotonic()
    exit_code: int | None = None

    try:
        process = await spawn_shell(command, package.path, env)
    except (OSError, ValueError) as e:
        logger.debug("Failed to spawn %r in %s: %s", command, name, e)
        emit(events, PackageOutput(name=name, line=f"ERROR: {e}", is_stderr=True))
    else:
        assert process.stdout is not None and process.stderr is not None
        readers = [
            asyncio.create_task(_read_stream(process.stdout, name, False, events)),
            asyncio.create_task(_read_stream(process.stderr, name, True, events)),
        ]
        try:
            exit_code = await asyncio.wait_for(process.wait(), timeout=timeout)
        except (asyncio.TimeoutError, TimeoutError):
            logger.debug("Killing %s after %ss timeout", name, timeout)
            _kill(process)
            with contextlib.suppress(asyncio.TimeoutError, TimeoutError):
                await asyncio.wait_for(process.wait(), timeout=KILL_GRACE_SECONDS)
            await _finish_readers(readers, KILL_GRACE_SECONDS)
            emit(
                events,
                PackageOutput(
                    name=name,
                    line=f"TIMEOUT: timed out after {timeout:g}s",
                    is_stderr=True,
                ),
            )
        else:
            await _finish_readers(readers, None)

    duration = time.monotonic() - start_time
    success = exit_code == 0
    emit(events, PackageFinished(name=name, success=success, duration=duration))

    return ExecutionResult(
        package_name=name,
        success=success,
        exit_code=exit_code,
        duration_ms=int(duration * 1000),
    )


async def run_in_root(
    root: Path,
    label: str,
    command: str,
    *,
    env: Mapping[str, str],
    events: EventChannel | None = None,
) -> ExecutionResult:
    """Run a command at the workspace root as a single pseudo-package.

    Output is attributed to ``label`` and no per-package variables are added.
    """
    return await run_in_package(Package(name=label, path=root), command, env=env, events=events)
