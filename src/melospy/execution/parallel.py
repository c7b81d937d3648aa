"""Parallel command execution with concurrency control."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence

from melospy.execution.events import (
    CommandFinished,
    CommandStarted,
    EventChannel,
    Progress,
    emit,
)
from melospy.execution.results import BatchResult, ExecutionResult
from melospy.execution.runner import build_package_env, run_in_package
from melospy.workspace.package import Package

logger = logging.getLogger(__name__)


class ProcessRunner:
    """Execute a command across packages with bounded parallelism.

    Attributes:
        concurrency: Maximum number of processes running at once.
        fail_fast: Stop launching new processes after the first failure.
    """

    def __init__(self, concurrency: int = 5, fail_fast: bool = False) -> None:
        """Initialize runner.

        Args:
            concurrency: Maximum parallel processes (values below 1 become 1).
            fail_fast: Stop launching after the first failure.
        """
        self.concurrency = max(1, concurrency)
        self.fail_fast = fail_fast

    async def run_in_packages(
        self,
        packages: Sequence[Package],
        command: str,
        env: Mapping[str, str] | None = None,
        *,
        timeout: float | None = None,
        events: EventChannel | None = None,
        all_packages: Sequence[Package] = (),
    ) -> BatchResult:
        """Run a command in every package directory.

        Every package is queued at once; a semaphore lets at most
        ``concurrency`` of them run. With ``fail_fast``, packages that reach
        the semaphore after a failure are recorded as failed without being
        spawned. Processes already running are left to finish, so a few
        packages may still complete after the first failure.

        Args:
            packages: Packages to run in (already filtered and ordered).
            command: Shell command to execute.
            env: Workspace and script variables.
            timeout: Per-package timeout in seconds.
            events: Event channel for progress and output.
            all_packages: Full workspace package list, for parent package
                detection. Empty disables the parent variables.

        Returns:
            Batch result in completion order.
        """
        base_env = dict(env or {})
        semaphore = asyncio.Semaphore(self.concurrency)
        results: list[ExecutionResult] = []
        failed = False
        total = len(packages)

        emit(events, CommandStarted(command=command, package_count=total))
        start_time = time.monotonic()

        async def run_one(pkg: Package) -> None:
            nonlocal failed
            pkg_env = build_package_env(base_env, pkg, all_packages)

            async with semaphore:
                if self.fail_fast and failed:
                    logger.debug("Skipping %s after earlier failure", pkg.name)
                    result = ExecutionResult(package_name=pkg.name, success=False)
                else:
                    result = await run_in_package(
                        pkg,
                        command,
                        env=pkg_env,
                        timeout=timeout,
                        events=events,
                    )

                if result.failed:
                    failed = True
                results.append(result)
                emit(events, Progress(completed=len(results), total=total, message=pkg.name))

        await asyncio.gather(*(run_one(pkg) for pkg in packages))

        emit(events, CommandFinished(command=command, duration=time.monotonic() - start_time))
        return BatchResult(results=results)


async def execute_parallel(
    packages: Sequence[Package],
    command: str,
    *,
    concurrency: int = 5,
    fail_fast: bool = False,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    events: EventChannel | None = None,
) -> BatchResult:
    """Convenience function for parallel execution.

    Args:
        packages: Packages to run command in.
        command: Shell command to execute.
        concurrency: Maximum parallel executions.
        fail_fast: Stop on first failure.
        env: Environment variables.
        timeout: Per-package timeout in seconds.
        events: Event channel.

    Returns:
        Batch result with all execution results.
    """
    runner = ProcessRunner(concurrency=concurrency, fail_fast=fail_fast)
    return await runner.run_in_packages(
        packages,
        command,
        env,
        timeout=timeout,
        events=events,
        all_packages=packages,
    )
