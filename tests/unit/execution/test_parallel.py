"""Test parallel execution."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from melospy.channel import Channel
from melospy.execution.events import CommandFinished, CommandStarted, Progress
from melospy.execution.parallel import ProcessRunner, execute_parallel
from melospy.execution.results import BatchResult, ExecutionResult
from melospy.workspace.package import Package


class FakeRun:
    """Stand-in for run_in_package that tracks concurrency."""

    def __init__(self, fail: tuple[str, ...] = (), delay: float = 0.02) -> None:
        self.fail = fail
        self.delay = delay
        self.active = 0
        self.peak = 0
        self.calls: list[str] = []
        self.envs: dict[str, dict[str, str]] = {}

    async def __call__(self, package, command, *, env, timeout=None, events=None):
        self.calls.append(package.name)
        self.envs[package.name] = dict(env)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        failed = package.name in self.fail
        return ExecutionResult(package.name, not failed, exit_code=1 if failed else 0)


@pytest.fixture
def packages(package_factory):
    return [package_factory(f"pkg{i}") for i in range(8)]


class TestProcessRunner:
    """Tests for ProcessRunner."""

    def test_concurrency_clamped(self) -> None:
        assert ProcessRunner(concurrency=0).concurrency == 1
        assert ProcessRunner(concurrency=-3).concurrency == 1
        assert ProcessRunner(concurrency=4).concurrency == 4

    async def test_all_packages_run(self, packages) -> None:
        fake = FakeRun()

        with patch("melospy.execution.parallel.run_in_package", fake):
            result = await ProcessRunner(concurrency=4).run_in_packages(packages, "echo hi")

        assert isinstance(result, BatchResult)
        assert result.all_success
        assert len(result) == len(packages)
        assert sorted(fake.calls) == sorted(p.name for p in packages)

    async def test_concurrency_bound(self, packages) -> None:
        fake = FakeRun()

        with patch("melospy.execution.parallel.run_in_package", fake):
            await ProcessRunner(concurrency=3).run_in_packages(packages, "echo hi")

        assert fake.peak == 3

    async def test_sequential_when_concurrency_one(self, packages) -> None:
        fake = FakeRun()

        with patch("melospy.execution.parallel.run_in_package", fake):
            await ProcessRunner(concurrency=1).run_in_packages(packages, "echo hi")

        assert fake.peak == 1
        assert fake.calls == [p.name for p in packages]

    async def test_failures_without_fail_fast(self, packages) -> None:
        fake = FakeRun(fail=("pkg0", "pkg5"))

        with patch("melospy.execution.parallel.run_in_package", fake):
            result = await ProcessRunner(concurrency=2).run_in_packages(packages, "x")

        assert len(fake.calls) == len(packages)
        assert result.failed == 2
        assert result.passed == 6
        assert sorted(result.failed_packages) == ["pkg0", "pkg5"]

    async def test_fail_fast_skips_remaining(self, packages) -> None:
        fake = FakeRun(fail=("pkg0",))

        with patch("melospy.execution.parallel.run_in_package", fake):
            result = await ProcessRunner(concurrency=1, fail_fast=True).run_in_packages(
                packages, "x"
            )

        assert fake.calls == ["pkg0"]
        assert len(result) == len(packages)
        assert result.failed == len(packages)
        skipped = result.get("pkg3")
        assert skipped is not None
        assert skipped.exit_code is None

    async def test_fail_fast_lets_in_flight_finish(self, packages) -> None:
        fake = FakeRun(fail=("pkg0",))

        with patch("melospy.execution.parallel.run_in_package", fake):
            result = await ProcessRunner(concurrency=3, fail_fast=True).run_in_packages(
                packages, "x"
            )

        # The first three were already running when pkg0 failed
        assert sorted(fake.calls) == ["pkg0", "pkg1", "pkg2"]
        assert result.get("pkg1").success
        assert result.get("pkg2").success
        assert result.failed == len(packages) - 2

    async def test_per_package_env(self, package_factory) -> None:
        parent = package_factory("core", "/ws/packages/core", version="1.0.0")
        example = package_factory("core_example", "/ws/packages/core/example")
        fake = FakeRun()

        with patch("melospy.execution.parallel.run_in_package", fake):
            await ProcessRunner().run_in_packages(
                [example, parent],
                "x",
                {"MELOS_ROOT_PATH": "/ws"},
                all_packages=[parent, example],
            )

        assert fake.envs["core"]["MELOS_PACKAGE_NAME"] == "core"
        assert fake.envs["core"]["MELOS_ROOT_PATH"] == "/ws"
        assert "MELOS_PARENT_PACKAGE_NAME" not in fake.envs["core"]
        assert fake.envs["core_example"]["MELOS_PACKAGE_NAME"] == "core_example"
        assert fake.envs["core_example"]["MELOS_PARENT_PACKAGE_NAME"] == "core"

    async def test_parent_lookup_disabled_without_all_packages(self, package_factory) -> None:
        parent = package_factory("core", "/ws/packages/core")
        example = package_factory("core_example", "/ws/packages/core/example")
        fake = FakeRun()

        with patch("melospy.execution.parallel.run_in_package", fake):
            await ProcessRunner().run_in_packages([example, parent], "x")

        assert "MELOS_PARENT_PACKAGE_NAME" not in fake.envs["core_example"]

    async def test_command_and_progress_events(self, packages) -> None:
        events: Channel = Channel()
        fake = FakeRun()

        with patch("melospy.execution.parallel.run_in_package", fake):
            await ProcessRunner(concurrency=2).run_in_packages(packages, "echo hi", events=events)

        events.close()
        collected = [e async for e in events]
        assert collected[0] == CommandStarted(command="echo hi", package_count=len(packages))
        assert isinstance(collected[-1], CommandFinished)
        progress = [e for e in collected if isinstance(e, Progress)]
        assert [p.completed for p in progress] == list(range(1, len(packages) + 1))
        assert all(p.total == len(packages) for p in progress)

    async def test_empty_package_list(self) -> None:
        result = await ProcessRunner().run_in_packages([], "echo hi")

        assert len(result) == 0
        assert result.all_success


@pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell syntax")
class TestProcessRunnerRealProcesses:
    """Tests spawning real processes."""

    async def test_timeout_per_package(self, temp_dir: Path) -> None:
        fast = temp_dir / "fast"
        slow = temp_dir / "slow"
        fast.mkdir()
        slow.mkdir()
        packages = [Package(name="fast", path=fast), Package(name="slow", path=slow)]
        command = 'if [ "$MELOS_PACKAGE_NAME" = slow ]; then sleep 10; fi'

        result = await ProcessRunner(concurrency=2).run_in_packages(packages, command, timeout=0.3)

        assert result.get("fast").success
        assert not result.get("slow").success

    async def test_execute_parallel(self, temp_dir: Path) -> None:
        packages = []
        for name in ("a", "b", "c"):
            (temp_dir / name).mkdir()
            packages.append(Package(name=name, path=temp_dir / name))

        result = await execute_parallel(packages, "test -d .", concurrency=2)

        assert result.all_success
        assert [r.package_name for r in result.sorted_by_name()] == ["a", "b", "c"]
