"""Tests for the package file watcher."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from melospy.channel import Channel
from melospy.watcher import (
    PackageChangeEvent,
    find_owning_package,
    format_changed_packages,
    has_watched_extension,
    should_ignore_path,
    watch_packages,
)
from melospy.workspace.package import Package


class TestPathRules:
    """Tests for ignore and extension rules."""

    @pytest.mark.parametrize(
        "path",
        [
            "/ws/packages/core/.dart_tool/package_config.json",
            "/ws/packages/core/build/app.dart",
            "/ws/packages/app/ios/Pods/Manifest.json",
            "/ws/.idea/workspace.json",
            "packages/core/.vscode/settings.json",
        ],
    )
    def test_ignored(self, path: str) -> None:
        assert should_ignore_path(Path(path))

    @pytest.mark.parametrize(
        "path",
        [
            "/ws/packages/core/lib/src/builder.dart",
            "/ws/packages/core/lib/build.dart",
            "/ws/packages/ios/lib/pods.dart",
        ],
    )
    def test_not_ignored(self, path: str) -> None:
        assert not should_ignore_path(Path(path))

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("main.dart", True),
            ("model.g.dart", True),
            ("pubspec.yaml", True),
            ("intl_en.arb", True),
            ("data.json", True),
            ("README.md", False),
            ("image.png", False),
        ],
    )
    def test_extensions(self, name: str, expected: bool) -> None:
        assert has_watched_extension(Path(name)) is expected


class TestOwningPackage:
    """Tests for find_owning_package."""

    def test_most_specific_package(self, package_factory) -> None:
        core = package_factory("core", "/ws/packages/core")
        example = package_factory("core_example", "/ws/packages/core/example")
        packages = [core, example]

        assert find_owning_package(Path("/ws/packages/core/lib/a.dart"), packages) == "core"
        assert (
            find_owning_package(Path("/ws/packages/core/example/lib/main.dart"), packages)
            == "core_example"
        )

    def test_outside_every_package(self, package_factory) -> None:
        core = package_factory("core", "/ws/packages/core")

        assert find_owning_package(Path("/ws/tool/script.dart"), [core]) is None
        assert find_owning_package(Path("/ws/packages/core_extra/a.dart"), [core]) is None

    def test_format_changed_packages(self) -> None:
        assert format_changed_packages({"zeta", "alpha"}) == "alpha, zeta"


class TestWatchPackages:
    """Tests for the polling loop."""

    @pytest.fixture
    def packages(self, temp_dir: Path) -> list[Package]:
        result = []
        for name in ("core", "api"):
            lib = temp_dir / name / "lib"
            lib.mkdir(parents=True)
            (lib / f"{name}.dart").write_text("// v1\n")
            result.append(Package(name=name, path=temp_dir / name))
        return result

    @staticmethod
    def touch(path: Path) -> None:
        path.write_text("// changed\n")
        stat = path.stat()
        # Bump the mtime explicitly so coarse filesystem clocks still see a change.
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))

    async def run_watcher(self, packages, action) -> list[PackageChangeEvent]:
        changes: Channel[PackageChangeEvent] = Channel()
        shutdown = asyncio.Event()
        task = asyncio.create_task(watch_packages(packages, changes, shutdown, interval=0.05))
        await asyncio.sleep(0.1)
        action()
        await asyncio.sleep(0.3)
        shutdown.set()
        await asyncio.wait_for(task, timeout=2)
        return [event async for event in changes]

    async def test_reports_changed_package(self, packages, temp_dir: Path) -> None:
        events = await self.run_watcher(
            packages, lambda: self.touch(temp_dir / "core" / "lib" / "core.dart")
        )

        assert events == [PackageChangeEvent("core")]

    async def test_new_file(self, packages, temp_dir: Path) -> None:
        events = await self.run_watcher(
            packages, lambda: (temp_dir / "api" / "lib" / "new.dart").write_text("")
        )

        assert events == [PackageChangeEvent("api")]

    async def test_deleted_file(self, packages, temp_dir: Path) -> None:
        events = await self.run_watcher(
            packages, lambda: (temp_dir / "api" / "lib" / "api.dart").unlink()
        )

        assert events == [PackageChangeEvent("api")]

    async def test_ignored_changes(self, packages, temp_dir: Path) -> None:
        def action() -> None:
            tool_dir = temp_dir / "core" / ".dart_tool"
            tool_dir.mkdir()
            (tool_dir / "package_config.json").write_text("{}")
            (temp_dir / "core" / "notes.md").write_text("notes")

        events = await self.run_watcher(packages, action)

        assert events == []

    async def test_closes_channel_on_shutdown(self, packages) -> None:
        changes: Channel[PackageChangeEvent] = Channel()
        shutdown = asyncio.Event()
        shutdown.set()

        await asyncio.wait_for(watch_packages(packages, changes, shutdown), timeout=2)

        assert changes.closed
