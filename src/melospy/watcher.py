"""Polling file watcher for package directories."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from melospy.channel import Channel
from melospy.workspace.package import Package

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5

# Dart/Flutter source and config files; ``.g.dart`` is covered by ``.dart``.
WATCHED_EXTENSIONS = frozenset({".dart", ".yaml", ".json", ".arb"})

IGNORED_DIRS = (
    ".dart_tool",
    "build",
    ".symlinks",
    ".plugin_symlinks",
    "ios/Pods",
    ".fvm",
    ".idea",
    ".vscode",
)


@dataclass(frozen=True)
class PackageChangeEvent:
    """A file changed somewhere inside a watched package."""

    package_name: str


def should_ignore_path(path: Path) -> bool:
    """True for build artifacts, tool caches and IDE files."""
    wrapped = f"/{path.as_posix().strip('/')}/"
    return any(f"/{ignored}/" in wrapped for ignored in IGNORED_DIRS)


def has_watched_extension(path: Path) -> bool:
    return path.suffix in WATCHED_EXTENSIONS


def find_owning_package(path: Path, packages: Sequence[Package]) -> str | None:
    """Name of the most specific package containing ``path``."""
    best: Package | None = None
    for pkg in packages:
        if path.is_relative_to(pkg.path) and (
            best is None or len(pkg.path.parts) > len(best.path.parts)
        ):
            best = pkg
    return best.name if best else None


def format_changed_packages(names: Iterable[str]) -> str:
    return ", ".join(sorted(names))


def _snapshot(roots: Sequence[Path]) -> dict[Path, float]:
    """Modification times of every watched file under ``roots``."""
    mtimes: dict[Path, float] = {}
    for root in roots:
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames[:] = [d for d in dirnames if not should_ignore_path(current / d)]
            for filename in filenames:
                path = current / filename
                if not has_watched_extension(path):
                    continue
                with contextlib.suppress(OSError):
                    mtimes[path] = path.stat().st_mtime
    return mtimes


def _changed_paths(before: dict[Path, float], after: dict[Path, float]) -> set[Path]:
    changed = {path for path, mtime in after.items() if before.get(path) != mtime}
    changed.update(path for path in before if path not in after)
    return changed


async def watch_packages(
    packages: Sequence[Package],
    changes: Channel[PackageChangeEvent],
    shutdown: asyncio.Event,
    interval: float = DEFAULT_POLL_INTERVAL,
) -> None:
    """Poll package directories and report changed packages.

    Sends one :class:`PackageChangeEvent` per changed package per poll.
    Closes ``changes`` when ``shutdown`` is set.

    Args:
        packages: Packages to watch.
        changes: Channel receiving change notifications.
        shutdown: Set to stop watching.
        interval: Seconds between polls.
    """
    roots = [pkg.path for pkg in packages]
    previous = await asyncio.to_thread(_snapshot, roots)
    logger.debug("Watching %d file(s) in %d package(s)", len(previous), len(roots))

    try:
        while not shutdown.is_set():
            with contextlib.suppress(asyncio.TimeoutError, TimeoutError):
                await asyncio.wait_for(shutdown.wait(), timeout=interval)
            if shutdown.is_set():
                break

            current = await asyncio.to_thread(_snapshot, roots)
            changed_names = set()
            for path in _changed_paths(previous, current):
                name = find_owning_package(path, packages)
                if name is not None:
                    changed_names.add(name)
            previous = current

            for name in sorted(changed_names):
                logger.debug("Change detected in %s", name)
                changes.send(PackageChangeEvent(package_name=name))
    finally:
        changes.close()
