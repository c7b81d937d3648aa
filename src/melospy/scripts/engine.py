"""Recursive resolution and execution of named scripts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from melospy.channel import Channel
from melospy.config.schema import PackageFilters, ScriptConfig
from melospy.errors import (
    CircularScriptError,
    ConfigurationError,
    MelosError,
    PackagesFailedError,
    ScriptFailedError,
    ScriptNotFoundError,
    ScriptRecursionError,
)
from melospy.execution.events import EventChannel, Info, emit
from melospy.execution.events import Warning as WarningEvent
from melospy.execution.parallel import ProcessRunner
from melospy.execution.runner import run_in_root
from melospy.filters import select_packages
from melospy.scripts.parsing import (
    MAX_SCRIPT_DEPTH,
    expand_command,
    extract_exec_command,
    extract_run_script_name,
    is_exec_command,
    normalize_line_continuations,
    parse_exec_flags,
    substitute_env_vars,
)
from melospy.watcher import PackageChangeEvent, format_changed_packages
from melospy.workspace.graph import topological_sort
from melospy.workspace.package import Package
from melospy.workspace.workspace import Workspace

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.5


class ScriptEngine:
    """Resolve and run scripts defined in melos.yaml.

    A script runs in one of three modes, chosen in priority order:

    1. ``steps``: each step is either another script (run inline) or a
       shell command run at the workspace root.
    2. ``exec`` config: the command runs in every selected package through
       :class:`ProcessRunner`.
    3. ``run`` command: a shell command at the root. ``melos exec ...``
       strings are run per package and ``melos run X`` references to known
       scripts are run inline.

    Nested references are tracked on a call chain so cycles and runaway
    nesting are reported instead of recursing forever.
    """

    def __init__(self, workspace: Workspace, events: EventChannel | None = None) -> None:
        self.workspace = workspace
        self.events = events

    async def run(self, script_name: str, filters: PackageFilters | None = None) -> None:
        """Run a script with a fresh call chain.

        Args:
            script_name: Script to run.
            filters: Caller filters, narrowing any per-package selection.

        Raises:
            ScriptNotFoundError: If a referenced script does not exist.
            CircularScriptError: If scripts reference each other in a loop.
            ScriptRecursionError: If nesting exceeds ``MAX_SCRIPT_DEPTH``.
            ScriptFailedError: If a root command or step fails.
            PackagesFailedError: If a per-package command fails anywhere.
            ConfigurationError: If a script has nothing to run.
        """
        await self._run_script(script_name, filters, [], 0)

    def get_script(self, script_name: str) -> ScriptConfig:
        script = self.workspace.config.get_script(script_name)
        if script is None:
            raise ScriptNotFoundError(script_name, self.workspace.config.script_names)
        return script

    def script_env(self, script: ScriptConfig) -> dict[str, str]:
        """Workspace variables overlaid with the script's own ``env``."""
        env = self.workspace.env_vars()
        env.update(script.env)
        return env

    def watch_targets(
        self,
        script_name: str,
        filters: PackageFilters | None = None,
    ) -> list[Package]:
        """Packages a watcher should observe for ``script_name``.

        The script's ``packageFilters`` and the caller filters both apply;
        without either, every workspace package is watched.
        """
        script = self.get_script(script_name)
        return select_packages(self.workspace.package_list, script.package_filters, filters)

    async def _run_script(
        self,
        script_name: str,
        filters: PackageFilters | None,
        visited: list[str],
        depth: int,
    ) -> None:
        if depth > MAX_SCRIPT_DEPTH:
            raise ScriptRecursionError(MAX_SCRIPT_DEPTH, script_name)
        if script_name in visited:
            raise CircularScriptError([*visited, script_name])

        script = self.get_script(script_name)
        visited.append(script_name)
        logger.debug("Running script %s (depth %d)", script_name, depth)

        if script.description:
            emit(self.events, Info(f"{script_name}: {script.description.strip()}"))
        emit(self.events, Info(f"{'  ' * depth}$ Running script '{script_name}'"))

        env = self.script_env(script)

        if script.steps is not None:
            await self._run_steps(script_name, script.steps, env, filters, visited, depth)
        elif script.exec_command is not None:
            await self._run_exec_config(script_name, script, env, filters)
        elif script.run_command is not None:
            command = normalize_line_continuations(substitute_env_vars(script.run_command, env))
            if is_exec_command(command):
                await self._run_exec_string(script_name, script, command, env, filters)
            else:
                await self._run_commands(script_name, command, env, filters, visited, depth)
        else:
            raise ConfigurationError(
                f"Script '{script_name}' has no runnable configuration "
                "(no `run`, `exec`, or `steps` defined)"
            )

        # Only the active chain is guarded; sibling branches may reuse the name.
        visited.remove(script_name)

    async def _run_steps(
        self,
        script_name: str,
        steps: Sequence[str],
        env: dict[str, str],
        filters: PackageFilters | None,
        visited: list[str],
        depth: int,
    ) -> None:
        total = len(steps)
        for index, raw_step in enumerate(steps, start=1):
            step = raw_step.strip()
            if not step:
                continue

            emit(self.events, Info(f"{'  ' * depth}Step {index}/{total}: {step}"))

            if self.workspace.config.get_script(step) is not None:
                await self._run_script(step, filters, visited, depth + 1)
                continue

            for command in expand_command(substitute_env_vars(step, env)):
                if command:
                    await self._run_at_root(step, command, env)

    async def _run_commands(
        self,
        script_name: str,
        command: str,
        env: dict[str, str],
        filters: PackageFilters | None,
        visited: list[str],
        depth: int,
    ) -> None:
        for part in expand_command(command):
            if not part:
                continue
            ref_name = extract_run_script_name(part)
            if ref_name is not None and self.workspace.config.get_script(ref_name) is not None:
                await self._run_script(ref_name, filters, visited, depth + 1)
                continue
            await self._run_at_root(script_name, part, env)

    async def _run_at_root(self, failure_name: str, command: str, env: dict[str, str]) -> None:
        emit(self.events, Info(f"> {command}"))
        result = await run_in_root(
            self.workspace.root,
            self.workspace.name,
            command,
            env=env,
            events=self.events,
        )
        if not result.success:
            raise ScriptFailedError(failure_name, command, result.exit_code)

    async def _run_exec_config(
        self,
        script_name: str,
        script: ScriptConfig,
        env: dict[str, str],
        filters: PackageFilters | None,
    ) -> None:
        options = script.exec_options
        packages = select_packages(self.workspace.package_list, script.package_filters, filters)
        if not packages:
            emit(self.events, WarningEvent("No packages matched the script's filters."))
            return

        if options.order_dependents:
            packages = topological_sort(packages)

        assert script.exec_command is not None
        command = substitute_env_vars(script.exec_command, env)
        await self._run_in_packages(
            script_name,
            packages,
            command,
            env,
            concurrency=options.concurrency,
            fail_fast=options.fail_fast,
        )

    async def _run_exec_string(
        self,
        script_name: str,
        script: ScriptConfig,
        command: str,
        env: dict[str, str],
        filters: PackageFilters | None,
    ) -> None:
        flags = parse_exec_flags(command)

        filter_sets: list[PackageFilters | None] = [script.package_filters, filters]
        # The inline --file-exists flag only applies when no filter set one.
        if flags.file_exists and not any(f is not None and f.file_exists for f in filter_sets):
            filter_sets.append(PackageFilters(file_exists=flags.file_exists))

        packages = select_packages(self.workspace.package_list, *filter_sets)
        if not packages:
            emit(self.events, WarningEvent("No packages matched the script's filters."))
            return

        if flags.order_dependents:
            packages = topological_sort(packages)

        if flags.dry_run:
            names = ", ".join(p.name for p in packages)
            emit(self.events, Info(f"Dry run, would run in {len(packages)} package(s): {names}"))
            return

        await self._run_in_packages(
            script_name,
            packages,
            extract_exec_command(command),
            env,
            concurrency=flags.concurrency,
            fail_fast=flags.fail_fast,
            timeout=flags.timeout,
        )

    async def _run_in_packages(
        self,
        script_name: str,
        packages: list[Package],
        command: str,
        env: dict[str, str],
        *,
        concurrency: int,
        fail_fast: bool,
        timeout: float | None = None,
    ) -> None:
        logger.debug(
            "Running %r in %d package(s) with concurrency %d",
            command,
            len(packages),
            concurrency,
        )
        runner = ProcessRunner(concurrency=concurrency, fail_fast=fail_fast)
        batch = await runner.run_in_packages(
            packages,
            command,
            env,
            timeout=timeout,
            events=self.events,
            all_packages=self.workspace.package_list,
        )
        if not batch.all_success:
            raise PackagesFailedError(script_name, batch.failed_results)

    async def watch(
        self,
        script_name: str,
        changes: Channel[PackageChangeEvent],
        shutdown: asyncio.Event,
        filters: PackageFilters | None = None,
        debounce: float = DEFAULT_DEBOUNCE,
    ) -> None:
        """Re-run a script whenever watched packages change.

        Changes arriving within ``debounce`` seconds of the first one are
        coalesced into a single run. Failed runs are reported as warnings and
        watching continues. Returns once ``shutdown`` is set or the change
        channel closes; a run in progress is allowed to finish first.

        Args:
            script_name: Script to re-run.
            changes: Stream of package change notifications.
            shutdown: Set to stop watching.
            filters: Caller filters passed to every run.
            debounce: Coalescing window in seconds.
        """
        self.get_script(script_name)

        while not shutdown.is_set():
            first = await self._next_change(changes, shutdown)
            if first is None:
                break

            changed = {first.package_name}
            await self._collect_changes(changes, changed, debounce)

            emit(self.events, Info(f"Changes detected in: {format_changed_packages(changed)}"))

            try:
                await self.run(script_name, filters)
            except MelosError as e:
                logger.debug("Watched script %s failed: %s", script_name, e.message)
                message = f"Script '{script_name}' failed: {e.message}. Watching for changes..."
                emit(self.events, WarningEvent(message))
            else:
                message = f"Script '{script_name}' succeeded. Watching for changes..."
                emit(self.events, Info(message))

    @staticmethod
    async def _next_change(
        changes: Channel[PackageChangeEvent],
        shutdown: asyncio.Event,
    ) -> PackageChangeEvent | None:
        """Wait for a change, or None on shutdown or a closed channel."""
        recv = asyncio.ensure_future(changes.recv())
        stop = asyncio.ensure_future(shutdown.wait())
        try:
            await asyncio.wait({recv, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()

        if shutdown.is_set():
            recv.cancel()
            return None
        return recv.result()

    @staticmethod
    async def _collect_changes(
        changes: Channel[PackageChangeEvent],
        changed: set[str],
        debounce: float,
    ) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + debounce
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                event = await asyncio.wait_for(changes.recv(), timeout=remaining)
            except (asyncio.TimeoutError, TimeoutError):
                break
            if event is None:
                break
            changed.add(event.package_name)

        while True:
            event = changes.try_recv()
            if event is None:
                break
            changed.add(event.package_name)
