"""Execution result types."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of running a command in one package.

    Non-zero exit, timeout, spawn failure and fail-fast skips all map to
    ``success=False``; the emitted output lines carry the detail.

    Attributes:
        package_name: Package the command ran in.
        success: Whether the command exited with code 0.
        exit_code: Process exit code, None if the process never exited normally.
        duration_ms: Wall time in milliseconds.
    """

    package_name: str
    success: bool
    exit_code: int | None = None
    duration_ms: int = 0

    @property
    def failed(self) -> bool:
        return not self.success


@dataclass
class BatchResult:
    """Results of running a command across packages, in completion order."""

    results: list[ExecutionResult] = field(default_factory=list)

    def __iter__(self) -> Iterator[ExecutionResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def all_success(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def failed_packages(self) -> list[str]:
        return [r.package_name for r in self.results if not r.success]

    @property
    def failed_results(self) -> list[ExecutionResult]:
        return [r for r in self.results if not r.success]

    def get(self, package_name: str) -> ExecutionResult | None:
        return next((r for r in self.results if r.package_name == package_name), None)

    def sorted_by_name(self) -> list[ExecutionResult]:
        """Results re-sorted by package name (completion order is not input order)."""
        return sorted(self.results, key=lambda r: r.package_name)
