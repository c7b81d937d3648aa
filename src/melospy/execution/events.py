"""Events emitted while commands run.

Events decouple execution from presentation: the runner and the script
engine produce them, renderers consume them. Every package-scoped event
carries the package name because output from concurrent packages
interleaves freely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from melospy.channel import Channel


@dataclass(frozen=True)
class CommandStarted:
    command: str
    package_count: int


@dataclass(frozen=True)
class CommandFinished:
    command: str
    duration: float


@dataclass(frozen=True)
class PackageStarted:
    name: str


@dataclass(frozen=True)
class PackageOutput:
    name: str
    line: str
    is_stderr: bool = False


@dataclass(frozen=True)
class PackageFinished:
    name: str
    success: bool
    duration: float


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int
    message: str = ""


@dataclass(frozen=True)
class Warning:  # noqa: A001
    message: str


@dataclass(frozen=True)
class Info:
    message: str


Event = Union[
    CommandStarted,
    CommandFinished,
    PackageStarted,
    PackageOutput,
    PackageFinished,
    Progress,
    Warning,
    Info,
]

EventChannel = Channel[Event]


def emit(events: EventChannel | None, event: Event) -> None:
    """Send an event if a channel is attached; closed channels drop it."""
    if events is not None:
        events.send(event)
