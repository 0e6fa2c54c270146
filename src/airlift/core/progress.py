"""
airlift.core.progress — Progress reporting for concurrent fetches.

The tracker is keyed by artifact name. Fetch workers register,
update and finish their own keys from a thread pool, so every
mutation happens under one lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol

import click


class ProgressReporter(Protocol):
    def add(self, name: str, total: int = 0) -> None: ...
    def increment(self, name: str, n: int) -> None: ...
    def finish(self, name: str, error: str | None = None) -> None: ...


@dataclass
class ProgressState:
    name: str
    total: int = 0
    done: int = 0
    finished: bool = False
    error: str | None = None


class ProgressTracker:
    """Thread-safe progress tracker that reports to stderr."""

    def __init__(self, echo: bool = True):
        self._lock = threading.Lock()
        self._states: dict[str, ProgressState] = {}
        self._echo = echo

    def add(self, name: str, total: int = 0) -> None:
        with self._lock:
            self._states[name] = ProgressState(name=name, total=total)
            if self._echo:
                click.echo(f"Downloading: {name}", err=True)

    def increment(self, name: str, n: int) -> None:
        with self._lock:
            state = self._states.get(name)
            if state is not None and not state.finished:
                state.done += n

    def finish(self, name: str, error: str | None = None) -> None:
        with self._lock:
            state = self._states.get(name)
            if state is None or state.finished:
                return
            state.finished = True
            state.error = error
            if self._echo:
                if error:
                    click.echo(f"Failed: {name}: {error}", err=True)
                else:
                    click.echo(
                        f"Completed: {name} ({format_size(state.done)})",
                        err=True,
                    )

    def get(self, name: str) -> ProgressState | None:
        with self._lock:
            state = self._states.get(name)
            if state is None:
                return None
            return ProgressState(**vars(state))

    def snapshot(self) -> dict[str, ProgressState]:
        with self._lock:
            return {k: ProgressState(**vars(v)) for k, v in self._states.items()}


class NullProgress:
    """Reporter that discards everything."""

    def add(self, name: str, total: int = 0) -> None:
        pass

    def increment(self, name: str, n: int) -> None:
        pass

    def finish(self, name: str, error: str | None = None) -> None:
        pass


def format_size(n: int) -> str:
    """Human readable byte count.

    >>> format_size(512)
    '512 B'
    >>> format_size(3 * 1024 * 1024)
    '3.0 MiB'
    """
    size = float(n)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024 or unit == "GiB":
            if unit == "B":
                return f"{int(size)} B"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GiB"
