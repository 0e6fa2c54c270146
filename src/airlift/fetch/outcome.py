"""
airlift.fetch.outcome — Per-artifact fetch results.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from airlift.core.errors import FetchError


@dataclass
class FetchOutcome:
    """Result of fetching one image or chart."""
    name: str
    path: Path | None = None
    digest: str = ""
    size: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def raise_for_failures(phase: str, outcomes: list[FetchOutcome]) -> None:
    """Raise FetchError listing every failed artifact of a phase."""
    failed = [o for o in outcomes if not o.ok]
    if not failed:
        return
    lines = [f"{len(failed)} of {len(outcomes)} {phase} failed:"]
    lines += [f"  - {o.name}: {o.error}" for o in failed]
    raise FetchError("\n".join(lines), outcomes)
