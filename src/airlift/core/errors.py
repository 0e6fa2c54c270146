"""
airlift.core.errors — Error taxonomy.

    AirliftError
    ├── ValidationError   malformed/incomplete manifest
    ├── FetchError        one or more artifacts could not be fetched
    │   └── ChartNotFoundError
    ├── ArchiveError      pack/unpack I/O failure
    ├── RewriteError      malformed chart values
    ├── RegistryError     registry protocol failure
    ├── EngineError       container engine command failure
    └── PushError         a push tier failed
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from airlift.fetch.outcome import FetchOutcome


class AirliftError(Exception):
    pass


class ValidationError(AirliftError):
    """Manifest validation error.

    field/index point at the offending entry (e.g. "charts", 2).
    """

    def __init__(self, message: str, field: str | None = None,
                 index: int | None = None):
        super().__init__(message)
        self.field = field
        self.index = index


class FetchError(AirliftError):
    """Raised after a fetch phase when any artifact failed.

    Carries every outcome of the phase, not just the failures.
    """

    def __init__(self, message: str,
                 outcomes: list[FetchOutcome] | None = None):
        super().__init__(message)
        self.outcomes = list(outcomes or [])

    @property
    def failures(self) -> list[FetchOutcome]:
        return [o for o in self.outcomes if not o.ok]


class ChartNotFoundError(FetchError):
    pass


class ArchiveError(AirliftError):
    pass


class RewriteError(AirliftError):
    pass


class RegistryError(AirliftError):
    pass


class EngineError(AirliftError):
    pass


class PushError(AirliftError):
    pass
