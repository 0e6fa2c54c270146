"""airlift.core — Manifest, errors, progress."""

from airlift.core.errors import (
    AirliftError, ValidationError, FetchError, ChartNotFoundError,
    ArchiveError, RewriteError, RegistryError, EngineError, PushError,
)
from airlift.core.manifest import (
    Manifest, ChartSpec, load_manifest, validate_manifest, save_manifest,
)
from airlift.core.progress import (
    ProgressReporter, ProgressTracker, NullProgress,
)

__all__ = [
    "AirliftError", "ValidationError", "FetchError", "ChartNotFoundError",
    "ArchiveError", "RewriteError", "RegistryError", "EngineError",
    "PushError",
    "Manifest", "ChartSpec", "load_manifest", "validate_manifest",
    "save_manifest",
    "ProgressReporter", "ProgressTracker", "NullProgress",
]
