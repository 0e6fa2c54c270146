"""
airlift.fetch.images — Parallel image download.

At most `parallelism` pulls run at once. A failing pull does not
cancel its siblings: every image is attempted, and the outcome list
is only returned after the whole pool has drained.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Callable

from airlift.bundle.naming import image_filename
from airlift.core.progress import NullProgress, ProgressReporter
from airlift.fetch.outcome import FetchOutcome
from airlift.oci.client import ImageArtifact, pull_image


DEFAULT_PARALLELISM = 4

PullFunc = Callable[..., ImageArtifact]


def fetch_images(
    refs: list[str],
    out_dir: str | Path,
    parallelism: int = DEFAULT_PARALLELISM,
    progress: ProgressReporter | None = None,
    pull: PullFunc = pull_image,
) -> list[FetchOutcome]:
    """Download images into out_dir/<encoded-ref>.tar.

    Returns:
        One outcome per ref, in the order of refs. Duplicate refs are
        downloaded once.
    """
    if parallelism < 1:
        raise ValueError(f"parallelism must be >= 1 (got {parallelism})")

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    progress = progress or NullProgress()

    def task(ref: str) -> FetchOutcome:
        return _fetch_one(ref, out_dir, progress, pull)

    # a ref listed twice is pulled once; both positions share the outcome
    unique = list(dict.fromkeys(refs))
    with ThreadPoolExecutor(max_workers=parallelism,
                            thread_name_prefix="airlift-fetch") as pool:
        futures = {ref: pool.submit(task, ref) for ref in unique}
    # leaving the with-block joins every worker
    return [replace(futures[ref].result()) for ref in refs]


def _fetch_one(ref: str, out_dir: Path, progress: ProgressReporter,
               pull: PullFunc) -> FetchOutcome:
    out_path = out_dir / image_filename(ref)
    progress.add(ref)
    try:
        artifact = pull(ref, out_path, progress=progress)
    except Exception as e:
        out_path.unlink(missing_ok=True)
        progress.finish(ref, error=str(e))
        return FetchOutcome(name=ref, error=str(e))

    progress.finish(ref)
    return FetchOutcome(
        name=ref,
        path=artifact.path,
        digest=artifact.digest,
        size=artifact.size,
    )
