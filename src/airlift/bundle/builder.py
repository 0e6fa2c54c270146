"""
airlift.bundle.builder — Build a bundle from a manifest.

    manifest.yaml
      → fetch images (parallel)   staging/images/<encoded-ref>.tar
      → fetch charts (sequential) staging/charts/<name>-<version>.tgz
      → copy values files         staging/charts/<values-file-name>
      → check chart images against the manifest (warnings only)
      → rewrite image references  (optional)
      → pack staging → <output>.tar.gz

Any failed image or chart fails the build after the whole phase has
run, and no bundle is written. The staging tree is always removed.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path

import click
import requests

from airlift.bundle.archive import write_archive
from airlift.chart.analyzer import analyze_chart_archive, find_images_not_in_manifest
from airlift.chart.rewriter import rewrite_chart_archive, rewrite_values_file
from airlift.core.errors import AirliftError, RewriteError
from airlift.core.manifest import Manifest, load_manifest
from airlift.core.progress import ProgressReporter, ProgressTracker
from airlift.fetch.charts import fetch_charts
from airlift.fetch.images import DEFAULT_PARALLELISM, PullFunc, fetch_images
from airlift.fetch.outcome import FetchOutcome, raise_for_failures
from airlift.oci.client import pull_image
from airlift.utils import scoped_tempdir


@dataclass
class RewriteOptions:
    """Rewrite chart image references to point at registry.

    strict: a chart whose values cannot be rewritten fails the build
    instead of producing a warning.
    """
    registry: str
    strict: bool = False


@dataclass
class BuildResult:
    output: Path
    images: list[FetchOutcome] = field(default_factory=list)
    charts: list[FetchOutcome] = field(default_factory=list)
    rewritten: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def build_bundle(
    manifest_path: str | Path,
    output_path: str | Path,
    parallelism: int = DEFAULT_PARALLELISM,
    rewrite: RewriteOptions | None = None,
    progress: ProgressReporter | None = None,
    session: requests.Session | None = None,
    pull: PullFunc = pull_image,
) -> BuildResult:
    """Fetch everything a manifest declares and pack it into one bundle."""
    manifest_path = Path(manifest_path)
    output_path = Path(output_path)
    manifest = load_manifest(manifest_path)
    progress = progress or ProgressTracker()

    with scoped_tempdir("airlift-build-") as work:
        staging = work / "bundle"
        images_dir = staging / "images"
        charts_dir = staging / "charts"
        images_dir.mkdir(parents=True)
        charts_dir.mkdir(parents=True)

        click.echo(f"Downloading {len(manifest.images)} images "
                   f"(parallelism {parallelism})...", err=True)
        images = fetch_images(manifest.images, images_dir,
                              parallelism=parallelism, progress=progress, pull=pull)
        raise_for_failures("images", images)

        click.echo(f"Downloading {len(manifest.charts)} charts...", err=True)
        charts = fetch_charts(manifest.charts, charts_dir,
                              session=session, progress=progress)
        raise_for_failures("charts", charts)

        result = BuildResult(output=output_path, images=images, charts=charts)

        values_files = copy_values_files(manifest, charts_dir)

        # checked against the references as published, before any rewrite
        result.warnings += check_chart_images(manifest, charts)

        if rewrite is not None:
            _rewrite_staged(charts, values_files, rewrite, result)

        shutil.copyfile(manifest_path, staging / "manifest.yaml")

        click.echo("Creating bundle...", err=True)
        packed = write_archive(staging, work / "bundle.tar.gz")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(packed), str(output_path))

    click.echo(f"Bundle created successfully: {output_path}", err=True)
    return result


def copy_values_files(manifest: Manifest, charts_dir: Path) -> list[Path]:
    """Copy each chart's values file into charts_dir (by base name)."""
    copied = []
    for chart in manifest.charts:
        if not chart.values_file:
            continue
        src = Path(chart.values_file)
        dest = charts_dir / src.name
        shutil.copyfile(src, dest)
        click.echo(f"Copied values file for chart {chart.name}: {dest.name}", err=True)
        copied.append(dest)
    return copied


def _rewrite_staged(charts: list[FetchOutcome], values_files: list[Path],
                    rewrite: RewriteOptions, result: BuildResult) -> None:
    click.echo(f"Rewriting image references to {rewrite.registry}...", err=True)
    targets = [(c.name, c.path) for c in charts if c.path is not None]
    targets += [(p.name, p) for p in values_files]

    for name, path in targets:
        try:
            if path.name.endswith(".tgz"):
                changed = rewrite_chart_archive(path, rewrite.registry)
            else:
                rewrite_values_file(path, rewrite.registry)
                changed = True
        except RewriteError as e:
            if rewrite.strict:
                raise
            msg = f"Could not rewrite image references in {name}: {e}"
            click.echo(f"Warning: {msg}", err=True)
            result.warnings.append(msg)
            continue
        if changed:
            result.rewritten.append(name)


def check_chart_images(manifest: Manifest,
                       charts: list[FetchOutcome]) -> list[str]:
    """Warnings for images charts use but the manifest does not declare."""
    refs = []
    warnings = []
    for chart in charts:
        if chart.path is None:
            continue
        try:
            refs += analyze_chart_archive(chart.path)
        except AirliftError as e:
            warnings.append(f"Could not analyze chart {chart.name}: {e}")

    for image in find_images_not_in_manifest(refs, manifest.images):
        warnings.append(f"Image {image} is used by a chart but not listed in the manifest")

    for w in warnings:
        click.echo(f"Warning: {w}", err=True)
    return warnings
