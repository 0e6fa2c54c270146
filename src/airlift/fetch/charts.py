"""
airlift.fetch.charts — Helm chart download from classic chart repositories.

For each chart, in manifest order:
    <repo>/index.yaml → entries[name] → entry with version → urls[0]
    → download to <out_dir>/<name>-<version>.tgz

Charts are fetched one at a time. Each chart gets its own throwaway
index cache directory, removed whatever the outcome.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click
import requests
import yaml

from airlift.bundle.naming import chart_filename
from airlift.core.errors import ChartNotFoundError, FetchError
from airlift.core.manifest import ChartSpec
from airlift.core.progress import NullProgress, ProgressReporter
from airlift.fetch.outcome import FetchOutcome
from airlift.utils import compute_file_digest, scoped_tempdir


DOWNLOAD_TIMEOUT = 30


def fetch_charts(
    specs: list[ChartSpec],
    out_dir: str | Path,
    session: requests.Session | None = None,
    progress: ProgressReporter | None = None,
) -> list[FetchOutcome]:
    """Download every chart; one outcome per chart, in order."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    session = session or requests.Session()
    progress = progress or NullProgress()

    outcomes = []
    for spec in specs:
        label = f"{spec.name}-{spec.version}"
        progress.add(label)
        try:
            path = fetch_chart(spec, out_dir, session)
        except FetchError as e:
            progress.finish(label, error=str(e))
            outcomes.append(FetchOutcome(name=label, error=str(e)))
            continue
        size = path.stat().st_size
        progress.increment(label, size)
        progress.finish(label)
        outcomes.append(FetchOutcome(
            name=label,
            path=path,
            digest=compute_file_digest(path),
            size=size,
        ))
    return outcomes


def fetch_chart(spec: ChartSpec, out_dir: Path,
                session: requests.Session) -> Path:
    """Resolve a chart through its repository index and download it."""
    with scoped_tempdir("airlift-helm-cache-") as cache_dir:
        index = download_index(spec.repo, cache_dir, session, name=spec.name)
        url = find_chart_url(index, spec)
        url = resolve_chart_url(spec.repo, url)

        dest = out_dir / chart_filename(spec.name, spec.version)
        click.echo(f"Downloading chart from {url}", err=True)
        try:
            resp = session.get(url, timeout=DOWNLOAD_TIMEOUT, stream=True)
            resp.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in resp.iter_content(chunk_size=65536):
                    f.write(chunk)
        except (requests.RequestException, OSError) as e:
            dest.unlink(missing_ok=True)
            raise FetchError(
                f"Failed to download chart {spec.name} {spec.version} "
                f"from {url}: {e}"
            ) from e
    return dest


def download_index(repo_url: str, cache_dir: Path,
                   session: requests.Session,
                   name: str = "repo") -> dict[str, Any]:
    """Download and parse <repo_url>/index.yaml into cache_dir."""
    index_url = repo_url.rstrip("/") + "/index.yaml"
    index_path = cache_dir / f"airlift-{name}-index.yaml"
    try:
        resp = session.get(index_url, timeout=DOWNLOAD_TIMEOUT)
        resp.raise_for_status()
        index_path.write_bytes(resp.content)
    except requests.RequestException as e:
        raise FetchError(
            f"Failed to download repository index {index_url}: {e}"
        ) from e

    try:
        with open(index_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise FetchError(f"Failed to parse repository index {index_url}: {e}") from e

    if not isinstance(data, dict):
        raise FetchError(f"Repository index is not a mapping: {index_url}")
    return data


def find_chart_url(index: dict[str, Any], spec: ChartSpec) -> str:
    """Find the download URL of a chart in a parsed index."""
    entries = (index.get("entries") or {}).get(spec.name)
    if not entries:
        raise ChartNotFoundError(
            f"chart {spec.name} not found in repository {spec.repo}"
        )

    for entry in entries:
        if str(entry.get("version", "")) == spec.version:
            urls = entry.get("urls") or []
            if not urls:
                raise ChartNotFoundError(
                    f"no download URL found for chart {spec.name} "
                    f"version {spec.version}"
                )
            return urls[0]

    raise ChartNotFoundError(
        f"chart version {spec.version} not found for {spec.name}"
    )


def resolve_chart_url(repo_url: str, url: str) -> str:
    """Make a chart URL absolute.

    >>> resolve_chart_url("https://charts.example.com/stable", "nginx-1.0.0.tgz")
    'https://charts.example.com/stable/nginx-1.0.0.tgz'
    """
    if url.startswith(("http://", "https://")):
        return url
    return repo_url.rstrip("/") + "/" + url.lstrip("/")
