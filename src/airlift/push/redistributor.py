"""
airlift.push.redistributor — Push bundle contents into an air-gapped cluster.

Images go through a fallback chain, each tier tried only after the
previous one failed:

    native   registry protocol via oras-py (no daemon needed)
    engine   docker load / tag / push
    manual   print the commands an operator can run, report failure

Charts go to a ChartMuseum-compatible repository:

    GET /health (warning only) → multipart POST /api/charts
    → raw application/gzip POST → print a curl command, report failure

One failing artifact never stops the others. Image pushes and chart
publishing run side by side.
"""

from __future__ import annotations

import contextlib
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Union

import click
import requests

from airlift.bundle.archive import read_archive
from airlift.bundle.naming import CHART_SUFFIX, IMAGE_SUFFIX, decode_image_name
from airlift.config import AirliftConfig
from airlift.core.errors import EngineError, PushError
from airlift.oci.client import Credentials, push_image_archive
from airlift.push.engine import ContainerEngine
from airlift.utils import scoped_tempdir


Endpoint = Union[str, Callable[[], str]]


class Tier(str, Enum):
    """How an artifact ended up in the target (or why it did not)."""
    NATIVE = "native"
    ENGINE = "engine"
    MULTIPART = "multipart"
    RAW = "raw"
    MANUAL = "manual"
    SKIPPED = "skipped"


@dataclass
class PushOutcome:
    """Result of pushing one image or publishing one chart."""
    name: str                   # local file name
    target: str                 # target image ref or upload URL
    kind: str = "image"         # "image" | "chart"
    ok: bool = False
    tier: Tier | None = None
    errors: list[str] = field(default_factory=list)
    remediation: str = ""

    @property
    def skipped(self) -> bool:
        return self.tier is Tier.SKIPPED


@dataclass
class PushReport:
    images: list[PushOutcome] = field(default_factory=list)
    charts: list[PushOutcome] = field(default_factory=list)

    @property
    def outcomes(self) -> list[PushOutcome]:
        return self.images + self.charts

    @property
    def failures(self) -> list[PushOutcome]:
        return [o for o in self.outcomes if not o.ok and not o.skipped]

    @property
    def ok(self) -> bool:
        return not self.failures


class Redistributor:
    """Pushes images and charts to a target registry / chart repository.

    registry and chart_repo are either endpoint strings or zero-argument
    callables returning one (e.g. after opening a tunnel). A callable
    that raises marks every artifact for that target as unreachable.
    """

    def __init__(
        self,
        registry: Endpoint,
        chart_repo: Endpoint | None = None,
        credentials: Credentials | None = None,
        engine: ContainerEngine | None = None,
        session: requests.Session | None = None,
        config: AirliftConfig | None = None,
        native_push: Callable[..., str] = push_image_archive,
    ):
        self.registry = registry
        self.chart_repo = chart_repo
        self.credentials = credentials
        self.engine = engine or ContainerEngine()
        self.session = session or requests.Session()
        self.config = config or AirliftConfig()
        self._native_push = native_push
        self._engine_logged_in = False

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # IMAGES
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def push_image(self, archive_path: str | Path, target_ref: str) -> PushOutcome:
        """Push one image archive through the native → engine → manual chain."""
        archive_path = Path(archive_path)
        outcome = PushOutcome(name=archive_path.name, target=target_ref)
        click.echo(f"Pushing image to {target_ref}", err=True)

        try:
            self._native_push(
                archive_path,
                target_ref,
                credentials=self.credentials,
                insecure_registries=self.config.insecure_registries,
            )
        except Exception as e:
            outcome.errors.append(f"native: {e}")
            click.echo(f"Warning: Failed to push image: {e}", err=True)
        else:
            outcome.ok, outcome.tier = True, Tier.NATIVE
            click.echo(f"Successfully pushed image: {target_ref}", err=True)
            return outcome

        if self.engine.available():
            click.echo("Attempting to push with the container engine as fallback...",
                       err=True)
            try:
                self._push_with_engine(archive_path, target_ref)
            except EngineError as e:
                outcome.errors.append(f"engine: {e}")
                click.echo(f"Warning: Engine fallback also failed: {e}", err=True)
            else:
                outcome.ok, outcome.tier = True, Tier.ENGINE
                click.echo(f"Successfully pushed image using {self.engine.binary}: "
                           f"{target_ref}", err=True)
                return outcome
        else:
            outcome.errors.append(f"engine: {self.engine.binary} not available")

        outcome.tier = Tier.MANUAL
        outcome.remediation = manual_image_steps(
            archive_path, decode_image_name(archive_path.name), target_ref,
            binary=self.engine.binary,
        )
        click.echo(outcome.remediation, err=True)
        return outcome

    def _push_with_engine(self, archive_path: Path, target_ref: str) -> None:
        if self.credentials and not self._engine_logged_in:
            self.engine.login(
                target_ref.split("/", 1)[0],
                self.credentials.username,
                self.credentials.password,
            )
            self._engine_logged_in = True
        # a bare image ID ("sha256:...") is a valid tag source as well
        loaded = self.engine.load(str(archive_path))
        self.engine.tag(loaded, target_ref)
        self.engine.push(target_ref)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # CHARTS
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def publish_chart(self, chart_path: str | Path, repo_endpoint: str) -> PushOutcome:
        """Upload one packaged chart to a ChartMuseum-compatible repository."""
        chart_path = Path(chart_path)
        base = repo_endpoint.rstrip("/")
        upload_url = f"{base}/api/charts"
        outcome = PushOutcome(name=chart_path.name, target=upload_url, kind="chart")

        self._health_check(base)

        click.echo(f"Uploading chart to {upload_url}", err=True)
        try:
            with open(chart_path, "rb") as f:
                resp = self.session.post(
                    upload_url,
                    files={"chart": (chart_path.name, f, "application/gzip")},
                    timeout=self.config.upload_timeout,
                )
            _raise_for_upload(resp)
        except (OSError, PushError) as e:
            # requests exceptions are OSErrors too
            outcome.errors.append(f"multipart: {e}")
            click.echo(f"Warning: Upload failed: {e}", err=True)
        else:
            outcome.ok, outcome.tier = True, Tier.MULTIPART
            click.echo(f"Successfully published chart: {chart_path.name}", err=True)
            return outcome

        click.echo(f"Trying alternative upload method for {chart_path.name}...",
                   err=True)
        try:
            resp = self.session.post(
                upload_url,
                data=chart_path.read_bytes(),
                headers={"Content-Type": "application/gzip"},
                timeout=self.config.upload_timeout,
            )
            _raise_for_upload(resp)
        except (OSError, PushError) as e:
            outcome.errors.append(f"raw: {e}")
        else:
            outcome.ok, outcome.tier = True, Tier.RAW
            click.echo(f"Successfully published chart with alternative method: "
                       f"{chart_path.name}", err=True)
            return outcome

        outcome.tier = Tier.MANUAL
        outcome.remediation = manual_chart_steps(chart_path, upload_url)
        click.echo(outcome.remediation, err=True)
        return outcome

    def _health_check(self, base: str) -> None:
        try:
            resp = self.session.get(f"{base}/health",
                                    timeout=self.config.health_timeout)
        except requests.RequestException as e:
            click.echo(f"Warning: Chart repository health check failed: {e}", err=True)
            click.echo("Will still attempt to push chart, but it may fail.", err=True)
            return
        if resp.status_code != 200:
            click.echo(f"Warning: Chart repository returned status "
                       f"{resp.status_code} for health check.", err=True)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # BUNDLES
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def push_bundle(self, source: str | Path) -> PushReport:
        """Push everything in a bundle archive or an unpacked bundle directory."""
        with staged_bundle(source) as (images_dir, charts_dir):
            tars = _list(images_dir, IMAGE_SUFFIX)
            charts = _list(charts_dir, CHART_SUFFIX)
            click.echo(f"Found {len(tars)} images and {len(charts)} charts to push",
                       err=True)

            with ThreadPoolExecutor(max_workers=2,
                                    thread_name_prefix="airlift-push") as pool:
                images_future = pool.submit(self._push_images, tars)
                charts_future = pool.submit(self._publish_charts, charts)
            return PushReport(
                images=images_future.result(),
                charts=charts_future.result(),
            )

    def _push_images(self, tars: list[Path]) -> list[PushOutcome]:
        if not tars:
            return []
        try:
            registry = _resolve(self.registry).rstrip("/")
        except Exception as e:
            return _unreachable(tars, "image", f"registry unreachable: {e}")

        outcomes = []
        for tar in tars:
            target = f"{registry}/{decode_image_name(tar.name)}"
            outcomes.append(self.push_image(tar, target))
        click.echo("All images from bundle have been processed.", err=True)
        return outcomes

    def _publish_charts(self, charts: list[Path]) -> list[PushOutcome]:
        if not charts:
            return []
        if self.chart_repo is None:
            click.echo("Skipping chart publishing: no chart repository configured.",
                       err=True)
            return [
                PushOutcome(name=c.name, target="", kind="chart", tier=Tier.SKIPPED)
                for c in charts
            ]
        try:
            repo = _resolve(self.chart_repo)
        except Exception as e:
            return _unreachable(charts, "chart", f"chart repository unreachable: {e}")

        outcomes = [self.publish_chart(c, repo) for c in charts]
        click.echo(f"All charts have been processed for {repo}", err=True)
        return outcomes


def push_bundle(
    source: str | Path,
    registry: Endpoint,
    chart_repo: Endpoint | None = None,
    credentials: Credentials | None = None,
    **kwargs,
) -> PushReport:
    """Push a bundle with a one-off Redistributor."""
    redistributor = Redistributor(
        registry, chart_repo=chart_repo, credentials=credentials, **kwargs,
    )
    return redistributor.push_bundle(source)


@contextlib.contextmanager
def staged_bundle(source: str | Path) -> Iterator[tuple[Path, Path]]:
    """Yield (images_dir, charts_dir) for a bundle archive or directory.

    Archives are extracted into a temporary directory that is removed
    when the context exits. A bare images/ directory yields no charts.
    """
    source = Path(source)
    if not source.exists():
        raise PushError(f"Bundle not found: {source}")

    if source.is_file():
        with scoped_tempdir("airlift-push-") as work:
            click.echo(f"Extracting bundle to {work}...", err=True)
            read_archive(source, work)
            yield work / "images", work / "charts"
        return

    if (source / "images").is_dir() or (source / "charts").is_dir():
        yield source / "images", source / "charts"
    else:
        yield source, source / "charts"


def manual_image_steps(archive_path: Path, source_ref: str, target_ref: str,
                       binary: str = "docker") -> str:
    return (
        "Manual steps to push this image:\n"
        f"  1. Load the image: {binary} load -i {archive_path}\n"
        f"  2. Tag the image: {binary} tag {source_ref} {target_ref}\n"
        f"  3. Push the image: {binary} push {target_ref}"
    )


def manual_chart_steps(chart_path: Path, upload_url: str) -> str:
    return (
        "Manual chart upload steps:\n"
        "  1. Use 'curl' to upload the chart:\n"
        f"     curl -X POST -F 'chart=@{chart_path}' {upload_url}"
    )


def _raise_for_upload(resp) -> None:
    if resp.status_code not in (200, 201):
        raise PushError(f"upload failed with status {resp.status_code}: {resp.text}")


def _resolve(endpoint: Endpoint) -> str:
    value = endpoint() if callable(endpoint) else endpoint
    if not value:
        raise PushError("empty endpoint")
    return value


def _unreachable(paths: list[Path], kind: str, error: str) -> list[PushOutcome]:
    click.echo(f"Error: {error}", err=True)
    return [
        PushOutcome(name=p.name, target="", kind=kind, errors=[error])
        for p in paths
    ]


def _list(directory: Path, suffix: str) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir()
                  if p.is_file() and p.name.endswith(suffix))
