"""
airlift.chart.analyzer — Find the images a chart will pull.

Two sources:
  - values.yaml: any mapping with a repository/image/registry field,
    paired with a tag/imageTag field at the same level if present
  - templates/: literal `image: repo:tag` strings

find_images_not_in_manifest() compares the result with the images a
manifest declares. Missing images are warnings for the operator, the
build itself does not fail on them.
"""

from __future__ import annotations

import re
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import yaml

from airlift.chart.values import (
    MappingNode, Node, ScalarNode, SequenceNode, decode_values,
)
from airlift.core.errors import ArchiveError, RewriteError


REPOSITORY_FIELDS = ("repository", "image", "registry")
TAG_FIELDS = ("tag", "imageTag")

TEMPLATE_IMAGE_RE = re.compile(
    r"""(?:image|Image):\s*["']?([^"'\s}]+):([^"'\s}]+)["']?"""
)


@dataclass
class ImageReference:
    """An image reference found in a chart."""
    chart: str
    path: str               # "image", "metrics.image", "templates/deployment.yaml"
    repository: str
    tag: str = ""
    source: str = "values.yaml"

    @property
    def full(self) -> str:
        if self.tag:
            return f"{self.repository}:{self.tag}"
        return self.repository


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# VALUES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def analyze_values(node: Node, chart: str,
                   source: str = "values.yaml") -> list[ImageReference]:
    """Collect image references from a value tree."""
    refs: list[ImageReference] = []
    _collect(node, "", chart, source, refs)
    return refs


def _collect(node: Node, path: str, chart: str, source: str,
             refs: list[ImageReference]) -> None:
    if isinstance(node, SequenceNode):
        for i, item in enumerate(node.items):
            if isinstance(item, MappingNode):
                _collect(item, f"{path}[{i}]", chart, source, refs)
        return
    if not isinstance(node, MappingNode):
        return

    repository = _first_field(node, REPOSITORY_FIELDS, allow_numbers=False)
    if repository:
        refs.append(ImageReference(
            chart=chart,
            path=path,
            repository=repository,
            tag=_first_field(node, TAG_FIELDS, allow_numbers=True),
            source=source,
        ))

    for key, child in node.children():
        child_path = f"{path}.{key}" if path else key
        _collect(child, child_path, chart, source, refs)


def _first_field(node: MappingNode, fields: tuple[str, ...],
                 allow_numbers: bool) -> str:
    for name in fields:
        child = node.get(name)
        if not isinstance(child, ScalarNode):
            continue
        value = child.value
        # `tag: 1.25` decodes to a float
        if allow_numbers and isinstance(value, (int, float)) \
                and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and value:
            return value
    return ""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# TEMPLATES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def analyze_templates(name: str, text: str, chart: str) -> list[ImageReference]:
    """Collect hardcoded `image: repo:tag` references from template text.

    >>> [r.full for r in analyze_templates("t.yaml", 'image: "busybox:1.36"', "c")]
    ['busybox:1.36']
    """
    return [
        ImageReference(
            chart=chart,
            path=name,
            repository=m.group(1),
            tag=m.group(2),
            source="template",
        )
        for m in TEMPLATE_IMAGE_RE.finditer(text)
    ]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CHART ARCHIVES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def analyze_chart_archive(chart_path: str | Path) -> list[ImageReference]:
    """Analyze a packaged chart (.tgz): values.yaml first, then templates.

    Only the top-level chart is analyzed; subcharts under charts/ are not.
    """
    chart_path = Path(chart_path)
    files = _read_chart_files(chart_path)

    chart_name = chart_path.name
    for name, data in files.items():
        if name.count("/") == 1 and name.endswith("/Chart.yaml"):
            try:
                meta = yaml.safe_load(data) or {}
            except yaml.YAMLError:
                meta = {}
            if isinstance(meta, dict) and meta.get("name"):
                chart_name = str(meta["name"])
            break

    refs: list[ImageReference] = []
    for name, data in files.items():
        if name.count("/") == 1 and name.endswith("/values.yaml"):
            try:
                values = yaml.safe_load(data)
            except yaml.YAMLError as e:
                raise RewriteError(
                    f"Failed to parse values.yaml of {chart_path.name}: {e}"
                ) from e
            if values is not None:
                refs += analyze_values(decode_values(values), chart_name)
            break

    for name in sorted(files):
        parts = name.split("/")
        if len(parts) >= 3 and parts[1] == "templates":
            text = files[name].decode("utf-8", errors="replace")
            refs += analyze_templates("/".join(parts[1:]), text, chart_name)

    return refs


def _read_chart_files(chart_path: Path) -> dict[str, bytes]:
    """Regular files of a chart archive keyed by entry name."""
    files: dict[str, bytes] = {}
    try:
        with tarfile.open(chart_path, "r:*") as tar:
            for member in tar:
                if not member.isreg():
                    continue
                f = tar.extractfile(member)
                if f is None:
                    continue
                with f:
                    files[member.name.removeprefix("./")] = f.read()
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveError(f"Failed to read chart {chart_path}: {e}") from e
    return files


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# RECONCILIATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def find_images_not_in_manifest(
    chart_images: Iterable[ImageReference],
    manifest_images: Iterable[str],
) -> list[str]:
    """Images referenced by charts but not declared in the manifest.

    A reference matches if its full repo:tag is declared, or failing
    that, if its bare repository is. Results are deduplicated and keep
    first-seen order.
    """
    known: set[str] = set()
    for image in manifest_images:
        known.add(image)
        known.add(strip_tag(image))

    missing: list[str] = []
    seen: set[str] = set()
    for ref in chart_images:
        full = ref.full
        if full in known or ref.repository in known or full in seen:
            continue
        seen.add(full)
        missing.append(full)
    return missing


def strip_tag(image: str) -> str:
    """Drop the tag or digest of an image reference.

    >>> strip_tag("localhost:5000/app:1.0")
    'localhost:5000/app'
    """
    image = image.split("@", 1)[0]
    slash = image.rfind("/")
    colon = image.rfind(":")
    if colon > slash:
        return image[:colon]
    return image
