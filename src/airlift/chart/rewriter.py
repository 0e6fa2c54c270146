"""
airlift.chart.rewriter — Point chart image references at a private registry.

Rules, applied to every mapping of the value tree:

  1. registry + non-empty repository at the same level
       registry   → <target>
       repository → last path segment (bitnami/nginx → nginx)
     No other field of that mapping is touched.
  2. otherwise, string `repository` / `image` fields not already
     under <target>:
       value → <target>/<last path segment>
  3. recurse into nested mappings, and into mappings inside lists.

Rewriting twice gives the same result as rewriting once.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import yaml

from airlift.bundle.archive import read_archive, write_archive
from airlift.chart.values import (
    MappingNode, Node, SequenceNode, load_values_file, save_values_file,
)
from airlift.core.errors import ArchiveError, RewriteError
from airlift.utils import scoped_tempdir


SINGLE_IMAGE_FIELDS = ("repository", "image")


def rewrite_values(node: Node, target: str) -> None:
    """Rewrite image references in a value tree, in place."""
    target = target.rstrip("/")
    if not target:
        raise RewriteError("Target registry must not be empty")
    _rewrite(node, target)


def _rewrite(node: Node, target: str) -> None:
    if isinstance(node, SequenceNode):
        for item in node.mappings():
            _rewrite(item, target)
        return
    if not isinstance(node, MappingNode):
        return

    if not _rewrite_registry_block(node, target):
        for key in SINGLE_IMAGE_FIELDS:
            value = node.get_str(key)
            if value and not value.startswith(target):
                node.set_str(key, f"{target}/{_basename(value)}")

    for _, child in node.children():
        _rewrite(child, target)


def _rewrite_registry_block(node: MappingNode, target: str) -> bool:
    """registry/repository pair; True if this mapping was one."""
    repository = node.get_str("repository")
    if node.get_str("registry") is None or not repository:
        return False
    node.set_str("registry", target)
    if "/" in repository:
        node.set_str("repository", _basename(repository))
    return True


def _basename(ref: str) -> str:
    return ref.rsplit("/", 1)[-1]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# FILES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def rewrite_values_file(path: str | Path, target: str) -> None:
    """Rewrite a standalone values file in place."""
    node = load_values_file(path)
    rewrite_values(node, target)
    try:
        save_values_file(node, path)
    except (OSError, yaml.YAMLError) as e:
        raise RewriteError(f"Failed to write values file {path}: {e}") from e


def rewrite_chart_archive(chart_path: str | Path, target: str) -> bool:
    """Rewrite the top-level values.yaml of a packaged chart in place.

    Returns:
        False if the chart has no values.yaml (nothing to rewrite)
    """
    chart_path = Path(chart_path)

    with scoped_tempdir("airlift-chart-extract-") as work:
        extract_dir = work / "chart"
        try:
            read_archive(chart_path, extract_dir)
        except ArchiveError as e:
            raise RewriteError(f"Failed to extract chart {chart_path.name}: {e}") from e

        chart_dir = find_chart_root(extract_dir)
        if chart_dir is None:
            raise RewriteError(f"No chart found in archive {chart_path.name}")

        values_path = chart_dir / "values.yaml"
        if not values_path.exists():
            return False

        try:
            rewrite_values_file(values_path, target)
        except RewriteError as e:
            raise RewriteError(f"Chart {chart_path.name}: {e}") from e

        repacked = work / chart_path.name
        try:
            write_archive(extract_dir, repacked)
        except ArchiveError as e:
            raise RewriteError(f"Failed to repack chart {chart_path.name}: {e}") from e
        shutil.move(str(repacked), str(chart_path))

    return True


def find_chart_root(extract_dir: Path) -> Path | None:
    """The single top-level directory of an extracted chart."""
    dirs = sorted(p for p in extract_dir.iterdir() if p.is_dir())
    for d in dirs:
        if (d / "Chart.yaml").exists():
            return d
    return dirs[0] if dirs else None
