"""
airlift.core.manifest — Manifest loading and validation.

manifest.yaml format:

    images:
      - nginx:1.25
      - bitnami/redis:7.2.4
    charts:
      - name: nginx
        repo: https://charts.bitnami.com/bitnami
        version: 15.4.4
        valuesFile: values/nginx.yaml   # optional

Validation stops at the first violation, in declaration order:
images first, then charts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from airlift.core.errors import ValidationError


@dataclass
class ChartSpec:
    """A chart to bundle."""
    name: str
    repo: str
    version: str
    values_file: str | None = None
    # the YAML entry was not a mapping; reported by validate_manifest
    malformed: bool = field(default=False, repr=False, compare=False)

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.version)

    @property
    def archive_name(self) -> str:
        return f"{self.name}-{self.version}.tgz"


@dataclass
class Manifest:
    """Parsed manifest.yaml."""
    images: list[str] = field(default_factory=list)
    charts: list[ChartSpec] = field(default_factory=list)
    path: Path | None = None

    @property
    def is_empty(self) -> bool:
        return not self.images and not self.charts


def load_manifest(path: str | Path) -> Manifest:
    """Read and validate a manifest file."""
    p = Path(path)
    try:
        with open(p) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ValidationError(f"Manifest file not found: {p}")
    except OSError as e:
        raise ValidationError(f"Failed to read manifest file {p}: {e}")
    except yaml.YAMLError as e:
        raise ValidationError(f"Failed to parse manifest YAML {p}: {e}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError(f"Manifest must be a YAML mapping: {p}")

    manifest = _from_dict(data)
    manifest.path = p
    validate_manifest(manifest, base_dir=p.parent)
    return manifest


def _from_dict(data: dict[str, Any]) -> Manifest:
    images = data.get("images") or []
    charts = data.get("charts") or []
    if not isinstance(images, list):
        raise ValidationError("'images' must be a list", field="images")
    if not isinstance(charts, list):
        raise ValidationError("'charts' must be a list", field="charts")

    specs = []
    for entry in charts:
        if not isinstance(entry, dict):
            specs.append(ChartSpec(name="", repo="", version="", malformed=True))
            continue
        specs.append(ChartSpec(
            name=_as_str(entry.get("name")),
            repo=_as_str(entry.get("repo")),
            version=_as_str(entry.get("version")),
            values_file=_as_str(entry.get("valuesFile")) or None,
        ))

    return Manifest(
        images=[_as_str(img) for img in images],
        charts=specs,
    )


def _as_str(value: Any) -> str:
    # YAML turns `version: 1.0` into a float
    if value is None:
        return ""
    return str(value)


def validate_manifest(manifest: Manifest,
                      base_dir: str | Path | None = None) -> None:
    """Raise ValidationError on the first invalid entry.

    Relative values files are resolved against base_dir and the
    resolved path is stored back on the ChartSpec.
    """
    if manifest.is_empty:
        raise ValidationError(
            "manifest must contain at least one image or chart",
        )

    for i, image in enumerate(manifest.images):
        if not image.strip():
            raise ValidationError(
                f"image at index {i} is empty", field="images", index=i,
            )

    for i, chart in enumerate(manifest.charts):
        if chart.malformed:
            raise ValidationError(
                f"chart at index {i} must be a mapping",
                field="charts", index=i,
            )
        if not chart.name.strip():
            raise ValidationError(
                f"chart at index {i} has no name",
                field="charts.name", index=i,
            )
        if not chart.repo.strip():
            raise ValidationError(
                f"chart at index {i} has no repository",
                field="charts.repo", index=i,
            )
        if not chart.version.strip():
            raise ValidationError(
                f"chart at index {i} has no version",
                field="charts.version", index=i,
            )
        if chart.values_file:
            vf = Path(chart.values_file)
            if not vf.is_absolute() and base_dir is not None:
                vf = Path(base_dir) / vf
            if not vf.exists():
                raise ValidationError(
                    f"values file '{chart.values_file}' for chart "
                    f"'{chart.name}' does not exist",
                    field="charts.valuesFile", index=i,
                )
            chart.values_file = str(vf)


def save_manifest(manifest: Manifest, path: str | Path) -> None:
    """Write a manifest file."""
    data: dict[str, Any] = {}
    if manifest.images:
        data["images"] = list(manifest.images)
    if manifest.charts:
        data["charts"] = []
        for chart in manifest.charts:
            entry = {
                "name": chart.name,
                "repo": chart.repo,
                "version": chart.version,
            }
            if chart.values_file:
                entry["valuesFile"] = chart.values_file
            data["charts"].append(entry)

    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
