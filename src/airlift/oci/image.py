"""
airlift.oci.image — Image references and Docker image archives.

Image archives are written in the `docker save` layout so that
`docker load -i` accepts them:

    manifest.json            [{"Config": ..., "RepoTags": [...], "Layers": [...],
                               "LayerSources": {digest: descriptor}}]
    <config-hex>.json        image config blob
    <layer-hex>.tar.gz       layer blobs, stored exactly as pulled

LayerSources keeps the original descriptors, so a pushed image has the
same layer digests as the pulled one.
"""

from __future__ import annotations

import io
import json
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from airlift.core.errors import RegistryError
from airlift.utils import compute_file_digest, is_gzip_file


DOCKER_HUB = "docker.io"
DOCKER_HUB_API = "registry-1.docker.io"

OCI_MANIFEST_MEDIA_TYPE = "application/vnd.oci.image.manifest.v1+json"
OCI_INDEX_MEDIA_TYPE = "application/vnd.oci.image.index.v1+json"
OCI_CONFIG_MEDIA_TYPE = "application/vnd.oci.image.config.v1+json"
OCI_LAYER_MEDIA_TYPE = "application/vnd.oci.image.layer.v1.tar"
OCI_LAYER_GZIP_MEDIA_TYPE = "application/vnd.oci.image.layer.v1.tar+gzip"
DOCKER_MANIFEST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.list.v2+json"

MANIFEST_MEDIA_TYPES = [
    OCI_MANIFEST_MEDIA_TYPE,
    DOCKER_MANIFEST_MEDIA_TYPE,
    OCI_INDEX_MEDIA_TYPE,
    DOCKER_MANIFEST_LIST_MEDIA_TYPE,
]
INDEX_MEDIA_TYPES = {OCI_INDEX_MEDIA_TYPE, DOCKER_MANIFEST_LIST_MEDIA_TYPE}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# REFERENCES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
@dataclass
class ImageRef:
    """A parsed image reference.

    nginx:1.25                    → docker.io / library/nginx / 1.25
    localhost:5000/nginx          → localhost:5000 / nginx / latest
    ghcr.io/org/app@sha256:abc... → ghcr.io / org/app / digest
    """
    registry: str
    repository: str
    tag: str | None = None
    digest: str | None = None

    @property
    def api_host(self) -> str:
        if self.registry == DOCKER_HUB:
            return DOCKER_HUB_API
        return self.registry

    @property
    def reference(self) -> str:
        return self.digest or self.tag or "latest"

    @property
    def target(self) -> str:
        """Registry API target string (host/repo:tag or host/repo@digest)."""
        sep = "@" if self.digest else ":"
        return f"{self.api_host}/{self.repository}{sep}{self.reference}"

    @property
    def repo_tag(self) -> str | None:
        """Short name for RepoTags (docker.io prefix dropped)."""
        if self.digest and not self.tag:
            return None
        name = self.repository
        if self.registry == DOCKER_HUB:
            name = name.removeprefix("library/")
        else:
            name = f"{self.registry}/{name}"
        return f"{name}:{self.tag or 'latest'}"

    def __str__(self) -> str:
        s = f"{self.registry}/{self.repository}"
        if self.tag:
            s += f":{self.tag}"
        if self.digest:
            s += f"@{self.digest}"
        return s


def parse_image_ref(ref: str) -> ImageRef:
    """Parse an image reference string."""
    ref = ref.strip()
    if not ref:
        raise ValueError("Empty image reference")

    digest = None
    if "@" in ref:
        ref, digest = ref.split("@", 1)

    tag = None
    last = ref.rsplit("/", 1)[-1]
    if ":" in last:
        ref, tag = ref.rsplit(":", 1)

    parts = ref.split("/", 1)
    first = parts[0]
    if len(parts) == 2 and ("." in first or ":" in first or first == "localhost"):
        registry, repository = first, parts[1]
    else:
        registry, repository = DOCKER_HUB, ref

    if registry == DOCKER_HUB and "/" not in repository:
        repository = f"library/{repository}"

    if not tag and not digest:
        tag = "latest"

    return ImageRef(registry=registry, repository=repository,
                    tag=tag, digest=digest)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# DOCKER ARCHIVE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
@dataclass
class LayerBlob:
    path: Path
    digest: str
    size: int
    media_type: str


@dataclass
class ImageArchive:
    """An image archive extracted to disk, ready to push."""
    config_path: Path
    config_digest: str
    layers: list[LayerBlob] = field(default_factory=list)
    repo_tags: list[str] = field(default_factory=list)

    def oci_manifest(self) -> dict[str, Any]:
        return {
            "schemaVersion": 2,
            "mediaType": OCI_MANIFEST_MEDIA_TYPE,
            "config": {
                "mediaType": OCI_CONFIG_MEDIA_TYPE,
                "digest": self.config_digest,
                "size": self.config_path.stat().st_size,
            },
            "layers": [
                {
                    "mediaType": layer.media_type,
                    "digest": layer.digest,
                    "size": layer.size,
                }
                for layer in self.layers
            ],
        }


def write_image_archive(
    out_path: str | Path,
    config_path: str | Path,
    config_digest: str,
    layers: list[LayerBlob],
    repo_tag: str | None,
) -> Path:
    """Write blobs already on disk as a docker-loadable tar."""
    out_path = Path(out_path)
    config_name = f"{_hex(config_digest)}.json"

    layer_names = []
    sources = {}
    for layer in layers:
        suffix = ".tar.gz" if layer.media_type.endswith("gzip") else ".tar"
        layer_names.append(f"{_hex(layer.digest)}{suffix}")
        sources[layer.digest] = {
            "mediaType": layer.media_type,
            "size": layer.size,
            "digest": layer.digest,
        }

    entry = {
        "Config": config_name,
        "RepoTags": [repo_tag] if repo_tag else [],
        "Layers": layer_names,
        "LayerSources": sources,
    }
    manifest_bytes = json.dumps([entry], indent=2).encode()

    written: set[str] = set()
    with tarfile.open(out_path, "w") as tar:
        info = tarfile.TarInfo(name="manifest.json")
        info.size = len(manifest_bytes)
        info.mode = 0o644
        tar.addfile(info, io.BytesIO(manifest_bytes))
        tar.add(str(config_path), arcname=config_name)
        for layer, name in zip(layers, layer_names):
            # the same layer may appear twice; write each blob once
            if name in written:
                continue
            written.add(name)
            tar.add(str(layer.path), arcname=name)

    return out_path


def read_image_archive(archive_path: str | Path,
                       work_dir: str | Path) -> ImageArchive:
    """Extract an image tar into work_dir and describe its blobs.

    Accepts archives written by write_image_archive and plain
    `docker save` output.
    """
    archive_path = Path(archive_path)
    work_dir = Path(work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(archive_path, "r:*") as tar:
            tar.extractall(work_dir, filter="data")
    except (tarfile.TarError, OSError) as e:
        raise RegistryError(
            f"Failed to read image archive {archive_path}: {e}"
        ) from e

    manifest_file = work_dir / "manifest.json"
    if not manifest_file.exists():
        raise RegistryError(f"No manifest.json in image archive {archive_path}")

    try:
        entries = json.loads(manifest_file.read_text())
    except json.JSONDecodeError as e:
        raise RegistryError(f"Invalid manifest.json in {archive_path}: {e}") from e

    if not isinstance(entries, list) or not entries:
        raise RegistryError(f"Empty manifest.json in {archive_path}")

    try:
        return _describe_entry(entries[0], work_dir)
    except (KeyError, TypeError, AttributeError, OSError) as e:
        raise RegistryError(
            f"Malformed manifest.json in {archive_path}: {type(e).__name__}: {e}"
        ) from e


def _describe_entry(entry: dict[str, Any], work_dir: Path) -> ImageArchive:
    config_path = work_dir / entry["Config"]
    sources = entry.get("LayerSources") or {}
    by_hex = {_hex(d): desc for d, desc in sources.items()}

    layers = []
    for name in entry.get("Layers", []):
        path = work_dir / name
        desc = by_hex.get(_hex_from_name(name))
        if desc:
            layers.append(LayerBlob(
                path=path,
                digest=desc["digest"],
                size=desc.get("size", path.stat().st_size),
                media_type=desc.get("mediaType", OCI_LAYER_GZIP_MEDIA_TYPE),
            ))
        else:
            layers.append(LayerBlob(
                path=path,
                digest=compute_file_digest(path),
                size=path.stat().st_size,
                media_type=OCI_LAYER_GZIP_MEDIA_TYPE if is_gzip_file(path)
                else OCI_LAYER_MEDIA_TYPE,
            ))

    return ImageArchive(
        config_path=config_path,
        config_digest=compute_file_digest(config_path),
        layers=layers,
        repo_tags=list(entry.get("RepoTags") or []),
    )


def _hex(digest: str) -> str:
    return digest.split(":", 1)[-1]


def _hex_from_name(name: str) -> str:
    base = name.rsplit("/", 1)[-1]
    for suffix in (".tar.gz", ".tar", ".json"):
        if base.endswith(suffix):
            return base[: -len(suffix)]
    return base
