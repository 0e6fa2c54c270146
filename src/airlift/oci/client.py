"""
airlift.oci.client — Registry client for container images.

Pulls images into Docker archives and pushes Docker archives back to
a registry, speaking the registry protocol through oras-py.

Authentication:
  - loopback / local / insecure targets → anonymous, plain HTTP
  - explicit credentials → basic auth
  - otherwise → ambient Docker credentials (~/.docker/config.json,
    inline auths or credsStore helpers), anonymous if none found
"""

from __future__ import annotations

import base64
import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable

from airlift.core.errors import RegistryError
from airlift.core.progress import NullProgress, ProgressReporter
from airlift.oci.image import (
    DOCKER_HUB, DOCKER_HUB_API, INDEX_MEDIA_TYPES, MANIFEST_MEDIA_TYPES,
    OCI_LAYER_GZIP_MEDIA_TYPE, ImageRef, LayerBlob, parse_image_ref,
    read_image_archive, write_image_archive,
)
from airlift.utils import scoped_tempdir


DEFAULT_PLATFORM = ("linux", "amd64")
LOCAL_SUFFIXES = (".local", ".localhost", ".svc", ".svc.cluster.local")


@dataclass
class Credentials:
    username: str
    password: str


@dataclass
class ImageArtifact:
    """A pulled image written to a local archive."""
    ref: str
    path: Path
    digest: str = ""         # image ID (config digest)
    size: int = 0


RegistryFactory = Callable[..., Any]


def is_local_registry(host: str, insecure: Iterable[str] = ()) -> bool:
    """Check whether a registry host is loopback, in-cluster or insecure.

    Local registries are:
      - localhost[:port], 127.x.x.x[:port], [::1][:port]
      - *.local, *.svc, *.svc.cluster.local
      - any host listed in insecure
    """
    host = host.strip().lower()
    if host in {h.strip().lower() for h in insecure}:
        return True
    if host.startswith("["):
        name = host[1:host.find("]")]           # [::1]:5000
    elif host.count(":") == 1:
        name = host.rsplit(":", 1)[0]
    else:
        name = host
    if name in ("localhost", "::1") or name.startswith("127."):
        return True
    return name.endswith(LOCAL_SUFFIXES)


def get_registry(host: str, insecure: bool = False,
                 credentials: Credentials | None = None):
    """Create an oras registry provider for a host."""
    import oras.provider

    registry = oras.provider.Registry(
        hostname=host,
        insecure=insecure,
        tls_verify=not insecure,
    )
    if credentials is not None:
        registry.auth.set_basic_auth(credentials.username, credentials.password)
    return registry


def resolve_docker_credentials(host: str) -> Credentials | None:
    """Look up credentials for host in the Docker config.

    Handles inline base64 `auth` entries and credsStore / credHelpers
    helpers (docker-credential-osxkeychain, -secretservice, ...).
    """
    docker_config = Path.home() / ".docker" / "config.json"
    if not docker_config.exists():
        return None

    try:
        with open(docker_config) as f:
            config = json.load(f)
    except (OSError, json.JSONDecodeError):
        return None

    candidates = [host]
    if host in (DOCKER_HUB, DOCKER_HUB_API):
        candidates += ["https://index.docker.io/v1/", "index.docker.io"]

    auths = config.get("auths", {})
    for key in candidates:
        entry = auths.get(key) or auths.get(f"https://{key}")
        if entry and entry.get("auth"):
            try:
                decoded = base64.b64decode(entry["auth"]).decode()
            except (ValueError, UnicodeDecodeError):
                continue
            username, _, password = decoded.partition(":")
            if username and password:
                return Credentials(username, password)

    helper = (config.get("credHelpers") or {}).get(host) \
        or config.get("credsStore")
    if not helper:
        return None

    for key in candidates:
        try:
            result = subprocess.run(
                [f"docker-credential-{helper}", "get"],
                input=key,
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return None
        if result.returncode != 0:
            continue
        try:
            creds = json.loads(result.stdout)
        except json.JSONDecodeError:
            continue
        username = creds.get("Username", "")
        secret = creds.get("Secret", "")
        if username and secret:
            return Credentials(username, secret)
    return None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PULL
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def pull_image(
    ref: str,
    out_path: str | Path,
    progress: ProgressReporter | None = None,
    registry_factory: RegistryFactory = get_registry,
) -> ImageArtifact:
    """Pull an image (manifest + config + layers) into a Docker archive."""
    progress = progress or NullProgress()
    out_path = Path(out_path)
    parsed = parse_image_ref(ref)

    local = is_local_registry(parsed.registry)

    try:
        registry = registry_factory(
            parsed.api_host,
            insecure=local,
            credentials=None if local else resolve_docker_credentials(parsed.registry),
        )
        container = registry.get_container(parsed.target)
        manifest = _resolve_manifest(registry, parsed)

        with scoped_tempdir("airlift-pull-") as work:
            config_digest = manifest["config"]["digest"]
            config_path = work / "config.json"
            registry.download_blob(container, config_digest, str(config_path))
            progress.increment(ref, config_path.stat().st_size)

            layers = []
            for i, desc in enumerate(manifest.get("layers", [])):
                layer_path = work / f"layer-{i}"
                registry.download_blob(container, desc["digest"], str(layer_path))
                size = layer_path.stat().st_size
                progress.increment(ref, size)
                layers.append(LayerBlob(
                    path=layer_path,
                    digest=desc["digest"],
                    size=desc.get("size", size),
                    media_type=_oci_layer_type(desc.get("mediaType", "")),
                ))

            out_path.parent.mkdir(parents=True, exist_ok=True)
            write_image_archive(
                out_path, config_path, config_digest, layers,
                repo_tag=parsed.repo_tag,
            )
    except RegistryError:
        raise
    except Exception as e:
        raise RegistryError(f"Pull {ref} failed: {e}") from e

    return ImageArtifact(
        ref=ref,
        path=out_path,
        digest=config_digest,
        size=out_path.stat().st_size,
    )


def _resolve_manifest(registry, parsed: ImageRef) -> dict[str, Any]:
    """Fetch the image manifest, picking linux/amd64 from an index."""
    manifest = registry.get_manifest(
        registry.get_container(parsed.target),
        allowed_media_type=MANIFEST_MEDIA_TYPES,
    )
    if manifest.get("mediaType") in INDEX_MEDIA_TYPES or "manifests" in manifest:
        desc = _select_platform(manifest.get("manifests", []))
        if desc is None:
            raise RegistryError(
                f"No {'/'.join(DEFAULT_PLATFORM)} image in index for {parsed}"
            )
        child = ImageRef(
            registry=parsed.registry,
            repository=parsed.repository,
            digest=desc["digest"],
        )
        manifest = registry.get_manifest(
            registry.get_container(child.target),
            allowed_media_type=MANIFEST_MEDIA_TYPES,
        )

    if "config" not in manifest:
        raise RegistryError(f"Manifest for {parsed} has no config")
    return manifest


def _select_platform(manifests: list[dict[str, Any]]) -> dict[str, Any] | None:
    os_name, arch = DEFAULT_PLATFORM
    for desc in manifests:
        platform = desc.get("platform", {})
        if platform.get("os") == os_name and platform.get("architecture") == arch:
            return desc
    return manifests[0] if len(manifests) == 1 else None


def _oci_layer_type(media_type: str) -> str:
    # docker rootfs.diff.tar.gzip and oci tar+gzip are the same bytes
    if "gzip" in media_type or not media_type:
        return OCI_LAYER_GZIP_MEDIA_TYPE
    return media_type


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PUSH
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def push_image_archive(
    archive_path: str | Path,
    target_ref: str,
    credentials: Credentials | None = None,
    insecure_registries: Iterable[str] = (),
    registry_factory: RegistryFactory = get_registry,
) -> str:
    """Push a Docker archive to target_ref.

    Returns:
        The pushed config digest
    """
    archive_path = Path(archive_path)
    target = parse_image_ref(target_ref)
    local = is_local_registry(target.registry, insecure_registries)

    if credentials is None and not local:
        credentials = resolve_docker_credentials(target.registry)

    with scoped_tempdir("airlift-push-") as work:
        try:
            image = read_image_archive(archive_path, work)
            registry = registry_factory(
                target.api_host,
                insecure=local,
                credentials=credentials,
            )
            container = registry.get_container(target.target)
            config_layer = image.oci_manifest()["config"]
            _check(registry.upload_blob(str(image.config_path), container,
                                        config_layer), f"config {image.config_digest}")
            for layer in image.layers:
                desc = {
                    "mediaType": layer.media_type,
                    "digest": layer.digest,
                    "size": layer.size,
                }
                _check(registry.upload_blob(str(layer.path), container, desc),
                       f"layer {layer.digest}")
            _check(registry.upload_manifest(image.oci_manifest(), container),
                   "manifest")
        except RegistryError:
            raise
        except Exception as e:
            raise RegistryError(f"Push to {target_ref} failed: {e}") from e

    return image.config_digest


def _check(response, what: str) -> None:
    status = getattr(response, "status_code", None)
    if status is not None and status not in (200, 201, 202):
        raise RegistryError(
            f"Upload of {what} failed with status {status}: "
            f"{getattr(response, 'text', '')}"
        )
