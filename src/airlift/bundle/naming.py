"""
airlift.bundle.naming — Artifact file names inside a bundle.

Image references become file names by replacing "/" and ":" with "_":

    bitnami/nginx:1.25  →  bitnami_nginx_1.25.tar

Decoding splits at the LAST underscore: everything before it is the
repository (underscores turned back into "/"), everything after it
is the tag. This is lossy when a repository path segment contains
an underscore itself:

    my_repo/name:tag  →  my_repo_name_tag  →  my/repo/name:tag

The encoding is kept as-is; bundles written by earlier versions must
stay readable.
"""

from __future__ import annotations

IMAGE_SUFFIX = ".tar"
CHART_SUFFIX = ".tgz"


def encode_image_ref(ref: str) -> str:
    """Map an image reference to a filesystem-safe name (no suffix).

    >>> encode_image_ref("bitnami/nginx:1.25")
    'bitnami_nginx_1.25'
    """
    name = ref.strip().replace("/", "_").replace(":", "_")
    return name.replace("@", "_")


def decode_image_name(name: str) -> str:
    """Recover an image reference from an encoded name.

    >>> decode_image_name("bitnami_nginx_1.25")
    'bitnami/nginx:1.25'
    >>> decode_image_name("alpine")
    'alpine'
    """
    if name.endswith(IMAGE_SUFFIX):
        name = name[: -len(IMAGE_SUFFIX)]
    if "_" not in name:
        return name
    repo, _, tag = name.rpartition("_")
    return f"{repo.replace('_', '/')}:{tag}"


def image_filename(ref: str) -> str:
    return encode_image_ref(ref) + IMAGE_SUFFIX


def chart_filename(name: str, version: str) -> str:
    return f"{name}-{version}{CHART_SUFFIX}"
