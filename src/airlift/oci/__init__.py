"""airlift.oci — Image references, image archives, registry client."""

from airlift.oci.image import (
    ImageRef, ImageArchive, LayerBlob, parse_image_ref,
    write_image_archive, read_image_archive,
)
from airlift.oci.client import (
    Credentials, ImageArtifact, is_local_registry, get_registry,
    resolve_docker_credentials, pull_image, push_image_archive,
)

__all__ = [
    "ImageRef", "ImageArchive", "LayerBlob", "parse_image_ref",
    "write_image_archive", "read_image_archive",
    "Credentials", "ImageArtifact", "is_local_registry", "get_registry",
    "resolve_docker_credentials", "pull_image", "push_image_archive",
]
