"""
airlift — Air-gapped bundles of container images and Helm charts.

Build a bundle where the internet is, carry it across, push it into
the cluster's registry and chart repository on the other side.
"""

from airlift.core import (
    AirliftError, ValidationError, FetchError, ArchiveError,
    RewriteError, PushError, Manifest, ChartSpec, load_manifest,
)
from airlift.bundle.builder import build_bundle, BuildResult, RewriteOptions
from airlift.bundle.unpacker import unpack_bundle
from airlift.push.redistributor import Redistributor, PushReport, push_bundle

__version__ = "0.1.0"

__all__ = [
    # errors
    "AirliftError",
    "ValidationError",
    "FetchError",
    "ArchiveError",
    "RewriteError",
    "PushError",
    # manifest
    "Manifest",
    "ChartSpec",
    "load_manifest",
    # pipelines
    "build_bundle",
    "BuildResult",
    "RewriteOptions",
    "unpack_bundle",
    "Redistributor",
    "PushReport",
    "push_bundle",
]
