"""airlift.bundle — Bundle format: archive codec and artifact naming.

The build and unpack pipelines live in airlift.bundle.builder and
airlift.bundle.unpacker.
"""

from airlift.bundle.archive import write_archive, read_archive
from airlift.bundle.naming import (
    encode_image_ref, decode_image_name, image_filename, chart_filename,
)

__all__ = [
    "write_archive", "read_archive",
    "encode_image_ref", "decode_image_name", "image_filename", "chart_filename",
]
