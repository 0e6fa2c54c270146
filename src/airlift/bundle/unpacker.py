"""
airlift.bundle.unpacker — Extract a bundle on the air-gapped side.
"""

from __future__ import annotations

from pathlib import Path

import click

from airlift.bundle.archive import read_archive
from airlift.core.errors import ArchiveError


def unpack_bundle(bundle_path: str | Path, out_dir: str | Path = ".") -> Path:
    """Extract bundle_path into out_dir and return out_dir."""
    bundle_path = Path(bundle_path)
    out_dir = Path(out_dir)

    if not bundle_path.is_file():
        raise ArchiveError(f"bundle file '{bundle_path}' does not exist")

    click.echo(f"Unpacking {bundle_path} into {out_dir}...", err=True)
    skipped = read_archive(bundle_path, out_dir)
    if skipped:
        click.echo(f"Warning: {len(skipped)} entries skipped", err=True)

    if not (out_dir / "manifest.yaml").exists():
        click.echo("Warning: bundle has no manifest.yaml", err=True)

    click.echo(f"Bundle unpacked to {out_dir}", err=True)
    return out_dir
