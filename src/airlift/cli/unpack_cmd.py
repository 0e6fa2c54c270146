"""
airlift.cli.unpack_cmd — airlift unpack command.

  airlift unpack airlift-bundle.tar.gz
  airlift unpack airlift-bundle.tar.gz -C /opt/bundle
"""

import sys
import click

from airlift.core.errors import AirliftError


@click.command("unpack")
@click.argument("bundle")
@click.option("-C", "--dir", "out_dir", default=".",
              help="Directory to extract into (default: pwd)")
def unpack_cmd(bundle, out_dir):
    """Extract a bundle."""
    from airlift.bundle.unpacker import unpack_bundle

    try:
        path = unpack_bundle(bundle, out_dir)
    except AirliftError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Unpacked to {path}")
