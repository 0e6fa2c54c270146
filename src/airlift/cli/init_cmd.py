"""
airlift.cli.init_cmd — airlift init command.

Validates a manifest and prints what a build would fetch.
"""

import sys
import click

from airlift.core.errors import ValidationError
from airlift.core.manifest import load_manifest


# charts that usually run an image of the same name
WELL_KNOWN_CHART_IMAGES = (
    "nginx", "redis", "postgresql", "mysql", "mongodb",
    "elasticsearch", "prometheus", "grafana",
)


@click.command("init")
@click.option("-m", "--manifest", "manifest_path", default="manifest.yaml",
              show_default=True, help="Path to the manifest file")
def init_cmd(manifest_path):
    """Validate a manifest and summarize it."""
    try:
        manifest = load_manifest(manifest_path)
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Manifest is valid. Found {len(manifest.images)} images "
               f"and {len(manifest.charts)} charts.")

    for image in manifest.images:
        click.echo(f"  image  {image}")
    for chart in manifest.charts:
        click.echo(f"  chart  {chart.name}@{chart.version}  ({chart.repo})")

    if not manifest.charts:
        return

    click.echo()
    click.echo("To point chart images at your private registry, build with:")
    click.echo(f"  airlift build -m {manifest_path} --rewrite-registry registry.local:5000")

    missing = [
        c.name for c in manifest.charts
        if c.name in WELL_KNOWN_CHART_IMAGES
        and not any(c.name in img for img in manifest.images)
    ]
    if missing:
        click.echo()
        click.echo("The following charts may require images that are not in your manifest:")
        for name in missing:
            click.echo(f"  - Chart '{name}' may need image '{name}' or 'bitnami/{name}'")
