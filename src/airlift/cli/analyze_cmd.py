"""
airlift.cli.analyze_cmd — airlift analyze command.

  airlift analyze charts/nginx-15.4.4.tgz
  airlift analyze charts/*.tgz -m manifest.yaml
"""

import sys
import click

from airlift.core.errors import AirliftError


@click.command("analyze")
@click.argument("charts", nargs=-1, required=True)
@click.option("-m", "--manifest", "manifest_path", default=None,
              help="Report chart images missing from this manifest")
def analyze_cmd(charts, manifest_path):
    """List the images packaged charts refer to."""
    from airlift.chart.analyzer import analyze_chart_archive, find_images_not_in_manifest
    from airlift.core.manifest import load_manifest

    refs = []
    try:
        for chart in charts:
            refs += analyze_chart_archive(chart)
        manifest = load_manifest(manifest_path) if manifest_path else None
    except AirliftError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not refs:
        click.echo("No image references found.")
        return

    chart_w = max(len(r.chart) for r in refs)
    for r in refs:
        where = r.path or "(root)"
        click.echo(f"{r.chart:<{chart_w}}  {r.full:<50}  {r.source}:{where}")

    if manifest is None:
        return

    missing = find_images_not_in_manifest(refs, manifest.images)
    click.echo()
    if missing:
        click.echo("Images not in the manifest:")
        for image in missing:
            click.echo(f"  - {image}")
    else:
        click.echo("✓ All chart images are declared in the manifest.")
