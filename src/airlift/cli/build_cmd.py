"""
airlift.cli.build_cmd — airlift build command.

  airlift build
  airlift build -m manifest.yaml -o bundle.tar.gz --parallel 8
  airlift build --rewrite-registry registry.local:5000
"""

import sys
import click

from airlift.core.errors import AirliftError, FetchError


@click.command("build")
@click.option("-m", "--manifest", "manifest_path", default="manifest.yaml",
              show_default=True, help="Path to the manifest file")
@click.option("-o", "--output", "output_path", default="airlift-bundle.tar.gz",
              show_default=True, help="Bundle file to write")
@click.option("-p", "--parallel", "parallel", type=int, default=None,
              help="Concurrent image downloads (default: config or 4)")
@click.option("--rewrite-registry", default=None,
              help="Rewrite chart image references to this registry")
@click.option("--strict-rewrite", is_flag=True, default=False,
              help="Fail the build if a chart cannot be rewritten")
def build_cmd(manifest_path, output_path, parallel, rewrite_registry, strict_rewrite):
    """Build a bundle from a manifest."""
    from airlift.bundle.builder import RewriteOptions, build_bundle
    from airlift.config import resolve_parallelism

    rewrite = None
    if rewrite_registry:
        rewrite = RewriteOptions(registry=rewrite_registry, strict=strict_rewrite)
    elif strict_rewrite:
        raise click.UsageError("--strict-rewrite requires --rewrite-registry")

    try:
        result = build_bundle(
            manifest_path,
            output_path,
            parallelism=resolve_parallelism(parallel),
            rewrite=rewrite,
        )
    except FetchError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo("No bundle was written.", err=True)
        sys.exit(1)
    except AirliftError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ {result.output}  "
               f"({len(result.images)} images, {len(result.charts)} charts)")
    if result.rewritten:
        click.echo(f"  rewritten: {', '.join(result.rewritten)}")
    if result.warnings:
        click.echo(f"  {len(result.warnings)} warnings (see above)")
